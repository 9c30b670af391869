"""Beeper Desktop API client: the conversation repository used by the inbox.

Thin request layer over the local Beeper Desktop REST API. Holds no inbox
state of its own; every call maps 1:1 onto an upstream endpoint and
translates transport and status failures into :mod:`triage.errors`.

Upstream quirk: the message search endpoint used to reject a single-element
``chatIDs`` array unless the id was repeated. The client sends ``chatIDs`` as
a proper list parameter and does not repeat the id.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Protocol

import httpx
from pydantic import ValidationError

from triage.config import settings
from triage.errors import BadRequest, NotFound, TriageError, Unauthorized, UpstreamFailure
from triage.models.conversations import (
    ArchiveResult,
    Conversation,
    ConversationPage,
    Message,
    MessagePage,
    SendResult,
)

logger = logging.getLogger(__name__)

SEARCH_CHATS_PATH = "/v0/search-chats"
SEARCH_MESSAGES_PATH = "/v0/search-messages"
SEND_MESSAGE_PATH = "/v0/send-message"
ARCHIVE_CHAT_PATH = "/v0/archive-chat"


class ConversationRepository(Protocol):
    """Contract the controllers consume. ``ConnectorClient`` implements it."""

    async def initialize(self) -> None: ...

    async def close(self) -> None: ...

    async def list_conversations(
        self, *, include_muted: bool = False, limit: int = 30
    ) -> ConversationPage: ...

    async def list_messages(self, chat_id: str, limit: int = 30) -> MessagePage: ...

    async def send_message(self, chat_id: str, text: str) -> SendResult: ...

    async def set_archived(self, chat_id: str, archived: bool = True) -> ArchiveResult: ...


class ConnectorClient:
    """Async Beeper Desktop API client.

    Lifecycle:
        client = ConnectorClient()
        await client.initialize()
        ...
        await client.close()
    """

    def __init__(
        self,
        base_url: str | None = None,
        access_token: str | None = None,
        *,
        timeout: float | None = None,
        concurrency: int | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = (base_url or settings.beeper_base_url).rstrip("/")
        self._access_token = (
            access_token if access_token is not None else settings.beeper_access_token
        )
        self._timeout = timeout or settings.connector_timeout_seconds
        self._concurrency = concurrency or settings.enrichment_concurrency
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def initialize(self) -> None:
        """Create the HTTP client."""
        if self._client is not None:
            return
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=self._timeout,
            transport=self._transport,
        )
        logger.info(
            "ConnectorClient initialized (base_url=%s, concurrency=%d)",
            self._base_url,
            self._concurrency,
        )

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None
        logger.info("ConnectorClient closed")

    # ------------------------------------------------------------------
    # Repository contract
    # ------------------------------------------------------------------

    async def list_conversations(
        self, *, include_muted: bool = False, limit: int = 30
    ) -> ConversationPage:
        """Fetch the primary inbox and attach each chat's most recent message.

        Enrichment runs with at most ``concurrency`` requests in flight. A chat
        whose last message cannot be fetched is returned with
        ``last_message=None`` instead of failing the whole list.
        """
        data = await self._request(
            "GET",
            SEARCH_CHATS_PATH,
            params={
                "includeMuted": _bool_param(include_muted),
                "limit": limit,
                "inbox": "primary",
                "type": "single",
            },
        )
        raw_items: list[dict[str, Any]] = data.get("items", [])
        semaphore = asyncio.Semaphore(self._concurrency)

        async def enrich(raw: dict[str, Any]) -> Conversation:
            chat_id = raw.get("id", "")
            last_message: Message | None = None
            async with semaphore:
                try:
                    page = await self.list_messages(chat_id, limit=1)
                    last_message = page.items[0] if page.items else None
                except Unauthorized:
                    raise
                except TriageError as exc:
                    logger.error(
                        "Error fetching last message for chat %s: %s", chat_id, exc
                    )
            return _parse(Conversation, {**raw, "lastMessage": last_message})

        conversations = await asyncio.gather(*(enrich(raw) for raw in raw_items))
        logger.debug("Fetched %d conversations", len(conversations))
        return ConversationPage(
            items=list(conversations), has_more=bool(data.get("hasMore", False))
        )

    async def list_messages(self, chat_id: str, limit: int = 30) -> MessagePage:
        """Fetch the most recent ``limit`` messages of a chat, newest first."""
        if not chat_id:
            raise BadRequest("Chat ID is required")
        data = await self._request(
            "GET",
            SEARCH_MESSAGES_PATH,
            params={"chatIDs": [chat_id], "limit": limit},
            chat_id=chat_id,
        )
        items = [_parse(Message, item) for item in data.get("items", [])]
        return MessagePage(items=items, has_more=bool(data.get("hasMore", False)))

    async def send_message(self, chat_id: str, text: str) -> SendResult:
        """Send ``text`` to a chat. Empty text is rejected without a request."""
        if not chat_id:
            raise BadRequest("Chat ID is required")
        if not text or not text.strip():
            raise BadRequest("Message text is required", chat_id=chat_id)
        data = await self._request(
            "POST",
            SEND_MESSAGE_PATH,
            json={"chatID": chat_id, "text": text},
            chat_id=chat_id,
        )
        logger.info("Sent message to chat %s", chat_id)
        return SendResult(pending_message_id=str(data.get("pendingMessageID", "")))

    async def set_archived(self, chat_id: str, archived: bool = True) -> ArchiveResult:
        """Archive or un-archive a chat."""
        if not chat_id:
            raise BadRequest("Chat ID is required")
        data = await self._request(
            "POST",
            ARCHIVE_CHAT_PATH,
            json={"chatID": chat_id, "archived": archived},
            chat_id=chat_id,
        )
        success = bool(data.get("success", False))
        logger.info("Archive chat %s (archived=%s): success=%s", chat_id, archived, success)
        return ArchiveResult(success=success)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
        chat_id: str | None = None,
    ) -> dict[str, Any]:
        if not self._access_token:
            raise Unauthorized("BEEPER_ACCESS_TOKEN is not configured")
        if not self._client:
            raise RuntimeError("ConnectorClient not initialized. Call initialize() first.")

        try:
            response = await self._client.request(
                method,
                path,
                params=params,
                json=json,
                headers={"Authorization": f"Bearer {self._access_token}"},
            )
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as exc:
            raise _status_error(exc, chat_id) from exc
        except httpx.HTTPError as exc:
            logger.warning("Connector request %s %s failed: %s", method, path, exc)
            raise UpstreamFailure(f"Connector request failed: {exc}", chat_id=chat_id) from exc
        except ValueError as exc:
            raise UpstreamFailure(f"Invalid connector response: {exc}", chat_id=chat_id) from exc


def _bool_param(value: bool) -> str:
    return "true" if value else "false"


def _parse(model: type, payload: Any) -> Any:
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        raise UpstreamFailure(f"Unexpected {model.__name__} payload: {exc}") from exc


def _status_error(exc: httpx.HTTPStatusError, chat_id: str | None) -> TriageError:
    status = exc.response.status_code
    detail = exc.response.text[:200]
    if status in (401, 403):
        return Unauthorized(f"Beeper rejected the access token ({status})")
    if status == 404:
        return NotFound(f"Chat not found: {chat_id}", chat_id=chat_id)
    if status in (400, 422):
        return BadRequest(detail or "Bad request", chat_id=chat_id)
    logger.warning("Connector returned %d: %s", status, detail)
    return UpstreamFailure(f"Connector returned {status}", chat_id=chat_id)

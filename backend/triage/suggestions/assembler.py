"""Reply-suggestion assembly.

Turns a conversation's recent messages into a time-annotated transcript,
wraps it in the reply prompt and makes a single model call. Stateless per
invocation; caching lives in :mod:`triage.suggestions.cache`.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Iterable

from triage.config import settings
from triage.connector.client import ConversationRepository
from triage.errors import SuggestionFailure, TriageError
from triage.models.conversations import Message
from triage.suggestions.model import ReplyGenerator
from triage.suggestions.prompts import build_reply_prompt, clean_reply

logger = logging.getLogger(__name__)

FALLBACK_SENDER = "Other"
SELF_SENDER = "You"
EMPTY_TEXT = "[no text]"


def time_bucket(timestamp: datetime, now: datetime) -> str:
    """Coarse "time ago" label, always floored.

    ``<1 min`` -> ``just now``, ``<1 h`` -> ``{m}m ago``,
    ``<24 h`` -> ``{h}h ago``, otherwise ``{d}d ago``.
    """
    seconds = int((_aware(now) - _aware(timestamp)).total_seconds())
    if seconds < 60:
        return "just now"
    if seconds < 3600:
        return f"{seconds // 60}m ago"
    if seconds < 86400:
        return f"{seconds // 3600}h ago"
    return f"{seconds // 86400}d ago"


def render_line(message: Message, now: datetime) -> str:
    if message.is_sender:
        sender = SELF_SENDER
    else:
        sender = message.sender_name or FALLBACK_SENDER
    return f"[{time_bucket(message.timestamp, now)}] {sender}: {message.text or EMPTY_TEXT}"


def render_transcript(messages: Iterable[Message], now: datetime) -> str:
    """Render messages (already oldest first) as one line each."""
    return "\n".join(render_line(m, now) for m in messages)


class SuggestionAssembler:
    """Builds and runs the reply-suggestion request for one conversation."""

    def __init__(
        self,
        repository: ConversationRepository,
        model: ReplyGenerator,
        *,
        window: int | None = None,
    ) -> None:
        self._repository = repository
        self._model = model
        self._window = window or settings.suggestion_window

    async def generate(self, chat_id: str, now: datetime | None = None) -> str:
        """Return a cleaned suggestion, raising ``SuggestionFailure`` on any error."""
        try:
            page = await self._repository.list_messages(chat_id, limit=self._window)
        except TriageError as exc:
            raise SuggestionFailure(
                f"Could not load messages: {exc}", chat_id=chat_id
            ) from exc

        # Upstream returns newest first
        messages = list(reversed(page.items))
        transcript = render_transcript(messages, now or datetime.now(timezone.utc))
        prompt = build_reply_prompt(transcript)

        try:
            raw = await self._model.generate_reply(prompt)
        except Exception as exc:
            raise SuggestionFailure(
                f"Reply generation failed: {exc}", chat_id=chat_id
            ) from exc

        suggestion = clean_reply(raw or "")
        logger.info(
            "Generated suggestion for chat %s from %d messages (%d chars)",
            chat_id,
            len(messages),
            len(suggestion),
        )
        return suggestion

    async def suggest(self, chat_id: str, now: datetime | None = None) -> str:
        """Like :meth:`generate` but degrades to an empty suggestion."""
        try:
            return await self.generate(chat_id, now)
        except SuggestionFailure as exc:
            logger.warning("No suggestion for chat %s: %s", chat_id, exc)
            return ""


def _aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value

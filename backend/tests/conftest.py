"""Shared test fixtures for the Inbox Triage backend."""

import asyncio
from collections.abc import AsyncGenerator
from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from triage.dependencies import get_inbox_session
from triage.errors import BadRequest
from triage.inbox.session import InboxSession
from triage.main import app
from triage.models.conversations import (
    ArchiveResult,
    Conversation,
    ConversationPage,
    Message,
    MessagePage,
    Participant,
    SendResult,
)

NOW = datetime(2026, 3, 14, 12, 0, tzinfo=timezone.utc)


def make_message(
    message_id: str,
    chat_id: str,
    text: str = "hi",
    *,
    minutes_ago: float = 0,
    is_sender: bool = False,
    sender_name: Optional[str] = "Sam",
) -> Message:
    return Message(
        id=message_id,
        chat_id=chat_id,
        text=text,
        timestamp=NOW - timedelta(minutes=minutes_ago),
        is_sender=is_sender,
        sender_name=sender_name,
    )


def make_conversation(
    chat_id: str,
    *,
    unread: int = 0,
    last_from_me: bool = False,
    no_messages: bool = False,
) -> Conversation:
    last = None
    if not no_messages:
        last = make_message(f"{chat_id}-last", chat_id, is_sender=last_from_me)
    return Conversation(
        id=chat_id,
        title=f"Chat {chat_id}",
        participants=[
            Participant(id="me", is_self=True),
            Participant(id=f"{chat_id}-other", is_self=False),
        ],
        last_message=last,
        last_activity=NOW,
        unread_count=unread,
    )


class FakeRepository:
    """In-memory stand-in for the Beeper connector."""

    def __init__(
        self,
        conversations: Optional[list[Conversation]] = None,
        messages: Optional[dict[str, list[Message]]] = None,
    ) -> None:
        self.conversations = list(conversations or [])
        # Newest first, like the upstream search endpoint
        self.messages = messages or {}
        self.calls: list[tuple] = []
        self.list_error: Optional[Exception] = None
        self.messages_error: Optional[Exception] = None
        self.send_error: Optional[Exception] = None
        self.archive_error: Optional[Exception] = None
        self.archive_success = True
        self.archive_gate: Optional[asyncio.Event] = None
        self.list_gate: Optional[asyncio.Event] = None
        self.initialized = False
        self.closed = False

    def calls_to(self, name: str) -> list[tuple]:
        return [call for call in self.calls if call[0] == name]

    async def initialize(self) -> None:
        self.initialized = True

    async def close(self) -> None:
        self.closed = True

    async def list_conversations(
        self, *, include_muted: bool = False, limit: int = 30
    ) -> ConversationPage:
        self.calls.append(("list_conversations", include_muted, limit))
        # Snapshot before waiting so a gated refresh returns pre-archive data
        items = [c.model_copy() for c in self.conversations[:limit]]
        if self.list_gate is not None:
            await self.list_gate.wait()
        if self.list_error is not None:
            raise self.list_error
        return ConversationPage(items=items, has_more=False)

    async def list_messages(self, chat_id: str, limit: int = 30) -> MessagePage:
        self.calls.append(("list_messages", chat_id, limit))
        if self.messages_error is not None:
            raise self.messages_error
        return MessagePage(items=list(self.messages.get(chat_id, []))[:limit])

    async def send_message(self, chat_id: str, text: str) -> SendResult:
        if not text or not text.strip():
            raise BadRequest("Message text is required", chat_id=chat_id)
        self.calls.append(("send_message", chat_id, text))
        if self.send_error is not None:
            raise self.send_error
        return SendResult(pending_message_id=f"pending-{len(self.calls)}")

    async def set_archived(self, chat_id: str, archived: bool = True) -> ArchiveResult:
        self.calls.append(("set_archived", chat_id, archived))
        if self.archive_gate is not None:
            await self.archive_gate.wait()
        if self.archive_error is not None:
            raise self.archive_error
        if archived and self.archive_success:
            self.conversations = [c for c in self.conversations if c.id != chat_id]
        return ArchiveResult(success=self.archive_success)


class FakeReplyModel:
    """Records prompts and returns a canned reply."""

    def __init__(self, reply: str = "Sounds good, see you then") -> None:
        self.reply = reply
        self.error: Optional[Exception] = None
        self.gate: Optional[asyncio.Event] = None
        self.prompts: list[str] = []

    async def generate_reply(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return self.reply


@pytest.fixture
def repository() -> FakeRepository:
    """Inbox of A (unread), B (responded), C (unread) with short threads."""
    return FakeRepository(
        conversations=[
            make_conversation("A", unread=2),
            make_conversation("B", last_from_me=True),
            make_conversation("C", unread=1),
        ],
        messages={
            "A": [
                make_message("a2", "A", "are we still on for friday?", minutes_ago=5),
                make_message("a1", "A", "hey", minutes_ago=120),
            ],
            "B": [make_message("b1", "B", "done", minutes_ago=60, is_sender=True)],
            "C": [make_message("c1", "C", "ping", minutes_ago=1)],
        },
    )


@pytest.fixture
def reply_model() -> FakeReplyModel:
    return FakeReplyModel()


@pytest.fixture
def session(repository: FakeRepository, reply_model: FakeReplyModel) -> InboxSession:
    return InboxSession(repository, reply_model)


@pytest_asyncio.fixture
async def client(session: InboxSession) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client for testing FastAPI endpoints against fakes."""
    app.dependency_overrides[get_inbox_session] = lambda: session
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()

"""Conversation and message models mirroring the Beeper Desktop API payloads."""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator


class ConversationFilter(str, Enum):
    """View predicate applied to the conversation list."""

    UNRESPONDED = "unresponded"
    ALL = "all"


class Direction(str, Enum):
    """Selection step direction."""

    PREV = "prev"
    NEXT = "next"


class Participant(BaseModel):
    """A member of a conversation."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str
    is_self: bool = Field(default=False, alias="isSelf")
    avatar_url: Optional[str] = Field(default=None, alias="imgURL")
    full_name: Optional[str] = Field(default=None, alias="fullName")


class Message(BaseModel):
    """A single received or sent message. Immutable once received."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    id: str
    chat_id: str = Field(alias="chatID")
    text: str = ""
    timestamp: datetime
    is_sender: bool = Field(default=False, alias="isSender")
    sender_name: Optional[str] = Field(default=None, alias="senderName")

    @field_validator("text", mode="before")
    @classmethod
    def _none_text(cls, value: Any) -> str:
        return value or ""


class Conversation(BaseModel):
    """A chat thread with its most recent message attached."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str
    title: str = ""
    participants: list[Participant] = Field(default_factory=list)
    last_message: Optional[Message] = Field(default=None, alias="lastMessage")
    last_activity: Optional[datetime] = Field(default=None, alias="lastActivity")
    unread_count: int = Field(default=0, ge=0, alias="unreadCount")
    archived: bool = Field(default=False, alias="isArchived")
    network: Optional[str] = None

    @field_validator("participants", mode="before")
    @classmethod
    def _unwrap_participants(cls, value: Any) -> Any:
        # Upstream wraps participants as {"items": [...], "hasMore": ..., "total": ...}
        if isinstance(value, dict):
            return value.get("items", [])
        return value or []

    @field_validator("title", mode="before")
    @classmethod
    def _none_title(cls, value: Any) -> str:
        return value or ""

    @computed_field  # type: ignore[prop-decorator]
    @property
    def is_unread(self) -> bool:
        return self.unread_count > 0

    @computed_field  # type: ignore[prop-decorator]
    @property
    def is_unresponded(self) -> bool:
        return self.last_message is None or not self.last_message.is_sender

    def matches(self, flt: ConversationFilter) -> bool:
        """Whether this conversation is visible under ``flt``."""
        if flt == ConversationFilter.UNRESPONDED:
            return self.is_unresponded or self.is_unread
        return True


class ConversationPage(BaseModel):
    """Result of ``list_conversations``."""

    items: list[Conversation]
    has_more: bool = False


class MessagePage(BaseModel):
    """Result of ``list_messages``; items are most recent first."""

    items: list[Message]
    has_more: bool = False


class SendResult(BaseModel):
    pending_message_id: str


class ArchiveResult(BaseModel):
    success: bool

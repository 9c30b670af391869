"""Render-ready state snapshots exposed by the controllers."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from triage.models.conversations import Conversation, ConversationFilter, Message
from triage.models.suggestions import SuggestionCacheEntry


class ViewPhase(str, Enum):
    """Message-loading phase of an open conversation."""

    IDLE = "idle"
    LOADING_MESSAGES = "loading_messages"
    READY = "ready"
    FAILED = "failed"


class InboxSnapshot(BaseModel):
    """State of the conversation list for rendering."""

    filter: ConversationFilter
    conversations: list[Conversation]
    total: int
    selected_id: Optional[str] = None
    pending_archive_ids: list[str] = Field(default_factory=list)
    is_loading: bool = False
    error: Optional[str] = None
    fatal: bool = False


class ConversationSnapshot(BaseModel):
    """State of the open conversation for rendering."""

    chat_id: str
    phase: ViewPhase
    messages: list[Message]
    draft: str = ""
    sending: bool = False
    archiving: bool = False
    input_focused: bool = False
    suggestion: SuggestionCacheEntry
    error: Optional[str] = None

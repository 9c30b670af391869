"""Suggestion cache models."""

from enum import Enum

from pydantic import BaseModel


class SuggestionStatus(str, Enum):
    """Lifecycle of a cached suggestion."""

    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"


class SuggestionCacheEntry(BaseModel):
    """One suggestion per conversation per session."""

    chat_id: str
    status: SuggestionStatus = SuggestionStatus.IDLE
    text: str = ""

    @property
    def is_loaded(self) -> bool:
        return self.status in (SuggestionStatus.READY, SuggestionStatus.FAILED)

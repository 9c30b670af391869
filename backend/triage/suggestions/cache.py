"""Session-scoped suggestion cache.

One entry per conversation for the lifetime of the process. Loads are
deduplicated by chat id: however many callers ask while a load is running,
the loader runs once and every caller gets the same result.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

from triage.models.suggestions import SuggestionCacheEntry, SuggestionStatus
from triage.utils.observable import Observable

logger = logging.getLogger(__name__)

Loader = Callable[[], Awaitable[str]]


class SuggestionCache(Observable):
    """Maps chat id to ``SuggestionCacheEntry``; subscribers get the chat id on change."""

    def __init__(self) -> None:
        super().__init__()
        self._entries: dict[str, SuggestionCacheEntry] = {}
        self._inflight: dict[str, asyncio.Task[SuggestionCacheEntry]] = {}
        self._discard_on_finish: set[str] = set()

    def get(self, chat_id: str) -> SuggestionCacheEntry:
        """Current entry, or an ``idle`` placeholder if never requested."""
        entry = self._entries.get(chat_id)
        if entry is None:
            return SuggestionCacheEntry(chat_id=chat_id)
        return entry.model_copy()

    def start(self, chat_id: str, loader: Loader) -> SuggestionCacheEntry:
        """Kick off a load if needed without waiting for it."""
        self._ensure_task(chat_id, loader)
        return self.get(chat_id)

    async def get_or_load(self, chat_id: str, loader: Loader) -> SuggestionCacheEntry:
        """Return the loaded entry, invoking ``loader`` at most once per chat id."""
        task = self._ensure_task(chat_id, loader)
        if task is None:
            return self.get(chat_id)
        # Shielded so one cancelled waiter does not cancel the shared load
        return (await asyncio.shield(task)).model_copy()

    def clear_text(self, chat_id: str) -> None:
        """Drop the suggestion text after a successful send; no refetch follows."""
        if chat_id in self._inflight:
            self._discard_on_finish.add(chat_id)
            return
        entry = self._entries.get(chat_id)
        if entry is not None and entry.text:
            self._store(chat_id, entry.status, "")

    def is_loading(self, chat_id: str) -> bool:
        return chat_id in self._inflight

    def _ensure_task(
        self, chat_id: str, loader: Loader
    ) -> asyncio.Task[SuggestionCacheEntry] | None:
        entry = self._entries.get(chat_id)
        if entry is not None and entry.is_loaded:
            return None
        task = self._inflight.get(chat_id)
        if task is None:
            self._store(chat_id, SuggestionStatus.LOADING, "")
            task = asyncio.create_task(self._run(chat_id, loader))
            self._inflight[chat_id] = task
        return task

    async def _run(self, chat_id: str, loader: Loader) -> SuggestionCacheEntry:
        try:
            text = await loader()
        except asyncio.CancelledError:
            self._inflight.pop(chat_id, None)
            self._store(chat_id, SuggestionStatus.IDLE, "")
            raise
        except Exception as exc:
            logger.warning("Suggestion load failed for chat %s: %s", chat_id, exc)
            status, text = SuggestionStatus.FAILED, ""
        else:
            status = SuggestionStatus.READY

        self._inflight.pop(chat_id, None)
        if chat_id in self._discard_on_finish:
            self._discard_on_finish.discard(chat_id)
            text = ""
        return self._store(chat_id, status, text or "")

    def _store(
        self, chat_id: str, status: SuggestionStatus, text: str
    ) -> SuggestionCacheEntry:
        entry = SuggestionCacheEntry(chat_id=chat_id, status=status, text=text)
        self._entries[chat_id] = entry
        self._notify(chat_id)
        return entry

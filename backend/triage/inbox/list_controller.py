"""Conversation list controller.

Owns the backing collection returned by the connector, the active filter,
the selection (always by id) and optimistic archiving.

Archive/refresh reconciliation:
    ``archive(id)`` removes the row immediately and marks the id pending until
    the mutation settles. Every ``refresh()`` records a generation number when
    it starts; ids that are pending, or whose archive was issued or settled
    after that refresh started, are dropped from its result. A refresh
    fetched before the archive therefore cannot resurrect the row, even if it
    lands after the mutation has succeeded. Once both have settled the upstream list is
    authoritative again.
"""

from __future__ import annotations

import logging
from typing import Optional

from triage.config import settings
from triage.connector.client import ConversationRepository
from triage.errors import (
    BadRequest,
    NotFound,
    TriageError,
    Unauthorized,
    UpstreamFailure,
)
from triage.models.conversations import (
    ArchiveResult,
    Conversation,
    ConversationFilter,
    Direction,
)
from triage.models.snapshots import InboxSnapshot
from triage.utils.observable import Observable

logger = logging.getLogger(__name__)


class ConversationListController(Observable):
    """Filtered, keyboard-navigable view over the inbox."""

    def __init__(
        self,
        repository: ConversationRepository,
        *,
        include_muted: bool | None = None,
        limit: int | None = None,
        initial_filter: ConversationFilter = ConversationFilter.UNRESPONDED,
    ) -> None:
        super().__init__()
        self._repository = repository
        self._include_muted = (
            settings.include_muted if include_muted is None else include_muted
        )
        self._limit = limit or settings.conversation_limit

        self._conversations: list[Conversation] = []
        self._filter = initial_filter
        self._selected_id: Optional[str] = None
        self._has_more = False
        self._refreshes_in_flight = 0
        self._error: Optional[str] = None
        self._fatal = False

        self._pending: set[str] = set()
        self._archived_at: dict[str, int] = {}
        self._generation = 0
        self._applied_generation = 0

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    @property
    def filter(self) -> ConversationFilter:
        return self._filter

    @property
    def selected_id(self) -> Optional[str]:
        return self._selected_id

    @property
    def fatal(self) -> bool:
        return self._fatal

    def conversations(self) -> list[Conversation]:
        """Backing collection in upstream order."""
        return list(self._conversations)

    def visible(self) -> list[Conversation]:
        """Filtered view; an order-preserving subsequence of the backing list."""
        return [c for c in self._conversations if c.matches(self._filter)]

    def visible_ids(self) -> list[str]:
        return [c.id for c in self.visible()]

    def get(self, chat_id: str) -> Optional[Conversation]:
        return next((c for c in self._conversations if c.id == chat_id), None)

    def selected(self) -> Optional[Conversation]:
        if self._selected_id is None:
            return None
        return self.get(self._selected_id)

    def snapshot(self) -> InboxSnapshot:
        return InboxSnapshot(
            filter=self._filter,
            conversations=self.visible(),
            total=len(self._conversations),
            selected_id=self._selected_id,
            pending_archive_ids=sorted(self._pending),
            is_loading=self._refreshes_in_flight > 0,
            error=self._error,
            fatal=self._fatal,
        )

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def set_filter(self, flt: ConversationFilter) -> None:
        """Switch the view predicate. Never refetches."""
        flt = ConversationFilter(flt)
        if flt == self._filter:
            return
        self._filter = flt
        self._repair_selection()
        logger.debug("Filter set to %s", flt.value)
        self._notify()

    def select(self, chat_id: Optional[str]) -> bool:
        """Select ``chat_id`` if it is visible. Returns whether it changed."""
        if chat_id is None:
            changed = self._selected_id is not None
            self._selected_id = None
        elif chat_id in self.visible_ids():
            changed = chat_id != self._selected_id
            self._selected_id = chat_id
        else:
            return False
        if changed:
            self._notify()
        return changed

    def move_selection(self, direction: Direction) -> Optional[str]:
        """Step through the filtered view with wrap-around.

        With nothing selected the first element is the starting point, so
        ``next`` lands on the second element and ``prev`` on the last.
        """
        ids = self.visible_ids()
        if not ids:
            return None

        try:
            index = ids.index(self._selected_id) if self._selected_id else 0
        except ValueError:
            index = 0

        step = 1 if Direction(direction) == Direction.NEXT else -1
        self._selected_id = ids[(index + step) % len(ids)]
        self._notify()
        return self._selected_id

    async def refresh(self) -> list[Conversation]:
        """Replace the backing collection with the connector's current list."""
        self._generation += 1
        generation = self._generation
        self._refreshes_in_flight += 1
        self._notify()

        try:
            page = await self._repository.list_conversations(
                include_muted=self._include_muted, limit=self._limit
            )
        except Unauthorized as exc:
            logger.error("Conversation refresh unauthorized: %s", exc)
            self._error, self._fatal = exc.message, True
            self._finish_loading()
            raise
        except TriageError as exc:
            logger.warning("Conversation refresh failed: %s", exc)
            self._error = exc.message
            self._finish_loading()
            raise

        if generation < self._applied_generation:
            logger.debug("Dropping stale refresh %d", generation)
            self._finish_loading()
            return self.visible()

        suppressed = set(self._pending) | {
            chat_id
            for chat_id, issued in self._archived_at.items()
            if issued >= generation
        }
        self._conversations = [c for c in page.items if c.id not in suppressed]
        self._has_more = page.has_more
        self._applied_generation = generation
        self._error, self._fatal = None, False
        self._archived_at = {
            chat_id: issued
            for chat_id, issued in self._archived_at.items()
            if issued >= generation or chat_id in self._pending
        }
        self._repair_selection()

        logger.debug(
            "Refreshed %d conversations (%d suppressed)",
            len(self._conversations),
            len(suppressed),
        )
        self._finish_loading()
        return self.visible()

    async def archive(self, chat_id: str) -> ArchiveResult:
        """Optimistically remove ``chat_id`` and archive it upstream.

        A failed mutation is not rolled back; the next ``refresh()`` reconciles
        with the connector. Archiving an id that is already in flight is a
        no-op that reports success. Ids outside the backing collection raise
        ``NotFound`` before anything changes.
        """
        if not chat_id:
            raise BadRequest("Chat ID is required")
        if chat_id in self._pending:
            return ArchiveResult(success=True)
        if self.get(chat_id) is None:
            raise NotFound(f"Chat not found: {chat_id}", chat_id=chat_id)

        before = self.visible_ids()
        self._conversations = [c for c in self._conversations if c.id != chat_id]
        if self._selected_id == chat_id:
            self._selected_id = self._neighbour(before, chat_id)
        self._pending.add(chat_id)
        self._archived_at[chat_id] = self._generation
        self._notify()

        try:
            result = await self._repository.set_archived(chat_id, True)
        except TriageError as exc:
            logger.error("Error archiving conversation %s: %s", chat_id, exc)
            self._error = f"Failed to archive conversation: {exc.message}"
            raise
        finally:
            self._pending.discard(chat_id)
            # Refreshes started before settlement may still carry the row
            self._archived_at[chat_id] = self._generation
            self._notify()

        if not result.success:
            self._error = "Failed to archive conversation"
            self._notify()
            raise UpstreamFailure("Archive was not confirmed", chat_id=chat_id)

        logger.info("Archived conversation %s", chat_id)
        return result

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _neighbour(self, before: list[str], removed: str) -> Optional[str]:
        after = self.visible_ids()
        if removed in before:
            index = before.index(removed)
            if index > 0:
                return before[index - 1]
        return after[0] if after else None

    def _repair_selection(self) -> None:
        if self._selected_id is not None and self._selected_id not in self.visible_ids():
            self._selected_id = None

    def _finish_loading(self) -> None:
        self._refreshes_in_flight -= 1
        self._notify()

"""Inbox session: wires the controllers together for one running process.

Owns the connector client, the list controller, the suggestion cache, the
keyboard dispatcher and at most one open conversation view. A periodic
APScheduler job refreshes the list in the background.
"""

from __future__ import annotations

import logging
from contextlib import ExitStack
from typing import Callable, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from triage.config import settings
from triage.connector.client import ConnectorClient, ConversationRepository
from triage.errors import BadRequest, TriageError, Unauthorized
from triage.inbox.keyboard import KeyboardDispatcher, Keymap
from triage.inbox.list_controller import ConversationListController
from triage.inbox.view_controller import ConversationViewController
from triage.models.conversations import Direction
from triage.suggestions.assembler import SuggestionAssembler
from triage.suggestions.cache import SuggestionCache
from triage.suggestions.model import ReplyGenerator, ReplyModel
from triage.utils.observable import Observable

logger = logging.getLogger(__name__)

REFRESH_JOB_ID = "inbox_refresh"


class InboxSession(Observable):
    """Subscribers are called with ``"inbox"`` or ``"conversation"`` on change.

    Lifecycle:
        session = InboxSession()
        await session.start()      # connect, first refresh, start polling
        ...
        await session.shutdown()
    """

    def __init__(
        self,
        repository: ConversationRepository | None = None,
        model: ReplyGenerator | None = None,
        *,
        refresh_interval_seconds: int | None = None,
    ) -> None:
        super().__init__()
        self.repository = repository or ConnectorClient()
        self.cache = SuggestionCache()
        self.assembler = SuggestionAssembler(self.repository, model or ReplyModel())
        self.keyboard = KeyboardDispatcher()
        self.inbox = ConversationListController(self.repository)
        self.view: Optional[ConversationViewController] = None

        self._refresh_interval = (
            refresh_interval_seconds or settings.refresh_interval_seconds
        )
        self._scheduler: AsyncIOScheduler | None = None
        self._scope = ExitStack()
        self._view_unsubscribe: Optional[Callable[[], None]] = None
        self._started = False

        self._scope.callback(self.inbox.subscribe(lambda: self._notify("inbox")))
        self._scope.enter_context(self.keyboard.bind(self.list_keymap()))

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Connect, load the inbox once and start the refresh timer."""
        if self._started:
            logger.warning("InboxSession already started - skipping")
            return

        await self.repository.initialize()
        await self._refresh_quietly()

        self._scheduler = AsyncIOScheduler()
        if self.inbox.fatal:
            logger.error("Connector rejected the session; background refresh disabled")
        else:
            self._scheduler.add_job(
                self._refresh_quietly,
                trigger=IntervalTrigger(seconds=self._refresh_interval),
                id=REFRESH_JOB_ID,
                name="Inbox refresh",
                max_instances=1,
                coalesce=True,
                replace_existing=True,
            )
        self._scheduler.start()
        self._started = True
        logger.info(
            "InboxSession started (refresh every %ds)", self._refresh_interval
        )

    async def shutdown(self) -> None:
        """Stop polling, close the open view and release the HTTP client."""
        if self._scheduler is not None:
            self._scheduler.shutdown(wait=False)
            self._scheduler = None
        self.close_view()
        self._scope.close()
        await self.repository.close()
        self._started = False
        logger.info("InboxSession shut down")

    # ------------------------------------------------------------------
    # Conversation view
    # ------------------------------------------------------------------

    async def open(self, chat_id: str) -> ConversationViewController:
        """Open ``chat_id``, replacing any currently open conversation."""
        if not chat_id:
            raise BadRequest("Chat ID is required")

        self.close_view()
        self.inbox.select(chat_id)

        view = ConversationViewController(
            chat_id,
            repository=self.repository,
            cache=self.cache,
            assembler=self.assembler,
            inbox=self.inbox,
            on_exit=self.close_view,
        )
        view.activate(self.keyboard)
        self._view_unsubscribe = view.subscribe(lambda: self._notify("conversation"))
        self.view = view
        logger.info("Opened conversation %s", chat_id)
        self._notify("conversation")

        await view.load()
        return view

    def close_view(self) -> None:
        """Return to the list. The previous view's suggestion keeps loading."""
        view, self.view = self.view, None
        if view is None:
            return
        if self._view_unsubscribe is not None:
            self._view_unsubscribe()
            self._view_unsubscribe = None
        view.close()
        self._notify("conversation")

    # ------------------------------------------------------------------
    # List shortcuts
    # ------------------------------------------------------------------

    def list_keymap(self) -> Keymap:
        return Keymap(
            name="inbox",
            bindings={
                "up": self._select_prev,
                "k": self._select_prev,
                "down": self._select_next,
                "j": self._select_next,
                "right": self._open_selected,
                "l": self._open_selected,
                "enter": self._open_selected,
                "e": self._archive_selected,
                "a": self._archive_selected,
            },
        )

    def _select_prev(self) -> None:
        self.inbox.move_selection(Direction.PREV)

    def _select_next(self) -> None:
        self.inbox.move_selection(Direction.NEXT)

    async def _open_selected(self) -> None:
        if self.inbox.selected_id is not None:
            await self.open(self.inbox.selected_id)

    async def _archive_selected(self) -> None:
        if self.inbox.selected_id is not None:
            await self.inbox.archive(self.inbox.selected_id)

    # ------------------------------------------------------------------
    # Refresh
    # ------------------------------------------------------------------

    async def _refresh_quietly(self) -> None:
        """Timer entry point; failures are logged and wait for the next tick."""
        try:
            await self.inbox.refresh()
        except Unauthorized as exc:
            logger.error("Inbox refresh unauthorized, stopping polling: %s", exc)
            if self._scheduler is not None and self._scheduler.get_job(REFRESH_JOB_ID):
                self._scheduler.remove_job(REFRESH_JOB_ID)
        except TriageError as exc:
            logger.warning("Background inbox refresh failed: %s", exc)

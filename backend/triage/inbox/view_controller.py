"""Controller for one open conversation.

Loads the thread, drives the suggestion through the session cache and owns
the reply draft. Keyboard shortcuts are exposed as a :class:`Keymap` that is
bound while the view is open.
"""

from __future__ import annotations

import logging
from contextlib import ExitStack
from typing import Callable, Optional

from triage.config import settings
from triage.connector.client import ConversationRepository
from triage.errors import TriageError, Unauthorized
from triage.inbox.keyboard import KeyboardDispatcher, Keymap
from triage.inbox.list_controller import ConversationListController
from triage.models.conversations import Message
from triage.models.snapshots import ConversationSnapshot, ViewPhase
from triage.models.suggestions import SuggestionCacheEntry
from triage.suggestions.assembler import SuggestionAssembler
from triage.suggestions.cache import SuggestionCache
from triage.utils.observable import Observable

logger = logging.getLogger(__name__)


class ConversationViewController(Observable):
    """State machine ``idle -> loading_messages -> ready`` for one chat.

    ``sending`` and the suggestion status are orthogonal to the phase. Leaving
    the view (send, archive, back) is signalled through ``on_exit``.
    """

    def __init__(
        self,
        chat_id: str,
        *,
        repository: ConversationRepository,
        cache: SuggestionCache,
        assembler: SuggestionAssembler,
        inbox: ConversationListController,
        message_window: int | None = None,
        on_exit: Optional[Callable[[], None]] = None,
    ) -> None:
        super().__init__()
        self.chat_id = chat_id
        self._repository = repository
        self._cache = cache
        self._assembler = assembler
        self._inbox = inbox
        self._window = message_window or settings.message_window
        self._on_exit = on_exit

        self._phase = ViewPhase.IDLE
        self._messages: list[Message] = []
        self._draft = ""
        self._sending = False
        self._archiving = False
        self._input_focused = False
        self._error: Optional[str] = None
        self._closed = False
        self.exit_requested = False

        self._scope = ExitStack()
        self._scope.callback(self._cache.subscribe(self._on_suggestion_change))

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    @property
    def phase(self) -> ViewPhase:
        return self._phase

    @property
    def draft(self) -> str:
        return self._draft

    @property
    def sending(self) -> bool:
        return self._sending

    @property
    def input_focused(self) -> bool:
        return self._input_focused

    @property
    def closed(self) -> bool:
        return self._closed

    def suggestion(self) -> SuggestionCacheEntry:
        return self._cache.get(self.chat_id)

    def snapshot(self) -> ConversationSnapshot:
        return ConversationSnapshot(
            chat_id=self.chat_id,
            phase=self._phase,
            messages=list(self._messages),
            draft=self._draft,
            sending=self._sending,
            archiving=self._archiving,
            input_focused=self._input_focused,
            suggestion=self.suggestion(),
            error=self._error,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def activate(self, keyboard: KeyboardDispatcher) -> None:
        """Bind this view's shortcuts until :meth:`close`."""
        self._scope.enter_context(keyboard.bind(self.keymap()))

    def close(self) -> None:
        """Stop rendering; an in-flight suggestion still lands in the cache."""
        if self._closed:
            return
        self._closed = True
        self._scope.close()
        logger.debug("Closed conversation view %s", self.chat_id)

    async def load(self) -> None:
        """Load the thread, then request the suggestion if there is history."""
        self._phase = ViewPhase.LOADING_MESSAGES
        self._error = None
        self._notify()

        try:
            page = await self._repository.list_messages(self.chat_id, limit=self._window)
        except Unauthorized:
            self._phase = ViewPhase.FAILED
            self._error = "Unauthorized"
            self._notify()
            raise
        except TriageError as exc:
            logger.warning("Failed to load conversation %s: %s", self.chat_id, exc)
            self._phase = ViewPhase.FAILED
            self._error = exc.message
            self._notify()
            return

        self._messages = sorted(page.items, key=lambda m: m.timestamp)
        self._phase = ViewPhase.READY
        self._notify()

        if self._messages:
            self._cache.start(self.chat_id, self._load_suggestion)

    async def wait_for_suggestion(self) -> SuggestionCacheEntry:
        """Await the cached suggestion (loading it once if needed)."""
        return await self._cache.get_or_load(self.chat_id, self._load_suggestion)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def focus_input(self) -> None:
        self._set_focus(True)

    def blur_input(self) -> None:
        self._set_focus(False)

    def set_draft(self, text: str) -> None:
        self._draft = text
        self._notify()

    def accept_suggestion(self) -> bool:
        """Copy the cached suggestion into the draft and focus the input."""
        text = self.suggestion().text
        if not text:
            return False
        self._draft = text
        self._input_focused = True
        self._notify()
        return True

    async def send(self) -> bool:
        """Send the draft. No-op if it is blank or a send is in flight.

        On success the draft and the cached suggestion are cleared together
        and the view asks to return to the list. On failure both are kept and
        the error is raised.
        """
        if self._sending or not self._draft.strip():
            return False

        self._sending = True
        self._error = None
        self._notify()
        try:
            await self._repository.send_message(self.chat_id, self._draft)
        except TriageError as exc:
            logger.error("Error sending message to %s: %s", self.chat_id, exc)
            self._error = f"Failed to send message: {exc.message}"
            raise
        finally:
            self._sending = False
            self._notify()

        self._draft = ""
        self._cache.clear_text(self.chat_id)
        self._notify()
        self._request_exit()
        return True

    async def archive(self) -> bool:
        """Archive this chat through the list controller, then leave the view."""
        if self._archiving:
            return False

        self._archiving = True
        self._notify()
        try:
            await self._inbox.archive(self.chat_id)
        except TriageError as exc:
            self._error = f"Failed to archive conversation: {exc.message}"
            raise
        finally:
            self._archiving = False
            self._notify()

        self._request_exit()
        return True

    def back(self) -> None:
        self._request_exit()

    def keymap(self) -> Keymap:
        return Keymap(
            name=f"conversation:{self.chat_id}",
            bindings={
                "f": self.focus_input,
                "g": self.accept_suggestion,
                "h": self.back,
                "left": self.back,
                "e": self.archive,
            },
            on_unfocus=self.blur_input,
            on_submit=self.send,
            is_focused=lambda: self._input_focused,
            alt_passthrough=frozenset({"left"}),
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _load_suggestion(self) -> str:
        return await self._assembler.generate(self.chat_id)

    def _on_suggestion_change(self, chat_id: str) -> None:
        if chat_id == self.chat_id and not self._closed:
            self._notify()

    def _set_focus(self, focused: bool) -> None:
        if self._input_focused != focused:
            self._input_focused = focused
            self._notify()

    def _request_exit(self) -> None:
        self.exit_requested = True
        if self._on_exit is not None:
            self._on_exit()

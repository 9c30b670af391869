"""Explicit keyboard command dispatch.

A controller describes its shortcuts as a :class:`Keymap` and binds it for
as long as it is on screen. Only the most recently bound keymap receives
keys; leaving the ``bind`` scope always unregisters it.
"""

from __future__ import annotations

import inspect
import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Iterator, Optional, Union

logger = logging.getLogger(__name__)

Handler = Callable[[], Union[Awaitable[Any], Any]]

# Browser ``KeyboardEvent.key`` names to the short names used in keymaps
KEY_ALIASES = {
    "arrowup": "up",
    "arrowdown": "down",
    "arrowleft": "left",
    "arrowright": "right",
    "esc": "escape",
    "return": "enter",
}


def normalize_key(key: str) -> str:
    if len(key) == 1:
        return key.lower()
    lowered = key.lower()
    return KEY_ALIASES.get(lowered, lowered)


@dataclass
class Keymap:
    """Shortcuts for one controller."""

    name: str
    bindings: dict[str, Handler]
    on_unfocus: Optional[Handler] = None
    # Runs on enter (without shift) while the input has focus
    on_submit: Optional[Handler] = None
    # Focus state owned by the controller, merged with the client flag
    is_focused: Optional[Callable[[], bool]] = None
    # Keys ignored while alt is held (alt+left is word navigation)
    alt_passthrough: frozenset[str] = field(default_factory=frozenset)


class KeyboardDispatcher:
    """Routes key presses to the active keymap."""

    def __init__(self) -> None:
        self._stack: list[Keymap] = []

    @property
    def active(self) -> Keymap | None:
        return self._stack[-1] if self._stack else None

    @contextmanager
    def bind(self, keymap: Keymap) -> Iterator[Keymap]:
        """Make ``keymap`` active for the duration of the block."""
        self._stack.append(keymap)
        logger.debug("Keymap bound: %s", keymap.name)
        try:
            yield keymap
        finally:
            self._stack.remove(keymap)
            logger.debug("Keymap unbound: %s", keymap.name)

    async def dispatch(
        self,
        key: str,
        *,
        input_focused: bool = False,
        ctrl: bool = False,
        meta: bool = False,
        alt: bool = False,
        shift: bool = False,
    ) -> bool:
        """Run the command bound to ``key``. Returns whether one ran.

        While a text input has focus only ``escape`` (unfocus) and a plain
        ``enter`` (submit) are handled, so typing never triggers shortcuts.
        Focus is taken from the caller or from the keymap, whichever says
        so. Ctrl/meta chords are left to the host.
        """
        keymap = self.active
        if keymap is None:
            return False

        name = normalize_key(key)
        if input_focused or (keymap.is_focused is not None and keymap.is_focused()):
            if name == "escape" and keymap.on_unfocus is not None:
                await _invoke(keymap.on_unfocus)
                return True
            chord = shift or ctrl or meta or alt
            if name == "enter" and not chord and keymap.on_submit is not None:
                await _invoke(keymap.on_submit)
                return True
            return False

        if ctrl or meta:
            return False
        if alt and name in keymap.alt_passthrough:
            return False

        handler = keymap.bindings.get(name)
        if handler is None:
            return False

        logger.debug("Key %s -> %s", name, keymap.name)
        await _invoke(handler)
        return True


async def _invoke(handler: Handler) -> None:
    result = handler()
    if inspect.isawaitable(result):
        await result

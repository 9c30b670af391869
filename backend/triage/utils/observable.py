"""Minimal subscribe/notify helper for the state-holder controllers."""

import logging
from typing import Any, Callable

logger = logging.getLogger(__name__)

Unsubscribe = Callable[[], None]


class Observable:
    """Keeps a list of synchronous change callbacks."""

    def __init__(self) -> None:
        self._subscribers: list[Callable[..., None]] = []

    def subscribe(self, callback: Callable[..., None]) -> Unsubscribe:
        """Register ``callback``; returns a function that removes it again."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            try:
                self._subscribers.remove(callback)
            except ValueError:
                pass

        return unsubscribe

    def _notify(self, *args: Any) -> None:
        for callback in list(self._subscribers):
            try:
                callback(*args)
            except Exception:
                logger.exception("State subscriber %r failed", callback)

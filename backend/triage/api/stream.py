"""WebSocket endpoint pushing state snapshots to the client."""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any

from fastapi import Depends, WebSocket, WebSocketDisconnect

from triage.dependencies import get_inbox_session
from triage.inbox.session import InboxSession

logger = logging.getLogger(__name__)


async def websocket_inbox(
    websocket: WebSocket,
    session: InboxSession = Depends(get_inbox_session),
) -> None:
    """Stream inbox and conversation snapshots on every state change.

    Protocol:
        Server sends JSON: {"type": "inbox"|"conversation", "data": {...} | null,
                            "timestamp": "..."}
        The current state of both is sent once on connect. Client frames are
        read only to notice the disconnect.
    """
    await websocket.accept()
    logger.info("Inbox stream connected")

    dirty: set[str] = {"inbox", "conversation"}
    changed = asyncio.Event()
    changed.set()

    def on_change(kind: str) -> None:
        dirty.add(kind)
        changed.set()

    async def push() -> None:
        while True:
            await changed.wait()
            changed.clear()
            kinds = sorted(dirty)
            dirty.clear()
            for kind in kinds:
                await _send_snapshot(websocket, session, kind)

    async def drain() -> None:
        while True:
            message = await websocket.receive()
            if message.get("type") == "websocket.disconnect":
                return

    unsubscribe = session.subscribe(on_change)
    tasks = [asyncio.create_task(push()), asyncio.create_task(drain())]
    try:
        done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        for task in done:
            exc = task.exception()
            if exc is not None and not isinstance(exc, WebSocketDisconnect):
                logger.error("Inbox stream error: %s", exc)
    finally:
        for task in tasks:
            task.cancel()
        unsubscribe()
        logger.info("Inbox stream disconnected")


def _snapshot(session: InboxSession, kind: str) -> dict[str, Any] | None:
    if kind == "inbox":
        return session.inbox.snapshot().model_dump(mode="json", by_alias=True)
    if session.view is None:
        return None
    return session.view.snapshot().model_dump(mode="json", by_alias=True)


async def _send_snapshot(websocket: WebSocket, session: InboxSession, kind: str) -> None:
    await websocket.send_json(
        {
            "type": kind,
            "data": _snapshot(session, kind),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
    )

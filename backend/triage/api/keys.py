"""Keyboard shortcut endpoint.

The client forwards raw key presses; the session routes them to whichever
keymap is active (the list, or the open conversation).
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends

from triage.dependencies import get_inbox_session
from triage.inbox.session import InboxSession
from triage.models.requests import KeyRequest

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("")
async def press_key(
    body: KeyRequest,
    session: InboxSession = Depends(get_inbox_session),
) -> dict[str, Any]:
    """Dispatch a key press and return the resulting state."""
    keymap = session.keyboard.active
    handled = await session.keyboard.dispatch(
        body.key,
        input_focused=body.input_focused,
        ctrl=body.ctrl,
        meta=body.meta,
        alt=body.alt,
        shift=body.shift,
    )
    view = session.view
    conversation = view.snapshot().model_dump(mode="json", by_alias=True) if view else None
    return {
        "handled": handled,
        "keymap": keymap.name if keymap else None,
        "inbox": session.inbox.snapshot().model_dump(mode="json", by_alias=True),
        "conversation": conversation,
    }

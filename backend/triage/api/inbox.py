"""Conversation list endpoints."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends

from triage.dependencies import get_inbox_session
from triage.inbox.session import InboxSession
from triage.models.requests import FilterRequest, MoveRequest, SelectRequest
from triage.models.snapshots import InboxSnapshot

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("", response_model=InboxSnapshot)
async def get_inbox(
    session: InboxSession = Depends(get_inbox_session),
) -> InboxSnapshot:
    """Return the filtered conversation list and the current selection."""
    return session.inbox.snapshot()


@router.post("/refresh", response_model=InboxSnapshot)
async def refresh_inbox(
    session: InboxSession = Depends(get_inbox_session),
) -> InboxSnapshot:
    """Refetch conversations now instead of waiting for the next poll."""
    await session.inbox.refresh()
    return session.inbox.snapshot()


@router.put("/filter", response_model=InboxSnapshot)
async def set_filter(
    body: FilterRequest,
    session: InboxSession = Depends(get_inbox_session),
) -> InboxSnapshot:
    session.inbox.set_filter(body.filter)
    return session.inbox.snapshot()


@router.post("/select", response_model=InboxSnapshot)
async def select_conversation(
    body: SelectRequest,
    session: InboxSession = Depends(get_inbox_session),
) -> InboxSnapshot:
    """Select a visible conversation; unknown or hidden ids are ignored."""
    session.inbox.select(body.chat_id)
    return session.inbox.snapshot()


@router.post("/move", response_model=InboxSnapshot)
async def move_selection(
    body: MoveRequest,
    session: InboxSession = Depends(get_inbox_session),
) -> InboxSnapshot:
    session.inbox.move_selection(body.direction)
    return session.inbox.snapshot()


@router.post("/{chat_id}/archive")
async def archive_conversation(
    chat_id: str,
    session: InboxSession = Depends(get_inbox_session),
) -> dict[str, Any]:
    """Archive a conversation. The row is removed before upstream confirms."""
    result = await session.inbox.archive(chat_id)
    return {
        "success": result.success,
        "chat_id": chat_id,
        "archived": True,
        "inbox": session.inbox.snapshot().model_dump(mode="json", by_alias=True),
    }

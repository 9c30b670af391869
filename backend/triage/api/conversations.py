"""Open-conversation endpoints: thread, draft, suggestion, send and archive."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException

from triage.dependencies import get_inbox_session
from triage.inbox.session import InboxSession
from triage.inbox.view_controller import ConversationViewController
from triage.models.requests import DraftRequest
from triage.models.snapshots import ConversationSnapshot
from triage.models.suggestions import SuggestionCacheEntry

logger = logging.getLogger(__name__)
router = APIRouter()


def _current_view(session: InboxSession) -> ConversationViewController:
    if session.view is None:
        raise HTTPException(status_code=404, detail="No conversation is open")
    return session.view


def _view_response(
    session: InboxSession, view: ConversationViewController
) -> dict[str, Any]:
    """Final state of ``view`` plus whether it is still the open one."""
    return {
        "open": session.view is view,
        "conversation": view.snapshot().model_dump(mode="json", by_alias=True),
    }


@router.post("/{chat_id}/open", response_model=ConversationSnapshot)
async def open_conversation(
    chat_id: str,
    session: InboxSession = Depends(get_inbox_session),
) -> ConversationSnapshot:
    """Open a conversation and start loading its suggestion."""
    view = await session.open(chat_id)
    return view.snapshot()


@router.get("/{chat_id}/suggestion", response_model=SuggestionCacheEntry)
async def get_suggestion(
    chat_id: str,
    session: InboxSession = Depends(get_inbox_session),
) -> SuggestionCacheEntry:
    """Return the session's suggestion for ``chat_id``, loading it once if needed.

    Failures come back as ``status="failed"`` with empty text, never as an
    error response.
    """
    return await session.cache.get_or_load(
        chat_id, lambda: session.assembler.generate(chat_id)
    )


@router.get("/current", response_model=ConversationSnapshot)
async def get_current(
    session: InboxSession = Depends(get_inbox_session),
) -> ConversationSnapshot:
    return _current_view(session).snapshot()


@router.put("/current/draft", response_model=ConversationSnapshot)
async def set_draft(
    body: DraftRequest,
    session: InboxSession = Depends(get_inbox_session),
) -> ConversationSnapshot:
    view = _current_view(session)
    view.set_draft(body.text)
    return view.snapshot()


@router.post("/current/focus", response_model=ConversationSnapshot)
async def focus_input(
    session: InboxSession = Depends(get_inbox_session),
) -> ConversationSnapshot:
    view = _current_view(session)
    view.focus_input()
    return view.snapshot()


@router.post("/current/blur", response_model=ConversationSnapshot)
async def blur_input(
    session: InboxSession = Depends(get_inbox_session),
) -> ConversationSnapshot:
    view = _current_view(session)
    view.blur_input()
    return view.snapshot()


@router.post("/current/accept-suggestion", response_model=ConversationSnapshot)
async def accept_suggestion(
    session: InboxSession = Depends(get_inbox_session),
) -> ConversationSnapshot:
    view = _current_view(session)
    view.accept_suggestion()
    return view.snapshot()


@router.post("/current/send")
async def send_message(
    session: InboxSession = Depends(get_inbox_session),
) -> dict[str, Any]:
    """Send the draft; on success the view closes and the list is shown."""
    view = _current_view(session)
    sent = await view.send()
    return {"sent": sent, **_view_response(session, view)}


@router.post("/current/archive")
async def archive_current(
    session: InboxSession = Depends(get_inbox_session),
) -> dict[str, Any]:
    view = _current_view(session)
    archived = await view.archive()
    return {"archived": archived, **_view_response(session, view)}


@router.post("/current/back")
async def back_to_list(
    session: InboxSession = Depends(get_inbox_session),
) -> dict[str, Any]:
    view = _current_view(session)
    view.back()
    return _view_response(session, view)

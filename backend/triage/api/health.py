"""Health check endpoint for infrastructure monitoring."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends

from triage.config import Settings, get_settings
from triage.dependencies import get_inbox_session
from triage.errors import TriageError
from triage.inbox.session import InboxSession

logger = logging.getLogger(__name__)
router = APIRouter()


async def _check_connector(session: InboxSession) -> dict[str, Any]:
    """Ask the Beeper connector for a single chat and return status."""
    try:
        await session.repository.list_conversations(limit=1)
        return {"status": "healthy"}
    except TriageError as exc:
        logger.warning("Connector health check failed: %s", exc)
        return {"status": "unhealthy", "error": exc.message}


def _check_model(settings: Settings) -> dict[str, Any]:
    """Report whether the suggestion model is configured."""
    if not settings.google_api_key:
        return {"status": "unhealthy", "error": "GOOGLE_API_KEY is not configured"}
    return {"status": "healthy", "model": settings.gemini_model}


@router.get("")
async def health_check(
    settings: Settings = Depends(get_settings),
    session: InboxSession = Depends(get_inbox_session),
) -> dict[str, Any]:
    """Return aggregate health of the upstream services."""
    services = {
        "connector": await _check_connector(session),
        "model": _check_model(settings),
    }

    overall = (
        "healthy"
        if all(s["status"] == "healthy" for s in services.values())
        else "degraded"
    )

    return {
        "status": overall,
        "services": services,
    }

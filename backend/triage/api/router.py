"""Central API router that aggregates all route modules."""

from fastapi import APIRouter

from triage.api.conversations import router as conversations_router
from triage.api.health import router as health_router
from triage.api.inbox import router as inbox_router
from triage.api.keys import router as keys_router

api_router = APIRouter()

api_router.include_router(health_router, prefix="/health", tags=["health"])
api_router.include_router(inbox_router, prefix="/inbox", tags=["inbox"])
api_router.include_router(
    conversations_router, prefix="/conversations", tags=["conversations"]
)
api_router.include_router(keys_router, prefix="/keys", tags=["keys"])

"""FastAPI application entry point with lifespan management."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from triage.api.router import api_router
from triage.api.stream import websocket_inbox
from triage.config import settings
from triage.dependencies import get_inbox_session
from triage.errors import TriageError

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Manage application startup and shutdown lifecycle."""
    logger.info("Starting Inbox Triage backend...")

    # Connects to Beeper, loads the inbox and starts background refresh
    session = get_inbox_session()
    await session.start()
    logger.info("Inbox session started successfully")

    yield

    await session.shutdown()
    logger.info("Inbox Triage backend shut down cleanly")


app = FastAPI(
    title="Inbox Triage API",
    description="Unified inbox triage with AI reply suggestions",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        settings.frontend_url,
        "http://localhost:3000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(TriageError)
async def triage_error_handler(request: Request, exc: TriageError) -> JSONResponse:
    """Translate the error taxonomy into JSON responses."""
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.code, "detail": exc.message},
    )


# Mount API routes
app.include_router(api_router, prefix="/api")

# Mount WebSocket endpoint (outside /api prefix to match frontend expectations)
app.websocket("/ws/inbox")(websocket_inbox)

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

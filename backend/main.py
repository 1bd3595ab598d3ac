"""
Screen runtime FastAPI application.

Entry point for the runtime service.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from backend.config import settings
from backend.routes import runtime as runtime_routes
from backend.routes import ws as ws_routes
from backend.services.session import build_session

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for FastAPI application.

    Handles startup and shutdown logic:
    - Build the runtime session and rehydrate its log
    - Seed the initial view
    - Let scheduled delegated actions finish on shutdown
    """
    logging.basicConfig(level=settings.LOG_LEVEL)

    # Startup
    session = build_session(settings)
    session.start(settings.RUNTIME_DEFAULT_VIEW)
    app.state.session = session
    logger.info("Runtime session started (persistent=%s)", settings.persistent)

    yield

    # Shutdown
    await session.bridge.wait_idle()
    logger.info("Runtime session stopped")


app = FastAPI(
    title="Screen Runtime",
    docs_url=None,
    redoc_url=None,
    lifespan=lifespan,
)

# Register routes
app.include_router(runtime_routes.router)
app.include_router(ws_routes.router)


@app.get("/health")
async def health():
    """Health check endpoint for uptime monitoring."""
    return {"status": "ok"}

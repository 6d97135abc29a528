"""
Component preview FastAPI application.

Entry point for the API server.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from backend.config import settings
from backend.routes import preview as preview_routes
from engine.preview.host import node_available

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for FastAPI application.

    Startup only checks for the sandbox runtime. Without it every preview
    is served from the simplified tier, which is degraded but not broken.
    """
    if node_available(settings.NODE_BINARY):
        logger.info("Sandbox runtime found: %s", settings.NODE_BINARY)
    else:
        logger.warning("Sandbox runtime %r not found, live previews will degrade", settings.NODE_BINARY)

    yield


app = FastAPI(
    title="Component Preview",
    docs_url=None,
    redoc_url=None,
    lifespan=lifespan,
)

# Register routes
app.include_router(preview_routes.router)


@app.get("/health")
async def health():
    """Health check endpoint for uptime monitoring."""
    return {"status": "ok"}

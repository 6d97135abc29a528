"""Component preview — POST /api/render-component returns a preview document."""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException
from fastapi.responses import HTMLResponse, Response

from backend.config import settings
from backend.models.preview import RenderComponentRequest
from engine.preview import render_preview
from engine.preview.documents import frame_page

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["preview"])

# Previews are derived from the request body, so nothing may be cached.
_NO_CACHE_HEADERS = {
    "Cache-Control": "no-cache, no-store, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}


@router.post("/render-component", response_class=HTMLResponse)
async def render_component(req: RenderComponentRequest) -> Response:
    """
    Render generated component text into a self-contained HTML document.

    Always answers 200 with some tier of preview (full, simplified or
    static) unless the request itself is malformed:
    - 400 when sourceText or componentName is missing or blank
    - 422 when the body fails validation

    Headers:
    - X-Preview-Tier: the tier that was actually served
    - Content-Security-Policy: sandbox allow-scripts, so the document
      runs in an opaque origin even when opened directly
    """
    if not req.source_text.strip():
        raise HTTPException(status_code=400, detail="sourceText is required")
    if not req.component_name.strip():
        raise HTTPException(status_code=400, detail="componentName is required")

    result = await render_preview(req.to_source_unit(), settings.preview_options(req.mode))
    logger.info(
        "render-component: %s served at %s tier after %d attempt(s)",
        req.component_name,
        result.tier,
        len(result.attempts),
    )

    document = result.document
    if req.embed:
        document = frame_page(document, f"{req.component_name.strip()} preview")

    return Response(
        content=document,
        media_type="text/html; charset=utf-8",
        headers={
            **_NO_CACHE_HEADERS,
            "X-Preview-Tier": result.tier,
            "Content-Security-Policy": "sandbox allow-scripts",
            "X-Content-Type-Options": "nosniff",
        },
    )

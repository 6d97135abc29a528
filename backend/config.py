"""
Component preview configuration — all environment variables in one place.

Read from environment at import. The engine never reads the environment
itself; routes build PreviewOptions from these settings.
"""

from __future__ import annotations

import os

from engine.preview.types import PreviewOptions, Tier


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "")
    try:
        return int(raw) if raw else default
    except ValueError as e:
        raise RuntimeError(f"{name} must be an integer, got {raw!r}") from e


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name, "")
    try:
        return float(raw) if raw else default
    except ValueError as e:
        raise RuntimeError(f"{name} must be a number, got {raw!r}") from e


class Settings:
    """Application settings from environment variables."""

    # Application
    ENVIRONMENT: str = os.environ.get("ENVIRONMENT", "development")

    # Sandbox runtime
    NODE_BINARY: str = os.environ.get("NODE_BINARY", "node")

    # Preview pipeline
    PREVIEW_SIZE_THRESHOLD: int = _env_int("PREVIEW_SIZE_THRESHOLD", 50_000)
    PREVIEW_GLOBAL_TIMEOUT_SECONDS: float = _env_float("PREVIEW_GLOBAL_TIMEOUT_SECONDS", 10.0)
    PREVIEW_RENDER_TIMEOUT_SECONDS: float = _env_float("PREVIEW_RENDER_TIMEOUT_SECONDS", 5.0)
    PREVIEW_READY_TIMEOUT_SECONDS: float = _env_float("PREVIEW_READY_TIMEOUT_SECONDS", 3.0)

    @property
    def PREVIEW_DEBUG(self) -> bool:
        raw = os.environ.get("PREVIEW_DEBUG")
        if raw:
            return raw.lower() in ("1", "true", "yes")
        return self.ENVIRONMENT == "development"

    def preview_options(self, requested_tier: Tier = "full") -> PreviewOptions:
        """PreviewOptions for one request."""
        return PreviewOptions(
            size_threshold=self.PREVIEW_SIZE_THRESHOLD,
            global_timeout_seconds=self.PREVIEW_GLOBAL_TIMEOUT_SECONDS,
            render_timeout_seconds=self.PREVIEW_RENDER_TIMEOUT_SECONDS,
            ready_timeout_seconds=self.PREVIEW_READY_TIMEOUT_SECONDS,
            node_binary=self.NODE_BINARY,
            debug=self.PREVIEW_DEBUG,
            requested_tier=requested_tier,
        )


# Singleton instance
settings = Settings()

if settings.PREVIEW_SIZE_THRESHOLD <= 0:
    raise RuntimeError("PREVIEW_SIZE_THRESHOLD must be positive")
if settings.PREVIEW_RENDER_TIMEOUT_SECONDS <= 0 or settings.PREVIEW_READY_TIMEOUT_SECONDS <= 0:
    raise RuntimeError("Preview timeouts must be positive")
if settings.PREVIEW_RENDER_TIMEOUT_SECONDS >= settings.PREVIEW_GLOBAL_TIMEOUT_SECONDS:
    raise RuntimeError("PREVIEW_RENDER_TIMEOUT_SECONDS must be below PREVIEW_GLOBAL_TIMEOUT_SECONDS")

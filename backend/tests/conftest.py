"""
Pytest configuration and fixtures for component preview API tests.
"""

from __future__ import annotations

import os

# Set test environment variables before importing config
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("PREVIEW_GLOBAL_TIMEOUT_SECONDS", "5")
os.environ.setdefault("PREVIEW_RENDER_TIMEOUT_SECONDS", "1")

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

from backend.main import app  # noqa: E402


@pytest.fixture
async def client():
    """Create test client."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client

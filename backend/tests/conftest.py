"""
Pytest configuration and fixtures for the runtime service tests.
"""

from __future__ import annotations

import os

import httpx
import pytest
import pytest_asyncio

# Set test environment variables before importing config
os.environ.setdefault("RUNTIME_STORAGE_DIR", "")
os.environ.setdefault("LOG_LEVEL", "DEBUG")

from backend.main import app  # noqa: E402
from backend.services.session import RuntimeSession  # noqa: E402
from runtime.core import MemoryStorage  # noqa: E402


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def session(storage):
    """A fresh in-memory session installed on the app for one test."""
    s = RuntimeSession(storage)
    s.start("|home")
    app.state.session = s
    yield s
    del app.state.session


@pytest_asyncio.fixture
async def async_client(session):
    """Async HTTP client against the ASGI app."""
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client

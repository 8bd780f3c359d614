"""
Pytest configuration and fixtures for Storyline backend tests.

Route tests run the ASGI app against memory-backed tree commands via
app.dependency_overrides. Repository tests need DATABASE_URL and skip
without it.
"""

from __future__ import annotations

import os

# Set test environment variables before importing config
os.environ.setdefault("TESTING", "true")
os.environ.setdefault("SEED_PROJECTS", "true")

import httpx  # noqa: E402
import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402

from backend import db  # noqa: E402
from backend.deps import get_tree_commands  # noqa: E402
from backend.main import app  # noqa: E402
from engine.tree.commands import TreeCommands  # noqa: E402
from engine.tree.responses import MemoryResponses  # noqa: E402
from engine.tree.storage import MemoryStorage  # noqa: E402


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def responses(storage):
    return MemoryResponses(storage)


@pytest.fixture
def commands(storage, responses):
    return TreeCommands(storage, responses)


@pytest_asyncio.fixture
async def async_client(commands):
    """Async HTTP client against the ASGI app, with tree commands kept in memory."""
    app.dependency_overrides[get_tree_commands] = lambda: commands
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def project_id(commands):
    project = await commands.create_project("Route bot")
    return project.id


@pytest_asyncio.fixture
async def initialize_pool():
    """Pool for repository tests. Skips when no database is configured."""
    if not os.environ.get("DATABASE_URL"):
        pytest.skip("DATABASE_URL not set")
    await db.init_pool()
    yield
    await db.close_pool()

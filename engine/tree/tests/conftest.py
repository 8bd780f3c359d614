"""
Tree test configuration.

Every fixture here runs against MemoryStorage. The Postgres adapter tests
skip themselves when DATABASE_URL is not set.
"""

import pytest

from engine.tree.commands import TreeCommands
from engine.tree.responses import MemoryResponses
from engine.tree.storage import MemoryStorage


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def responses(storage):
    return MemoryResponses(storage)


@pytest.fixture
def commands(storage, responses):
    return TreeCommands(storage, responses)


@pytest.fixture
def nested_commands(storage, responses):
    """Commands with story groups allowed inside story groups."""
    return TreeCommands(storage, responses, allow_nested_groups=True)


@pytest.fixture
async def project_id(commands):
    project = await commands.create_project("Test bot")
    return project.id


@pytest.fixture
def changes(commands):
    """Every TreeChange emitted by `commands`, in order."""
    received = []
    commands.subscribe(received.append)
    return received

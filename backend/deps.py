"""
FastAPI dependencies.

Routes get their tree commands and response repository from here so tests
can swap in memory-backed versions through app.dependency_overrides.
"""

from __future__ import annotations

from backend import db
from backend.config import settings
from backend.repos.response_repo import ResponseRepo
from engine.tree.commands import TreeCommands
from engine.tree.postgres_storage import PostgresStorage

response_repo = ResponseRepo()


def get_response_repo() -> ResponseRepo:
    return response_repo


def get_tree_commands() -> TreeCommands:
    """Tree commands over the shared pool, with the response repo as garbage collector."""
    return TreeCommands(
        PostgresStorage(db.get_pool()),
        response_repo,
        new_groups_first=settings.NEW_GROUPS_FIRST,
        allow_nested_groups=settings.ALLOW_NESTED_GROUPS,
    )

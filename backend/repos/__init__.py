"""
Repository layer for Storyline.

SQL outside the story tree lives here. Story groups and stories are stored
through engine.tree.postgres_storage.
"""

from backend.repos.response_repo import ResponseRepo

__all__ = [
    "ResponseRepo",
]

"""
Storyline Tree: the story forest core.

Components:
  store      TreeStore, read-only queries over one project snapshot
  commands   TreeCommands, the mutation protocol (insert, rename, delete, move, link)
  storage    TreeStorage protocol + MemoryStorage; PostgresStorage in postgres_storage
  responses  ResponseCollector, garbage collection of orphaned bot responses
"""

from engine.tree.commands import TreeCommands
from engine.tree.errors import (
    DuplicateName,
    InvalidLink,
    InvalidMove,
    LinkedNodeError,
    NotFound,
    ResponseCollectionError,
    StorageError,
    TreeError,
)
from engine.tree.responses import MemoryResponses, ResponseCollector
from engine.tree.storage import MemoryStorage, TreeStorage
from engine.tree.store import TreeStore
from engine.tree.types import Checkpoint, LinkReason, Project, Story, StoryGroup

__all__ = [
    "TreeCommands",
    "TreeStore",
    "TreeStorage",
    "MemoryStorage",
    "ResponseCollector",
    "MemoryResponses",
    "Project",
    "StoryGroup",
    "Story",
    "Checkpoint",
    "LinkReason",
    "TreeError",
    "DuplicateName",
    "NotFound",
    "LinkedNodeError",
    "InvalidMove",
    "InvalidLink",
    "StorageError",
    "ResponseCollectionError",
]

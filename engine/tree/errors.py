"""Errors raised by the tree commands and storage adapters."""

from __future__ import annotations

from engine.tree.types import LinkReason


class TreeError(Exception):
    """Base class for every tree failure surfaced to callers."""

    code = "tree_error"


class DuplicateName(TreeError):
    """A story group with this name already exists in the project."""

    code = "duplicate_name"

    def __init__(self, name: str) -> None:
        super().__init__("Group name already exists")
        self.name = name


class NotFound(TreeError):
    """The referenced group, story or project does not exist."""

    code = "not_found"

    def __init__(self, kind: str, node_id: str) -> None:
        super().__init__(f"{kind} {node_id} not found")
        self.kind = kind
        self.node_id = node_id


class LinkedNodeError(TreeError):
    """Deletion refused because the node takes part in the link graph."""

    code = "linked_node"

    def __init__(self, reason: LinkReason, message: str) -> None:
        super().__init__(message)
        self.reason = reason
        self.message = message


class InvalidMove(TreeError):
    """Move would create a containment cycle or break parent-type rules."""

    code = "invalid_move"


class InvalidLink(TreeError):
    """Checkpoint would loop onto its own story or leave the project."""

    code = "invalid_link"


class StorageError(TreeError):
    """The persistence layer failed (unreachable, conflict, ...)."""

    code = "storage_error"


class ResponseCollectionError(TreeError):
    """
    The tree change was applied but orphaned responses were not collected.

    Carries the exact candidate set so the collection step can be re-run on
    its own with TreeCommands.collect_responses.
    """

    code = "response_collection_failed"

    def __init__(self, project_id: str, orphan_events: set[str]) -> None:
        super().__init__(f"Could not remove {len(orphan_events)} orphaned responses in project {project_id}")
        self.project_id = project_id
        self.orphan_events = set(orphan_events)

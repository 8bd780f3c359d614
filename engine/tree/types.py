"""
Storyline Tree: Shared Types

Data classes for the story forest: projects, story groups, stories and the
checkpoints that link stories together. These are the contracts that bind the
storage layer, the query surface and the command layer.

Containment:
- a project holds an ordered list of top-level story groups
- a story group holds an ordered list of children (stories and, when nesting
  is enabled, sub-groups)
- a story belongs to exactly one story group

Links:
- a story's checkpoints name destination stories in the same project
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


def new_id() -> str:
    return str(uuid.uuid4())


# ---------------------------------------------------------------------------
# Link reasons
# ---------------------------------------------------------------------------


class LinkReason(str, Enum):
    """Why a node cannot be deleted."""

    GROUP_CONTAINS_ORIGIN = "group_contains_origin"
    GROUP_CONTAINS_DESTINATION = "group_contains_destination"
    STORY_IS_ORIGIN = "story_is_origin"
    STORY_IS_DESTINATION = "story_is_destination"


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass
class Checkpoint:
    """
    A directed link from the owning story to `destination_id`.

    Persisted in list form: [destination_id, *branch_path].
    """

    destination_id: str
    branch_path: list[str] = field(default_factory=list)

    def to_list(self) -> list[str]:
        return [self.destination_id, *self.branch_path]

    @classmethod
    def from_list(cls, raw: list[str]) -> Checkpoint:
        return cls(destination_id=raw[0], branch_path=list(raw[1:]))


@dataclass
class Project:
    id: str
    name: str = ""
    story_groups: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "story_groups": list(self.story_groups)}


@dataclass
class StoryGroup:
    """A container node. `parent_id` is None for top-level groups."""

    id: str
    project_id: str
    name: str
    parent_id: str | None = None
    children: list[str] = field(default_factory=list)
    selected: bool = False
    is_expanded: bool = True

    is_group = True

    @property
    def title(self) -> str:
        return self.name

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "name": self.name,
            "parent_id": self.parent_id,
            "children": list(self.children),
            "selected": self.selected,
            "is_expanded": self.is_expanded,
        }


@dataclass
class Story:
    """A leaf node. Always lives inside a story group."""

    id: str
    project_id: str
    story_group_id: str
    title: str
    body: str = ""
    events: list[str] = field(default_factory=list)
    checkpoints: list[Checkpoint] = field(default_factory=list)

    is_group = False

    @property
    def name(self) -> str:
        return self.title

    @property
    def parent_id(self) -> str:
        return self.story_group_id

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "story_group_id": self.story_group_id,
            "title": self.title,
            "body": self.body,
            "events": list(self.events),
            "checkpoints": [c.to_list() for c in self.checkpoints],
        }


Node = StoryGroup | Story


@dataclass
class ProjectTree:
    """Everything the query surface needs for one project, loaded at once."""

    project: Project
    groups: dict[str, StoryGroup] = field(default_factory=dict)
    stories: dict[str, Story] = field(default_factory=dict)


@dataclass
class DeleteResult:
    """What a successful delete removed."""

    deleted_ids: list[str]
    orphan_events: set[str] = field(default_factory=set)


@dataclass
class TreeChange:
    """Notification emitted after a command completes."""

    kind: str  # group.insert, story.insert, node.rename, node.delete, ...
    project_id: str
    ids: list[str] = field(default_factory=list)

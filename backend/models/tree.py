"""Story group and story models for the tree routes."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

from engine.tree.store import TreeStore
from engine.tree.types import LinkReason, Node


class CreateGroupRequest(BaseModel):
    """What the client sends to create a story group."""

    model_config = {"extra": "forbid"}

    name: str = Field(min_length=1, max_length=200)
    parent_id: str | None = None


class CreateStoryRequest(BaseModel):
    """What the client sends to add a story to a group. Title defaults to "<group> (<n>)"."""

    model_config = {"extra": "forbid"}

    title: str | None = Field(default=None, max_length=200)
    body: str = ""
    events: list[str] = Field(default_factory=list)


class RenameRequest(BaseModel):
    """An empty or blank name leaves the node unchanged."""

    model_config = {"extra": "forbid"}

    name: str = Field(max_length=200)


class UpdateGroupRequest(BaseModel):
    model_config = {"extra": "forbid"}

    selected: bool | None = None
    is_expanded: bool | None = None


class UpdateStoryRequest(BaseModel):
    model_config = {"extra": "forbid"}

    body: str | None = None
    events: list[str] | None = None


class MoveRequest(BaseModel):
    """parent_id=None moves a group to the top level."""

    model_config = {"extra": "forbid"}

    parent_id: str | None = None
    index: int = Field(ge=0)


class LinkRequest(BaseModel):
    model_config = {"extra": "forbid"}

    destination_id: str = Field(min_length=1)
    branch_path: list[str] = Field(default_factory=list)


class CreatedResponse(BaseModel):
    id: str


class UpdateCountResponse(BaseModel):
    updated: int


class DeletabilityResponse(BaseModel):
    deletable: bool
    reason: LinkReason | None = None
    message: str


class DeleteResponse(BaseModel):
    deleted_ids: list[str]
    orphan_events: list[str]


class TreeNodeResponse(BaseModel):
    """One node of the read-only tree projection."""

    id: str
    type: Literal["group", "story"]
    title: str
    parent_id: str | None = None
    children: list[TreeNodeResponse] = Field(default_factory=list)
    # groups
    selected: bool | None = None
    is_expanded: bool | None = None
    # stories
    events: list[str] | None = None
    checkpoints: list[list[str]] | None = None
    is_link_origin: bool | None = None
    is_link_destination: bool | None = None

    @classmethod
    def from_node(cls, store: TreeStore, node: Node) -> TreeNodeResponse:
        if node.is_group:
            return cls(
                id=node.id,
                type="group",
                title=node.name,
                parent_id=node.parent_id,
                children=[cls.from_node(store, child) for child in store.children(node.id)],
                selected=node.selected,
                is_expanded=node.is_expanded,
            )
        return cls(
            id=node.id,
            type="story",
            title=node.title,
            parent_id=node.story_group_id,
            events=list(node.events),
            checkpoints=[c.to_list() for c in node.checkpoints],
            is_link_origin=store.is_link_origin(node.id),
            is_link_destination=store.is_link_destination(node.id),
        )


TreeNodeResponse.model_rebuild()


class TreeResponse(BaseModel):
    """The whole project tree, top-level groups in display order."""

    project_id: str
    groups: list[TreeNodeResponse]

    @classmethod
    def from_store(cls, store: TreeStore) -> TreeResponse:
        return cls(
            project_id=store.project_id,
            groups=[TreeNodeResponse.from_node(store, g) for g in store.children(None)],
        )

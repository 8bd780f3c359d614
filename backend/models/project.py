"""Project models."""

from __future__ import annotations

from pydantic import BaseModel, Field

from engine.tree.types import Project


class CreateProjectRequest(BaseModel):
    """What the client sends to create a project."""

    model_config = {"extra": "forbid"}

    name: str = Field(min_length=1, max_length=200)
    seed: bool | None = None  # None falls back to SEED_PROJECTS


class ProjectResponse(BaseModel):
    """What the API returns."""

    id: str
    name: str
    story_groups: list[str]

    @classmethod
    def from_model(cls, project: Project) -> ProjectResponse:
        return cls(id=project.id, name=project.name, story_groups=list(project.story_groups))

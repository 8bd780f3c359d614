"""Project routes: create, get."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from backend.config import settings
from backend.deps import get_tree_commands
from backend.models.project import CreateProjectRequest, ProjectResponse
from engine.tree.commands import TreeCommands
from engine.tree.seed import seed_project

router = APIRouter(prefix="/api/projects", tags=["projects"])


@router.post("", status_code=201)
async def create_project(
    req: CreateProjectRequest,
    commands: TreeCommands = Depends(get_tree_commands),
) -> ProjectResponse:
    """Create a project, seeded with the default and intro story groups unless disabled."""
    project = await commands.create_project(req.name)
    seed = settings.SEED_PROJECTS if req.seed is None else req.seed
    if seed:
        await seed_project(commands, project.id)
        project = await commands.storage.get_project(project.id)
    return ProjectResponse.from_model(project)


@router.get("/{project_id}", status_code=200)
async def get_project(
    project_id: str,
    commands: TreeCommands = Depends(get_tree_commands),
) -> ProjectResponse:
    """Get a single project by ID."""
    project = await commands.storage.get_project(project_id)
    if not project:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project not found.")
    return ProjectResponse.from_model(project)

"""Bot response template routes: list, create, collect orphans."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from backend.deps import get_response_repo, get_tree_commands
from backend.models.response import (
    BotResponseResponse,
    CollectResponsesRequest,
    CollectResponsesResponse,
    CreateBotResponseRequest,
)
from backend.repos.response_repo import ResponseRepo
from engine.tree.commands import TreeCommands

router = APIRouter(prefix="/api/projects/{project_id}/responses", tags=["responses"])


@router.get("", status_code=200)
async def list_responses(
    project_id: str,
    repo: ResponseRepo = Depends(get_response_repo),
) -> list[BotResponseResponse]:
    """List a project's response templates."""
    records = await repo.list_for_project(project_id)
    return [BotResponseResponse.from_model(r) for r in records]


@router.post("", status_code=201)
async def create_response(
    project_id: str,
    req: CreateBotResponseRequest,
    repo: ResponseRepo = Depends(get_response_repo),
) -> BotResponseResponse:
    """Create a response template. Keys are unique per project."""
    record = await repo.create(project_id, req)
    if record is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Response key already exists.")
    return BotResponseResponse.from_model(record)


@router.post("/collect", status_code=200)
async def collect_responses(
    project_id: str,
    req: CollectResponsesRequest,
    commands: TreeCommands = Depends(get_tree_commands),
) -> CollectResponsesResponse:
    """Re-run garbage collection for the orphan_events of a failed delete or story update."""
    removed = await commands.collect_responses(req.events, project_id)
    return CollectResponsesResponse(removed=removed)

"""
Story tree routes: the command surface over story groups and stories.

Every route is scoped to a project. TreeError subclasses raised by the
commands are turned into HTTP errors by the handler registered in main.py.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from backend.deps import get_tree_commands
from backend.models.tree import (
    CreatedResponse,
    CreateGroupRequest,
    CreateStoryRequest,
    DeletabilityResponse,
    DeleteResponse,
    LinkRequest,
    MoveRequest,
    RenameRequest,
    TreeResponse,
    UpdateCountResponse,
    UpdateGroupRequest,
    UpdateStoryRequest,
)
from engine.tree.commands import TreeCommands
from engine.tree.errors import NotFound

router = APIRouter(prefix="/api/projects/{project_id}", tags=["tree"])


async def _ensure_in_project(commands: TreeCommands, project_id: str, node_id: str, kind: str = "node") -> None:
    """404 unless node_id is a group or story of project_id."""
    node = None
    if kind in ("node", "story group"):
        node = await commands.storage.get_group(node_id)
    if node is None and kind in ("node", "story"):
        node = await commands.storage.get_story(node_id)
    if node is None or node.project_id != project_id:
        raise NotFound(kind, node_id)


@router.get("/tree", status_code=200)
async def get_tree(
    project_id: str,
    commands: TreeCommands = Depends(get_tree_commands),
) -> TreeResponse:
    """Read-only projection of the whole project tree."""
    store = await commands.load(project_id)
    return TreeResponse.from_store(store)


@router.post("/groups", status_code=201)
async def create_group(
    project_id: str,
    req: CreateGroupRequest,
    commands: TreeCommands = Depends(get_tree_commands),
) -> CreatedResponse:
    """Create a story group (prepended to the top-level order by default)."""
    group_id = await commands.insert_group(project_id, req.name, parent_id=req.parent_id)
    return CreatedResponse(id=group_id)


@router.post("/groups/{group_id}/stories", status_code=201)
async def create_story(
    project_id: str,
    group_id: str,
    req: CreateStoryRequest,
    commands: TreeCommands = Depends(get_tree_commands),
) -> CreatedResponse:
    """Append a story to a group."""
    story_id = await commands.insert_story(group_id, project_id, req.title, req.body, req.events)
    return CreatedResponse(id=story_id)


@router.patch("/groups/{group_id}", status_code=200)
async def update_group(
    project_id: str,
    group_id: str,
    req: UpdateGroupRequest,
    commands: TreeCommands = Depends(get_tree_commands),
) -> UpdateCountResponse:
    """Toggle focus or expansion of a group."""
    await _ensure_in_project(commands, project_id, group_id, "story group")
    updated = await commands.update_group(group_id, selected=req.selected, is_expanded=req.is_expanded)
    return UpdateCountResponse(updated=updated)


@router.patch("/stories/{story_id}", status_code=200)
async def update_story(
    project_id: str,
    story_id: str,
    req: UpdateStoryRequest,
    commands: TreeCommands = Depends(get_tree_commands),
) -> UpdateCountResponse:
    """Edit a story's body or response events."""
    await _ensure_in_project(commands, project_id, story_id, "story")
    updated = await commands.update_story(story_id, body=req.body, events=req.events)
    return UpdateCountResponse(updated=updated)


@router.patch("/nodes/{node_id}/name", status_code=200)
async def rename_node(
    project_id: str,
    node_id: str,
    req: RenameRequest,
    commands: TreeCommands = Depends(get_tree_commands),
) -> UpdateCountResponse:
    """Rename a group or story. A blank name is accepted and ignored."""
    if req.name.strip():
        await _ensure_in_project(commands, project_id, node_id)
    updated = await commands.rename_node(node_id, req.name)
    return UpdateCountResponse(updated=updated)


@router.post("/nodes/{node_id}/move", status_code=200)
async def move_node(
    project_id: str,
    node_id: str,
    req: MoveRequest,
    commands: TreeCommands = Depends(get_tree_commands),
) -> TreeResponse:
    """Move or reorder a node. Returns the refreshed tree."""
    await _ensure_in_project(commands, project_id, node_id)
    await commands.move_node(node_id, req.parent_id, req.index)
    return TreeResponse.from_store(await commands.load(project_id))


@router.get("/nodes/{node_id}/deletability", status_code=200)
async def get_deletability(
    project_id: str,
    node_id: str,
    commands: TreeCommands = Depends(get_tree_commands),
) -> DeletabilityResponse:
    """Whether a node can be deleted, with the confirmation or refusal text."""
    await _ensure_in_project(commands, project_id, node_id)
    deletable, reason, message = await commands.deletability(node_id)
    return DeletabilityResponse(deletable=deletable, reason=reason, message=message)


@router.delete("/nodes/{node_id}", status_code=200)
async def delete_node(
    project_id: str,
    node_id: str,
    commands: TreeCommands = Depends(get_tree_commands),
) -> DeleteResponse:
    """Delete a story, or a group with all its stories. 409 when links are involved."""
    await _ensure_in_project(commands, project_id, node_id)
    result = await commands.delete_node(node_id)
    return DeleteResponse(deleted_ids=result.deleted_ids, orphan_events=sorted(result.orphan_events))


@router.post("/stories/{story_id}/checkpoints", status_code=200)
async def add_checkpoint(
    project_id: str,
    story_id: str,
    req: LinkRequest,
    commands: TreeCommands = Depends(get_tree_commands),
) -> UpdateCountResponse:
    """Link a story to another story of the same project."""
    await _ensure_in_project(commands, project_id, story_id, "story")
    updated = await commands.add_checkpoint(story_id, req.destination_id, req.branch_path)
    return UpdateCountResponse(updated=updated)


@router.delete("/stories/{story_id}/checkpoints/{destination_id}", status_code=200)
async def remove_checkpoint(
    project_id: str,
    story_id: str,
    destination_id: str,
    commands: TreeCommands = Depends(get_tree_commands),
) -> UpdateCountResponse:
    """Remove every link from a story to destination_id."""
    await _ensure_in_project(commands, project_id, story_id, "story")
    updated = await commands.remove_checkpoint(story_id, destination_id)
    return UpdateCountResponse(updated=updated)

"""
Pydantic models for Storyline.

All request and response shapes defined here. No imports from db, repos, or routes.
"""

from backend.models.project import CreateProjectRequest, ProjectResponse
from backend.models.response import (
    BotResponseRecord,
    BotResponseResponse,
    CollectResponsesRequest,
    CollectResponsesResponse,
    CreateBotResponseRequest,
)
from backend.models.tree import (
    CreatedResponse,
    CreateGroupRequest,
    CreateStoryRequest,
    DeletabilityResponse,
    DeleteResponse,
    LinkRequest,
    MoveRequest,
    RenameRequest,
    TreeNodeResponse,
    TreeResponse,
    UpdateCountResponse,
    UpdateGroupRequest,
    UpdateStoryRequest,
)

__all__ = [
    # Project models
    "CreateProjectRequest",
    "ProjectResponse",
    # Tree models
    "CreateGroupRequest",
    "CreateStoryRequest",
    "RenameRequest",
    "UpdateGroupRequest",
    "UpdateStoryRequest",
    "MoveRequest",
    "LinkRequest",
    "CreatedResponse",
    "UpdateCountResponse",
    "DeletabilityResponse",
    "DeleteResponse",
    "TreeNodeResponse",
    "TreeResponse",
    # Bot response models
    "BotResponseRecord",
    "CreateBotResponseRequest",
    "BotResponseResponse",
    "CollectResponsesRequest",
    "CollectResponsesResponse",
]

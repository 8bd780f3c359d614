"""Bot response template models."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class BotResponseRecord(BaseModel):
    """Core bot response model. Represents a row in the bot_responses table."""

    id: str
    project_id: str
    key: str
    values: list[dict[str, Any]] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class CreateBotResponseRequest(BaseModel):
    """What the client sends to create a response template."""

    model_config = {"extra": "forbid"}

    key: str = Field(min_length=7, max_length=200, pattern=r"^utter_")
    values: list[dict[str, Any]] = Field(default_factory=list, max_length=5)


class BotResponseResponse(BaseModel):
    """What the API returns."""

    id: str
    key: str
    values: list[dict[str, Any]]

    @classmethod
    def from_model(cls, record: BotResponseRecord) -> BotResponseResponse:
        return cls(id=record.id, key=record.key, values=record.values)


class CollectResponsesRequest(BaseModel):
    """Response keys to garbage-collect, as reported by a failed delete or update."""

    model_config = {"extra": "forbid"}

    events: list[str] = Field(min_length=1)


class CollectResponsesResponse(BaseModel):
    removed: int

"""
Storyline Tree: Response garbage collection

After stories are deleted, bot-response templates whose key is no longer used
by any remaining story are removed. The command layer passes the candidate
key set; the collector re-checks references itself, so calling it twice with
the same set is harmless.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from engine.tree.storage import MemoryStorage

logger = logging.getLogger(__name__)

RESPONSE_KEY_PREFIX = "utter_"


@dataclass
class BotResponse:
    key: str
    project_id: str
    values: list[dict[str, Any]] = field(default_factory=list)


class ResponseCollector:
    """Abstract collector. Implemented over Postgres in backend.repos.response_repo."""

    async def delete_responses_removed_from_stories(self, event_ids: Iterable[str], project_id: str) -> int:
        """Delete responses keyed by event_ids that no story still references. Returns the count."""
        raise NotImplementedError


class MemoryResponses(ResponseCollector):
    """In-memory response templates for testing, checked against a MemoryStorage."""

    def __init__(self, storage: MemoryStorage) -> None:
        self.storage = storage
        self.responses: dict[tuple[str, str], BotResponse] = {}
        self.calls: list[tuple[set[str], str]] = []

    def add(self, project_id: str, key: str, values: list[dict[str, Any]] | None = None) -> BotResponse:
        response = BotResponse(key=key, project_id=project_id, values=values or [])
        self.responses[(project_id, key)] = response
        return response

    def keys(self, project_id: str) -> set[str]:
        return {key for (pid, key) in self.responses if pid == project_id}

    async def delete_responses_removed_from_stories(self, event_ids: Iterable[str], project_id: str) -> int:
        candidates = {e for e in event_ids if e.startswith(RESPONSE_KEY_PREFIX)}
        self.calls.append((candidates, project_id))
        still_used = {
            e for s in self.storage.stories.values() if s.project_id == project_id for e in s.events
        }
        removed = 0
        for key in candidates - still_used:
            if self.responses.pop((project_id, key), None) is not None:
                removed += 1
        if removed:
            logger.info("responses: removed %d orphaned responses in project %s", removed, project_id)
        return removed

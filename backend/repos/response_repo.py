"""Repository for bot response templates."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any
from uuid import uuid4

import asyncpg

from backend.db import connection
from backend.models.response import BotResponseRecord, CreateBotResponseRequest
from engine.tree.responses import RESPONSE_KEY_PREFIX, ResponseCollector

logger = logging.getLogger(__name__)


def _row_to_response(row: asyncpg.Record) -> BotResponseRecord:
    """Convert a database row to a BotResponseRecord model."""
    return BotResponseRecord(
        id=row["id"],
        project_id=row["project_id"],
        key=row["key"],
        values=row["response_values"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


class ResponseRepo(ResponseCollector):
    """All bot-response database operations, including orphan collection after story deletes."""

    async def list_for_project(self, project_id: str) -> list[BotResponseRecord]:
        """
        List response templates of a project.

        Args:
            project_id: Project id

        Returns:
            List of BotResponseRecord ordered by key
        """
        async with connection() as conn:
            rows = await conn.fetch(
                "SELECT * FROM bot_responses WHERE project_id = $1 ORDER BY key",
                project_id,
            )
            return [_row_to_response(row) for row in rows]

    async def get_by_key(self, project_id: str, key: str) -> BotResponseRecord | None:
        async with connection() as conn:
            row = await conn.fetchrow(
                "SELECT * FROM bot_responses WHERE project_id = $1 AND key = $2",
                project_id,
                key,
            )
            return _row_to_response(row) if row else None

    async def create(self, project_id: str, req: CreateBotResponseRequest) -> BotResponseRecord | None:
        """
        Create a response template.

        Args:
            project_id: Project id
            req: CreateBotResponseRequest with key and values

        Returns:
            Newly created BotResponseRecord, None if the key is already used in the project
        """
        values: list[dict[str, Any]] = req.values
        try:
            async with connection() as conn:
                row = await conn.fetchrow(
                    """
                    INSERT INTO bot_responses (id, project_id, key, response_values)
                    VALUES ($1, $2, $3, $4)
                    RETURNING *
                    """,
                    str(uuid4()),
                    project_id,
                    req.key,
                    values,
                )
        except asyncpg.UniqueViolationError:
            return None
        return _row_to_response(row)

    async def delete_responses_removed_from_stories(self, event_ids: Iterable[str], project_id: str) -> int:
        """
        Delete templates keyed by event_ids that no remaining story references.

        Args:
            event_ids: Candidate response keys from deleted or edited stories
            project_id: Project id

        Returns:
            Number of templates deleted
        """
        keys = sorted({e for e in event_ids if e.startswith(RESPONSE_KEY_PREFIX)})
        if not keys:
            return 0

        async with connection() as conn:
            result = await conn.execute(
                """
                DELETE FROM bot_responses r
                WHERE r.project_id = $1
                  AND r.key = ANY($2::text[])
                  AND NOT EXISTS (
                      SELECT 1 FROM stories s
                      WHERE s.project_id = r.project_id AND s.events ? r.key
                  )
                """,
                project_id,
                keys,
            )
        removed = int(result.split()[-1])
        if removed:
            logger.info("responses: removed %d orphaned responses in project %s", removed, project_id)
        return removed

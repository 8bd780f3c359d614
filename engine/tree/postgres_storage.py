"""
PostgresStorage adapter for the Storyline tree.

Implements the TreeStorage protocol using Postgres as the backend.

Tables (see alembic/versions/001_initial_schema.py):
- projects:     top-level group order in `story_groups` (JSONB array)
- story_groups: unique (project_id, name), ordered `children` (JSONB array)
- stories:      `events` and `checkpoints` as JSONB arrays

The pool must decode JSONB to Python values; pass register_json_codecs as the
pool's `init` callback.
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from typing import Any

import asyncpg

from engine.tree.errors import DuplicateName, NotFound, StorageError
from engine.tree.storage import TreeStorage, splice_child
from engine.tree.types import Checkpoint, Project, ProjectTree, Story, StoryGroup

_GROUP_COLUMNS = {"name", "parent_id", "children", "selected", "is_expanded"}
_STORY_COLUMNS = {"title", "body", "events", "checkpoints", "story_group_id"}


async def register_json_codecs(conn: asyncpg.Connection) -> None:
    """Decode json/jsonb columns to Python dicts and lists."""
    for typename in ("jsonb", "json"):
        await conn.set_type_codec(
            typename,
            encoder=json.dumps,
            decoder=json.loads,
            schema="pg_catalog",
        )


@contextmanager
def _translate_errors(name: str | None = None) -> Iterator[None]:
    try:
        yield
    except asyncpg.UniqueViolationError as e:
        raise DuplicateName(name or "") from e
    except (asyncpg.PostgresError, OSError) as e:
        raise StorageError("Server Error") from e


def _row_to_project(row: asyncpg.Record) -> Project:
    return Project(id=row["id"], name=row["name"], story_groups=list(row["story_groups"] or []))


def _row_to_group(row: asyncpg.Record) -> StoryGroup:
    return StoryGroup(
        id=row["id"],
        project_id=row["project_id"],
        name=row["name"],
        parent_id=row["parent_id"],
        children=list(row["children"] or []),
        selected=row["selected"],
        is_expanded=row["is_expanded"],
    )


def _row_to_story(row: asyncpg.Record) -> Story:
    return Story(
        id=row["id"],
        project_id=row["project_id"],
        story_group_id=row["story_group_id"],
        title=row["title"],
        body=row["body"],
        events=list(row["events"] or []),
        checkpoints=[Checkpoint.from_list(c) for c in row["checkpoints"] or []],
    )


def _story_value(key: str, value: Any) -> Any:
    if key == "checkpoints":
        return [c.to_list() for c in value]
    if key == "events":
        return list(value)
    return value


class PostgresStorage(TreeStorage):
    """Postgres-based storage for story groups and stories."""

    def __init__(self, pool: asyncpg.Pool):
        self.pool = pool

    async def insert_project(self, project: Project) -> None:
        with _translate_errors():
            async with self.pool.acquire() as conn:
                await conn.execute(
                    "INSERT INTO projects (id, name, story_groups) VALUES ($1, $2, $3)",
                    project.id,
                    project.name,
                    project.story_groups,
                )

    async def get_project(self, project_id: str) -> Project | None:
        with _translate_errors():
            async with self.pool.acquire() as conn:
                row = await conn.fetchrow("SELECT * FROM projects WHERE id = $1", project_id)
                return _row_to_project(row) if row else None

    async def load_tree(self, project_id: str) -> ProjectTree:
        with _translate_errors():
            async with self.pool.acquire() as conn:
                project_row = await conn.fetchrow("SELECT * FROM projects WHERE id = $1", project_id)
                if project_row is None:
                    raise NotFound("project", project_id)
                group_rows = await conn.fetch("SELECT * FROM story_groups WHERE project_id = $1", project_id)
                story_rows = await conn.fetch("SELECT * FROM stories WHERE project_id = $1", project_id)

        groups = (_row_to_group(r) for r in group_rows)
        stories = (_row_to_story(r) for r in story_rows)
        return ProjectTree(
            project=_row_to_project(project_row),
            groups={g.id: g for g in groups},
            stories={s.id: s for s in stories},
        )

    async def get_group(self, group_id: str) -> StoryGroup | None:
        with _translate_errors():
            async with self.pool.acquire() as conn:
                row = await conn.fetchrow("SELECT * FROM story_groups WHERE id = $1", group_id)
                return _row_to_group(row) if row else None

    async def get_story(self, story_id: str) -> Story | None:
        with _translate_errors():
            async with self.pool.acquire() as conn:
                row = await conn.fetchrow("SELECT * FROM stories WHERE id = $1", story_id)
                return _row_to_story(row) if row else None

    async def insert_group(self, group: StoryGroup) -> None:
        with _translate_errors(group.name):
            async with self.pool.acquire() as conn:
                await conn.execute(
                    """
                    INSERT INTO story_groups
                        (id, project_id, name, parent_id, children, selected, is_expanded)
                    VALUES ($1, $2, $3, $4, $5, $6, $7)
                    """,
                    group.id,
                    group.project_id,
                    group.name,
                    group.parent_id,
                    group.children,
                    group.selected,
                    group.is_expanded,
                )

    async def insert_story(self, story: Story) -> None:
        with _translate_errors():
            async with self.pool.acquire() as conn:
                await conn.execute(
                    """
                    INSERT INTO stories
                        (id, project_id, story_group_id, title, body, events, checkpoints)
                    VALUES ($1, $2, $3, $4, $5, $6, $7)
                    """,
                    story.id,
                    story.project_id,
                    story.story_group_id,
                    story.title,
                    story.body,
                    list(story.events),
                    [c.to_list() for c in story.checkpoints],
                )

    async def _update(self, table: str, allowed: set[str], node_id: str, fields: dict[str, Any]) -> int:
        unknown = set(fields) - allowed
        if unknown:
            raise ValueError(f"Cannot update {sorted(unknown)} on {table}")
        if not fields:
            return 0

        set_clause = ", ".join(f"{k} = ${i + 2}" for i, k in enumerate(fields))
        async with self.pool.acquire() as conn:
            # S608/B608: set_clause only contains whitelisted column names
            result = await conn.execute(
                f"UPDATE {table} SET {set_clause}, updated_at = now() WHERE id = $1",  # nosec B608
                node_id,
                *fields.values(),
            )
        return int(result.split()[-1])

    async def update_group_fields(self, group_id: str, fields: dict[str, Any]) -> int:
        with _translate_errors(fields.get("name")):
            return await self._update("story_groups", _GROUP_COLUMNS, group_id, fields)

    async def update_story_fields(self, story_id: str, fields: dict[str, Any]) -> int:
        values = {k: _story_value(k, v) for k, v in fields.items()}
        with _translate_errors():
            return await self._update("stories", _STORY_COLUMNS, story_id, values)

    async def delete_groups(self, group_ids: Iterable[str]) -> int:
        with _translate_errors():
            async with self.pool.acquire() as conn:
                result = await conn.execute("DELETE FROM story_groups WHERE id = ANY($1::text[])", list(group_ids))
        return int(result.split()[-1])

    async def delete_stories(self, story_ids: Iterable[str]) -> int:
        with _translate_errors():
            async with self.pool.acquire() as conn:
                result = await conn.execute("DELETE FROM stories WHERE id = ANY($1::text[])", list(story_ids))
        return int(result.split()[-1])

    async def _rewrite_children(self, project_id: str, parent_id: str | None, rewrite) -> int:
        """Lock the owning row, rewrite its child list, write it back."""
        if parent_id is None:
            table, column, key = "projects", "story_groups", project_id
        else:
            table, column, key = "story_groups", "children", parent_id

        with _translate_errors():
            async with self.pool.acquire() as conn:
                async with conn.transaction():
                    current = await conn.fetchval(
                        f"SELECT {column} FROM {table} WHERE id = $1 FOR UPDATE",  # nosec B608
                        key,
                    )
                    if current is None:
                        return 0
                    updated = rewrite(list(current))
                    if updated == current:
                        return 0
                    await conn.execute(
                        f"UPDATE {table} SET {column} = $2 WHERE id = $1",  # nosec B608
                        key,
                        updated,
                    )
                    return 1

    async def pull_child(self, project_id: str, parent_id: str | None, child_id: str) -> int:
        return await self._rewrite_children(
            project_id, parent_id, lambda children: [c for c in children if c != child_id]
        )

    async def insert_child(
        self,
        project_id: str,
        parent_id: str | None,
        child_id: str,
        index: int | None = None,
    ) -> int:
        return await self._rewrite_children(
            project_id, parent_id, lambda children: splice_child(children, child_id, index)
        )

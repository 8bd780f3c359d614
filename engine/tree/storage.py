"""
Storyline Tree: Storage protocol

The only primitives the command layer issues against the document store:
get-by-id, field update, insert with a per-project unique group name, bulk
delete, and push/pull/splice on an ordered child list.

Implement with Postgres for production (postgres_storage.py), or in-memory
for tests.
"""

from __future__ import annotations

import copy
from collections.abc import Iterable
from typing import Any

from engine.tree.errors import DuplicateName, NotFound
from engine.tree.types import Project, ProjectTree, Story, StoryGroup


class TreeStorage:
    """
    Abstract storage interface.

    `parent_id=None` in the child-list primitives addresses the project's
    top-level group order instead of a group's children.
    """

    async def insert_project(self, project: Project) -> None:
        raise NotImplementedError

    async def get_project(self, project_id: str) -> Project | None:
        raise NotImplementedError

    async def load_tree(self, project_id: str) -> ProjectTree:
        """Load the project with all its groups and stories. Raises NotFound."""
        raise NotImplementedError

    async def get_group(self, group_id: str) -> StoryGroup | None:
        raise NotImplementedError

    async def get_story(self, story_id: str) -> Story | None:
        raise NotImplementedError

    async def insert_group(self, group: StoryGroup) -> None:
        """Insert a group. Raises DuplicateName when (project_id, name) is taken."""
        raise NotImplementedError

    async def insert_story(self, story: Story) -> None:
        raise NotImplementedError

    async def update_group_fields(self, group_id: str, fields: dict[str, Any]) -> int:
        """Set fields on one group. Returns the update count. Raises DuplicateName on rename collisions."""
        raise NotImplementedError

    async def update_story_fields(self, story_id: str, fields: dict[str, Any]) -> int:
        raise NotImplementedError

    async def delete_groups(self, group_ids: Iterable[str]) -> int:
        """Bulk delete. Missing ids are ignored."""
        raise NotImplementedError

    async def delete_stories(self, story_ids: Iterable[str]) -> int:
        raise NotImplementedError

    async def pull_child(self, project_id: str, parent_id: str | None, child_id: str) -> int:
        """Remove child_id from an ordered child list. Returns 0 if it was not there."""
        raise NotImplementedError

    async def insert_child(
        self,
        project_id: str,
        parent_id: str | None,
        child_id: str,
        index: int | None = None,
    ) -> int:
        """Insert child_id at index (append when None). An existing entry is moved, never duplicated."""
        raise NotImplementedError


def splice_child(children: list[str], child_id: str, index: int | None) -> list[str]:
    result = [c for c in children if c != child_id]
    if index is None or index >= len(result):
        result.append(child_id)
    else:
        result.insert(max(index, 0), child_id)
    return result


class MemoryStorage(TreeStorage):
    """
    In-memory storage for testing.

    Documents are copied on the way in and out so callers never share state
    with the store. No method awaits between its check and its write, which
    makes each primitive atomic on a single event loop.
    """

    def __init__(self) -> None:
        self.projects: dict[str, Project] = {}
        self.groups: dict[str, StoryGroup] = {}
        self.stories: dict[str, Story] = {}

    async def insert_project(self, project: Project) -> None:
        self.projects[project.id] = copy.deepcopy(project)

    async def get_project(self, project_id: str) -> Project | None:
        project = self.projects.get(project_id)
        return copy.deepcopy(project) if project else None

    async def load_tree(self, project_id: str) -> ProjectTree:
        project = self.projects.get(project_id)
        if project is None:
            raise NotFound("project", project_id)
        return ProjectTree(
            project=copy.deepcopy(project),
            groups={g.id: copy.deepcopy(g) for g in self.groups.values() if g.project_id == project_id},
            stories={s.id: copy.deepcopy(s) for s in self.stories.values() if s.project_id == project_id},
        )

    async def get_group(self, group_id: str) -> StoryGroup | None:
        group = self.groups.get(group_id)
        return copy.deepcopy(group) if group else None

    async def get_story(self, story_id: str) -> Story | None:
        story = self.stories.get(story_id)
        return copy.deepcopy(story) if story else None

    def _name_taken(self, project_id: str, name: str, exclude_id: str | None = None) -> bool:
        return any(
            g.project_id == project_id and g.name == name and g.id != exclude_id
            for g in self.groups.values()
        )

    async def insert_group(self, group: StoryGroup) -> None:
        if self._name_taken(group.project_id, group.name):
            raise DuplicateName(group.name)
        self.groups[group.id] = copy.deepcopy(group)

    async def insert_story(self, story: Story) -> None:
        self.stories[story.id] = copy.deepcopy(story)

    async def update_group_fields(self, group_id: str, fields: dict[str, Any]) -> int:
        group = self.groups.get(group_id)
        if group is None:
            return 0
        if "name" in fields and self._name_taken(group.project_id, fields["name"], exclude_id=group_id):
            raise DuplicateName(fields["name"])
        for key, value in fields.items():
            setattr(group, key, copy.deepcopy(value))
        return 1

    async def update_story_fields(self, story_id: str, fields: dict[str, Any]) -> int:
        story = self.stories.get(story_id)
        if story is None:
            return 0
        for key, value in fields.items():
            setattr(story, key, copy.deepcopy(value))
        return 1

    async def delete_groups(self, group_ids: Iterable[str]) -> int:
        return sum(1 for gid in list(group_ids) if self.groups.pop(gid, None) is not None)

    async def delete_stories(self, story_ids: Iterable[str]) -> int:
        return sum(1 for sid in list(story_ids) if self.stories.pop(sid, None) is not None)

    def _child_list_owner(self, project_id: str, parent_id: str | None) -> Project | StoryGroup | None:
        if parent_id is None:
            return self.projects.get(project_id)
        return self.groups.get(parent_id)

    async def pull_child(self, project_id: str, parent_id: str | None, child_id: str) -> int:
        owner = self._child_list_owner(project_id, parent_id)
        if owner is None:
            return 0
        attr = "story_groups" if parent_id is None else "children"
        current = getattr(owner, attr)
        if child_id not in current:
            return 0
        setattr(owner, attr, [c for c in current if c != child_id])
        return 1

    async def insert_child(
        self,
        project_id: str,
        parent_id: str | None,
        child_id: str,
        index: int | None = None,
    ) -> int:
        owner = self._child_list_owner(project_id, parent_id)
        if owner is None:
            return 0
        attr = "story_groups" if parent_id is None else "children"
        setattr(owner, attr, splice_child(getattr(owner, attr), child_id, index))
        return 1

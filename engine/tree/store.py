"""
Storyline Tree: Query surface

Read-only view over one project's forest and link graph. Built fresh from a
ProjectTree snapshot for every command; never cached across commands.

The reverse link index (destination -> origins) is computed once per snapshot
by scanning every story's checkpoints.
"""

from __future__ import annotations

from collections.abc import Iterable

from engine.tree.errors import NotFound
from engine.tree.types import LinkReason, Node, ProjectTree, Story, StoryGroup


class TreeStore:
    def __init__(self, tree: ProjectTree) -> None:
        self.tree = tree
        self.project_id = tree.project.id
        self._incoming: dict[str, set[str]] = {}
        for story in tree.stories.values():
            for checkpoint in story.checkpoints:
                self._incoming.setdefault(checkpoint.destination_id, set()).add(story.id)

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def find(self, node_id: str) -> Node | None:
        return self.tree.groups.get(node_id) or self.tree.stories.get(node_id)

    def get_node(self, node_id: str) -> Node:
        node = self.find(node_id)
        if node is None:
            raise NotFound("node", node_id)
        return node

    def get_group(self, group_id: str) -> StoryGroup:
        group = self.tree.groups.get(group_id)
        if group is None:
            raise NotFound("story group", group_id)
        return group

    def get_story(self, story_id: str) -> Story:
        story = self.tree.stories.get(story_id)
        if story is None:
            raise NotFound("story", story_id)
        return story

    def children(self, group_id: str | None) -> list[Node]:
        """Direct children in persisted order. None addresses the top-level groups."""
        if group_id is None:
            ids = self.tree.project.story_groups
        else:
            ids = self.get_group(group_id).children
        return [node for node in (self.find(i) for i in ids) if node is not None]

    # ------------------------------------------------------------------
    # Links
    # ------------------------------------------------------------------

    def is_link_origin(self, story_id: str) -> bool:
        story = self.tree.stories.get(story_id)
        return bool(story and story.checkpoints)

    def is_link_destination(self, story_id: str) -> bool:
        return bool(self._incoming.get(story_id))

    def is_link_origin_or_destination(self, node: Node) -> bool:
        if node.is_group:
            return any(self.is_link_origin_or_destination(s) for s in self.descendant_stories(node.id))
        return self.is_link_origin(node.id) or self.is_link_destination(node.id)

    # ------------------------------------------------------------------
    # Descendants
    # ------------------------------------------------------------------

    def _members(self, group_id: str) -> list[Node]:
        """
        Direct children in persisted order, then nodes whose parent pointer
        names this group but which are missing from its children list (an
        interrupted move leaves them there).
        """
        result = self.children(group_id)
        seen = {n.id for n in result}
        result.extend(g for g in self.tree.groups.values() if g.parent_id == group_id and g.id not in seen)
        result.extend(s for s in self.tree.stories.values() if s.story_group_id == group_id and s.id not in seen)
        return result

    def _walk(self, group_id: str, seen: set[str] | None = None) -> list[Node]:
        """Depth-first descendants of group_id. Each node is visited once."""
        seen = {group_id} if seen is None else seen
        result: list[Node] = []
        for node in self._members(group_id):
            if node.id in seen:
                continue
            seen.add(node.id)
            result.append(node)
            if node.is_group:
                result.extend(self._walk(node.id, seen))
        return result

    def descendant_stories(self, group_id: str) -> list[Story]:
        return [n for n in self._walk(group_id) if not n.is_group]

    def descendant_groups(self, group_id: str) -> list[StoryGroup]:
        return [n for n in self._walk(group_id) if n.is_group]

    def is_descendant(self, node_id: str, ancestor_id: str) -> bool:
        """True when node_id sits anywhere below ancestor_id."""
        current = self.find(node_id)
        while current is not None and current.parent_id is not None:
            if current.parent_id == ancestor_id:
                return True
            current = self.tree.groups.get(current.parent_id)
        return False

    # ------------------------------------------------------------------
    # Deletion
    # ------------------------------------------------------------------

    def deletability(self, node: Node) -> tuple[bool, LinkReason | None]:
        if node.is_group:
            stories = self.descendant_stories(node.id)
            if any(self.is_link_origin(s.id) for s in stories):
                return False, LinkReason.GROUP_CONTAINS_ORIGIN
            if any(self.is_link_destination(s.id) for s in stories):
                return False, LinkReason.GROUP_CONTAINS_DESTINATION
            return True, None
        if self.is_link_origin(node.id):
            return False, LinkReason.STORY_IS_ORIGIN
        if self.is_link_destination(node.id):
            return False, LinkReason.STORY_IS_DESTINATION
        return True, None

    def deletion_message(self, node: Node) -> str:
        deletable, _ = self.deletability(node)
        if node.is_group:
            if deletable:
                return (
                    f"The story group {node.name} and all its stories in it will be deleted. "
                    "This action cannot be undone."
                )
            return f"The story group {node.name} cannot be deleted as it contains links."
        if deletable:
            return f"The story {node.title} will be deleted. This action cannot be undone."
        return f"The story {node.title} cannot be deleted as it is linked to another story."

    def orphan_events(self, stories: Iterable[Story]) -> set[str]:
        """Event ids used by `stories` and by no other story in the project."""
        stories = list(stories)
        removed_ids = {s.id for s in stories}
        candidates = {e for s in stories for e in s.events}
        still_used = {
            e for s in self.tree.stories.values() if s.id not in removed_ids for e in s.events
        }
        return candidates - still_used

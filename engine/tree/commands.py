"""
Storyline Tree: Commands

The mutation protocol for the story forest. Each command:
  1. loads a fresh ProjectTree snapshot through TreeStorage
  2. validates against it with TreeStore (never against cached state)
  3. issues storage primitives
  4. notifies subscribers with a TreeChange

Commands either complete or raise a TreeError. Multi-document sequences are
ordered so that a command failing halfway can simply be retried: removals
tolerate ids that are already gone, and the node being deleted is removed
last so a retry still finds it. Response collection is its own step: when it
fails the command raises with the candidate set, which can be collected again
without repeating the tree change.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable, Iterable

from engine.tree.errors import (
    InvalidLink,
    InvalidMove,
    LinkedNodeError,
    NotFound,
    ResponseCollectionError,
    TreeError,
)
from engine.tree.responses import ResponseCollector
from engine.tree.storage import TreeStorage
from engine.tree.store import TreeStore
from engine.tree.types import (
    Checkpoint,
    DeleteResult,
    LinkReason,
    Node,
    Project,
    Story,
    StoryGroup,
    TreeChange,
    new_id,
)

logger = logging.getLogger(__name__)

Subscriber = Callable[[TreeChange], Awaitable[None] | None]


def _dedupe(values: Iterable[str]) -> list[str]:
    return list(dict.fromkeys(values))


class TreeCommands:
    """
    Command surface over one TreeStorage.

    Args:
        storage: persistence collaborator
        responses: response garbage collector, called after deletions
        new_groups_first: prepend new groups to their parent's order (else append)
        allow_nested_groups: allow story groups inside story groups
    """

    def __init__(
        self,
        storage: TreeStorage,
        responses: ResponseCollector | None = None,
        *,
        new_groups_first: bool = True,
        allow_nested_groups: bool = False,
    ) -> None:
        self.storage = storage
        self.responses = responses
        self.new_groups_first = new_groups_first
        self.allow_nested_groups = allow_nested_groups
        self._subscribers: list[Subscriber] = []

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register a callback for TreeChange notifications. Returns an unsubscribe function."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    async def _notify(self, kind: str, project_id: str, ids: list[str]) -> None:
        change = TreeChange(kind=kind, project_id=project_id, ids=ids)
        for callback in list(self._subscribers):
            try:
                result = callback(change)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("tree: subscriber failed for %s in project %s", kind, project_id)

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    async def load(self, project_id: str) -> TreeStore:
        """Fresh query surface for a project. Raises NotFound."""
        return TreeStore(await self.storage.load_tree(project_id))

    async def _resolve(self, node_id: str) -> tuple[TreeStore, Node]:
        node: Node | None = await self.storage.get_group(node_id)
        if node is None:
            node = await self.storage.get_story(node_id)
        if node is None:
            raise NotFound("node", node_id)
        store = await self.load(node.project_id)
        return store, store.get_node(node_id)

    # ------------------------------------------------------------------
    # Insert
    # ------------------------------------------------------------------

    async def create_project(self, name: str, project_id: str | None = None) -> Project:
        project = Project(id=project_id or new_id(), name=name)
        await self.storage.insert_project(project)
        logger.info("tree: created project %s (%r)", project.id, name)
        return project

    async def insert_group(self, project_id: str, name: str, parent_id: str | None = None) -> str:
        """Create a story group. Raises DuplicateName, NotFound, InvalidMove."""
        name = (name or "").strip()
        if not name:
            raise TreeError("Group name is required")

        store = await self.load(project_id)
        if parent_id is not None:
            if not self.allow_nested_groups:
                raise InvalidMove("Story groups cannot be nested in this project")
            store.get_group(parent_id)

        group = StoryGroup(id=new_id(), project_id=project_id, name=name, parent_id=parent_id)
        await self.storage.insert_group(group)
        await self.storage.insert_child(
            project_id, parent_id, group.id, 0 if self.new_groups_first else None
        )

        logger.info("tree: inserted group %s (%r) in project %s", group.id, name, project_id)
        await self._notify("group.insert", project_id, [group.id])
        return group.id

    async def insert_story(
        self,
        group_id: str,
        project_id: str,
        title: str | None = None,
        body: str = "",
        events: Iterable[str] = (),
    ) -> str:
        """Create a story at the end of a group. An empty title defaults to "<group> (<n>)"."""
        store = await self.load(project_id)
        group = store.get_group(group_id)

        title = (title or "").strip() or f"{group.name} ({len(group.children) + 1})"
        story = Story(
            id=new_id(),
            project_id=project_id,
            story_group_id=group_id,
            title=title,
            body=body,
            events=_dedupe(events),
        )
        await self.storage.insert_story(story)
        await self.storage.insert_child(project_id, group_id, story.id, None)

        logger.info("tree: inserted story %s (%r) in group %s", story.id, title, group_id)
        await self._notify("story.insert", project_id, [story.id])
        return story.id

    # ------------------------------------------------------------------
    # Update
    # ------------------------------------------------------------------

    async def rename_node(self, node_id: str, new_name: str) -> int:
        """Rename a group or story. Empty names are ignored. Returns the update count."""
        new_name = (new_name or "").strip()
        if not new_name:
            return 0

        _, node = await self._resolve(node_id)
        if node.is_group:
            count = await self.storage.update_group_fields(node_id, {"name": new_name})
        else:
            count = await self.storage.update_story_fields(node_id, {"title": new_name})

        await self._notify("node.rename", node.project_id, [node_id])
        return count

    async def update_group(
        self,
        group_id: str,
        *,
        selected: bool | None = None,
        is_expanded: bool | None = None,
    ) -> int:
        """Toggle a group's focus or expansion flags."""
        group = await self.storage.get_group(group_id)
        if group is None:
            raise NotFound("story group", group_id)

        fields: dict[str, bool] = {}
        if selected is not None:
            fields["selected"] = selected
        if is_expanded is not None:
            fields["is_expanded"] = is_expanded
        if not fields:
            return 0

        count = await self.storage.update_group_fields(group_id, fields)
        await self._notify("group.update", group.project_id, [group_id])
        return count

    async def update_story(
        self,
        story_id: str,
        *,
        body: str | None = None,
        events: Iterable[str] | None = None,
    ) -> int:
        """
        Edit a story's body or response events.

        Events dropped from the story are handed to the response collector
        when no other story still uses them.
        """
        store, node = await self._resolve(story_id)
        if node.is_group:
            raise NotFound("story", story_id)

        fields: dict[str, object] = {}
        orphans: set[str] = set()
        if body is not None:
            fields["body"] = body
        if events is not None:
            new_events = _dedupe(events)
            fields["events"] = new_events
            dropped = Story(
                id=node.id,
                project_id=node.project_id,
                story_group_id=node.story_group_id,
                title=node.title,
                events=[e for e in node.events if e not in new_events],
            )
            orphans = store.orphan_events([dropped])
        if not fields:
            return 0

        count = await self.storage.update_story_fields(story_id, fields)
        await self.collect_responses(orphans, node.project_id)

        await self._notify("story.update", node.project_id, [story_id])
        return count

    async def collect_responses(self, event_ids: Iterable[str], project_id: str) -> int:
        """
        Remove bot responses keyed by event_ids that no story uses any more.

        Safe to call again with the same set. Raises ResponseCollectionError
        carrying the set when the collector fails.
        """
        events = set(event_ids)
        if not events or self.responses is None:
            return 0
        try:
            return await self.responses.delete_responses_removed_from_stories(events, project_id)
        except Exception as e:
            logger.warning("tree: response collection failed in project %s: %r", project_id, e)
            raise ResponseCollectionError(project_id, events) from e

    # ------------------------------------------------------------------
    # Delete
    # ------------------------------------------------------------------

    async def deletability(self, node_id: str) -> tuple[bool, LinkReason | None, str]:
        """(deletable, reason, message) for the confirmation dialog."""
        store, node = await self._resolve(node_id)
        deletable, reason = store.deletability(node)
        return deletable, reason, store.deletion_message(node)

    async def delete_node(self, node_id: str) -> DeleteResult:
        """
        Delete a story, or a group with everything below it.

        Raises:
            NotFound: the node does not exist (already deleted)
            LinkedNodeError: the node, or a story below it, is a link origin or destination
            ResponseCollectionError: the stories are gone but their orphaned responses
                were not collected; re-run collect_responses with the carried set
        """
        store, node = await self._resolve(node_id)

        deletable, reason = store.deletability(node)
        if not deletable:
            message = store.deletion_message(node)
            logger.warning("tree: refused to delete %s: %s", node_id, reason.value)
            raise LinkedNodeError(reason, message)

        if node.is_group:
            stories = store.descendant_stories(node.id)
            groups = [g.id for g in store.descendant_groups(node.id)] + [node.id]
        else:
            stories = [node]
            groups = []
        orphans = store.orphan_events(stories)

        # Groups go last: while the node exists a retry can still find it.
        await self.storage.pull_child(node.project_id, node.parent_id, node.id)
        await self.storage.delete_stories([s.id for s in stories])
        await self.collect_responses(orphans, node.project_id)
        if groups:
            await self.storage.delete_groups(groups)

        deleted_ids = groups + [s.id for s in stories]
        logger.info(
            "tree: deleted %d nodes under %s in project %s (%d orphaned events)",
            len(deleted_ids),
            node_id,
            node.project_id,
            len(orphans),
        )
        await self._notify("node.delete", node.project_id, deleted_ids)
        return DeleteResult(deleted_ids=deleted_ids, orphan_events=orphans)

    # ------------------------------------------------------------------
    # Move
    # ------------------------------------------------------------------

    async def move_node(self, node_id: str, new_parent_id: str | None, new_index: int) -> None:
        """
        Move a node under new_parent_id at new_index. None targets the top-level order.

        Raises InvalidMove for cycles, stories outside groups, and nesting
        when it is disabled.
        """
        if new_index < 0:
            raise InvalidMove(f"Invalid position {new_index}")

        store, node = await self._resolve(node_id)

        if new_parent_id is None:
            if not node.is_group:
                raise InvalidMove("A story must belong to a story group")
        else:
            if new_parent_id == node_id or store.is_descendant(new_parent_id, node_id):
                raise InvalidMove(f"Moving {node_id} into {new_parent_id} would create a cycle")
            target = store.get_node(new_parent_id)
            if not target.is_group:
                raise InvalidMove("Only story groups can contain other nodes")
            if node.is_group and not self.allow_nested_groups:
                raise InvalidMove("Story groups cannot be nested in this project")

        old_parent_id = node.parent_id
        await self.storage.pull_child(node.project_id, old_parent_id, node_id)
        await self.storage.insert_child(node.project_id, new_parent_id, node_id, new_index)
        if old_parent_id != new_parent_id:
            if node.is_group:
                await self.storage.update_group_fields(node_id, {"parent_id": new_parent_id})
            else:
                await self.storage.update_story_fields(node_id, {"story_group_id": new_parent_id})

        await self._notify("node.move", node.project_id, [node_id])

    # ------------------------------------------------------------------
    # Links
    # ------------------------------------------------------------------

    async def add_checkpoint(
        self,
        story_id: str,
        destination_id: str,
        branch_path: Iterable[str] = (),
    ) -> int:
        """Link story_id to destination_id. Returns 0 if the link already exists."""
        store, node = await self._resolve(story_id)
        if node.is_group:
            raise InvalidLink("Only stories can be linked")
        if destination_id == story_id:
            raise InvalidLink("A story cannot link to itself")

        destination = store.find(destination_id)
        if destination is None:
            if await self.storage.get_story(destination_id) is not None:
                raise InvalidLink("Links must stay within the project")
            raise NotFound("story", destination_id)
        if destination.is_group:
            raise InvalidLink("Links must point to a story")

        checkpoint = Checkpoint(destination_id=destination_id, branch_path=list(branch_path))
        if checkpoint in node.checkpoints:
            return 0

        count = await self.storage.update_story_fields(
            story_id, {"checkpoints": [*node.checkpoints, checkpoint]}
        )
        await self._notify("story.link", node.project_id, [story_id, destination_id])
        return count

    async def remove_checkpoint(self, story_id: str, destination_id: str) -> int:
        """Drop every link from story_id to destination_id."""
        _, node = await self._resolve(story_id)
        if node.is_group:
            raise InvalidLink("Only stories can be linked")

        remaining = [c for c in node.checkpoints if c.destination_id != destination_id]
        if len(remaining) == len(node.checkpoints):
            return 0

        count = await self.storage.update_story_fields(story_id, {"checkpoints": remaining})
        await self._notify("story.unlink", node.project_id, [story_id, destination_id])
        return count

"""
Deletion: link-safety refusals, cascades, order preservation and response
garbage collection.
"""

import pytest

from engine.tree.commands import TreeCommands
from engine.tree.errors import LinkedNodeError, NotFound, ResponseCollectionError
from engine.tree.responses import MemoryResponses
from engine.tree.storage import MemoryStorage
from engine.tree.types import LinkReason


async def make_group(commands, project_id, name, *titles, events=None):
    group_id = await commands.insert_group(project_id, name)
    story_ids = []
    for title in titles:
        story_ids.append(
            await commands.insert_story(group_id, project_id, title, events=(events or {}).get(title, ()))
        )
    return group_id, story_ids


class TestDeleteStory:
    async def test_delete_unlinked_story(self, commands, storage, project_id):
        group_id, (a, b, c) = await make_group(commands, project_id, "Groupo", "A", "B", "C")

        result = await commands.delete_node(b)

        assert result.deleted_ids == [b]
        assert b not in storage.stories
        assert storage.groups[group_id].children == [a, c]

    async def test_origin_is_refused(self, commands, storage, project_id):
        _, (a, b) = await make_group(commands, project_id, "Groupo", "A", "B")
        await commands.add_checkpoint(a, b)

        with pytest.raises(LinkedNodeError) as exc:
            await commands.delete_node(a)

        assert exc.value.reason is LinkReason.STORY_IS_ORIGIN
        assert str(exc.value) == "The story A cannot be deleted as it is linked to another story."
        assert a in storage.stories

    async def test_destination_is_refused(self, commands, storage, project_id):
        _, (a, b) = await make_group(commands, project_id, "Groupo", "A", "B")
        await commands.add_checkpoint(a, b)

        with pytest.raises(LinkedNodeError) as exc:
            await commands.delete_node(b)

        assert exc.value.reason is LinkReason.STORY_IS_DESTINATION
        assert b in storage.stories

    async def test_deletable_after_unlink(self, commands, storage, project_id):
        _, (a, b) = await make_group(commands, project_id, "Groupo", "A", "B")
        await commands.add_checkpoint(a, b)
        await commands.remove_checkpoint(a, b)

        await commands.delete_node(b)

        assert b not in storage.stories

    async def test_second_delete_is_not_found(self, commands, project_id):
        _, (a,) = await make_group(commands, project_id, "Groupo", "A")
        await commands.delete_node(a)
        with pytest.raises(NotFound):
            await commands.delete_node(a)


class TestDeleteGroup:
    async def test_cascade(self, commands, storage, project_id):
        keep_id, _ = await make_group(commands, project_id, "Keep", "K")
        group_id, stories = await make_group(commands, project_id, "Groupo", "A", "B")

        result = await commands.delete_node(group_id)

        assert group_id not in storage.groups
        assert all(s not in storage.stories for s in stories)
        assert set(result.deleted_ids) == {group_id, *stories}
        assert storage.projects[project_id].story_groups == [keep_id]

    async def test_group_with_origin_is_refused(self, commands, storage, project_id):
        group_id, (a,) = await make_group(commands, project_id, "Groupo", "A")
        _, (b,) = await make_group(commands, project_id, "Other", "B")
        await commands.add_checkpoint(a, b)

        with pytest.raises(LinkedNodeError) as exc:
            await commands.delete_node(group_id)

        assert exc.value.reason is LinkReason.GROUP_CONTAINS_ORIGIN
        assert exc.value.message == "The story group Groupo cannot be deleted as it contains links."
        assert group_id in storage.groups
        assert a in storage.stories

    async def test_group_with_destination_is_refused(self, commands, project_id):
        _, (a,) = await make_group(commands, project_id, "Groupo", "A")
        other_id, (b,) = await make_group(commands, project_id, "Other", "B")
        await commands.add_checkpoint(a, b)

        with pytest.raises(LinkedNodeError) as exc:
            await commands.delete_node(other_id)

        assert exc.value.reason is LinkReason.GROUP_CONTAINS_DESTINATION

    async def test_nested_cascade(self, nested_commands, storage, project_id):
        outer = await nested_commands.insert_group(project_id, "Outer")
        inner = await nested_commands.insert_group(project_id, "Inner", parent_id=outer)
        deep = await nested_commands.insert_story(inner, project_id, "Deep")
        top = await nested_commands.insert_story(outer, project_id, "Top")

        result = await nested_commands.delete_node(outer)

        assert set(result.deleted_ids) == {outer, inner, deep, top}
        assert storage.groups == {}
        assert storage.stories == {}
        assert storage.projects[project_id].story_groups == []

    async def test_nested_link_blocks_outer_group(self, nested_commands, storage, project_id):
        outer = await nested_commands.insert_group(project_id, "Outer")
        inner = await nested_commands.insert_group(project_id, "Inner", parent_id=outer)
        deep = await nested_commands.insert_story(inner, project_id, "Deep")
        elsewhere = await nested_commands.insert_group(project_id, "Elsewhere")
        target = await nested_commands.insert_story(elsewhere, project_id, "Target")
        await nested_commands.add_checkpoint(deep, target)

        with pytest.raises(LinkedNodeError):
            await nested_commands.delete_node(outer)
        assert inner in storage.groups

    async def test_delete_sub_group_keeps_parent(self, nested_commands, storage, project_id):
        outer = await nested_commands.insert_group(project_id, "Outer")
        top = await nested_commands.insert_story(outer, project_id, "Top")
        inner = await nested_commands.insert_group(project_id, "Inner", parent_id=outer)

        await nested_commands.delete_node(inner)

        assert storage.groups[outer].children == [top]

    async def test_sub_group_missing_from_children_list_is_deleted(self, nested_commands, storage, project_id):
        outer = await nested_commands.insert_group(project_id, "Outer")
        inner = await nested_commands.insert_group(project_id, "Inner", parent_id=outer)
        deep = await nested_commands.insert_story(inner, project_id, "Deep")
        # An interrupted move leaves the parent pointer but not the child entry.
        await storage.pull_child(project_id, outer, inner)

        result = await nested_commands.delete_node(outer)

        assert set(result.deleted_ids) == {outer, inner, deep}
        assert storage.groups == {}
        assert storage.stories == {}


class TestResponseCollection:
    async def test_orphaned_responses_are_removed(self, commands, responses, project_id):
        for key in ("utter_hi", "utter_bye", "utter_shared"):
            responses.add(project_id, key)
        group_id, _ = await make_group(
            commands,
            project_id,
            "Groupo",
            "A",
            "B",
            events={"A": ["utter_hi", "utter_shared"], "B": ["utter_bye"]},
        )
        await make_group(commands, project_id, "Keep", "K", events={"K": ["utter_shared"]})

        result = await commands.delete_node(group_id)

        assert result.orphan_events == {"utter_hi", "utter_bye"}
        assert responses.keys(project_id) == {"utter_shared"}

    async def test_no_collection_without_orphans(self, commands, responses, project_id):
        _, (a,) = await make_group(commands, project_id, "Groupo", "A")
        await commands.delete_node(a)
        assert responses.calls == []

    async def test_other_projects_untouched(self, commands, responses, project_id):
        other = await commands.create_project("Other bot")
        responses.add(other.id, "utter_hi")
        responses.add(project_id, "utter_hi")
        _, (a,) = await make_group(commands, project_id, "Groupo", "A", events={"A": ["utter_hi"]})

        await commands.delete_node(a)

        assert responses.keys(project_id) == set()
        assert responses.keys(other.id) == {"utter_hi"}

    async def test_non_response_events_are_ignored(self, commands, responses, project_id):
        _, (a,) = await make_group(commands, project_id, "Groupo", "A", events={"A": ["action_check"]})
        result = await commands.delete_node(a)
        assert result.orphan_events == {"action_check"}
        assert responses.calls == [(set(), project_id)]


class FailingDeleteStorage(MemoryStorage):
    """Fails one bulk delete, after the node has been pulled from its parent."""

    def __init__(self):
        super().__init__()
        self.fail_next_delete = False
        self.fail_next_group_delete = False

    async def delete_stories(self, story_ids):
        if self.fail_next_delete:
            self.fail_next_delete = False
            raise ConnectionError("connection dropped")
        return await super().delete_stories(story_ids)

    async def delete_groups(self, group_ids):
        if self.fail_next_group_delete:
            self.fail_next_group_delete = False
            raise ConnectionError("connection dropped")
        return await super().delete_groups(group_ids)


class FlakyResponses(MemoryResponses):
    """Collector that fails its next call."""

    def __init__(self, storage):
        super().__init__(storage)
        self.fail_next = False

    async def delete_responses_removed_from_stories(self, event_ids, project_id):
        if self.fail_next:
            self.fail_next = False
            raise ConnectionError("responses unavailable")
        return await super().delete_responses_removed_from_stories(event_ids, project_id)


class TestRetry:
    async def test_retry_completes_interrupted_delete(self):
        storage = FailingDeleteStorage()
        commands = TreeCommands(storage, MemoryResponses(storage))
        project = await commands.create_project("bot")
        group_id, (a, b) = await make_group(commands, project.id, "Groupo", "A", "B")

        storage.fail_next_delete = True
        with pytest.raises(ConnectionError):
            await commands.delete_node(group_id)

        assert group_id in storage.groups
        assert storage.projects[project.id].story_groups == []

        result = await commands.delete_node(group_id)

        assert set(result.deleted_ids) == {group_id, a, b}
        assert storage.groups == {}
        assert storage.stories == {}

    async def test_failed_group_delete_has_already_collected_responses(self):
        storage = FailingDeleteStorage()
        responses = MemoryResponses(storage)
        commands = TreeCommands(storage, responses)
        project = await commands.create_project("bot")
        responses.add(project.id, "utter_hi")
        group_id, (a,) = await make_group(commands, project.id, "Groupo", "A", events={"A": ["utter_hi"]})

        storage.fail_next_group_delete = True
        with pytest.raises(ConnectionError):
            await commands.delete_node(group_id)

        assert responses.keys(project.id) == set()
        assert a not in storage.stories

        result = await commands.delete_node(group_id)

        assert result.deleted_ids == [group_id]
        assert storage.groups == {}


class TestCollectionRetry:
    @pytest.fixture
    async def flaky(self):
        storage = MemoryStorage()
        responses = FlakyResponses(storage)
        commands = TreeCommands(storage, responses)
        project = await commands.create_project("bot")
        responses.add(project.id, "utter_hi")
        return storage, responses, commands, project.id

    async def test_story_delete_reports_uncollected_events(self, flaky):
        storage, responses, commands, project_id = flaky
        _, (a,) = await make_group(commands, project_id, "Groupo", "A", events={"A": ["utter_hi"]})

        responses.fail_next = True
        with pytest.raises(ResponseCollectionError) as exc:
            await commands.delete_node(a)

        assert a not in storage.stories
        assert exc.value.project_id == project_id
        assert exc.value.orphan_events == {"utter_hi"}
        assert isinstance(exc.value.__cause__, ConnectionError)
        with pytest.raises(NotFound):
            await commands.delete_node(a)

        assert await commands.collect_responses(exc.value.orphan_events, exc.value.project_id) == 1
        assert responses.keys(project_id) == set()

    async def test_group_survives_failed_collection(self, flaky):
        storage, responses, commands, project_id = flaky
        group_id, (a,) = await make_group(commands, project_id, "Groupo", "A", events={"A": ["utter_hi"]})

        responses.fail_next = True
        with pytest.raises(ResponseCollectionError) as exc:
            await commands.delete_node(group_id)

        assert group_id in storage.groups
        assert a not in storage.stories

        result = await commands.delete_node(group_id)
        assert result.deleted_ids == [group_id]
        assert result.orphan_events == set()

        await commands.collect_responses(exc.value.orphan_events, project_id)
        assert responses.keys(project_id) == set()

    async def test_collecting_twice_is_harmless(self, flaky):
        _, responses, commands, project_id = flaky
        assert await commands.collect_responses({"utter_hi"}, project_id) == 1
        assert await commands.collect_responses({"utter_hi"}, project_id) == 0

    async def test_story_update_reports_uncollected_events(self, flaky):
        _, responses, commands, project_id = flaky
        _, (a,) = await make_group(commands, project_id, "Groupo", "A", events={"A": ["utter_hi"]})

        responses.fail_next = True
        with pytest.raises(ResponseCollectionError) as exc:
            await commands.update_story(a, events=[])

        assert exc.value.orphan_events == {"utter_hi"}
        assert responses.keys(project_id) == {"utter_hi"}

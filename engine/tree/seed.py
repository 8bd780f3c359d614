"""Starter story groups for a freshly created project."""

from __future__ import annotations

from engine.tree.commands import TreeCommands

INTRO_GROUP = "Intro stories"
DEFAULT_GROUP = "Default stories"


async def create_intro_story_group(commands: TreeCommands, project_id: str) -> str:
    group_id = await commands.insert_group(project_id, INTRO_GROUP)
    await commands.insert_story(
        group_id,
        project_id,
        title="Get started",
        body="* get_started\n    - utter_get_started",
        events=["utter_get_started"],
    )
    return group_id


async def create_default_story_group(commands: TreeCommands, project_id: str) -> str:
    group_id = await commands.insert_group(project_id, DEFAULT_GROUP)
    await commands.insert_story(
        group_id,
        project_id,
        title="Greetings",
        body="* chitchat.greet\n    - utter_hi",
        events=["utter_hi"],
    )
    await commands.insert_story(
        group_id,
        project_id,
        title="Farewells",
        body="* chitchat.bye\n    - utter_bye",
        events=["utter_bye"],
    )
    return group_id


async def seed_project(commands: TreeCommands, project_id: str) -> list[str]:
    """Create the default and intro groups. Intro ends up first when new groups are prepended."""
    default_id = await create_default_story_group(commands, project_id)
    intro_id = await create_intro_story_group(commands, project_id)
    return [default_id, intro_id]

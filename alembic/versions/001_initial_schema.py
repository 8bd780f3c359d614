"""Initial schema: projects, story groups, stories, bot responses.

Revision ID: 001
Revises:
Create Date: 2026-10-19
"""

from alembic import op

# revision identifiers, used by Alembic.
revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # Projects hold the top-level story group order
    op.execute("""
        CREATE TABLE projects (
            id TEXT PRIMARY KEY,
            name TEXT NOT NULL DEFAULT '',
            story_groups JSONB NOT NULL DEFAULT '[]'::jsonb,
            created_at TIMESTAMPTZ DEFAULT now()
        );
    """)

    op.execute("""
        CREATE TABLE story_groups (
            id TEXT PRIMARY KEY,
            project_id TEXT NOT NULL REFERENCES projects(id) ON DELETE CASCADE,
            name TEXT NOT NULL,
            parent_id TEXT REFERENCES story_groups(id) ON DELETE CASCADE,
            children JSONB NOT NULL DEFAULT '[]'::jsonb,
            selected BOOLEAN NOT NULL DEFAULT false,
            is_expanded BOOLEAN NOT NULL DEFAULT true,
            created_at TIMESTAMPTZ DEFAULT now(),
            updated_at TIMESTAMPTZ DEFAULT now()
        );
    """)

    # Group names are unique per project; concurrent inserts race on this index
    op.execute("""
        CREATE UNIQUE INDEX idx_story_groups_project_name ON story_groups(project_id, name);
    """)

    op.execute("""
        CREATE TABLE stories (
            id TEXT PRIMARY KEY,
            project_id TEXT NOT NULL REFERENCES projects(id) ON DELETE CASCADE,
            story_group_id TEXT NOT NULL,
            title TEXT NOT NULL,
            body TEXT NOT NULL DEFAULT '',
            events JSONB NOT NULL DEFAULT '[]'::jsonb,
            checkpoints JSONB NOT NULL DEFAULT '[]'::jsonb,
            created_at TIMESTAMPTZ DEFAULT now(),
            updated_at TIMESTAMPTZ DEFAULT now()
        );
    """)

    op.execute("""
        CREATE INDEX idx_stories_project ON stories(project_id);
    """)

    op.execute("""
        CREATE INDEX idx_stories_group ON stories(story_group_id);
    """)

    # Lookups of "which stories still use this response key"
    op.execute("""
        CREATE INDEX idx_stories_events ON stories USING GIN (events);
    """)

    op.execute("""
        CREATE TABLE bot_responses (
            id TEXT PRIMARY KEY,
            project_id TEXT NOT NULL REFERENCES projects(id) ON DELETE CASCADE,
            key TEXT NOT NULL CHECK (key LIKE 'utter\\_%'),
            response_values JSONB NOT NULL DEFAULT '[]'::jsonb,
            created_at TIMESTAMPTZ DEFAULT now(),
            updated_at TIMESTAMPTZ DEFAULT now()
        );
    """)

    op.execute("""
        CREATE UNIQUE INDEX idx_bot_responses_project_key ON bot_responses(project_id, key);
    """)


def downgrade():
    op.execute("DROP TABLE IF EXISTS bot_responses")
    op.execute("DROP TABLE IF EXISTS stories")
    op.execute("DROP TABLE IF EXISTS story_groups")
    op.execute("DROP TABLE IF EXISTS projects")

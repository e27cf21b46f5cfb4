"""Skill catalog and instructional videos.

Revision ID: 002_skill_catalog
Revises: 001_users_and_auth
Create Date: 2026-10-12
"""

from collections.abc import Sequence

from alembic import op

revision: str = "002_skill_catalog"
down_revision: str | None = "001_users_and_auth"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE IF NOT EXISTS skills (
            id BIGSERIAL PRIMARY KEY,
            name VARCHAR(100) NOT NULL,
            name_normalized VARCHAR(100) UNIQUE NOT NULL,
            category VARCHAR(50) NOT NULL,
            subcategory VARCHAR(50),
            description TEXT NOT NULL,
            tags JSONB NOT NULL DEFAULT '[]',
            is_active BOOLEAN NOT NULL DEFAULT true,
            usage_count INTEGER NOT NULL DEFAULT 0,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_skills_category
        ON skills(category) WHERE is_active
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_skills_usage
        ON skills(usage_count DESC)
    """)

    op.execute("""
        CREATE TABLE IF NOT EXISTS skill_videos (
            id BIGSERIAL PRIMARY KEY,
            skill_id BIGINT NOT NULL REFERENCES skills(id) ON DELETE CASCADE,
            title VARCHAR(200),
            url VARCHAR(500) NOT NULL,
            duration INTEGER,
            position INTEGER NOT NULL DEFAULT 0
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_skill_videos_skill
        ON skill_videos(skill_id, position)
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS skill_videos")
    op.execute("DROP TABLE IF EXISTS skills")

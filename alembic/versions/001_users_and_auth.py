"""Users, token ledger, badges and account recovery tokens.

Revision ID: 001_users_and_auth
Revises: None
Create Date: 2026-10-12
"""

from collections.abc import Sequence

from alembic import op

revision: str = "001_users_and_auth"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # --- Users ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS users (
            id BIGSERIAL PRIMARY KEY,
            name VARCHAR(100) NOT NULL,
            email VARCHAR(320) UNIQUE NOT NULL,
            username VARCHAR(50) UNIQUE,
            phone VARCHAR(32),
            password_hash VARCHAR(256) NOT NULL,
            bio VARCHAR(500) NOT NULL DEFAULT 'New SkillExchange member',
            location VARCHAR(100),
            avatar_url TEXT,
            rating DOUBLE PRECISION NOT NULL DEFAULT 0,
            total_exchanges INTEGER NOT NULL DEFAULT 0,
            token_balance INTEGER NOT NULL DEFAULT 0,
            tokens_spent INTEGER NOT NULL DEFAULT 0,
            is_active BOOLEAN NOT NULL DEFAULT true,
            is_admin BOOLEAN NOT NULL DEFAULT false,
            email_verified BOOLEAN NOT NULL DEFAULT false,
            email_notifications JSONB NOT NULL DEFAULT '{}',
            reset_method VARCHAR(8),
            otp_hash VARCHAR(128),
            otp_expires_at TIMESTAMPTZ,
            otp_attempts INTEGER NOT NULL DEFAULT 0,
            last_login TIMESTAMPTZ,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_users_discovery
        ON users(is_active, rating DESC, total_exchanges DESC)
    """)

    # --- User skills (offered / wanted) ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_skills (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            kind VARCHAR(8) NOT NULL CHECK (kind IN ('offered', 'wanted')),
            name VARCHAR(100) NOT NULL,
            category VARCHAR(50),
            subcategory VARCHAR(50),
            experience_level VARCHAR(16) NOT NULL DEFAULT 'Intermediate',
            years_of_experience INTEGER,
            description VARCHAR(500),
            tags JSONB NOT NULL DEFAULT '[]',
            verified BOOLEAN NOT NULL DEFAULT false,
            verified_at TIMESTAMPTZ,
            proficiency_score INTEGER,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE UNIQUE INDEX IF NOT EXISTS uq_user_skills_name
        ON user_skills(user_id, kind, LOWER(name))
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_user_skills_lookup
        ON user_skills(kind, LOWER(name))
    """)

    op.execute("""
        CREATE TABLE IF NOT EXISTS skill_endorsements (
            id BIGSERIAL PRIMARY KEY,
            user_skill_id BIGINT NOT NULL REFERENCES user_skills(id) ON DELETE CASCADE,
            endorser_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            endorser_name VARCHAR(100) NOT NULL,
            comment VARCHAR(500),
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_endorsement_per_endorser UNIQUE (user_skill_id, endorser_id)
        )
    """)

    # --- Badges ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_badges (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            badge VARCHAR(64) NOT NULL,
            earned_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_user_badge UNIQUE (user_id, badge)
        )
    """)

    # --- Recovery tokens (sha256 hashes only) ---
    for table in ("password_reset_tokens", "email_verification_tokens"):
        op.execute(f"""
            CREATE TABLE IF NOT EXISTS {table} (
                id BIGSERIAL PRIMARY KEY,
                user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
                token_hash VARCHAR(128) UNIQUE NOT NULL,
                expires_at TIMESTAMPTZ NOT NULL,
                used_at TIMESTAMPTZ,
                created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
            )
        """)
        op.execute(f"CREATE INDEX IF NOT EXISTS idx_{table}_user ON {table}(user_id)")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS email_verification_tokens")
    op.execute("DROP TABLE IF EXISTS password_reset_tokens")
    op.execute("DROP TABLE IF EXISTS user_badges")
    op.execute("DROP TABLE IF EXISTS skill_endorsements")
    op.execute("DROP TABLE IF EXISTS user_skills")
    op.execute("DROP TABLE IF EXISTS users")

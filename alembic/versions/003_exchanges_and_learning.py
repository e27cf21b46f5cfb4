"""Exchanges, conversations, learning paths and the token ledger.

The ledger is created here because its rows reference exchanges.

Revision ID: 003_exchanges_and_learning
Revises: 002_skill_catalog
Create Date: 2026-10-13
"""

from collections.abc import Sequence

from alembic import op

revision: str = "003_exchanges_and_learning"
down_revision: str | None = "002_skill_catalog"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # --- Exchanges ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS exchanges (
            id BIGSERIAL PRIMARY KEY,
            requester_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            provider_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            requested_skill VARCHAR(100) NOT NULL,
            offered_skill VARCHAR(100) NOT NULL,
            requested_skill_id BIGINT REFERENCES skills(id) ON DELETE SET NULL,
            offered_skill_id BIGINT REFERENCES skills(id) ON DELETE SET NULL,
            description TEXT,
            status VARCHAR(16) NOT NULL DEFAULT 'pending'
                CHECK (status IN ('pending', 'active', 'completed', 'cancelled', 'rejected')),
            requester_rating INTEGER CHECK (requester_rating BETWEEN 1 AND 5),
            requester_review TEXT,
            provider_rating INTEGER CHECK (provider_rating BETWEEN 1 AND 5),
            provider_review TEXT,
            requester_learning_path_id BIGINT,
            provider_learning_path_id BIGINT,
            learning_path_id BIGINT,
            learning_completed BOOLEAN NOT NULL DEFAULT false,
            accepted_at TIMESTAMPTZ,
            completed_at TIMESTAMPTZ,
            rewarded_at TIMESTAMPTZ,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ,
            CHECK (requester_id <> provider_id)
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS idx_exchanges_requester ON exchanges(requester_id, status)")
    op.execute("CREATE INDEX IF NOT EXISTS idx_exchanges_provider ON exchanges(provider_id, status)")

    # --- Token ledger ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS token_ledger (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            amount INTEGER NOT NULL,
            entry_type VARCHAR(16) NOT NULL CHECK (entry_type IN ('earned', 'spent', 'bonus', 'penalty')),
            reason VARCHAR(256) NOT NULL,
            exchange_id BIGINT REFERENCES exchanges(id) ON DELETE SET NULL,
            idempotency_key VARCHAR(256) UNIQUE,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS idx_token_ledger_user ON token_ledger(user_id, created_at DESC)")

    # --- Conversations ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS conversations (
            id BIGSERIAL PRIMARY KEY,
            exchange_id BIGINT UNIQUE NOT NULL REFERENCES exchanges(id) ON DELETE CASCADE,
            participant_one_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            participant_two_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            last_message VARCHAR(500),
            last_message_at TIMESTAMPTZ,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS messages (
            id BIGSERIAL PRIMARY KEY,
            conversation_id BIGINT NOT NULL REFERENCES conversations(id) ON DELETE CASCADE,
            sender_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            content TEXT NOT NULL,
            is_read BOOLEAN NOT NULL DEFAULT false,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS idx_messages_conversation ON messages(conversation_id, created_at)")

    # --- Learning paths ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS learning_paths (
            id BIGSERIAL PRIMARY KEY,
            exchange_id BIGINT NOT NULL REFERENCES exchanges(id) ON DELETE CASCADE,
            skill_id BIGINT REFERENCES skills(id) ON DELETE SET NULL,
            skill_name VARCHAR(100) NOT NULL,
            learner_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            instructor_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            total_modules INTEGER NOT NULL DEFAULT 0,
            completed_modules INTEGER NOT NULL DEFAULT 0,
            progress_percentage INTEGER NOT NULL DEFAULT 0,
            status VARCHAR(16) NOT NULL DEFAULT 'not-started'
                CHECK (status IN ('not-started', 'in-progress', 'completed', 'cancelled')),
            started_at TIMESTAMPTZ,
            completed_at TIMESTAMPTZ,
            cancelled_at TIMESTAMPTZ,
            cancel_reason VARCHAR(500),
            estimated_duration INTEGER NOT NULL DEFAULT 0,
            actual_duration INTEGER,
            average_score INTEGER,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ,
            CONSTRAINT uq_learning_path_exchange_learner UNIQUE (exchange_id, learner_id)
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS idx_learning_paths_learner ON learning_paths(learner_id)")
    op.execute("CREATE INDEX IF NOT EXISTS idx_learning_paths_instructor ON learning_paths(instructor_id)")

    op.execute("""
        CREATE TABLE IF NOT EXISTS learning_modules (
            id BIGSERIAL PRIMARY KEY,
            learning_path_id BIGINT NOT NULL REFERENCES learning_paths(id) ON DELETE CASCADE,
            position INTEGER NOT NULL,
            title VARCHAR(200) NOT NULL,
            description TEXT NOT NULL DEFAULT '',
            video_url VARCHAR(500) NOT NULL DEFAULT '',
            video_title VARCHAR(200),
            duration INTEGER NOT NULL DEFAULT 45,
            is_completed BOOLEAN NOT NULL DEFAULT false,
            completed_at TIMESTAMPTZ,
            score INTEGER CHECK (score BETWEEN 0 AND 100),
            notes TEXT,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS idx_learning_modules_path ON learning_modules(learning_path_id, position)")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS learning_modules")
    op.execute("DROP TABLE IF EXISTS learning_paths")
    op.execute("DROP TABLE IF EXISTS messages")
    op.execute("DROP TABLE IF EXISTS conversations")
    op.execute("DROP TABLE IF EXISTS token_ledger")
    op.execute("DROP TABLE IF EXISTS exchanges")

"""Unit tests for completion rewards, the token ledger and badges."""

from __future__ import annotations

import pytest
from sqlalchemy import select

from skillswap.db.models import Exchange, TokenLedger, User, UserBadge, UserSkill
from skillswap.exceptions import ValidationError
from skillswap.exchanges.rewards import (
    DEFAULT_TIER_TOKENS,
    complete_exchange,
    milestone_badges,
    taught_level,
    tier_tokens,
)
from skillswap.timeutils import utcnow
from skillswap.users.ledger import award_badge, credit_tokens, get_token_history, ledger_total, spend_tokens


def _user(name: str, offered: list[tuple[str, str]] = (), total_exchanges: int = 0) -> User:
    return User(
        name=name,
        email=f"{name.lower()}@example.com",
        password_hash="not-a-real-hash",
        token_balance=0,
        tokens_spent=0,
        total_exchanges=total_exchanges,
        email_notifications={},
        skills=[UserSkill(kind="offered", name=skill, experience_level=level, tags=[]) for skill, level in offered],
        badges=[],
    )


async def _exchange(db, requester: User, provider: User, requested: str, offered: str) -> Exchange:
    exchange = Exchange(
        requester=requester,
        provider=provider,
        requested_skill=requested,
        offered_skill=offered,
        status="active",
        learning_completed=False,
        created_at=utcnow(),
    )
    db.add(exchange)
    await db.flush()
    return exchange


class TestTiers:
    def test_tier_tokens(self):
        assert tier_tokens("Beginner") == 5
        assert tier_tokens("Intermediate") == 10
        assert tier_tokens("Advanced") == 15
        assert tier_tokens("Expert") == 20

    def test_unknown_tier_uses_default(self):
        assert tier_tokens(None) == DEFAULT_TIER_TOKENS
        assert tier_tokens("Grandmaster") == DEFAULT_TIER_TOKENS

    def test_taught_level_matches_offered_skill_by_name(self):
        instructor = _user("Bob", offered=[("Guitar", "Expert")])
        assert taught_level(instructor, " guitar ") == "Expert"
        assert taught_level(instructor, "Spanish") is None

    def test_milestone_badges(self):
        assert milestone_badges(0) == []
        assert milestone_badges(1) == ["First Exchange"]
        assert milestone_badges(5) == ["First Exchange", "5 Exchanges"]
        assert milestone_badges(12) == ["First Exchange", "5 Exchanges", "Exchange Master"]


class TestCompleteExchange:
    async def test_pays_both_learners_by_tier(self, db_session):
        alice = _user("Alice", offered=[("Spanish", "Advanced")])
        bob = _user("Bob", offered=[("Guitar", "Expert")])
        db_session.add_all([alice, bob])
        await db_session.flush()
        exchange = await _exchange(db_session, alice, bob, "Guitar", "Spanish")

        reward = await complete_exchange(db_session, exchange)

        assert reward is not None
        assert exchange.status == "completed"
        assert exchange.learning_completed is True
        assert exchange.completed_at is not None
        assert reward.tokens == {alice.id: 20, bob.id: 15}
        assert alice.token_balance == 20
        assert bob.token_balance == 15
        assert alice.total_exchanges == 1
        assert bob.total_exchanges == 1
        assert reward.badges[alice.id] == ["First Exchange"]
        assert "First Exchange" in bob.badge_names

    async def test_second_completion_pays_nothing(self, db_session):
        alice = _user("Alice", offered=[("Spanish", "Beginner")])
        bob = _user("Bob")
        db_session.add_all([alice, bob])
        await db_session.flush()
        exchange = await _exchange(db_session, alice, bob, "Guitar", "Spanish")

        first = await complete_exchange(db_session, exchange)
        second = await complete_exchange(db_session, exchange)

        assert first is not None
        assert second is None
        # Bob has no offered Guitar entry, so Alice gets the default tier.
        assert alice.token_balance == DEFAULT_TIER_TOKENS
        assert bob.token_balance == 5
        assert alice.total_exchanges == 1
        entries = (await db_session.execute(select(TokenLedger).where(TokenLedger.exchange_id == exchange.id))).scalars()
        assert len(list(entries)) == 2

    async def test_reaching_five_exchanges_awards_milestone(self, db_session):
        alice = _user("Alice", total_exchanges=4)
        alice.badges = [UserBadge(badge="First Exchange", earned_at=utcnow())]
        bob = _user("Bob")
        db_session.add_all([alice, bob])
        await db_session.flush()
        exchange = await _exchange(db_session, alice, bob, "Chess", "Go")

        reward = await complete_exchange(db_session, exchange)

        assert alice.total_exchanges == 5
        assert reward.badges[alice.id] == ["5 Exchanges"]
        assert alice.badge_names.count("First Exchange") == 1


class TestLedger:
    async def test_balance_equals_ledger_sum(self, db_session):
        user = _user("Carol")
        db_session.add(user)
        await db_session.flush()

        await credit_tokens(db_session, user, 50, "bonus", "Welcome bonus")
        await credit_tokens(db_session, user, 15, "earned", "Completed exchange")
        await spend_tokens(db_session, user, 20, "Premium session")
        await credit_tokens(db_session, user, 5, "penalty", "No-show")

        assert user.token_balance == 40
        assert user.tokens_spent == 20
        assert await ledger_total(db_session, user.id) == user.token_balance

    async def test_idempotency_key_prevents_double_credit(self, db_session):
        user = _user("Dave")
        db_session.add(user)
        await db_session.flush()

        assert await credit_tokens(db_session, user, 50, "bonus", "Welcome", idempotency_key="welcome:dave")
        assert not await credit_tokens(db_session, user, 50, "bonus", "Welcome", idempotency_key="welcome:dave")
        assert user.token_balance == 50
        assert len(await get_token_history(db_session, user.id)) == 1

    async def test_spend_more_than_balance_rejected(self, db_session):
        user = _user("Erin")
        db_session.add(user)
        await db_session.flush()
        with pytest.raises(ValidationError, match="Insufficient tokens"):
            await spend_tokens(db_session, user, 1, "Anything")

    async def test_unknown_entry_type(self, db_session):
        user = _user("Finn")
        db_session.add(user)
        await db_session.flush()
        with pytest.raises(ValueError, match="Unknown ledger entry type"):
            await credit_tokens(db_session, user, 1, "gift", "?")

    async def test_badge_awarded_once(self, db_session):
        user = _user("Gina")
        db_session.add(user)
        await db_session.flush()
        assert await award_badge(db_session, user, "New Member")
        assert not await award_badge(db_session, user, "New Member")
        assert user.badge_names == ["New Member"]

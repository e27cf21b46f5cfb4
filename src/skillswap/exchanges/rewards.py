"""Exchange completion rewards.

Completing an exchange pays each participant tokens sized by the experience
level of the skill they learned, bumps ``total_exchanges`` and awards
milestone badges. The whole operation runs at most once per exchange:
``rewarded_at`` is claimed with a conditional UPDATE, ledger rows carry
per-user idempotency keys and badges are unique per user.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from skillswap.db.models import Exchange, User
from skillswap.notifications.dispatcher import NotificationDispatcher, app_url
from skillswap.timeutils import utcnow
from skillswap.users.ledger import award_badge, credit_tokens

logger = logging.getLogger(__name__)

TIER_TOKENS: dict[str, int] = {
    "Beginner": 5,
    "Intermediate": 10,
    "Advanced": 15,
    "Expert": 20,
}
DEFAULT_TIER_TOKENS = 10

MILESTONE_BADGES: list[tuple[int, str]] = [
    (1, "First Exchange"),
    (5, "5 Exchanges"),
    (10, "Exchange Master"),
]


@dataclass
class CompletionReward:
    """Tokens and badges granted by one exchange completion."""

    exchange_id: int
    tokens: dict[int, int] = field(default_factory=dict)
    badges: dict[int, list[str]] = field(default_factory=dict)


def tier_tokens(experience_level: str | None) -> int:
    return TIER_TOKENS.get(experience_level or "", DEFAULT_TIER_TOKENS)


def taught_level(instructor: User, skill_name: str) -> str | None:
    """Experience level of ``skill_name`` as listed in the instructor's offered skills."""
    wanted = skill_name.strip().lower()
    for entry in instructor.skills_offered:
        if entry.name.strip().lower() == wanted:
            return entry.experience_level
    return None


def milestone_badges(total_exchanges: int) -> list[str]:
    return [badge for threshold, badge in MILESTONE_BADGES if total_exchanges >= threshold]


async def _claim(db: AsyncSession, exchange: Exchange) -> bool:
    """Atomically stamp ``rewarded_at``. Only the first caller wins."""
    now = utcnow()
    result = await db.execute(
        update(Exchange)
        .where(Exchange.id == exchange.id, Exchange.rewarded_at.is_(None))
        .values(rewarded_at=now)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        return False
    set_committed_value(exchange, "rewarded_at", now)
    return True


async def _reward_learner(
    db: AsyncSession, exchange: Exchange, learner: User, instructor: User, skill_name: str, reward: CompletionReward
) -> None:
    amount = tier_tokens(taught_level(instructor, skill_name))
    credited = await credit_tokens(
        db,
        learner,
        amount,
        "earned",
        f"Completed exchange: Learned {skill_name}",
        exchange_id=exchange.id,
        idempotency_key=f"exchange:{exchange.id}:completion-reward:{learner.id}",
    )
    if not credited:
        return
    learner.total_exchanges = (learner.total_exchanges or 0) + 1
    reward.tokens[learner.id] = amount
    awarded = []
    for badge in milestone_badges(learner.total_exchanges):
        if await award_badge(db, learner, badge):
            awarded.append(badge)
    reward.badges[learner.id] = awarded


async def complete_exchange(db: AsyncSession, exchange: Exchange) -> CompletionReward | None:
    """Mark the exchange completed and pay both sides once.

    Returns the reward on the first completion, None if it was already paid.
    The caller commits.
    """
    now = utcnow()
    exchange.status = "completed"
    exchange.learning_completed = True
    exchange.completed_at = now
    exchange.updated_at = now

    if not await _claim(db, exchange):
        await db.flush()
        logger.info("Exchange %s completed again; rewards already paid", exchange.id)
        return None

    reward = CompletionReward(exchange_id=exchange.id)
    requester, provider = exchange.requester, exchange.provider
    # The requester learns the requested skill from the provider, and vice versa.
    await _reward_learner(db, exchange, requester, provider, exchange.requested_skill, reward)
    await _reward_learner(db, exchange, provider, requester, exchange.offered_skill, reward)
    await db.flush()
    logger.info("Exchange %s completion rewarded: %s", exchange.id, reward.tokens)
    return reward


def notify_completion(notifier: NotificationDispatcher, exchange: Exchange, reward: CompletionReward | None) -> None:
    """Tell both participants their exchange finished."""
    if reward is None:
        return
    pairs = ((exchange.requester, exchange.provider), (exchange.provider, exchange.requester))
    for user, partner in pairs:
        notifier.notify_email(
            user.email,
            "exchange_completed",
            {
                "name": user.name,
                "partner_name": partner.name,
                "tokens_earned": reward.tokens.get(user.id, 0),
                "exchange_url": app_url(f"exchanges/{exchange.id}"),
            },
            preferences=user.email_notifications,
            preference_key="exchange_completed",
        )

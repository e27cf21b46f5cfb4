"""Token ledger and badge awards.

``users.token_balance`` is a denormalized total of ``token_ledger``; every
balance change goes through this module so the two never diverge.
"""

from __future__ import annotations

import logging

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from skillswap.db.models import TokenLedger, User, UserBadge
from skillswap.exceptions import ValidationError
from skillswap.timeutils import utcnow

logger = logging.getLogger(__name__)

ENTRY_TYPES = frozenset({"earned", "spent", "bonus", "penalty"})


async def ledger_exists(db: AsyncSession, idempotency_key: str) -> bool:
    result = await db.execute(select(TokenLedger.id).where(TokenLedger.idempotency_key == idempotency_key))
    return result.scalar_one_or_none() is not None


async def credit_tokens(
    db: AsyncSession,
    user: User,
    amount: int,
    entry_type: str,
    reason: str,
    exchange_id: int | None = None,
    idempotency_key: str | None = None,
) -> bool:
    """Append a ledger entry and move the balance. Returns False on a duplicate key.

    Positive amounts raise the balance; ``spent`` and ``penalty`` entries are
    stored as negative deltas so the ledger sum always equals the balance.
    """
    if entry_type not in ENTRY_TYPES:
        msg = f"Unknown ledger entry type: {entry_type}"
        raise ValueError(msg)
    if idempotency_key and await ledger_exists(db, idempotency_key):
        return False

    delta = -abs(amount) if entry_type in ("spent", "penalty") else abs(amount)
    db.add(
        TokenLedger(
            user_id=user.id,
            amount=delta,
            entry_type=entry_type,
            reason=reason,
            exchange_id=exchange_id,
            idempotency_key=idempotency_key,
            created_at=utcnow(),
        )
    )
    user.token_balance = (user.token_balance or 0) + delta
    if entry_type == "spent":
        user.tokens_spent = (user.tokens_spent or 0) + abs(amount)
    await db.flush()
    logger.info("Ledger %s %+d for user %s: %s", entry_type, delta, user.id, reason)
    return True


async def spend_tokens(db: AsyncSession, user: User, amount: int, reason: str, exchange_id: int | None = None) -> None:
    if (user.token_balance or 0) < amount:
        msg = "Insufficient tokens"
        raise ValidationError(msg)
    await credit_tokens(db, user, amount, "spent", reason, exchange_id=exchange_id)


async def ledger_total(db: AsyncSession, user_id: int) -> int:
    """Sum of all ledger deltas for a user."""
    result = await db.execute(select(func.coalesce(func.sum(TokenLedger.amount), 0)).where(TokenLedger.user_id == user_id))
    return int(result.scalar_one())


async def get_token_history(db: AsyncSession, user_id: int) -> list[TokenLedger]:
    result = await db.execute(
        select(TokenLedger).where(TokenLedger.user_id == user_id).order_by(TokenLedger.id.desc())
    )
    return list(result.scalars().all())


def has_badge(user: User, badge: str) -> bool:
    return badge in user.badge_names


async def award_badge(db: AsyncSession, user: User, badge: str) -> bool:
    """Award a badge once. Returns True if awarded, False if already held.

    The (user_id, badge) unique constraint backs the in-memory check.
    """
    if has_badge(user, badge):
        return False
    user.badges.append(UserBadge(user_id=user.id, badge=badge, earned_at=utcnow()))
    await db.flush()
    logger.info("Badge '%s' awarded to user %s", badge, user.id)
    return True

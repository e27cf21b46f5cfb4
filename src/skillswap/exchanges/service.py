"""Exchange business logic: creation, status changes, reviews and messages."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import structlog
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from skillswap.conversations.service import append_message
from skillswap.db.models import Conversation, Exchange, Message, User
from skillswap.exceptions import AuthorizationError, NotFoundError, ValidationError
from skillswap.exchanges.rewards import CompletionReward
from skillswap.exchanges.state_machine import validate_actor, validate_transition
from skillswap.learning_paths.service import ensure_paths, paths_of_exchange, sync_exchange_status
from skillswap.skills.lookup import resolve_skill
from skillswap.skills.service import increment_usage
from skillswap.timeutils import utcnow

logger = structlog.get_logger()


@dataclass
class StatusChange:
    exchange: Exchange
    previous_status: str
    reward: CompletionReward | None = None


async def get_exchange(db: AsyncSession, exchange_id: int) -> Exchange:
    exchange = await db.get(Exchange, exchange_id)
    if exchange is None:
        msg = "Exchange not found"
        raise NotFoundError(msg)
    return exchange


async def get_exchange_for_participant(db: AsyncSession, exchange_id: int, user: User, message: str) -> Exchange:
    exchange = await get_exchange(db, exchange_id)
    if not exchange.is_participant(user.id):
        raise AuthorizationError(message)
    return exchange


async def list_exchanges(db: AsyncSession, user_id: int, status: str | None = None) -> list[Exchange]:
    query = select(Exchange).where(or_(Exchange.requester_id == user_id, Exchange.provider_id == user_id))
    if status:
        query = query.where(Exchange.status == status)
    result = await db.execute(query.order_by(Exchange.created_at.desc(), Exchange.id.desc()))
    return list(result.scalars().all())


async def learned_exchanges(db: AsyncSession, user_id: int) -> list[Exchange]:
    """Completed exchanges where the user was the requester (the learner of the requested skill)."""
    result = await db.execute(
        select(Exchange)
        .where(Exchange.requester_id == user_id, Exchange.status == "completed")
        .order_by(Exchange.completed_at.desc(), Exchange.id.desc())
    )
    return list(result.scalars().all())


async def taught_exchanges(db: AsyncSession, user_id: int) -> list[Exchange]:
    result = await db.execute(
        select(Exchange)
        .where(Exchange.provider_id == user_id, Exchange.status == "completed")
        .order_by(Exchange.completed_at.desc(), Exchange.id.desc())
    )
    return list(result.scalars().all())


async def create_exchange(
    db: AsyncSession,
    requester: User,
    provider_id: int,
    requested_skill: str,
    offered_skill: str,
    description: str | None = None,
) -> Exchange:
    """
    Create a pending exchange with its conversation.

    Skill names are resolved to catalog ids once, here.

    Raises:
        ValidationError: Missing skill names or self-exchange.
        NotFoundError: Unknown provider.
    """
    requested_skill = (requested_skill or "").strip()
    offered_skill = (offered_skill or "").strip()
    if not requested_skill or not offered_skill:
        msg = "Please provide both the requested and offered skill"
        raise ValidationError(msg)
    if provider_id == requester.id:
        msg = "You cannot exchange skills with yourself"
        raise ValidationError(msg)
    provider = await db.get(User, provider_id)
    if provider is None or not provider.is_active:
        msg = "Provider not found"
        raise NotFoundError(msg)

    requested_match = await resolve_skill(db, requested_skill)
    offered_match = await resolve_skill(db, offered_skill)
    now = utcnow()
    exchange = Exchange(
        requester_id=requester.id,
        provider_id=provider.id,
        requested_skill=requested_skill,
        offered_skill=offered_skill,
        requested_skill_id=requested_match.skill.id if requested_match else None,
        offered_skill_id=offered_match.skill.id if offered_match else None,
        description=description,
        status="pending",
        learning_completed=False,
        created_at=now,
    )
    db.add(exchange)
    await db.flush()

    db.add(
        Conversation(
            exchange_id=exchange.id,
            participant_one_id=requester.id,
            participant_two_id=provider.id,
            created_at=now,
        )
    )
    await increment_usage(db, exchange.requested_skill_id, exchange.offered_skill_id)
    await db.refresh(exchange, ["requester", "provider"])
    logger.info(
        "exchange_created",
        exchange_id=exchange.id,
        requester_id=requester.id,
        provider_id=provider.id,
        requested_skill_id=exchange.requested_skill_id,
        offered_skill_id=exchange.offered_skill_id,
    )
    return exchange


async def set_status(db: AsyncSession, exchange_id: int, actor: User, new_status: str) -> StatusChange:
    """
    Move an exchange through its lifecycle.

    Accepting derives both learning paths. Completing requires both paths
    to be finished and pays the completion rewards.
    """
    exchange = await get_exchange_for_participant(db, exchange_id, actor, "Not authorized to update this exchange")
    previous = exchange.status
    validate_transition(previous, new_status)
    validate_actor(previous, new_status, "requester" if actor.id == exchange.requester_id else "provider")

    change = StatusChange(exchange=exchange, previous_status=previous)
    now = utcnow()
    if new_status == "completed":
        paths = await paths_of_exchange(db, exchange.id)
        if len(paths) < 2 or any(p.status != "completed" for p in paths):
            msg = "Both learning paths must be completed before the exchange can be completed"
            raise ValidationError(msg)
        _, _, change.reward = await sync_exchange_status(db, exchange)
        return change

    exchange.status = new_status
    exchange.updated_at = now
    if new_status == "active":
        exchange.accepted_at = now
        await ensure_paths(db, exchange)
    elif new_status == "cancelled":
        for path in await paths_of_exchange(db, exchange.id):
            if path.status != "completed":
                path.status = "cancelled"
                path.cancelled_at = now
                path.cancel_reason = f"Exchange cancelled by user {actor.id}"
    await db.flush()
    logger.info("exchange_status_changed", exchange_id=exchange.id, old=previous, new=new_status, actor_id=actor.id)
    return change


async def delete_exchange(db: AsyncSession, exchange_id: int, user: User) -> None:
    exchange = await get_exchange(db, exchange_id)
    if exchange.requester_id != user.id or exchange.status != "pending":
        msg = "Not authorized to delete this exchange"
        raise AuthorizationError(msg)
    await db.delete(exchange)
    await db.flush()
    logger.info("exchange_deleted", exchange_id=exchange_id, user_id=user.id)


async def completion_status(db: AsyncSession, exchange: Exchange) -> dict[str, Any]:
    """Per-side learning progress of an exchange."""
    by_learner = {p.learner_id: p for p in await paths_of_exchange(db, exchange.id)}

    def side(learner_id: int) -> dict[str, Any]:
        path = by_learner.get(learner_id)
        return {
            "learning_path_id": path.id if path else None,
            "completed": bool(path and path.status == "completed"),
            "progress": path.progress_percentage if path else 0,
        }

    requester = side(exchange.requester_id)
    provider = side(exchange.provider_id)
    both = requester["completed"] and provider["completed"]
    return {
        "exchange_id": exchange.id,
        "status": exchange.status,
        "requester": requester,
        "provider": provider,
        "both_completed": both,
        "ready_for_rating": both and exchange.status == "completed",
    }


async def _received_ratings(db: AsyncSession, user_id: int) -> list[int]:
    """Every rating the user received, from either side of an exchange."""
    as_provider = select(Exchange.requester_rating).where(
        Exchange.provider_id == user_id, Exchange.requester_rating.is_not(None)
    )
    as_requester = select(Exchange.provider_rating).where(
        Exchange.requester_id == user_id, Exchange.provider_rating.is_not(None)
    )
    ratings = list((await db.execute(as_provider)).scalars().all())
    ratings += list((await db.execute(as_requester)).scalars().all())
    return ratings


async def review_exchange(
    db: AsyncSession, exchange_id: int, user: User, rating: int, review: str | None = None
) -> tuple[Exchange, User]:
    """
    Rate the other participant of a completed exchange.

    Returns the exchange and the rated user, whose rating is recomputed as
    the mean of everything they have received.
    """
    exchange = await get_exchange(db, exchange_id)
    if exchange.status != "completed":
        msg = "Can only review completed exchanges"
        raise ValidationError(msg)
    if not exchange.is_participant(user.id):
        msg = "You are not part of this exchange"
        raise AuthorizationError(msg)
    if not 1 <= rating <= 5:
        msg = "Rating must be between 1 and 5"
        raise ValidationError(msg)

    if user.id == exchange.requester_id:
        if exchange.requester_rating is not None:
            msg = "You have already rated this exchange"
            raise ValidationError(msg)
        exchange.requester_rating = rating
        exchange.requester_review = review
        rated = exchange.provider
    else:
        if exchange.provider_rating is not None:
            msg = "You have already rated this exchange"
            raise ValidationError(msg)
        exchange.provider_rating = rating
        exchange.provider_review = review
        rated = exchange.requester
    await db.flush()

    ratings = await _received_ratings(db, rated.id)
    rated.rating = round(sum(ratings) / len(ratings), 1) if ratings else 0.0
    await db.flush()
    logger.info("exchange_reviewed", exchange_id=exchange.id, rater_id=user.id, rated_id=rated.id, rating=rating)
    return exchange, rated


async def send_exchange_message(db: AsyncSession, exchange_id: int, user: User, content: str | None) -> Message:
    """Post into the exchange's conversation thread."""
    exchange = await get_exchange_for_participant(db, exchange_id, user, "Not authorized to message in this exchange")
    if not content or not content.strip():
        msg = "Please provide message content"
        raise ValidationError(msg)
    result = await db.execute(select(Conversation).where(Conversation.exchange_id == exchange.id))
    conversation = result.scalar_one_or_none()
    if conversation is None:
        conversation = Conversation(
            exchange_id=exchange.id,
            participant_one_id=exchange.requester_id,
            participant_two_id=exchange.provider_id,
            created_at=utcnow(),
        )
        db.add(conversation)
        await db.flush()
    return await append_message(db, conversation, user, content)


"""Exchange router: all /api/exchanges/* endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from skillswap.auth.dependencies import get_current_user
from skillswap.conversations.router import notify_new_message
from skillswap.conversations.schemas import MessageEnvelope, message_response
from skillswap.database import get_session
from skillswap.db.models import User
from skillswap.dependencies import get_notifier
from skillswap.exchanges.rewards import notify_completion
from skillswap.exchanges.schemas import (
    CompletionStatusEnvelope,
    ExchangeCreateRequest,
    ExchangeEnvelope,
    ExchangeListEnvelope,
    ExchangeMessageRequest,
    ExchangeStatus,
    ReviewRequest,
    StatusUpdateRequest,
    exchange_response,
)
from skillswap.exchanges.service import (
    completion_status,
    create_exchange,
    delete_exchange,
    get_exchange_for_participant,
    learned_exchanges,
    list_exchanges,
    review_exchange,
    send_exchange_message,
    set_status,
    taught_exchanges,
)
from skillswap.notifications.dispatcher import NotificationDispatcher, app_url

router = APIRouter(prefix="/api/exchanges", tags=["Exchanges"])

_STATUS_MESSAGES = {
    "active": "Exchange accepted",
    "rejected": "Exchange rejected",
    "cancelled": "Exchange cancelled",
    "completed": "Exchange completed",
}


@router.get("", response_model=ExchangeListEnvelope)
async def get_my_exchanges(
    status: ExchangeStatus | None = None,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> ExchangeListEnvelope:
    exchanges = await list_exchanges(db, user.id, status)
    return ExchangeListEnvelope(count=len(exchanges), exchanges=[exchange_response(e) for e in exchanges])


@router.post("", response_model=ExchangeEnvelope, status_code=201)
async def post_exchange(
    body: ExchangeCreateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    notifier: NotificationDispatcher = Depends(get_notifier),
) -> ExchangeEnvelope:
    """Request an exchange with another user. The provider is notified by email."""
    exchange = await create_exchange(
        db,
        user,
        provider_id=body.provider_id,
        requested_skill=body.requested_skill,
        offered_skill=body.offered_skill,
        description=body.description,
    )
    await db.commit()

    provider = exchange.provider
    notifier.notify_email(
        provider.email,
        "exchange_request",
        {
            "name": provider.name,
            "requester_name": user.name,
            "requested_skill": exchange.requested_skill,
            "offered_skill": exchange.offered_skill,
            "exchange_url": app_url(f"exchanges/{exchange.id}"),
        },
        preferences=provider.email_notifications,
        preference_key="exchange_requests",
    )
    return ExchangeEnvelope(message="Exchange request sent", exchange=exchange_response(exchange))


@router.get("/learned", response_model=ExchangeListEnvelope)
async def get_learned(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_session)) -> ExchangeListEnvelope:
    exchanges = await learned_exchanges(db, user.id)
    return ExchangeListEnvelope(count=len(exchanges), exchanges=[exchange_response(e) for e in exchanges])


@router.get("/taught", response_model=ExchangeListEnvelope)
async def get_taught(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_session)) -> ExchangeListEnvelope:
    exchanges = await taught_exchanges(db, user.id)
    return ExchangeListEnvelope(count=len(exchanges), exchanges=[exchange_response(e) for e in exchanges])


@router.get("/{exchange_id}", response_model=ExchangeEnvelope)
async def get_one_exchange(
    exchange_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> ExchangeEnvelope:
    exchange = await get_exchange_for_participant(db, exchange_id, user, "Not authorized to view this exchange")
    return ExchangeEnvelope(exchange=exchange_response(exchange))


@router.get("/{exchange_id}/completion-status", response_model=CompletionStatusEnvelope)
async def get_completion_status(
    exchange_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> CompletionStatusEnvelope:
    exchange = await get_exchange_for_participant(db, exchange_id, user, "Not authorized to view this exchange")
    return CompletionStatusEnvelope(completion=await completion_status(db, exchange))


@router.put("/{exchange_id}/status", response_model=ExchangeEnvelope)
async def put_exchange_status(
    exchange_id: int,
    body: StatusUpdateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    notifier: NotificationDispatcher = Depends(get_notifier),
) -> ExchangeEnvelope:
    """Accept, reject, cancel or complete an exchange."""
    change = await set_status(db, exchange_id, user, body.status)
    await db.commit()

    exchange = change.exchange
    if body.status == "active":
        requester = exchange.requester
        notifier.notify_email(
            requester.email,
            "exchange_accepted",
            {
                "name": requester.name,
                "provider_name": exchange.provider.name,
                "requested_skill": exchange.requested_skill,
                "exchange_url": app_url(f"exchanges/{exchange.id}"),
            },
            preferences=requester.email_notifications,
            preference_key="exchange_accepted",
        )
    elif body.status == "completed":
        notify_completion(notifier, exchange, change.reward)
    return ExchangeEnvelope(message=_STATUS_MESSAGES[body.status], exchange=exchange_response(exchange))


@router.post("/{exchange_id}/messages", response_model=MessageEnvelope, status_code=201)
async def post_exchange_message(
    exchange_id: int,
    body: ExchangeMessageRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    notifier: NotificationDispatcher = Depends(get_notifier),
) -> MessageEnvelope:
    """Post into the exchange's conversation."""
    message = await send_exchange_message(db, exchange_id, user, body.content)
    await db.commit()
    exchange = await get_exchange_for_participant(db, exchange_id, user, "Not authorized to view this exchange")
    await notify_new_message(db, notifier, exchange.other_party_id(user.id), user, message)
    return MessageEnvelope(message="Message sent", data=message_response(message))


@router.post("/{exchange_id}/review", response_model=ExchangeEnvelope)
async def post_review(
    exchange_id: int,
    body: ReviewRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    notifier: NotificationDispatcher = Depends(get_notifier),
) -> ExchangeEnvelope:
    """Rate the other participant once the exchange is completed."""
    exchange, rated = await review_exchange(db, exchange_id, user, body.rating, body.review)
    await db.commit()
    notifier.notify_email(
        rated.email,
        "new_rating",
        {"name": rated.name, "rater_name": user.name, "rating": body.rating, "review": body.review},
        preferences=rated.email_notifications,
        preference_key="new_ratings",
    )
    return ExchangeEnvelope(message="Review submitted successfully", exchange=exchange_response(exchange))


@router.delete("/{exchange_id}")
async def remove_exchange(
    exchange_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> dict[str, object]:
    await delete_exchange(db, exchange_id, user)
    await db.commit()
    return {"success": True, "message": "Exchange deleted successfully"}

"""Request/response schemas for exchange endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

from skillswap.db.models import Exchange, User

ExchangeStatus = Literal["pending", "active", "completed", "cancelled", "rejected"]


class ExchangeCreateRequest(BaseModel):
    provider_id: int
    requested_skill: str = Field(..., max_length=100)
    offered_skill: str = Field(..., max_length=100)
    description: str | None = Field(None, max_length=1000)


class StatusUpdateRequest(BaseModel):
    status: ExchangeStatus


class ReviewRequest(BaseModel):
    rating: int = Field(..., ge=1, le=5)
    review: str | None = Field(None, max_length=1000)


class ExchangeMessageRequest(BaseModel):
    content: str | None = Field(None, max_length=5000)


class ParticipantResponse(BaseModel):
    id: int
    name: str
    avatar_url: str | None = None
    rating: float


class ExchangeResponse(BaseModel):
    id: int
    requester: ParticipantResponse
    provider: ParticipantResponse
    requested_skill: str
    offered_skill: str
    requested_skill_id: int | None = None
    offered_skill_id: int | None = None
    description: str | None = None
    status: str
    requester_rating: int | None = None
    requester_review: str | None = None
    provider_rating: int | None = None
    provider_review: str | None = None
    requester_learning_path_id: int | None = None
    provider_learning_path_id: int | None = None
    learning_path_id: int | None = None
    learning_completed: bool
    accepted_at: datetime | None = None
    completed_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class ExchangeEnvelope(BaseModel):
    success: bool = True
    message: str | None = None
    exchange: ExchangeResponse


class ExchangeListEnvelope(BaseModel):
    success: bool = True
    count: int
    exchanges: list[ExchangeResponse]


class CompletionStatusEnvelope(BaseModel):
    success: bool = True
    completion: dict[str, Any]


def participant_response(user: User) -> ParticipantResponse:
    return ParticipantResponse(id=user.id, name=user.name, avatar_url=user.avatar_url, rating=user.rating)


def exchange_response(exchange: Exchange) -> ExchangeResponse:
    return ExchangeResponse(
        id=exchange.id,
        requester=participant_response(exchange.requester),
        provider=participant_response(exchange.provider),
        requested_skill=exchange.requested_skill,
        offered_skill=exchange.offered_skill,
        requested_skill_id=exchange.requested_skill_id,
        offered_skill_id=exchange.offered_skill_id,
        description=exchange.description,
        status=exchange.status,
        requester_rating=exchange.requester_rating,
        requester_review=exchange.requester_review,
        provider_rating=exchange.provider_rating,
        provider_review=exchange.provider_review,
        requester_learning_path_id=exchange.requester_learning_path_id,
        provider_learning_path_id=exchange.provider_learning_path_id,
        learning_path_id=exchange.learning_path_id,
        learning_completed=exchange.learning_completed,
        accepted_at=exchange.accepted_at,
        completed_at=exchange.completed_at,
        created_at=exchange.created_at,
        updated_at=exchange.updated_at,
    )

"""Request/response schemas for conversation endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from skillswap.db.models import Message


class MessageRequest(BaseModel):
    content: str | None = Field(None, max_length=5000)


class MessageResponse(BaseModel):
    id: int
    conversation_id: int
    sender_id: int
    content: str
    is_read: bool
    created_at: datetime | None = None


class ConversationResponse(BaseModel):
    id: int
    exchange_id: int
    participants: list[int]
    other_participant_id: int
    last_message: str | None = None
    last_message_at: datetime | None = None
    unread_count: int = 0


class ConversationListEnvelope(BaseModel):
    success: bool = True
    count: int
    conversations: list[ConversationResponse]


class MessageListEnvelope(BaseModel):
    success: bool = True
    conversation_id: int
    exchange_id: int
    messages: list[MessageResponse]


class MessageEnvelope(BaseModel):
    success: bool = True
    message: str | None = None
    data: MessageResponse


def message_response(message: Message) -> MessageResponse:
    return MessageResponse(
        id=message.id,
        conversation_id=message.conversation_id,
        sender_id=message.sender_id,
        content=message.content,
        is_read=message.is_read,
        created_at=message.created_at,
    )

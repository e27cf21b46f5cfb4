"""Conversation router: all /api/conversations/* endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from skillswap.auth.dependencies import get_current_user
from skillswap.conversations.schemas import (
    ConversationListEnvelope,
    ConversationResponse,
    MessageEnvelope,
    MessageListEnvelope,
    MessageRequest,
    message_response,
)
from skillswap.conversations.service import get_messages, list_conversations, other_participant_id, send_message
from skillswap.database import get_session
from skillswap.db.models import Message, User
from skillswap.dependencies import get_notifier
from skillswap.notifications.dispatcher import NotificationDispatcher, app_url

router = APIRouter(prefix="/api/conversations", tags=["Conversations"])


async def notify_new_message(
    db: AsyncSession, notifier: NotificationDispatcher, recipient_id: int, sender: User, message: Message
) -> None:
    """Email the other participant unless they opted out of message emails."""
    recipient = await db.get(User, recipient_id)
    if recipient is None:
        return
    notifier.notify_email(
        recipient.email,
        "new_message",
        {
            "name": recipient.name,
            "sender_name": sender.name,
            "preview": message.content[:200],
            "conversation_url": app_url(f"messages/{message.conversation_id}"),
        },
        preferences=recipient.email_notifications,
        preference_key="new_messages",
    )


@router.get("", response_model=ConversationListEnvelope)
async def get_conversations(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> ConversationListEnvelope:
    rows = await list_conversations(db, user.id)
    conversations = [
        ConversationResponse(
            id=c.id,
            exchange_id=c.exchange_id,
            participants=[c.participant_one_id, c.participant_two_id],
            other_participant_id=other_participant_id(c, user.id),
            last_message=c.last_message,
            last_message_at=c.last_message_at,
            unread_count=unread,
        )
        for c, unread in rows
    ]
    return ConversationListEnvelope(count=len(conversations), conversations=conversations)


@router.get("/{conversation_id}/messages", response_model=MessageListEnvelope)
async def get_conversation_messages(
    conversation_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> MessageListEnvelope:
    """Thread in order; incoming messages are marked read."""
    conversation, messages = await get_messages(db, conversation_id, user)
    await db.commit()
    return MessageListEnvelope(
        conversation_id=conversation.id,
        exchange_id=conversation.exchange_id,
        messages=[message_response(m) for m in messages],
    )


@router.post("/{conversation_id}/messages", response_model=MessageEnvelope, status_code=201)
async def post_conversation_message(
    conversation_id: int,
    body: MessageRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    notifier: NotificationDispatcher = Depends(get_notifier),
) -> MessageEnvelope:
    conversation, message = await send_message(db, conversation_id, user, body.content)
    await db.commit()
    await notify_new_message(db, notifier, other_participant_id(conversation, user.id), user, message)
    return MessageEnvelope(message="Message sent", data=message_response(message))

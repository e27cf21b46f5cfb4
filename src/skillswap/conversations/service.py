"""Per-exchange message threads."""

from __future__ import annotations

import structlog
from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from skillswap.db.models import Conversation, Message, User
from skillswap.exceptions import AuthorizationError, NotFoundError, ValidationError
from skillswap.timeutils import utcnow

logger = structlog.get_logger()

PREVIEW_LENGTH = 100
MAX_MESSAGE_LENGTH = 5000


def preview(content: str) -> str:
    content = " ".join(content.split())
    return content if len(content) <= PREVIEW_LENGTH else content[: PREVIEW_LENGTH - 3] + "..."


async def get_conversation(db: AsyncSession, conversation_id: int, user: User) -> Conversation:
    conversation = await db.get(Conversation, conversation_id)
    if conversation is None:
        msg = "Conversation not found"
        raise NotFoundError(msg)
    if not conversation.has_participant(user.id):
        msg = "Not authorized to view this conversation"
        raise AuthorizationError(msg)
    return conversation


async def list_conversations(db: AsyncSession, user_id: int) -> list[tuple[Conversation, int]]:
    """The user's conversations, most recent activity first, with unread counts."""
    unread = (
        select(Message.conversation_id, func.count(Message.id).label("unread"))
        .where(Message.sender_id != user_id, Message.is_read.is_(False))
        .group_by(Message.conversation_id)
        .subquery()
    )
    result = await db.execute(
        select(Conversation, func.coalesce(unread.c.unread, 0))
        .outerjoin(unread, unread.c.conversation_id == Conversation.id)
        .where(or_(Conversation.participant_one_id == user_id, Conversation.participant_two_id == user_id))
        .order_by(func.coalesce(Conversation.last_message_at, Conversation.created_at).desc(), Conversation.id.desc())
    )
    return [(conversation, int(count)) for conversation, count in result.tuples().all()]


async def get_messages(db: AsyncSession, conversation_id: int, user: User) -> tuple[Conversation, list[Message]]:
    """Thread in chronological order. Messages addressed to ``user`` are marked read."""
    conversation = await get_conversation(db, conversation_id, user)
    await db.execute(
        update(Message)
        .where(
            Message.conversation_id == conversation.id,
            Message.sender_id != user.id,
            Message.is_read.is_(False),
        )
        .values(is_read=True)
        .execution_options(synchronize_session=False)
    )
    result = await db.execute(
        select(Message)
        .where(Message.conversation_id == conversation.id)
        .order_by(Message.created_at, Message.id)
        .execution_options(populate_existing=True)
    )
    return conversation, list(result.scalars().all())


async def append_message(db: AsyncSession, conversation: Conversation, sender: User, content: str) -> Message:
    content = (content or "").strip()
    if not content:
        msg = "Please provide message content"
        raise ValidationError(msg)
    if len(content) > MAX_MESSAGE_LENGTH:
        msg = f"Message must be at most {MAX_MESSAGE_LENGTH} characters"
        raise ValidationError(msg)
    if not conversation.has_participant(sender.id):
        msg = "Not authorized to message in this conversation"
        raise AuthorizationError(msg)

    now = utcnow()
    message = Message(conversation_id=conversation.id, sender_id=sender.id, content=content, is_read=False, created_at=now)
    db.add(message)
    conversation.last_message = preview(content)
    conversation.last_message_at = now
    await db.flush()
    logger.info("message_sent", conversation_id=conversation.id, sender_id=sender.id)
    return message


async def send_message(db: AsyncSession, conversation_id: int, sender: User, content: str | None) -> tuple[Conversation, Message]:
    conversation = await get_conversation(db, conversation_id, sender)
    return conversation, await append_message(db, conversation, sender, content or "")


def other_participant_id(conversation: Conversation, user_id: int) -> int:
    if conversation.participant_one_id == user_id:
        return conversation.participant_two_id
    return conversation.participant_one_id

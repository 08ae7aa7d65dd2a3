"""Conversations and messages.

A conversation with two participants is a direct chat and is unique per pair;
three or more participants make a named group chat. Group messages may be
sent without a receiver, in which case every other participant is notified.
"""
from __future__ import annotations

import logging

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from .. import models
from ..auth import CurrentUser
from ..errors import Forbidden, NotFound, ValidationFailed
from ..timeutil import utcnow
from .notifications import NotificationService

logger = logging.getLogger(__name__)

MESSAGE_TYPES = ("text", "file", "image")
PREVIEW_LENGTH = 255


async def _load_conversation(session: AsyncSession, conversation_id: int) -> models.Conversation | None:
    query = (
        select(models.Conversation)
        .where(models.Conversation.id == conversation_id)
        .options(selectinload(models.Conversation.participant_links))
        .execution_options(populate_existing=True)
    )
    return (await session.execute(query)).scalar_one_or_none()


async def get_conversation(session: AsyncSession, conversation_id: int, user_id: str) -> models.Conversation:
    """Fetch a conversation the caller participates in."""
    conversation = await _load_conversation(session, conversation_id)
    if conversation is None:
        raise NotFound("Conversation not found", "CONVERSATION_NOT_FOUND")
    if user_id not in conversation.participants:
        logger.warning(f"User {user_id} is not a participant of conversation {conversation_id}")
        raise Forbidden("You are not a participant in this conversation", "NOT_PARTICIPANT")
    return conversation


async def _find_direct(session: AsyncSession, first: str, second: str) -> int | None:
    query = (
        select(models.ConversationParticipant.conversation_id)
        .join(models.Conversation, models.Conversation.id == models.ConversationParticipant.conversation_id)
        .where(
            models.Conversation.is_group_chat.is_(False),
            models.ConversationParticipant.user_id.in_([first, second]),
        )
        .group_by(models.ConversationParticipant.conversation_id)
        .having(func.count() == 2)
        .limit(1)
    )
    return (await session.execute(query)).scalar_one_or_none()


async def create_conversation(
    session: AsyncSession,
    user: CurrentUser,
    participants: list[str],
    group_name: str | None = None,
) -> tuple[models.Conversation, bool]:
    """Create a conversation including the caller.

    Returns:
        Tuple of (conversation, created); a second direct chat between the same
        pair returns the existing conversation with ``created`` False.
    """
    members = sorted(set(participants) | {user.id})
    if len(members) < 2:
        raise ValidationFailed("A conversation needs at least 2 distinct participants", "INSUFFICIENT_PARTICIPANTS")

    known = set((await session.execute(select(models.User.id).where(models.User.id.in_(members)))).scalars())
    missing = [m for m in members if m not in known]
    if missing:
        raise NotFound(f"Unknown participants: {', '.join(missing)}", "USER_NOT_FOUND")

    is_group = len(members) > 2
    if is_group and not (group_name and group_name.strip()):
        raise ValidationFailed("Group name is required for group chats", "MISSING_GROUP_NAME")

    if not is_group:
        existing_id = await _find_direct(session, members[0], members[1])
        if existing_id is not None:
            logger.info(f"Reusing direct conversation {existing_id} for {members}")
            return await _load_conversation(session, existing_id), False

    conversation = models.Conversation(
        is_group_chat=is_group,
        group_name=group_name.strip() if is_group else None,
        participant_links=[models.ConversationParticipant(user_id=m) for m in members],
    )
    session.add(conversation)
    await session.commit()

    logger.info(f"Created {'group' if is_group else 'direct'} conversation {conversation.id} with {len(members)} participants")
    return await _load_conversation(session, conversation.id), True


async def list_conversations(
    session: AsyncSession,
    user_id: str,
    *,
    is_group_chat: bool | None = None,
    limit: int = 20,
    offset: int = 0,
) -> list[models.Conversation]:
    query = (
        select(models.Conversation)
        .join(
            models.ConversationParticipant,
            models.ConversationParticipant.conversation_id == models.Conversation.id,
        )
        .where(models.ConversationParticipant.user_id == user_id)
        .options(selectinload(models.Conversation.participant_links))
    )
    if is_group_chat is not None:
        query = query.where(models.Conversation.is_group_chat == is_group_chat)
    query = (
        query.order_by(
            func.coalesce(models.Conversation.last_message_at, models.Conversation.created_at).desc(),
            models.Conversation.id.desc(),
        )
        .limit(limit)
        .offset(offset)
    )
    return list((await session.execute(query)).scalars().all())


async def rename_conversation(
    session: AsyncSession,
    conversation_id: int,
    user_id: str,
    group_name: str,
) -> models.Conversation:
    conversation = await get_conversation(session, conversation_id, user_id)
    if not conversation.is_group_chat:
        raise ValidationFailed("Only group chats have a name", "NOT_GROUP_CHAT")

    conversation.group_name = group_name
    await session.commit()
    return await _load_conversation(session, conversation_id)


async def delete_conversation(session: AsyncSession, conversation_id: int, user_id: str) -> None:
    conversation = await get_conversation(session, conversation_id, user_id)
    await session.delete(conversation)
    await session.commit()
    logger.info(f"User {user_id} deleted conversation {conversation_id}")


async def send_message(
    session: AsyncSession,
    sender: CurrentUser,
    *,
    conversation_id: int,
    content: str,
    receiver_id: str | None = None,
    message_type: str = "text",
    file_url: str | None = None,
) -> models.Message:
    """Store a message, bump the conversation preview and notify recipients."""
    conversation = await get_conversation(session, conversation_id, sender.id)
    others = [p for p in conversation.participants if p != sender.id]

    if receiver_id is not None:
        if receiver_id not in others:
            raise ValidationFailed("Receiver must be another participant in the conversation", "INVALID_RECEIVER")
        recipients = [receiver_id]
    elif conversation.is_group_chat:
        recipients = others
    else:
        receiver_id = others[0]
        recipients = others

    message = models.Message(
        conversation_id=conversation_id,
        sender_id=sender.id,
        receiver_id=receiver_id,
        content=content,
        message_type=message_type,
        file_url=file_url,
    )
    session.add(message)

    conversation.last_message = content[:PREVIEW_LENGTH]
    conversation.last_message_at = utcnow()
    await session.flush()

    for recipient in recipients:
        await NotificationService.new_message(
            session,
            recipient_id=recipient,
            sender_name=sender.name,
            sender_id=sender.id,
            conversation_id=conversation_id,
        )

    await session.commit()
    await session.refresh(message)
    logger.info(f"Message {message.id} sent in conversation {conversation_id} to {len(recipients)} recipient(s)")
    return message


def _visible_to(user_id: str):
    participant_of = select(models.ConversationParticipant.conversation_id).where(
        models.ConversationParticipant.user_id == user_id
    )
    return or_(
        models.Message.sender_id == user_id,
        models.Message.receiver_id == user_id,
        models.Message.conversation_id.in_(participant_of),
    )


async def get_message(session: AsyncSession, message_id: int, user_id: str) -> models.Message:
    query = select(models.Message).where(models.Message.id == message_id, _visible_to(user_id))
    message = (await session.execute(query)).scalar_one_or_none()
    if message is None:
        raise NotFound("Message not found", "MESSAGE_NOT_FOUND")
    return message


async def list_messages(
    session: AsyncSession,
    user_id: str,
    *,
    conversation_id: int | None = None,
    is_read: bool | None = None,
    limit: int = 50,
    offset: int = 0,
) -> list[models.Message]:
    query = select(models.Message).where(_visible_to(user_id))
    if conversation_id is not None:
        await get_conversation(session, conversation_id, user_id)
        query = query.where(models.Message.conversation_id == conversation_id)
    if is_read is not None:
        query = query.where(models.Message.is_read == is_read)
    query = query.order_by(models.Message.created_at.desc(), models.Message.id.desc()).limit(limit).offset(offset)
    return list((await session.execute(query)).scalars().all())


async def mark_read(session: AsyncSession, message_id: int, user_id: str) -> models.Message:
    """Mark a message read; only its receiver can."""
    message = await session.get(models.Message, message_id)
    if message is None or message.receiver_id != user_id:
        raise NotFound("Message not found", "MESSAGE_NOT_FOUND")

    if not message.is_read:
        message.is_read = True
        message.read_at = utcnow()
        await session.commit()
        await session.refresh(message)
    return message


async def delete_message(session: AsyncSession, message_id: int, user_id: str) -> None:
    message = await session.get(models.Message, message_id)
    if message is None:
        raise NotFound("Message not found", "MESSAGE_NOT_FOUND")
    if user_id not in (message.sender_id, message.receiver_id):
        raise Forbidden("You can only delete messages you sent or received", "UNAUTHORIZED_DELETE")

    await session.delete(message)
    await session.commit()
    logger.info(f"User {user_id} deleted message {message_id}")

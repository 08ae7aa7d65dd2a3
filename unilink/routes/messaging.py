"""Conversation and message endpoints."""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..auth import CurrentUser, get_current_user
from ..db import get_session
from ..errors import Forbidden
from ..schemas import CamelModel, MessageResponse, Page, non_blank, one_of, pagination
from ..services import messaging as service
from ..services.messaging import MESSAGE_TYPES

logger = logging.getLogger(__name__)

conversations_router = APIRouter(prefix="/api/conversations", tags=["messaging"])
messages_router = APIRouter(prefix="/api/messages", tags=["messaging"])


class ConversationDTO(CamelModel):
    id: int
    participants: list[str]
    is_group_chat: bool
    group_name: str | None = None
    last_message: str | None = None
    last_message_at: datetime | None = None
    created_at: datetime
    updated_at: datetime


class CreateConversationRequest(CamelModel):
    participants: list[str]
    group_name: str | None = None


class RenameConversationRequest(CamelModel):
    group_name: Annotated[str, non_blank("MISSING_GROUP_NAME", "Group name")]


class MessageDTO(CamelModel):
    id: int
    conversation_id: int
    sender_id: str
    receiver_id: str | None = None
    content: str
    message_type: str
    file_url: str | None = None
    is_read: bool
    read_at: datetime | None = None
    created_at: datetime
    updated_at: datetime


class SendMessageRequest(CamelModel):
    conversation_id: int
    content: Annotated[str, non_blank("MISSING_CONTENT", "Content")]
    sender_id: str | None = None
    receiver_id: str | None = None
    message_type: Annotated[str, one_of("INVALID_MESSAGE_TYPE", "messageType", MESSAGE_TYPES)] = "text"
    file_url: str | None = None


@conversations_router.get("", response_model=list[ConversationDTO])
async def list_conversations(
    is_group_chat: bool | None = Query(default=None, alias="isGroupChat"),
    page: Page = Depends(pagination(default=20, maximum=100)),
    user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return await service.list_conversations(
        session,
        user.id,
        is_group_chat=is_group_chat,
        limit=page.limit,
        offset=page.offset,
    )


@conversations_router.get("/{conversation_id}", response_model=ConversationDTO)
async def get_conversation(
    conversation_id: int,
    user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return await service.get_conversation(session, conversation_id, user.id)


@conversations_router.post("", response_model=ConversationDTO, status_code=status.HTTP_201_CREATED)
async def create_conversation(
    request: CreateConversationRequest,
    response: Response,
    user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    conversation, created = await service.create_conversation(
        session,
        user,
        request.participants,
        request.group_name,
    )
    if not created:
        response.status_code = status.HTTP_200_OK
    return conversation


@conversations_router.put("/{conversation_id}", response_model=ConversationDTO)
async def rename_conversation(
    conversation_id: int,
    request: RenameConversationRequest,
    user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return await service.rename_conversation(session, conversation_id, user.id, request.group_name)


@conversations_router.delete("/{conversation_id}", response_model=MessageResponse)
async def delete_conversation(
    conversation_id: int,
    user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> MessageResponse:
    await service.delete_conversation(session, conversation_id, user.id)
    return MessageResponse(message="Conversation deleted successfully")


@messages_router.get("", response_model=list[MessageDTO])
async def list_messages(
    conversation_id: int | None = Query(default=None, alias="conversationId"),
    is_read: bool | None = Query(default=None, alias="isRead"),
    page: Page = Depends(pagination(default=50, maximum=200)),
    user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return await service.list_messages(
        session,
        user.id,
        conversation_id=conversation_id,
        is_read=is_read,
        limit=page.limit,
        offset=page.offset,
    )


@messages_router.get("/{message_id}", response_model=MessageDTO)
async def get_message(
    message_id: int,
    user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return await service.get_message(session, message_id, user.id)


@messages_router.post("", response_model=MessageDTO, status_code=status.HTTP_201_CREATED)
async def send_message(
    request: SendMessageRequest,
    user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    if request.sender_id is not None and request.sender_id != user.id:
        logger.warning(f"User {user.id} tried to send a message as {request.sender_id}")
        raise Forbidden("senderId must match the authenticated user", "UNAUTHORIZED_SENDER")

    return await service.send_message(
        session,
        user,
        conversation_id=request.conversation_id,
        content=request.content,
        receiver_id=request.receiver_id,
        message_type=request.message_type,
        file_url=request.file_url,
    )


@messages_router.put("/{message_id}/read", response_model=MessageDTO)
async def mark_message_read(
    message_id: int,
    user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return await service.mark_read(session, message_id, user.id)


@messages_router.delete("/{message_id}", response_model=MessageResponse)
async def delete_message(
    message_id: int,
    user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> MessageResponse:
    await service.delete_message(session, message_id, user.id)
    return MessageResponse(message="Message deleted successfully")

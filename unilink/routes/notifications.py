"""Notification endpoints; callers only ever see their own notifications."""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Annotated, Any, Literal

from fastapi import APIRouter, Depends, Query, status
from pydantic import AliasChoices, Field
from sqlalchemy.ext.asyncio import AsyncSession

from ..auth import CurrentUser, get_current_user
from ..db import get_session
from ..schemas import CamelModel, MessageResponse, Page, non_blank, one_of, pagination
from ..services import notifications as service
from ..services.notifications import NOTIFICATION_TYPES

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/notifications", tags=["notifications"])


class NotificationDTO(CamelModel):
    id: int
    user_id: str
    type: str
    title: str
    message: str
    action_url: str | None = None
    is_read: bool
    metadata: dict[str, Any] | None = Field(
        default=None,
        validation_alias=AliasChoices("metadata_", "metadata"),
    )
    created_at: datetime
    read_at: datetime | None = None


class CreateNotificationRequest(CamelModel):
    user_id: str
    type: Annotated[str, one_of("INVALID_TYPE", "type", NOTIFICATION_TYPES)]
    title: Annotated[str, non_blank("INVALID_TITLE", "Title")]
    message: Annotated[str, non_blank("INVALID_MESSAGE", "Message")]
    action_url: str | None = None
    metadata: dict[str, Any] | None = None


class UnreadCountResponse(CamelModel):
    unread_count: int


class MarkAllReadResponse(CamelModel):
    message: str
    updated: int


@router.get("", response_model=list[NotificationDTO])
async def list_notifications(
    is_read: bool | None = Query(default=None, alias="isRead"),
    type: str | None = Query(default=None),
    page: Page = Depends(pagination(default=20, maximum=100)),
    user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return await service.list_notifications(
        session,
        user.id,
        is_read=is_read,
        type=type,
        limit=page.limit,
        offset=page.offset,
    )


@router.get("/unread-count", response_model=UnreadCountResponse)
async def unread_count(
    user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> UnreadCountResponse:
    return UnreadCountResponse(unread_count=await service.unread_count(session, user.id))


@router.post("", response_model=NotificationDTO, status_code=status.HTTP_201_CREATED)
async def create_notification(
    request: CreateNotificationRequest,
    user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    logger.info(f"User {user.id} creating {request.type} notification for {request.user_id}")
    return await service.create_notification(
        session,
        user_id=request.user_id,
        type=request.type,
        title=request.title,
        message=request.message,
        action_url=request.action_url,
        metadata=request.metadata,
    )


@router.put("/read-all", response_model=MarkAllReadResponse)
async def mark_all_read(
    user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> MarkAllReadResponse:
    updated = await service.mark_all_read(session, user.id)
    return MarkAllReadResponse(message="All notifications marked as read", updated=updated)


@router.put("/{notification_id}", response_model=NotificationDTO)
async def update_notification(
    notification_id: int,
    action: Literal["mark-read", "mark-unread"] = Query(default="mark-read"),
    user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return await service.set_read_state(session, notification_id, user.id, read=action == "mark-read")


@router.delete("/{notification_id}", response_model=MessageResponse)
async def delete_notification(
    notification_id: int,
    user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> MessageResponse:
    await service.delete_notification(session, notification_id, user.id)
    return MessageResponse(message="Notification deleted successfully")

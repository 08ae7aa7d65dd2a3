"""Connection request endpoints."""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..auth import CurrentUser, get_current_user
from ..db import get_session
from ..errors import Forbidden
from ..schemas import CamelModel, MessageResponse, Page, changed_fields, non_blank, one_of, pagination
from ..services import connections as service
from ..services.connections import CONNECTION_STATUSES, CONNECTION_TYPES

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/connections", tags=["connections"])

ConnectionType = Annotated[str, one_of("INVALID_CONNECTION_TYPE", "connectionType", CONNECTION_TYPES)]
ConnectionStatus = Annotated[str, one_of("INVALID_STATUS", "status", CONNECTION_STATUSES)]


class ConnectionDTO(CamelModel):
    id: int
    requester_id: str
    recipient_id: str
    connection_type: str
    status: str
    message: str | None = None
    responded_at: datetime | None = None
    created_at: datetime
    updated_at: datetime


class CreateConnectionRequest(CamelModel):
    recipient_id: Annotated[str, non_blank("MISSING_RECIPIENT_ID", "recipientId")]
    connection_type: ConnectionType
    requester_id: str | None = None
    message: str | None = None


class UpdateConnectionRequest(CamelModel):
    status: ConnectionStatus | None = None
    message: str | None = None


@router.get("", response_model=list[ConnectionDTO])
async def list_connections(
    user_id: str | None = Query(default=None, alias="userId"),
    requester_id: str | None = Query(default=None, alias="requesterId"),
    recipient_id: str | None = Query(default=None, alias="recipientId"),
    status: str | None = None,
    connection_type: str | None = Query(default=None, alias="connectionType"),
    page: Page = Depends(pagination(default=20, maximum=100)),
    user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """The caller's connections; ``userId`` narrows to those with that user on either side."""
    return await service.list_connections(
        session,
        user.id,
        other_user_id=user_id,
        requester_id=requester_id,
        recipient_id=recipient_id,
        status=status,
        connection_type=connection_type,
        limit=page.limit,
        offset=page.offset,
    )


@router.get("/{connection_id}", response_model=ConnectionDTO)
async def get_connection(
    connection_id: int,
    user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return await service.get_connection(session, connection_id, user.id)


@router.post("", response_model=ConnectionDTO, status_code=status.HTTP_201_CREATED)
async def request_connection(
    request: CreateConnectionRequest,
    user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    if request.requester_id is not None and request.requester_id != user.id:
        logger.warning(f"User {user.id} tried to send a connection request as {request.requester_id}")
        raise Forbidden("requesterId must match the authenticated user", "UNAUTHORIZED_REQUESTER")

    return await service.request_connection(
        session,
        user,
        recipient_id=request.recipient_id,
        connection_type=request.connection_type,
        message=request.message,
    )


@router.put("/{connection_id}", response_model=ConnectionDTO)
async def update_connection(
    connection_id: int,
    request: UpdateConnectionRequest,
    user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return await service.update_connection(
        session,
        connection_id,
        user,
        changed_fields(request, nullable=frozenset({"message"})),
    )


@router.delete("/{connection_id}", response_model=MessageResponse)
async def delete_connection(
    connection_id: int,
    user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> MessageResponse:
    await service.delete_connection(session, connection_id, user.id)
    return MessageResponse(message="Connection deleted successfully")

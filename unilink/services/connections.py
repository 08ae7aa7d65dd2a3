"""Alumni connection requests between two users."""
from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import and_, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from .. import models
from ..auth import CurrentUser
from ..errors import Forbidden, NotFound, ValidationFailed
from ..timeutil import utcnow
from .notifications import NotificationService

logger = logging.getLogger(__name__)

CONNECTION_TYPES = ("mentorship", "networking", "collaboration")
CONNECTION_STATUSES = ("pending", "accepted", "rejected")


def _involves(user_id: str):
    return or_(models.Connection.requester_id == user_id, models.Connection.recipient_id == user_id)


def _between(a: str, b: str):
    return or_(
        and_(models.Connection.requester_id == a, models.Connection.recipient_id == b),
        and_(models.Connection.requester_id == b, models.Connection.recipient_id == a),
    )


async def get_connection(session: AsyncSession, connection_id: int, user_id: str) -> models.Connection:
    """A connection the caller is part of; anything else is reported as missing."""
    connection = await session.get(models.Connection, connection_id)
    if connection is None or user_id not in (connection.requester_id, connection.recipient_id):
        raise NotFound("Connection not found", "CONNECTION_NOT_FOUND")
    return connection


async def find_between(session: AsyncSession, a: str, b: str) -> models.Connection | None:
    query = select(models.Connection).where(_between(a, b)).limit(1)
    return (await session.execute(query)).scalar_one_or_none()


async def list_connections(
    session: AsyncSession,
    user_id: str,
    *,
    other_user_id: str | None = None,
    requester_id: str | None = None,
    recipient_id: str | None = None,
    status: str | None = None,
    connection_type: str | None = None,
    limit: int = 20,
    offset: int = 0,
) -> list[models.Connection]:
    """Connections of ``user_id``, optionally narrowed to those that also involve ``other_user_id``."""
    query = select(models.Connection).where(_involves(user_id))
    if other_user_id and other_user_id != user_id:
        query = query.where(_involves(other_user_id))
    if requester_id:
        query = query.where(models.Connection.requester_id == requester_id)
    if recipient_id:
        query = query.where(models.Connection.recipient_id == recipient_id)
    if status:
        query = query.where(models.Connection.status == status)
    if connection_type:
        query = query.where(models.Connection.connection_type == connection_type)
    query = query.order_by(models.Connection.created_at.desc(), models.Connection.id.desc()).limit(limit).offset(offset)
    return list((await session.execute(query)).scalars().all())


async def request_connection(
    session: AsyncSession,
    requester: CurrentUser,
    *,
    recipient_id: str,
    connection_type: str,
    message: str | None = None,
) -> models.Connection:
    """Send a connection request from the caller.

    Raises:
        ValidationFailed: SELF_CONNECTION_NOT_ALLOWED or CONNECTION_ALREADY_EXISTS
        NotFound: USER_NOT_FOUND if the recipient does not exist
    """
    if recipient_id == requester.id:
        raise ValidationFailed("Cannot send connection request to yourself", "SELF_CONNECTION_NOT_ALLOWED")
    if await session.get(models.User, recipient_id) is None:
        raise NotFound("User not found", "USER_NOT_FOUND")
    if await find_between(session, requester.id, recipient_id) is not None:
        raise ValidationFailed("Connection already exists", "CONNECTION_ALREADY_EXISTS")

    connection = models.Connection(
        requester_id=requester.id,
        recipient_id=recipient_id,
        connection_type=connection_type,
        message=message.strip() if message and message.strip() else None,
        status="pending",
    )
    try:
        session.add(connection)
        await session.flush()
        await NotificationService.connection_request(
            session,
            recipient_id=recipient_id,
            requester_name=requester.name,
            requester_id=requester.id,
        )
        await session.commit()
    except IntegrityError as e:
        await session.rollback()
        raise ValidationFailed("Connection already exists", "CONNECTION_ALREADY_EXISTS") from e

    await session.refresh(connection)
    logger.info(f"Connection request {connection.id}: {requester.id} -> {recipient_id} ({connection_type})")
    return connection


async def update_connection(
    session: AsyncSession,
    connection_id: int,
    user: CurrentUser,
    changes: dict[str, Any],
) -> models.Connection:
    """Respond to a request (recipient) or edit its message (requester)."""
    connection = await get_connection(session, connection_id, user.id)

    new_status = changes.get("status")
    if new_status is not None and user.id != connection.recipient_id:
        raise Forbidden("Only the recipient can respond to a connection request", "FORBIDDEN_NOT_RECIPIENT")
    if "message" in changes and user.id != connection.requester_id:
        raise Forbidden("Only the requester can edit the request message", "FORBIDDEN_NOT_REQUESTER")

    previous = connection.status
    if "message" in changes:
        message = changes["message"]
        connection.message = message.strip() if message and message.strip() else None
    if new_status is not None and new_status != previous:
        connection.status = new_status
        connection.responded_at = utcnow() if new_status != "pending" else None
        if new_status == "accepted":
            await NotificationService.connection_accepted(
                session,
                requester_id=connection.requester_id,
                accepter_name=user.name,
                accepter_id=user.id,
            )

    await session.commit()
    await session.refresh(connection)
    logger.info(f"Updated connection {connection_id}: {previous} -> {connection.status}")
    return connection


async def delete_connection(session: AsyncSession, connection_id: int, user_id: str) -> None:
    connection = await get_connection(session, connection_id, user_id)
    await session.delete(connection)
    await session.commit()
    logger.info(f"User {user_id} deleted connection {connection_id}")

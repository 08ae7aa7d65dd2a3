"""In-app notifications: storage, read state and the message templates
other services use to notify users.

Template helpers only ``add``/``flush``; the caller owns the transaction so a
notification is committed together with the action that triggered it.
"""
from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from .. import models
from ..errors import NotFound, ValidationFailed
from ..timeutil import utcnow

logger = logging.getLogger(__name__)

NOTIFICATION_TYPES = ("connection", "message", "job", "event", "credential", "mention", "application")

_APPLICATION_STATUS_MESSAGES = {
    "reviewed": "Your application has been reviewed",
    "shortlisted": "Congratulations! You have been shortlisted",
    "rejected": "Your application was not selected this time",
    "hired": "Congratulations! You have been selected for the position",
}


async def add_notification(
    session: AsyncSession,
    *,
    user_id: str,
    type: str,
    title: str,
    message: str,
    action_url: str | None = None,
    metadata: dict[str, Any] | None = None,
) -> models.Notification:
    """Stage a notification in the current transaction."""
    if type not in NOTIFICATION_TYPES:
        raise ValidationFailed(f"type must be one of: {', '.join(NOTIFICATION_TYPES)}", "INVALID_TYPE")

    notification = models.Notification(
        user_id=user_id,
        type=type,
        title=title,
        message=message,
        action_url=action_url,
        metadata_=metadata,
    )
    session.add(notification)
    await session.flush()
    return notification


class NotificationService:
    """Predefined notification templates."""

    @staticmethod
    async def connection_request(session: AsyncSession, recipient_id: str, requester_name: str, requester_id: str):
        return await add_notification(
            session,
            user_id=recipient_id,
            type="connection",
            title="New Connection Request",
            message=f"{requester_name} wants to connect with you",
            action_url="/dashboard/connections?tab=requests",
            metadata={"requesterId": requester_id, "requesterName": requester_name},
        )

    @staticmethod
    async def connection_accepted(session: AsyncSession, requester_id: str, accepter_name: str, accepter_id: str):
        return await add_notification(
            session,
            user_id=requester_id,
            type="connection",
            title="Connection Request Accepted",
            message=f"{accepter_name} accepted your connection request",
            action_url=f"/dashboard/profile/{accepter_id}",
            metadata={"accepterId": accepter_id, "accepterName": accepter_name},
        )

    @staticmethod
    async def new_message(
        session: AsyncSession,
        recipient_id: str,
        sender_name: str,
        sender_id: str,
        conversation_id: int,
    ):
        return await add_notification(
            session,
            user_id=recipient_id,
            type="message",
            title="New Message",
            message=f"{sender_name} sent you a message",
            action_url=f"/dashboard/messages?conversation={conversation_id}",
            metadata={"senderId": sender_id, "senderName": sender_name, "conversationId": conversation_id},
        )

    @staticmethod
    async def job_application(
        session: AsyncSession,
        poster_id: str,
        applicant_name: str,
        applicant_id: str,
        job_id: int,
        job_title: str,
    ):
        return await add_notification(
            session,
            user_id=poster_id,
            type="application",
            title="New Job Application",
            message=f"{applicant_name} applied for {job_title}",
            action_url=f"/dashboard/jobs/{job_id}/applications",
            metadata={
                "applicantId": applicant_id,
                "applicantName": applicant_name,
                "jobId": job_id,
                "jobTitle": job_title,
            },
        )

    @staticmethod
    async def application_status(session: AsyncSession, applicant_id: str, job_title: str, status: str, job_id: int):
        lead = _APPLICATION_STATUS_MESSAGES.get(status, "Your application status has been updated")
        return await add_notification(
            session,
            user_id=applicant_id,
            type="application",
            title="Application Status Update",
            message=f"{lead} for {job_title}",
            action_url=f"/dashboard/jobs/{job_id}",
            metadata={"jobId": job_id, "jobTitle": job_title, "status": status},
        )

    @staticmethod
    async def event_registration(
        session: AsyncSession,
        organizer_id: str,
        attendee_name: str,
        attendee_id: str,
        event_id: int,
        event_title: str,
    ):
        return await add_notification(
            session,
            user_id=organizer_id,
            type="event",
            title="New Event Registration",
            message=f"{attendee_name} registered for {event_title}",
            action_url=f"/dashboard/events/{event_id}",
            metadata={
                "attendeeId": attendee_id,
                "attendeeName": attendee_name,
                "eventId": event_id,
                "eventTitle": event_title,
            },
        )

    @staticmethod
    async def credential_verified(session: AsyncSession, user_id: str, credential_title: str, credential_id: int):
        return await add_notification(
            session,
            user_id=user_id,
            type="credential",
            title="Credential Verified",
            message=f"Your {credential_title} credential has been verified",
            action_url=f"/dashboard/credentials/{credential_id}",
            metadata={"credentialId": credential_id, "credentialTitle": credential_title},
        )

    @staticmethod
    async def mention(session: AsyncSession, user_id: str, mentioner_name: str, mentioner_id: str, post_id: int):
        return await add_notification(
            session,
            user_id=user_id,
            type="mention",
            title="You were mentioned",
            message=f"{mentioner_name} mentioned you in a post",
            action_url=f"/dashboard/posts/{post_id}",
            metadata={"mentionerId": mentioner_id, "mentionerName": mentioner_name, "postId": post_id},
        )


async def create_notification(
    session: AsyncSession,
    *,
    user_id: str,
    type: str,
    title: str,
    message: str,
    action_url: str | None = None,
    metadata: dict[str, Any] | None = None,
) -> models.Notification:
    """Create a notification for an existing user and commit it."""
    recipient = await session.get(models.User, user_id)
    if recipient is None:
        raise NotFound("User not found", "USER_NOT_FOUND")

    notification = await add_notification(
        session,
        user_id=user_id,
        type=type,
        title=title,
        message=message,
        action_url=action_url,
        metadata=metadata,
    )
    await session.commit()
    await session.refresh(notification)
    logger.info(f"Created {type} notification {notification.id} for user {user_id}")
    return notification


async def list_notifications(
    session: AsyncSession,
    user_id: str,
    *,
    is_read: bool | None = None,
    type: str | None = None,
    limit: int = 20,
    offset: int = 0,
) -> list[models.Notification]:
    query = select(models.Notification).where(models.Notification.user_id == user_id)
    if is_read is not None:
        query = query.where(models.Notification.is_read == is_read)
    if type:
        query = query.where(models.Notification.type == type)
    query = (
        query.order_by(models.Notification.created_at.desc(), models.Notification.id.desc())
        .limit(limit)
        .offset(offset)
    )
    return list((await session.execute(query)).scalars().all())


async def unread_count(session: AsyncSession, user_id: str) -> int:
    query = select(func.count(models.Notification.id)).where(
        models.Notification.user_id == user_id,
        models.Notification.is_read.is_(False),
    )
    return int((await session.execute(query)).scalar_one())


async def _get_owned(session: AsyncSession, notification_id: int, user_id: str) -> models.Notification:
    notification = await session.get(models.Notification, notification_id)
    if notification is None or notification.user_id != user_id:
        raise NotFound("Notification not found", "NOTIFICATION_NOT_FOUND")
    return notification


async def set_read_state(
    session: AsyncSession,
    notification_id: int,
    user_id: str,
    *,
    read: bool,
) -> models.Notification:
    notification = await _get_owned(session, notification_id, user_id)
    notification.is_read = read
    notification.read_at = utcnow() if read else None
    await session.commit()
    await session.refresh(notification)
    return notification


async def mark_all_read(session: AsyncSession, user_id: str) -> int:
    """Mark every unread notification of ``user_id`` as read; returns how many changed."""
    result = await session.execute(
        update(models.Notification)
        .where(
            models.Notification.user_id == user_id,
            models.Notification.is_read.is_(False),
        )
        .values(is_read=True, read_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    await session.commit()
    logger.info(f"Marked {result.rowcount} notifications read for user {user_id}")
    return result.rowcount


async def delete_notification(session: AsyncSession, notification_id: int, user_id: str) -> None:
    notification = await _get_owned(session, notification_id, user_id)
    await session.delete(notification)
    await session.commit()

"""Events and event registrations.

The attendee counter is only ever changed with a conditional UPDATE inside the
same transaction as the registration row, so concurrent registrations cannot
push ``current_attendees`` past ``max_attendees``.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any

from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from .. import models
from ..auth import CurrentUser
from ..errors import Forbidden, NotFound, ValidationFailed
from ..timeutil import start_of_day, to_naive_utc, utcnow
from ._query import apply_changes, contains_any
from .notifications import NotificationService
from .universities import get_university

logger = logging.getLogger(__name__)

EVENT_STATUSES = ("upcoming", "ongoing", "completed", "cancelled")
ATTENDANCE_STATUSES = ("registered", "attended", "no_show", "cancelled")


@dataclass
class RegistrationRow:
    """Registration joined with the registrant's user record."""
    registration: models.EventRegistration
    user: models.User


def check_deadline(deadline: datetime | None, event_date: date) -> datetime | None:
    """Normalize a deadline to naive UTC and require it to precede the event day."""
    if deadline is None:
        return None
    deadline = to_naive_utc(deadline)
    if deadline >= start_of_day(event_date):
        raise ValidationFailed(
            "Registration deadline must be before the event date",
            "INVALID_REGISTRATION_DEADLINE_DATE",
        )
    return deadline


async def get_event(session: AsyncSession, event_id: int) -> models.Event:
    event = await session.get(models.Event, event_id)
    if event is None:
        raise NotFound("Event not found", "EVENT_NOT_FOUND")
    return event


async def registration_count(session: AsyncSession, event_id: int) -> int:
    query = select(func.count(models.EventRegistration.id)).where(models.EventRegistration.event_id == event_id)
    return int((await session.execute(query)).scalar_one())


async def list_events(
    session: AsyncSession,
    *,
    university_id: int | None = None,
    status: str | None = None,
    organizer_id: str | None = None,
    is_public: bool | None = None,
    upcoming: bool = False,
    past: bool = False,
    search: str | None = None,
    limit: int = 20,
    offset: int = 0,
) -> list[models.Event]:
    query = select(models.Event)
    if university_id is not None:
        query = query.where(models.Event.university_id == university_id)
    if status:
        query = query.where(models.Event.status == status)
    if organizer_id:
        query = query.where(models.Event.organizer_id == organizer_id)
    if is_public is not None:
        query = query.where(models.Event.is_public == is_public)
    today = utcnow().date()
    if upcoming:
        query = query.where(models.Event.event_date >= today)
    if past:
        query = query.where(models.Event.event_date < today)
    if search:
        query = query.where(
            contains_any(search, models.Event.title, models.Event.description, models.Event.location)
        )
    query = query.order_by(models.Event.created_at.desc(), models.Event.id.desc()).limit(limit).offset(offset)
    return list((await session.execute(query)).scalars().all())


async def create_event(session: AsyncSession, organizer_id: str, data: dict[str, Any]) -> models.Event:
    if data.get("university_id") is not None:
        await get_university(session, data["university_id"])
    data["registration_deadline"] = check_deadline(data.get("registration_deadline"), data["event_date"])

    event = models.Event(
        organizer_id=organizer_id,
        status="upcoming",
        current_attendees=0,
        **data,
    )
    session.add(event)
    await session.commit()
    await session.refresh(event)
    logger.info(f"Created event {event.id}: {event.title} on {event.event_date} by {organizer_id}")
    return event


async def _get_organized(session: AsyncSession, event_id: int, user_id: str) -> models.Event:
    event = await get_event(session, event_id)
    if event.organizer_id != user_id:
        logger.warning(f"User {user_id} is not the organizer of event {event_id}")
        raise Forbidden("Only the event organizer can perform this action", "FORBIDDEN_NOT_ORGANIZER")
    return event


async def update_event(session: AsyncSession, event_id: int, user_id: str, changes: dict[str, Any]) -> models.Event:
    event = await _get_organized(session, event_id, user_id)
    if changes.get("university_id") is not None:
        await get_university(session, changes["university_id"])

    max_attendees = changes.get("max_attendees")
    if max_attendees is not None and max_attendees < event.current_attendees:
        raise ValidationFailed(
            "Max attendees cannot be less than current attendees",
            "MAX_ATTENDEES_TOO_LOW",
        )

    if "registration_deadline" in changes or "event_date" in changes:
        effective_date = changes.get("event_date") or event.event_date
        deadline = changes["registration_deadline"] if "registration_deadline" in changes else event.registration_deadline
        changes["registration_deadline"] = check_deadline(deadline, effective_date)

    apply_changes(event, changes)
    await session.commit()
    await session.refresh(event)
    logger.info(f"Updated event {event_id}: {sorted(changes)}")
    return event


async def delete_event(session: AsyncSession, event_id: int, user_id: str) -> models.Event:
    event = await _get_organized(session, event_id, user_id)
    await session.delete(event)
    await session.commit()
    logger.info(f"Deleted event {event_id}")
    return event


async def _claim_seat(session: AsyncSession, event_id: int) -> bool:
    """Atomically take one seat; False when the event is at capacity."""
    result = await session.execute(
        update(models.Event)
        .where(
            models.Event.id == event_id,
            or_(
                models.Event.max_attendees.is_(None),
                models.Event.current_attendees < models.Event.max_attendees,
            ),
        )
        .values(current_attendees=models.Event.current_attendees + 1, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def _release_seat(session: AsyncSession, event_id: int) -> None:
    await session.execute(
        update(models.Event)
        .where(models.Event.id == event_id, models.Event.current_attendees > 0)
        .values(current_attendees=models.Event.current_attendees - 1, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )


async def _find_registration(session: AsyncSession, event_id: int, user_id: str) -> models.EventRegistration | None:
    query = select(models.EventRegistration).where(
        models.EventRegistration.event_id == event_id,
        models.EventRegistration.user_id == user_id,
    )
    return (await session.execute(query)).scalar_one_or_none()


async def register(session: AsyncSession, event_id: int, user: CurrentUser) -> models.EventRegistration:
    """Register ``user`` for an event.

    Raises:
        ValidationFailed: INVALID_EVENT_STATUS, DEADLINE_PASSED,
            ALREADY_REGISTERED or EVENT_FULL
    """
    event = await get_event(session, event_id)

    if event.status != "upcoming":
        raise ValidationFailed(f"Cannot register for {event.status} events", "INVALID_EVENT_STATUS")
    if event.registration_deadline is not None and utcnow() > event.registration_deadline:
        raise ValidationFailed("Registration deadline has passed", "DEADLINE_PASSED")
    if await _find_registration(session, event_id, user.id) is not None:
        raise ValidationFailed("Already registered for this event", "ALREADY_REGISTERED")

    try:
        if not await _claim_seat(session, event_id):
            raise ValidationFailed("Event is full", "EVENT_FULL")

        registration = models.EventRegistration(
            event_id=event_id,
            user_id=user.id,
            attendance_status="registered",
        )
        session.add(registration)
        await session.flush()

        if event.organizer_id != user.id:
            await NotificationService.event_registration(
                session,
                organizer_id=event.organizer_id,
                attendee_name=user.name,
                attendee_id=user.id,
                event_id=event_id,
                event_title=event.title,
            )
        await session.commit()
    except ValidationFailed:
        await session.rollback()
        logger.warning(f"Event {event_id} is full, rejected registration of {user.id}")
        raise
    except IntegrityError as e:
        await session.rollback()
        raise ValidationFailed("Already registered for this event", "ALREADY_REGISTERED") from e

    await session.refresh(registration)
    logger.info(f"User {user.id} registered for event {event_id}")
    return registration


async def cancel_registration(session: AsyncSession, event_id: int, user_id: str) -> models.EventRegistration:
    registration = await _find_registration(session, event_id, user_id)
    if registration is None:
        raise NotFound("Registration not found", "REGISTRATION_NOT_FOUND")

    event = await get_event(session, event_id)
    if event.status != "upcoming":
        raise ValidationFailed("Cannot cancel registration for non-upcoming events", "INVALID_EVENT_STATUS")

    await session.delete(registration)
    if registration.attendance_status != "cancelled":
        await _release_seat(session, event_id)
    await session.commit()
    logger.info(f"User {user_id} cancelled registration for event {event_id}")
    return registration


async def list_registrations(
    session: AsyncSession,
    event_id: int,
    user_id: str,
    *,
    attendance_status: str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> list[RegistrationRow]:
    await _get_organized(session, event_id, user_id)

    query = (
        select(models.EventRegistration, models.User)
        .join(models.User, models.User.id == models.EventRegistration.user_id)
        .where(models.EventRegistration.event_id == event_id)
    )
    if attendance_status:
        query = query.where(models.EventRegistration.attendance_status == attendance_status)
    query = (
        query.order_by(models.EventRegistration.registered_at.desc(), models.EventRegistration.id.desc())
        .limit(limit)
        .offset(offset)
    )
    rows = (await session.execute(query)).all()
    return [RegistrationRow(registration=reg, user=usr) for reg, usr in rows]


async def set_attendance(
    session: AsyncSession,
    event_id: int,
    registration_id: int,
    user_id: str,
    attendance_status: str,
) -> models.EventRegistration:
    """Record attendance; moving in or out of ``cancelled`` frees or takes a seat."""
    await _get_organized(session, event_id, user_id)

    registration = await session.get(models.EventRegistration, registration_id)
    if registration is None or registration.event_id != event_id:
        raise NotFound("Registration not found", "REGISTRATION_NOT_FOUND")

    previous = registration.attendance_status
    try:
        if previous != "cancelled" and attendance_status == "cancelled":
            await _release_seat(session, event_id)
        elif previous == "cancelled" and attendance_status != "cancelled":
            if not await _claim_seat(session, event_id):
                raise ValidationFailed("Event is full", "EVENT_FULL")

        registration.attendance_status = attendance_status
        await session.commit()
    except ValidationFailed:
        await session.rollback()
        raise

    await session.refresh(registration)
    logger.info(f"Registration {registration_id} on event {event_id}: {previous} -> {attendance_status}")
    return registration

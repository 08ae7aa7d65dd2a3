"""Event endpoints, including registration and attendance tracking."""
from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Annotated, Any

from fastapi import APIRouter, Depends, Query, status
from pydantic import Field, model_validator
from sqlalchemy.ext.asyncio import AsyncSession

from ..auth import CurrentUser, get_current_user
from ..db import get_session
from ..errors import ValidationFailed
from ..schemas import CamelModel, MessageResponse, Page, changed_fields, non_blank, one_of, pagination, reject_fields
from ..services import events as service
from ..services.events import ATTENDANCE_STATUSES, EVENT_STATUSES

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/events", tags=["events"])

_SERVER_OWNED = {"organizerId": "ORGANIZER_ID_NOT_ALLOWED", "organizer_id": "ORGANIZER_ID_NOT_ALLOWED"}
_NULLABLE_COLUMNS = frozenset({"university_id", "max_attendees", "image_url", "tags", "registration_deadline"})


class EventDTO(CamelModel):
    id: int
    title: str
    description: str
    event_date: date
    event_time: str
    location: str
    university_id: int | None = None
    organizer_id: str
    max_attendees: int | None = None
    current_attendees: int
    image_url: str | None = None
    status: str
    tags: list[str] | None = None
    registration_deadline: datetime | None = None
    is_public: bool
    created_at: datetime
    updated_at: datetime


class EventDetailDTO(EventDTO):
    registration_count: int


class CreateEventRequest(CamelModel):
    title: Annotated[str, non_blank("INVALID_TITLE", "Title")]
    description: Annotated[str, non_blank("INVALID_DESCRIPTION", "Description")]
    event_date: date
    event_time: Annotated[str, non_blank("INVALID_EVENT_TIME", "Event time")]
    location: Annotated[str, non_blank("INVALID_LOCATION", "Location")]
    university_id: int | None = None
    max_attendees: int | None = Field(default=None, gt=0)
    image_url: str | None = None
    tags: list[str] | None = None
    registration_deadline: datetime | None = None
    is_public: bool = True

    @model_validator(mode="before")
    @classmethod
    def _no_organizer(cls, data: Any) -> Any:
        return reject_fields(data, _SERVER_OWNED)


class UpdateEventRequest(CamelModel):
    title: Annotated[str, non_blank("INVALID_TITLE", "Title")] | None = None
    description: Annotated[str, non_blank("INVALID_DESCRIPTION", "Description")] | None = None
    event_date: date | None = None
    event_time: Annotated[str, non_blank("INVALID_EVENT_TIME", "Event time")] | None = None
    location: Annotated[str, non_blank("INVALID_LOCATION", "Location")] | None = None
    university_id: int | None = None
    max_attendees: int | None = Field(default=None, gt=0)
    image_url: str | None = None
    status: Annotated[str, one_of("INVALID_STATUS", "status", EVENT_STATUSES)] | None = None
    tags: list[str] | None = None
    registration_deadline: datetime | None = None
    is_public: bool | None = None

    @model_validator(mode="before")
    @classmethod
    def _no_organizer(cls, data: Any) -> Any:
        return reject_fields(data, _SERVER_OWNED)


class RegistrationDTO(CamelModel):
    id: int
    event_id: int
    user_id: str
    registered_at: datetime
    attendance_status: str
    created_at: datetime
    updated_at: datetime


class RegistrantDTO(RegistrationDTO):
    user_name: str
    user_email: str
    user_image: str | None = None


class CancelRegistrationResponse(CamelModel):
    message: str
    registration: RegistrationDTO


class AttendanceRequest(CamelModel):
    attendance_status: Annotated[str, one_of("INVALID_STATUS", "attendanceStatus", ATTENDANCE_STATUSES)]


@router.get("", response_model=list[EventDTO])
async def list_events(
    university_id: int | None = Query(default=None, alias="universityId"),
    status: str | None = None,
    organizer_id: str | None = Query(default=None, alias="organizerId"),
    is_public: bool | None = Query(default=None, alias="isPublic"),
    upcoming: bool = False,
    past: bool = False,
    search: str | None = None,
    page: Page = Depends(pagination(default=20, maximum=100)),
    session: AsyncSession = Depends(get_session),
):
    return await service.list_events(
        session,
        university_id=university_id,
        status=status,
        organizer_id=organizer_id,
        is_public=is_public,
        upcoming=upcoming,
        past=past,
        search=search,
        limit=page.limit,
        offset=page.offset,
    )


@router.get("/{event_id}", response_model=EventDetailDTO)
async def get_event(event_id: int, session: AsyncSession = Depends(get_session)) -> EventDetailDTO:
    event = await service.get_event(session, event_id)
    count = await service.registration_count(session, event_id)
    return EventDetailDTO(**EventDTO.model_validate(event).model_dump(), registration_count=count)


@router.post("", response_model=EventDTO, status_code=status.HTTP_201_CREATED)
async def create_event(
    request: CreateEventRequest,
    user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    logger.info(f"User {user.id} creating event: {request.title}")
    return await service.create_event(session, user.id, request.model_dump())


@router.put("/{event_id}", response_model=EventDTO)
async def update_event(
    event_id: int,
    request: UpdateEventRequest,
    user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return await service.update_event(session, event_id, user.id, changed_fields(request, nullable=_NULLABLE_COLUMNS))


@router.delete("/{event_id}", response_model=MessageResponse)
async def delete_event(
    event_id: int,
    user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> MessageResponse:
    await service.delete_event(session, event_id, user.id)
    return MessageResponse(message="Event deleted successfully")


@router.post("/{event_id}/register", response_model=RegistrationDTO, status_code=status.HTTP_201_CREATED)
async def register_for_event(
    event_id: int,
    user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return await service.register(session, event_id, user)


@router.delete("/{event_id}/register", response_model=CancelRegistrationResponse)
async def cancel_registration(
    event_id: int,
    user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> CancelRegistrationResponse:
    registration = await service.cancel_registration(session, event_id, user.id)
    return CancelRegistrationResponse(
        message="Registration cancelled successfully",
        registration=RegistrationDTO.model_validate(registration),
    )


@router.get("/{event_id}/registrations", response_model=list[RegistrantDTO])
async def list_registrations(
    event_id: int,
    attendance_status: str | None = Query(default=None, alias="attendanceStatus"),
    page: Page = Depends(pagination(default=50, maximum=200)),
    user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> list[RegistrantDTO]:
    if attendance_status and attendance_status not in ATTENDANCE_STATUSES:
        raise ValidationFailed(
            f"attendanceStatus must be one of: {', '.join(ATTENDANCE_STATUSES)}",
            "INVALID_STATUS",
        )

    rows = await service.list_registrations(
        session,
        event_id,
        user.id,
        attendance_status=attendance_status,
        limit=page.limit,
        offset=page.offset,
    )
    return [
        RegistrantDTO(
            **RegistrationDTO.model_validate(row.registration).model_dump(),
            user_name=row.user.name,
            user_email=row.user.email,
            user_image=row.user.image,
        )
        for row in rows
    ]


@router.put("/{event_id}/registrations/{registration_id}", response_model=RegistrationDTO)
async def update_attendance(
    event_id: int,
    registration_id: int,
    request: AttendanceRequest,
    user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return await service.set_attendance(session, event_id, registration_id, user.id, request.attendance_status)

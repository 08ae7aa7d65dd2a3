"""Profile endpoints."""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Response, status
from pydantic import BeforeValidator, Field
from sqlalchemy.ext.asyncio import AsyncSession

from ..auth import CurrentUser, get_current_user
from ..db import get_session
from ..schemas import CamelModel, MessageResponse, Page, changed_fields, one_of, pagination, split_list
from ..services import profiles as service
from ..services.profiles import ROLES, VERIFICATION_STATUSES

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/profiles", tags=["profiles"])

Role = Annotated[str, one_of("INVALID_ROLE", "role", ROLES, lower=True)]
VerificationStatus = Annotated[str, one_of("INVALID_VERIFICATION_STATUS", "verificationStatus", VERIFICATION_STATUSES)]
Skills = Annotated[list[str] | None, BeforeValidator(split_list("INVALID_SKILLS_FORMAT", "skills"))]
Interests = Annotated[list[str] | None, BeforeValidator(split_list("INVALID_INTERESTS_FORMAT", "interests"))]

_NULLABLE_COLUMNS = frozenset({
    "university_id", "graduation_year", "major", "degree", "current_position", "company",
    "location", "bio", "skills", "interests", "phone_number", "linkedin_url",
})


class ProfileDTO(CamelModel):
    id: int
    user_id: str
    role: str
    university_id: int | None = None
    graduation_year: int | None = None
    major: str | None = None
    degree: str | None = None
    current_position: str | None = None
    company: str | None = None
    location: str | None = None
    bio: str | None = None
    skills: list[str] | None = None
    interests: list[str] | None = None
    phone_number: str | None = None
    linkedin_url: str | None = None
    is_verified: bool
    verification_status: str
    created_at: datetime
    updated_at: datetime


class ProfileFields(CamelModel):
    university_id: int | None = None
    graduation_year: int | None = Field(default=None, ge=1900, le=2100)
    major: str | None = None
    degree: str | None = None
    current_position: str | None = None
    company: str | None = None
    location: str | None = None
    bio: str | None = None
    skills: Skills = None
    interests: Interests = None
    phone_number: str | None = None
    linkedin_url: str | None = None
    is_verified: bool | None = None
    verification_status: VerificationStatus | None = None


class UpsertProfileRequest(ProfileFields):
    role: Role


class UpdateProfileRequest(ProfileFields):
    role: Role | None = None


@router.get("", response_model=list[ProfileDTO])
async def list_profiles(
    university_id: int | None = Query(default=None, alias="universityId"),
    role: str | None = None,
    search: str | None = None,
    page: Page = Depends(pagination(default=10, maximum=100)),
    session: AsyncSession = Depends(get_session),
):
    return await service.list_profiles(
        session,
        university_id=university_id,
        role=role,
        search=search,
        limit=page.limit,
        offset=page.offset,
    )


@router.get("/by-user/{user_id}", response_model=ProfileDTO)
async def get_profile_by_user(user_id: str, session: AsyncSession = Depends(get_session)):
    return await service.get_profile_by_user(session, user_id)


@router.get("/{profile_id}", response_model=ProfileDTO)
async def get_profile(profile_id: int, session: AsyncSession = Depends(get_session)):
    return await service.get_profile(session, profile_id)


@router.post("", response_model=ProfileDTO, status_code=status.HTTP_201_CREATED)
async def upsert_profile(
    request: UpsertProfileRequest,
    response: Response,
    user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Create the caller's profile, or update it (200) when it already exists."""
    profile, created = await service.upsert_profile(session, user, changed_fields(request, nullable=_NULLABLE_COLUMNS))
    if not created:
        response.status_code = status.HTTP_200_OK
    return profile


@router.put("/{profile_id}", response_model=ProfileDTO)
async def update_profile(
    profile_id: int,
    request: UpdateProfileRequest,
    user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return await service.update_profile(session, profile_id, user, changed_fields(request, nullable=_NULLABLE_COLUMNS))


@router.delete("/{profile_id}", response_model=MessageResponse)
async def delete_profile(
    profile_id: int,
    user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> MessageResponse:
    await service.delete_profile(session, profile_id, user.id)
    return MessageResponse(message="Profile deleted successfully")

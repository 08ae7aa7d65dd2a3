"""Scholarship endpoints."""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Annotated, Any, Literal

from fastapi import APIRouter, Depends, Query, status
from pydantic import BeforeValidator, Field, model_validator
from sqlalchemy.ext.asyncio import AsyncSession

from ..auth import CurrentUser, get_current_user
from ..db import get_session
from ..schemas import (
    CamelModel,
    MessageResponse,
    Page,
    changed_fields,
    non_blank,
    one_of,
    pagination,
    reject_fields,
    split_list,
)
from ..services import scholarships as service
from ..services.scholarships import RECURRING_FREQUENCIES, SCHOLARSHIP_CATEGORIES, SCHOLARSHIP_STATUSES

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/scholarships", tags=["scholarships"])

Category = Annotated[str, one_of("INVALID_CATEGORY", "category", SCHOLARSHIP_CATEGORIES, lower=True)]
ScholarshipStatus = Annotated[str, one_of("INVALID_STATUS", "status", SCHOLARSHIP_STATUSES)]
Frequency = Annotated[str, one_of("INVALID_RECURRING_FREQUENCY", "recurringFrequency", RECURRING_FREQUENCIES)]
Requirements = Annotated[list[str] | None, BeforeValidator(split_list("INVALID_REQUIREMENTS_FORMAT", "requirements"))]
Tags = Annotated[list[str] | None, BeforeValidator(split_list("INVALID_TAGS_FORMAT", "tags"))]

_SERVER_OWNED = {
    "fundedById": "FUNDED_BY_ID_NOT_ALLOWED",
    "funded_by_id": "FUNDED_BY_ID_NOT_ALLOWED",
    "currentRecipients": "CURRENT_RECIPIENTS_NOT_ALLOWED",
    "current_recipients": "CURRENT_RECIPIENTS_NOT_ALLOWED",
}

_NULLABLE_COLUMNS = frozenset({"university_id", "requirements", "recurring_frequency", "tags"})


class ScholarshipDTO(CamelModel):
    id: int
    title: str
    description: str
    amount: int
    currency: str
    funded_by_id: str
    university_id: int | None = None
    eligibility_criteria: str
    application_deadline: datetime
    max_recipients: int
    current_recipients: int
    category: str
    academic_year: str
    requirements: list[str] | None = None
    status: str
    is_recurring: bool
    recurring_frequency: str | None = None
    tags: list[str] | None = None
    created_at: datetime
    updated_at: datetime


class CreateScholarshipRequest(CamelModel):
    title: Annotated[str, non_blank("INVALID_TITLE", "Title")]
    description: Annotated[str, non_blank("INVALID_DESCRIPTION", "Description")]
    amount: int = Field(gt=0)
    currency: str = Field(default="INR", min_length=1, max_length=8)
    university_id: int | None = None
    eligibility_criteria: Annotated[str, non_blank("INVALID_ELIGIBILITY_CRITERIA", "eligibilityCriteria")]
    application_deadline: datetime
    max_recipients: int = Field(default=1, ge=1)
    category: Category
    academic_year: Annotated[str, non_blank("INVALID_ACADEMIC_YEAR", "academicYear")]
    requirements: Requirements = None
    status: ScholarshipStatus = "active"
    is_recurring: bool = False
    recurring_frequency: Frequency | None = None
    tags: Tags = None

    @model_validator(mode="before")
    @classmethod
    def _no_owner(cls, data: Any) -> Any:
        return reject_fields(data, _SERVER_OWNED)


class UpdateScholarshipRequest(CamelModel):
    title: Annotated[str, non_blank("INVALID_TITLE", "Title")] | None = None
    description: Annotated[str, non_blank("INVALID_DESCRIPTION", "Description")] | None = None
    amount: int | None = Field(default=None, gt=0)
    currency: str | None = Field(default=None, min_length=1, max_length=8)
    university_id: int | None = None
    eligibility_criteria: Annotated[str, non_blank("INVALID_ELIGIBILITY_CRITERIA", "eligibilityCriteria")] | None = None
    application_deadline: datetime | None = None
    max_recipients: int | None = Field(default=None, ge=1)
    category: Category | None = None
    academic_year: Annotated[str, non_blank("INVALID_ACADEMIC_YEAR", "academicYear")] | None = None
    requirements: Requirements = None
    status: ScholarshipStatus | None = None
    is_recurring: bool | None = None
    recurring_frequency: Frequency | None = None
    tags: Tags = None

    @model_validator(mode="before")
    @classmethod
    def _no_owner(cls, data: Any) -> Any:
        return reject_fields(data, _SERVER_OWNED)


@router.get("", response_model=list[ScholarshipDTO])
async def list_scholarships(
    search: str | None = None,
    category: str | None = None,
    funded_by_id: str | None = Query(default=None, alias="fundedById"),
    university_id: int | None = Query(default=None, alias="universityId"),
    academic_year: str | None = Query(default=None, alias="academicYear"),
    status: str = "active",
    sort_by: Literal["title", "amount", "applicationDeadline", "createdAt"] = Query(default="createdAt", alias="sortBy"),
    sort_order: Literal["asc", "desc"] = Query(default="desc", alias="sortOrder"),
    page: Page = Depends(pagination(default=20, maximum=100)),
    session: AsyncSession = Depends(get_session),
):
    return await service.list_scholarships(
        session,
        status=status,
        search=search,
        category=category,
        funded_by_id=funded_by_id,
        university_id=university_id,
        academic_year=academic_year,
        sort_by=sort_by,
        sort_order=sort_order,
        limit=page.limit,
        offset=page.offset,
    )


@router.get("/{scholarship_id}", response_model=ScholarshipDTO)
async def get_scholarship(scholarship_id: int, session: AsyncSession = Depends(get_session)):
    return await service.get_scholarship(session, scholarship_id)


@router.post("", response_model=ScholarshipDTO, status_code=status.HTTP_201_CREATED)
async def create_scholarship(
    request: CreateScholarshipRequest,
    user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return await service.create_scholarship(session, user.id, request.model_dump())


@router.put("/{scholarship_id}", response_model=ScholarshipDTO)
async def update_scholarship(
    scholarship_id: int,
    request: UpdateScholarshipRequest,
    user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return await service.update_scholarship(
        session,
        scholarship_id,
        user.id,
        changed_fields(request, nullable=_NULLABLE_COLUMNS),
    )


@router.delete("/{scholarship_id}", response_model=MessageResponse)
async def delete_scholarship(
    scholarship_id: int,
    user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> MessageResponse:
    scholarship = await service.delete_scholarship(session, scholarship_id, user.id)
    return MessageResponse(message=f"Scholarship {scholarship.title} deleted successfully")

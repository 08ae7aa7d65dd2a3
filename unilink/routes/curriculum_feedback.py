"""Curriculum feedback endpoints."""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Annotated, Any, Literal

from fastapi import APIRouter, Depends, Query, status
from pydantic import BeforeValidator, model_validator
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
from ..services import curriculum_feedback as service
from ..services.curriculum_feedback import FEEDBACK_STATUSES, FEEDBACK_TYPES, LEVELS, PRIORITIES

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/curriculum-feedback", tags=["curriculum-feedback"])

FeedbackType = Annotated[str, one_of("INVALID_FEEDBACK_TYPE", "feedbackType", FEEDBACK_TYPES)]
Priority = Annotated[str, one_of("INVALID_PRIORITY", "priority", PRIORITIES, lower=True)]
Complexity = Annotated[str, one_of("INVALID_IMPLEMENTATION_COMPLEXITY", "implementationComplexity", LEVELS, lower=True)]
Impact = Annotated[str, one_of("INVALID_POTENTIAL_IMPACT", "potentialImpact", LEVELS, lower=True)]
FeedbackStatus = Annotated[str, one_of("INVALID_STATUS", "status", FEEDBACK_STATUSES)]
Skills = Annotated[list[str] | None, BeforeValidator(split_list("INVALID_SKILLS_FORMAT", "skillsInDemand"))]
Tools = Annotated[list[str] | None, BeforeValidator(split_list("INVALID_TOOLS_FORMAT", "toolsAndTechnologies"))]
Projects = Annotated[list[str] | None, BeforeValidator(split_list("INVALID_PROJECTS_FORMAT", "industryProjects"))]

_SERVER_OWNED = {
    "submittedById": "SUBMITTED_BY_ID_NOT_ALLOWED",
    "submitted_by_id": "SUBMITTED_BY_ID_NOT_ALLOWED",
    "reviewedById": "REVIEWED_BY_ID_NOT_ALLOWED",
    "reviewed_by_id": "REVIEWED_BY_ID_NOT_ALLOWED",
}

_NULLABLE_COLUMNS = frozenset({
    "course_code", "course_name", "skills_in_demand", "tools_and_technologies", "industry_projects",
    "implementation_complexity", "potential_impact", "supporting_evidence", "review_notes",
    "implementation_timeline",
})


class FeedbackDTO(CamelModel):
    id: int
    submitted_by_id: str
    university_id: int
    department: str
    course_code: str | None = None
    course_name: str | None = None
    feedback_type: str
    current_industry_trends: str
    suggested_changes: str
    skills_in_demand: list[str] | None = None
    tools_and_technologies: list[str] | None = None
    industry_projects: list[str] | None = None
    priority: str
    implementation_complexity: str | None = None
    potential_impact: str | None = None
    supporting_evidence: str | None = None
    status: str
    review_notes: str | None = None
    reviewed_at: datetime | None = None
    reviewed_by_id: str | None = None
    implementation_timeline: str | None = None
    created_at: datetime
    updated_at: datetime


class SubmitFeedbackRequest(CamelModel):
    university_id: int
    department: Annotated[str, non_blank("INVALID_DEPARTMENT", "Department")]
    course_code: str | None = None
    course_name: str | None = None
    feedback_type: FeedbackType
    current_industry_trends: Annotated[str, non_blank("INVALID_CURRENT_INDUSTRY_TRENDS", "currentIndustryTrends")]
    suggested_changes: Annotated[str, non_blank("INVALID_SUGGESTED_CHANGES", "suggestedChanges")]
    skills_in_demand: Skills = None
    tools_and_technologies: Tools = None
    industry_projects: Projects = None
    priority: Priority = "medium"
    implementation_complexity: Complexity | None = None
    potential_impact: Impact | None = None
    supporting_evidence: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _no_owner(cls, data: Any) -> Any:
        return reject_fields(data, {**_SERVER_OWNED, "status": "STATUS_NOT_ALLOWED"})


class UpdateFeedbackRequest(CamelModel):
    university_id: int | None = None
    department: Annotated[str, non_blank("INVALID_DEPARTMENT", "Department")] | None = None
    course_code: str | None = None
    course_name: str | None = None
    feedback_type: FeedbackType | None = None
    current_industry_trends: Annotated[str, non_blank("INVALID_CURRENT_INDUSTRY_TRENDS", "currentIndustryTrends")] | None = None
    suggested_changes: Annotated[str, non_blank("INVALID_SUGGESTED_CHANGES", "suggestedChanges")] | None = None
    skills_in_demand: Skills = None
    tools_and_technologies: Tools = None
    industry_projects: Projects = None
    priority: Priority | None = None
    implementation_complexity: Complexity | None = None
    potential_impact: Impact | None = None
    supporting_evidence: str | None = None
    status: FeedbackStatus | None = None
    review_notes: str | None = None
    implementation_timeline: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _no_owner(cls, data: Any) -> Any:
        return reject_fields(data, _SERVER_OWNED)


@router.get("", response_model=list[FeedbackDTO])
async def list_feedback(
    submitted_by_id: str | None = Query(default=None, alias="submittedById"),
    university_id: int | None = Query(default=None, alias="universityId"),
    department: str | None = None,
    feedback_type: str | None = Query(default=None, alias="feedbackType"),
    status: str | None = None,
    priority: str | None = None,
    search: str | None = None,
    sort_by: Literal["priority", "status", "department", "createdAt"] = Query(default="createdAt", alias="sortBy"),
    sort_order: Literal["asc", "desc"] = Query(default="desc", alias="sortOrder"),
    page: Page = Depends(pagination(default=20, maximum=100)),
    session: AsyncSession = Depends(get_session),
):
    return await service.list_feedback(
        session,
        submitted_by_id=submitted_by_id,
        university_id=university_id,
        department=department,
        feedback_type=feedback_type,
        status=status,
        priority=priority,
        search=search,
        sort_by=sort_by,
        sort_order=sort_order,
        limit=page.limit,
        offset=page.offset,
    )


@router.get("/{feedback_id}", response_model=FeedbackDTO)
async def get_feedback(feedback_id: int, session: AsyncSession = Depends(get_session)):
    return await service.get_feedback(session, feedback_id)


@router.post("", response_model=FeedbackDTO, status_code=status.HTTP_201_CREATED)
async def submit_feedback(
    request: SubmitFeedbackRequest,
    user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return await service.submit_feedback(session, user.id, request.model_dump())


@router.put("/{feedback_id}", response_model=FeedbackDTO)
async def update_feedback(
    feedback_id: int,
    request: UpdateFeedbackRequest,
    user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return await service.update_feedback(session, feedback_id, user, changed_fields(request, nullable=_NULLABLE_COLUMNS))


@router.delete("/{feedback_id}", response_model=MessageResponse)
async def delete_feedback(
    feedback_id: int,
    user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> MessageResponse:
    await service.delete_feedback(session, feedback_id, user.id)
    return MessageResponse(message="Feedback deleted successfully")

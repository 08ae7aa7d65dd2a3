"""Job posting and application endpoints."""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Annotated, Literal

from fastapi import APIRouter, Depends, Query, status
from pydantic import BeforeValidator, Field
from sqlalchemy.ext.asyncio import AsyncSession

from ..auth import CurrentUser, get_current_user
from ..db import get_session
from ..schemas import CamelModel, MessageResponse, Page, changed_fields, non_blank, one_of, pagination, split_list
from ..services import jobs as service
from ..services.jobs import APPLICATION_STATUSES, EXPERIENCE_LEVELS, JOB_STATUSES, JOB_TYPES, ApplicationRow

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/jobs", tags=["jobs"])

JobType = Annotated[str, one_of("INVALID_JOB_TYPE", "jobType", JOB_TYPES)]
ExperienceLevel = Annotated[str, one_of("INVALID_EXPERIENCE_LEVEL", "experienceLevel", EXPERIENCE_LEVELS)]
JobStatus = Annotated[str, one_of("INVALID_STATUS", "status", JOB_STATUSES)]
ApplicationStatus = Annotated[str, one_of("INVALID_STATUS", "status", APPLICATION_STATUSES)]
Skills = Annotated[list[str] | None, BeforeValidator(split_list("INVALID_SKILLS_FORMAT", "skills"))]
Tags = Annotated[list[str] | None, BeforeValidator(split_list("INVALID_TAGS_FORMAT", "tags"))]

_NULLABLE_COLUMNS = frozenset({
    "salary_min", "salary_max", "skills", "benefits", "application_deadline", "university_id", "tags",
})


class JobDTO(CamelModel):
    id: int
    title: str
    description: str
    company: str
    location: str
    job_type: str
    experience_level: str
    salary_min: int | None = None
    salary_max: int | None = None
    currency: str
    skills: list[str] | None = None
    requirements: str
    benefits: str | None = None
    application_deadline: datetime | None = None
    is_remote: bool
    posted_by_id: str
    university_id: int | None = None
    status: str
    application_count: int
    view_count: int
    tags: list[str] | None = None
    created_at: datetime
    updated_at: datetime


class CreateJobRequest(CamelModel):
    title: Annotated[str, non_blank("INVALID_TITLE", "Title")]
    description: Annotated[str, non_blank("INVALID_DESCRIPTION", "Description")]
    company: Annotated[str, non_blank("INVALID_COMPANY", "Company")]
    location: Annotated[str, non_blank("INVALID_LOCATION", "Location")]
    job_type: JobType
    experience_level: ExperienceLevel
    requirements: Annotated[str, non_blank("INVALID_REQUIREMENTS", "Requirements")]
    salary_min: int | None = Field(default=None, ge=0)
    salary_max: int | None = Field(default=None, ge=0)
    currency: str = Field(default="INR", min_length=1, max_length=8)
    skills: Skills = None
    benefits: str | None = None
    application_deadline: datetime | None = None
    is_remote: bool = False
    university_id: int | None = None
    tags: Tags = None
    status: JobStatus = "active"


class UpdateJobRequest(CamelModel):
    title: Annotated[str, non_blank("INVALID_TITLE", "Title")] | None = None
    description: Annotated[str, non_blank("INVALID_DESCRIPTION", "Description")] | None = None
    company: Annotated[str, non_blank("INVALID_COMPANY", "Company")] | None = None
    location: Annotated[str, non_blank("INVALID_LOCATION", "Location")] | None = None
    job_type: JobType | None = None
    experience_level: ExperienceLevel | None = None
    requirements: Annotated[str, non_blank("INVALID_REQUIREMENTS", "Requirements")] | None = None
    salary_min: int | None = Field(default=None, ge=0)
    salary_max: int | None = Field(default=None, ge=0)
    currency: str | None = Field(default=None, min_length=1, max_length=8)
    skills: Skills = None
    benefits: str | None = None
    application_deadline: datetime | None = None
    is_remote: bool | None = None
    university_id: int | None = None
    tags: Tags = None
    status: JobStatus | None = None


class ApplicationDTO(CamelModel):
    id: int
    job_id: int
    applicant_id: str
    cover_letter: str | None = None
    resume_url: str | None = None
    status: str
    applied_at: datetime
    reviewed_at: datetime | None = None
    review_notes: str | None = None
    created_at: datetime
    updated_at: datetime


class ApplicationDetailDTO(ApplicationDTO):
    job_title: str
    company: str
    posted_by_id: str
    applicant_name: str
    applicant_email: str
    applicant_image: str | None = None


class ApplyRequest(CamelModel):
    cover_letter: str | None = None
    resume_url: str | None = None


class UpdateApplicationRequest(CamelModel):
    status: ApplicationStatus | None = None
    review_notes: str | None = None
    cover_letter: str | None = None
    resume_url: str | None = None


def _detail(row: ApplicationRow) -> ApplicationDetailDTO:
    return ApplicationDetailDTO(
        **ApplicationDTO.model_validate(row.application).model_dump(),
        job_title=row.job.title,
        company=row.job.company,
        posted_by_id=row.job.posted_by_id,
        applicant_name=row.applicant.name,
        applicant_email=row.applicant.email,
        applicant_image=row.applicant.image,
    )


@router.get("", response_model=list[JobDTO])
async def list_jobs(
    search: str | None = None,
    job_type: str | None = Query(default=None, alias="jobType"),
    experience_level: str | None = Query(default=None, alias="experienceLevel"),
    location: str | None = None,
    is_remote: bool | None = Query(default=None, alias="isRemote"),
    posted_by_id: str | None = Query(default=None, alias="postedById"),
    university_id: int | None = Query(default=None, alias="universityId"),
    status: str = "active",
    sort_by: Literal["title", "company", "location", "createdAt"] = Query(default="createdAt", alias="sortBy"),
    sort_order: Literal["asc", "desc"] = Query(default="desc", alias="sortOrder"),
    page: Page = Depends(pagination(default=20, maximum=100)),
    session: AsyncSession = Depends(get_session),
):
    return await service.list_jobs(
        session,
        status=status,
        search=search,
        job_type=job_type,
        experience_level=experience_level,
        location=location,
        is_remote=is_remote,
        posted_by_id=posted_by_id,
        university_id=university_id,
        sort_by=sort_by,
        sort_order=sort_order,
        limit=page.limit,
        offset=page.offset,
    )


@router.get("/applications", response_model=list[ApplicationDetailDTO])
async def list_applications(
    job_id: int | None = Query(default=None, alias="jobId"),
    applicant_id: str | None = Query(default=None, alias="applicantId"),
    status: str | None = None,
    page: Page = Depends(pagination(default=20, maximum=100)),
    user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> list[ApplicationDetailDTO]:
    rows = await service.list_applications(
        session,
        user.id,
        job_id=job_id,
        applicant_id=applicant_id,
        status=status,
        limit=page.limit,
        offset=page.offset,
    )
    return [_detail(row) for row in rows]


@router.put("/applications/{application_id}", response_model=ApplicationDetailDTO)
async def update_application(
    application_id: int,
    request: UpdateApplicationRequest,
    user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> ApplicationDetailDTO:
    row = await service.update_application(
        session,
        application_id,
        user.id,
        changed_fields(request, nullable=frozenset({"review_notes", "cover_letter", "resume_url"})),
    )
    return _detail(row)


@router.delete("/applications/{application_id}", response_model=MessageResponse)
async def withdraw_application(
    application_id: int,
    user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> MessageResponse:
    await service.withdraw_application(session, application_id, user.id)
    return MessageResponse(message="Application withdrawn successfully")


@router.get("/{job_id}", response_model=JobDTO)
async def get_job(job_id: int, session: AsyncSession = Depends(get_session)):
    return await service.view_job(session, job_id)


@router.post("", response_model=JobDTO, status_code=status.HTTP_201_CREATED)
async def create_job(
    request: CreateJobRequest,
    user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return await service.create_job(session, user.id, request.model_dump())


@router.put("/{job_id}", response_model=JobDTO)
async def update_job(
    job_id: int,
    request: UpdateJobRequest,
    user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return await service.update_job(session, job_id, user.id, changed_fields(request, nullable=_NULLABLE_COLUMNS))


@router.delete("/{job_id}", response_model=MessageResponse)
async def delete_job(
    job_id: int,
    user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> MessageResponse:
    await service.delete_job(session, job_id, user.id)
    return MessageResponse(message="Job deleted successfully")


@router.post("/{job_id}/applications", response_model=ApplicationDTO, status_code=status.HTTP_201_CREATED)
async def apply(
    job_id: int,
    request: ApplyRequest | None = None,
    user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    request = request or ApplyRequest()
    return await service.apply(
        session,
        job_id,
        user,
        cover_letter=request.cover_letter,
        resume_url=request.resume_url,
    )

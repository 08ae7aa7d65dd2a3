"""Job postings and applications."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy import or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from .. import models
from ..auth import CurrentUser
from ..errors import Forbidden, NotFound, ValidationFailed
from ..timeutil import to_naive_utc, utcnow
from ._query import apply_changes, contains_any
from .notifications import NotificationService
from .universities import get_university

logger = logging.getLogger(__name__)

JOB_TYPES = ("full-time", "part-time", "contract", "internship")
EXPERIENCE_LEVELS = ("entry", "mid", "senior", "executive")
JOB_STATUSES = ("active", "closed", "draft")
APPLICATION_STATUSES = ("pending", "reviewed", "shortlisted", "rejected", "hired")

_SORT_COLUMNS = {
    "title": models.JobPosting.title,
    "company": models.JobPosting.company,
    "location": models.JobPosting.location,
    "createdAt": models.JobPosting.created_at,
}


@dataclass
class ApplicationRow:
    application: models.JobApplication
    job: models.JobPosting
    applicant: models.User


def _check_salary(salary_min: int | None, salary_max: int | None) -> None:
    if salary_min is not None and salary_max is not None and salary_min > salary_max:
        raise ValidationFailed("salaryMin cannot exceed salaryMax", "INVALID_SALARY_RANGE")


async def get_job(session: AsyncSession, job_id: int) -> models.JobPosting:
    job = await session.get(models.JobPosting, job_id)
    if job is None:
        raise NotFound("Job not found", "JOB_NOT_FOUND")
    return job


async def view_job(session: AsyncSession, job_id: int) -> models.JobPosting:
    """Fetch a posting and count the view."""
    result = await session.execute(
        update(models.JobPosting)
        .where(models.JobPosting.id == job_id)
        .values(view_count=models.JobPosting.view_count + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise NotFound("Job not found", "JOB_NOT_FOUND")
    await session.commit()

    job = await get_job(session, job_id)
    await session.refresh(job)
    return job


async def list_jobs(
    session: AsyncSession,
    *,
    status: str | None = "active",
    search: str | None = None,
    job_type: str | None = None,
    experience_level: str | None = None,
    location: str | None = None,
    is_remote: bool | None = None,
    posted_by_id: str | None = None,
    university_id: int | None = None,
    sort_by: str = "createdAt",
    sort_order: str = "desc",
    limit: int = 20,
    offset: int = 0,
) -> list[models.JobPosting]:
    query = select(models.JobPosting)
    if status:
        query = query.where(models.JobPosting.status == status)
    if search:
        query = query.where(
            contains_any(search, models.JobPosting.title, models.JobPosting.description, models.JobPosting.company)
        )
    if job_type:
        query = query.where(models.JobPosting.job_type == job_type)
    if experience_level:
        query = query.where(models.JobPosting.experience_level == experience_level)
    if location:
        query = query.where(contains_any(location, models.JobPosting.location))
    if is_remote is not None:
        query = query.where(models.JobPosting.is_remote == is_remote)
    if posted_by_id:
        query = query.where(models.JobPosting.posted_by_id == posted_by_id)
    if university_id is not None:
        query = query.where(models.JobPosting.university_id == university_id)

    column = _SORT_COLUMNS.get(sort_by, models.JobPosting.created_at)
    ordering = column.asc() if sort_order == "asc" else column.desc()
    query = query.order_by(ordering, models.JobPosting.id.desc()).limit(limit).offset(offset)
    return list((await session.execute(query)).scalars().all())


async def create_job(session: AsyncSession, posted_by_id: str, data: dict[str, Any]) -> models.JobPosting:
    _check_salary(data.get("salary_min"), data.get("salary_max"))
    if data.get("university_id") is not None:
        await get_university(session, data["university_id"])
    if data.get("application_deadline") is not None:
        data["application_deadline"] = to_naive_utc(data["application_deadline"])

    job = models.JobPosting(posted_by_id=posted_by_id, application_count=0, view_count=0, **data)
    session.add(job)
    await session.commit()
    await session.refresh(job)
    logger.info(f"Created job {job.id} '{job.title}' at {job.company} by {posted_by_id}")
    return job


async def _get_posted(session: AsyncSession, job_id: int, user_id: str) -> models.JobPosting:
    job = await get_job(session, job_id)
    if job.posted_by_id != user_id:
        logger.warning(f"User {user_id} attempted to modify job {job_id} owned by {job.posted_by_id}")
        raise Forbidden("Only the poster can modify this job", "FORBIDDEN_NOT_POSTER")
    return job


async def update_job(session: AsyncSession, job_id: int, user_id: str, changes: dict[str, Any]) -> models.JobPosting:
    job = await _get_posted(session, job_id, user_id)
    _check_salary(changes.get("salary_min", job.salary_min), changes.get("salary_max", job.salary_max))
    if changes.get("university_id") is not None:
        await get_university(session, changes["university_id"])
    if isinstance(changes.get("application_deadline"), datetime):
        changes["application_deadline"] = to_naive_utc(changes["application_deadline"])

    apply_changes(job, changes)
    await session.commit()
    await session.refresh(job)
    logger.info(f"Updated job {job_id}: {sorted(changes)}")
    return job


async def delete_job(session: AsyncSession, job_id: int, user_id: str) -> None:
    job = await _get_posted(session, job_id, user_id)
    await session.delete(job)
    await session.commit()
    logger.info(f"Deleted job {job_id}")


async def apply(
    session: AsyncSession,
    job_id: int,
    applicant: CurrentUser,
    *,
    cover_letter: str | None = None,
    resume_url: str | None = None,
) -> models.JobApplication:
    """Apply to a job; the posting's application counter moves in the same transaction.

    Raises:
        ValidationFailed: JOB_CLOSED, DEADLINE_PASSED, CANNOT_APPLY_OWN_JOB
            or ALREADY_APPLIED
    """
    job = await get_job(session, job_id)

    if job.status != "active":
        raise ValidationFailed("This job is no longer accepting applications", "JOB_CLOSED")
    if job.application_deadline is not None and utcnow() > job.application_deadline:
        raise ValidationFailed("Application deadline has passed", "DEADLINE_PASSED")
    if job.posted_by_id == applicant.id:
        raise ValidationFailed("Cannot apply to your own job posting", "CANNOT_APPLY_OWN_JOB")

    existing = await session.execute(
        select(models.JobApplication.id).where(
            models.JobApplication.job_id == job_id,
            models.JobApplication.applicant_id == applicant.id,
        )
    )
    if existing.first() is not None:
        raise ValidationFailed("You have already applied to this job", "ALREADY_APPLIED")

    application = models.JobApplication(
        job_id=job_id,
        applicant_id=applicant.id,
        cover_letter=cover_letter,
        resume_url=resume_url,
        status="pending",
    )
    try:
        session.add(application)
        await session.flush()
        await session.execute(
            update(models.JobPosting)
            .where(models.JobPosting.id == job_id)
            .values(application_count=models.JobPosting.application_count + 1)
            .execution_options(synchronize_session=False)
        )
        await NotificationService.job_application(
            session,
            poster_id=job.posted_by_id,
            applicant_name=applicant.name,
            applicant_id=applicant.id,
            job_id=job_id,
            job_title=job.title,
        )
        await session.commit()
    except IntegrityError as e:
        await session.rollback()
        raise ValidationFailed("You have already applied to this job", "ALREADY_APPLIED") from e

    await session.refresh(application)
    logger.info(f"User {applicant.id} applied to job {job_id}")
    return application


async def list_applications(
    session: AsyncSession,
    user_id: str,
    *,
    job_id: int | None = None,
    applicant_id: str | None = None,
    status: str | None = None,
    limit: int = 20,
    offset: int = 0,
) -> list[ApplicationRow]:
    """Applications the caller sent, or received on their own postings."""
    query = (
        select(models.JobApplication, models.JobPosting, models.User)
        .join(models.JobPosting, models.JobPosting.id == models.JobApplication.job_id)
        .join(models.User, models.User.id == models.JobApplication.applicant_id)
        .where(or_(models.JobApplication.applicant_id == user_id, models.JobPosting.posted_by_id == user_id))
    )
    if job_id is not None:
        query = query.where(models.JobApplication.job_id == job_id)
    if applicant_id:
        query = query.where(models.JobApplication.applicant_id == applicant_id)
    if status:
        query = query.where(models.JobApplication.status == status)
    query = (
        query.order_by(models.JobApplication.applied_at.desc(), models.JobApplication.id.desc())
        .limit(limit)
        .offset(offset)
    )
    rows = (await session.execute(query)).all()
    return [ApplicationRow(application=app, job=job, applicant=usr) for app, job, usr in rows]


async def _load_application(session: AsyncSession, application_id: int, user_id: str) -> ApplicationRow:
    query = (
        select(models.JobApplication, models.JobPosting, models.User)
        .join(models.JobPosting, models.JobPosting.id == models.JobApplication.job_id)
        .join(models.User, models.User.id == models.JobApplication.applicant_id)
        .where(models.JobApplication.id == application_id)
    )
    row = (await session.execute(query)).first()
    if row is None:
        raise NotFound("Application not found", "APPLICATION_NOT_FOUND")
    application, job, applicant = row
    if user_id not in (application.applicant_id, job.posted_by_id):
        raise NotFound("Application not found", "APPLICATION_NOT_FOUND")
    return ApplicationRow(application=application, job=job, applicant=applicant)


async def update_application(
    session: AsyncSession,
    application_id: int,
    user_id: str,
    changes: dict[str, Any],
) -> ApplicationRow:
    """Poster sets status/review notes; applicant edits cover letter/resume."""
    row = await _load_application(session, application_id, user_id)
    application, job = row.application, row.job

    poster_fields = {"status", "review_notes"} & changes.keys()
    applicant_fields = {"cover_letter", "resume_url"} & changes.keys()
    if poster_fields and user_id != job.posted_by_id:
        raise Forbidden("Only the job poster can review applications", "FORBIDDEN_NOT_POSTER")
    if applicant_fields and user_id != application.applicant_id:
        raise Forbidden("Only the applicant can edit the application", "FORBIDDEN_NOT_APPLICANT")

    previous = application.status
    new_status = changes.pop("status", None)
    apply_changes(application, changes)
    if new_status is not None and new_status != previous:
        application.status = new_status
        application.reviewed_at = utcnow()
        await NotificationService.application_status(
            session,
            applicant_id=application.applicant_id,
            job_title=job.title,
            status=new_status,
            job_id=job.id,
        )

    await session.commit()
    await session.refresh(application)
    logger.info(f"Updated application {application_id}: {previous} -> {application.status}")
    return row


async def withdraw_application(session: AsyncSession, application_id: int, user_id: str) -> None:
    row = await _load_application(session, application_id, user_id)
    if row.application.applicant_id != user_id:
        raise Forbidden("Only the applicant can withdraw an application", "FORBIDDEN_NOT_APPLICANT")

    await session.delete(row.application)
    await session.execute(
        update(models.JobPosting)
        .where(models.JobPosting.id == row.job.id, models.JobPosting.application_count > 0)
        .values(application_count=models.JobPosting.application_count - 1)
        .execution_options(synchronize_session=False)
    )
    await session.commit()
    logger.info(f"User {user_id} withdrew application {application_id}")

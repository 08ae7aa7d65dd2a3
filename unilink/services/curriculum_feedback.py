"""Industry feedback on university curricula, reviewed by university admins."""
from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import case, select
from sqlalchemy.ext.asyncio import AsyncSession

from .. import models
from ..auth import CurrentUser, check_university_scope
from ..errors import Forbidden, NotFound, ValidationFailed
from ..timeutil import utcnow
from ._query import apply_changes, contains_any
from .universities import get_university

logger = logging.getLogger(__name__)

FEEDBACK_TYPES = ("course_content", "industry_relevance", "skill_gap", "new_course_suggestion")
PRIORITIES = ("low", "medium", "high", "urgent")
LEVELS = ("low", "medium", "high")
FEEDBACK_STATUSES = ("submitted", "under_review", "approved", "implemented", "rejected")
ADMIN_ROLE = "university_admin"

# Fields only a reviewing admin may set
REVIEW_FIELDS = frozenset({"status", "review_notes", "implementation_timeline"})

_PRIORITY_RANK = case({name: rank for rank, name in enumerate(PRIORITIES)}, value=models.CurriculumFeedback.priority)
_STATUS_RANK = case({name: rank for rank, name in enumerate(FEEDBACK_STATUSES)}, value=models.CurriculumFeedback.status)

_SORT_COLUMNS = {
    "priority": _PRIORITY_RANK,
    "status": _STATUS_RANK,
    "department": models.CurriculumFeedback.department,
    "createdAt": models.CurriculumFeedback.created_at,
}


async def get_feedback(session: AsyncSession, feedback_id: int) -> models.CurriculumFeedback:
    feedback = await session.get(models.CurriculumFeedback, feedback_id)
    if feedback is None:
        raise NotFound("Feedback not found", "FEEDBACK_NOT_FOUND")
    return feedback


async def list_feedback(
    session: AsyncSession,
    *,
    submitted_by_id: str | None = None,
    university_id: int | None = None,
    department: str | None = None,
    feedback_type: str | None = None,
    status: str | None = None,
    priority: str | None = None,
    search: str | None = None,
    sort_by: str = "createdAt",
    sort_order: str = "desc",
    limit: int = 20,
    offset: int = 0,
) -> list[models.CurriculumFeedback]:
    query = select(models.CurriculumFeedback)
    if submitted_by_id:
        query = query.where(models.CurriculumFeedback.submitted_by_id == submitted_by_id)
    if university_id is not None:
        query = query.where(models.CurriculumFeedback.university_id == university_id)
    if department:
        query = query.where(contains_any(department, models.CurriculumFeedback.department))
    if feedback_type:
        query = query.where(models.CurriculumFeedback.feedback_type == feedback_type)
    if status:
        query = query.where(models.CurriculumFeedback.status == status)
    if priority:
        query = query.where(models.CurriculumFeedback.priority == priority)
    if search:
        query = query.where(
            contains_any(
                search,
                models.CurriculumFeedback.course_name,
                models.CurriculumFeedback.current_industry_trends,
                models.CurriculumFeedback.suggested_changes,
            )
        )

    column = _SORT_COLUMNS.get(sort_by, models.CurriculumFeedback.created_at)
    ordering = column.asc() if sort_order == "asc" else column.desc()
    query = query.order_by(ordering, models.CurriculumFeedback.id.desc()).limit(limit).offset(offset)
    return list((await session.execute(query)).scalars().all())


async def submit_feedback(session: AsyncSession, submitted_by_id: str, data: dict[str, Any]) -> models.CurriculumFeedback:
    await get_university(session, data["university_id"])

    feedback = models.CurriculumFeedback(submitted_by_id=submitted_by_id, status="submitted", **data)
    session.add(feedback)
    await session.commit()
    await session.refresh(feedback)
    logger.info(
        f"Feedback {feedback.id} ({feedback.feedback_type}, {feedback.priority}) submitted by {submitted_by_id} "
        f"for university {feedback.university_id}"
    )
    return feedback


async def update_feedback(
    session: AsyncSession,
    feedback_id: int,
    user: CurrentUser,
    changes: dict[str, Any],
) -> models.CurriculumFeedback:
    """Apply an edit.

    The submitter edits the content. Review fields belong to an admin of the
    feedback's university, and setting them stamps the reviewer and time.

    Raises:
        Forbidden: FORBIDDEN_NOT_SUBMITTER, FORBIDDEN_ROLE or FORBIDDEN_UNIVERSITY
    """
    feedback = await get_feedback(session, feedback_id)
    review = {key: value for key, value in changes.items() if key in REVIEW_FIELDS}
    content = {key: value for key, value in changes.items() if key not in REVIEW_FIELDS}

    if content and feedback.submitted_by_id != user.id:
        logger.warning(f"User {user.id} attempted to edit feedback {feedback_id}")
        raise Forbidden("Only the submitter can edit this feedback", "FORBIDDEN_NOT_SUBMITTER")
    if review:
        if user.role != ADMIN_ROLE:
            raise Forbidden("Only university admins can review feedback", "FORBIDDEN_ROLE")
        check_university_scope(user, feedback.university_id)
    if content.get("university_id") is not None:
        await get_university(session, content["university_id"])
        if feedback.status != "submitted":
            raise ValidationFailed("Feedback under review cannot move to another university", "FEEDBACK_UNDER_REVIEW")

    apply_changes(feedback, changes)
    if review:
        feedback.reviewed_at = utcnow()
        feedback.reviewed_by_id = user.id

    await session.commit()
    await session.refresh(feedback)
    logger.info(f"Updated feedback {feedback_id}: {sorted(changes)}")
    return feedback


async def delete_feedback(session: AsyncSession, feedback_id: int, user_id: str) -> None:
    feedback = await get_feedback(session, feedback_id)
    if feedback.submitted_by_id != user_id:
        logger.warning(f"User {user_id} attempted to delete feedback {feedback_id}")
        raise Forbidden("Only the submitter can delete this feedback", "FORBIDDEN_NOT_SUBMITTER")
    await session.delete(feedback)
    await session.commit()
    logger.info(f"Deleted feedback {feedback_id}")

"""Alumni-funded scholarships."""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from .. import models
from ..errors import Forbidden, NotFound, ValidationFailed
from ..timeutil import to_naive_utc, utcnow
from ._query import apply_changes, contains_any
from .universities import get_university

logger = logging.getLogger(__name__)

SCHOLARSHIP_CATEGORIES = ("merit", "need-based", "research", "sports", "arts")
SCHOLARSHIP_STATUSES = ("active", "closed", "draft")
RECURRING_FREQUENCIES = ("yearly", "semester")

_SORT_COLUMNS = {
    "title": models.Scholarship.title,
    "amount": models.Scholarship.amount,
    "applicationDeadline": models.Scholarship.application_deadline,
    "createdAt": models.Scholarship.created_at,
}


def _future_deadline(value: datetime) -> datetime:
    deadline = to_naive_utc(value)
    if deadline <= utcnow():
        raise ValidationFailed("Application deadline must be a valid future date", "INVALID_DEADLINE")
    return deadline


def _check_recipients(max_recipients: int, current_recipients: int) -> None:
    if max_recipients < current_recipients:
        raise ValidationFailed(
            f"maxRecipients cannot be below the {current_recipients} recipients already selected",
            "INVALID_MAX_RECIPIENTS",
        )


async def get_scholarship(session: AsyncSession, scholarship_id: int) -> models.Scholarship:
    scholarship = await session.get(models.Scholarship, scholarship_id)
    if scholarship is None:
        raise NotFound("Scholarship not found", "SCHOLARSHIP_NOT_FOUND")
    return scholarship


async def list_scholarships(
    session: AsyncSession,
    *,
    status: str | None = "active",
    search: str | None = None,
    category: str | None = None,
    funded_by_id: str | None = None,
    university_id: int | None = None,
    academic_year: str | None = None,
    sort_by: str = "createdAt",
    sort_order: str = "desc",
    limit: int = 20,
    offset: int = 0,
) -> list[models.Scholarship]:
    query = select(models.Scholarship)
    if status:
        query = query.where(models.Scholarship.status == status)
    if search:
        query = query.where(
            contains_any(
                search,
                models.Scholarship.title,
                models.Scholarship.description,
                models.Scholarship.eligibility_criteria,
            )
        )
    if category:
        query = query.where(models.Scholarship.category == category)
    if funded_by_id:
        query = query.where(models.Scholarship.funded_by_id == funded_by_id)
    if university_id is not None:
        query = query.where(models.Scholarship.university_id == university_id)
    if academic_year:
        query = query.where(models.Scholarship.academic_year == academic_year)

    column = _SORT_COLUMNS.get(sort_by, models.Scholarship.created_at)
    ordering = column.asc() if sort_order == "asc" else column.desc()
    query = query.order_by(ordering, models.Scholarship.id.desc()).limit(limit).offset(offset)
    return list((await session.execute(query)).scalars().all())


async def create_scholarship(session: AsyncSession, funded_by_id: str, data: dict[str, Any]) -> models.Scholarship:
    data["application_deadline"] = _future_deadline(data["application_deadline"])
    if data.get("university_id") is not None:
        await get_university(session, data["university_id"])
    if not data.get("is_recurring"):
        data["recurring_frequency"] = None

    scholarship = models.Scholarship(funded_by_id=funded_by_id, current_recipients=0, **data)
    session.add(scholarship)
    await session.commit()
    await session.refresh(scholarship)
    logger.info(
        f"Created scholarship {scholarship.id} '{scholarship.title}' "
        f"({scholarship.amount} {scholarship.currency}) funded by {funded_by_id}"
    )
    return scholarship


async def _get_funded(session: AsyncSession, scholarship_id: int, user_id: str) -> models.Scholarship:
    scholarship = await get_scholarship(session, scholarship_id)
    if scholarship.funded_by_id != user_id:
        logger.warning(f"User {user_id} attempted to modify scholarship {scholarship_id}")
        raise Forbidden("Only the funder can modify this scholarship", "FORBIDDEN_NOT_FUNDER")
    return scholarship


async def update_scholarship(
    session: AsyncSession,
    scholarship_id: int,
    user_id: str,
    changes: dict[str, Any],
) -> models.Scholarship:
    scholarship = await _get_funded(session, scholarship_id, user_id)
    if changes.get("application_deadline") is not None:
        changes["application_deadline"] = _future_deadline(changes["application_deadline"])
    if changes.get("university_id") is not None:
        await get_university(session, changes["university_id"])
    if "max_recipients" in changes:
        _check_recipients(changes["max_recipients"], scholarship.current_recipients)
    if changes.get("is_recurring") is False:
        changes["recurring_frequency"] = None

    apply_changes(scholarship, changes)
    await session.commit()
    await session.refresh(scholarship)
    logger.info(f"Updated scholarship {scholarship_id}: {sorted(changes)}")
    return scholarship


async def delete_scholarship(session: AsyncSession, scholarship_id: int, user_id: str) -> models.Scholarship:
    scholarship = await _get_funded(session, scholarship_id, user_id)
    await session.delete(scholarship)
    await session.commit()
    logger.info(f"Deleted scholarship {scholarship_id}")
    return scholarship

"""University newsletters."""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from .. import models
from ..auth import CurrentUser, check_university_scope
from ..errors import NotFound, ValidationFailed
from ..timeutil import to_naive_utc, utcnow
from ._query import apply_changes, contains_any
from .newsletter_content import compose_body, default_title, render_html
from .universities import get_university

logger = logging.getLogger(__name__)

NEWSLETTER_STATUSES = ("draft", "published", "scheduled")


async def get_newsletter(session: AsyncSession, newsletter_id: int) -> models.Newsletter:
    newsletter = await session.get(models.Newsletter, newsletter_id)
    if newsletter is None:
        raise NotFound("Newsletter not found", "NEWSLETTER_NOT_FOUND")
    return newsletter


async def list_newsletters(
    session: AsyncSession,
    *,
    university_id: int | None = None,
    status: str | None = None,
    created_by: str | None = None,
    search: str | None = None,
    limit: int = 20,
    offset: int = 0,
) -> list[models.Newsletter]:
    query = select(models.Newsletter)
    if university_id is not None:
        query = query.where(models.Newsletter.university_id == university_id)
    if status:
        query = query.where(models.Newsletter.status == status)
    if created_by:
        query = query.where(models.Newsletter.created_by == created_by)
    if search:
        query = query.where(contains_any(search, models.Newsletter.title, models.Newsletter.content))
    query = query.order_by(models.Newsletter.created_at.desc(), models.Newsletter.id.desc()).limit(limit).offset(offset)
    return list((await session.execute(query)).scalars().all())


async def audience_size(session: AsyncSession, university_id: int) -> int:
    """Number of profiles attached to a university."""
    query = select(func.count(models.Profile.id)).where(models.Profile.university_id == university_id)
    return int((await session.execute(query)).scalar_one())


async def _apply_status(session: AsyncSession, newsletter: models.Newsletter, previous: str | None) -> None:
    if newsletter.status == "scheduled" and newsletter.publish_date is None:
        raise ValidationFailed("publishDate is required for scheduled newsletters", "MISSING_PUBLISH_DATE")
    if newsletter.status == "published" and previous != "published":
        newsletter.recipient_count = await audience_size(session, newsletter.university_id)
        if newsletter.publish_date is None:
            newsletter.publish_date = utcnow()
        logger.info(f"Publishing newsletter to {newsletter.recipient_count} recipients")


async def create_newsletter(session: AsyncSession, user: CurrentUser, data: dict[str, Any]) -> models.Newsletter:
    await get_university(session, data["university_id"])
    check_university_scope(user, data["university_id"])
    if data.get("publish_date") is not None:
        data["publish_date"] = to_naive_utc(data["publish_date"])

    newsletter = models.Newsletter(created_by=user.id, **data)
    await _apply_status(session, newsletter, previous=None)
    session.add(newsletter)
    await session.commit()
    await session.refresh(newsletter)
    logger.info(f"Created newsletter {newsletter.id} ({newsletter.status}) for university {newsletter.university_id}")
    return newsletter


async def update_newsletter(
    session: AsyncSession,
    newsletter_id: int,
    user: CurrentUser,
    changes: dict[str, Any],
) -> models.Newsletter:
    newsletter = await get_newsletter(session, newsletter_id)
    check_university_scope(user, newsletter.university_id)
    if changes.get("university_id") is not None:
        await get_university(session, changes["university_id"])
        check_university_scope(user, changes["university_id"])
    if isinstance(changes.get("publish_date"), datetime):
        changes["publish_date"] = to_naive_utc(changes["publish_date"])

    previous = newsletter.status
    apply_changes(newsletter, changes)
    try:
        await _apply_status(session, newsletter, previous=previous)
    except ValidationFailed:
        await session.rollback()
        raise
    await session.commit()
    await session.refresh(newsletter)
    logger.info(f"Updated newsletter {newsletter_id}: {sorted(changes)}")
    return newsletter


async def delete_newsletter(session: AsyncSession, newsletter_id: int, user: CurrentUser) -> None:
    newsletter = await get_newsletter(session, newsletter_id)
    check_university_scope(user, newsletter.university_id)
    await session.delete(newsletter)
    await session.commit()
    logger.info(f"Deleted newsletter {newsletter_id}")


async def generate_newsletter(
    session: AsyncSession,
    user: CurrentUser,
    *,
    university_id: int,
    ai_prompt: str,
    title: str | None = None,
) -> models.Newsletter:
    """Create a draft newsletter from a prompt."""
    await get_university(session, university_id)
    check_university_scope(user, university_id)

    title = (title or "").strip() or default_title()
    content = compose_body(ai_prompt)
    newsletter = models.Newsletter(
        university_id=university_id,
        title=title,
        content=content,
        html_content=render_html(content, title),
        ai_prompt=ai_prompt.strip(),
        status="draft",
        recipient_count=0,
        open_rate=0,
        created_by=user.id,
    )
    session.add(newsletter)
    await session.commit()
    await session.refresh(newsletter)
    logger.info(f"Generated draft newsletter {newsletter.id} for university {university_id}")
    return newsletter

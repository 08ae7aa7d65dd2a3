"""University (tenant) management."""
from __future__ import annotations

import logging
import re
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from .. import models
from ..auth import CurrentUser, check_university_scope
from ..errors import NotFound, ValidationFailed
from ._query import apply_changes, contains_any

logger = logging.getLogger(__name__)

DOMAIN_PATTERN = re.compile(r"^(?:[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?\.)+[a-z]{2,}$")


def normalize_domain(domain: str) -> str:
    domain = domain.strip().lower()
    if not DOMAIN_PATTERN.match(domain):
        raise ValidationFailed("Invalid domain format", "INVALID_DOMAIN_FORMAT")
    return domain


def tenant_id_for(domain: str) -> str:
    """Derive a tenant id from a domain (``iitd.ac.in`` -> ``iitd-ac-in``)."""
    return re.sub(r"[^a-z0-9]+", "-", domain.lower()).strip("-")


async def get_university(session: AsyncSession, university_id: int) -> models.University:
    university = await session.get(models.University, university_id)
    if university is None:
        raise NotFound("University not found", "UNIVERSITY_NOT_FOUND")
    return university


async def get_by_domain(session: AsyncSession, domain: str) -> models.University:
    query = select(models.University).where(models.University.domain == domain.strip().lower())
    university = (await session.execute(query)).scalar_one_or_none()
    if university is None:
        raise NotFound("University not found", "UNIVERSITY_NOT_FOUND")
    return university


async def list_universities(
    session: AsyncSession,
    *,
    country: str | None = None,
    is_active: bool | None = None,
    search: str | None = None,
    limit: int = 10,
    offset: int = 0,
) -> list[models.University]:
    query = select(models.University)
    if country:
        query = query.where(models.University.country == country)
    if is_active is not None:
        query = query.where(models.University.is_active == is_active)
    if search:
        query = query.where(
            contains_any(search, models.University.name, models.University.domain, models.University.description)
        )
    query = query.order_by(models.University.created_at.desc(), models.University.id.desc()).limit(limit).offset(offset)
    return list((await session.execute(query)).scalars().all())


async def _ensure_unique(
    session: AsyncSession,
    *,
    domain: str | None,
    tenant_id: str | None,
    exclude_id: int | None = None,
) -> None:
    if domain is not None:
        query = select(models.University.id).where(models.University.domain == domain)
        if exclude_id is not None:
            query = query.where(models.University.id != exclude_id)
        if (await session.execute(query)).first() is not None:
            raise ValidationFailed("Domain already exists", "DUPLICATE_DOMAIN")
    if tenant_id is not None:
        query = select(models.University.id).where(models.University.tenant_id == tenant_id)
        if exclude_id is not None:
            query = query.where(models.University.id != exclude_id)
        if (await session.execute(query)).first() is not None:
            raise ValidationFailed("TenantId already exists", "DUPLICATE_TENANT_ID")


async def create_university(session: AsyncSession, data: dict[str, Any]) -> models.University:
    domain = normalize_domain(data["domain"])
    tenant_id = (data.get("tenant_id") or "").strip() or tenant_id_for(domain)
    await _ensure_unique(session, domain=domain, tenant_id=tenant_id)

    university = models.University(
        name=data["name"],
        domain=domain,
        country=data["country"],
        tenant_id=tenant_id,
        logo=data.get("logo"),
        description=data.get("description"),
        is_active=data.get("is_active", True),
        settings=data.get("settings"),
    )
    session.add(university)
    try:
        await session.commit()
    except IntegrityError as e:
        await session.rollback()
        raise ValidationFailed("Domain already exists", "DUPLICATE_DOMAIN") from e

    await session.refresh(university)
    logger.info(f"Created university {university.id}: {university.name} ({domain})")
    return university


async def update_university(
    session: AsyncSession,
    university_id: int,
    user: CurrentUser,
    changes: dict[str, Any],
) -> models.University:
    university = await get_university(session, university_id)
    check_university_scope(user, university_id)

    if changes.get("domain") is not None:
        changes["domain"] = normalize_domain(changes["domain"])
    if changes.get("tenant_id") is not None:
        changes["tenant_id"] = changes["tenant_id"].strip()
    await _ensure_unique(
        session,
        domain=changes.get("domain"),
        tenant_id=changes.get("tenant_id"),
        exclude_id=university_id,
    )

    apply_changes(university, changes)
    try:
        await session.commit()
    except IntegrityError as e:
        await session.rollback()
        raise ValidationFailed("Domain or tenantId already exists", "DUPLICATE_DOMAIN") from e

    await session.refresh(university)
    logger.info(f"Updated university {university_id}: {sorted(changes)}")
    return university


async def delete_university(session: AsyncSession, university_id: int, user: CurrentUser) -> models.University:
    """Delete a university that nothing but the calling admin still references.

    The caller's own profile is detached in the same transaction; any other
    reference rolls the whole delete back.
    """
    university = await get_university(session, university_id)
    check_university_scope(user, university_id)
    await session.execute(
        update(models.Profile)
        .where(models.Profile.user_id == user.id, models.Profile.university_id == university_id)
        .values(university_id=None)
    )
    await session.delete(university)
    try:
        await session.commit()
    except IntegrityError as e:
        await session.rollback()
        logger.warning(f"Refused to delete university {university_id}: still referenced")
        raise ValidationFailed("University is still referenced by other records", "UNIVERSITY_IN_USE") from e

    logger.info(f"Deleted university {university_id}")
    return university

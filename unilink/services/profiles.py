"""Profile management: one role record per user."""
from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from .. import models
from ..auth import CurrentUser
from ..errors import Forbidden, NotFound, ValidationFailed
from ._query import apply_changes, contains_any
from .universities import get_university

logger = logging.getLogger(__name__)

ROLES = ("student", "alumni", "university_admin")
VERIFICATION_STATUSES = ("pending", "verified", "rejected")
ADMIN_ROLE = "university_admin"
_VERIFICATION_FIELDS = ("is_verified", "verification_status")


async def get_profile(session: AsyncSession, profile_id: int) -> models.Profile:
    profile = await session.get(models.Profile, profile_id)
    if profile is None:
        raise NotFound("Profile not found", "PROFILE_NOT_FOUND")
    return profile


async def find_profile_by_user(session: AsyncSession, user_id: str) -> models.Profile | None:
    query = select(models.Profile).where(models.Profile.user_id == user_id)
    return (await session.execute(query)).scalar_one_or_none()


async def get_profile_by_user(session: AsyncSession, user_id: str) -> models.Profile:
    profile = await find_profile_by_user(session, user_id)
    if profile is None:
        raise NotFound("Profile not found", "PROFILE_NOT_FOUND")
    return profile


async def list_profiles(
    session: AsyncSession,
    *,
    university_id: int | None = None,
    role: str | None = None,
    search: str | None = None,
    limit: int = 10,
    offset: int = 0,
) -> list[models.Profile]:
    query = select(models.Profile)
    if university_id is not None:
        query = query.where(models.Profile.university_id == university_id)
    if role:
        query = query.where(models.Profile.role == role.lower())
    if search:
        query = query.where(
            contains_any(
                search,
                models.Profile.major,
                models.Profile.company,
                models.Profile.current_position,
                models.Profile.bio,
            )
        )
    query = query.order_by(models.Profile.created_at.desc(), models.Profile.id.desc()).limit(limit).offset(offset)
    return list((await session.execute(query)).scalars().all())


def _check_privileges(user: CurrentUser, data: dict[str, Any]) -> None:
    if user.role != ADMIN_ROLE:
        if data.get("role") == ADMIN_ROLE:
            logger.warning(f"User {user.id} attempted to become a university admin")
            raise Forbidden("Only a university admin can grant the university_admin role", "FORBIDDEN_ROLE")
        if any(field in data for field in _VERIFICATION_FIELDS):
            raise Forbidden("Only a university admin can set verification fields", "FORBIDDEN_ROLE")
    elif "university_id" in data and data["university_id"] != user.university_id:
        logger.warning(f"Admin {user.id} attempted to move from university {user.university_id}")
        raise Forbidden("University admins cannot change their university", "FORBIDDEN_UNIVERSITY")


async def upsert_profile(session: AsyncSession, user: CurrentUser, data: dict[str, Any]) -> tuple[models.Profile, bool]:
    """Create the caller's profile, or update it if one exists.

    Only an existing university admin may hold the admin role or set
    verification fields, and an admin stays bound to their university.

    Returns:
        Tuple of (profile, created)
    """
    _check_privileges(user, data)
    user_id = user.id
    if data.get("university_id") is not None:
        await get_university(session, data["university_id"])

    profile = await find_profile_by_user(session, user_id)
    created = profile is None
    if created:
        profile = models.Profile(user_id=user_id, **data)
        session.add(profile)
    else:
        apply_changes(profile, data)

    try:
        await session.commit()
    except IntegrityError as e:
        await session.rollback()
        raise ValidationFailed("Profile already exists for this user", "PROFILE_ALREADY_EXISTS") from e

    await session.refresh(profile)
    logger.info(f"{'Created' if created else 'Updated'} profile {profile.id} for user {user_id} ({profile.role})")
    return profile, created


async def _get_owned(session: AsyncSession, profile_id: int, user_id: str) -> models.Profile:
    profile = await get_profile(session, profile_id)
    if profile.user_id != user_id:
        logger.warning(f"User {user_id} attempted to modify profile {profile_id}")
        raise Forbidden("You can only modify your own profile", "FORBIDDEN_NOT_OWNER")
    return profile


async def update_profile(
    session: AsyncSession,
    profile_id: int,
    user: CurrentUser,
    changes: dict[str, Any],
) -> models.Profile:
    profile = await _get_owned(session, profile_id, user.id)
    _check_privileges(user, changes)
    if changes.get("university_id") is not None:
        await get_university(session, changes["university_id"])

    apply_changes(profile, changes)
    await session.commit()
    await session.refresh(profile)
    logger.info(f"Updated profile {profile_id}: {sorted(changes)}")
    return profile


async def delete_profile(session: AsyncSession, profile_id: int, user_id: str) -> models.Profile:
    profile = await _get_owned(session, profile_id, user_id)
    await session.delete(profile)
    await session.commit()
    logger.info(f"Deleted profile {profile_id}")
    return profile

"""Bearer-token authentication against the provider-owned ``sessions`` table."""
from __future__ import annotations

import logging
from dataclasses import dataclass

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from . import models
from .db import get_session
from .errors import AuthenticationRequired, Forbidden
from .timeutil import utcnow

logger = logging.getLogger(__name__)

_bearer = HTTPBearer(auto_error=False)


@dataclass
class CurrentUser:
    """The authenticated caller, with the role from their profile if any."""
    id: str
    name: str
    email: str
    image: str | None = None
    role: str | None = None
    university_id: int | None = None


async def resolve_token(session: AsyncSession, token: str) -> CurrentUser | None:
    """Look up a live session token and return its user, or None."""
    query = (
        select(models.User, models.Profile)
        .join(models.Session, models.Session.user_id == models.User.id)
        .outerjoin(models.Profile, models.Profile.user_id == models.User.id)
        .where(
            models.Session.token == token,
            models.Session.expires_at > utcnow(),
        )
    )
    row = (await session.execute(query)).first()
    if row is None:
        return None

    user, profile = row
    return CurrentUser(
        id=user.id,
        name=user.name,
        email=user.email,
        image=user.image,
        role=profile.role if profile else None,
        university_id=profile.university_id if profile else None,
    )


async def get_optional_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer),
    session: AsyncSession = Depends(get_session),
) -> CurrentUser | None:
    if credentials is None or not credentials.credentials:
        return None
    return await resolve_token(session, credentials.credentials)


async def get_current_user(
    user: CurrentUser | None = Depends(get_optional_user),
) -> CurrentUser:
    """Require a valid bearer token."""
    if user is None:
        raise AuthenticationRequired()
    return user


def require_role(*roles: str):
    """Dependency factory restricting a route to callers with one of ``roles``."""
    allowed = set(roles)

    async def _check(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if user.role not in allowed:
            logger.warning(f"User {user.id} with role {user.role!r} denied; requires {sorted(allowed)}")
            raise Forbidden(
                f"This action requires one of the roles: {', '.join(sorted(allowed))}",
                "FORBIDDEN_ROLE",
            )
        return user

    return _check


def check_university_scope(user: CurrentUser, university_id: int | None) -> None:
    """Refuse admin actions on a university other than the caller's own."""
    if user.university_id is None or user.university_id != university_id:
        logger.warning(f"User {user.id} of university {user.university_id} denied access to university {university_id}")
        raise Forbidden("You can only manage your own university", "FORBIDDEN_UNIVERSITY")

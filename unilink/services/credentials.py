"""Credentials issued by universities, and their verification by university admins."""
from __future__ import annotations

import logging
from datetime import date
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from .. import models
from ..auth import CurrentUser, check_university_scope
from ..errors import Forbidden, NotFound, ValidationFailed
from ..timeutil import utcnow
from ._query import apply_changes, contains_any
from .notifications import NotificationService
from .universities import get_university

logger = logging.getLogger(__name__)

CREDENTIAL_TYPES = ("degree", "certificate", "exam")
ADMIN_ROLE = "university_admin"


def _check_dates(issue_date: date, expiry_date: date | None) -> None:
    if expiry_date is not None and expiry_date < issue_date:
        raise ValidationFailed("expiryDate cannot be before issueDate", "INVALID_EXPIRY_DATE")


async def get_credential(session: AsyncSession, credential_id: int) -> models.Credential:
    credential = await session.get(models.Credential, credential_id)
    if credential is None:
        raise NotFound("Credential not found", "CREDENTIAL_NOT_FOUND")
    return credential


async def list_credentials(
    session: AsyncSession,
    *,
    user_id: str | None = None,
    university_id: int | None = None,
    credential_type: str | None = None,
    is_verified: bool | None = None,
    search: str | None = None,
    limit: int = 10,
    offset: int = 0,
) -> list[models.Credential]:
    if credential_type and credential_type not in CREDENTIAL_TYPES:
        raise ValidationFailed(
            f"credentialType must be one of: {', '.join(CREDENTIAL_TYPES)}",
            "INVALID_CREDENTIAL_TYPE",
        )

    query = select(models.Credential)
    if user_id:
        query = query.where(models.Credential.user_id == user_id)
    if university_id is not None:
        query = query.where(models.Credential.university_id == university_id)
    if credential_type:
        query = query.where(models.Credential.credential_type == credential_type)
    if is_verified is not None:
        query = query.where(models.Credential.is_verified == is_verified)
    if search:
        query = query.where(contains_any(search, models.Credential.title, models.Credential.issuer_name))
    query = (
        query.order_by(models.Credential.created_at.desc(), models.Credential.id.desc())
        .limit(limit)
        .offset(offset)
    )
    return list((await session.execute(query)).scalars().all())


async def create_credential(session: AsyncSession, user_id: str, data: dict[str, Any]) -> models.Credential:
    """Record a credential for the caller; the issuer is the university's name."""
    _check_dates(data["issue_date"], data.get("expiry_date"))
    university = await get_university(session, data["university_id"])

    credential = models.Credential(
        user_id=user_id,
        university_id=university.id,
        credential_type=data["credential_type"],
        title=data["title"],
        description=data.get("description"),
        issuer_name=university.name,
        issue_date=data["issue_date"],
        expiry_date=data.get("expiry_date"),
        metadata_=data.get("metadata"),
        is_verified=False,
    )
    session.add(credential)
    await session.commit()
    await session.refresh(credential)
    logger.info(f"Created {credential.credential_type} credential {credential.id} for user {user_id}")
    return credential


async def _get_owned(session: AsyncSession, credential_id: int, user_id: str) -> models.Credential:
    credential = await get_credential(session, credential_id)
    if credential.user_id != user_id:
        raise NotFound("Credential not found", "CREDENTIAL_NOT_FOUND")
    return credential


async def update_credential(
    session: AsyncSession,
    credential_id: int,
    user_id: str,
    changes: dict[str, Any],
) -> models.Credential:
    """Owner edit. Any change to the content withdraws an earlier verification."""
    credential = await _get_owned(session, credential_id, user_id)
    _check_dates(changes.get("issue_date", credential.issue_date), changes.get("expiry_date", credential.expiry_date))

    if changes.get("university_id") is not None:
        university = await get_university(session, changes["university_id"])
        changes["issuer_name"] = university.name
    if "metadata" in changes:
        changes["metadata_"] = changes.pop("metadata")

    apply_changes(credential, changes)
    if changes and credential.is_verified:
        credential.is_verified = False
        credential.verified_at = None
        credential.verified_by_id = None
        logger.info(f"Credential {credential_id} edited; verification withdrawn")

    await session.commit()
    await session.refresh(credential)
    logger.info(f"Updated credential {credential_id}: {sorted(changes)}")
    return credential


async def delete_credential(session: AsyncSession, credential_id: int, user_id: str) -> None:
    credential = await _get_owned(session, credential_id, user_id)
    await session.delete(credential)
    await session.commit()
    logger.info(f"Deleted credential {credential_id}")


async def verify_credential(session: AsyncSession, credential_id: int, admin: CurrentUser) -> models.Credential:
    """Mark a credential verified by an admin of the issuing university.

    Raises:
        Forbidden: FORBIDDEN_ROLE or FORBIDDEN_UNIVERSITY
        ValidationFailed: ALREADY_VERIFIED
    """
    credential = await get_credential(session, credential_id)
    if admin.role != ADMIN_ROLE:
        raise Forbidden("Only university admins can verify credentials", "FORBIDDEN_ROLE")
    check_university_scope(admin, credential.university_id)
    if credential.is_verified:
        raise ValidationFailed("Credential is already verified", "ALREADY_VERIFIED")

    credential.is_verified = True
    credential.verified_at = utcnow()
    credential.verified_by_id = admin.id
    await NotificationService.credential_verified(session, credential.user_id, credential.title, credential.id)
    await session.commit()
    await session.refresh(credential)
    logger.info(f"Credential {credential_id} verified by {admin.id}")
    return credential

"""Credential endpoints. Reads are public so credentials can be checked by anyone."""
from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Annotated, Any

from fastapi import APIRouter, Depends, Query, status
from pydantic import AliasChoices, Field, model_validator
from sqlalchemy.ext.asyncio import AsyncSession

from ..auth import CurrentUser, get_current_user, require_role
from ..db import get_session
from ..schemas import CamelModel, MessageResponse, Page, changed_fields, non_blank, one_of, pagination, reject_fields
from ..services import credentials as service
from ..services.credentials import CREDENTIAL_TYPES

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/credentials", tags=["credentials"])

admin_only = require_role("university_admin")

CredentialType = Annotated[str, one_of("INVALID_CREDENTIAL_TYPE", "credentialType", CREDENTIAL_TYPES, lower=True)]

_SERVER_OWNED = {
    "userId": "USER_ID_NOT_ALLOWED",
    "user_id": "USER_ID_NOT_ALLOWED",
    "isVerified": "VERIFICATION_NOT_ALLOWED",
    "is_verified": "VERIFICATION_NOT_ALLOWED",
}


class CredentialDTO(CamelModel):
    id: int
    user_id: str
    university_id: int
    credential_type: str
    title: str
    description: str | None = None
    issuer_name: str
    issue_date: date
    expiry_date: date | None = None
    metadata: dict[str, Any] | None = Field(
        default=None,
        validation_alias=AliasChoices("metadata_", "metadata"),
    )
    is_verified: bool
    verified_at: datetime | None = None
    verified_by_id: str | None = None
    created_at: datetime
    updated_at: datetime


class CreateCredentialRequest(CamelModel):
    university_id: int
    credential_type: CredentialType
    title: Annotated[str, non_blank("INVALID_TITLE", "Title")]
    description: str | None = None
    issue_date: date
    expiry_date: date | None = None
    metadata: dict[str, Any] | None = None

    @model_validator(mode="before")
    @classmethod
    def _no_owner(cls, data: Any) -> Any:
        return reject_fields(data, _SERVER_OWNED)


class UpdateCredentialRequest(CamelModel):
    university_id: int | None = None
    credential_type: CredentialType | None = None
    title: Annotated[str, non_blank("INVALID_TITLE", "Title")] | None = None
    description: str | None = None
    issue_date: date | None = None
    expiry_date: date | None = None
    metadata: dict[str, Any] | None = None

    @model_validator(mode="before")
    @classmethod
    def _no_owner(cls, data: Any) -> Any:
        return reject_fields(data, _SERVER_OWNED)


@router.get("", response_model=list[CredentialDTO])
async def list_credentials(
    user_id: str | None = Query(default=None, alias="userId"),
    university_id: int | None = Query(default=None, alias="universityId"),
    credential_type: str | None = Query(default=None, alias="credentialType"),
    is_verified: bool | None = Query(default=None, alias="isVerified"),
    search: str | None = None,
    page: Page = Depends(pagination(default=10, maximum=100)),
    session: AsyncSession = Depends(get_session),
):
    return await service.list_credentials(
        session,
        user_id=user_id,
        university_id=university_id,
        credential_type=credential_type.lower() if credential_type else None,
        is_verified=is_verified,
        search=search,
        limit=page.limit,
        offset=page.offset,
    )


@router.get("/{credential_id}", response_model=CredentialDTO)
async def get_credential(credential_id: int, session: AsyncSession = Depends(get_session)):
    return await service.get_credential(session, credential_id)


@router.post("", response_model=CredentialDTO, status_code=status.HTTP_201_CREATED)
async def create_credential(
    request: CreateCredentialRequest,
    user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return await service.create_credential(session, user.id, request.model_dump())


@router.put("/{credential_id}", response_model=CredentialDTO)
async def update_credential(
    credential_id: int,
    request: UpdateCredentialRequest,
    user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return await service.update_credential(
        session,
        credential_id,
        user.id,
        changed_fields(request, nullable=frozenset({"description", "expiry_date", "metadata"})),
    )


@router.delete("/{credential_id}", response_model=MessageResponse)
async def delete_credential(
    credential_id: int,
    user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> MessageResponse:
    await service.delete_credential(session, credential_id, user.id)
    return MessageResponse(message="Credential deleted successfully")


@router.post("/{credential_id}/verify", response_model=CredentialDTO)
async def verify_credential(
    credential_id: int,
    user: CurrentUser = Depends(admin_only),
    session: AsyncSession = Depends(get_session),
):
    return await service.verify_credential(session, credential_id, user)

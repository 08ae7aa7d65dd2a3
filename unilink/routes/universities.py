"""University (tenant) endpoints. Reads are public, writes need a university admin of that university."""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Annotated, Any

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..auth import CurrentUser, require_role
from ..db import get_session
from ..schemas import CamelModel, MessageResponse, Page, changed_fields, non_blank, pagination
from ..services import universities as service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/universities", tags=["universities"])

admin_only = require_role("university_admin")


class UniversityDTO(CamelModel):
    id: int
    name: str
    domain: str
    logo: str | None = None
    country: str
    description: str | None = None
    is_active: bool
    tenant_id: str
    settings: dict[str, Any] | None = None
    created_at: datetime
    updated_at: datetime


class CreateUniversityRequest(CamelModel):
    name: Annotated[str, non_blank("MISSING_NAME", "Name")]
    domain: Annotated[str, non_blank("MISSING_DOMAIN", "Domain")]
    country: Annotated[str, non_blank("MISSING_COUNTRY", "Country")]
    tenant_id: str | None = None
    logo: str | None = None
    description: str | None = None
    is_active: bool = True
    settings: dict[str, Any] | None = None


class UpdateUniversityRequest(CamelModel):
    name: Annotated[str, non_blank("INVALID_NAME", "Name")] | None = None
    domain: Annotated[str, non_blank("INVALID_DOMAIN_FORMAT", "Domain")] | None = None
    country: Annotated[str, non_blank("INVALID_COUNTRY", "Country")] | None = None
    tenant_id: Annotated[str, non_blank("INVALID_TENANT_ID", "TenantId")] | None = None
    logo: str | None = None
    description: str | None = None
    is_active: bool | None = None
    settings: dict[str, Any] | None = None


@router.get("", response_model=list[UniversityDTO])
async def list_universities(
    country: str | None = None,
    is_active: bool | None = Query(default=None, alias="isActive"),
    search: str | None = None,
    page: Page = Depends(pagination(default=10, maximum=100)),
    session: AsyncSession = Depends(get_session),
):
    return await service.list_universities(
        session,
        country=country,
        is_active=is_active,
        search=search,
        limit=page.limit,
        offset=page.offset,
    )


@router.get("/by-domain/{domain}", response_model=UniversityDTO)
async def get_university_by_domain(domain: str, session: AsyncSession = Depends(get_session)):
    return await service.get_by_domain(session, domain)


@router.get("/{university_id}", response_model=UniversityDTO)
async def get_university(university_id: int, session: AsyncSession = Depends(get_session)):
    return await service.get_university(session, university_id)


@router.post("", response_model=UniversityDTO, status_code=status.HTTP_201_CREATED)
async def create_university(
    request: CreateUniversityRequest,
    user: CurrentUser = Depends(admin_only),
    session: AsyncSession = Depends(get_session),
):
    logger.info(f"User {user.id} creating university {request.domain}")
    return await service.create_university(session, request.model_dump())


@router.put("/{university_id}", response_model=UniversityDTO)
async def update_university(
    university_id: int,
    request: UpdateUniversityRequest,
    user: CurrentUser = Depends(admin_only),
    session: AsyncSession = Depends(get_session),
):
    return await service.update_university(session, university_id, user, changed_fields(request, nullable={"logo", "description", "settings"}))


@router.delete("/{university_id}", response_model=MessageResponse)
async def delete_university(
    university_id: int,
    user: CurrentUser = Depends(admin_only),
    session: AsyncSession = Depends(get_session),
) -> MessageResponse:
    university = await service.delete_university(session, university_id, user)
    return MessageResponse(message=f"University {university.name} deleted successfully")

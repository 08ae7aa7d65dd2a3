"""Newsletter endpoints. Writes need university_admin."""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Annotated, Any

from fastapi import APIRouter, Depends, Query, status
from pydantic import Field, model_validator
from sqlalchemy.ext.asyncio import AsyncSession

from ..auth import CurrentUser, require_role
from ..db import get_session
from ..schemas import CamelModel, MessageResponse, Page, changed_fields, non_blank, one_of, pagination, reject_fields
from ..services import newsletters as service
from ..services.newsletters import NEWSLETTER_STATUSES

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/newsletters", tags=["newsletters"])

admin_only = require_role("university_admin")

_SERVER_OWNED = {
    "userId": "USER_ID_NOT_ALLOWED",
    "user_id": "USER_ID_NOT_ALLOWED",
    "createdBy": "CREATED_BY_NOT_ALLOWED",
    "created_by": "CREATED_BY_NOT_ALLOWED",
}
_NULLABLE_COLUMNS = frozenset({"html_content", "publish_date", "ai_prompt"})

Status = Annotated[str, one_of("INVALID_STATUS", "status", NEWSLETTER_STATUSES)]


class NewsletterDTO(CamelModel):
    id: int
    university_id: int
    title: str
    content: str
    html_content: str | None = None
    status: str
    publish_date: datetime | None = None
    recipient_count: int
    open_rate: int
    ai_prompt: str | None = None
    created_by: str
    created_at: datetime
    updated_at: datetime


class CreateNewsletterRequest(CamelModel):
    university_id: int
    title: Annotated[str, non_blank("INVALID_TITLE", "Title")]
    content: Annotated[str, non_blank("INVALID_CONTENT", "Content")]
    html_content: str | None = None
    status: Status = "draft"
    publish_date: datetime | None = None
    recipient_count: int = Field(default=0, ge=0)
    open_rate: int = Field(default=0, ge=0)
    ai_prompt: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _no_owner(cls, data: Any) -> Any:
        return reject_fields(data, _SERVER_OWNED)


class UpdateNewsletterRequest(CamelModel):
    university_id: int | None = None
    title: Annotated[str, non_blank("INVALID_TITLE", "Title")] | None = None
    content: Annotated[str, non_blank("INVALID_CONTENT", "Content")] | None = None
    html_content: str | None = None
    status: Status | None = None
    publish_date: datetime | None = None
    recipient_count: int | None = Field(default=None, ge=0)
    open_rate: int | None = Field(default=None, ge=0)
    ai_prompt: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _no_owner(cls, data: Any) -> Any:
        return reject_fields(data, _SERVER_OWNED)


class GenerateNewsletterRequest(CamelModel):
    university_id: int
    ai_prompt: Annotated[str, non_blank("MISSING_AI_PROMPT", "aiPrompt")]
    title: str | None = None


class GenerateNewsletterResponse(CamelModel):
    success: bool
    message: str
    newsletter: NewsletterDTO


@router.get("", response_model=list[NewsletterDTO])
async def list_newsletters(
    university_id: int | None = Query(default=None, alias="universityId"),
    status: str | None = None,
    created_by: str | None = Query(default=None, alias="createdBy"),
    search: str | None = None,
    page: Page = Depends(pagination(default=20, maximum=100)),
    session: AsyncSession = Depends(get_session),
):
    return await service.list_newsletters(
        session,
        university_id=university_id,
        status=status,
        created_by=created_by,
        search=search,
        limit=page.limit,
        offset=page.offset,
    )


@router.get("/{newsletter_id}", response_model=NewsletterDTO)
async def get_newsletter(newsletter_id: int, session: AsyncSession = Depends(get_session)):
    return await service.get_newsletter(session, newsletter_id)


@router.post("/generate", response_model=GenerateNewsletterResponse, status_code=status.HTTP_201_CREATED)
async def generate_newsletter(
    request: GenerateNewsletterRequest,
    user: CurrentUser = Depends(admin_only),
    session: AsyncSession = Depends(get_session),
) -> GenerateNewsletterResponse:
    newsletter = await service.generate_newsletter(
        session,
        user,
        university_id=request.university_id,
        ai_prompt=request.ai_prompt,
        title=request.title,
    )
    return GenerateNewsletterResponse(
        success=True,
        message="Newsletter generated successfully",
        newsletter=NewsletterDTO.model_validate(newsletter),
    )


@router.post("", response_model=NewsletterDTO, status_code=status.HTTP_201_CREATED)
async def create_newsletter(
    request: CreateNewsletterRequest,
    user: CurrentUser = Depends(admin_only),
    session: AsyncSession = Depends(get_session),
):
    return await service.create_newsletter(session, user, request.model_dump())


@router.put("/{newsletter_id}", response_model=NewsletterDTO)
async def update_newsletter(
    newsletter_id: int,
    request: UpdateNewsletterRequest,
    user: CurrentUser = Depends(admin_only),
    session: AsyncSession = Depends(get_session),
):
    return await service.update_newsletter(
        session,
        newsletter_id,
        user,
        changed_fields(request, nullable=_NULLABLE_COLUMNS),
    )


@router.delete("/{newsletter_id}", response_model=MessageResponse)
async def delete_newsletter(
    newsletter_id: int,
    user: CurrentUser = Depends(admin_only),
    session: AsyncSession = Depends(get_session),
) -> MessageResponse:
    await service.delete_newsletter(session, newsletter_id, user)
    return MessageResponse(message="Newsletter deleted successfully")

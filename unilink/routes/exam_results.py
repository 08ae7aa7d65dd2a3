"""Exam result endpoints, including bulk CSV/Excel import."""
from __future__ import annotations

import logging
from datetime import date, datetime
from io import BytesIO
from typing import Annotated, Any

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from pydantic import Field, model_validator
from sqlalchemy.ext.asyncio import AsyncSession

from ..auth import CurrentUser, check_university_scope, get_current_user, require_role
from ..db import get_session
from ..errors import ValidationFailed
from ..parsers import SUPPORTED_EXTENSIONS
from ..schemas import CamelModel, MessageResponse, Page, changed_fields, non_blank, pagination, reject_fields
from ..services import exam_results as service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/exam-results", tags=["exam-results"])

admin_only = require_role("university_admin")

_SERVER_OWNED = {"userId": "USER_ID_NOT_ALLOWED", "user_id": "USER_ID_NOT_ALLOWED"}


class ExamResultDTO(CamelModel):
    id: int
    user_id: str
    university_id: int
    exam_name: str
    subject: str
    score: int
    max_score: int
    grade: str | None = None
    exam_date: date
    credential_id: int | None = None
    is_verified: bool
    created_at: datetime
    updated_at: datetime


class CreateExamResultRequest(CamelModel):
    university_id: int
    exam_name: Annotated[str, non_blank("INVALID_EXAM_NAME", "examName")]
    subject: Annotated[str, non_blank("INVALID_SUBJECT", "subject")]
    score: int
    max_score: int
    grade: str | None = Field(default=None, max_length=8)
    exam_date: date
    credential_id: int | None = None
    is_verified: bool | None = None

    @model_validator(mode="before")
    @classmethod
    def _no_owner(cls, data: Any) -> Any:
        return reject_fields(data, _SERVER_OWNED)


class UpdateExamResultRequest(CamelModel):
    university_id: int | None = None
    exam_name: Annotated[str, non_blank("INVALID_EXAM_NAME", "examName")] | None = None
    subject: Annotated[str, non_blank("INVALID_SUBJECT", "subject")] | None = None
    score: int | None = None
    max_score: int | None = None
    grade: str | None = Field(default=None, max_length=8)
    exam_date: date | None = None
    credential_id: int | None = None
    is_verified: bool | None = None

    @model_validator(mode="before")
    @classmethod
    def _no_owner(cls, data: Any) -> Any:
        return reject_fields(data, _SERVER_OWNED)


class RowErrorDTO(CamelModel):
    row: int
    error: str
    code: str


class ImportResponse(CamelModel):
    filename: str
    total_rows: int
    imported: int
    rejected: int
    errors: list[RowErrorDTO]
    results: list[ExamResultDTO]


@router.get("", response_model=list[ExamResultDTO])
async def list_exam_results(
    user_id: str | None = Query(default=None, alias="userId"),
    university_id: int | None = Query(default=None, alias="universityId"),
    subject: str | None = None,
    is_verified: bool | None = Query(default=None, alias="isVerified"),
    search: str | None = None,
    page: Page = Depends(pagination(default=20, maximum=100)),
    user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return await service.list_exam_results(
        session,
        user,
        user_id=user_id,
        university_id=university_id,
        subject=subject,
        is_verified=is_verified,
        search=search,
        limit=page.limit,
        offset=page.offset,
    )


@router.post("/import", response_model=ImportResponse, status_code=status.HTTP_201_CREATED)
async def import_exam_results(
    file: UploadFile = File(..., description="CSV or Excel file of exam results"),
    university_id: int = Form(..., alias="universityId"),
    user: CurrentUser = Depends(admin_only),
    session: AsyncSession = Depends(get_session),
) -> ImportResponse:
    """Bulk-insert exam results from an uploaded table.

    Expected columns: user_id, exam_name, subject, score, max_score,
    exam_date and optionally grade. Rows that fail validation are listed
    in ``errors``; the rest are inserted.
    """
    if not file.filename:
        raise ValidationFailed("Filename is required", "MISSING_FILENAME")
    if not file.filename.lower().endswith(SUPPORTED_EXTENSIONS):
        raise ValidationFailed(
            f"Unsupported file type. Allowed: {', '.join(SUPPORTED_EXTENSIONS)}",
            "UNSUPPORTED_FILE_TYPE",
        )

    check_university_scope(user, university_id)

    logger.info(f"Received exam result import {file.filename} from {user.id}")
    try:
        content = await file.read()
        report = await service.import_exam_results(
            session,
            university_id,
            BytesIO(content),
            file.filename,
            content,
        )
    finally:
        await file.close()

    return ImportResponse(
        filename=file.filename,
        total_rows=report.total_rows,
        imported=len(report.created),
        rejected=len(report.errors),
        errors=[RowErrorDTO(row=e.row, error=e.error, code=e.code) for e in report.errors],
        results=[ExamResultDTO.model_validate(r) for r in report.created],
    )


@router.get("/{result_id}", response_model=ExamResultDTO)
async def get_exam_result(
    result_id: int,
    user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return await service.get_exam_result(session, result_id, user)


@router.post("", response_model=ExamResultDTO, status_code=status.HTTP_201_CREATED)
async def create_exam_result(
    request: CreateExamResultRequest,
    user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return await service.create_exam_result(session, user, request.model_dump())


@router.put("/{result_id}", response_model=ExamResultDTO)
async def update_exam_result(
    result_id: int,
    request: UpdateExamResultRequest,
    user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return await service.update_exam_result(
        session,
        result_id,
        user,
        changed_fields(request, nullable=frozenset({"grade", "credential_id"})),
    )


@router.delete("/{result_id}", response_model=MessageResponse)
async def delete_exam_result(
    result_id: int,
    user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> MessageResponse:
    await service.delete_exam_result(session, result_id, user)
    return MessageResponse(message="Exam result deleted successfully")

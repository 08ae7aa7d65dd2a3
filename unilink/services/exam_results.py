"""Exam result records and bulk import from CSV/Excel."""
from __future__ import annotations

import logging
import numbers
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, BinaryIO

import pandas as pd
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from .. import models
from ..auth import CurrentUser, check_university_scope
from ..errors import Forbidden, NotFound, ValidationFailed
from ..parsers import parse_table
from ._query import apply_changes, contains_any
from .universities import get_university

logger = logging.getLogger(__name__)

ADMIN_ROLE = "university_admin"
REQUIRED_COLUMNS = ("user_id", "exam_name", "subject", "score", "max_score", "exam_date")


def calculate_grade(score: float, max_score: float) -> str:
    """Letter grade from the score percentage."""
    percentage = score / max_score * 100
    if percentage >= 90:
        return "A"
    if percentage >= 80:
        return "B"
    if percentage >= 70:
        return "C"
    if percentage >= 60:
        return "D"
    return "F"


def check_scores(score: int, max_score: int) -> None:
    if max_score <= 0 or score < 0 or score > max_score:
        raise ValidationFailed(
            "Score must be between 0 and maxScore, and maxScore must be positive",
            "INVALID_SCORE",
        )


@dataclass
class RowError:
    row: int
    error: str
    code: str


@dataclass
class ImportReport:
    created: list[models.ExamResult] = field(default_factory=list)
    errors: list[RowError] = field(default_factory=list)
    total_rows: int = 0


async def get_exam_result(session: AsyncSession, result_id: int, user: CurrentUser) -> models.ExamResult:
    result = await session.get(models.ExamResult, result_id)
    if result is None or (result.user_id != user.id and not _administers(user, result.university_id)):
        raise NotFound("Exam result not found", "EXAM_RESULT_NOT_FOUND")
    return result


async def list_exam_results(
    session: AsyncSession,
    user: CurrentUser,
    *,
    user_id: str | None = None,
    university_id: int | None = None,
    subject: str | None = None,
    is_verified: bool | None = None,
    search: str | None = None,
    limit: int = 20,
    offset: int = 0,
) -> list[models.ExamResult]:
    """List results.

    Admins see results of their own university; everyone else only their own.
    """
    if user.role == ADMIN_ROLE:
        university_id = user.university_id
    else:
        user_id = user.id

    query = select(models.ExamResult)
    if user_id:
        query = query.where(models.ExamResult.user_id == user_id)
    if university_id is not None:
        query = query.where(models.ExamResult.university_id == university_id)
    if subject:
        query = query.where(models.ExamResult.subject == subject)
    if is_verified is not None:
        query = query.where(models.ExamResult.is_verified == is_verified)
    if search:
        query = query.where(contains_any(search, models.ExamResult.exam_name, models.ExamResult.subject))
    query = (
        query.order_by(models.ExamResult.exam_date.desc(), models.ExamResult.id.desc())
        .limit(limit)
        .offset(offset)
    )
    return list((await session.execute(query)).scalars().all())


def _administers(user: CurrentUser, university_id: int | None) -> bool:
    return user.role == ADMIN_ROLE and user.university_id is not None and user.university_id == university_id


def _check_verification(user: CurrentUser, data: dict[str, Any], university_id: int) -> None:
    if data.get("is_verified") is None:
        return
    if user.role != ADMIN_ROLE:
        logger.warning(f"User {user.id} attempted to set verification on an exam result")
        raise Forbidden("Only university admins can verify exam results", "FORBIDDEN_ROLE")
    check_university_scope(user, university_id)


async def _check_credential(session: AsyncSession, credential_id: int | None, user_id: str) -> None:
    if credential_id is None:
        return
    credential = await session.get(models.Credential, credential_id)
    if credential is None or credential.user_id != user_id:
        raise NotFound("Credential not found", "CREDENTIAL_NOT_FOUND")


async def create_exam_result(session: AsyncSession, user: CurrentUser, data: dict[str, Any]) -> models.ExamResult:
    check_scores(data["score"], data["max_score"])
    _check_verification(user, data, data["university_id"])
    await get_university(session, data["university_id"])
    await _check_credential(session, data.get("credential_id"), user.id)

    if not data.get("grade"):
        data["grade"] = calculate_grade(data["score"], data["max_score"])
    if data.get("is_verified") is None:
        data["is_verified"] = False

    result = models.ExamResult(user_id=user.id, **data)
    session.add(result)
    await session.commit()
    await session.refresh(result)
    logger.info(f"Created exam result {result.id} for user {user.id}: {result.subject} {result.score}/{result.max_score}")
    return result


async def update_exam_result(
    session: AsyncSession,
    result_id: int,
    user: CurrentUser,
    changes: dict[str, Any],
) -> models.ExamResult:
    result = await get_exam_result(session, result_id, user)
    _check_verification(user, changes, changes.get("university_id") or result.university_id)
    if changes.get("university_id") is not None:
        await get_university(session, changes["university_id"])
    await _check_credential(session, changes.get("credential_id"), result.user_id)

    if "score" in changes or "max_score" in changes:
        score = changes.get("score", result.score)
        max_score = changes.get("max_score", result.max_score)
        check_scores(score, max_score)
        if not changes.get("grade"):
            changes["grade"] = calculate_grade(score, max_score)

    apply_changes(result, changes)
    await session.commit()
    await session.refresh(result)
    logger.info(f"Updated exam result {result_id}: {sorted(changes)}")
    return result


async def delete_exam_result(session: AsyncSession, result_id: int, user: CurrentUser) -> None:
    result = await get_exam_result(session, result_id, user)
    await session.delete(result)
    await session.commit()
    logger.info(f"Deleted exam result {result_id}")


def _as_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, numbers.Integral):
        return int(value)
    if isinstance(value, numbers.Real):
        return int(value) if float(value).is_integer() else None
    if isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
        return int(number) if number.is_integer() else None
    return None


def _as_date(value: Any) -> date | None:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    parsed = pd.to_datetime(value, errors="coerce")
    if pd.isna(parsed):
        return None
    return parsed.date()


def validate_row(record: dict[str, Any]) -> dict[str, Any]:
    """Turn one parsed row into ExamResult fields.

    Raises:
        ValidationFailed: With the code of the first problem found
    """
    for column in REQUIRED_COLUMNS:
        value = record.get(column)
        if value is None or (isinstance(value, str) and not value.strip()):
            raise ValidationFailed(f"Missing value for {column}", f"MISSING_{column.upper()}")

    score = _as_int(record["score"])
    max_score = _as_int(record["max_score"])
    if score is None or max_score is None:
        raise ValidationFailed("score and max_score must be whole numbers", "INVALID_SCORE_TYPE")
    check_scores(score, max_score)

    exam_date = _as_date(record["exam_date"])
    if exam_date is None:
        raise ValidationFailed(f"Invalid exam_date: {record['exam_date']}", "INVALID_EXAM_DATE")

    grade = record.get("grade")
    grade = str(grade).strip().upper() if grade is not None and str(grade).strip() else None

    return {
        "user_id": str(record["user_id"]).strip(),
        "exam_name": str(record["exam_name"]).strip(),
        "subject": str(record["subject"]).strip(),
        "score": score,
        "max_score": max_score,
        "exam_date": exam_date,
        "grade": grade or calculate_grade(score, max_score),
    }


async def import_exam_results(
    session: AsyncSession,
    university_id: int,
    file_obj: BinaryIO,
    filename: str,
    content: bytes | None = None,
) -> ImportReport:
    """Insert every valid row of an uploaded table; invalid rows are reported.

    Row numbers in the report are 1-based data rows (the header is row 0).
    """
    await get_university(session, university_id)
    records = parse_table(file_obj, filename, content)

    report = ImportReport(total_rows=len(records))
    candidates: list[tuple[int, dict[str, Any]]] = []
    for index, record in enumerate(records, start=1):
        try:
            candidates.append((index, validate_row(record)))
        except ValidationFailed as e:
            report.errors.append(RowError(row=index, error=e.message, code=e.code))

    user_ids = {fields["user_id"] for _, fields in candidates}
    known: set[str] = set()
    if user_ids:
        known = set((await session.execute(select(models.User.id).where(models.User.id.in_(user_ids)))).scalars())

    for index, fields in candidates:
        if fields["user_id"] not in known:
            report.errors.append(RowError(row=index, error=f"Unknown user {fields['user_id']}", code="USER_NOT_FOUND"))
            continue
        result = models.ExamResult(university_id=university_id, is_verified=False, **fields)
        session.add(result)
        report.created.append(result)

    await session.commit()
    for result in report.created:
        await session.refresh(result)

    report.errors.sort(key=lambda err: err.row)
    logger.info(
        f"Imported {len(report.created)}/{report.total_rows} exam results from {filename} "
        f"for university {university_id} ({len(report.errors)} rejected)"
    )
    return report

"""Recommendation endpoint."""
from __future__ import annotations

import logging
from datetime import datetime

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..auth import CurrentUser, get_current_user
from ..db import get_session
from ..errors import ValidationFailed
from ..schemas import CamelModel
from ..services import recommendations as service
from ..services.recommendations import RECOMMENDATION_TYPES
from ..timeutil import utcnow

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/recommendations", tags=["recommendations"])

MAX_LIMIT = 50


class RecommendationDTO(CamelModel):
    id: str
    score: int
    reasons: list[str]
    match_type: str


class RecommendationsResponse(CamelModel):
    type: str
    user_id: str
    recommendations: list[RecommendationDTO]
    count: int
    generated_at: datetime


@router.get("", response_model=RecommendationsResponse)
async def get_recommendations(
    type: str | None = None,
    limit: int = Query(default=10, ge=1),
    user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> RecommendationsResponse:
    """Ranked jobs, mentors or connections for the caller."""
    if not type:
        raise ValidationFailed(
            "Recommendation type is required. Use: jobs, mentors, or connections",
            "MISSING_TYPE",
        )
    if type not in RECOMMENDATION_TYPES:
        raise ValidationFailed(
            "Invalid recommendation type. Use: jobs, mentors, or connections",
            "INVALID_TYPE",
        )

    matches = await service.recommend(session, user.id, type, min(limit, MAX_LIMIT))
    recommendations = [
        RecommendationDTO(id=m.id, score=m.score, reasons=m.reasons, match_type=m.match_type)
        for m in matches
    ]
    return RecommendationsResponse(
        type=type,
        user_id=user.id,
        recommendations=recommendations,
        count=len(recommendations),
        generated_at=utcnow(),
    )

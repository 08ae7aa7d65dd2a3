"""Job, mentor and connection recommendations for the calling user."""
from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from .. import models
from ..config import settings
from ..matching.rules import Match, RuleEngine, connection_rules, job_rules, mentor_rules
from ..matching.skills import SkillMatcher

logger = logging.getLogger(__name__)

RECOMMENDATION_TYPES = ("jobs", "mentors", "connections")

_PROFILE_FIELDS = ("university_id", "major", "company", "location", "graduation_year", "skills", "role")


def profile_features(profile: models.Profile | None) -> dict[str, Any]:
    if profile is None:
        return {}
    return {name: getattr(profile, name) for name in _PROFILE_FIELDS}


def job_features(job: models.JobPosting) -> dict[str, Any]:
    return {
        "skills": job.skills,
        "is_remote": job.is_remote,
        "location": job.location,
        "university_id": job.university_id,
        "job_type": job.job_type,
    }


async def _own_profile(session: AsyncSession, user_id: str) -> dict[str, Any]:
    query = select(models.Profile).where(models.Profile.user_id == user_id)
    return profile_features((await session.execute(query)).scalar_one_or_none())


async def recommend_jobs(session: AsyncSession, user_id: str, limit: int, matcher: SkillMatcher | None = None) -> list[Match]:
    subject = await _own_profile(session, user_id)
    query = (
        select(models.JobPosting)
        .where(models.JobPosting.status == "active", models.JobPosting.posted_by_id != user_id)
        .order_by(models.JobPosting.created_at.desc(), models.JobPosting.id.desc())
    )
    jobs = (await session.execute(query)).scalars().all()

    engine = RuleEngine(job_rules(), cutoff=settings.matching.job_cutoff, match_type="job", skill_matcher=matcher)
    return engine.rank(subject, ((str(job.id), job_features(job)) for job in jobs), limit)


async def recommend_mentors(session: AsyncSession, user_id: str, limit: int, matcher: SkillMatcher | None = None) -> list[Match]:
    subject = await _own_profile(session, user_id)
    query = (
        select(models.Profile)
        .where(models.Profile.role == "alumni", models.Profile.user_id != user_id)
        .order_by(models.Profile.created_at.desc(), models.Profile.id.desc())
    )
    mentors = (await session.execute(query)).scalars().all()

    engine = RuleEngine(mentor_rules(), cutoff=settings.matching.mentor_cutoff, match_type="mentor", skill_matcher=matcher)
    return engine.rank(subject, ((p.user_id, profile_features(p)) for p in mentors), limit)


async def recommend_connections(
    session: AsyncSession,
    user_id: str,
    limit: int,
    matcher: SkillMatcher | None = None,
) -> list[Match]:
    """Score a bounded pool of other users; users without a profile score zero."""
    subject = await _own_profile(session, user_id)
    query = (
        select(models.User.id, models.Profile)
        .outerjoin(models.Profile, models.Profile.user_id == models.User.id)
        .where(models.User.id != user_id)
        .order_by(models.User.created_at.desc(), models.User.id)
        .limit(settings.matching.connection_pool_size)
    )
    pool = (await session.execute(query)).all()

    engine = RuleEngine(
        connection_rules(),
        cutoff=settings.matching.connection_cutoff,
        match_type="connection",
        skill_matcher=matcher,
    )
    return engine.rank(subject, ((uid, profile_features(profile)) for uid, profile in pool), limit)


async def recommend(session: AsyncSession, user_id: str, type: str, limit: int) -> list[Match]:
    if type == "jobs":
        matches = await recommend_jobs(session, user_id, limit)
    elif type == "mentors":
        matches = await recommend_mentors(session, user_id, limit)
    else:
        matches = await recommend_connections(session, user_id, limit)

    logger.info(f"Generated {len(matches)} {type} recommendations for {user_id}")
    return matches

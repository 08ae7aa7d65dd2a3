"""Rule engine for weighted recommendation scoring.

Each rule compares the subject (the user asking for recommendations) with
one candidate (a job posting or another user) and, when it passes,
contributes its weight to the score along with a human-readable reason.
Every evaluation leaves a trace so a score can be explained afterwards.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable

from ..config import settings
from .skills import SkillMatcher, distinct_skills

logger = logging.getLogger(__name__)


class RuleType(str, Enum):
    """Rule types."""
    SKILLS_OVERLAP = "skills_overlap"      # weight x fraction of candidate skills covered
    SAME_VALUE = "same_value"              # subject and candidate share a field value
    REMOTE_OR_SAME_LOCATION = "remote_or_same_location"
    HAS_VALUE = "has_value"                # candidate field is set
    EQUALS = "equals"                      # candidate field equals a constant
    MIN_VALUE = "min_value"                # candidate field >= constant
    WITHIN_RANGE = "within_range"          # |subject - candidate| <= constant


class RuleStatus(str, Enum):
    """Rule evaluation status."""
    PASS = "PASS"
    FAIL = "FAIL"
    SKIP = "SKIP"


@dataclass
class RuleTrace:
    """Audit trace for a single rule evaluation."""
    rule_id: str
    name: str
    status: RuleStatus
    reason: str
    score_delta: float = 0.0


@dataclass
class RuleConfig:
    """Configuration for a single rule."""
    id: str
    name: str
    type: RuleType
    params: dict[str, Any]
    weight: float = 1.0


@dataclass
class Match:
    """A candidate that cleared the cutoff."""
    id: str
    score: int
    reasons: list[str]
    match_type: str
    traces: list[RuleTrace] = field(default_factory=list)


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _present(value: Any) -> bool:
    return value is not None and value != "" and value != []


class RuleEngine:
    """Weighted-sum scorer.

    A candidate is kept when its raw score is strictly above ``cutoff``;
    kept scores are rounded half up.
    """

    def __init__(
        self,
        rules: list[RuleConfig],
        *,
        cutoff: float,
        match_type: str,
        skill_matcher: SkillMatcher | None = None,
    ) -> None:
        self.rules = rules
        self.cutoff = cutoff
        self.match_type = match_type
        self.skill_matcher = skill_matcher or SkillMatcher()

        logger.debug(f"Initialized {match_type} rule engine: {len(rules)} rules, cutoff {cutoff}")

    def evaluate(self, subject: dict[str, Any], candidate: dict[str, Any]) -> tuple[float, list[RuleTrace]]:
        """Evaluate every rule and return the raw score with its traces."""
        traces = []
        total = 0.0

        for rule in self.rules:
            trace = self._evaluate_rule(rule, subject, candidate)
            traces.append(trace)
            if trace.status == RuleStatus.PASS:
                total += trace.score_delta

        return total, traces

    def rank(
        self,
        subject: dict[str, Any],
        candidates: Iterable[tuple[str, dict[str, Any]]],
        limit: int,
    ) -> list[Match]:
        """Score ``(id, data)`` candidates; best first, at most ``limit``."""
        matches = []
        scored = 0
        for candidate_id, candidate in candidates:
            scored += 1
            total, traces = self.evaluate(subject, candidate)
            if total <= self.cutoff:
                continue
            matches.append(Match(
                id=candidate_id,
                score=round_half_up(total),
                reasons=[t.reason for t in traces if t.status == RuleStatus.PASS],
                match_type=self.match_type,
                traces=traces,
            ))

        # stable sort keeps candidate order among equal scores
        matches.sort(key=lambda m: m.score, reverse=True)
        logger.debug(f"{self.match_type}: {len(matches)}/{scored} candidates above cutoff {self.cutoff}")
        return matches[:limit]

    def _evaluate_rule(
        self,
        rule: RuleConfig,
        subject: dict[str, Any],
        candidate: dict[str, Any],
    ) -> RuleTrace:
        if rule.type == RuleType.SKILLS_OVERLAP:
            return self._eval_skills_overlap(rule, subject, candidate)
        elif rule.type == RuleType.SAME_VALUE:
            return self._eval_same_value(rule, subject, candidate)
        elif rule.type == RuleType.REMOTE_OR_SAME_LOCATION:
            return self._eval_remote_or_location(rule, subject, candidate)
        elif rule.type == RuleType.HAS_VALUE:
            return self._eval_has_value(rule, candidate)
        elif rule.type == RuleType.EQUALS:
            return self._eval_equals(rule, candidate)
        elif rule.type == RuleType.MIN_VALUE:
            return self._eval_min_value(rule, candidate)
        elif rule.type == RuleType.WITHIN_RANGE:
            return self._eval_within_range(rule, subject, candidate)
        else:
            logger.warning(f"Unknown rule type: {rule.type}")
            return RuleTrace(rule.id, rule.name, RuleStatus.SKIP, f"Unknown rule type: {rule.type}")

    def _pass(self, rule: RuleConfig, reason: str, fraction: float = 1.0) -> RuleTrace:
        return RuleTrace(rule.id, rule.name, RuleStatus.PASS, reason, score_delta=rule.weight * fraction)

    @staticmethod
    def _fail(rule: RuleConfig, reason: str) -> RuleTrace:
        return RuleTrace(rule.id, rule.name, RuleStatus.FAIL, reason)

    def _eval_skills_overlap(self, rule: RuleConfig, subject: dict[str, Any], candidate: dict[str, Any]) -> RuleTrace:
        wanted = distinct_skills(candidate.get(rule.params.get("candidate_field", "skills")))
        offered = distinct_skills(subject.get(rule.params.get("subject_field", "skills")))
        if not wanted or not offered:
            return RuleTrace(rule.id, rule.name, RuleStatus.SKIP, "No skills to compare")

        matched = self.skill_matcher.overlap(offered, wanted)
        if not matched:
            return self._fail(rule, "No matching skills")
        return self._pass(rule, f"{len(matched)} matching skills", fraction=len(matched) / len(wanted))

    def _eval_same_value(self, rule: RuleConfig, subject: dict[str, Any], candidate: dict[str, Any]) -> RuleTrace:
        field_name = rule.params["field"]
        mine, theirs = subject.get(field_name), candidate.get(rule.params.get("candidate_field", field_name))
        if _present(mine) and mine == theirs:
            return self._pass(rule, rule.params["reason"])
        return self._fail(rule, f"Different {field_name}")

    def _eval_remote_or_location(self, rule: RuleConfig, subject: dict[str, Any], candidate: dict[str, Any]) -> RuleTrace:
        if candidate.get("is_remote"):
            return self._pass(rule, "Remote work available")
        location = subject.get("location")
        if _present(location) and candidate.get("location") == location:
            return self._pass(rule, "Location matches")
        return self._fail(rule, "Location does not match")

    def _eval_has_value(self, rule: RuleConfig, candidate: dict[str, Any]) -> RuleTrace:
        value = candidate.get(rule.params["field"])
        if _present(value):
            return self._pass(rule, rule.params["reason"].format(value=value))
        return self._fail(rule, f"No {rule.params['field']}")

    def _eval_equals(self, rule: RuleConfig, candidate: dict[str, Any]) -> RuleTrace:
        if candidate.get(rule.params["field"]) == rule.params["value"]:
            return self._pass(rule, rule.params["reason"])
        return self._fail(rule, f"{rule.params['field']} is not {rule.params['value']}")

    def _eval_min_value(self, rule: RuleConfig, candidate: dict[str, Any]) -> RuleTrace:
        value = candidate.get(rule.params["field"])
        if value is not None and value >= rule.params["min"]:
            return self._pass(rule, rule.params["reason"])
        return self._fail(rule, f"{rule.params['field']} below {rule.params['min']}")

    def _eval_within_range(self, rule: RuleConfig, subject: dict[str, Any], candidate: dict[str, Any]) -> RuleTrace:
        field_name = rule.params["field"]
        mine, theirs = subject.get(field_name), candidate.get(field_name)
        if mine is None or theirs is None:
            return RuleTrace(rule.id, rule.name, RuleStatus.SKIP, f"{field_name} unknown")
        if abs(mine - theirs) <= rule.params["max_diff"]:
            return self._pass(rule, rule.params["reason"])
        return self._fail(rule, f"{field_name} differs by {abs(mine - theirs)}")


def job_rules() -> list[RuleConfig]:
    return [
        RuleConfig("skills", "Skills overlap", RuleType.SKILLS_OVERLAP, {}, weight=40),
        RuleConfig("location", "Remote or same location", RuleType.REMOTE_OR_SAME_LOCATION, {}, weight=30),
        RuleConfig(
            "university", "Same university", RuleType.SAME_VALUE,
            {"field": "university_id", "reason": "Same university"}, weight=20,
        ),
        RuleConfig(
            "job_type", "Full-time position", RuleType.EQUALS,
            {"field": "job_type", "value": "full-time", "reason": "Full-time position"}, weight=10,
        ),
    ]


def mentor_rules() -> list[RuleConfig]:
    return [
        RuleConfig(
            "university", "Same university", RuleType.SAME_VALUE,
            {"field": "university_id", "reason": "Same university alumni"}, weight=40,
        ),
        RuleConfig(
            "major", "Same major", RuleType.SAME_VALUE,
            {"field": "major", "reason": "Same field of study"}, weight=30,
        ),
        RuleConfig(
            "company", "Industry experience", RuleType.HAS_VALUE,
            {"field": "company", "reason": "Works at {value}"}, weight=20,
        ),
        RuleConfig(
            "recent_graduate", "Recent graduate", RuleType.MIN_VALUE,
            {"field": "graduation_year", "min": settings.matching.recent_graduate_year, "reason": "Recent graduate"},
            weight=10,
        ),
    ]


def connection_rules() -> list[RuleConfig]:
    return [
        RuleConfig(
            "university", "Same university", RuleType.SAME_VALUE,
            {"field": "university_id", "reason": "Same university"}, weight=30,
        ),
        RuleConfig(
            "location", "Same location", RuleType.SAME_VALUE,
            {"field": "location", "reason": "Same location"}, weight=25,
        ),
        RuleConfig(
            "graduation_year", "Similar graduation year", RuleType.WITHIN_RANGE,
            {
                "field": "graduation_year",
                "max_diff": settings.matching.graduation_year_window,
                "reason": "Similar graduation year",
            },
            weight=20,
        ),
        RuleConfig(
            "major", "Same major", RuleType.SAME_VALUE,
            {"field": "major", "reason": "Same field of study"}, weight=15,
        ),
        RuleConfig(
            "company", "Same company", RuleType.SAME_VALUE,
            {"field": "company", "reason": "Same company"}, weight=10,
        ),
    ]

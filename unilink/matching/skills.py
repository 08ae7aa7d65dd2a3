"""Skill list comparison using the taxonomy plus rapidfuzz.

Two skills match when, after lower-casing, they are equal, resolve to the
same canonical skill, one contains the other, or their rapidfuzz ratio
reaches the configured threshold.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable

from rapidfuzz import fuzz, process

from ..config import settings
from .taxonomy import SKILL_TAXONOMY

logger = logging.getLogger(__name__)

# minimum length of the shorter skill for a substring match
MIN_CONTAINMENT_LENGTH = 3


@dataclass
class SkillTaxonomy:
    """One canonical skill and the spellings that mean it."""
    canonical_skill: str
    synonyms: list[str] = field(default_factory=list)
    category: str = ""


def load_taxonomy() -> list[SkillTaxonomy]:
    return [
        SkillTaxonomy(
            canonical_skill=entry["canonical_skill"],
            synonyms=list(entry.get("synonyms", [])),
            category=entry.get("category", ""),
        )
        for entry in SKILL_TAXONOMY
    ]


def _clean(skill: str) -> str:
    return " ".join(skill.lower().split())


class SkillMatcher:
    """Compares free-text skill lists from profiles and job postings."""

    def __init__(
        self,
        taxonomy: list[SkillTaxonomy] | None = None,
        *,
        fuzzy_threshold: int | None = None,
    ) -> None:
        self.taxonomy = taxonomy if taxonomy is not None else load_taxonomy()
        self.fuzzy_threshold = fuzzy_threshold if fuzzy_threshold is not None else settings.matching.fuzzy_threshold

        self._synonym_map: dict[str, str] = {}  # spelling -> canonical
        for tax in self.taxonomy:
            self._synonym_map[_clean(tax.canonical_skill)] = tax.canonical_skill
            for syn in tax.synonyms:
                self._synonym_map[_clean(syn)] = tax.canonical_skill

        logger.debug(f"Loaded {len(self.taxonomy)} skills with {len(self._synonym_map)} spellings")

    def canonicalize(self, skill: str) -> str:
        """Canonical name for ``skill``, or its cleaned spelling if unknown."""
        cleaned = _clean(skill)
        return self._synonym_map.get(cleaned, cleaned)

    def _same_skill(self, a: str, b: str) -> bool:
        a_clean, b_clean = _clean(a), _clean(b)
        if not a_clean or not b_clean:
            return False
        if a_clean == b_clean or self.canonicalize(a) == self.canonicalize(b):
            return True

        shorter, longer = sorted((a_clean, b_clean), key=len)
        return len(shorter) >= MIN_CONTAINMENT_LENGTH and shorter in longer

    def matches(self, a: str, b: str) -> bool:
        if self._same_skill(a, b):
            return True
        a_clean, b_clean = _clean(a), _clean(b)
        return bool(a_clean and b_clean) and fuzz.ratio(a_clean, b_clean) >= self.fuzzy_threshold

    def overlap(self, candidate_skills: Iterable[str], job_skills: Iterable[str]) -> list[str]:
        """Job skills covered by at least one candidate skill, in job order.

        Duplicate job skills (case-insensitive) count once.
        """
        candidates = [s for s in candidate_skills if isinstance(s, str) and s.strip()]
        if not candidates:
            return []

        cleaned_candidates = [_clean(s) for s in candidates]
        matched: list[str] = []
        seen: set[str] = set()
        for job_skill in job_skills:
            if not isinstance(job_skill, str) or not job_skill.strip():
                continue
            key = _clean(job_skill)
            if key in seen:
                continue
            seen.add(key)

            if any(self._same_skill(candidate, job_skill) for candidate in candidates):
                matched.append(job_skill)
                continue

            # fuzzy fallback
            best = process.extractOne(key, cleaned_candidates, scorer=fuzz.ratio, score_cutoff=self.fuzzy_threshold)
            if best is not None:
                matched.append(job_skill)

        return matched


def distinct_skills(skills: Iterable[str] | None) -> list[str]:
    """Non-blank skills with case-insensitive duplicates removed."""
    result: list[str] = []
    seen: set[str] = set()
    for skill in skills or []:
        if not isinstance(skill, str) or not skill.strip():
            continue
        key = _clean(skill)
        if key not in seen:
            seen.add(key)
            result.append(skill.strip())
    return result

"""
Fairness Audit - Input Records

Immutable value types handed to the engine by the upstream recruiting
pipeline:
- FeatureRecord: one anonymized candidate's feature bag
- FairnessContext: provenance passed through untouched into the report

Usage:
    record = FeatureRecord(
        skills=frozenset({"python", "sql"}),
        total_experience=4.0,
        education_level=EducationLevel.BACHELOR,
        match_score=0.72,
    )

    # From a loosely-shaped candidate dict
    record = FeatureRecord.from_mapping(candidate_dict)
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from types import MappingProxyType
from typing import Any


class EducationLevel(StrEnum):
    """Ordered education levels recognised by the similarity engine."""

    HIGH_SCHOOL = "high_school"
    ASSOCIATE = "associate"
    BACHELOR = "bachelor"
    MASTER = "master"
    DOCTORATE = "doctorate"
    PHD = "phd"


class ProcessType(StrEnum):
    """Kind of people process being audited."""

    HIRING = "hiring"
    PROMOTION = "promotion"
    PERFORMANCE_REVIEW = "performance_review"
    MATCHING = "matching"


def _normalize_skill(skill: Any) -> str:
    if isinstance(skill, Mapping):
        skill = skill.get("name", "")
    return str(skill).strip().lower()


def _normalize_degree(degree: Any) -> str | None:
    if degree is None:
        return None
    text = str(degree).strip().lower().replace(" ", "_").replace("-", "_")
    return text or None


@dataclass(frozen=True)
class FeatureRecord:
    """
    One candidate's features.

    Skills are normalized to lower-case names. Anything the calculators do
    not interpret goes into ``extras``, which is stored read-only.
    """

    skills: frozenset[str] | None = None
    total_experience: float | None = None
    education_level: str | None = None
    match_score: float | None = None
    extras: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.skills is not None:
            skills = frozenset(s for s in (_normalize_skill(x) for x in self.skills) if s)
            object.__setattr__(self, "skills", skills)

        if self.total_experience is not None:
            experience = float(self.total_experience)
            if math.isnan(experience) or experience < 0:
                raise ValueError(f"total_experience must be a non-negative number, got {experience}")
            object.__setattr__(self, "total_experience", experience)

        object.__setattr__(self, "education_level", _normalize_degree(self.education_level))

        if self.match_score is not None:
            score = float(self.match_score)
            if math.isnan(score) or not 0.0 <= score <= 1.0:
                raise ValueError(f"match_score must lie in [0, 1], got {score}")
            object.__setattr__(self, "match_score", score)

        object.__setattr__(self, "extras", MappingProxyType(dict(self.extras)))

    @classmethod
    def from_mapping(
        cls,
        data: Mapping[str, Any],
        education_ranks: Mapping[str, int] | None = None,
    ) -> FeatureRecord:
        """
        Build a record from a loosely-shaped candidate dictionary.

        Recognises ``skills`` (strings or objects with a ``name``),
        ``totalExperience``/``total_experience``, ``education`` (a list of
        objects with a ``degree``; the highest-ranked one wins) or
        ``education_level``, and ``matchScore``/``overallScore``/``match_score``.
        Every other key lands in ``extras``.
        """
        known = {
            "skills",
            "totalExperience",
            "total_experience",
            "education",
            "education_level",
            "matchScore",
            "match_score",
            "overallScore",
        }

        skills = data.get("skills")
        experience = data.get("total_experience", data.get("totalExperience"))

        education = data.get("education_level")
        if education is None and data.get("education"):
            education = _highest_degree(data["education"], education_ranks or _DEFAULT_RANKS)

        score = data.get("match_score")
        if score is None:
            score = data.get("matchScore", data.get("overallScore"))

        return cls(
            skills=frozenset(_normalize_skill(s) for s in skills) if skills is not None else None,
            total_experience=experience,
            education_level=education,
            match_score=score,
            extras={k: v for k, v in data.items() if k not in known},
        )


_DEFAULT_RANKS = {
    "high_school": 1,
    "associate": 2,
    "bachelor": 3,
    "master": 4,
    "doctorate": 5,
    "phd": 5,
}


def _highest_degree(entries: Iterable[Any], ranks: Mapping[str, int]) -> str | None:
    if isinstance(entries, str | Mapping):
        entries = [entries]
    degrees = []
    for entry in entries:
        degree = entry.get("degree") if isinstance(entry, Mapping) else entry
        normalized = _normalize_degree(degree)
        if normalized:
            degrees.append(normalized)
    if not degrees:
        return None
    return max(degrees, key=lambda d: ranks.get(d, 0))


@dataclass(frozen=True)
class TimePeriod:
    """Audit time window."""

    start_date: datetime | None = None
    end_date: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "end_date": self.end_date.isoformat() if self.end_date else None,
        }


@dataclass(frozen=True)
class FairnessContext:
    """Provenance of an audit. Passed through untouched into the report."""

    process_type: ProcessType = ProcessType.HIRING
    stage: str = "screening"
    time_period: TimePeriod = field(default_factory=TimePeriod)
    geographic_scope: tuple[str, ...] = ()
    department_scope: tuple[str, ...] = ()
    job_levels: tuple[str, ...] = ()
    metadata: Mapping[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "process_type": str(self.process_type),
            "stage": self.stage,
            "time_period": self.time_period.to_dict(),
            "geographic_scope": list(self.geographic_scope),
            "department_scope": list(self.department_scope),
            "job_levels": list(self.job_levels),
            "metadata": dict(self.metadata),
        }

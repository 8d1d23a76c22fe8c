"""
Input record definitions.

Defines the read-only record snapshots the engine consumes: project attempts,
peer reviews, feedback, mentorship edges, profiles and nested presence
durations. Records accept raw store documents directly (unknown keys are
ignored, camelCase keys such as ``campusId`` are accepted).
"""

import datetime as dt
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

CHEAT_SCORE = -42


def coerce_date(value: Any) -> Optional[dt.date]:
    """Best-effort conversion of a stored date value to ``datetime.date``.

    Accepts ``date``/``datetime`` objects, ``"YYYY-MM-DD"`` strings and ISO
    8601 timestamps (a trailing ``Z`` is allowed). Anything else gives None.
    """
    if value is None:
        return None
    if isinstance(value, dt.datetime):
        return value.date()
    if isinstance(value, dt.date):
        return value
    text = str(value).strip()
    if not text:
        return None
    try:
        return dt.datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        pass
    try:
        return dt.date.fromisoformat(text[:10])
    except ValueError:
        return None


class _Record(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True, frozen=True)


class ProjectStatus(str, Enum):
    """Outcome of a project attempt."""
    SUCCESS = "success"
    FAIL = "fail"
    IN_PROGRESS = "in_progress"


class ProjectAttempt(_Record):
    """A single project submission by a subject."""

    login: str = Field(..., description="Subject login")
    campus_id: Optional[int] = Field(None, alias="campusId")
    project: str = Field(..., description="Project name, may carry a '#N' retry suffix")
    score: int = 0
    status: ProjectStatus = ProjectStatus.IN_PROGRESS
    date: Optional[dt.date] = None

    @field_validator("date", mode="before")
    @classmethod
    def _parse_date(cls, v):
        return coerce_date(v)

    @property
    def is_cheat(self) -> bool:
        return self.status == ProjectStatus.FAIL and self.score == CHEAT_SCORE

    @property
    def is_passed(self) -> bool:
        return self.status == ProjectStatus.SUCCESS and self.score > 0


class ReviewRecord(_Record):
    """A peer review: ``evaluator`` reviewed ``evaluated``'s project."""

    evaluator: str
    evaluated: str
    campus_id: Optional[int] = Field(None, alias="campusId")
    project: Optional[str] = None
    comment: Optional[str] = None
    score: Optional[int] = None
    status: Optional[str] = None
    date: Optional[dt.date] = None

    @field_validator("date", mode="before")
    @classmethod
    def _parse_date(cls, v):
        return coerce_date(v)


class FeedbackRecord(_Record):
    """Feedback left by ``evaluator`` about ``evaluated``."""

    evaluator: str
    evaluated: str
    campus_id: Optional[int] = Field(None, alias="campusId")
    project: Optional[str] = None
    comment: Optional[str] = None
    rating: Optional[float] = None
    date: Optional[dt.date] = None

    @field_validator("date", mode="before")
    @classmethod
    def _parse_date(cls, v):
        return coerce_date(v)


class PatronageRecord(_Record):
    """Mentorship edges of one subject."""

    login: str
    campus_id: Optional[int] = Field(None, alias="campusId")
    godfathers: List[str] = Field(default_factory=list, description="Mentors of the subject")
    children: List[str] = Field(default_factory=list, description="Mentees of the subject")

    @field_validator("godfathers", "children", mode="before")
    @classmethod
    def _flatten_logins(cls, v):
        if v is None:
            return []
        logins = []
        for entry in v:
            if isinstance(entry, dict):
                entry = entry.get("login")
            if entry:
                logins.append(str(entry))
        return logins


class ImageVersions(_Record):
    large: Optional[str] = None
    medium: Optional[str] = None
    small: Optional[str] = None
    micro: Optional[str] = None


class ProfileImage(_Record):
    """Profile picture reference."""

    link: Optional[str] = None
    versions: Optional[ImageVersions] = None


class ProfileRecord(_Record):
    """Profile snapshot of a subject."""

    login: str
    campus_id: Optional[int] = Field(None, alias="campusId")
    displayname: Optional[str] = None
    image: Optional[ProfileImage] = None
    correction_point: Optional[int] = None
    wallet: Optional[int] = None
    level: Optional[float] = None
    grade: Optional[str] = None
    pool_month: Optional[str] = None
    pool_year: Optional[str] = None


class MonthPresence(_Record):
    """Presence of one subject during one period (``YYYY-MM``)."""

    total_duration: Optional[str] = Field(None, alias="totalDuration")
    days: Dict[str, Optional[str]] = Field(default_factory=dict)

    @field_validator("days", mode="before")
    @classmethod
    def _default_days(cls, v):
        return v or {}


class PresenceRecord(_Record):
    """Nested presence durations: period -> day -> ``"HH:MM:SS"``."""

    login: str
    campus_id: Optional[int] = Field(None, alias="campusId")
    months: Dict[str, MonthPresence] = Field(default_factory=dict)

    @field_validator("months", mode="before")
    @classmethod
    def _default_months(cls, v):
        return v or {}

"""
Result models produced by the engine.

Rankings, occupancy tables, subject overviews and the wrapped retrospective.
These are computed fresh per invocation and never persisted; the presentation
layer decides how to serialize them (``model_dump()``).
"""

import datetime as dt
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from .records import ProfileImage, ProfileRecord, ProjectStatus

Number = Union[int, float]


class _Result(BaseModel):
    model_config = ConfigDict(extra="forbid")


class ProfileSummary(_Result):
    """Profile subset attached to ranking rows."""

    login: str
    displayname: Optional[str] = None
    image: Optional[ProfileImage] = None
    correction_point: Optional[int] = None
    wallet: Optional[int] = None
    level: Optional[float] = None
    grade: Optional[str] = None

    @classmethod
    def from_profile(cls, profile: ProfileRecord) -> "ProfileSummary":
        return cls(
            login=profile.login,
            displayname=profile.displayname,
            image=profile.image,
            correction_point=profile.correction_point,
            wallet=profile.wallet,
            level=profile.level,
            grade=profile.grade,
        )


class SubmissionRef(_Result):
    project: str
    score: int
    status: Optional[ProjectStatus] = None
    date: Optional[dt.date] = None


class RankingEntry(_Result):
    """One leaderboard row."""

    rank: int = Field(..., ge=1)
    login: str
    value: Number = Field(..., description="Primary metric")
    secondary_value: Optional[Number] = Field(None, description="Tie-break metric")
    profile: Optional[ProfileSummary] = None
    projects: List[SubmissionRef] = Field(default_factory=list)


class Ranking(_Result):
    """Top-K list for one metric."""

    metric: str
    campus_id: Optional[int] = None
    window_start: Optional[dt.date] = None
    window_end: Optional[dt.date] = None
    entries: List[RankingEntry] = Field(default_factory=list)


class Leaderboard(_Result):
    """Dashboard bundle of rankings."""

    current_period: str
    campus_id: Optional[int] = None
    top_project_submitters: Ranking
    top_presence: Ranking
    all_time_projects: Ranking
    all_time_wallet: Ranking
    all_time_points: Ranking
    all_time_level: Ranking


class PoolCount(_Result):
    month: str
    year: str
    count: int


class SubjectStats(_Result):
    """Population directory row: per-subject counters joined by login."""

    login: str
    campus_id: Optional[int] = None
    project_count: int = Field(0, description="Successful attempts")
    cheat_count: int = Field(0, description="Failed attempts with the -42 sentinel")
    log_time: int = Field(0, description="Stored presence, in seconds")
    godfather_count: int = 0
    children_count: int = 0

    @property
    def has_cheats(self) -> bool:
        return self.cheat_count > 0


class OccupancySlot(_Result):
    """Distinct visitors on one weekday, normalised against the busiest one."""

    day: str
    count: int = Field(..., ge=0)
    occupancy_percent: int = Field(..., ge=0, le=100)


class WeekdayAverage(_Result):
    day: str
    sessions: int = 0
    average_seconds: int = 0
    average_hours: float = 0.0


class LogTime(_Result):
    date: dt.date
    minutes: int


class SubjectOverview(_Result):
    """Single-subject detail view."""

    login: str
    project_count: int = 0
    passed_project_count: int = 0
    cheat_count: int = 0
    projects: List[SubmissionRef] = Field(default_factory=list)
    cheats: List[SubmissionRef] = Field(default_factory=list)
    feedback_count: int = 0
    avg_rating: float = 0.0
    total_presence_seconds: int = 0
    log_times: List[LogTime] = Field(default_factory=list)
    attendance_days: List[WeekdayAverage] = Field(default_factory=list)
    godfathers: List[str] = Field(default_factory=list)
    children: List[str] = Field(default_factory=list)
    godfather_count: int = 0
    children_count: int = 0


# Wrapped retrospective


class SummaryText(_Result):
    headline: str
    short_description: str


class MostAttemptedProject(_Result):
    name: str
    attempts: int
    retries: int = 0


class MostReviewedProject(_Result):
    name: str
    count: int


class Collaborator(_Result):
    """Counterpart with the most combined reviews and feedback."""

    login: str
    total_count: int
    review_count: int = 0
    feedback_count: int = 0
    image: Optional[ProfileImage] = None


class WordCount(_Result):
    word: str
    count: int


class Highlights(_Result):
    """Every highlight the retrospective can carry; absent ones stay None."""

    most_attempted_project: Optional[MostAttemptedProject] = None
    most_reviewed_project: Optional[MostReviewedProject] = None
    most_evaluated_user: Optional[Collaborator] = None
    most_evaluator_user: Optional[Collaborator] = None
    most_used_words: Optional[List[WordCount]] = None

    def counterpart_logins(self) -> List[str]:
        """Distinct counterpart logins referenced by the highlights."""
        logins: List[str] = []
        for collaborator in (self.most_evaluated_user, self.most_evaluator_user):
            if collaborator is not None and collaborator.login not in logins:
                logins.append(collaborator.login)
        return logins

    def is_empty(self) -> bool:
        return all(value is None for value in self.__dict__.values())


class WrappedStats(_Result):
    total_projects: int = 0
    total_reviews: int = 0
    total_feedbacks: int = 0
    passed_projects: int = 0
    avg_project_score: int = 0
    godfathers: int = 0
    children: int = 0
    max_project_attempts: int = 0


class SubjectRef(_Result):
    login: str
    displayname: Optional[str] = None
    image: Optional[ProfileImage] = None


class WrappedSummary(_Result):
    """Annual retrospective of one subject."""

    user: SubjectRef
    year: int
    summary: SummaryText
    highlights: Highlights = Field(default_factory=Highlights)
    stats: WrappedStats = Field(default_factory=WrappedStats)
    labels: List[str] = Field(default_factory=list, max_length=4)
    fallback_notes: List[str] = Field(default_factory=list)

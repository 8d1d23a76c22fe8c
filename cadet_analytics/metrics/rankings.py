"""Population leaderboards.

Top-K rankings over project submissions, presence time and profile metrics
(wallet, correction points, level), optionally restricted to one campus and
to a time window, plus a population directory of per-subject counters
(successful projects, cheats, stored log time, mentorship) that can be
ranked either way. Ordering is fully deterministic: primary metric, then
secondary metric, then login ascending, so any permutation of the same
input gives the same list.

Windows are always computed from an injected ``now``; nothing here reads the
wall clock.
"""

from __future__ import annotations

import calendar
import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Dict, Iterable, List, Mapping, Optional, Union

from ..config import get_settings
from ..schemas.records import (
    PatronageRecord,
    PresenceRecord,
    ProfileRecord,
    ProjectAttempt,
    ProjectStatus,
)
from ..schemas.results import (
    Leaderboard,
    PoolCount,
    ProfileSummary,
    Ranking,
    RankingEntry,
    SubjectStats,
    SubmissionRef,
)
from .timeseries import period_total_seconds, stored_total_seconds

logger = logging.getLogger(__name__)

RANKABLE_PROFILE_METRICS = ("wallet", "correction_point", "level")
SUBJECT_METRICS = (
    "project_count",
    "cheat_count",
    "log_time",
    "godfather_count",
    "children_count",
)

ProfileSource = Union[Mapping[str, ProfileRecord], Iterable[ProfileRecord], None]


def _as_date(now: Union[date, datetime]) -> date:
    return now.date() if isinstance(now, datetime) else now


def _period_key(day: date) -> str:
    return f"{day.year:04d}-{day.month:02d}"


@dataclass(frozen=True)
class TimeWindow:
    """Inclusive date range; open bounds mean unbounded."""

    start: Optional[date] = None
    end: Optional[date] = None

    @classmethod
    def all_time(cls) -> "TimeWindow":
        return cls()

    @classmethod
    def current_period(cls, now: Union[date, datetime]) -> "TimeWindow":
        """The calendar month containing ``now``."""
        return cls.trailing_periods(now, 1)

    @classmethod
    def trailing_periods(cls, now: Union[date, datetime], periods: int) -> "TimeWindow":
        """The month of ``now`` plus the ``periods - 1`` months before it."""
        if periods < 1:
            raise ValueError(f"periods must be >= 1, got {periods}")
        today = _as_date(now)
        month_index = today.year * 12 + (today.month - 1) - (periods - 1)
        start = date(month_index // 12, month_index % 12 + 1, 1)
        last_day = calendar.monthrange(today.year, today.month)[1]
        return cls(start=start, end=date(today.year, today.month, last_day))

    @property
    def start_period(self) -> Optional[str]:
        return _period_key(self.start) if self.start else None

    @property
    def end_period(self) -> Optional[str]:
        return _period_key(self.end) if self.end else None

    def contains(self, day: Optional[date]) -> bool:
        if day is None:
            # Undated records only belong to an unbounded window
            return self.start is None and self.end is None
        if self.start is not None and day < self.start:
            return False
        if self.end is not None and day > self.end:
            return False
        return True


@dataclass
class RankCandidate:
    login: str
    value: Union[int, float]
    secondary_value: Optional[Union[int, float]] = None
    projects: List[SubmissionRef] = field(default_factory=list)


def _sort_key(candidate: RankCandidate, descending: bool = True):
    secondary = candidate.secondary_value if candidate.secondary_value is not None else 0
    sign = -1 if descending else 1
    return (sign * candidate.value, sign * secondary, candidate.login)


def _index_profiles(profiles: ProfileSource) -> Dict[str, ProfileRecord]:
    if profiles is None:
        return {}
    if isinstance(profiles, Mapping):
        return dict(profiles)
    return {profile.login: profile for profile in profiles}


def _resolve_k(k: Optional[int]) -> int:
    if k is None:
        k = get_settings().leaderboard_size
    if k < 1:
        raise ValueError(f"k must be >= 1, got {k}")
    return k


def rank_entries(
    candidates: Iterable[RankCandidate],
    k: int,
    profiles: ProfileSource = None,
    descending: bool = True,
) -> List[RankingEntry]:
    """Order candidates and keep the top ``k``.

    Metrics compare descending (ascending when ``descending`` is False);
    ties always fall back to the login in ascending order.
    """
    profile_index = _index_profiles(profiles)
    ordered = sorted(candidates, key=lambda c: _sort_key(c, descending))[:k]

    entries: List[RankingEntry] = []
    for position, candidate in enumerate(ordered, start=1):
        profile = profile_index.get(candidate.login)
        entries.append(
            RankingEntry(
                rank=position,
                login=candidate.login,
                value=candidate.value,
                secondary_value=candidate.secondary_value,
                profile=ProfileSummary.from_profile(profile) if profile else None,
                projects=candidate.projects,
            )
        )
    return entries


def _in_campus(record_campus: Optional[int], campus_id: Optional[int]) -> bool:
    return campus_id is None or record_campus == campus_id


def top_project_submitters(
    attempts: Iterable[ProjectAttempt],
    window: Optional[TimeWindow] = None,
    campus_id: Optional[int] = None,
    k: Optional[int] = None,
    profiles: ProfileSource = None,
) -> Ranking:
    """Subjects with the most successful submissions (score > 0).

    Ties on the submission count are broken by the summed score.
    """
    window = window or TimeWindow.all_time()
    k = _resolve_k(k)

    grouped: Dict[str, RankCandidate] = {}
    for attempt in attempts:
        if attempt.score <= 0:
            continue
        if not _in_campus(attempt.campus_id, campus_id) or not window.contains(attempt.date):
            continue
        candidate = grouped.setdefault(
            attempt.login, RankCandidate(login=attempt.login, value=0, secondary_value=0)
        )
        candidate.value += 1
        candidate.secondary_value += attempt.score
        candidate.projects.append(
            SubmissionRef(
                project=attempt.project,
                score=attempt.score,
                status=attempt.status,
                date=attempt.date,
            )
        )

    for candidate in grouped.values():
        candidate.projects.sort(key=lambda s: (s.date or date.min, s.project, s.score))

    logger.debug("Ranking %d submitters (campus=%s, k=%d)", len(grouped), campus_id, k)
    return Ranking(
        metric="project_count",
        campus_id=campus_id,
        window_start=window.start,
        window_end=window.end,
        entries=rank_entries(grouped.values(), k, profiles),
    )


def top_presence(
    presences: Iterable[PresenceRecord],
    window: Optional[TimeWindow] = None,
    campus_id: Optional[int] = None,
    k: Optional[int] = None,
    profiles: ProfileSource = None,
) -> Ranking:
    """Subjects with the most presence seconds inside the window's periods."""
    window = window or TimeWindow.all_time()
    k = _resolve_k(k)

    totals: Counter = Counter()
    for presence in presences:
        if not _in_campus(presence.campus_id, campus_id):
            continue
        totals[presence.login] += period_total_seconds(
            presence, window.start_period, window.end_period
        )

    candidates = [
        RankCandidate(login=login, value=seconds)
        for login, seconds in totals.items()
        if seconds > 0
    ]
    return Ranking(
        metric="presence_seconds",
        campus_id=campus_id,
        window_start=window.start,
        window_end=window.end,
        entries=rank_entries(candidates, k, profiles),
    )


def top_profile_metric(
    profiles: Iterable[ProfileRecord],
    metric: str,
    campus_id: Optional[int] = None,
    k: Optional[int] = None,
) -> Ranking:
    """Rank profiles by ``wallet``, ``correction_point`` or ``level``.

    Profiles that do not carry the metric are left out.
    """
    if metric not in RANKABLE_PROFILE_METRICS:
        raise ValueError(
            f"Unsupported ranking metric {metric!r}; expected one of {RANKABLE_PROFILE_METRICS}"
        )
    k = _resolve_k(k)

    profile_list = [p for p in profiles if _in_campus(p.campus_id, campus_id)]
    candidates = [
        RankCandidate(login=p.login, value=getattr(p, metric))
        for p in profile_list
        if getattr(p, metric) is not None
    ]
    return Ranking(
        metric=metric,
        campus_id=campus_id,
        entries=rank_entries(candidates, k, profile_list),
    )


def build_leaderboard(
    now: Union[date, datetime],
    attempts: Iterable[ProjectAttempt],
    presences: Iterable[PresenceRecord],
    profiles: Iterable[ProfileRecord],
    campus_id: Optional[int] = None,
    k: Optional[int] = None,
    presence_periods: Optional[int] = None,
) -> Leaderboard:
    """Dashboard bundle: this period's submitters, recent presence, all-time tops."""
    settings = get_settings()
    k = _resolve_k(k)
    presence_periods = presence_periods or settings.presence_window_periods

    attempt_list = list(attempts)
    profile_index = _index_profiles(profiles)
    today = _as_date(now)

    return Leaderboard(
        current_period=_period_key(today),
        campus_id=campus_id,
        top_project_submitters=top_project_submitters(
            attempt_list, TimeWindow.current_period(today), campus_id, k, profile_index
        ),
        top_presence=top_presence(
            presences,
            TimeWindow.trailing_periods(today, presence_periods),
            campus_id,
            k,
            profile_index,
        ),
        all_time_projects=top_project_submitters(
            attempt_list, TimeWindow.all_time(), campus_id, k, profile_index
        ),
        all_time_wallet=top_profile_metric(profile_index.values(), "wallet", campus_id, k),
        all_time_points=top_profile_metric(
            profile_index.values(), "correction_point", campus_id, k
        ),
        all_time_level=top_profile_metric(profile_index.values(), "level", campus_id, k),
    )


def subject_directory(
    attempts: Iterable[ProjectAttempt] = (),
    presences: Iterable[PresenceRecord] = (),
    patronages: Iterable[PatronageRecord] = (),
    profiles: Optional[Iterable[ProfileRecord]] = None,
    campus_id: Optional[int] = None,
    cheaters_only: bool = False,
) -> List[SubjectStats]:
    """Per-subject population counters joined by login, ordered by login.

    When ``profiles`` are given they define the population and its campus;
    otherwise every login seen in the other records is a subject, placed on
    the first campus any of its records carries.
    """
    rows: Dict[str, Counter] = {}
    campuses: Dict[str, Optional[int]] = {}
    closed = profiles is not None

    def _row(login: str, record_campus: Optional[int]) -> Optional[Counter]:
        if login not in rows:
            if closed:
                return None
            rows[login] = Counter()
        if not closed and campuses.get(login) is None:
            campuses[login] = record_campus
        return rows[login]

    for profile in profiles or ():
        rows[profile.login] = Counter()
        campuses[profile.login] = profile.campus_id

    for attempt in attempts:
        row = _row(attempt.login, attempt.campus_id)
        if row is None:
            continue
        if attempt.is_cheat:
            row["cheat_count"] += 1
        if attempt.status == ProjectStatus.SUCCESS:
            row["project_count"] += 1

    for presence in presences:
        row = _row(presence.login, presence.campus_id)
        if row is not None:
            row["log_time"] += stored_total_seconds(presence)

    for patronage in patronages:
        row = _row(patronage.login, patronage.campus_id)
        if row is not None:
            row["godfather_count"] = len(patronage.godfathers)
            row["children_count"] = len(patronage.children)

    directory = [
        SubjectStats(login=login, campus_id=campuses.get(login), **counters)
        for login, counters in sorted(rows.items())
        if _in_campus(campuses.get(login), campus_id)
    ]
    if cheaters_only:
        directory = [row for row in directory if row.has_cheats]

    logger.debug(
        "Subject directory of %d subjects (campus=%s, cheaters_only=%s)",
        len(directory),
        campus_id,
        cheaters_only,
    )
    return directory


def rank_subjects(
    metric: str,
    attempts: Iterable[ProjectAttempt] = (),
    presences: Iterable[PresenceRecord] = (),
    patronages: Iterable[PatronageRecord] = (),
    profiles: Optional[Iterable[ProfileRecord]] = None,
    campus_id: Optional[int] = None,
    cheaters_only: bool = False,
    k: Optional[int] = None,
    descending: bool = True,
) -> Ranking:
    """Rank the subject directory by one of :data:`SUBJECT_METRICS`.

    Every subject of the directory takes part, zero values included.
    """
    if metric not in SUBJECT_METRICS:
        raise ValueError(f"Unsupported subject metric {metric!r}; expected one of {SUBJECT_METRICS}")
    k = _resolve_k(k)

    profile_list = list(profiles) if profiles is not None else None
    directory = subject_directory(
        attempts, presences, patronages, profile_list, campus_id, cheaters_only
    )
    candidates = [RankCandidate(login=row.login, value=getattr(row, metric)) for row in directory]
    return Ranking(
        metric=metric,
        campus_id=campus_id,
        entries=rank_entries(candidates, k, profile_list, descending),
    )


_MONTH_ORDER = {name.lower(): index for index, name in enumerate(calendar.month_name) if name}


def pool_distribution(
    profiles: Iterable[ProfileRecord],
    campus_id: Optional[int] = None,
) -> List[PoolCount]:
    """Count subjects per admission pool (month, year)."""
    counts: Counter = Counter()
    for profile in profiles:
        if not _in_campus(profile.campus_id, campus_id):
            continue
        if not profile.pool_month or not profile.pool_year:
            continue
        counts[(profile.pool_month, profile.pool_year)] += 1

    def _order(item):
        (month, year), _ = item
        return (year, _MONTH_ORDER.get(month.lower(), 13), month)

    return [
        PoolCount(month=month, year=year, count=count)
        for (month, year), count in sorted(counts.items(), key=_order)
    ]

"""Presence time-series parsing.

Presence is stored as a sparse nested map (period ``YYYY-MM`` -> day ->
``"HH:MM:SS"``). The helpers here materialize that shape once into an
ordered list of :class:`DurationSample` records; nothing downstream should
walk the nested map again.

Parsing is data-quality tolerant: malformed durations count as zero seconds
and days that do not exist on the calendar are dropped.
"""

from __future__ import annotations

import logging
import re
from collections import OrderedDict
from dataclasses import dataclass
from datetime import date
from typing import Dict, Iterable, Iterator, List, Optional, Tuple, Union

from ..schemas.records import PresenceRecord

logger = logging.getLogger(__name__)

WEEKDAYS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")

_LEADING_INT = re.compile(r"\s*(\d+)")
_FACTORS = (3600, 60, 1)


@dataclass(frozen=True)
class DurationRecord:
    """One raw day entry of the nested presence map."""

    subject: str
    period_key: str
    day: str
    duration: Optional[str]


@dataclass(frozen=True)
class DurationSample:
    """Seconds of presence of a subject on a calendar date."""

    subject: str
    date: date
    seconds: int

    @property
    def weekday(self) -> str:
        return WEEKDAYS[self.date.weekday()]

    @property
    def minutes(self) -> int:
        return self.seconds // 60


def _fragment_value(fragment: str) -> int:
    match = _LEADING_INT.match(fragment)
    return int(match.group(1)) if match else 0


def parse_duration(value: Optional[str]) -> int:
    """Convert ``"HH:MM:SS"`` into total seconds.

    Missing, non-numeric or negative fragments count as 0, so ``"02:xx:09"``
    gives 7209 and ``None`` gives 0.
    """
    if not value:
        return 0
    parts = str(value).strip().split(":")
    return sum(_fragment_value(part) * factor for part, factor in zip(parts, _FACTORS))


def format_duration(seconds: int) -> str:
    """Render seconds as ``"HH:MM:SS"`` (hours are not capped at 24)."""
    seconds = max(0, int(seconds))
    hours, remainder = divmod(seconds, 3600)
    minutes, secs = divmod(remainder, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


def sample_date(period_key: str, day: Union[str, int]) -> Optional[date]:
    """Build the calendar date for ``period_key`` (``YYYY-MM``) and ``day``.

    Returns None when the composite date does not exist (``2025-02`` day 30)
    or either part is not numeric.
    """
    try:
        year_text, month_text = str(period_key).split("-", 1)
        return date(int(year_text), int(month_text), int(str(day).strip()))
    except (TypeError, ValueError):
        return None


def period_index(period_key: Optional[str]) -> Optional[Tuple[int, int]]:
    """``(year, month)`` of a ``YYYY-MM`` key; ``"2025-3"`` is accepted too."""
    try:
        year_text, month_text = str(period_key).split("-", 1)
        year, month = int(year_text), int(month_text)
    except (TypeError, ValueError):
        return None
    if not 1 <= month <= 12:
        return None
    return year, month


def iter_duration_records(presence: PresenceRecord) -> Iterator[DurationRecord]:
    """Unwrap the nested period/day map of one subject."""
    for period_key, month in presence.months.items():
        for day, duration in month.days.items():
            yield DurationRecord(
                subject=presence.login,
                period_key=period_key,
                day=day,
                duration=duration,
            )


def flatten_presence(
    source: Union[PresenceRecord, Iterable[DurationRecord]],
) -> List[DurationSample]:
    """Materialize presence into date-ordered samples.

    Zero-second entries are treated as absent activity and skipped, as are
    entries whose composite date is not on the calendar.
    """
    records = iter_duration_records(source) if isinstance(source, PresenceRecord) else source

    samples: List[DurationSample] = []
    for record in records:
        seconds = parse_duration(record.duration)
        if seconds <= 0:
            continue
        day = sample_date(record.period_key, record.day)
        if day is None:
            logger.debug(
                "Dropping presence sample with invalid date %s/%s for %s",
                record.period_key,
                record.day,
                record.subject,
            )
            continue
        samples.append(DurationSample(subject=record.subject, date=day, seconds=seconds))

    samples.sort(key=lambda s: (s.date, s.subject))
    return samples


def flatten_population(presences: Iterable[PresenceRecord]) -> List[DurationSample]:
    """Flatten many subjects' presence into one date-ordered list."""
    samples: List[DurationSample] = []
    for presence in presences:
        samples.extend(flatten_presence(presence))
    samples.sort(key=lambda s: (s.date, s.subject))
    return samples


def bucket_by_weekday(samples: Iterable[DurationSample]) -> Dict[str, List[DurationSample]]:
    """Group samples by weekday; all seven keys are always present (Mon first)."""
    buckets: Dict[str, List[DurationSample]] = OrderedDict((day, []) for day in WEEKDAYS)
    for sample in samples:
        buckets[sample.weekday].append(sample)
    return buckets


def total_seconds(samples: Iterable[DurationSample]) -> int:
    return sum(sample.seconds for sample in samples)


def period_total_seconds(
    presence: PresenceRecord,
    since_period: Optional[str] = None,
    until_period: Optional[str] = None,
) -> int:
    """Total presence of one subject over an inclusive period range.

    Day-level samples are summed; a period that carries no day map falls
    back to its stored monthly total.
    """
    since = period_index(since_period) if since_period is not None else None
    until = period_index(until_period) if until_period is not None else None
    if (since_period is not None and since is None) or (until_period is not None and until is None):
        raise ValueError(f"Invalid period range: {since_period!r} .. {until_period!r}")

    total = 0
    for period_key, month in presence.months.items():
        if since is not None or until is not None:
            index = period_index(period_key)
            if index is None:
                logger.debug("Skipping unparseable period %r for %s", period_key, presence.login)
                continue
            if since is not None and index < since:
                continue
            if until is not None and index > until:
                continue
        if month.days:
            records = (
                DurationRecord(presence.login, period_key, day, duration)
                for day, duration in month.days.items()
            )
            total += total_seconds(flatten_presence(records))
        else:
            total += parse_duration(month.total_duration)
    return total


def stored_total_seconds(presence: PresenceRecord) -> int:
    """All-time presence from the stored monthly totals.

    A month without a stored total contributes the sum of its days.
    """
    total = 0
    for period_key, month in presence.months.items():
        if month.total_duration:
            total += parse_duration(month.total_duration)
        elif month.days:
            records = (
                DurationRecord(presence.login, period_key, day, duration)
                for day, duration in month.days.items()
            )
            total += total_seconds(flatten_presence(records))
    return total

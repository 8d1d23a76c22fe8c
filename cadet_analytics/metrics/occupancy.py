"""Weekday occupancy statistics.

Counts distinct visitors per weekday over a rolling window and normalises
the counts against the busiest weekday, plus per-weekday average session
length for a single subject.
"""

from __future__ import annotations

import logging
import math
from datetime import date, datetime, timedelta
from typing import Dict, Iterable, List, Optional, Set, Union

from ..config import get_settings
from ..schemas.records import PresenceRecord
from ..schemas.results import OccupancySlot, WeekdayAverage
from .timeseries import WEEKDAYS, DurationSample, bucket_by_weekday, flatten_presence

logger = logging.getLogger(__name__)


def round_half_up(value: float) -> int:
    """Round .5 away from zero for non-negative values (``12.5 -> 13``)."""
    return int(math.floor(value + 0.5))


def occupancy_table(samples: Iterable[DurationSample]) -> List[OccupancySlot]:
    """Distinct subjects per weekday with a 0-100 occupancy figure.

    A subject seen on several Mondays counts once for Monday. The busiest
    weekday is 100; with no activity at all every weekday is 0.
    """
    visitors: Dict[str, Set[str]] = {day: set() for day in WEEKDAYS}
    for sample in samples:
        if sample.seconds > 0:
            visitors[sample.weekday].add(sample.subject)

    counts = {day: len(subjects) for day, subjects in visitors.items()}
    denominator = max(1, max(counts.values()))
    return [
        OccupancySlot(
            day=day,
            count=counts[day],
            occupancy_percent=round_half_up(counts[day] / denominator * 100),
        )
        for day in WEEKDAYS
    ]


def weekday_occupancy(
    presences: Iterable[PresenceRecord],
    now: Union[date, datetime],
    window_days: Optional[int] = None,
    campus_id: Optional[int] = None,
) -> List[OccupancySlot]:
    """Occupancy table over the trailing ``window_days`` ending on ``now``."""
    if window_days is None:
        window_days = get_settings().occupancy_window_days
    if window_days < 1:
        raise ValueError(f"window_days must be >= 1, got {window_days}")

    today = now.date() if isinstance(now, datetime) else now
    # window_days calendar days, today included
    start = today - timedelta(days=window_days - 1)

    samples: List[DurationSample] = []
    for presence in presences:
        if campus_id is not None and presence.campus_id != campus_id:
            continue
        samples.extend(s for s in flatten_presence(presence) if start <= s.date <= today)

    logger.debug("Occupancy over %d samples between %s and %s", len(samples), start, today)
    return occupancy_table(samples)


def weekday_average_duration(samples: Iterable[DurationSample]) -> List[WeekdayAverage]:
    """Average session length per weekday of one subject, over days with activity only.

    Raises:
        ValueError: If the samples belong to more than one subject
    """
    samples = list(samples)
    subjects = {sample.subject for sample in samples}
    if len(subjects) > 1:
        raise ValueError(
            f"Samples of {len(subjects)} subjects given; use weekday_average_by_subject"
        )

    averages: List[WeekdayAverage] = []
    for day, bucket in bucket_by_weekday(samples).items():
        if not bucket:
            averages.append(WeekdayAverage(day=day))
            continue
        average_seconds = round_half_up(sum(s.seconds for s in bucket) / len(bucket))
        averages.append(
            WeekdayAverage(
                day=day,
                sessions=len(bucket),
                average_seconds=average_seconds,
                average_hours=round(average_seconds / 3600, 2),
            )
        )
    return averages


def weekday_average_by_subject(
    samples: Iterable[DurationSample],
) -> Dict[str, List[WeekdayAverage]]:
    """Per-weekday average session length for every subject in ``samples``."""
    by_subject: Dict[str, List[DurationSample]] = {}
    for sample in samples:
        by_subject.setdefault(sample.subject, []).append(sample)
    return {
        subject: weekday_average_duration(subject_samples)
        for subject, subject_samples in sorted(by_subject.items())
    }

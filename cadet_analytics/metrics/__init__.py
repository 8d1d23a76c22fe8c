"""Metrics package for presence parsing, leaderboards and occupancy."""

from .timeseries import (
    DurationRecord,
    DurationSample,
    flatten_presence,
    format_duration,
    parse_duration,
)
from .rankings import (
    TimeWindow,
    build_leaderboard,
    pool_distribution,
    rank_subjects,
    subject_directory,
    top_presence,
    top_profile_metric,
    top_project_submitters,
)
from .occupancy import weekday_average_by_subject, weekday_average_duration, weekday_occupancy
from .profile import build_subject_overview

#!/usr/bin/env python3
"""Unit tests for population leaderboards."""

from __future__ import annotations

import random
from datetime import date, datetime
from typing import List, Optional

import pytest

from cadet_analytics.metrics import rankings as rk
from cadet_analytics.metrics.rankings import TimeWindow
from cadet_analytics.schemas.records import (
    PatronageRecord,
    PresenceRecord,
    ProfileRecord,
    ProjectAttempt,
)


def _make_attempt(
    login: str,
    project: str,
    score: int = 100,
    day: Optional[str] = "2025-03-10",
    status: str = "success",
    campus_id: int = 49,
) -> ProjectAttempt:
    return ProjectAttempt(
        login=login, project=project, score=score, date=day, status=status, campus_id=campus_id
    )


def _make_profile(login: str, campus_id: int = 49, **fields) -> ProfileRecord:
    return ProfileRecord(login=login, campus_id=campus_id, **fields)


def _tied_attempts() -> List[ProjectAttempt]:
    return [
        _make_attempt("carol", "libft", 100),
        _make_attempt("carol", "printf", 100),
        _make_attempt("alice", "libft", 100),
        _make_attempt("alice", "printf", 100),
        _make_attempt("bob", "libft", 125),
        _make_attempt("bob", "printf", 125),
        _make_attempt("dave", "libft", 125),
        _make_attempt("erin", "cub3d", 0, status="fail"),
    ]


class TestTimeWindow:
    """Test window construction from an injected clock."""

    def test_current_period_covers_calendar_month(self):
        window = TimeWindow.current_period(datetime(2025, 2, 14, 18, 30))

        assert window.start == date(2025, 2, 1)
        assert window.end == date(2025, 2, 28)
        assert window.start_period == "2025-02"

    def test_trailing_periods_cross_year_boundary(self):
        window = TimeWindow.trailing_periods(date(2025, 1, 10), 3)

        assert window.start == date(2024, 11, 1)
        assert window.end == date(2025, 1, 31)
        assert window.start_period == "2024-11"
        assert window.end_period == "2025-01"

    def test_trailing_periods_rejects_non_positive_count(self):
        with pytest.raises(ValueError):
            TimeWindow.trailing_periods(date(2025, 1, 10), 0)

    def test_all_time_contains_undated_records(self):
        assert TimeWindow.all_time().contains(None)
        assert not TimeWindow.current_period(date(2025, 1, 1)).contains(None)


def test_top_project_submitters_tie_break_order() -> None:
    """Count desc, then total score desc, then login asc."""
    ranking = rk.top_project_submitters(_tied_attempts(), k=10)

    assert [e.login for e in ranking.entries] == ["bob", "alice", "carol", "dave"]
    assert [e.rank for e in ranking.entries] == [1, 2, 3, 4]
    assert ranking.entries[0].value == 2
    assert ranking.entries[0].secondary_value == 250
    assert [p.project for p in ranking.entries[0].projects] == ["libft", "printf"]


def test_top_project_submitters_is_permutation_invariant() -> None:
    attempts = _tied_attempts()
    expected = rk.top_project_submitters(attempts, k=3).model_dump()

    rng = random.Random(42)
    for _ in range(10):
        shuffled = list(attempts)
        rng.shuffle(shuffled)
        assert rk.top_project_submitters(shuffled, k=3).model_dump() == expected


def test_top_project_submitters_excludes_failed_and_out_of_window() -> None:
    attempts = [
        _make_attempt("alice", "libft", 100, day="2025-03-01"),
        _make_attempt("alice", "printf", 100, day="2025-02-28"),
        _make_attempt("bob", "libft", -42, day="2025-03-02", status="fail"),
        _make_attempt("carol", "libft", 100, day=None),
    ]

    ranking = rk.top_project_submitters(
        attempts, TimeWindow.current_period(date(2025, 3, 20)), k=5
    )

    assert [(e.login, e.value) for e in ranking.entries] == [("alice", 1)]
    assert ranking.window_start == date(2025, 3, 1)


def test_top_project_submitters_attaches_profiles() -> None:
    profiles = [_make_profile("bob", displayname="Bob B.", wallet=40)]

    ranking = rk.top_project_submitters(_tied_attempts(), k=2, profiles=profiles)

    assert ranking.entries[0].profile is not None
    assert ranking.entries[0].profile.displayname == "Bob B."
    assert ranking.entries[1].profile is None


def test_campus_filter_is_consistent_with_unfiltered_ranking() -> None:
    attempts = [
        _make_attempt("alice", "libft", 100, campus_id=49),
        _make_attempt("alice", "printf", 100, campus_id=49),
        _make_attempt("bob", "libft", 90, campus_id=50),
        _make_attempt("bob", "printf", 90, campus_id=50),
        _make_attempt("bob", "gnl", 90, campus_id=50),
        _make_attempt("carol", "libft", 80, campus_id=49),
        _make_attempt("dave", "libft", 95, campus_id=49),
    ]
    campus_of = {a.login: a.campus_id for a in attempts}

    filtered = rk.top_project_submitters(attempts, campus_id=49, k=2)
    unfiltered = rk.top_project_submitters(attempts, k=len(campus_of))

    expected = [e.login for e in unfiltered.entries if campus_of[e.login] == 49][:2]
    assert [e.login for e in filtered.entries] == expected == ["alice", "dave"]
    assert filtered.campus_id == 49


def test_rankings_degrade_to_empty_lists() -> None:
    assert rk.top_project_submitters([]).entries == []
    assert rk.top_presence([]).entries == []
    assert rk.top_profile_metric([], "wallet").entries == []


def test_rankings_reject_non_positive_k() -> None:
    with pytest.raises(ValueError):
        rk.top_project_submitters(_tied_attempts(), k=0)


def test_default_k_comes_from_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CADET_ANALYTICS_LEADERBOARD_SIZE", "2")

    ranking = rk.top_project_submitters(_tied_attempts())

    assert len(ranking.entries) == 2


def test_top_presence_sums_window_and_skips_idle_subjects() -> None:
    presences = [
        PresenceRecord(
            login="alice",
            campus_id=49,
            months={
                "2024-12": {"days": {"2": "50:00:00"}},
                "2025-02": {"days": {"3": "02:00:00", "4": "01:00:00"}},
            },
        ),
        PresenceRecord(login="bob", campus_id=49, months={"2025-03": {"totalDuration": "04:00:00"}}),
        PresenceRecord(login="carol", campus_id=49, months={"2025-03": {"days": {"1": "00:00:00"}}}),
        PresenceRecord(login="dave", campus_id=50, months={"2025-03": {"days": {"1": "09:00:00"}}}),
    ]
    window = TimeWindow.trailing_periods(date(2025, 3, 15), 3)

    ranking = rk.top_presence(presences, window, campus_id=49)

    assert [(e.login, e.value) for e in ranking.entries] == [("bob", 4 * 3600), ("alice", 3 * 3600)]
    assert ranking.metric == "presence_seconds"


def test_top_profile_metric_orders_and_skips_missing_values() -> None:
    profiles = [
        _make_profile("carol", wallet=300),
        _make_profile("alice", wallet=300),
        _make_profile("bob", wallet=None),
        _make_profile("dave", wallet=900, campus_id=50),
    ]

    ranking = rk.top_profile_metric(profiles, "wallet", campus_id=49)

    assert [e.login for e in ranking.entries] == ["alice", "carol"]
    assert ranking.entries[0].profile.wallet == 300


def test_top_profile_metric_rejects_unknown_metric() -> None:
    with pytest.raises(ValueError):
        rk.top_profile_metric([_make_profile("alice", wallet=1)], "email")


def test_build_leaderboard_bundles_all_rankings() -> None:
    attempts = [
        _make_attempt("alice", "libft", 100, day="2025-03-02"),
        _make_attempt("bob", "libft", 100, day="2024-11-02"),
        _make_attempt("bob", "printf", 100, day="2024-12-02"),
    ]
    presences = [PresenceRecord(login="alice", campus_id=49, months={"2025-03": {"days": {"2": "01:00:00"}}})]
    profiles = [
        _make_profile("alice", correction_point=5, wallet=10, level=3.5),
        _make_profile("bob", correction_point=9, wallet=2, level=7.1),
    ]

    board = rk.build_leaderboard(date(2025, 3, 20), attempts, presences, profiles, k=5)

    assert board.current_period == "2025-03"
    assert [e.login for e in board.top_project_submitters.entries] == ["alice"]
    assert [e.login for e in board.all_time_projects.entries] == ["bob", "alice"]
    assert [e.login for e in board.top_presence.entries] == ["alice"]
    assert board.top_presence.entries[0].profile.level == 3.5
    assert [e.login for e in board.all_time_wallet.entries] == ["alice", "bob"]
    assert [e.login for e in board.all_time_points.entries] == ["bob", "alice"]
    assert [e.login for e in board.all_time_level.entries] == ["bob", "alice"]


def test_pool_distribution_groups_by_month_and_year() -> None:
    profiles = [
        _make_profile("a", pool_month="september", pool_year="2024"),
        _make_profile("b", pool_month="july", pool_year="2024"),
        _make_profile("c", pool_month="september", pool_year="2024"),
        _make_profile("d", pool_month="february", pool_year="2025"),
        _make_profile("e", pool_month=None, pool_year="2025"),
        _make_profile("f", pool_month="july", pool_year="2024", campus_id=50),
    ]

    pools = rk.pool_distribution(profiles, campus_id=49)

    assert [(p.month, p.year, p.count) for p in pools] == [
        ("july", "2024", 1),
        ("september", "2024", 2),
        ("february", "2025", 1),
    ]


def _directory_records():
    attempts = [
        _make_attempt("alice", "libft", 100),
        _make_attempt("alice", "printf", 90),
        _make_attempt("alice", "gnl", -42, status="fail"),
        _make_attempt("bob", "libft", -42, status="fail"),
        _make_attempt("bob", "libft#1", -42, status="fail"),
        _make_attempt("carol", "libft", 100),
        _make_attempt("carol", "cub3d", 0, status="fail"),
        _make_attempt("erin", "libft", 100, campus_id=50),
    ]
    presences = [
        PresenceRecord(
            login="alice",
            campus_id=49,
            months={
                "2025-01": {"totalDuration": "10:00:00", "days": {"2": "01:00:00"}},
                "2025-02": {"days": {"3": "02:00:00"}},
            },
        ),
        PresenceRecord(login="carol", campus_id=49, months={"2025-01": {"totalDuration": "20:00:00"}}),
    ]
    patronages = [
        PatronageRecord(login="carol", godfathers=["zed"], children=["x", "y", "z"]),
        PatronageRecord(login="dave", campusId=49, children=["kid"]),
    ]
    return attempts, presences, patronages


def test_subject_directory_joins_records_by_login() -> None:
    attempts, presences, patronages = _directory_records()

    rows = {row.login: row for row in rk.subject_directory(attempts, presences, patronages)}

    assert list(rows) == ["alice", "bob", "carol", "dave", "erin"]
    assert (rows["alice"].project_count, rows["alice"].cheat_count) == (2, 1)
    # stored monthly total wins, a month without one falls back to its days
    assert rows["alice"].log_time == 12 * 3600
    assert rows["bob"].cheat_count == 2
    assert rows["bob"].has_cheats
    assert (rows["carol"].godfather_count, rows["carol"].children_count) == (1, 3)
    assert rows["carol"].log_time == 20 * 3600
    assert rows["dave"].campus_id == 49
    assert rows["erin"].campus_id == 50


def test_subject_directory_filters_campus_and_cheaters() -> None:
    attempts, presences, patronages = _directory_records()

    campus = rk.subject_directory(attempts, presences, patronages, campus_id=49)
    cheaters = rk.subject_directory(attempts, presences, patronages, campus_id=49, cheaters_only=True)

    assert [row.login for row in campus] == ["alice", "bob", "carol", "dave"]
    assert [row.login for row in cheaters] == ["alice", "bob"]


def test_subject_directory_population_comes_from_profiles() -> None:
    attempts, presences, patronages = _directory_records()
    profiles = [_make_profile("carol", campus_id=50), _make_profile("frank")]

    rows = rk.subject_directory(attempts, presences, patronages, profiles=profiles)

    assert [(row.login, row.campus_id) for row in rows] == [("carol", 50), ("frank", 49)]
    assert rows[1].project_count == 0


@pytest.mark.parametrize(
    "metric, descending, expected",
    [
        ("cheat_count", True, ["bob", "alice", "carol", "dave", "erin"]),
        ("cheat_count", False, ["carol", "dave", "erin", "alice", "bob"]),
        ("log_time", True, ["carol", "alice", "bob", "dave", "erin"]),
        ("children_count", True, ["carol", "dave", "alice", "bob", "erin"]),
        ("godfather_count", True, ["carol", "alice", "bob", "dave", "erin"]),
        ("project_count", True, ["alice", "carol", "erin", "bob", "dave"]),
    ],
)
def test_rank_subjects_orders_both_ways(metric, descending, expected) -> None:
    attempts, presences, patronages = _directory_records()

    ranking = rk.rank_subjects(metric, attempts, presences, patronages, k=10, descending=descending)

    assert [e.login for e in ranking.entries] == expected
    assert ranking.metric == metric


def test_rank_subjects_is_permutation_invariant() -> None:
    attempts, presences, patronages = _directory_records()
    expected = rk.rank_subjects("cheat_count", attempts, presences, patronages, k=3).model_dump()

    rng = random.Random(7)
    for _ in range(10):
        shuffled = list(attempts)
        rng.shuffle(shuffled)
        ranking = rk.rank_subjects("cheat_count", shuffled, presences[::-1], patronages, k=3)
        assert ranking.model_dump() == expected


def test_rank_subjects_cheaters_on_one_campus() -> None:
    attempts, presences, patronages = _directory_records()
    profiles = [_make_profile("alice", displayname="Alice A."), _make_profile("bob")]

    ranking = rk.rank_subjects(
        "cheat_count", attempts, presences, patronages, profiles, campus_id=49, cheaters_only=True
    )

    assert [(e.login, e.value) for e in ranking.entries] == [("bob", 2), ("alice", 1)]
    assert ranking.entries[1].profile.displayname == "Alice A."


def test_rank_subjects_rejects_unknown_metric() -> None:
    with pytest.raises(ValueError):
        rk.rank_subjects("wallet")

"""Single-subject overview.

Joins one subject's project attempts, presence, received feedback and
mentorship edges into the detail view shown on a subject page.
"""

from __future__ import annotations

from typing import Iterable, Optional

from ..schemas.records import FeedbackRecord, PatronageRecord, PresenceRecord, ProjectAttempt
from ..schemas.results import LogTime, SubjectOverview, SubmissionRef
from ..utils.ids import validate_login
from .occupancy import weekday_average_duration
from .timeseries import flatten_presence, total_seconds


def _submission(attempt: ProjectAttempt) -> SubmissionRef:
    return SubmissionRef(
        project=attempt.project,
        score=attempt.score,
        status=attempt.status,
        date=attempt.date,
    )


def build_subject_overview(
    login: str,
    attempts: Iterable[ProjectAttempt] = (),
    presence: Optional[PresenceRecord] = None,
    feedback_received: Iterable[FeedbackRecord] = (),
    patronage: Optional[PatronageRecord] = None,
) -> SubjectOverview:
    """Build the detail view of ``login``.

    Cheat attempts (failed with the -42 sentinel score) are listed apart from
    regular attempts. Records belonging to other subjects are ignored.
    """
    login = validate_login(login)

    own_attempts = sorted(
        (a for a in attempts if a.login == login),
        key=lambda a: (a.date is None, a.date, a.project),
    )
    regular = [_submission(a) for a in own_attempts if not a.is_cheat]
    cheats = [_submission(a) for a in own_attempts if a.is_cheat]

    feedbacks = [fb for fb in feedback_received if fb.evaluated == login]
    avg_rating = 0.0
    if feedbacks:
        avg_rating = round(sum(fb.rating or 0 for fb in feedbacks) / len(feedbacks), 2)

    samples = []
    if presence is not None and presence.login == login:
        samples = flatten_presence(presence)

    godfathers = list(patronage.godfathers) if patronage and patronage.login == login else []
    children = list(patronage.children) if patronage and patronage.login == login else []

    return SubjectOverview(
        login=login,
        project_count=len(own_attempts),
        passed_project_count=sum(1 for a in own_attempts if a.is_passed),
        cheat_count=len(cheats),
        projects=regular,
        cheats=cheats,
        feedback_count=len(feedbacks),
        avg_rating=avg_rating,
        total_presence_seconds=total_seconds(samples),
        log_times=[LogTime(date=s.date, minutes=s.minutes) for s in samples],
        attendance_days=weekday_average_duration(samples),
        godfathers=godfathers,
        children=children,
        godfather_count=len(godfathers),
        children_count=len(children),
    )

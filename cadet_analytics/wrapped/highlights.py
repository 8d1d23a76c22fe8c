"""Retrospective highlights.

Correlates one subject's project, review and feedback streams over a
retrospective period: most-attempted project, most-reviewed project, top
collaborators in both directions and the most frequent words in comments.

Every category is optional. Sparse input never raises; a category without
qualifying data is simply left as None on :class:`Highlights`.
"""

from __future__ import annotations

import logging
import math
import re
from collections import Counter
from dataclasses import dataclass, field
from datetime import date
from typing import Iterable, List, Optional, Sequence, TypeVar

from ..config import AnalyticsSettings, get_settings
from ..schemas.records import FeedbackRecord, PatronageRecord, ProjectAttempt, ReviewRecord
from ..schemas.results import (
    Collaborator,
    Highlights,
    MostAttemptedProject,
    MostReviewedProject,
    WordCount,
    WrappedStats,
)
from ..utils.ids import split_retry_suffix

logger = logging.getLogger(__name__)

_PUNCTUATION = re.compile(r"[^\w\s]")

T = TypeVar("T")


@dataclass(frozen=True)
class RetrospectivePeriod:
    """One calendar year of activity."""

    year: int

    @classmethod
    def from_settings(cls) -> "RetrospectivePeriod":
        return cls(get_settings().retrospective_year)

    @property
    def start(self) -> date:
        return date(self.year, 1, 1)

    @property
    def end(self) -> date:
        return date(self.year, 12, 31)

    def contains(self, day: Optional[date]) -> bool:
        return day is not None and self.start <= day <= self.end

    def select(self, records: Iterable[T]) -> List[T]:
        """Records dated inside the period; undated records are left out."""
        return [r for r in records if self.contains(getattr(r, "date", None))]


@dataclass
class WrappedInputs:
    """Record streams of one subject, as fetched by the caller.

    ``review_comments`` and ``feedback_comments`` are the comment-only
    projections used for word frequency; when omitted they are taken from
    ``reviews_given`` and ``feedback_received``.
    """

    projects: Sequence[ProjectAttempt] = field(default_factory=list)
    reviews_given: Sequence[ReviewRecord] = field(default_factory=list)
    feedback_given: Sequence[FeedbackRecord] = field(default_factory=list)
    reviews_received: Sequence[ReviewRecord] = field(default_factory=list)
    feedback_received: Sequence[FeedbackRecord] = field(default_factory=list)
    patronage: Optional[PatronageRecord] = None
    review_comments: Optional[Sequence[str]] = None
    feedback_comments: Optional[Sequence[str]] = None

    def within(self, period: RetrospectivePeriod) -> "WrappedInputs":
        """Copy restricted to records dated inside ``period``."""
        return WrappedInputs(
            projects=period.select(self.projects),
            reviews_given=period.select(self.reviews_given),
            feedback_given=period.select(self.feedback_given),
            reviews_received=period.select(self.reviews_received),
            feedback_received=period.select(self.feedback_received),
            patronage=self.patronage,
            review_comments=self.review_comments,
            feedback_comments=self.feedback_comments,
        )

    def comments(self) -> List[str]:
        review_comments = self.review_comments
        if review_comments is None:
            review_comments = [r.comment for r in self.reviews_given]
        feedback_comments = self.feedback_comments
        if feedback_comments is None:
            feedback_comments = [f.comment for f in self.feedback_received]
        return [c for c in list(review_comments) + list(feedback_comments) if c]


def _first_max(counts: Counter):
    """Entry with the highest count; the earliest inserted wins ties."""
    best = None
    for key, count in counts.items():
        if best is None or count > best[1]:
            best = (key, count)
    return best


def project_attempt_counts(projects: Iterable[ProjectAttempt]) -> Counter:
    """Attempts per base project name (retry suffix stripped)."""
    counts: Counter = Counter()
    for attempt in projects:
        name, _ = split_retry_suffix(attempt.project)
        if name:
            counts[name] += 1
    return counts


def most_attempted_project(projects: Iterable[ProjectAttempt]) -> Optional[MostAttemptedProject]:
    """Project the subject attempted most.

    Qualifies when it was attempted more than once or any ``#N`` retry
    suffix was seen. The retry index only counts for the project it was
    seen on; reported attempts are ``max(count, retries + 1)``.
    """
    counts: Counter = Counter()
    max_retry = 0
    max_retry_project: Optional[str] = None
    for attempt in projects:
        name, retry = split_retry_suffix(attempt.project)
        if not name:
            continue
        counts[name] += 1
        if retry > max_retry:
            max_retry = retry
            max_retry_project = name

    best = _first_max(counts)
    if best is None:
        return None
    name, count = best
    if count <= 1 and max_retry <= 0:
        return None

    retries = max_retry if max_retry_project == name else 0
    return MostAttemptedProject(name=name, attempts=max(count, retries + 1), retries=retries)


def most_reviewed_project(reviews_given: Iterable[ReviewRecord]) -> Optional[MostReviewedProject]:
    counts = Counter(r.project for r in reviews_given if r.project)
    best = _first_max(counts)
    if best is None:
        return None
    return MostReviewedProject(name=best[0], count=best[1])


def top_collaborator(
    reviews: Iterable[ReviewRecord],
    feedbacks: Iterable[FeedbackRecord],
    counterpart: str,
) -> Optional[Collaborator]:
    """Counterpart with the highest reviews + feedback total.

    ``counterpart`` names the record attribute holding the other party:
    ``"evaluated"`` for interactions the subject gave, ``"evaluator"`` for
    the ones the subject received. Both record types weigh the same.
    """
    if counterpart not in ("evaluated", "evaluator"):
        raise ValueError(f"counterpart must be 'evaluated' or 'evaluator', got {counterpart!r}")

    review_counts = Counter(getattr(r, counterpart) for r in reviews if getattr(r, counterpart))
    feedback_counts = Counter(getattr(f, counterpart) for f in feedbacks if getattr(f, counterpart))

    combined: Counter = Counter()
    for login, count in review_counts.items():
        combined[login] += count
    for login, count in feedback_counts.items():
        combined[login] += count

    best = _first_max(combined)
    if best is None:
        return None
    login, total = best
    return Collaborator(
        login=login,
        total_count=total,
        review_count=review_counts.get(login, 0),
        feedback_count=feedback_counts.get(login, 0),
    )


def word_frequencies(comments: Iterable[Optional[str]], min_length: Optional[int] = None) -> Counter:
    """Lowercased word counts; punctuation splits words, short tokens are dropped."""
    if min_length is None:
        min_length = get_settings().min_word_length
    counts: Counter = Counter()
    for text in comments:
        if not text:
            continue
        for word in _PUNCTUATION.sub(" ", text.lower()).split():
            if len(word) >= min_length:
                counts[word] += 1
    return counts


def frequent_words(
    comments: Iterable[Optional[str]],
    limit: Optional[int] = None,
    min_length: Optional[int] = None,
) -> List[WordCount]:
    """Top words by count; equal counts keep first-seen order."""
    if limit is None:
        limit = get_settings().top_words
    counts = word_frequencies(comments, min_length)
    ranked = sorted(counts.items(), key=lambda item: -item[1])[:limit]
    return [WordCount(word=word, count=count) for word, count in ranked]


def extract_highlights(
    inputs: WrappedInputs,
    period: Optional[RetrospectivePeriod] = None,
    settings: Optional[AnalyticsSettings] = None,
) -> Highlights:
    """Compute every highlight category for the period."""
    settings = settings or get_settings()
    period = period or RetrospectivePeriod(settings.retrospective_year)
    scoped = inputs.within(period)

    words = frequent_words(scoped.comments(), settings.top_words, settings.min_word_length)
    return Highlights(
        most_attempted_project=most_attempted_project(scoped.projects),
        most_reviewed_project=most_reviewed_project(scoped.reviews_given),
        most_evaluated_user=top_collaborator(
            scoped.reviews_given, scoped.feedback_given, "evaluated"
        ),
        most_evaluator_user=top_collaborator(
            scoped.reviews_received, scoped.feedback_received, "evaluator"
        ),
        most_used_words=words or None,
    )


def compute_stats(
    inputs: WrappedInputs,
    period: Optional[RetrospectivePeriod] = None,
) -> WrappedStats:
    """Integer counters of the subject's period."""
    period = period or RetrospectivePeriod.from_settings()
    scoped = inputs.within(period)
    projects = scoped.projects

    avg_score = 0
    if projects:
        # Half-up rounding, also for negative means
        avg_score = int(math.floor(sum(p.score for p in projects) / len(projects) + 0.5))

    attempt_counts = project_attempt_counts(projects)
    patronage = scoped.patronage
    return WrappedStats(
        total_projects=len(projects),
        total_reviews=len(scoped.reviews_given),
        total_feedbacks=len(scoped.feedback_given),
        passed_projects=sum(1 for p in projects if p.is_passed),
        avg_project_score=avg_score,
        godfathers=len(patronage.godfathers) if patronage else 0,
        children=len(patronage.children) if patronage else 0,
        max_project_attempts=max(attempt_counts.values()) if attempt_counts else 0,
    )

"""Descriptive labels and headline for the retrospective.

Labels come from an ordered tuple of independent rules. Rules are evaluated
in tuple order and the first ``max_labels`` that fire are kept, so the order
of :data:`LABEL_RULES` is the label priority.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence, Tuple

from ..config import AnalyticsSettings, get_settings
from ..schemas.results import SummaryText, WrappedStats

FIRST_PERIOD_LABEL = "explorer"
RETURNING_LABEL = "returning"


def success_rate(stats: WrappedStats) -> float:
    """Share of passed projects in percent (0 without projects)."""
    if stats.total_projects <= 0:
        return 0.0
    return stats.passed_projects / stats.total_projects * 100


@dataclass(frozen=True)
class LabelRule:
    name: str
    predicate: Callable[[WrappedStats, AnalyticsSettings], bool]
    label: str
    note: Optional[str] = None

    def applies(self, stats: WrappedStats, settings: AnalyticsSettings) -> bool:
        return bool(self.predicate(stats, settings))


LABEL_RULES = (
    LabelRule(
        "repeated_attempts",
        lambda s, cfg: s.max_project_attempts >= cfg.persistent_min_attempts,
        "persistent",
    ),
    LabelRule(
        "mentor_role",
        lambda s, cfg: s.children > cfg.mentor_min_children,
        "mentor-minded",
    ),
    LabelRule(
        "high_success_rate",
        lambda s, cfg: (
            success_rate(s) >= cfg.confident_min_success_rate
            and s.total_projects >= cfg.confident_min_projects
        ),
        "confident",
    ),
    LabelRule(
        "low_activity",
        lambda s, cfg: s.total_projects < cfg.newcomer_max_projects,
        "newcomer",
        note="The foundations were laid this year",
    ),
    LabelRule(
        "community_support",
        lambda s, cfg: s.total_reviews > cfg.community_min_reviews,
        "community pillar",
    ),
)


@dataclass
class Classification:
    summary: SummaryText
    labels: List[str] = field(default_factory=list)
    fallback_notes: List[str] = field(default_factory=list)


def evaluate_labels(
    stats: WrappedStats,
    first_period: bool,
    settings: Optional[AnalyticsSettings] = None,
    rules: Sequence[LabelRule] = LABEL_RULES,
) -> Tuple[List[str], List[str]]:
    """Run the rules in order; returns the kept labels and the fallback notes."""
    settings = settings or get_settings()
    labels: List[str] = []
    notes: List[str] = []
    for rule in rules:
        if not rule.applies(stats, settings):
            continue
        labels.append(rule.label)
        if rule.note:
            notes.append(rule.note)

    if not labels:
        labels.append(FIRST_PERIOD_LABEL if first_period else RETURNING_LABEL)

    return labels[: settings.max_labels], notes


def build_headline(
    stats: WrappedStats,
    first_period: bool,
    year: int,
    settings: Optional[AnalyticsSettings] = None,
) -> SummaryText:
    """Headline bucket from projects + reviews."""
    settings = settings or get_settings()
    activity = stats.total_projects + stats.total_reviews

    if activity > settings.headline_intense_threshold:
        return SummaryText(
            headline="An intense year!",
            short_description=(
                f"{stats.total_projects} projects submitted and {stats.total_reviews} "
                f"reviews made {year} a full year."
            ),
        )
    if activity > settings.headline_progress_threshold:
        return SummaryText(
            headline="Good progress",
            short_description=f"You took on {stats.total_projects} projects in {year}.",
        )
    if activity > settings.headline_first_steps_threshold:
        return SummaryText(
            headline="First steps",
            short_description=(
                f"The first steps were taken: {stats.total_projects} project experiences."
            ),
        )
    if first_period:
        return SummaryText(
            headline="A year of discovery",
            short_description=f"{year} was the start of your journey.",
        )
    return SummaryText(
        headline="A quieter year",
        short_description=f"{year} moved at a slower pace.",
    )


def classify(
    stats: WrappedStats,
    first_period: bool,
    year: int,
    settings: Optional[AnalyticsSettings] = None,
) -> Classification:
    """Labels, fallback notes and headline in one pass."""
    settings = settings or get_settings()
    labels, notes = evaluate_labels(stats, first_period, settings)
    return Classification(
        summary=build_headline(stats, first_period, year, settings),
        labels=labels,
        fallback_notes=notes,
    )

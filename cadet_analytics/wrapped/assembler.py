"""Wrapped summary assembly.

Combines highlights, stats, labels and headline of one subject into a
:class:`WrappedSummary`, then enriches the counterpart highlights with
profile images through a single batched lookup.

Responsibilities:
- Reject calls without a usable subject login (the only hard failure)
- Restrict every computation to the retrospective period
- Resolve all counterpart images with exactly one lookup call
- Degrade to ``image=None`` when the lookup fails
"""

import logging
from typing import Callable, Dict, Iterable, Mapping, Optional, Set, Union

from pydantic import ValidationError

from ..config import AnalyticsSettings, get_settings
from ..schemas.records import ProfileImage, ProfileRecord
from ..schemas.results import Highlights, SubjectRef, WrappedSummary
from ..utils.ids import validate_login
from .highlights import RetrospectivePeriod, WrappedInputs, compute_stats, extract_highlights
from .labels import classify

logger = logging.getLogger(__name__)

ImageLookup = Callable[[Set[str]], Mapping[str, object]]


class WrappedInputError(ValueError):
    """Raised when a retrospective is requested without a usable subject."""
    pass


def profile_image_lookup(profiles: Iterable[ProfileRecord]) -> ImageLookup:
    """Lookup over an already fetched profile collection."""
    images = {profile.login: profile.image for profile in profiles}

    def lookup(logins: Set[str]) -> Dict[str, Optional[ProfileImage]]:
        return {login: images.get(login) for login in logins}

    return lookup


def _coerce_image(value: object) -> Optional[ProfileImage]:
    if value is None:
        return None
    if isinstance(value, ProfileImage):
        return value
    if isinstance(value, ProfileRecord):
        return value.image
    if isinstance(value, Mapping):
        try:
            return ProfileImage.model_validate(value)
        except ValidationError as exc:
            logger.warning("Ignoring malformed profile image: %s", exc)
            return None
    logger.warning("Ignoring unsupported profile image value of type %s", type(value).__name__)
    return None


def resolve_images(
    logins: Iterable[str],
    image_lookup: Optional[ImageLookup],
) -> Dict[str, Optional[ProfileImage]]:
    """Resolve images for ``logins`` with one lookup call.

    Any lookup failure leaves every image as None.
    """
    wanted = set(logins)
    if not wanted or image_lookup is None:
        return {}

    try:
        found = image_lookup(wanted) or {}
    except Exception as exc:
        logger.warning("Profile image lookup failed for %d logins: %s", len(wanted), exc)
        return {}

    if not isinstance(found, Mapping):
        logger.warning(
            "Profile image lookup returned %s instead of a mapping; images left empty",
            type(found).__name__,
        )
        return {}

    return {login: _coerce_image(found.get(login)) for login in wanted}


def enrich_highlights(
    highlights: Highlights,
    image_lookup: Optional[ImageLookup],
) -> Highlights:
    """Copy of ``highlights`` with counterpart images filled in."""
    images = resolve_images(highlights.counterpart_logins(), image_lookup)
    if not images:
        return highlights

    updates = {}
    for key in ("most_evaluated_user", "most_evaluator_user"):
        collaborator = getattr(highlights, key)
        if collaborator is not None:
            updates[key] = collaborator.model_copy(update={"image": images.get(collaborator.login)})
    return highlights.model_copy(update=updates)


def _subject_profile(subject: Union[ProfileRecord, str, None]) -> ProfileRecord:
    if subject is None:
        raise WrappedInputError("A subject is required to build a wrapped summary")
    login = subject.login if isinstance(subject, ProfileRecord) else subject
    try:
        login = validate_login(login)
    except ValueError as exc:
        raise WrappedInputError(str(exc)) from exc
    if isinstance(subject, ProfileRecord):
        return subject.model_copy(update={"login": login})
    return ProfileRecord(login=login)


def is_first_period(subject: ProfileRecord, period: RetrospectivePeriod) -> bool:
    """Whether the subject joined during the retrospective year."""
    return bool(subject.pool_year) and str(subject.pool_year).strip() == str(period.year)


def build_wrapped_summary(
    subject: Union[ProfileRecord, str, None],
    inputs: Optional[WrappedInputs] = None,
    period: Optional[RetrospectivePeriod] = None,
    image_lookup: Optional[ImageLookup] = None,
    settings: Optional[AnalyticsSettings] = None,
) -> WrappedSummary:
    """
    Build the annual retrospective of one subject.

    Args:
        subject: Profile of the subject (or a bare login)
        inputs: Record streams of the subject; missing streams count as empty
        period: Retrospective year, defaults to the configured one
        image_lookup: Batched ``logins -> image`` resolver for counterparts
        settings: Threshold overrides

    Returns:
        The assembled summary

    Raises:
        WrappedInputError: If no valid subject login is supplied
    """
    profile = _subject_profile(subject)
    settings = settings or get_settings()
    period = period or RetrospectivePeriod(settings.retrospective_year)
    inputs = inputs or WrappedInputs()

    highlights = extract_highlights(inputs, period, settings)
    stats = compute_stats(inputs, period)
    classification = classify(stats, is_first_period(profile, period), period.year, settings)

    logger.info(
        "Built wrapped summary for %s (%d): %d projects, %d reviews, labels=%s",
        profile.login,
        period.year,
        stats.total_projects,
        stats.total_reviews,
        classification.labels,
    )

    return WrappedSummary(
        user=SubjectRef(
            login=profile.login,
            displayname=profile.displayname,
            image=profile.image,
        ),
        year=period.year,
        summary=classification.summary,
        highlights=enrich_highlights(highlights, image_lookup),
        stats=stats,
        labels=classification.labels,
        fallback_notes=classification.fallback_notes,
    )

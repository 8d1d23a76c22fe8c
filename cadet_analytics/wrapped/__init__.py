"""
Wrapped Module
Builds the annual retrospective of a single subject.
"""

from .highlights import RetrospectivePeriod, WrappedInputs, compute_stats, extract_highlights
from .labels import LABEL_RULES, LabelRule, classify
from .assembler import WrappedInputError, build_wrapped_summary, profile_image_lookup

__all__ = [
    "RetrospectivePeriod",
    "WrappedInputs",
    "compute_stats",
    "extract_highlights",
    "LABEL_RULES",
    "LabelRule",
    "classify",
    "WrappedInputError",
    "build_wrapped_summary",
    "profile_image_lookup",
]

"""
Aggregation policy: how many readings of one type collapse into one value.

Cumulative types (intake volumes, discrete event counts) are summed within a
period; every other type is a snapshot where the latest reading wins. Bucketing,
trends, correlation and goal evaluation all ask ``is_cumulative``.
"""

import math
from collections.abc import Iterable, Sequence

from vitalcore.domain.models import Category, Sample

CUMULATIVE_TYPES: frozenset[str] = frozenset(
    {"water", "steps", "calories_in", "calories_burned", "standing_breaks"}
)


def is_cumulative(metric_type: str, category: Category | None = None) -> bool:
    """Whether readings of this type are summed (True) or latest-wins (False).

    Medication intakes count one unit per occurrence and are always summed,
    whatever the type is called.
    """
    if category is Category.MEDICATION:
        return True
    return metric_type in CUMULATIVE_TYPES


def stream_is_cumulative(samples: Sequence[Sample]) -> bool:
    """Classify a single-type stream.

    A stream counts as medication only when every sample carries the
    medication category; a type name shared with regular metrics is treated
    by name.
    """
    if not samples:
        return False
    medication = is_medication_stream(samples)
    return is_cumulative(samples[0].metric_type, Category.MEDICATION if medication else None)


def is_medication_stream(samples: Sequence[Sample]) -> bool:
    """True when there are samples and every one carries the medication category."""
    return bool(samples) and all(s.resolved_category is Category.MEDICATION for s in samples)


def aggregate(values: Iterable[float], cumulative: bool) -> float | None:
    """Collapse chronologically ordered values; None when there are none."""
    ordered = list(values)
    if not ordered:
        return None
    if cumulative:
        return math.fsum(ordered)
    return ordered[-1]

"""
Correlation engine: Pearson's r between two metrics' daily aggregates.

Each stream is reduced to one value per local day using the aggregation policy,
and only days present in both streams are paired.
"""

import math
from collections.abc import Sequence
from datetime import date, timedelta

import structlog

from vitalcore.config import CorrelationConfig
from vitalcore.domain.models import (
    CorrelationResult,
    CorrelationStrength,
    Period,
    Sample,
    require_positive,
)
from vitalcore.services.bucketing import bucket
from vitalcore.services.localtime import LocalCalendar
from vitalcore.services.store import SampleStore, query_local_range

logger = structlog.get_logger(__name__)


def daily_series(
    samples: Sequence[Sample],
    calendar: LocalCalendar,
    start: date | None = None,
    end: date | None = None,
) -> dict[date, float]:
    """One aggregate per local calendar day."""
    return {b.period_start: b.aggregate for b in bucket(samples, Period.DAY, calendar, start, end)}


def pearson(xs: Sequence[float], ys: Sequence[float]) -> float | None:
    """Pearson correlation coefficient; None when either side has zero variance."""
    if len(xs) != len(ys):
        raise ValueError("pearson requires equally long sequences")
    n = len(xs)
    if n < 2:
        return None
    if min(xs) == max(xs) or min(ys) == max(ys):
        return None

    # r is unchanged by positive scaling; unit-range inputs keep the squares finite
    scale_x = max(abs(x) for x in xs)
    scale_y = max(abs(y) for y in ys)
    xs = [x / scale_x for x in xs]
    ys = [y / scale_y for y in ys]

    mean_x = math.fsum(xs) / n
    mean_y = math.fsum(ys) / n
    cov = math.fsum((x - mean_x) * (y - mean_y) for x, y in zip(xs, ys))
    var_x = math.fsum((x - mean_x) ** 2 for x in xs)
    var_y = math.fsum((y - mean_y) ** 2 for y in ys)
    denominator = math.sqrt(var_x) * math.sqrt(var_y)
    if denominator == 0:
        return None

    r = cov / denominator
    # Rounding can push a perfect fit a hair past +/-1
    return max(-1.0, min(1.0, r))


def strength_band(
    coefficient: float, moderate_cutoff: float = 0.3, strong_cutoff: float = 0.7
) -> CorrelationStrength:
    magnitude = abs(coefficient)
    if magnitude < moderate_cutoff:
        return CorrelationStrength.WEAK
    if magnitude < strong_cutoff:
        return CorrelationStrength.MODERATE
    return CorrelationStrength.STRONG


def correlate(
    samples_a: Sequence[Sample],
    samples_b: Sequence[Sample],
    calendar: LocalCalendar,
    metric_a: str | None = None,
    metric_b: str | None = None,
    start: date | None = None,
    end: date | None = None,
    config: CorrelationConfig | None = None,
) -> CorrelationResult:
    """Correlate two streams over the days they share.

    Too few shared days yields coefficient 0 with ``insufficient_data`` set;
    a constant stream yields coefficient 0 without the flag.
    """
    config = config or CorrelationConfig()
    metric_a = metric_a or (samples_a[0].metric_type if samples_a else "")
    metric_b = metric_b or (samples_b[0].metric_type if samples_b else "")

    series_a = daily_series(samples_a, calendar, start, end)
    series_b = daily_series(samples_b, calendar, start, end)
    shared_days = sorted(series_a.keys() & series_b.keys())
    paired_count = len(shared_days)

    if paired_count < config.min_paired:
        logger.info(
            "correlation_insufficient_data",
            metric_a=metric_a,
            metric_b=metric_b,
            paired_count=paired_count,
        )
        return CorrelationResult(
            metric_a=metric_a,
            metric_b=metric_b,
            coefficient=0.0,
            paired_count=paired_count,
            strength=CorrelationStrength.WEAK,
            insufficient_data=True,
        )

    r = pearson([series_a[d] for d in shared_days], [series_b[d] for d in shared_days])
    coefficient = 0.0 if r is None else r
    if r is None:
        logger.info(
            "correlation_zero_variance",
            metric_a=metric_a,
            metric_b=metric_b,
            paired_count=paired_count,
        )

    result = CorrelationResult(
        metric_a=metric_a,
        metric_b=metric_b,
        coefficient=coefficient,
        paired_count=paired_count,
        strength=strength_band(coefficient, config.moderate_cutoff, config.strong_cutoff),
        insufficient_data=False,
    )
    logger.debug(
        "correlation_computed",
        metric_a=metric_a,
        metric_b=metric_b,
        coefficient=coefficient,
        paired_count=paired_count,
    )
    return result


class CorrelationEngine:
    """Store-backed correlation over a trailing window of days."""

    def __init__(
        self,
        store: SampleStore,
        calendar: LocalCalendar,
        config: CorrelationConfig | None = None,
    ) -> None:
        self.store = store
        self.calendar = calendar
        self.config = config or CorrelationConfig()
        self.logger = logger.bind(component="correlation_engine")

    def compute(
        self, metric_a: str, metric_b: str, window_size: int | None = None
    ) -> CorrelationResult:
        window_size = self.config.window_days if window_size is None else window_size
        require_positive("window_size", window_size)

        end = self.calendar.today
        start = end - timedelta(days=window_size - 1)
        samples_a = query_local_range(self.store, metric_a, self.calendar, start, end)
        samples_b = query_local_range(self.store, metric_b, self.calendar, start, end)
        self.logger.debug(
            "correlation_window_loaded",
            metric_a=metric_a,
            metric_b=metric_b,
            samples_a=len(samples_a),
            samples_b=len(samples_b),
        )
        return correlate(
            samples_a,
            samples_b,
            self.calendar,
            metric_a=metric_a,
            metric_b=metric_b,
            start=start,
            end=end,
            config=self.config,
        )

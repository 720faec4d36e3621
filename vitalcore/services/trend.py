"""
Trend engine: ordinary-least-squares fit over bucketed aggregates.

The projection extrapolates the fitted line a fixed horizon past the last
bucket and is then clamped to a band around the last aggregate.
"""

import math
from collections.abc import Sequence

import structlog

from vitalcore.config import TrendConfig
from vitalcore.domain.models import (
    Bucket,
    Period,
    Sample,
    TrendDirection,
    TrendResult,
    parse_period,
    require_positive,
)
from vitalcore.services.bucketing import bucket, window_start
from vitalcore.services.localtime import LocalCalendar
from vitalcore.services.store import SampleStore, query_local_range

logger = structlog.get_logger(__name__)

# Periods covered by one day of projection horizon
_PERIODS_PER_DAY = {
    Period.DAY: 1.0,
    Period.WEEK: 1.0 / 7.0,
    Period.MONTH: 1.0 / 30.0,
}


def fit_line(ys: Sequence[float]) -> tuple[float, float]:
    """Fit ``y = a + b*x`` with ``x = 0..n-1``; returns ``(a, b)``.

    A degenerate x spread (n < 2) yields a flat line through the mean.
    """
    n = len(ys)
    if n == 0:
        raise ValueError("cannot fit a line to zero points")

    sum_x = n * (n - 1) / 2.0
    sum_xx = (n - 1) * n * (2 * n - 1) / 6.0
    sum_y = math.fsum(ys)
    sum_xy = math.fsum(x * y for x, y in enumerate(ys))

    denominator = n * sum_xx - sum_x * sum_x
    if denominator == 0:
        return sum_y / n, 0.0

    slope = (n * sum_xy - sum_x * sum_y) / denominator
    intercept = (sum_y - slope * sum_x) / n
    return intercept, slope


def classify_direction(slope: float, stable_slope: float = 0.01) -> TrendDirection:
    if slope > stable_slope:
        return TrendDirection.INCREASING
    if slope < -stable_slope:
        return TrendDirection.DECREASING
    return TrendDirection.STABLE


def clamp_projection(
    projected: float, last_aggregate: float, low_ratio: float = 0.5, high_ratio: float = 1.5
) -> float:
    """Clamp to ``[max(0, last*low_ratio), last*high_ratio]``.

    Never negative; for a non-positive last aggregate the band collapses to 0.
    """
    floor = max(0.0, last_aggregate * low_ratio)
    ceiling = max(floor, last_aggregate * high_ratio)
    return min(max(projected, floor), ceiling)


def projection_horizon(period: Period, projection_days: float) -> float:
    """Number of periods spanned by ``projection_days``."""
    return projection_days * _PERIODS_PER_DAY[period]


def trend_from_buckets(
    metric_type: str,
    period: Period,
    buckets: Sequence[Bucket],
    config: TrendConfig | None = None,
) -> TrendResult:
    """Regression, direction and clamped projection over ready-made buckets."""
    config = config or TrendConfig()

    if len(buckets) < 2:
        logger.info(
            "trend_insufficient_data",
            metric_type=metric_type,
            period=period.value,
            buckets=len(buckets),
        )
        return TrendResult(metric_type=metric_type, period=period, buckets=list(buckets))

    ys = [b.aggregate for b in buckets]
    intercept, slope = fit_line(ys)
    direction = classify_direction(slope, config.stable_slope)

    horizon = projection_horizon(period, config.projection_days)
    last_index = len(ys) - 1
    raw_projection = intercept + slope * (last_index + horizon)
    projection = clamp_projection(
        raw_projection, ys[-1], config.clamp_low_ratio, config.clamp_high_ratio
    )

    logger.debug(
        "trend_computed",
        metric_type=metric_type,
        period=period.value,
        buckets=len(buckets),
        slope=slope,
        direction=direction.value,
        raw_projection=raw_projection,
        projection=projection,
    )
    return TrendResult(
        metric_type=metric_type,
        period=period,
        buckets=list(buckets),
        direction=direction,
        slope=slope,
        intercept=intercept,
        projection=projection,
        projection_periods=horizon,
    )


def compute_trend(
    samples: Sequence[Sample],
    metric_type: str,
    period: Period | str,
    window_size: int,
    calendar: LocalCalendar,
    config: TrendConfig | None = None,
) -> TrendResult:
    """Bucket ``samples`` over the trailing ``window_size`` periods and fit a trend."""
    period = parse_period(period)
    require_positive("window_size", window_size)

    start = window_start(calendar.today, period, window_size)
    stream = [s for s in samples if s.metric_type == metric_type]
    buckets = bucket(stream, period, calendar, start=start, end=calendar.today)
    return trend_from_buckets(metric_type, period, buckets, config)


class TrendEngine:
    """Store-backed trend computation for one calendar and configuration."""

    def __init__(
        self,
        store: SampleStore,
        calendar: LocalCalendar,
        config: TrendConfig | None = None,
    ) -> None:
        self.store = store
        self.calendar = calendar
        self.config = config or TrendConfig()
        self.logger = logger.bind(component="trend_engine")

    def compute(
        self, metric_type: str, period: Period | str, window_size: int | None = None
    ) -> TrendResult:
        period = parse_period(period)
        window_size = self.config.window_size if window_size is None else window_size
        require_positive("window_size", window_size)

        start = window_start(self.calendar.today, period, window_size)
        samples = query_local_range(
            self.store, metric_type, self.calendar, start, self.calendar.today
        )
        self.logger.debug(
            "trend_window_loaded",
            metric_type=metric_type,
            start=start.isoformat(),
            samples=len(samples),
        )
        return compute_trend(samples, metric_type, period, window_size, self.calendar, self.config)

"""
Threshold alerts: consecutive elevated days and single elevated readings.

The consecutive-day scan walks backward from today one local day at a time.
Its lookback always covers the required day count, so raising the requirement
past the static minimum never makes the alert unreachable.
"""

from collections import defaultdict
from collections.abc import Sequence
from datetime import date, timedelta

import structlog

from vitalcore.config import AlertConfig
from vitalcore.domain.models import AlertRecord, Sample, ThresholdBreach, require_positive
from vitalcore.services.localtime import LocalCalendar
from vitalcore.services.store import SampleStore, query_local_range

logger = structlog.get_logger(__name__)


def lookback_days(required_days: int, min_lookback_days: int = 30) -> int:
    """Size of the backward scan: the static minimum or K, whichever is larger."""
    return max(min_lookback_days, required_days)


def consecutive_threshold(
    samples: Sequence[Sample],
    metric_type: str,
    threshold: float,
    required_days: int,
    calendar: LocalCalendar,
    min_lookback_days: int = 30,
) -> list[AlertRecord]:
    """Count trailing local days, ending today, with a reading >= ``threshold``.

    Returns a single AlertRecord when the run reaches ``required_days``,
    otherwise an empty list.
    """
    require_positive("required_days", required_days)
    window = lookback_days(required_days, min_lookback_days)
    today = calendar.today

    qualifying: dict[date, list[Sample]] = defaultdict(list)
    for sample in samples:
        if sample.metric_type == metric_type and sample.value >= threshold:
            qualifying[calendar.local_date(sample.instant)].append(sample)

    consecutive = 0
    latest_value: float | None = None
    for offset in range(window):
        day_samples = qualifying.get(today - timedelta(days=offset))
        if not day_samples:
            break
        consecutive += 1
        if latest_value is None:
            latest_value = max(day_samples, key=lambda s: s.instant).value

    if consecutive < required_days or latest_value is None:
        return []

    logger.info(
        "consecutive_threshold_alert",
        metric_type=metric_type,
        consecutive_days=consecutive,
        threshold=threshold,
        required_days=required_days,
    )
    return [
        AlertRecord(
            metric_type=metric_type,
            consecutive_days=consecutive,
            latest_value=latest_value,
            threshold=threshold,
            required_days=required_days,
        )
    ]


def threshold_breaches(
    samples: Sequence[Sample], metric_type: str, threshold: float, calendar: LocalCalendar
) -> list[ThresholdBreach]:
    """Individual readings logged today at or above ``threshold``."""
    return [
        ThresholdBreach(
            metric_type=metric_type, value=s.value, instant=s.instant, threshold=threshold
        )
        for s in sorted(samples, key=lambda s: s.instant)
        if s.metric_type == metric_type
        and s.value >= threshold
        and calendar.local_date(s.instant) == calendar.today
    ]


class AlertEngine:
    """Store-backed threshold alerting."""

    def __init__(
        self,
        store: SampleStore,
        calendar: LocalCalendar,
        config: AlertConfig | None = None,
    ) -> None:
        self.store = store
        self.calendar = calendar
        self.config = config or AlertConfig()
        self.logger = logger.bind(component="alert_engine")

    def consecutive_threshold(
        self, metric_type: str, threshold_value: float, required_days: int
    ) -> list[AlertRecord]:
        require_positive("required_days", required_days)
        window = lookback_days(required_days, self.config.min_lookback_days)
        start = self.calendar.today - timedelta(days=window - 1)
        samples = query_local_range(
            self.store, metric_type, self.calendar, start, self.calendar.today
        )
        self.logger.debug(
            "alert_window_loaded",
            metric_type=metric_type,
            lookback_days=window,
            samples=len(samples),
        )
        return consecutive_threshold(
            samples,
            metric_type,
            threshold_value,
            required_days,
            self.calendar,
            self.config.min_lookback_days,
        )

    def scan(self, metric_types: Sequence[str] | None = None) -> list[AlertRecord]:
        """Consecutive-day scan of the watched types with the configured policy."""
        metric_types = self.config.watched_types if metric_types is None else metric_types
        alerts: list[AlertRecord] = []
        for metric_type in metric_types:
            alerts.extend(
                self.consecutive_threshold(
                    metric_type, self.config.threshold, self.config.consecutive_days
                )
            )
        return alerts

    def threshold_breaches(
        self, metric_type: str, threshold: float | None = None
    ) -> list[ThresholdBreach]:
        threshold = self.config.threshold if threshold is None else threshold
        today = self.calendar.today
        samples = query_local_range(self.store, metric_type, self.calendar, today, today)
        return threshold_breaches(samples, metric_type, threshold, self.calendar)

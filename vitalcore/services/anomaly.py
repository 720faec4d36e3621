"""
Personal-baseline anomaly detection.

Each metric type gets its own "normal range" from the interquartile range of
its recent history. Today's readings outside that range are reported, with a
severity that grows with the distance from the nearest quartile.
"""

import math
from collections.abc import Iterable, Sequence
from datetime import date, timedelta

import structlog

from vitalcore.config import AnomalyConfig
from vitalcore.domain.models import (
    AnomalyRecord,
    AnomalyReport,
    Baseline,
    Bounds,
    Deviation,
    Sample,
    Sensitivity,
    Severity,
    parse_sensitivity,
    require_positive,
)
from vitalcore.services.localtime import LocalCalendar
from vitalcore.services.store import SampleStore, query_local_range

logger = structlog.get_logger(__name__)


def percentile(ordered: Sequence[float], p: float) -> float:
    """The ``p``-th percentile of ascending ``ordered`` values.

    Linear interpolation between order statistics at rank ``p/100 * (n + 1)``,
    clamped to the smallest and largest value.
    """
    if not ordered:
        raise ValueError("cannot take a percentile of zero values")
    if not 0.0 <= p <= 100.0:
        raise ValueError(f"percentile must be within [0, 100], got {p}")

    rank = p / 100.0 * (len(ordered) + 1)
    if rank <= 1.0:
        return ordered[0]
    if rank >= len(ordered):
        return ordered[-1]
    lower = math.floor(rank)
    fraction = rank - lower
    return ordered[lower - 1] + fraction * (ordered[lower] - ordered[lower - 1])


def compute_baseline(values: Iterable[float]) -> Baseline:
    """Quartiles of ``values``; the baseline ``10..70`` has Q1 = 20 and Q3 = 60."""
    ordered = sorted(values)
    if not ordered:
        raise ValueError("cannot compute a baseline from zero values")
    if ordered[0] == ordered[-1]:
        only = ordered[0]
        return Baseline(q1=only, median=only, q3=only, iqr=0.0, sample_count=len(ordered))

    q1 = percentile(ordered, 25)
    median = percentile(ordered, 50)
    q3 = percentile(ordered, 75)
    return Baseline(q1=q1, median=median, q3=q3, iqr=max(0.0, q3 - q1), sample_count=len(ordered))


def compute_bounds(baseline: Baseline, factor: float) -> Bounds:
    # A zero IQR collapses the bounds onto the quartiles
    spread = factor * baseline.iqr
    return Bounds(lower=baseline.q1 - spread, upper=baseline.q3 + spread)


def compute_severity(
    value: float,
    baseline: Baseline,
    deviation: Deviation,
    warning_cutoff: float = 1.5,
    alert_cutoff: float = 2.0,
) -> Severity:
    """Severity from the distance to the nearest quartile, in IQR widths.

    A zero IQR would make any deviation infinitely many widths away, so the
    normalizer falls back to 1% of the median (and never below 0.01).
    """
    normalizer = max(baseline.iqr, abs(baseline.median) * 0.01, 0.01)
    if deviation is Deviation.ABOVE:
        distance = (value - baseline.q3) / normalizer
    else:
        distance = (baseline.q1 - value) / normalizer

    if distance > alert_cutoff:
        return Severity.ALERT
    if distance > warning_cutoff:
        return Severity.WARNING
    return Severity.INFO


def detect_for_type(
    metric_type: str,
    samples: Sequence[Sample],
    calendar: LocalCalendar,
    baseline_days: int,
    sensitivity: Sensitivity | str = Sensitivity.MODERATE,
    config: AnomalyConfig | None = None,
) -> list[AnomalyRecord] | None:
    """Check today's samples of one type against its baseline.

    Returns None when the baseline is too thin to judge, otherwise the
    (possibly empty) list of anomalies.
    """
    config = config or AnomalyConfig()
    sensitivity = parse_sensitivity(sensitivity)
    require_positive("baseline_days", baseline_days)

    today = calendar.today
    baseline_start = today - timedelta(days=baseline_days)

    baseline_values: list[float] = []
    todays: list[Sample] = []
    for sample in samples:
        if sample.metric_type != metric_type:
            continue
        local_day = calendar.local_date(sample.instant)
        if baseline_start <= local_day < today:
            baseline_values.append(sample.value)
        elif local_day == today:
            todays.append(sample)

    if len(baseline_values) < config.min_baseline_samples:
        return None

    baseline = compute_baseline(baseline_values)
    bounds = compute_bounds(baseline, sensitivity.factor)

    anomalies = []
    for sample in sorted(todays, key=lambda s: s.instant):
        if bounds.lower <= sample.value <= bounds.upper:
            continue
        deviation = Deviation.ABOVE if sample.value > bounds.upper else Deviation.BELOW
        anomalies.append(
            AnomalyRecord(
                metric_type=metric_type,
                value=sample.value,
                instant=sample.instant,
                baseline=baseline,
                bounds=bounds,
                deviation=deviation,
                severity=compute_severity(
                    sample.value,
                    baseline,
                    deviation,
                    config.warning_cutoff,
                    config.alert_cutoff,
                ),
                summary=(
                    f"{metric_type} {sample.value:.1f} is {deviation.value} your normal "
                    f"range ({bounds.lower:.1f}-{bounds.upper:.1f})"
                ),
            )
        )
    return anomalies


def summarize_anomalies(anomalies: Sequence[AnomalyRecord], scanned_types: Sequence[str]) -> str:
    if not anomalies:
        if not scanned_types:
            return "No metrics with sufficient data for anomaly detection."
        return f"No anomalies detected across {len(scanned_types)} metric type(s)."

    affected = sorted({a.metric_type for a in anomalies})
    noun = "anomaly" if len(anomalies) == 1 else "anomalies"
    return (
        f"{len(anomalies)} {noun} detected across {len(scanned_types)} metric type(s). "
        f"Affected: {', '.join(affected)}."
    )


class AnomalyDetector:
    """Scans one or all metric types against their personal baselines."""

    def __init__(
        self,
        store: SampleStore,
        calendar: LocalCalendar,
        config: AnomalyConfig | None = None,
    ) -> None:
        self.store = store
        self.calendar = calendar
        self.config = config or AnomalyConfig()
        self.logger = logger.bind(component="anomaly_detector")

    def detect(
        self,
        type_filter: str | None = None,
        baseline_days: int | None = None,
        sensitivity: Sensitivity | str | None = None,
    ) -> AnomalyReport:
        baseline_days = self.config.baseline_days if baseline_days is None else baseline_days
        require_positive("baseline_days", baseline_days)
        sensitivity = parse_sensitivity(
            self.config.sensitivity if sensitivity is None else sensitivity
        )

        today = self.calendar.today
        baseline_start: date = today - timedelta(days=baseline_days)
        types_to_scan = [type_filter] if type_filter else sorted(self.store.distinct_types())

        anomalies: list[AnomalyRecord] = []
        scanned_types: list[str] = []
        clean_types: list[str] = []
        insufficient_types: list[str] = []

        for metric_type in types_to_scan:
            samples = query_local_range(
                self.store, metric_type, self.calendar, baseline_start, today
            )
            found = detect_for_type(
                metric_type,
                samples,
                self.calendar,
                baseline_days,
                sensitivity,
                self.config,
            )
            if found is None:
                insufficient_types.append(metric_type)
                self.logger.info(
                    "anomaly_scan_skipped",
                    metric_type=metric_type,
                    reason="insufficient_data",
                    samples=len(samples),
                )
                continue

            scanned_types.append(metric_type)
            if found:
                anomalies.extend(found)
            elif any(self.calendar.local_date(s.instant) == today for s in samples):
                # Nothing logged today is neither anomalous nor clean
                clean_types.append(metric_type)

        summary = summarize_anomalies(anomalies, scanned_types)
        self.logger.info(
            "anomaly_scan_completed",
            scanned=len(scanned_types),
            anomalies=len(anomalies),
            insufficient=len(insufficient_types),
            sensitivity=sensitivity.value,
        )
        return AnomalyReport(
            baseline_start=baseline_start,
            baseline_end=today,
            baseline_days=baseline_days,
            sensitivity=sensitivity,
            anomalies=anomalies,
            scanned_types=scanned_types,
            clean_types=clean_types,
            insufficient_types=insufficient_types,
            summary=summary,
        )

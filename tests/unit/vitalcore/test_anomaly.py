"""
Tests for personal-baseline anomaly detection in `vitalcore/services/anomaly.py`.

Covers:
- Quartiles, IQR and sensitivity-scaled bounds
- Severity from the distance past the quartile
- Thin baselines reported as insufficient rather than clean
- Zero-IQR baselines
- Local-date split between baseline and today
"""

from datetime import date, timedelta

import pytest

from vitalcore.config import AnomalyConfig
from vitalcore.domain.models import Baseline, Deviation, InvalidInputError, Sensitivity, Severity
from vitalcore.services.anomaly import (
    AnomalyDetector,
    compute_baseline,
    compute_bounds,
    compute_severity,
    detect_for_type,
    percentile,
)
from vitalcore.services.store import InMemorySampleStore

BASELINE_VALUES = [10.0, 20.0, 30.0, 40.0, 50.0, 60.0, 70.0]


@pytest.fixture
def baseline_samples(make_sample, today):
    """One reading per day for the week before today: 10, 20, ..., 70."""

    def _build(metric_type: str = "resting_hr", values=BASELINE_VALUES):
        return [
            make_sample(metric_type, v, today - timedelta(days=len(values) - i))
            for i, v in enumerate(values)
        ]

    return _build


class TestBaseline:
    def test_quartiles_of_seven_values(self) -> None:
        baseline = compute_baseline(BASELINE_VALUES)

        assert baseline.q1 == pytest.approx(20.0)
        assert baseline.median == pytest.approx(40.0)
        assert baseline.q3 == pytest.approx(60.0)
        assert baseline.iqr == pytest.approx(40.0)
        assert baseline.sample_count == 7

    @pytest.mark.parametrize(
        "p,expected", [(0, 10.0), (10, 10.0), (25, 20.0), (30, 24.0), (50, 40.0), (100, 70.0)]
    )
    def test_percentile_interpolates(self, p: float, expected: float) -> None:
        assert percentile(BASELINE_VALUES, p) == pytest.approx(expected)

    def test_percentile_rejects_bad_input(self) -> None:
        with pytest.raises(ValueError):
            percentile([], 50)
        with pytest.raises(ValueError):
            percentile(BASELINE_VALUES, 101)

    def test_order_does_not_matter(self) -> None:
        assert compute_baseline(reversed(BASELINE_VALUES)) == compute_baseline(BASELINE_VALUES)

    def test_constant_values_have_zero_iqr(self) -> None:
        baseline = compute_baseline([72.0] * 7)

        assert baseline.iqr == 0.0
        assert baseline.q1 == baseline.q3 == 72.0

    def test_empty_values_rejected(self) -> None:
        with pytest.raises(ValueError):
            compute_baseline([])

    @pytest.mark.parametrize(
        "sensitivity,lower,upper",
        [
            (Sensitivity.RELAXED, -60.0, 140.0),
            (Sensitivity.MODERATE, -40.0, 120.0),
            (Sensitivity.STRICT, -20.0, 100.0),
        ],
    )
    def test_bounds_scale_with_sensitivity(
        self, sensitivity: Sensitivity, lower: float, upper: float
    ) -> None:
        bounds = compute_bounds(compute_baseline(BASELINE_VALUES), sensitivity.factor)

        assert bounds.lower == pytest.approx(lower)
        assert bounds.upper == pytest.approx(upper)


class TestSeverity:
    @pytest.fixture
    def baseline(self) -> Baseline:
        return compute_baseline(BASELINE_VALUES)

    @pytest.mark.parametrize(
        "value,severity",
        [
            (110.0, Severity.INFO),  # 1.25 IQR widths past Q3
            (125.0, Severity.WARNING),  # 1.625
            (140.0, Severity.WARNING),  # exactly 2.0
            (200.0, Severity.ALERT),  # 3.5
        ],
    )
    def test_above(self, baseline: Baseline, value: float, severity: Severity) -> None:
        assert compute_severity(value, baseline, Deviation.ABOVE) is severity

    def test_below(self, baseline: Baseline) -> None:
        # (20 - (-70)) / 40 = 2.25
        assert compute_severity(-70.0, baseline, Deviation.BELOW) is Severity.ALERT

    def test_zero_iqr_uses_median_fraction(self) -> None:
        baseline = compute_baseline([72.0] * 7)
        # 0.1 / 0.72 widths
        assert compute_severity(72.1, baseline, Deviation.ABOVE) is Severity.INFO
        # 2.0 / 0.72 widths
        assert compute_severity(74.0, baseline, Deviation.ABOVE) is Severity.ALERT


class TestDetectForType:
    def test_far_outlier_is_an_alert(self, baseline_samples, make_sample, utc_calendar, today):
        samples = baseline_samples() + [make_sample("resting_hr", 200.0, today)]

        [anomaly] = detect_for_type("resting_hr", samples, utc_calendar, 30)

        assert anomaly.deviation is Deviation.ABOVE
        assert anomaly.severity is Severity.ALERT
        assert anomaly.bounds.upper == pytest.approx(120.0)
        assert anomaly.summary == "resting_hr 200.0 is above your normal range (-40.0-120.0)"

    def test_value_in_range_is_not_flagged(self, baseline_samples, make_sample, utc_calendar, today):
        samples = baseline_samples() + [make_sample("resting_hr", 65.0, today)]

        assert detect_for_type("resting_hr", samples, utc_calendar, 30) == []

    def test_strict_sensitivity_narrows_bounds(
        self, baseline_samples, make_sample, utc_calendar, today
    ):
        samples = baseline_samples() + [make_sample("resting_hr", 110.0, today)]

        assert detect_for_type("resting_hr", samples, utc_calendar, 30, "moderate") == []
        [anomaly] = detect_for_type("resting_hr", samples, utc_calendar, 30, "strict")
        assert anomaly.severity is Severity.INFO

    def test_thin_baseline_returns_none(self, baseline_samples, make_sample, utc_calendar, today):
        samples = baseline_samples(values=BASELINE_VALUES[:6]) + [
            make_sample("resting_hr", 500.0, today)
        ]

        assert detect_for_type("resting_hr", samples, utc_calendar, 30) is None

    def test_min_baseline_samples_is_configurable(
        self, baseline_samples, make_sample, utc_calendar, today
    ):
        samples = baseline_samples(values=BASELINE_VALUES[:3]) + [
            make_sample("resting_hr", 500.0, today)
        ]
        config = AnomalyConfig(min_baseline_samples=3)

        found = detect_for_type("resting_hr", samples, utc_calendar, 30, config=config)

        assert found is not None and len(found) == 1

    def test_zero_iqr_baseline(self, make_sample, utc_calendar, today):
        baseline = [make_sample("resting_hr", 72.0, today - timedelta(days=d)) for d in range(1, 8)]

        steady = detect_for_type(
            "resting_hr", baseline + [make_sample("resting_hr", 72.0, today)], utc_calendar, 30
        )
        nudged = detect_for_type(
            "resting_hr", baseline + [make_sample("resting_hr", 72.1, today)], utc_calendar, 30
        )

        assert steady == []
        assert len(nudged) == 1
        assert nudged[0].severity is Severity.INFO

    def test_baseline_window_excludes_old_samples(self, make_sample, utc_calendar, today):
        old = [make_sample("resting_hr", 60.0, today - timedelta(days=40 + d)) for d in range(10)]
        recent = [make_sample("resting_hr", 60.0, today - timedelta(days=d)) for d in range(1, 4)]

        assert detect_for_type("resting_hr", old + recent, utc_calendar, 30) is None

    def test_local_midnight_splits_baseline_from_today(self, make_sample, ny_calendar, today):
        baseline = [
            make_sample("resting_hr", v, today - timedelta(days=8 - i), tz="America/New_York")
            for i, v in enumerate(BASELINE_VALUES)
        ]
        # Late last night locally, but already today in UTC
        late = make_sample(
            "resting_hr", 300.0, today - timedelta(days=1), hour=23, minute=30, tz="America/New_York"
        )
        assert late.instant.date() == today

        assert detect_for_type("resting_hr", baseline + [late], ny_calendar, 30) == []

        early = make_sample("resting_hr", 500.0, today, hour=0, minute=30, tz="America/New_York")
        [anomaly] = detect_for_type("resting_hr", baseline + [late, early], ny_calendar, 30)
        assert anomaly.value == 500.0
        assert anomaly.baseline.sample_count == 8

    @pytest.mark.parametrize("baseline_days", [0, -7])
    def test_non_positive_baseline_days_rejected(self, utc_calendar, baseline_days: int):
        with pytest.raises(InvalidInputError, match="baseline_days"):
            detect_for_type("resting_hr", [], utc_calendar, baseline_days)

    def test_unknown_sensitivity_rejected(self, utc_calendar):
        with pytest.raises(InvalidInputError, match="invalid sensitivity"):
            detect_for_type("resting_hr", [], utc_calendar, 30, "paranoid")


class TestAnomalyDetector:
    def test_scan_reports_anomalies_clean_and_insufficient(
        self, baseline_samples, make_sample, utc_calendar, today
    ):
        store = InMemorySampleStore(
            baseline_samples("resting_hr")
            + [make_sample("resting_hr", 200.0, today)]
            + baseline_samples("weight", [80.0, 80.5, 81.0, 80.2, 80.8, 80.1, 80.4])
            + [make_sample("weight", 80.3, today)]
            + [make_sample("pain", 9.0, today), make_sample("pain", 8.0, today - timedelta(days=1))]
        )
        detector = AnomalyDetector(store, utc_calendar)

        report = detector.detect()

        assert [a.metric_type for a in report.anomalies] == ["resting_hr"]
        assert report.scanned_types == ["resting_hr", "weight"]
        assert report.clean_types == ["weight"]
        assert report.insufficient_types == ["pain"]
        assert "pain" not in {a.metric_type for a in report.anomalies}
        assert report.summary == (
            "1 anomaly detected across 2 metric type(s). Affected: resting_hr."
        )
        assert report.baseline_start == today - timedelta(days=30)
        assert report.baseline_end == today

    def test_type_without_entries_today_is_not_clean(self, baseline_samples, utc_calendar):
        store = InMemorySampleStore(baseline_samples("weight"))

        report = AnomalyDetector(store, utc_calendar).detect()

        assert report.scanned_types == ["weight"]
        assert report.clean_types == []
        assert report.anomalies == []
        assert report.summary == "No anomalies detected across 1 metric type(s)."

    def test_no_sufficient_types(self, make_sample, utc_calendar, today):
        store = InMemorySampleStore([make_sample("pain", 4.0, today)])

        report = AnomalyDetector(store, utc_calendar).detect()

        assert report.scanned_types == []
        assert report.insufficient_types == ["pain"]
        assert report.summary == "No metrics with sufficient data for anomaly detection."

    def test_type_filter_and_sensitivity_override(
        self, baseline_samples, make_sample, utc_calendar, today
    ):
        store = InMemorySampleStore(
            baseline_samples("resting_hr")
            + [make_sample("resting_hr", 110.0, today)]
            + baseline_samples("weight")
            + [make_sample("weight", 500.0, today)]
        )
        detector = AnomalyDetector(store, utc_calendar)

        report = detector.detect(type_filter="resting_hr", sensitivity=Sensitivity.STRICT)

        assert report.scanned_types == ["resting_hr"]
        assert len(report.anomalies) == 1
        assert report.sensitivity is Sensitivity.STRICT

    def test_types_scanned_in_sorted_order(self, baseline_samples, make_sample, utc_calendar, today):
        samples = []
        for metric_type in ("weight", "bp_systolic", "resting_hr"):
            samples += baseline_samples(metric_type) + [make_sample(metric_type, 999.0, today)]
        detector = AnomalyDetector(InMemorySampleStore(samples), utc_calendar)

        report = detector.detect()

        assert report.scanned_types == ["bp_systolic", "resting_hr", "weight"]
        assert [a.metric_type for a in report.anomalies] == ["bp_systolic", "resting_hr", "weight"]

    def test_invalid_arguments_rejected(self, utc_calendar):
        detector = AnomalyDetector(InMemorySampleStore(), utc_calendar)

        with pytest.raises(InvalidInputError):
            detector.detect(baseline_days=0)
        with pytest.raises(InvalidInputError):
            detector.detect(sensitivity="loose")

    def test_short_baseline_window(self, make_sample, utc_calendar, today: date):
        store = InMemorySampleStore(
            [make_sample("resting_hr", 60.0 + d, today - timedelta(days=d)) for d in range(1, 21)]
            + [make_sample("resting_hr", 60.0, today)]
        )
        detector = AnomalyDetector(store, utc_calendar)

        assert detector.detect(baseline_days=5).insufficient_types == ["resting_hr"]
        assert detector.detect(baseline_days=14).scanned_types == ["resting_hr"]

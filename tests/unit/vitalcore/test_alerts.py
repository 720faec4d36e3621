"""Tests for threshold alerts in `vitalcore/services/alerts.py`."""

from datetime import timedelta

import pytest

from vitalcore.config import AlertConfig
from vitalcore.domain.models import InvalidInputError
from vitalcore.services.alerts import (
    AlertEngine,
    consecutive_threshold,
    lookback_days,
    threshold_breaches,
)
from vitalcore.services.store import InMemorySampleStore


@pytest.fixture
def pain_run(make_sample, today):
    """One elevated pain reading per day for the trailing ``days`` days."""

    def _build(days: int, value: float = 6.0, metric_type: str = "pain"):
        return [make_sample(metric_type, value, today - timedelta(days=d)) for d in range(days)]

    return _build


class TestLookback:
    @pytest.mark.parametrize("required,expected", [(3, 30), (30, 30), (35, 35), (400, 400)])
    def test_lookback_covers_requirement(self, required: int, expected: int) -> None:
        assert lookback_days(required) == expected

    def test_custom_minimum(self) -> None:
        assert lookback_days(3, min_lookback_days=7) == 7


class TestConsecutiveThreshold:
    def test_three_elevated_days(self, pain_run, utc_calendar) -> None:
        [alert] = consecutive_threshold(pain_run(3), "pain", 5.0, 3, utc_calendar)

        assert alert.metric_type == "pain"
        assert alert.consecutive_days == 3
        assert alert.threshold == 5.0
        assert alert.required_days == 3

    def test_requirement_beyond_static_lookback(self, pain_run, utc_calendar) -> None:
        [alert] = consecutive_threshold(pain_run(35), "pain", 5.0, 35, utc_calendar)

        assert alert.consecutive_days == 35

    def test_count_is_capped_at_lookback(self, pain_run, utc_calendar) -> None:
        [alert] = consecutive_threshold(pain_run(40), "pain", 5.0, 3, utc_calendar)

        assert alert.consecutive_days == 30

    def test_short_run_gives_nothing(self, pain_run, utc_calendar) -> None:
        assert consecutive_threshold(pain_run(2), "pain", 5.0, 3, utc_calendar) == []

    def test_gap_breaks_the_run(self, make_sample, utc_calendar, today) -> None:
        samples = [
            make_sample("pain", 7.0, today),
            make_sample("pain", 7.0, today - timedelta(days=1)),
            make_sample("pain", 2.0, today - timedelta(days=2)),
            make_sample("pain", 7.0, today - timedelta(days=3)),
            make_sample("pain", 7.0, today - timedelta(days=4)),
        ]

        assert consecutive_threshold(samples, "pain", 5.0, 3, utc_calendar) == []

    def test_today_must_qualify(self, pain_run, make_sample, utc_calendar, today) -> None:
        samples = [s for s in pain_run(5) if s.instant.date() != today]
        samples.append(make_sample("pain", 1.0, today))

        assert consecutive_threshold(samples, "pain", 5.0, 3, utc_calendar) == []

    def test_any_reading_at_threshold_qualifies_the_day(
        self, make_sample, utc_calendar, today
    ) -> None:
        samples = []
        for d in range(3):
            day = today - timedelta(days=d)
            samples.append(make_sample("pain", 1.0, day, hour=8))
            samples.append(make_sample("pain", 5.0, day, hour=18))

        [alert] = consecutive_threshold(samples, "pain", 5.0, 3, utc_calendar)

        assert alert.consecutive_days == 3

    def test_latest_value_is_most_recent_qualifying_reading(
        self, pain_run, make_sample, utc_calendar, today
    ) -> None:
        samples = pain_run(3) + [
            make_sample("pain", 9.0, today, hour=20),
            make_sample("pain", 8.0, today, hour=7),
        ]

        [alert] = consecutive_threshold(samples, "pain", 5.0, 3, utc_calendar)

        assert alert.latest_value == 9.0

    def test_days_are_local(self, make_sample, ny_calendar, today) -> None:
        # 21:00 in New York is the next UTC day; the local days are still consecutive
        samples = [
            make_sample("pain", 6.0, today - timedelta(days=d), hour=21, tz="America/New_York")
            for d in range(3)
        ]

        [alert] = consecutive_threshold(samples, "pain", 5.0, 3, ny_calendar)

        assert alert.consecutive_days == 3

    @pytest.mark.parametrize("required_days", [0, -1])
    def test_non_positive_requirement_rejected(self, utc_calendar, required_days: int) -> None:
        with pytest.raises(InvalidInputError, match="required_days"):
            consecutive_threshold([], "pain", 5.0, required_days, utc_calendar)


class TestThresholdBreaches:
    def test_only_todays_readings(self, make_sample, utc_calendar, today) -> None:
        samples = [
            make_sample("pain", 8.0, today - timedelta(days=1)),
            make_sample("pain", 6.0, today, hour=15),
            make_sample("pain", 3.0, today, hour=10),
            make_sample("pain", 7.0, today, hour=9),
        ]

        breaches = threshold_breaches(samples, "pain", 5.0, utc_calendar)

        assert [b.value for b in breaches] == [7.0, 6.0]
        assert all(b.threshold == 5.0 for b in breaches)


class TestAlertEngine:
    def test_consecutive_threshold_from_store(self, pain_run, utc_calendar) -> None:
        engine = AlertEngine(InMemorySampleStore(pain_run(35)), utc_calendar)

        [alert] = engine.consecutive_threshold("pain", 5.0, 35)

        assert alert.consecutive_days == 35

    def test_scan_uses_watched_types(self, pain_run, utc_calendar) -> None:
        store = InMemorySampleStore(
            pain_run(4) + pain_run(1, metric_type="soreness") + pain_run(5, metric_type="stress")
        )
        engine = AlertEngine(store, utc_calendar)

        alerts = engine.scan()

        assert [(a.metric_type, a.consecutive_days) for a in alerts] == [("pain", 4)]

    def test_scan_with_configured_policy(self, pain_run, utc_calendar) -> None:
        store = InMemorySampleStore(pain_run(2, value=3.0, metric_type="stress"))
        config = AlertConfig(threshold=3.0, consecutive_days=2, watched_types=["stress"])

        [alert] = AlertEngine(store, utc_calendar, config).scan()

        assert alert.metric_type == "stress"
        assert alert.required_days == 2

    def test_unknown_type_gives_nothing(self, utc_calendar) -> None:
        engine = AlertEngine(InMemorySampleStore(), utc_calendar)

        assert engine.consecutive_threshold("pain", 5.0, 3) == []

    def test_threshold_breaches_default_threshold(self, make_sample, utc_calendar, today) -> None:
        store = InMemorySampleStore(
            [make_sample("pain", 5.0, today), make_sample("pain", 4.9, today, hour=13)]
        )

        breaches = AlertEngine(store, utc_calendar).threshold_breaches("pain")

        assert [b.value for b in breaches] == [5.0]

    def test_required_days_zero_rejected(self, utc_calendar) -> None:
        engine = AlertEngine(InMemorySampleStore(), utc_calendar)

        with pytest.raises(InvalidInputError):
            engine.consecutive_threshold("pain", 5.0, 0)

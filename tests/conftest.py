"""Shared fixtures: a pinned "today", calendars and a sample factory."""

from collections.abc import Callable
from datetime import date, datetime, time
from zoneinfo import ZoneInfo

import pytest

from vitalcore.domain.models import Category, Sample
from vitalcore.services.localtime import LocalCalendar

# A Tuesday, two days after US daylight saving time began
TODAY = date(2026, 3, 10)

SampleFactory = Callable[..., Sample]


@pytest.fixture
def today() -> date:
    return TODAY


@pytest.fixture
def utc_calendar() -> LocalCalendar:
    return LocalCalendar.for_zone("UTC", today=TODAY)


@pytest.fixture
def ny_calendar() -> LocalCalendar:
    return LocalCalendar.for_zone("America/New_York", today=TODAY)


@pytest.fixture
def make_sample() -> SampleFactory:
    """Build a sample at a local wall-clock time (default noon UTC)."""

    def _make(
        metric_type: str,
        value: float,
        day: date,
        hour: int = 12,
        minute: int = 0,
        tz: str = "UTC",
        category: Category | None = None,
        unit: str = "",
    ) -> Sample:
        instant = datetime.combine(day, time(hour, minute), tzinfo=ZoneInfo(tz))
        return Sample(
            instant=instant,
            metric_type=metric_type,
            value=value,
            unit=unit,
            category=category,
        )

    return _make

"""Logging streak: consecutive local days, ending at a given date, with any entry."""

from collections.abc import Iterable
from datetime import date, timedelta

import structlog

from vitalcore.domain.models import require_positive
from vitalcore.services.localtime import LocalCalendar
from vitalcore.services.store import SampleStore, query_local_range

logger = structlog.get_logger(__name__)


def logging_streak(logged_dates: Iterable[date], as_of: date) -> int:
    """Walk backward from ``as_of``; stop at the first day with no entry."""
    logged = set(logged_dates)
    streak = 0
    day = as_of
    while day in logged:
        streak += 1
        day -= timedelta(days=1)
    return streak


class StreakCounter:
    """Counts the logging streak from the store across every metric type."""

    def __init__(
        self, store: SampleStore, calendar: LocalCalendar, lookback_days: int = 365
    ) -> None:
        self.store = store
        self.calendar = calendar
        self.lookback_days = require_positive("lookback_days", lookback_days)
        self.logger = logger.bind(component="streak_counter")

    def _logged_dates(self, start: date, end: date) -> set[date]:
        dates: set[date] = set()
        for metric_type in sorted(self.store.distinct_types()):
            samples = query_local_range(self.store, metric_type, self.calendar, start, end)
            dates.update(self.calendar.local_date(s.instant) for s in samples)
        return dates

    def logging_streak(self, as_of: date | None = None) -> int:
        as_of = self.calendar.today if as_of is None else as_of
        window = self.lookback_days

        while True:
            start = as_of - timedelta(days=window - 1)
            streak = logging_streak(self._logged_dates(start, as_of), as_of)
            # A streak that fills the window may continue past it
            if streak < window:
                break
            window *= 2

        self.logger.debug("logging_streak_computed", as_of=as_of.isoformat(), streak=streak)
        return streak

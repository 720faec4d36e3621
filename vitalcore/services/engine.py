"""
Facade wiring one store, one local calendar and one configuration into every
analytics component.

Callers (command layer, briefing composer, goal evaluation) build one
HealthAnalytics per request; it holds no state beyond its collaborators.
"""

from datetime import date

import structlog

from vitalcore.config import AppConfig, get_config
from vitalcore.services.alerts import AlertEngine
from vitalcore.services.anomaly import AnomalyDetector
from vitalcore.services.correlation import CorrelationEngine
from vitalcore.services.goals import GoalEvaluator
from vitalcore.services.localtime import LocalCalendar
from vitalcore.services.report import ReportGenerator
from vitalcore.services.store import SampleStore
from vitalcore.services.streaks import StreakCounter
from vitalcore.services.trend import TrendEngine

logger = structlog.get_logger(__name__)


class HealthAnalytics:
    """Entry point exposing trend, correlation, anomaly, alert, streak, goal and report APIs."""

    def __init__(self, store: SampleStore, calendar: LocalCalendar, config: AppConfig) -> None:
        self.store = store
        self.calendar = calendar
        self.config = config

        self.trend = TrendEngine(store, calendar, config.trend)
        self.correlation = CorrelationEngine(store, calendar, config.correlation)
        self.anomaly = AnomalyDetector(store, calendar, config.anomaly)
        self.alerts = AlertEngine(store, calendar, config.alerts)
        self.streaks = StreakCounter(store, calendar, config.alerts.streak_lookback_days)
        self.goals = GoalEvaluator(store, calendar)
        self.reports = ReportGenerator(store, calendar)

        logger.bind(component="health_analytics").debug(
            "analytics_initialized",
            timezone=calendar.name or str(calendar.zone),
            today=calendar.today.isoformat(),
        )

    @classmethod
    def from_config(
        cls,
        store: SampleStore,
        config: AppConfig | None = None,
        today: date | None = None,
    ) -> "HealthAnalytics":
        """Build the calendar from the configured time zone; ``today`` pins the date."""
        config = config or get_config()
        calendar = LocalCalendar.for_zone(config.timezone, today=today)
        return cls(store, calendar, config)

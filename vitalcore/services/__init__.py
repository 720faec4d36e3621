"""
Analytics services.

Each module is a stateless pass over samples supplied by a SampleStore:
aggregation policy, bucketing, trends, correlation, anomalies, alerts,
streaks, goals and reports. HealthAnalytics wires them together.
"""

from .aggregation import is_cumulative
from .alerts import AlertEngine
from .anomaly import AnomalyDetector
from .bucketing import bucket
from .correlation import CorrelationEngine
from .engine import HealthAnalytics
from .goals import Goal, GoalEvaluator
from .localtime import LocalCalendar
from .report import ReportGenerator
from .store import InMemorySampleStore, SampleStore
from .streaks import StreakCounter
from .trend import TrendEngine

__all__ = [
    "is_cumulative",
    "bucket",
    "LocalCalendar",
    "SampleStore",
    "InMemorySampleStore",
    "TrendEngine",
    "CorrelationEngine",
    "AnomalyDetector",
    "AlertEngine",
    "StreakCounter",
    "Goal",
    "GoalEvaluator",
    "ReportGenerator",
    "HealthAnalytics",
]

"""
Goal evaluation.

A goal's current value is the metric aggregated over the goal's timeframe
(today, the ISO week so far, or the month so far) with the same aggregation
policy that bucketing uses: intake goals sum, body-measurement goals take the
latest reading. Storing and editing goals is the store's business.
"""

from collections.abc import Sequence
from datetime import date
from enum import Enum

import structlog
from pydantic import BaseModel, ConfigDict, Field

from vitalcore.domain.models import Category, Period, Sample
from vitalcore.services.aggregation import aggregate, is_cumulative, is_medication_stream
from vitalcore.services.bucketing import period_start
from vitalcore.services.localtime import LocalCalendar
from vitalcore.services.store import SampleStore, query_local_range

logger = structlog.get_logger(__name__)

# Tolerance for "equal" goals
EQUAL_TOLERANCE = 0.01


class GoalDirection(str, Enum):
    ABOVE = "above"
    BELOW = "below"
    EQUAL = "equal"


class GoalTimeframe(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"

    @property
    def period(self) -> Period:
        return {
            GoalTimeframe.DAILY: Period.DAY,
            GoalTimeframe.WEEKLY: Period.WEEK,
            GoalTimeframe.MONTHLY: Period.MONTH,
        }[self]


class Goal(BaseModel):
    """A target for one metric type over a calendar timeframe."""

    model_config = ConfigDict(frozen=True)

    metric_type: str = Field(min_length=1)
    target_value: float
    direction: GoalDirection
    timeframe: GoalTimeframe = GoalTimeframe.DAILY

    def is_met(self, value: float) -> bool:
        if self.direction is GoalDirection.ABOVE:
            return value >= self.target_value
        if self.direction is GoalDirection.BELOW:
            return value <= self.target_value
        return abs(value - self.target_value) < EQUAL_TOLERANCE


class GoalStatus(BaseModel):
    model_config = ConfigDict(frozen=True)

    goal: Goal
    window_start: date
    window_end: date
    current_value: float | None
    is_met: bool
    progress: str | None


def timeframe_window(timeframe: GoalTimeframe, today: date) -> tuple[date, date]:
    """The timeframe's period up to and including today."""
    return period_start(today, timeframe.period), today


def format_progress(goal: Goal, current: float) -> str:
    target = goal.target_value
    if goal.direction is GoalDirection.BELOW:
        if current <= target:
            return f"at target ({current:g} <= {target:g})"
        return f"{current - target:g} to go ({current:g} -> {target:g})"
    if goal.direction is GoalDirection.ABOVE:
        if current >= target:
            return f"target met ({current:g} >= {target:g})"
        return f"{target - current:g} remaining ({current:g}/{target:g})"
    if goal.is_met(current):
        return f"at target ({current:g})"
    return f"current: {current:g}, target: {target:g}"


def evaluate_goal(
    goal: Goal,
    samples: Sequence[Sample],
    calendar: LocalCalendar,
    medication: bool | None = None,
) -> GoalStatus:
    """Current value and met/unmet state of ``goal`` as of the calendar's today.

    A goal tracks either the medication intakes of its type or the regular
    readings, never a mix. ``medication`` decides which; by default the type
    counts as medication only when every one of its ``samples`` is.
    """
    matching = [s for s in samples if s.metric_type == goal.metric_type]
    if medication is None:
        medication = is_medication_stream(matching)

    start, end = timeframe_window(goal.timeframe, calendar.today)
    in_window = sorted(
        (
            s
            for s in matching
            if (s.resolved_category is Category.MEDICATION) == medication
            and start <= calendar.local_date(s.instant) <= end
        ),
        key=lambda s: s.instant,
    )

    cumulative = is_cumulative(goal.metric_type, Category.MEDICATION if medication else None)
    current = aggregate((s.value for s in in_window), cumulative)
    return GoalStatus(
        goal=goal,
        window_start=start,
        window_end=end,
        current_value=current,
        is_met=current is not None and goal.is_met(current),
        progress=None if current is None else format_progress(goal, current),
    )


class GoalEvaluator:
    """Evaluates goals against the store."""

    def __init__(self, store: SampleStore, calendar: LocalCalendar) -> None:
        self.store = store
        self.calendar = calendar
        self.logger = logger.bind(component="goal_evaluator")

    def status(self, goals: Sequence[Goal], metric_type: str | None = None) -> list[GoalStatus]:
        results = []
        for goal in goals:
            if metric_type is not None and goal.metric_type != metric_type:
                continue
            medication = is_medication_stream(
                self.store.query_by_type_and_range(goal.metric_type)
            )
            start, end = timeframe_window(goal.timeframe, self.calendar.today)
            samples = query_local_range(self.store, goal.metric_type, self.calendar, start, end)
            results.append(evaluate_goal(goal, samples, self.calendar, medication))

        self.logger.debug(
            "goals_evaluated",
            goals=len(results),
            met=sum(1 for r in results if r.is_met),
        )
        return results

"""
Domain models for personal health-metric analytics.

These models represent the core business concepts and are framework-agnostic.
They use Pydantic for validation; every result the engine returns is one of
these plain, immutable models.
"""

import math
from datetime import UTC, date, datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator


class InvalidInputError(ValueError):
    """Raised when a caller passes malformed input (never for missing data)."""


class Category(str, Enum):
    """Broad grouping of metric types."""

    BODY = "body"
    EXERCISE = "exercise"
    SLEEP = "sleep"
    NUTRITION = "nutrition"
    PAIN = "pain"
    HABIT = "habit"
    MEDICATION = "medication"
    CUSTOM = "custom"


# Largest accepted reading; sums of millions of readings stay finite
MAX_ABS_VALUE = 1e15

_TYPE_CATEGORIES: dict[str, Category] = {
    "weight": Category.BODY,
    "body_fat": Category.BODY,
    "waist": Category.BODY,
    "cardio": Category.EXERCISE,
    "strength": Category.EXERCISE,
    "calories_burned": Category.EXERCISE,
    "sleep_hours": Category.SLEEP,
    "sleep_quality": Category.SLEEP,
    "bed_time": Category.SLEEP,
    "wake_time": Category.SLEEP,
    "calories": Category.NUTRITION,
    "calories_in": Category.NUTRITION,
    "calories_out": Category.NUTRITION,
    "water": Category.NUTRITION,
    "pain": Category.PAIN,
    "soreness": Category.PAIN,
    "standing_breaks": Category.HABIT,
    "screen_time": Category.HABIT,
}


def category_for_type(metric_type: str) -> Category:
    """Default category for a metric type name; unknown names are custom."""
    return _TYPE_CATEGORIES.get(metric_type, Category.CUSTOM)


class Period(str, Enum):
    """Calendar period used for bucketing."""

    DAY = "day"
    WEEK = "week"
    MONTH = "month"


class Sensitivity(str, Enum):
    """How far outside the normal range a value must fall to be anomalous."""

    RELAXED = "relaxed"
    MODERATE = "moderate"
    STRICT = "strict"

    @property
    def factor(self) -> float:
        """IQR multiplier for the anomaly bounds."""
        return _SENSITIVITY_FACTORS[self]


_SENSITIVITY_FACTORS = {
    Sensitivity.RELAXED: 2.0,
    Sensitivity.MODERATE: 1.5,
    Sensitivity.STRICT: 1.0,
}


class Deviation(str, Enum):
    ABOVE = "above"
    BELOW = "below"


class Severity(str, Enum):
    """Anomaly severity, ordered from least to most urgent."""

    INFO = "info"
    WARNING = "warning"
    ALERT = "alert"


class TrendDirection(str, Enum):
    INCREASING = "increasing"
    DECREASING = "decreasing"
    STABLE = "stable"


class CorrelationStrength(str, Enum):
    WEAK = "weak"
    MODERATE = "moderate"
    STRONG = "strong"


def parse_period(value: "Period | str") -> Period:
    """Accept ``day|week|month`` or ``daily|weekly|monthly``."""
    if isinstance(value, Period):
        return value
    normalized = str(value).strip().lower()
    aliases = {"daily": "day", "weekly": "week", "monthly": "month"}
    try:
        return Period(aliases.get(normalized, normalized))
    except ValueError:
        raise InvalidInputError(
            f"invalid period: {value!r} (expected day/week/month)"
        ) from None


def parse_sensitivity(value: "Sensitivity | str") -> Sensitivity:
    if isinstance(value, Sensitivity):
        return value
    try:
        return Sensitivity(str(value).strip().lower())
    except ValueError:
        raise InvalidInputError(
            f"invalid sensitivity: {value!r} (expected relaxed/moderate/strict)"
        ) from None


def require_positive(name: str, value: int) -> int:
    """Fail fast on non-positive window sizes and day counts."""
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise InvalidInputError(f"{name} must be a positive integer, got {value!r}")
    return value


def check_value(v: float) -> float:
    """Reject values that are not finite or whose sums could overflow."""
    if not math.isfinite(v):
        raise ValueError(f"sample value must be finite, got {v}")
    if abs(v) > MAX_ABS_VALUE:
        raise ValueError(f"sample value must be within +/-{MAX_ABS_VALUE:g}, got {v}")
    return v


class Sample(BaseModel):
    """A single logged observation. Owned by the store; the engine only reads it."""

    model_config = ConfigDict(frozen=True)  # Immutable for better reasoning

    instant: datetime = Field(description="UTC instant the sample was recorded")
    metric_type: str = Field(min_length=1)
    value: float
    unit: str = ""
    category: Category | None = Field(
        default=None, description="Defaults to the category derived from metric_type"
    )

    @field_validator("instant")
    @classmethod
    def normalize_to_utc(cls, v: datetime) -> datetime:
        # Naive instants are stored as UTC by convention
        if v.tzinfo is None:
            return v.replace(tzinfo=UTC)
        return v.astimezone(UTC)

    @field_validator("value")
    @classmethod
    def value_must_be_finite(cls, v: float) -> float:
        return check_value(v)

    @property
    def resolved_category(self) -> Category:
        if self.category is not None:
            return self.category
        return category_for_type(self.metric_type)


class Bucket(BaseModel):
    """A calendar-aligned aggregation window for one metric stream."""

    model_config = ConfigDict(frozen=True)

    label: str
    period_start: date
    period_end: date
    values: list[tuple[datetime, float]] = Field(min_length=1)
    cumulative: bool

    @field_validator("values")
    @classmethod
    def values_must_be_bounded(
        cls, v: list[tuple[datetime, float]]
    ) -> list[tuple[datetime, float]]:
        for _, value in v:
            check_value(value)
        return v

    @computed_field(return_type=float)
    def aggregate(self) -> float:
        """Sum for cumulative streams, otherwise the chronologically last value."""
        if self.cumulative:
            return math.fsum(v for _, v in self.values)
        return self.values[-1][1]

    @computed_field(return_type=int)
    def count(self) -> int:
        return len(self.values)

    @computed_field(return_type=float)
    def minimum(self) -> float:
        return min(v for _, v in self.values)

    @computed_field(return_type=float)
    def maximum(self) -> float:
        return max(v for _, v in self.values)

    @computed_field(return_type=float)
    def mean(self) -> float:
        return math.fsum(v for _, v in self.values) / len(self.values)


class Baseline(BaseModel):
    """Quartile summary of a metric's historical values."""

    model_config = ConfigDict(frozen=True)

    q1: float
    median: float
    q3: float
    iqr: float = Field(ge=0.0)
    sample_count: int = Field(ge=0)


class Bounds(BaseModel):
    model_config = ConfigDict(frozen=True)

    lower: float
    upper: float


class AnomalyRecord(BaseModel):
    """A single sample from today that falls outside its personal baseline."""

    model_config = ConfigDict(frozen=True)

    metric_type: str
    value: float
    instant: datetime
    baseline: Baseline
    bounds: Bounds
    deviation: Deviation
    severity: Severity
    summary: str


class AnomalyReport(BaseModel):
    """Outcome of an anomaly scan across one or more metric types."""

    model_config = ConfigDict(frozen=True)

    baseline_start: date
    baseline_end: date
    baseline_days: int
    sensitivity: Sensitivity
    anomalies: list[AnomalyRecord]
    scanned_types: list[str]
    clean_types: list[str]
    insufficient_types: list[str] = Field(
        default_factory=list, description="Types skipped for lack of baseline data"
    )
    summary: str


class TrendResult(BaseModel):
    """Bucketed series plus its regression line. Empty when fewer than two buckets."""

    model_config = ConfigDict(frozen=True)

    metric_type: str
    period: Period
    buckets: list[Bucket]
    direction: TrendDirection | None = None
    slope: float | None = None
    intercept: float | None = None
    projection: float | None = None
    projection_periods: float | None = Field(
        default=None, description="How many periods past the last bucket were projected"
    )

    @computed_field(return_type=bool)
    def insufficient_data(self) -> bool:
        return self.slope is None


class CorrelationResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    metric_a: str
    metric_b: str
    coefficient: float = Field(ge=-1.0, le=1.0)
    paired_count: int = Field(ge=0)
    strength: CorrelationStrength
    insufficient_data: bool


class AlertRecord(BaseModel):
    """A metric that stayed at or above its threshold for enough consecutive days."""

    model_config = ConfigDict(frozen=True)

    metric_type: str
    consecutive_days: int = Field(ge=1)
    latest_value: float
    threshold: float
    required_days: int = Field(ge=1)


class ThresholdBreach(BaseModel):
    """A single sample logged today at or above a threshold."""

    model_config = ConfigDict(frozen=True)

    metric_type: str
    value: float
    instant: datetime
    threshold: float

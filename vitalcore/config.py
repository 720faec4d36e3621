"""
Configuration management with environment variable support and validation.

Design principles:
- Every policy knob (severity cutoffs, clamp ratios, lookbacks) is a named,
  overridable value rather than a literal buried in an algorithm
- Validation at startup (fail fast)
- Type safety with Pydantic
"""

import logging
import os
from functools import lru_cache
from typing import Literal, cast
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import structlog
from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator, model_validator

from vitalcore.domain.models import Sensitivity, parse_sensitivity

# Load environment variables from .env file
load_dotenv()

logger = structlog.get_logger(__name__)


class AnomalyConfig(BaseModel):
    """Personal-baseline anomaly detection settings."""

    baseline_days: int = Field(default=30, gt=0, description="Days of history in the baseline")
    sensitivity: Sensitivity = Field(
        default=Sensitivity.MODERATE, description="IQR multiplier preset for the bounds"
    )
    min_baseline_samples: int = Field(
        default=7, ge=2, description="Fewer baseline samples than this skips the type"
    )
    warning_cutoff: float = Field(
        default=1.5, gt=0.0, description="IQR widths past the quartile for a warning"
    )
    alert_cutoff: float = Field(
        default=2.0, gt=0.0, description="IQR widths past the quartile for an alert"
    )

    @model_validator(mode="after")
    def alert_above_warning(self) -> "AnomalyConfig":
        if self.alert_cutoff < self.warning_cutoff:
            raise ValueError("alert_cutoff must be >= warning_cutoff")
        return self


class TrendConfig(BaseModel):
    """Regression and projection settings."""

    window_size: int = Field(default=12, gt=0, description="Trailing periods to fit")
    projection_days: float = Field(
        default=30.0, gt=0.0, description="How far past the last bucket to project"
    )
    stable_slope: float = Field(
        default=0.01, ge=0.0, description="|slope| at or below this is stable"
    )
    clamp_low_ratio: float = Field(
        default=0.5, ge=0.0, description="Projection floor as a ratio of the last aggregate"
    )
    clamp_high_ratio: float = Field(
        default=1.5, gt=0.0, description="Projection ceiling as a ratio of the last aggregate"
    )

    @model_validator(mode="after")
    def clamp_ratios_ordered(self) -> "TrendConfig":
        if self.clamp_low_ratio > self.clamp_high_ratio:
            raise ValueError("clamp_low_ratio must be <= clamp_high_ratio")
        return self


class CorrelationConfig(BaseModel):
    """Pearson correlation settings."""

    window_days: int = Field(default=30, gt=0, description="Trailing days to correlate")
    min_paired: int = Field(default=2, ge=2, description="Minimum days present in both series")
    moderate_cutoff: float = Field(default=0.3, gt=0.0, lt=1.0)
    strong_cutoff: float = Field(default=0.7, gt=0.0, le=1.0)

    @model_validator(mode="after")
    def bands_ordered(self) -> "CorrelationConfig":
        if self.moderate_cutoff >= self.strong_cutoff:
            raise ValueError("moderate_cutoff must be < strong_cutoff")
        return self


class AlertConfig(BaseModel):
    """Consecutive-day threshold alerts and logging streaks."""

    threshold: float = Field(default=5.0, description="Per-day value that counts as elevated")
    consecutive_days: int = Field(
        default=3, gt=0, description="Trailing elevated days needed to raise an alert"
    )
    min_lookback_days: int = Field(
        default=30,
        gt=0,
        description="Static minimum lookback; the scan always covers consecutive_days too",
    )
    watched_types: list[str] = Field(
        default_factory=lambda: ["pain", "soreness"],
        description="Types scanned by default for consecutive-day alerts",
    )
    streak_lookback_days: int = Field(
        default=365, gt=0, description="Initial window for the logging streak walk"
    )


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Logging level"
    )
    format: Literal["json", "console"] = Field(default="json", description="Logging format")


class AppConfig(BaseModel):
    """Main application configuration combining all subsystems."""

    # Environment
    environment: Literal["development", "staging", "production"] = Field(
        default="development", description="Environment"
    )
    debug: bool = Field(default=False, description="Enable debug mode")
    timezone: str = Field(default="UTC", description="IANA zone for local calendar dates")

    # Component configs
    anomaly: AnomalyConfig = Field(default_factory=AnomalyConfig)
    trend: TrendConfig = Field(default_factory=TrendConfig)
    correlation: CorrelationConfig = Field(default_factory=CorrelationConfig)
    alerts: AlertConfig = Field(default_factory=AlertConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @field_validator("timezone")
    @classmethod
    def timezone_must_exist(cls, v: str) -> str:
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError, OSError) as e:
            raise ValueError(f"unknown time zone: {v!r}") from e
        return v

    @model_validator(mode="after")
    def debug_only_in_dev(self) -> "AppConfig":
        """Ensure debug mode is only allowed in development environment."""
        if self.debug and self.environment != "development":
            raise ValueError("debug mode is only allowed in development environment")
        return self


def load_config_from_env() -> AppConfig:
    """Load configuration from environment variables with validation."""

    def _env_to_literal(val: str) -> Literal["development", "staging", "production"]:
        v = val.strip().lower()
        if v in {"dev", "development"}:
            return "development"
        if v in {"stage", "staging"}:
            return "staging"
        return "production"

    def _level_to_literal(val: str) -> Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]:
        v = val.strip().upper()
        return cast(
            Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
            v if v in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"} else "INFO",
        )

    def _parse_list(val: str | None, default: list[str]) -> list[str]:
        if val is None:
            return default
        return [item.strip() for item in val.split(",") if item.strip()]

    # Detect environment
    environment = _env_to_literal(os.getenv("ENVIRONMENT", "development"))
    debug = environment == "development"

    anomaly_config = AnomalyConfig(
        baseline_days=int(os.getenv("ANOMALY_BASELINE_DAYS", "30")),
        sensitivity=parse_sensitivity(os.getenv("ANOMALY_SENSITIVITY", "moderate")),
    )

    trend_config = TrendConfig(
        window_size=int(os.getenv("TREND_WINDOW_SIZE", "12")),
        projection_days=float(os.getenv("TREND_PROJECTION_DAYS", "30")),
    )

    correlation_config = CorrelationConfig(
        window_days=int(os.getenv("CORRELATION_WINDOW_DAYS", "30")),
    )

    alert_config = AlertConfig(
        threshold=float(os.getenv("ALERT_THRESHOLD", "5")),
        consecutive_days=int(os.getenv("ALERT_CONSECUTIVE_DAYS", "3")),
        watched_types=_parse_list(os.getenv("ALERT_WATCHED_TYPES"), ["pain", "soreness"]),
    )

    logging_config = LoggingConfig(
        level=_level_to_literal(os.getenv("LOG_LEVEL", "INFO")),
        format="console" if debug else "json",
    )

    return AppConfig(
        environment=environment,
        debug=debug,
        timezone=os.getenv("VITALS_TIMEZONE", "UTC"),
        anomaly=anomaly_config,
        trend=trend_config,
        correlation=correlation_config,
        alerts=alert_config,
        logging=logging_config,
    )


@lru_cache
def get_config() -> AppConfig:
    """Get cached application configuration."""
    return load_config_from_env()


def configure_logging(config: LoggingConfig | None = None) -> None:
    """Install the structlog processor chain (production-ready observability)."""
    config = config or get_config().logging
    renderer = (
        structlog.dev.ConsoleRenderer()
        if config.format == "console"
        else structlog.processors.JSONRenderer()
    )
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(getattr(logging, config.level)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def validate_config() -> AppConfig:
    """Validate configuration at startup."""
    try:
        config = get_config()
    except ValueError as e:
        logger.error("config_validation_failed", error=str(e))
        raise

    logger.info(
        "config_loaded",
        environment=config.environment,
        timezone=config.timezone,
        sensitivity=config.anomaly.sensitivity.value,
        baseline_days=config.anomaly.baseline_days,
    )
    return config

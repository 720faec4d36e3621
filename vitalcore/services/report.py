"""Period report: per-type counts and descriptive statistics over a date range."""

import math
from collections import defaultdict
from collections.abc import Sequence
from datetime import date

import structlog
from pydantic import BaseModel, ConfigDict, Field

from vitalcore.domain.models import InvalidInputError, Sample
from vitalcore.services.localtime import LocalCalendar
from vitalcore.services.store import SampleStore, query_local_range

logger = structlog.get_logger(__name__)


class MetricSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    metric_type: str
    count: int = Field(ge=1)
    mean: float
    minimum: float
    maximum: float
    unit: str


class Report(BaseModel):
    model_config = ConfigDict(frozen=True)

    start: date
    end: date
    days_with_entries: int = Field(ge=0)
    total_entries: int = Field(ge=0)
    metrics: list[MetricSummary]


def summarize(
    samples: Sequence[Sample], start: date, end: date, calendar: LocalCalendar
) -> Report:
    """Summarize samples whose local date lies in ``[start, end]``, grouped by type."""
    if start > end:
        raise InvalidInputError(f"start {start} is after end {end}")

    in_range = [s for s in samples if start <= calendar.local_date(s.instant) <= end]
    grouped: dict[str, list[Sample]] = defaultdict(list)
    for sample in in_range:
        grouped[sample.metric_type].append(sample)

    metrics = []
    for metric_type in sorted(grouped):
        members = grouped[metric_type]
        values = [s.value for s in members]
        metrics.append(
            MetricSummary(
                metric_type=metric_type,
                count=len(values),
                mean=math.fsum(values) / len(values),
                minimum=min(values),
                maximum=max(values),
                unit=members[0].unit,
            )
        )

    return Report(
        start=start,
        end=end,
        days_with_entries=len({calendar.local_date(s.instant) for s in in_range}),
        total_entries=len(in_range),
        metrics=metrics,
    )


class ReportGenerator:
    def __init__(self, store: SampleStore, calendar: LocalCalendar) -> None:
        self.store = store
        self.calendar = calendar
        self.logger = logger.bind(component="report_generator")

    def generate(self, start: date, end: date) -> Report:
        if start > end:
            raise InvalidInputError(f"start {start} is after end {end}")
        samples: list[Sample] = []
        for metric_type in sorted(self.store.distinct_types()):
            samples.extend(query_local_range(self.store, metric_type, self.calendar, start, end))

        report = summarize(samples, start, end, self.calendar)
        self.logger.debug(
            "report_generated",
            start=start.isoformat(),
            end=end.isoformat(),
            total_entries=report.total_entries,
        )
        return report

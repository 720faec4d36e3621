"""
Period bucketing: group samples into calendar-aligned day, week or month buckets.

A sample's bucket is decided by its local calendar date, never by the UTC date
it is stored under. Labels (``YYYY-MM-DD``, ``YYYY-Www``, ``YYYY-MM``) sort
lexicographically in chronological order.
"""

import calendar as _calendar
from collections import defaultdict
from collections.abc import Sequence
from datetime import date, timedelta

import structlog

from vitalcore.domain.models import (
    Bucket,
    InvalidInputError,
    Period,
    Sample,
    parse_period,
    require_positive,
)
from vitalcore.services.aggregation import stream_is_cumulative
from vitalcore.services.localtime import LocalCalendar

logger = structlog.get_logger(__name__)


def period_start(day: date, period: Period) -> date:
    if period is Period.DAY:
        return day
    if period is Period.WEEK:
        return day - timedelta(days=day.weekday())
    return day.replace(day=1)


def period_end(day: date, period: Period) -> date:
    """Last date (inclusive) of the period containing ``day``."""
    start = period_start(day, period)
    if period is Period.DAY:
        return start
    if period is Period.WEEK:
        return start + timedelta(days=6)
    last_day = _calendar.monthrange(start.year, start.month)[1]
    return start.replace(day=last_day)


def period_label(day: date, period: Period) -> str:
    if period is Period.DAY:
        return day.isoformat()
    if period is Period.WEEK:
        iso_year, iso_week, _ = day.isocalendar()
        return f"{iso_year}-W{iso_week:02d}"
    return f"{day.year:04d}-{day.month:02d}"


def shift_period(day: date, period: Period, periods_back: int) -> date:
    """Start of the period ``periods_back`` periods before the one holding ``day``."""
    start = period_start(day, period)
    if period is Period.DAY:
        return start - timedelta(days=periods_back)
    if period is Period.WEEK:
        return start - timedelta(weeks=periods_back)
    month_index = start.year * 12 + (start.month - 1) - periods_back
    return date(month_index // 12, month_index % 12 + 1, 1)


def window_start(today: date, period: Period, window_size: int) -> date:
    """First date of a window of ``window_size`` trailing periods ending with today's."""
    require_positive("window_size", window_size)
    return shift_period(today, period, window_size - 1)


def bucket(
    samples: Sequence[Sample],
    period: Period | str,
    calendar: LocalCalendar,
    start: date | None = None,
    end: date | None = None,
    cumulative: bool | None = None,
) -> list[Bucket]:
    """Group one metric stream into ordered, populated buckets.

    Args:
        samples: Samples of a single metric type, in any order.
        period: Bucket width.
        calendar: Supplies the time zone used to derive each local date.
        start: Inclusive local start date; earlier samples are dropped.
        end: Inclusive local end date; later samples are dropped.
        cumulative: Override for the aggregation policy; normally derived
            from the stream itself.

    Returns:
        Buckets in chronological order. Periods without samples are absent.
    """
    period = parse_period(period)
    if start is not None and end is not None and start > end:
        raise InvalidInputError(f"start {start} is after end {end}")

    if cumulative is None:
        cumulative = stream_is_cumulative(samples)

    grouped: dict[date, list[Sample]] = defaultdict(list)
    dropped = 0
    for sample in samples:
        local_day = calendar.local_date(sample.instant)
        if (start is not None and local_day < start) or (end is not None and local_day > end):
            dropped += 1
            continue
        grouped[period_start(local_day, period)].append(sample)

    buckets = []
    for first_day in sorted(grouped):
        members = sorted(grouped[first_day], key=lambda s: s.instant)
        buckets.append(
            Bucket(
                label=period_label(first_day, period),
                period_start=first_day,
                period_end=period_end(first_day, period),
                values=[(s.instant, s.value) for s in members],
                cumulative=cumulative,
            )
        )

    logger.debug(
        "samples_bucketed",
        period=period.value,
        buckets=len(buckets),
        dropped=dropped,
        cumulative=cumulative,
    )
    return buckets

"""
Read-side contract between the analytics engine and sample storage.

The engine never touches the on-disk layout; it only needs ascending samples
for one type within an optional date range, and the set of known types.
"""

from collections import defaultdict
from collections.abc import Iterable
from datetime import date, timedelta
from typing import Protocol

import structlog

from vitalcore.domain.models import Sample
from vitalcore.services.localtime import LocalCalendar

logger = structlog.get_logger(__name__)


class SampleStore(Protocol):
    """
    Protocol defining how the engine reads samples.

    Why Protocol over ABC: Structural typing, easier test doubles, less coupling.
    Bounds are inclusive calendar dates in the store's own calendar; the engine
    widens them and re-filters by local date itself.
    """

    def query_by_type_and_range(
        self, metric_type: str, start: date | None = None, end: date | None = None
    ) -> list[Sample]:
        """Samples of one type ordered by instant; unknown types yield []."""
        ...

    def distinct_types(self) -> set[str]:
        """Every type with at least one recorded sample."""
        ...


class InMemorySampleStore:
    """
    Dict-backed SampleStore.

    Range bounds are compared against the UTC date of each instant, which is
    how a store keyed on UTC timestamps behaves.
    """

    def __init__(self, samples: Iterable[Sample] = ()) -> None:
        self._by_type: dict[str, list[Sample]] = defaultdict(list)
        self.logger = logger.bind(component="in_memory_store")
        self.extend(samples)

    def add(self, sample: Sample) -> None:
        if not isinstance(sample, Sample):
            raise TypeError(f"expected Sample, got {type(sample).__name__}")
        bucket = self._by_type[sample.metric_type]
        bucket.append(sample)
        bucket.sort(key=lambda s: s.instant)

    def extend(self, samples: Iterable[Sample]) -> None:
        count = 0
        for sample in samples:
            self.add(sample)
            count += 1
        if count:
            self.logger.debug("samples_added", count=count)

    def query_by_type_and_range(
        self, metric_type: str, start: date | None = None, end: date | None = None
    ) -> list[Sample]:
        samples = self._by_type.get(metric_type, [])
        return [
            s
            for s in samples
            if (start is None or s.instant.date() >= start)
            and (end is None or s.instant.date() <= end)
        ]

    def distinct_types(self) -> set[str]:
        return {t for t, samples in self._by_type.items() if samples}

    def __len__(self) -> int:
        return sum(len(samples) for samples in self._by_type.values())


def query_local_range(
    store: SampleStore,
    metric_type: str,
    calendar: LocalCalendar,
    start: date | None = None,
    end: date | None = None,
) -> list[Sample]:
    """Samples whose *local* date falls within ``[start, end]``.

    The store filters on its own calendar, so the query is widened by a day on
    each side and narrowed again here. Entries near local midnight would
    otherwise land on the wrong side of the range.
    """
    widened_start = start - timedelta(days=1) if start is not None else None
    widened_end = end + timedelta(days=1) if end is not None else None
    samples = store.query_by_type_and_range(metric_type, widened_start, widened_end)
    return [
        s
        for s in samples
        if (start is None or calendar.local_date(s.instant) >= start)
        and (end is None or calendar.local_date(s.instant) <= end)
    ]

"""
Local calendar capability.

Every "which day is this sample on" and "what is today" question goes through a
LocalCalendar, passed explicitly to each component. Nothing reads the clock
after a calendar is built.
"""

from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from vitalcore.domain.models import InvalidInputError


@dataclass(frozen=True)
class LocalCalendar:
    """A time zone plus the local date treated as "today"."""

    zone: ZoneInfo
    today: date
    name: str = field(default="", compare=False)

    @classmethod
    def for_zone(
        cls, tz_name: str, today: date | None = None, now: datetime | None = None
    ) -> "LocalCalendar":
        """Build a calendar for an IANA zone name.

        ``today`` wins over ``now``; with neither, the current instant is read
        once here and frozen into the calendar.
        """
        try:
            zone = ZoneInfo(tz_name)
        except (ZoneInfoNotFoundError, ValueError, OSError) as e:
            raise InvalidInputError(f"unknown time zone: {tz_name!r}") from e

        if today is None:
            instant = now if now is not None else datetime.now(UTC)
            if instant.tzinfo is None:
                instant = instant.replace(tzinfo=UTC)
            today = instant.astimezone(zone).date()
        return cls(zone=zone, today=today, name=tz_name)

    def local_date(self, instant: datetime) -> date:
        """The calendar date of ``instant`` in this zone, never the UTC date."""
        return self.local_datetime(instant).date()

    def local_datetime(self, instant: datetime) -> datetime:
        if instant.tzinfo is None:
            instant = instant.replace(tzinfo=UTC)
        return instant.astimezone(self.zone)

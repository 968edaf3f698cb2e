"""Resort-local wall clock and operational (park) day helpers."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Callable, Optional

import structlog
from dateutil import parser as date_parser
from zoneinfo import ZoneInfo

from .models import DateTime

LOGGER = structlog.get_logger(__name__)


def get_zone(timezone_name: str) -> ZoneInfo:
    """Return a ZoneInfo instance, defaulting to UTC on failure."""
    try:
        return ZoneInfo(timezone_name)
    except Exception:  # pragma: no cover - fallback
        LOGGER.warning("clock.unknown_timezone", timezone=timezone_name)
        return ZoneInfo("UTC")


class ResortClock:
    """Reads the current time in the resort's timezone.

    The operational day lags the calendar date: until ``rollover_hour`` the
    parks are still operating on the previous day's schedule.  Nothing here is
    cached, every call reads the wall clock again.
    """

    def __init__(
        self,
        timezone_name: str,
        *,
        rollover_hour: int = 3,
        now: Optional[Callable[[], datetime]] = None,
    ):
        self._zone = get_zone(timezone_name)
        self._rollover = timedelta(hours=rollover_hour)
        self._now = now or (lambda: datetime.now(tz=self._zone))

    @property
    def zone(self) -> ZoneInfo:
        return self._zone

    def current(self) -> datetime:
        moment = self._now()
        if moment.tzinfo is None:
            return moment.replace(tzinfo=self._zone)
        return moment.astimezone(self._zone)

    def date_time_strings(self, moment: Optional[datetime] = None) -> DateTime:
        """Format a moment (default: now) as resort-local date and time strings."""
        if moment is None:
            moment = self.current()
        elif moment.tzinfo is not None:
            moment = moment.astimezone(self._zone)
        return DateTime(date=moment.strftime("%Y-%m-%d"), time=moment.strftime("%H:%M:%S"))

    def now(self) -> DateTime:
        return self.date_time_strings()

    def today(self) -> str:
        return self.current().strftime("%Y-%m-%d")

    def park_day(self) -> str:
        return (self.current() - self._rollover).strftime("%Y-%m-%d")

    def split_date_time(self, value: str) -> DateTime:
        """Parse an ISO 8601 timestamp from the API into resort-local strings."""
        return self.date_time_strings(date_parser.isoparse(value))

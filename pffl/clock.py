"""Injectable time sources.

Engines never read the wall clock directly; they are handed a clock, a
zero-argument callable returning a timezone-aware UTC datetime. Tests use
FixedClock to step across day boundaries and cooldown expiries.
"""

from datetime import date, datetime, timedelta, timezone
from typing import Callable

Clock = Callable[[], datetime]


def system_clock() -> datetime:
    """Current UTC time."""
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def utc_date(value: datetime) -> date:
    """Calendar date of a timestamp, in UTC."""
    return as_utc(value).date()


class FixedClock:
    """A clock that only moves when told to."""

    def __init__(self, now: datetime):
        self.now = as_utc(now)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        """Move forward by a timedelta given as keyword arguments (hours=2, days=1, ...)."""
        self.now = self.now + timedelta(**kwargs)
        return self.now

    def set(self, now: datetime) -> None:
        self.now = as_utc(now)

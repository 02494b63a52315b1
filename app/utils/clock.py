"""Time sources.

All timestamps in the system are naive UTC datetimes, which is also what
Motor hands back from MongoDB by default. Services take a clock instead of
reading the wall clock so they can be driven from tests.
"""
from datetime import datetime, timezone
from typing import Protocol


def as_naive_utc(instant: datetime) -> datetime:
    """
    Convert an instant to naive UTC.

    Naive values are taken to be UTC already and returned unchanged.

    Example:
        >>> as_naive_utc(datetime(2026, 1, 2, 11, 0, tzinfo=timezone.utc))
        datetime.datetime(2026, 1, 2, 11, 0)
    """
    if instant.tzinfo is None:
        return instant
    return instant.astimezone(timezone.utc).replace(tzinfo=None)


class Clock(Protocol):
    """Anything that can tell the current instant."""

    def now(self) -> datetime:
        ...


class SystemClock:
    """Wall clock, UTC."""

    def now(self) -> datetime:
        return as_naive_utc(datetime.now(timezone.utc))


class FixedClock:
    """Clock frozen at a given instant (moved manually)."""

    def __init__(self, instant: datetime):
        self.instant = instant

    def now(self) -> datetime:
        return self.instant

    def set(self, instant: datetime) -> None:
        self.instant = instant


system_clock = SystemClock()


def get_clock() -> Clock:
    """Dependency returning the process clock."""
    return system_clock

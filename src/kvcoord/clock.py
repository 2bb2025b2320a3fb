"""
Clock abstraction used for lease expiry.

Lease decisions compare timestamps produced by the acquiring client's clock,
so the clock is injected rather than read globally. Tests use ManualClock to
step time deterministically.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Protocol, runtime_checkable

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


@runtime_checkable
class Clock(Protocol):
    """Source of the current UTC time."""

    def now(self) -> datetime:
        """Return the current time as a timezone-aware UTC datetime."""
        ...


class SystemClock:
    """Clock backed by the system wall clock."""

    def now(self) -> datetime:
        return datetime.now(UTC)


class ManualClock:
    """
    Clock that only moves when told to.

    Example:
        >>> clock = ManualClock()
        >>> start = clock.now()
        >>> clock.advance(timedelta(milliseconds=150))
        >>> clock.now() - start
        datetime.timedelta(microseconds=150000)
    """

    def __init__(self, start: datetime | None = None) -> None:
        self._now = start or datetime(2024, 1, 1, tzinfo=UTC)

    def now(self) -> datetime:
        return self._now

    def advance(self, delta: timedelta | float) -> None:
        """Move the clock forward by a timedelta or a number of seconds."""
        if not isinstance(delta, timedelta):
            delta = timedelta(seconds=delta)
        if delta < timedelta(0):
            raise ValueError(f"Cannot move clock backwards by {delta}")
        self._now += delta

    def set(self, value: datetime) -> None:
        """Jump to an absolute instant."""
        self._now = value


def to_epoch_millis(value: datetime) -> int:
    """
    Convert a datetime to integer milliseconds since the Unix epoch.

    Naive datetimes are treated as UTC.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return (value - _EPOCH) // timedelta(milliseconds=1)


def from_epoch_millis(value: int) -> datetime:
    """Convert milliseconds since the Unix epoch to a UTC datetime."""
    return _EPOCH + timedelta(milliseconds=value)


def as_timedelta(duration: timedelta | float) -> timedelta:
    """Normalise a duration given as timedelta or seconds."""
    if isinstance(duration, timedelta):
        return duration
    return timedelta(seconds=duration)

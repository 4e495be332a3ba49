"""
clock.py - Time sources for the capital ledger

Every ledger operation reads the clock exactly once and evaluates all of its
deadline checks against that single reading.

Classes:
- Clock: Protocol defining the time interface
- LogicalClock: Manually advanced clock for simulations and tests
- SystemClock: Wall-clock time in UTC
"""

from datetime import datetime, timezone
from typing import Optional, Protocol, runtime_checkable


@runtime_checkable
class Clock(Protocol):
    """Protocol for time sources. now() must never go backwards."""

    def now(self) -> datetime:
        ...


class LogicalClock:
    """
    Clock that only moves when told to.

    Time can only move forward, never backward.
    """

    def __init__(self, initial_time: Optional[datetime] = None):
        self._current_time: datetime = initial_time or datetime(1970, 1, 1)

    def now(self) -> datetime:
        return self._current_time

    def advance_time(self, new_time: datetime) -> None:
        """
        Advance the clock to a new time.

        Raises:
            ValueError: If new_time is before the current time, or is naive
                        where the clock is timezone-aware (or the reverse)
        """
        if (new_time.utcoffset() is None) != (self._current_time.utcoffset() is None):
            raise ValueError(
                f"Cannot mix naive and timezone-aware times: {new_time} vs {self._current_time}"
            )
        if new_time < self._current_time:
            raise ValueError(
                f"Cannot move time backwards: {new_time} < {self._current_time}"
            )
        self._current_time = new_time

    def __repr__(self):
        return f"LogicalClock({self._current_time.isoformat()})"


class SystemClock:
    """
    Wall clock in UTC. Readings are clamped so they never decrease.

    Readings are timezone-aware, so a ledger on this clock takes aware
    datetimes for end times and deadlines; naive ones are rejected with
    the operation's reason (InvalidSchedule or DeadlineOutOfRange).
    """

    def __init__(self):
        self._last: Optional[datetime] = None

    def now(self) -> datetime:
        reading = datetime.now(timezone.utc)
        if self._last is not None and reading < self._last:
            reading = self._last
        self._last = reading
        return reading

"""
Time source abstraction for the scheduler and execution log.

The host (or a test) decides what "now" is. SystemClock reads local wall
clock time; MockClock is set and advanced explicitly for simulated time.

Design Principle:
    Scheduled tasks are expressed as a local time of day ("06:30"), so
    clocks return naive local datetimes. Timezone and DST handling belong
    to the host that constructs the clock.
"""

import re
from abc import ABC, abstractmethod
from datetime import datetime, time, timedelta
from typing import Optional

from home_automation.core.errors import InvalidTimeError

_TIME_OF_DAY = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


def parse_time_of_day(expr: str) -> time:
    """
    Parse a 24-hour time of day.

    Args:
        expr: Time string in strict HH:MM format ("00:00" through "23:59")

    Returns:
        Parsed time value

    Raises:
        InvalidTimeError: If the string is not valid HH:MM
    """
    if not isinstance(expr, str):
        raise InvalidTimeError(f"Time must be an HH:MM string, got {expr!r}")
    match = _TIME_OF_DAY.match(expr.strip())
    if not match:
        raise InvalidTimeError(f"Invalid time '{expr}': expected HH:MM between 00:00 and 23:59")
    return time(int(match.group(1)), int(match.group(2)))


def format_time_of_day(value: time) -> str:
    return value.strftime("%H:%M")


class Clock(ABC):
    """Abstract source of the current time."""

    @abstractmethod
    def get_current_time(self) -> datetime:
        """
        Get current time.

        Returns:
            Current local datetime
        """
        pass


class SystemClock(Clock):
    """Wall-clock time of the host."""

    def get_current_time(self) -> datetime:
        return datetime.now()


class MockClock(Clock):
    """
    Settable clock for testing and simulation.

    Example:
        clock = MockClock(datetime(2025, 1, 15, 5, 59))
        clock.advance(minutes=1)
    """

    def __init__(self, start: Optional[datetime] = None) -> None:
        self._current_time = start or datetime(2025, 1, 1, 0, 0)

    def set_current_time(self, dt: datetime) -> None:
        """Set current time for testing."""
        self._current_time = dt

    def advance(self, **delta: float) -> datetime:
        """Move time forward by a timedelta expressed as keyword arguments."""
        self._current_time += timedelta(**delta)
        return self._current_time

    def get_current_time(self) -> datetime:
        return self._current_time

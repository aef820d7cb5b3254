# backend/tutorlink/core/clock.py
"""
Injectable source of "now".

Services never read the system time directly; they ask a ``Clock``. The
API wires in ``SystemClock`` and tests use ``FixedClock`` to pin time.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Optional

from .timezone_utils import now_in_operating_timezone, to_operating_naive


class Clock(ABC):
    """Returns the current naive wall-clock time in the operating timezone."""

    @abstractmethod
    def now(self) -> datetime:
        """Current time."""

    def today(self) -> datetime:
        """Midnight at the start of the current day."""
        current = self.now()
        return current.replace(hour=0, minute=0, second=0, microsecond=0)


class SystemClock(Clock):
    def __init__(self, timezone_name: Optional[str] = None) -> None:
        self.timezone_name = timezone_name

    def now(self) -> datetime:
        return now_in_operating_timezone(self.timezone_name)


class FixedClock(Clock):
    """A clock that only moves when told to."""

    def __init__(self, current: datetime) -> None:
        self._current = to_operating_naive(current)

    def now(self) -> datetime:
        return self._current

    def set(self, current: datetime) -> None:
        self._current = to_operating_naive(current)

    def advance(self, **kwargs: float) -> datetime:
        self._current = self._current + timedelta(**kwargs)
        return self._current


_default_clock: Clock = SystemClock()


def get_clock() -> Clock:
    return _default_clock

"""
Clock abstraction.

"Today" decides whether a date is past or future and what "hier" means,
so it is injected everywhere instead of read from the system.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo


class Clock(ABC):
    """Source of the current time."""

    @abstractmethod
    def now(self) -> datetime:
        pass

    def today(self) -> date:
        return self.now().date()


class SystemClock(Clock):
    """Wall clock in the restaurant's timezone."""

    def __init__(self, timezone: str = "Europe/Paris"):
        self._zone = ZoneInfo(timezone)

    def now(self) -> datetime:
        return datetime.now(self._zone)


class FixedClock(Clock):
    """A clock that only moves when told to. Used in tests."""

    def __init__(self, moment: datetime):
        self._moment = moment

    def now(self) -> datetime:
        return self._moment

    def set(self, moment: datetime) -> None:
        self._moment = moment

    def advance(self, **delta) -> None:
        self._moment = self._moment + timedelta(**delta)

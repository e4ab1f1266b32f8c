"""
Injectable clock.

Services never call ``date.today()``: notice deadlines, overdue status and
the expiry sweep all read the business date from ``Clock.today()``.
``SystemClock`` is the only place real time enters the engine.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime, time, timezone

_NOON = time(12, 0, tzinfo=timezone.utc)


class Clock(ABC):

    @abstractmethod
    def now(self) -> datetime: ...

    def today(self) -> date:
        return self.now().date()


class SystemClock(Clock):
    """Wall-clock time in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """A clock that only moves when told to."""

    def __init__(self, fixed_time: datetime):
        self._fixed_time = fixed_time

    @classmethod
    def on(cls, day: date) -> "DeterministicClock":
        """Noon UTC on ``day``."""
        return cls(datetime.combine(day, _NOON))

    def now(self) -> datetime:
        return self._fixed_time

    def set_date(self, day: date) -> None:
        self._fixed_time = datetime.combine(day, _NOON)

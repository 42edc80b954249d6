"""
Clock -- injectable time source.

Responsibility:
    Lets services and engines receive "now" as a value instead of calling
    ``datetime.now()`` or ``date.today()`` inline.  Every logical operation
    reads the clock once and threads the instant through as a parameter.

Architecture position:
    Kernel > Domain -- pure, zero I/O except ``SystemClock``, the one
    sanctioned wall-clock read.

Failure modes:
    - ``DeterministicClock`` rejects naive datetimes.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta, timezone, tzinfo

from billing_kernel.domain.dates import to_calendar_date


class Clock(ABC):
    """
    Abstract clock interface.

    Guarantees:
        - ``now()`` returns a timezone-aware ``datetime``.
        - ``today(tz)`` is ``now()`` expressed as a calendar date in ``tz``.
    """

    @abstractmethod
    def now(self) -> datetime:
        """Get the current time."""
        ...

    def today(self, tz: tzinfo = timezone.utc) -> date:
        """Current calendar date in the given reference timezone."""
        return to_calendar_date(self.now(), tz)


class SystemClock(Clock):
    """Production clock returning the real UTC time."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Test clock with controlled time.

    ``now()`` returns the same instant on repeated calls until
    ``advance()`` or ``set_time()`` is called.
    """

    def __init__(self, fixed_time: datetime | None = None):
        fixed_time = fixed_time or datetime(2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
        self._check_aware(fixed_time)
        self._fixed_time = fixed_time
        self._offset = timedelta()

    @classmethod
    def at_date(cls, day: date, hour: int = 12) -> "DeterministicClock":
        """Clock fixed at ``hour``:00 UTC on ``day``."""
        return cls(datetime(day.year, day.month, day.day, hour, tzinfo=timezone.utc))

    def now(self) -> datetime:
        return self._fixed_time + self._offset

    def set_time(self, time: datetime) -> None:
        """Set the clock to a specific time."""
        self._check_aware(time)
        self._fixed_time = time
        self._offset = timedelta()

    def advance(self, seconds: int = 0, *, days: int = 0) -> None:
        """Advance the clock."""
        self._offset += timedelta(days=days, seconds=seconds)

    @staticmethod
    def _check_aware(value: datetime) -> None:
        if value.tzinfo is None:
            raise ValueError("DeterministicClock requires a timezone-aware datetime")

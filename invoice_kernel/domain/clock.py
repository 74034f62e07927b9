"""
Clock -- where "now" and "today" come from.

Responsibility:
    Invoices need the current date twice: as the default issue date and as
    the year/month/day fed to the numbering patterns.  Services receive a
    Clock instead of calling ``datetime.now()`` so that both are
    reproducible in tests.

Architecture position:
    Kernel > Domain.  SystemClock is the only place that reads the wall
    clock; engines take dates as arguments and never see a Clock.

Business date:
    ``today()`` is the calendar date in the clock's business timezone, so
    an invoice created at 23:30 in Auckland is dated in Auckland, not in
    UTC.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta, timezone, tzinfo


class Clock(ABC):
    """
    Injected time source.

    ``now()`` is always timezone-aware.  ``business_tz`` decides which
    calendar day ``today()`` falls on.
    """

    business_tz: tzinfo = timezone.utc

    @abstractmethod
    def now(self) -> datetime:
        """Current instant."""
        ...

    def today(self) -> date:
        """Current calendar date in ``business_tz``."""
        return self.now().astimezone(self.business_tz).date()


class SystemClock(Clock):
    """Wall clock.  Timestamps in UTC, business dates in ``business_tz``."""

    def __init__(self, business_tz: tzinfo | None = None):
        if business_tz is not None:
            self.business_tz = business_tz

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Frozen clock for tests.

    Time only moves when ``advance()`` or ``set_time()`` is called.
    Defaults to 2024-01-01 12:00 UTC.
    """

    DEFAULT_TIME = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __init__(
        self,
        fixed_time: datetime | None = None,
        business_tz: tzinfo | None = None,
    ):
        self._current = fixed_time or self.DEFAULT_TIME
        if business_tz is not None:
            self.business_tz = business_tz

    @classmethod
    def on(cls, day: date, business_tz: tzinfo | None = None) -> "DeterministicClock":
        """Clock frozen at noon of ``day`` in the business timezone."""
        tz = business_tz or cls.business_tz
        return cls(datetime(day.year, day.month, day.day, 12, tzinfo=tz), business_tz=tz)

    def now(self) -> datetime:
        return self._current

    def set_time(self, time: datetime) -> None:
        self._current = time

    def advance(self, seconds: int = 1, *, days: int = 0) -> None:
        """Move forward by ``seconds`` (and optionally whole ``days``)."""
        self._current += timedelta(days=days, seconds=seconds)

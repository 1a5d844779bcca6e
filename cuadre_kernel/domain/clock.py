"""
Clock -- Injectable time source and the agencies' business calendar.

Responsibility:
    Provides the clock services receive by injection, so no engine or
    service calls ``datetime.now()`` directly, and the calendar rules a
    cuadre depends on: which local date "today" is for an agency in
    Venezuela, and the Monday..Sunday week a date belongs to.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O (except SystemClock,
    which is the one sanctioned I/O boundary for time).

Failure modes:
    - pytz.UnknownTimeZoneError for an unknown timezone name.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta, timezone

import pytz

BUSINESS_TIMEZONE = "America/Caracas"


def as_utc(value: datetime | None) -> datetime | None:
    """Normalize a stored timestamp to aware UTC.

    SQLite hands back naive datetimes even for ``DateTime(timezone=True)``
    columns; those are stored in UTC by this package.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def week_bounds(day: date) -> tuple[date, date]:
    """Monday and Sunday of the cuadre week containing ``day``."""
    monday = day - timedelta(days=day.weekday())
    return monday, monday + timedelta(days=6)


def week_start(day: date) -> date:
    return week_bounds(day)[0]


class Clock(ABC):
    """
    Abstract clock interface.

    Guarantees:
        - ``now_utc()`` returns an aware UTC ``datetime``.
        - ``today()`` is the calendar date in the business timezone, which
          is what a cashier session and a cuadre are keyed by.
    """

    def __init__(self, tz_name: str = BUSINESS_TIMEZONE):
        self._tz = pytz.timezone(tz_name)

    @abstractmethod
    def now_utc(self) -> datetime:
        ...

    def now(self) -> datetime:
        """Current time in the business timezone."""
        return self.now_utc().astimezone(self._tz)

    def today(self) -> date:
        return self.now().date()


class SystemClock(Clock):
    """Production clock that returns actual system time."""

    def now_utc(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Test clock with controlled time.

    ``now_utc()`` returns the same value on repeated calls until
    ``advance()`` or ``set_time()`` is called.
    """

    def __init__(
        self,
        fixed_time: datetime | None = None,
        tz_name: str = BUSINESS_TIMEZONE,
    ):
        super().__init__(tz_name)
        # 16:00 UTC is noon in Caracas, safely inside the business day.
        self._fixed_time = as_utc(fixed_time) or datetime(
            2024, 1, 1, 16, 0, 0, tzinfo=timezone.utc
        )
        self._advance_seconds = 0

    def now_utc(self) -> datetime:
        return self._fixed_time + timedelta(seconds=self._advance_seconds)

    def set_time(self, time: datetime) -> None:
        self._fixed_time = as_utc(time)
        self._advance_seconds = 0

    def advance(self, seconds: int = 1) -> None:
        self._advance_seconds += seconds

    def tick(self) -> datetime:
        """Advance by 1 second and return the new UTC time."""
        self.advance(1)
        return self.now_utc()

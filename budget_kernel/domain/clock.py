"""
Clock -- injectable time source.

Responsibility:
    Services and the aggregator stamp ``created_at``/``updated_at``/
    ``approved_at`` from a ``Clock``, and the variance and forecast reports
    default their ``as_of`` date to ``clock.today()``.  Nothing in the
    engine calls ``datetime.now()`` directly, so a ``DeterministicClock``
    pins both audit timestamps and "months elapsed" in tests.

Architecture position:
    Kernel > Domain.  ``SystemClock`` is the only place that reads real time.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta, timezone

from budget_kernel.domain.fiscal import (
    calendar_month_for,
    calendar_year_for,
    fiscal_month_of,
    fiscal_year_of,
)


class Clock(ABC):
    """
    Time source handed to services by constructor injection.

    ``now()`` is timezone-aware; ``today()`` is its UTC calendar date.
    """

    @abstractmethod
    def now(self) -> datetime:
        ...

    def today(self) -> date:
        return self.now().astimezone(timezone.utc).date()

    def fiscal_position(self) -> tuple[int, int]:
        """(fiscal_year, fiscal_month) of today."""
        today = self.today()
        return fiscal_year_of(today), fiscal_month_of(today)


class SystemClock(Clock):

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Frozen clock for tests.

    ``now()`` is stable until the clock is moved with ``advance``,
    ``set_time``, ``set_date`` or ``set_fiscal_month``.  Defaults to noon
    UTC on 1 Jan 2024 (fiscal 2024, month 7).
    """

    def __init__(self, fixed_time: datetime | None = None):
        self._base = fixed_time or datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
        self._offset = timedelta()

    def now(self) -> datetime:
        return self._base + self._offset

    def set_time(self, time: datetime) -> None:
        self._base = time
        self._offset = timedelta()

    def set_date(self, day: date) -> None:
        """Noon UTC on ``day``."""
        self.set_time(datetime(day.year, day.month, day.day, 12, 0, 0, tzinfo=timezone.utc))

    def set_fiscal_month(self, fiscal_year: int, fiscal_month: int, day: int = 15) -> None:
        """Move to ``day`` of the calendar month holding ``fiscal_month``."""
        self.set_date(
            date(
                calendar_year_for(fiscal_year, fiscal_month),
                calendar_month_for(fiscal_month),
                day,
            )
        )

    def advance(self, seconds: int = 1) -> None:
        self._offset += timedelta(seconds=seconds)

    def tick(self) -> datetime:
        """Advance one second and return the new time."""
        self.advance(1)
        return self.now()

"""
Fiscal calendar -- July-to-June fiscal years.

Responsibility:
    Map between calendar dates and fiscal periods.  Fiscal year N runs from
    July 1 of year N-1 through June 30 of year N.  Fiscal month 1 is July,
    fiscal month 12 is June.

Architecture position:
    Kernel > Domain -- pure functions, zero I/O.

Invariants enforced:
    - fiscal_month_of() always returns a value in 1..12.
    - elapsed_fiscal_months() is clamped to 0..12.
"""

from datetime import date

FISCAL_YEAR_START_MONTH = 7
MONTHS_PER_YEAR = 12


def fiscal_year_bounds(fiscal_year: int) -> tuple[date, date]:
    """Return (start_date, end_date) for the fiscal year, both inclusive."""
    return (
        date(fiscal_year - 1, FISCAL_YEAR_START_MONTH, 1),
        date(fiscal_year, FISCAL_YEAR_START_MONTH - 1, 30),
    )


def fiscal_month_of(day: date) -> int:
    """Fiscal month (1..12) of a calendar date.

    >>> fiscal_month_of(date(2025, 7, 4)), fiscal_month_of(date(2026, 6, 30))
    (1, 12)
    """
    return (day.month - FISCAL_YEAR_START_MONTH) % MONTHS_PER_YEAR + 1


def calendar_month_for(fiscal_month: int) -> int:
    """Calendar month (1..12) for a fiscal month (1..12)."""
    if not 1 <= fiscal_month <= MONTHS_PER_YEAR:
        raise ValueError(f"fiscal month out of range: {fiscal_month}")
    return (fiscal_month + FISCAL_YEAR_START_MONTH - 2) % MONTHS_PER_YEAR + 1


def calendar_year_for(fiscal_year: int, fiscal_month: int) -> int:
    """Calendar year in which the given fiscal month of the fiscal year falls."""
    if calendar_month_for(fiscal_month) >= FISCAL_YEAR_START_MONTH:
        return fiscal_year - 1
    return fiscal_year


def fiscal_year_of(day: date) -> int:
    """Fiscal year containing the given date."""
    if day.month >= FISCAL_YEAR_START_MONTH:
        return day.year + 1
    return day.year


def elapsed_fiscal_months(fiscal_year: int, as_of: date) -> int:
    """
    Number of fiscal months of ``fiscal_year`` that have started by ``as_of``.

    The month containing ``as_of`` counts as elapsed.  Dates before the fiscal
    year yield 0; dates after it yield 12.
    """
    start, end = fiscal_year_bounds(fiscal_year)
    if as_of < start:
        return 0
    if as_of > end:
        return MONTHS_PER_YEAR
    return fiscal_month_of(as_of)

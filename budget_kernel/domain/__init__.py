"""Kernel domain layer: clock, workflow types and fiscal calendar."""

from budget_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from budget_kernel.domain.fiscal import (
    FISCAL_YEAR_START_MONTH,
    MONTHS_PER_YEAR,
    calendar_month_for,
    calendar_year_for,
    elapsed_fiscal_months,
    fiscal_month_of,
    fiscal_year_bounds,
    fiscal_year_of,
)
from budget_kernel.domain.workflow import Guard, Transition, Workflow

__all__ = [
    "Clock",
    "SystemClock",
    "DeterministicClock",
    "Guard",
    "Transition",
    "Workflow",
    "FISCAL_YEAR_START_MONTH",
    "MONTHS_PER_YEAR",
    "fiscal_year_bounds",
    "fiscal_month_of",
    "calendar_month_for",
    "calendar_year_for",
    "fiscal_year_of",
    "elapsed_fiscal_months",
]

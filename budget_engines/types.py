"""
budget_engines.types -- Value types shared by the calculation engines.

``BudgetPeriodAmount`` is the one-month row of a line's period table and
``AllocationMethod`` names the spreading policy.  ``LineFigures`` and
``BudgetFigures`` are the structural views the analyzers need; the
planning module's DTOs satisfy them without the engines importing that
module.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any, Protocol


class AllocationMethod(str, Enum):
    """Policy used to spread an annual amount across twelve fiscal months."""

    EQUAL = "equal"
    FRONT_LOADED = "front_loaded"
    BACK_LOADED = "back_loaded"
    CUSTOM = "custom"


@dataclass(frozen=True)
class BudgetPeriodAmount:
    """
    One fiscal month's budget/actual pair for one line.

    Monthly fields describe that month alone; ``ytd_*`` fields are
    cumulative from fiscal month 1 through this one.
    """

    period: int
    fiscal_month: int
    calendar_month: int
    calendar_year: int
    budget_amount: Decimal
    actual_amount: Decimal = Decimal("0")
    committed_amount: Decimal = Decimal("0")
    available_amount: Decimal = Decimal("0")
    variance: Decimal = Decimal("0")
    variance_percent: Decimal = Decimal("0")
    ytd_budget: Decimal = Decimal("0")
    ytd_actual: Decimal = Decimal("0")
    ytd_variance: Decimal = Decimal("0")
    ytd_variance_percent: Decimal = Decimal("0")

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-safe dict (amounts as strings)."""
        return {
            "period": self.period,
            "fiscal_month": self.fiscal_month,
            "calendar_month": self.calendar_month,
            "calendar_year": self.calendar_year,
            "budget_amount": str(self.budget_amount),
            "actual_amount": str(self.actual_amount),
            "committed_amount": str(self.committed_amount),
            "available_amount": str(self.available_amount),
            "variance": str(self.variance),
            "variance_percent": str(self.variance_percent),
            "ytd_budget": str(self.ytd_budget),
            "ytd_actual": str(self.ytd_actual),
            "ytd_variance": str(self.ytd_variance),
            "ytd_variance_percent": str(self.ytd_variance_percent),
        }


class LineFigures(Protocol):
    """What the analyzers read from a budget line."""

    @property
    def id(self) -> Any: ...
    @property
    def account_id(self) -> str: ...
    @property
    def account_code(self) -> str: ...
    @property
    def account_name(self) -> str: ...
    @property
    def account_type(self) -> str: ...
    @property
    def account_sub_type(self) -> str | None: ...
    @property
    def annual_budget(self) -> Decimal: ...
    @property
    def annual_actual(self) -> Decimal: ...
    @property
    def annual_committed(self) -> Decimal: ...
    @property
    def annual_available(self) -> Decimal: ...
    @property
    def annual_variance(self) -> Decimal: ...
    @property
    def variance_percent(self) -> Decimal: ...
    @property
    def period_amounts(self) -> Sequence[BudgetPeriodAmount]: ...


class BudgetFigures(Protocol):
    """What the analyzers read from a budget header."""

    @property
    def id(self) -> Any: ...
    @property
    def name(self) -> str: ...
    @property
    def fiscal_year(self) -> int: ...
    @property
    def total_budget(self) -> Decimal: ...
    @property
    def total_actual(self) -> Decimal: ...
    @property
    def total_variance(self) -> Decimal: ...
    @property
    def variance_percent(self) -> Decimal: ...

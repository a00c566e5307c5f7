"""
budget_engines.rollup -- Line and budget roll-up derivation.

Responsibility:
    Derive a line's annual actual/committed/available/variance figures
    from its period table, and a budget's roll-up totals from its lines.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  The Budget Aggregator in
    ``budget_modules.planning.aggregator`` owns the read and the
    conditional write; this module only computes.

Invariants enforced:
    - available = budget - actual - committed
    - variance = budget - actual
    - variance_percent = variance / budget * 100, 0 when budget is 0
    - Deterministic: identical inputs produce identical outputs, which
      makes the aggregator's recalculation idempotent.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from decimal import Decimal
from typing import Protocol

from budget_engines.tracer import traced_engine
from budget_engines.types import BudgetPeriodAmount
from budget_kernel.db.types import ZERO, percent_of


class LineAmounts(Protocol):
    @property
    def annual_budget(self) -> Decimal: ...
    @property
    def annual_actual(self) -> Decimal: ...
    @property
    def annual_committed(self) -> Decimal: ...


@dataclass(frozen=True)
class LineTotals:
    """Annual figures of one line."""

    annual_budget: Decimal
    annual_actual: Decimal
    annual_committed: Decimal
    annual_available: Decimal
    annual_variance: Decimal
    variance_percent: Decimal


@dataclass(frozen=True)
class RollupTotals:
    """Roll-up totals of one budget."""

    total_budget: Decimal
    total_actual: Decimal
    total_committed: Decimal
    total_available: Decimal
    total_variance: Decimal
    variance_percent: Decimal
    line_count: int = 0


def derive_line_totals(
    annual_budget: Decimal,
    periods: Sequence[BudgetPeriodAmount],
) -> LineTotals:
    """Line annual figures: budget as given, actual/committed summed from periods."""
    actual = sum((p.actual_amount for p in periods), ZERO)
    committed = sum((p.committed_amount for p in periods), ZERO)
    variance = annual_budget - actual
    return LineTotals(
        annual_budget=annual_budget,
        annual_actual=actual,
        annual_committed=committed,
        annual_available=annual_budget - actual - committed,
        annual_variance=variance,
        variance_percent=percent_of(variance, annual_budget),
    )


@traced_engine("rollup", "1.0")
def compute_rollup(lines: Iterable[LineAmounts]) -> RollupTotals:
    """Sum line figures into budget roll-up totals."""
    total_budget = ZERO
    total_actual = ZERO
    total_committed = ZERO
    count = 0
    for line in lines:
        total_budget += line.annual_budget
        total_actual += line.annual_actual
        total_committed += line.annual_committed
        count += 1
    total_variance = total_budget - total_actual
    return RollupTotals(
        total_budget=total_budget,
        total_actual=total_actual,
        total_committed=total_committed,
        total_available=total_budget - total_actual - total_committed,
        total_variance=total_variance,
        variance_percent=percent_of(total_variance, total_budget),
        line_count=count,
    )

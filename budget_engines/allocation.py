"""
budget_engines.allocation -- Period Allocator.

Responsibility:
    Distribute an annual amount across the twelve fiscal months of a
    fiscal year under one of four policies (equal, front-loaded,
    back-loaded, custom) and derive the per-month period table (monthly
    available/variance and year-to-date running totals).

Architecture position:
    Engines -- pure calculation layer, zero I/O, no clock access.
    Consumed by the planning module when a line is created, reallocated,
    revised or receives actual spend.

Invariants enforced:
    - Sum invariant: the twelve budget amounts sum to the annual amount
      exactly.  Each month is floored to the allocation quantum and the
      whole flooring remainder is absorbed by fiscal month 12.
    - Non-negativity: for a non-negative annual amount no month is
      negative (equal, front_loaded, back_loaded).
    - Period tables are always rebuilt in full, never patched.

Failure modes:
    - InvalidAllocationError when custom amounts are not exactly twelve
      values or do not sum to the annual amount.

Usage:
    from budget_engines.allocation import allocate_periods
    from budget_engines.types import AllocationMethod

    periods = allocate_periods(
        annual_amount=Decimal("1000000"),
        method=AllocationMethod.EQUAL,
        fiscal_year=2026,
    )
    periods[0].budget_amount    # Decimal("83333")
    periods[11].budget_amount   # Decimal("83337")
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import replace
from decimal import ROUND_FLOOR, Decimal, InvalidOperation

from budget_config.schema import AllocationPolicy
from budget_engines.tracer import traced_engine
from budget_engines.types import AllocationMethod, BudgetPeriodAmount
from budget_kernel.db.types import ZERO, percent_of, to_decimal
from budget_kernel.domain.fiscal import (
    MONTHS_PER_YEAR,
    calendar_month_for,
    calendar_year_for,
)
from budget_kernel.exceptions import InvalidAllocationError, InvalidFiscalMonthError
from budget_kernel.logging_config import get_logger

logger = get_logger("engines.allocation")

HALF_YEAR = MONTHS_PER_YEAR // 2


def _floor(value: Decimal, quantum: Decimal) -> Decimal:
    return value.quantize(quantum, rounding=ROUND_FLOOR)


def _split(
    annual: Decimal,
    first_half_share: Decimal,
    quantum: Decimal,
) -> list[Decimal]:
    first = _floor(annual * first_half_share / HALF_YEAR, quantum)
    second = _floor(annual * (Decimal("1") - first_half_share) / HALF_YEAR, quantum)
    amounts = [first] * HALF_YEAR + [second] * HALF_YEAR
    amounts[-1] += annual - sum(amounts, ZERO)
    return amounts


def _custom(annual: Decimal, custom_amounts: Sequence) -> list[Decimal]:
    if len(custom_amounts) != MONTHS_PER_YEAR:
        raise InvalidAllocationError(
            f"custom allocation needs exactly {MONTHS_PER_YEAR} amounts, "
            f"got {len(custom_amounts)}"
        )
    try:
        amounts = [to_decimal(a) for a in custom_amounts]
    except (TypeError, InvalidOperation) as exc:
        raise InvalidAllocationError(f"non-numeric custom amount ({exc})") from None
    total = sum(amounts, ZERO)
    if total != annual:
        raise InvalidAllocationError(
            f"custom amounts sum to {total}, expected {annual}"
        )
    return amounts


@traced_engine(
    "allocation", "1.0",
    fingerprint_fields=("annual_amount", "method", "custom_amounts"),
)
def allocate_amounts(
    *,
    annual_amount: Decimal,
    method: AllocationMethod,
    custom_amounts: Sequence[Decimal] | None = None,
    policy: AllocationPolicy | None = None,
) -> tuple[Decimal, ...]:
    """
    Split ``annual_amount`` into twelve fiscal-month budget amounts.

    ``custom`` with no amounts falls back to ``equal``.
    """
    policy = policy or AllocationPolicy()
    annual = to_decimal(annual_amount)
    method = AllocationMethod(method)
    quantum = Decimal(1).scaleb(-policy.decimal_places)

    if method == AllocationMethod.CUSTOM and custom_amounts:
        amounts = _custom(annual, custom_amounts)
    elif method == AllocationMethod.FRONT_LOADED:
        amounts = _split(annual, policy.front_loaded_share, quantum)
    elif method == AllocationMethod.BACK_LOADED:
        amounts = _split(annual, Decimal("1") - policy.front_loaded_share, quantum)
    else:
        base = _floor(annual / MONTHS_PER_YEAR, quantum)
        amounts = [base] * MONTHS_PER_YEAR
        amounts[-1] += annual - base * MONTHS_PER_YEAR

    logger.debug(
        "periods_allocated",
        extra={
            "method": method.value,
            "annual_amount": str(annual),
            "final_period_amount": str(amounts[-1]),
        },
    )
    return tuple(amounts)


def build_period_table(
    fiscal_year: int,
    budget_amounts: Sequence[Decimal],
    actual_amounts: Sequence[Decimal] | None = None,
    committed_amounts: Sequence[Decimal] | None = None,
) -> tuple[BudgetPeriodAmount, ...]:
    """
    Derive the full twelve-row period table from per-month amounts.

    Monthly available/variance/variance% and the YTD running totals are
    recomputed from scratch; nothing is carried over from a prior table.
    """
    if len(budget_amounts) != MONTHS_PER_YEAR:
        raise InvalidAllocationError(
            f"period table needs {MONTHS_PER_YEAR} budget amounts, "
            f"got {len(budget_amounts)}"
        )
    actuals = actual_amounts or [ZERO] * MONTHS_PER_YEAR
    committed = committed_amounts or [ZERO] * MONTHS_PER_YEAR

    rows: list[BudgetPeriodAmount] = []
    ytd_budget = ZERO
    ytd_actual = ZERO
    for idx in range(MONTHS_PER_YEAR):
        fiscal_month = idx + 1
        budget = budget_amounts[idx]
        actual = actuals[idx]
        commit = committed[idx]
        ytd_budget += budget
        ytd_actual += actual
        variance = budget - actual
        ytd_variance = ytd_budget - ytd_actual
        rows.append(
            BudgetPeriodAmount(
                period=fiscal_month,
                fiscal_month=fiscal_month,
                calendar_month=calendar_month_for(fiscal_month),
                calendar_year=calendar_year_for(fiscal_year, fiscal_month),
                budget_amount=budget,
                actual_amount=actual,
                committed_amount=commit,
                available_amount=budget - actual - commit,
                variance=variance,
                variance_percent=percent_of(variance, budget),
                ytd_budget=ytd_budget,
                ytd_actual=ytd_actual,
                ytd_variance=ytd_variance,
                ytd_variance_percent=percent_of(ytd_variance, ytd_budget),
            )
        )
    return tuple(rows)


def allocate_periods(
    *,
    annual_amount: Decimal,
    method: AllocationMethod,
    fiscal_year: int,
    custom_amounts: Sequence[Decimal] | None = None,
    policy: AllocationPolicy | None = None,
) -> tuple[BudgetPeriodAmount, ...]:
    """Allocate ``annual_amount`` into a fresh period table with zero actuals."""
    amounts = allocate_amounts(
        annual_amount=annual_amount,
        method=method,
        custom_amounts=custom_amounts,
        policy=policy,
    )
    return build_period_table(fiscal_year, amounts)


def reallocate_periods(
    existing: Sequence[BudgetPeriodAmount],
    *,
    annual_amount: Decimal,
    method: AllocationMethod,
    fiscal_year: int,
    custom_amounts: Sequence[Decimal] | None = None,
    policy: AllocationPolicy | None = None,
) -> tuple[BudgetPeriodAmount, ...]:
    """
    Reallocate the budget column for a new annual amount or method.

    Each month's recorded actual and committed amounts are kept.
    """
    amounts = allocate_amounts(
        annual_amount=annual_amount,
        method=method,
        custom_amounts=custom_amounts,
        policy=policy,
    )
    by_month = {p.fiscal_month: p for p in existing}
    actuals = [
        by_month[m].actual_amount if m in by_month else ZERO
        for m in range(1, MONTHS_PER_YEAR + 1)
    ]
    committed = [
        by_month[m].committed_amount if m in by_month else ZERO
        for m in range(1, MONTHS_PER_YEAR + 1)
    ]
    return build_period_table(fiscal_year, amounts, actuals, committed)


def with_period_actual(
    periods: Sequence[BudgetPeriodAmount],
    *,
    fiscal_year: int,
    fiscal_month: int,
    actual_amount: Decimal,
    committed_amount: Decimal | None = None,
) -> tuple[BudgetPeriodAmount, ...]:
    """
    Return a rebuilt period table with one month's actual (and optionally
    committed) amount replaced.
    """
    if not 1 <= fiscal_month <= MONTHS_PER_YEAR:
        raise InvalidFiscalMonthError(fiscal_month)
    updated = []
    for p in sorted(periods, key=lambda row: row.fiscal_month):
        if p.fiscal_month == fiscal_month:
            p = replace(
                p,
                actual_amount=to_decimal(actual_amount),
                committed_amount=(
                    p.committed_amount
                    if committed_amount is None
                    else to_decimal(committed_amount)
                ),
            )
        updated.append(p)
    return build_period_table(
        fiscal_year,
        [p.budget_amount for p in updated],
        [p.actual_amount for p in updated],
        [p.committed_amount for p in updated],
    )

"""
Factories for engine tests: budget lines and headers built from the
allocation and roll-up engines, with no database involved.
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from budget_engines.allocation import allocate_periods, with_period_actual
from budget_engines.rollup import compute_rollup, derive_line_totals
from budget_engines.types import AllocationMethod
from budget_modules.planning.models import Budget, BudgetLineItem, BudgetType

FISCAL_YEAR = 2026


def build_line(
    annual: str,
    actuals: dict[int, str] | None = None,
    *,
    account_code: str = "6000",
    account_type: str = "expense",
    account_sub_type: str | None = "facilities",
    method: AllocationMethod = AllocationMethod.EQUAL,
) -> BudgetLineItem:
    annual_amount = Decimal(annual)
    periods = allocate_periods(
        annual_amount=annual_amount, method=method, fiscal_year=FISCAL_YEAR,
    )
    for month, amount in (actuals or {}).items():
        periods = with_period_actual(
            periods,
            fiscal_year=FISCAL_YEAR,
            fiscal_month=month,
            actual_amount=Decimal(amount),
        )
    totals = derive_line_totals(annual_amount, periods)
    return BudgetLineItem(
        id=uuid4(),
        budget_id=uuid4(),
        account_id=f"acc-{account_code}",
        account_code=account_code,
        account_name=f"Account {account_code}",
        account_type=account_type,
        account_sub_type=account_sub_type,
        annual_budget=totals.annual_budget,
        annual_actual=totals.annual_actual,
        annual_committed=totals.annual_committed,
        annual_available=totals.annual_available,
        annual_variance=totals.annual_variance,
        variance_percent=totals.variance_percent,
        period_amounts=periods,
        allocation_method=method,
    )


def build_budget(lines) -> Budget:
    totals = compute_rollup(lines)
    return Budget(
        id=uuid4(),
        company_id=uuid4(),
        name="FY2026 Operating",
        code="BUD-2026-OP",
        type=BudgetType.OPERATING,
        fiscal_year=FISCAL_YEAR,
        start_date=date(2025, 7, 1),
        end_date=date(2026, 6, 30),
        currency="USD",
        total_budget=totals.total_budget,
        total_actual=totals.total_actual,
        total_committed=totals.total_committed,
        total_available=totals.total_available,
        total_variance=totals.total_variance,
        variance_percent=totals.variance_percent,
    )


@pytest.fixture
def make_line():
    return build_line


@pytest.fixture
def make_budget():
    return build_budget

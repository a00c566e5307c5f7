"""
budget_engines.forecast -- Forecast Generator.

Responsibility:
    Project year-end spend for a budget from its period tables using a
    linear run-rate, a trend uplift on the run-rate, and a seasonal
    projection that scales the remaining budgeted months by the
    actual-to-budget ratio observed so far.  Also produces a twelve-month
    projection table with running cumulative totals.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  The as-of date is a
    parameter; the engine never reads the clock.

Invariants enforced:
    - Elapsed months come from ``elapsed_fiscal_months`` (0..12).
    - Division guards: with no elapsed months the run-rate is zero; with
      a zero year-to-date budget the seasonal ratio is 1; with a zero
      total budget the projected variance percent is 0.
    - Cumulative forecast is the running sum of each month's own
      forecast amount.
    - Money outputs are rounded (ROUND_HALF_UP) to the configured money
      precision only at the end; intermediate values stay unrounded.

Usage:
    from budget_engines.forecast import ForecastGenerator

    result = ForecastGenerator(policy.forecast).forecast(
        budget, lines, as_of=date(2025, 12, 31),
    )
    result.linear_forecast          # Decimal("1000000.00")
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any

from budget_config.schema import ForecastPolicy
from budget_engines.tracer import traced_engine
from budget_engines.types import BudgetFigures, LineFigures
from budget_kernel.db.types import ZERO, percent_of, round_money
from budget_kernel.domain.fiscal import (
    MONTHS_PER_YEAR,
    calendar_month_for,
    calendar_year_for,
    elapsed_fiscal_months,
)
from budget_kernel.logging_config import get_logger

logger = get_logger("engines.forecast")

ONE = Decimal("1")
TWO = Decimal("2")


@dataclass(frozen=True)
class MonthlyProjection:
    """One fiscal month of the projection table."""

    period: int
    fiscal_month: int
    calendar_month: int
    calendar_year: int
    is_actual: bool
    actual_amount: Decimal | None
    budget_amount: Decimal
    forecast_amount: Decimal
    cumulative_budget: Decimal
    cumulative_forecast: Decimal


@dataclass(frozen=True)
class BudgetForecast:
    """Year-end projections for one budget as of one date."""

    budget_id: Any
    fiscal_year: int
    as_of_date: date
    current_fiscal_month: int

    total_budget: Decimal
    ytd_actual: Decimal
    ytd_budget: Decimal
    remaining_budget: Decimal
    remaining_periods: int

    linear_forecast: Decimal
    trend_forecast: Decimal
    seasonal_forecast: Decimal
    recommended_forecast: Decimal
    forecast_confidence: int

    projected_variance: Decimal
    projected_variance_percent: Decimal

    monthly_projections: tuple[MonthlyProjection, ...] = ()


def aggregate_periods(lines: Sequence[LineFigures]) -> list[tuple[Decimal, Decimal]]:
    """Sum every line's period table into twelve (budget, actual) totals."""
    totals = [[ZERO, ZERO] for _ in range(MONTHS_PER_YEAR)]
    for line in lines:
        for p in line.period_amounts:
            totals[p.fiscal_month - 1][0] += p.budget_amount
            totals[p.fiscal_month - 1][1] += p.actual_amount
    return [(budget, actual) for budget, actual in totals]


class ForecastGenerator:
    """
    Builds ``BudgetForecast`` projections.

    Contract:
        Pure: reads the budget header and its lines, never writes.
        Growth rate and confidence heuristics come from the injected policy.
    """

    def __init__(
        self,
        policy: ForecastPolicy | None = None,
        money_decimal_places: int = 2,
    ):
        self._policy = policy or ForecastPolicy()
        self._places = money_decimal_places

    def _money(self, value: Decimal) -> Decimal:
        return round_money(value, self._places)

    def confidence(self, elapsed_months: int) -> int:
        if elapsed_months >= self._policy.mature_after_months:
            return self._policy.mature_confidence
        return self._policy.early_confidence

    @traced_engine("forecast", "1.0", fingerprint_fields=("budget", "as_of"))
    def forecast(
        self,
        budget: BudgetFigures,
        lines: Sequence[LineFigures],
        *,
        as_of: date,
    ) -> BudgetForecast:
        """Project year-end spend for ``budget`` as of ``as_of``."""
        elapsed = elapsed_fiscal_months(budget.fiscal_year, as_of)
        remaining_periods = MONTHS_PER_YEAR - elapsed
        period_totals = aggregate_periods(lines)

        ytd_budget = sum((b for b, _ in period_totals[:elapsed]), ZERO)
        ytd_actual = sum((a for _, a in period_totals[:elapsed]), ZERO)
        remaining_budgeted = sum((b for b, _ in period_totals[elapsed:]), ZERO)
        total_budget = budget.total_budget

        if elapsed > 0:
            linear = ytd_actual + ytd_actual * remaining_periods / elapsed
        else:
            linear = ZERO
        trend = linear * (ONE + self._policy.trend_growth_rate)
        ratio = ytd_actual / ytd_budget if ytd_budget != ZERO else ONE
        seasonal = ytd_actual + remaining_budgeted * ratio
        recommended = (linear + seasonal) / TWO
        projected_variance = total_budget - recommended

        projections: list[MonthlyProjection] = []
        cumulative_budget = ZERO
        cumulative_forecast = ZERO
        for idx, (month_budget, month_actual) in enumerate(period_totals):
            fiscal_month = idx + 1
            is_actual = idx < elapsed
            amount = month_actual if is_actual else self._money(month_budget * ratio)
            cumulative_budget += month_budget
            cumulative_forecast += amount
            projections.append(
                MonthlyProjection(
                    period=fiscal_month,
                    fiscal_month=fiscal_month,
                    calendar_month=calendar_month_for(fiscal_month),
                    calendar_year=calendar_year_for(budget.fiscal_year, fiscal_month),
                    is_actual=is_actual,
                    actual_amount=month_actual if is_actual else None,
                    budget_amount=month_budget,
                    forecast_amount=amount,
                    cumulative_budget=cumulative_budget,
                    cumulative_forecast=cumulative_forecast,
                )
            )

        result = BudgetForecast(
            budget_id=budget.id,
            fiscal_year=budget.fiscal_year,
            as_of_date=as_of,
            current_fiscal_month=elapsed,
            total_budget=total_budget,
            ytd_actual=ytd_actual,
            ytd_budget=ytd_budget,
            remaining_budget=total_budget - ytd_actual,
            remaining_periods=remaining_periods,
            linear_forecast=self._money(linear),
            trend_forecast=self._money(trend),
            seasonal_forecast=self._money(seasonal),
            recommended_forecast=self._money(recommended),
            forecast_confidence=self.confidence(elapsed),
            projected_variance=self._money(projected_variance),
            projected_variance_percent=percent_of(projected_variance, total_budget),
            monthly_projections=tuple(projections),
        )

        logger.info(
            "forecast_generated",
            extra={
                "budget_id": str(budget.id),
                "current_fiscal_month": elapsed,
                "recommended_forecast": str(result.recommended_forecast),
                "forecast_confidence": result.forecast_confidence,
            },
        )
        return result

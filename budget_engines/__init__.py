"""
budget_engines -- pure calculation layer.

Every engine is a pure function (or a stateless class over an injected
policy): no I/O, no clock access, identical inputs produce identical
outputs.  Invocations are traced with ``BUDGET_ENGINE_TRACE``.
"""

from budget_engines.allocation import (
    allocate_amounts,
    allocate_periods,
    build_period_table,
    reallocate_periods,
    with_period_actual,
)
from budget_engines.forecast import BudgetForecast, ForecastGenerator, MonthlyProjection
from budget_engines.rollup import LineTotals, RollupTotals, compute_rollup, derive_line_totals
from budget_engines.tracer import traced_engine
from budget_engines.types import AllocationMethod, BudgetPeriodAmount
from budget_engines.variance import (
    BudgetVariance,
    LineVariance,
    VarianceAnalyzer,
    VarianceGroup,
    VarianceStatus,
    classify_variance,
)

__all__ = [
    "AllocationMethod",
    "BudgetPeriodAmount",
    "allocate_amounts",
    "allocate_periods",
    "build_period_table",
    "reallocate_periods",
    "with_period_actual",
    "LineTotals",
    "RollupTotals",
    "derive_line_totals",
    "compute_rollup",
    "VarianceStatus",
    "VarianceGroup",
    "LineVariance",
    "BudgetVariance",
    "VarianceAnalyzer",
    "classify_variance",
    "MonthlyProjection",
    "BudgetForecast",
    "ForecastGenerator",
    "traced_engine",
]

"""
budget_engines.variance -- Variance Analyzer.

Responsibility:
    Produce a full variance report for a budget: overall figures, per
    account-type and per account-sub-type groups, per-line variance with
    current-period and year-to-date figures, a severity classification and
    the top over/under-budget outliers.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  The as-of date is a
    parameter; the engine never reads the clock.

Invariants enforced:
    - Sign convention: variance = budget - actual; a non-negative
      variance percent always classifies as FAVORABLE.
    - Severity is sign-then-magnitude against ascending thresholds taken
      from ``VariancePolicy``; nothing is hard-coded per line.  Lines and
      the budget are classified on the exact ratio, not the reported
      4-place percent.    - Current period and YTD use ``elapsed_fiscal_months``: 0 before the
      fiscal year starts (all zero), 12 after it ends.

Failure modes:
    (none -- zero budgets yield a 0 variance percent)

Usage:
    from budget_engines.variance import VarianceAnalyzer

    report = VarianceAnalyzer(policy.variance).analyze(
        budget, lines, as_of=date(2026, 1, 15),
    )
    report.variance_status          # VarianceStatus.MINOR
    report.top_over_budget[0]       # most over-budget line
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any

from budget_config.schema import VariancePolicy
from budget_engines.tracer import traced_engine
from budget_engines.types import BudgetFigures, LineFigures
from budget_kernel.db.types import HUNDRED, ZERO, percent_of
from budget_kernel.domain.fiscal import elapsed_fiscal_months
from budget_kernel.logging_config import get_logger

logger = get_logger("engines.variance")

UNSPECIFIED_SUB_TYPE = "unspecified"


class VarianceStatus(str, Enum):
    """Severity of a variance."""

    FAVORABLE = "favorable"
    MINOR = "minor"
    MODERATE = "moderate"
    SIGNIFICANT = "significant"
    CRITICAL = "critical"


def classify_variance(
    variance_percent: Decimal,
    policy: VariancePolicy | None = None,
) -> VarianceStatus:
    """
    Classify a variance percent.

    Non-negative is favorable; otherwise the magnitude is bucketed against
    the ascending thresholds, anything beyond the highest being critical.
    """
    policy = policy or VariancePolicy()
    if variance_percent >= 0:
        return VarianceStatus.FAVORABLE
    magnitude = abs(variance_percent)
    if magnitude <= policy.minor_percent:
        return VarianceStatus.MINOR
    if magnitude <= policy.moderate_percent:
        return VarianceStatus.MODERATE
    if magnitude <= policy.significant_percent:
        return VarianceStatus.SIGNIFICANT
    return VarianceStatus.CRITICAL


@dataclass(frozen=True)
class LineVariance:
    """Variance figures for one line item."""

    line_id: Any
    account_id: str
    account_code: str
    account_name: str
    account_type: str
    account_sub_type: str | None

    budget: Decimal
    actual: Decimal
    committed: Decimal
    available: Decimal
    variance: Decimal
    variance_percent: Decimal

    current_period_budget: Decimal
    current_period_actual: Decimal
    current_period_variance: Decimal

    ytd_budget: Decimal
    ytd_actual: Decimal
    ytd_variance: Decimal
    ytd_variance_percent: Decimal

    variance_status: VarianceStatus

    @property
    def is_over_budget(self) -> bool:
        return self.variance < 0


@dataclass(frozen=True)
class VarianceGroup:
    """Totals re-aggregated over the lines sharing an account type or sub-type."""

    key: str
    budget: Decimal
    actual: Decimal
    variance: Decimal
    variance_percent: Decimal
    line_count: int


@dataclass(frozen=True)
class BudgetVariance:
    """Variance report for one budget as of one date."""

    budget_id: Any
    budget_name: str
    fiscal_year: int
    as_of_date: date
    current_fiscal_month: int

    total_budget: Decimal
    total_actual: Decimal
    total_variance: Decimal
    variance_percent: Decimal
    variance_status: VarianceStatus

    by_account_type: dict[str, VarianceGroup] = field(default_factory=dict)
    by_sub_type: dict[str, VarianceGroup] = field(default_factory=dict)

    line_variances: tuple[LineVariance, ...] = ()
    top_over_budget: tuple[LineVariance, ...] = ()
    top_under_budget: tuple[LineVariance, ...] = ()


def _group(
    line_variances: Sequence[LineVariance],
    key_of,
) -> dict[str, VarianceGroup]:
    sums: dict[str, list] = {}
    for lv in line_variances:
        key = key_of(lv)
        entry = sums.setdefault(key, [ZERO, ZERO, ZERO, 0])
        entry[0] += lv.budget
        entry[1] += lv.actual
        entry[2] += lv.variance
        entry[3] += 1
    return {
        key: VarianceGroup(
            key=key,
            budget=budget,
            actual=actual,
            variance=variance,
            variance_percent=percent_of(variance, budget),
            line_count=count,
        )
        for key, (budget, actual, variance, count) in sorted(sums.items())
    }


def _exact_percent(part: Decimal, whole: Decimal) -> Decimal:
    # Severity is judged before display rounding: -10.00003% is beyond a 10% threshold
    if whole == ZERO:
        return ZERO
    return part / whole * HUNDRED


class VarianceAnalyzer:
    """
    Builds ``BudgetVariance`` reports.

    Contract:
        Pure: reads the budget header and its lines, never writes.
        Thresholds and the outlier count come from the injected policy.
    """

    def __init__(self, policy: VariancePolicy | None = None):
        self._policy = policy or VariancePolicy()

    @property
    def policy(self) -> VariancePolicy:
        return self._policy

    def classify(self, variance_percent: Decimal) -> VarianceStatus:
        return classify_variance(variance_percent, self._policy)

    def analyze_line(self, line: LineFigures, current_fiscal_month: int) -> LineVariance:
        """Variance figures for one line at the given elapsed fiscal month."""
        current = next(
            (p for p in line.period_amounts if p.fiscal_month == current_fiscal_month),
            None,
        )
        period_budget = current.budget_amount if current else ZERO
        period_actual = current.actual_amount if current else ZERO

        ytd = [p for p in line.period_amounts if p.fiscal_month <= current_fiscal_month]
        ytd_budget = sum((p.budget_amount for p in ytd), ZERO)
        ytd_actual = sum((p.actual_amount for p in ytd), ZERO)
        ytd_variance = ytd_budget - ytd_actual

        return LineVariance(
            line_id=line.id,
            account_id=line.account_id,
            account_code=line.account_code,
            account_name=line.account_name,
            account_type=line.account_type,
            account_sub_type=line.account_sub_type,
            budget=line.annual_budget,
            actual=line.annual_actual,
            committed=line.annual_committed,
            available=line.annual_available,
            variance=line.annual_variance,
            variance_percent=line.variance_percent,
            current_period_budget=period_budget,
            current_period_actual=period_actual,
            current_period_variance=period_budget - period_actual,
            ytd_budget=ytd_budget,
            ytd_actual=ytd_actual,
            ytd_variance=ytd_variance,
            ytd_variance_percent=percent_of(ytd_variance, ytd_budget),
            variance_status=self.classify(
                _exact_percent(line.annual_variance, line.annual_budget)
            ),
        )

    @traced_engine("variance", "1.0", fingerprint_fields=("budget", "as_of"))
    def analyze(
        self,
        budget: BudgetFigures,
        lines: Sequence[LineFigures],
        *,
        as_of: date,
    ) -> BudgetVariance:
        """Build the variance report for ``budget`` as of ``as_of``."""
        current_month = elapsed_fiscal_months(budget.fiscal_year, as_of)
        line_variances = tuple(self.analyze_line(line, current_month) for line in lines)

        ordered = sorted(line_variances, key=lambda lv: lv.variance)
        top_n = self._policy.top_n
        top_over = tuple(lv for lv in ordered if lv.variance < 0)[:top_n]
        top_under = tuple(lv for lv in reversed(ordered) if lv.variance > 0)[:top_n]

        status = self.classify(_exact_percent(budget.total_variance, budget.total_budget))
        logger.info(
            "variance_analyzed",
            extra={
                "budget_id": str(budget.id),
                "line_count": len(line_variances),
                "current_fiscal_month": current_month,
                "variance_status": status.value,
                "over_budget_lines": sum(1 for lv in line_variances if lv.is_over_budget),
            },
        )

        return BudgetVariance(
            budget_id=budget.id,
            budget_name=budget.name,
            fiscal_year=budget.fiscal_year,
            as_of_date=as_of,
            current_fiscal_month=current_month,
            total_budget=budget.total_budget,
            total_actual=budget.total_actual,
            total_variance=budget.total_variance,
            variance_percent=budget.variance_percent,
            variance_status=status,
            by_account_type=_group(line_variances, lambda lv: lv.account_type),
            by_sub_type=_group(
                line_variances,
                lambda lv: lv.account_sub_type or UNSPECIFIED_SUB_TYPE,
            ),
            line_variances=line_variances,
            top_over_budget=top_over,
            top_under_budget=top_under,
        )

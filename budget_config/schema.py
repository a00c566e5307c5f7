"""
PlanningPolicy schema.

Frozen dataclasses holding every business constant the engines consume:
variance thresholds, forecast heuristics, allocation splits and the
roll-up retry bound.  YAML files are parsed into these types by the
loader; engines receive them by constructor injection and never read
files themselves.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from budget_kernel.db.types import validate_currency
from budget_kernel.exceptions import InvalidPolicyError

# ---------------------------------------------------------------------------
# Variance
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class VariancePolicy:
    """Severity thresholds (absolute percent) and outlier count."""

    minor_percent: Decimal = Decimal("10")
    moderate_percent: Decimal = Decimal("25")
    significant_percent: Decimal = Decimal("50")
    top_n: int = 5

    def __post_init__(self) -> None:
        if self.minor_percent < 0:
            raise InvalidPolicyError("variance.minor_percent", "cannot be negative")
        if not self.minor_percent < self.moderate_percent < self.significant_percent:
            raise InvalidPolicyError(
                "variance",
                "thresholds must be strictly ascending "
                "(minor < moderate < significant)",
            )
        if self.top_n < 0:
            raise InvalidPolicyError("variance.top_n", "cannot be negative")


# ---------------------------------------------------------------------------
# Forecast
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ForecastPolicy:
    """Heuristic constants for the Forecast Generator."""

    trend_growth_rate: Decimal = Decimal("0.05")
    mature_after_months: int = 6
    mature_confidence: int = 80
    early_confidence: int = 60

    def __post_init__(self) -> None:
        if not 0 <= self.mature_after_months <= 12:
            raise InvalidPolicyError(
                "forecast.mature_after_months", "must be between 0 and 12"
            )
        for name in ("mature_confidence", "early_confidence"):
            value = getattr(self, name)
            if not 0 <= value <= 100:
                raise InvalidPolicyError(f"forecast.{name}", "must be between 0 and 100")


# ---------------------------------------------------------------------------
# Allocation
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AllocationPolicy:
    """Front/back-loaded split and the allocation quantum.

    ``front_loaded_share`` is the share of the annual amount placed in the
    first half of the fiscal year by ``front_loaded``; ``back_loaded``
    mirrors it.  ``decimal_places`` sets the flooring quantum (0 means
    whole currency units).
    """

    front_loaded_share: Decimal = Decimal("0.6")
    decimal_places: int = 0

    def __post_init__(self) -> None:
        if not Decimal("0") <= self.front_loaded_share <= Decimal("1"):
            raise InvalidPolicyError(
                "allocation.front_loaded_share", "must be between 0 and 1"
            )
        if not 0 <= self.decimal_places <= 9:
            raise InvalidPolicyError(
                "allocation.decimal_places", "must be between 0 and 9"
            )


# ---------------------------------------------------------------------------
# Roll-up
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RollupPolicy:
    """Bounded retry for the compare-and-swap roll-up write."""

    max_retries: int = 3

    def __post_init__(self) -> None:
        if self.max_retries < 1:
            raise InvalidPolicyError("rollup.max_retries", "must be at least 1")


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PlanningPolicy:
    """Root of the planning configuration tree."""

    name: str = "default"
    version: int = 1
    variance: VariancePolicy = field(default_factory=VariancePolicy)
    forecast: ForecastPolicy = field(default_factory=ForecastPolicy)
    allocation: AllocationPolicy = field(default_factory=AllocationPolicy)
    rollup: RollupPolicy = field(default_factory=RollupPolicy)
    default_currency: str = "USD"
    money_decimal_places: int = 2
    checksum: str | None = None

    def __post_init__(self) -> None:
        validate_currency(self.default_currency)
        if not 0 <= self.money_decimal_places <= 9:
            raise InvalidPolicyError(
                "money_decimal_places", "must be between 0 and 9"
            )

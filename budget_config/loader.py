"""
Planning policy loader (``budget_config.loader``).

Responsibility
--------------
Loads a YAML policy file and parses it into the typed
``budget_config.schema.PlanningPolicy`` tree.

Invariants enforced
-------------------
* Decimal-valued fields are parsed from their string form; floats are
  converted through ``str()`` so 0.05 becomes Decimal("0.05"), never a
  binary approximation.
* Omitted sections and keys fall back to the schema defaults.
* ``compute_checksum`` is deterministic for identical input.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Invalid values  -> ``InvalidPolicyError``.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from budget_config.schema import (
    AllocationPolicy,
    ForecastPolicy,
    PlanningPolicy,
    RollupPolicy,
    VariancePolicy,
)
from budget_kernel.exceptions import InvalidPolicyError


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_decimal(value: Any, field_name: str) -> Decimal:
    """Parse a Decimal from YAML (string, int or float)."""
    if isinstance(value, bool):
        raise InvalidPolicyError(field_name, f"expected a number, got {value!r}")
    try:
        return Decimal(str(value))
    except InvalidOperation:
        raise InvalidPolicyError(field_name, f"not a number: {value!r}") from None


def parse_int(value: Any, field_name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, str)):
        raise InvalidPolicyError(field_name, f"expected an integer, got {value!r}")
    try:
        return int(value)
    except ValueError:
        raise InvalidPolicyError(field_name, f"not an integer: {value!r}") from None


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    section = data.get(name) or {}
    if not isinstance(section, dict):
        raise InvalidPolicyError(name, "must be a mapping")
    return section


def parse_variance(data: dict[str, Any]) -> VariancePolicy:
    defaults = VariancePolicy()
    return VariancePolicy(
        minor_percent=parse_decimal(
            data.get("minor_percent", defaults.minor_percent), "variance.minor_percent"
        ),
        moderate_percent=parse_decimal(
            data.get("moderate_percent", defaults.moderate_percent),
            "variance.moderate_percent",
        ),
        significant_percent=parse_decimal(
            data.get("significant_percent", defaults.significant_percent),
            "variance.significant_percent",
        ),
        top_n=parse_int(data.get("top_n", defaults.top_n), "variance.top_n"),
    )


def parse_forecast(data: dict[str, Any]) -> ForecastPolicy:
    defaults = ForecastPolicy()
    return ForecastPolicy(
        trend_growth_rate=parse_decimal(
            data.get("trend_growth_rate", defaults.trend_growth_rate),
            "forecast.trend_growth_rate",
        ),
        mature_after_months=parse_int(
            data.get("mature_after_months", defaults.mature_after_months),
            "forecast.mature_after_months",
        ),
        mature_confidence=parse_int(
            data.get("mature_confidence", defaults.mature_confidence),
            "forecast.mature_confidence",
        ),
        early_confidence=parse_int(
            data.get("early_confidence", defaults.early_confidence),
            "forecast.early_confidence",
        ),
    )


def parse_allocation(data: dict[str, Any]) -> AllocationPolicy:
    defaults = AllocationPolicy()
    return AllocationPolicy(
        front_loaded_share=parse_decimal(
            data.get("front_loaded_share", defaults.front_loaded_share),
            "allocation.front_loaded_share",
        ),
        decimal_places=parse_int(
            data.get("decimal_places", defaults.decimal_places),
            "allocation.decimal_places",
        ),
    )


def parse_rollup(data: dict[str, Any]) -> RollupPolicy:
    defaults = RollupPolicy()
    return RollupPolicy(
        max_retries=parse_int(
            data.get("max_retries", defaults.max_retries), "rollup.max_retries"
        ),
    )


def parse_policy(data: dict[str, Any]) -> PlanningPolicy:
    """
    Parse a ``PlanningPolicy`` from a dict.

    Postconditions:
        - Returns a fully validated, frozen ``PlanningPolicy`` whose
          ``checksum`` identifies the input data.
    Raises:
        InvalidPolicyError: if any value is malformed or out of range.
    """
    if not isinstance(data, dict):
        raise InvalidPolicyError("<root>", "policy document must be a mapping")
    defaults = PlanningPolicy()
    return PlanningPolicy(
        name=str(data.get("name", defaults.name)),
        version=parse_int(data.get("version", defaults.version), "version"),
        variance=parse_variance(_section(data, "variance")),
        forecast=parse_forecast(_section(data, "forecast")),
        allocation=parse_allocation(_section(data, "allocation")),
        rollup=parse_rollup(_section(data, "rollup")),
        default_currency=str(data.get("default_currency", defaults.default_currency)),
        money_decimal_places=parse_int(
            data.get("money_decimal_places", defaults.money_decimal_places),
            "money_decimal_places",
        ),
        checksum=compute_checksum(data),
    )


def load_policy(path: Path | str) -> PlanningPolicy:
    """Load and validate a planning policy from a YAML file."""
    return parse_policy(load_yaml_file(Path(path)))


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Identical ``data`` always produces identical checksums.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()

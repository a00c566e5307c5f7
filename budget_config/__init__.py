"""
budget_config -- planning policy configuration.

Responsibility:
    Provides the planning policy (variance thresholds, forecast heuristics,
    allocation splits, roll-up retry bound) to the engines and the planning
    module.  ``get_default_policy()`` returns the packaged default;
    ``load_policy(path)`` parses any other YAML file.

Architecture position:
    Configuration -- sits above ``budget_kernel`` and below
    ``budget_modules``.  The kernel MUST NEVER import from ``budget_config``.

Failure modes:
    - ``FileNotFoundError`` -- policy file does not exist.
    - ``InvalidPolicyError`` -- values fail validation.

Audit relevance:
    Every default-policy load emits a ``BUDGET_CONFIG_TRACE`` log entry
    with the policy name, version and checksum.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from budget_config.loader import load_policy, parse_policy
from budget_config.schema import (
    AllocationPolicy,
    ForecastPolicy,
    PlanningPolicy,
    RollupPolicy,
    VariancePolicy,
)
from budget_kernel.logging_config import get_logger

_logger = get_logger("config")

DEFAULT_POLICY_PATH = Path(__file__).parent / "policies" / "default.yaml"


@lru_cache(maxsize=1)
def get_default_policy() -> PlanningPolicy:
    """Load (once) and return the packaged default planning policy."""
    policy = load_policy(DEFAULT_POLICY_PATH)
    _logger.info(
        "BUDGET_CONFIG_TRACE",
        extra={
            "trace_type": "BUDGET_CONFIG_TRACE",
            "policy_name": policy.name,
            "policy_version": policy.version,
            "checksum": policy.checksum,
        },
    )
    return policy


__all__ = [
    "get_default_policy",
    "load_policy",
    "parse_policy",
    "DEFAULT_POLICY_PATH",
    "PlanningPolicy",
    "VariancePolicy",
    "ForecastPolicy",
    "AllocationPolicy",
    "RollupPolicy",
]

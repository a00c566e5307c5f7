"""
Budget Aggregator (``budget_modules.planning.aggregator``).

Responsibility
--------------
Recompute a budget's roll-up totals from its current line items and
write them back.  This is the single recompute-from-source operation;
every line create/update/delete and every revision application ends with
it.

Invariants enforced
-------------------
* Idempotence: with no intervening line change, two recalculations
  produce identical totals.
* Compare-and-swap: totals are written only if the budget's
  ``row_version`` is unchanged since the read; on conflict the whole
  read-recompute-write cycle is retried up to ``rollup.max_retries``
  times.

Failure modes
-------------
* ``BudgetNotFoundError`` if the budget does not exist.
* ``OptimisticLockError`` when every attempt lost the compare-and-swap.

Does not commit; the calling service owns the transaction.
"""

from uuid import UUID

from budget_config.schema import RollupPolicy
from budget_engines.rollup import compute_rollup
from budget_kernel.domain.clock import Clock, SystemClock
from budget_kernel.exceptions import OptimisticLockError
from budget_kernel.logging_config import get_logger
from budget_modules.planning.models import Budget
from budget_modules.planning.store import SqlBudgetStore

logger = get_logger("modules.planning.aggregator")


class BudgetAggregator:
    """Recalculates budget roll-up totals from line items."""

    def __init__(
        self,
        store: SqlBudgetStore,
        policy: RollupPolicy | None = None,
        clock: Clock | None = None,
    ):
        self._store = store
        self._policy = policy or RollupPolicy()
        self._clock = clock or SystemClock()

    def recalculate(self, budget_id: UUID, actor_id: UUID) -> Budget:
        """Recompute and persist the roll-up; return the refreshed budget."""
        max_attempts = self._policy.max_retries
        for attempt in range(1, max_attempts + 1):
            row_version = self._store.read_row_version(budget_id)
            lines = self._store.get_lines(budget_id)
            totals = compute_rollup(lines)

            written = self._store.write_rollup(
                budget_id,
                expected_row_version=row_version,
                totals=totals,
                actor_id=actor_id,
                now=self._clock.now(),
            )
            if written:
                logger.info("budget_totals_recalculated", extra={
                    "budget_id": str(budget_id),
                    "line_count": totals.line_count,
                    "total_budget": str(totals.total_budget),
                    "total_actual": str(totals.total_actual),
                    "variance_percent": str(totals.variance_percent),
                    "attempt": attempt,
                })
                return self._store.get_budget(budget_id)

            logger.warning("rollup_write_conflict", extra={
                "budget_id": str(budget_id),
                "expected_row_version": row_version,
                "attempt": attempt,
                "max_attempts": max_attempts,
            })

        raise OptimisticLockError("Budget", budget_id, attempts=max_attempts)

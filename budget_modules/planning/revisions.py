"""
Revision Manager (``budget_modules.planning.revisions``).

Responsibility
--------------
Capture the delta between current and proposed line amounts as a pending
``BudgetRevision``, and later apply it (reallocating every changed line,
marking the revision approved and moving the budget to the revision's
version with status ``revised``) or reject it.

Invariants enforced
-------------------
* Proposal is non-destructive: only the revision row is written.
* Application is one ``batch_commit``: every changed line, the revision
  status, the budget version and the recalculated roll-up totals land
  together or not at all.
* A revision moves exactly once out of ``pending``.
* A stale revision (budget version moved on since the proposal) cannot
  be applied.
* Reallocation keeps each month's recorded actual/committed amounts.

Failure modes
-------------
* ``InvalidTransitionError`` -- budget not active/approved at proposal,
  revision not pending, or revision stale.
* ``LineNotFoundError`` -- a change references a line absent from the budget.
* ``LockedBudgetError`` -- applying to a locked budget or a locked line.
* ``OptimisticLockError`` -- the roll-up after application lost every
  compare-and-swap attempt; the application is rolled back.
"""

from collections.abc import Sequence
from dataclasses import replace
from uuid import UUID, uuid4

from budget_config.schema import AllocationPolicy
from budget_engines.allocation import reallocate_periods
from budget_engines.rollup import derive_line_totals
from budget_kernel.db.types import ZERO, to_decimal
from budget_kernel.domain.clock import Clock, SystemClock
from budget_kernel.exceptions import (
    InvalidTransitionError,
    LineNotFoundError,
    LockedBudgetError,
)
from budget_kernel.logging_config import get_logger
from budget_modules.planning.aggregator import BudgetAggregator
from budget_modules.planning.lifecycle import require_budget_transition
from budget_modules.planning.models import (
    BudgetLineChange,
    BudgetLineItem,
    BudgetRevision,
    BudgetStatus,
    LineChangeRequest,
    RevisionStatus,
)
from budget_modules.planning.store import (
    BatchOperation,
    SqlBudgetStore,
    UpdateBudgetOp,
    UpdateLineOp,
    UpdateRevisionOp,
)
from budget_modules.planning.workflows import BUDGET_REVISION_WORKFLOW

logger = get_logger("modules.planning.revisions")


def _require_revision_transition(revision: BudgetRevision, action: str) -> None:
    if BUDGET_REVISION_WORKFLOW.find_transition(revision.status.value, action) is None:
        raise InvalidTransitionError(
            "BudgetRevision",
            revision.id,
            revision.status.value,
            action,
            reason="only pending revisions can change status",
        )


class RevisionManager:
    """Proposes, applies and rejects budget revisions."""

    def __init__(
        self,
        store: SqlBudgetStore,
        aggregator: BudgetAggregator,
        allocation_policy: AllocationPolicy | None = None,
        clock: Clock | None = None,
    ):
        self._store = store
        self._aggregator = aggregator
        self._allocation_policy = allocation_policy or AllocationPolicy()
        self._clock = clock or SystemClock()

    def propose(
        self,
        budget_id: UUID,
        reason: str,
        changes: Sequence[LineChangeRequest],
        actor_id: UUID,
    ) -> BudgetRevision:
        """Record a pending revision. No line is modified."""
        budget = self._store.get_budget(budget_id)
        require_budget_transition(budget, "revise")

        lines = {line.id: line for line in self._store.get_lines(budget_id)}
        line_changes: list[BudgetLineChange] = []
        for request in changes:
            line = lines.get(request.line_id)
            if line is None:
                raise LineNotFoundError(budget_id, request.line_id)
            new_amount = to_decimal(request.new_amount)
            line_changes.append(
                BudgetLineChange(
                    line_id=line.id,
                    account_code=line.account_code,
                    account_name=line.account_name,
                    previous_amount=line.annual_budget,
                    new_amount=new_amount,
                    change_amount=new_amount - line.annual_budget,
                    reason=request.reason,
                )
            )

        delta = sum((c.change_amount for c in line_changes), ZERO)
        now = self._clock.now()
        revision = self._store.create_revision(
            BudgetRevision(
                id=uuid4(),
                budget_id=budget_id,
                revision_number=budget.version + 1,
                reason=reason,
                previous_version=budget.version,
                new_version=budget.version + 1,
                previous_total=budget.total_budget,
                new_total=budget.total_budget + delta,
                change_amount=delta,
                line_changes=tuple(line_changes),
                status=RevisionStatus.PENDING,
                revision_date=now,
                created_at=now,
                created_by_id=actor_id,
            ),
            actor_id=actor_id,
        )

        logger.info("budget_revision_proposed", extra={
            "budget_id": str(budget_id),
            "revision_id": str(revision.id),
            "revision_number": revision.revision_number,
            "line_change_count": len(line_changes),
            "change_amount": str(delta),
        })
        return revision

    def _revised_line(
        self,
        line: BudgetLineItem,
        new_amount,
        fiscal_year: int,
        actor_id: UUID,
        now,
    ) -> BudgetLineItem:
        periods = reallocate_periods(
            line.period_amounts,
            annual_amount=new_amount,
            method=line.allocation_method,
            fiscal_year=fiscal_year,
            policy=self._allocation_policy,
        )
        totals = derive_line_totals(new_amount, periods)
        return replace(
            line,
            annual_budget=totals.annual_budget,
            annual_actual=totals.annual_actual,
            annual_committed=totals.annual_committed,
            annual_available=totals.annual_available,
            annual_variance=totals.annual_variance,
            variance_percent=totals.variance_percent,
            period_amounts=periods,
            updated_at=now,
            updated_by_id=actor_id,
        )

    def apply(self, revision_id: UUID, actor_id: UUID) -> BudgetRevision:
        """
        Apply a pending revision and recalculate the roll-up in one commit.

        All validation happens before the batch is built.  If the roll-up
        cannot be written (``OptimisticLockError``) nothing is committed.
        """
        revision = self._store.get_revision(revision_id)
        _require_revision_transition(revision, "apply")

        budget = self._store.get_budget(revision.budget_id)
        if budget.is_locked:
            raise LockedBudgetError("Budget", budget.id)
        if budget.version != revision.previous_version:
            raise InvalidTransitionError(
                "BudgetRevision",
                revision.id,
                revision.status.value,
                "apply",
                reason=(
                    f"stale revision: budget is at version {budget.version}, "
                    f"revision was proposed against {revision.previous_version}"
                ),
            )
        require_budget_transition(budget, "revise")

        now = self._clock.now()
        operations: list[BatchOperation] = []
        for change in revision.line_changes:
            line = self._store.find_line(change.line_id)
            if line is None or line.budget_id != budget.id:
                raise LineNotFoundError(budget.id, change.line_id)
            if line.is_locked:
                raise LockedBudgetError("Budget line", line.id)
            operations.append(
                UpdateLineOp(
                    self._revised_line(line, change.new_amount, budget.fiscal_year, actor_id, now)
                )
            )

        applied = replace(
            revision,
            status=RevisionStatus.APPROVED,
            approved_by_id=actor_id,
            approved_at=now,
        )
        operations.append(UpdateRevisionOp(applied))
        operations.append(
            UpdateBudgetOp(
                replace(
                    budget,
                    version=revision.new_version,
                    status=BudgetStatus.REVISED,
                    updated_at=now,
                    updated_by_id=actor_id,
                )
            )
        )

        self._store.batch_commit(
            operations,
            before_commit=lambda: self._aggregator.recalculate(budget.id, actor_id),
        )
        logger.info("budget_revision_applied", extra={
            "budget_id": str(budget.id),
            "revision_id": str(revision.id),
            "new_version": revision.new_version,
            "line_change_count": len(revision.line_changes),
        })
        return self._store.get_revision(revision_id)

    def reject(
        self,
        revision_id: UUID,
        actor_id: UUID,
        notes: str | None = None,
    ) -> BudgetRevision:
        revision = self._store.get_revision(revision_id)
        _require_revision_transition(revision, "reject")
        rejected = self._store.update_revision(
            replace(
                revision,
                status=RevisionStatus.REJECTED,
                rejected_by_id=actor_id,
                rejected_at=self._clock.now(),
                rejection_notes=notes,
            )
        )
        logger.info("budget_revision_rejected", extra={
            "budget_id": str(revision.budget_id),
            "revision_id": str(revision_id),
        })
        return rejected

    def get_revisions(self, budget_id: UUID) -> list[BudgetRevision]:
        self._store.get_budget(budget_id)
        return self._store.list_revisions(budget_id)

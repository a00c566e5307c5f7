"""
Lifecycle Controller (``budget_modules.planning.lifecycle``).

Responsibility
--------------
Move a budget through draft -> pending_approval -> approved/rejected ->
active, and toggle its orthogonal ``is_locked`` flag.  Every status
change is checked against ``BUDGET_LIFECYCLE_WORKFLOW``.

Invariants enforced
-------------------
* A (status, action) pair absent from the workflow raises
  ``InvalidTransitionError`` before anything is written.
* Submission of a budget with zero line items raises
  ``EmptyBudgetError`` (checked after the status check).
* ``is_locked`` does not gate status changes.

Does not commit; the calling service owns the transaction.
"""

from dataclasses import replace
from uuid import UUID

from budget_kernel.domain.clock import Clock, SystemClock
from budget_kernel.domain.workflow import Transition
from budget_kernel.exceptions import EmptyBudgetError, InvalidTransitionError
from budget_kernel.logging_config import get_logger
from budget_modules.planning.models import ApprovalAction, Budget, BudgetStatus
from budget_modules.planning.store import SqlBudgetStore
from budget_modules.planning.workflows import BUDGET_LIFECYCLE_WORKFLOW

logger = get_logger("modules.planning.lifecycle")


def require_budget_transition(budget: Budget, action: str) -> Transition:
    """Return the lifecycle transition for ``action`` or raise InvalidTransitionError."""
    transition = BUDGET_LIFECYCLE_WORKFLOW.find_transition(budget.status.value, action)
    if transition is None:
        allowed = BUDGET_LIFECYCLE_WORKFLOW.allowed_actions(budget.status.value)
        raise InvalidTransitionError(
            "Budget",
            budget.id,
            budget.status.value,
            action,
            reason=f"allowed actions: {', '.join(allowed) or 'none'}",
        )
    return transition


class BudgetLifecycle:
    """Approval/activation state machine and lock toggling."""

    def __init__(self, store: SqlBudgetStore, clock: Clock | None = None):
        self._store = store
        self._clock = clock or SystemClock()

    def _move(self, budget: Budget, action: str, actor_id: UUID, **changes) -> Budget:
        transition = require_budget_transition(budget, action)
        updated = self._store.update_budget(
            replace(
                budget,
                status=BudgetStatus(transition.to_state),
                updated_at=self._clock.now(),
                updated_by_id=actor_id,
                **changes,
            )
        )
        logger.info("budget_status_changed", extra={
            "budget_id": str(budget.id),
            "action": action,
            "from_status": transition.from_state,
            "to_status": transition.to_state,
        })
        return updated

    def submit_for_approval(self, budget_id: UUID, actor_id: UUID) -> Budget:
        budget = self._store.get_budget(budget_id)
        require_budget_transition(budget, "submit")
        if self._store.count_lines(budget_id) == 0:
            raise EmptyBudgetError(budget_id)
        return self._move(budget, "submit", actor_id)

    def process_approval(
        self,
        budget_id: UUID,
        action: ApprovalAction,
        actor_id: UUID,
        notes: str | None = None,
    ) -> Budget:
        """Approve (recording approver, time and notes) or reject (recording notes)."""
        budget = self._store.get_budget(budget_id)
        action = ApprovalAction(action)
        if action == ApprovalAction.APPROVE:
            return self._move(
                budget, "approve", actor_id,
                approved_by_id=actor_id,
                approved_at=self._clock.now(),
                approval_notes=notes,
            )
        return self._move(
            budget, "reject", actor_id,
            approved_by_id=None,
            approved_at=None,
            approval_notes=notes,
        )

    def activate(self, budget_id: UUID, actor_id: UUID) -> Budget:
        budget = self._store.get_budget(budget_id)
        return self._move(budget, "activate", actor_id)

    def set_locked(self, budget_id: UUID, locked: bool, actor_id: UUID) -> Budget:
        budget = self._store.get_budget(budget_id)
        updated = self._store.update_budget(
            replace(
                budget,
                is_locked=locked,
                updated_at=self._clock.now(),
                updated_by_id=actor_id,
            )
        )
        logger.info("budget_locked" if locked else "budget_unlocked", extra={
            "budget_id": str(budget_id),
        })
        return updated

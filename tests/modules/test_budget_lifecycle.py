"""
Tests for the budget approval lifecycle.

draft -> pending_approval -> approved -> active, with rejection and
resubmission, the empty-budget guard and the orthogonal lock flag.
"""

import pytest

from budget_kernel.exceptions import EmptyBudgetError, InvalidTransitionError
from budget_modules.planning.models import ApprovalAction, BudgetStatus


class TestSubmit:

    def test_draft_to_pending(self, service, budget_with_lines, test_actor_id):
        budget, _, _ = budget_with_lines
        submitted = service.submit_for_approval(budget.id, test_actor_id)

        assert submitted.status == BudgetStatus.PENDING_APPROVAL
        assert service.get_budget(budget.id).status == BudgetStatus.PENDING_APPROVAL

    def test_empty_draft_rejected(self, service, draft_budget, test_actor_id, captured_logs):
        with pytest.raises(EmptyBudgetError):
            service.submit_for_approval(draft_budget.id, test_actor_id)

        assert service.get_budget(draft_budget.id).status == BudgetStatus.DRAFT
        rejected = [r for r in captured_logs() if r["message"] == "budget_submit_rejected"]
        assert rejected[0]["error_code"] == "EMPTY_BUDGET"

    def test_locked_empty_draft_reports_empty(self, service, draft_budget, test_actor_id):
        service.lock_budget(draft_budget.id, test_actor_id)
        with pytest.raises(EmptyBudgetError):
            service.submit_for_approval(draft_budget.id, test_actor_id)

    def test_cannot_resubmit_pending(self, service, budget_with_lines, test_actor_id):
        budget, _, _ = budget_with_lines
        service.submit_for_approval(budget.id, test_actor_id)

        with pytest.raises(InvalidTransitionError) as exc_info:
            service.submit_for_approval(budget.id, test_actor_id)

        assert exc_info.value.current_status == "pending_approval"
        assert exc_info.value.action == "submit"


class TestApproval:

    @pytest.fixture
    def pending_budget(self, service, budget_with_lines, test_actor_id):
        budget, _, _ = budget_with_lines
        return service.submit_for_approval(budget.id, test_actor_id)

    def test_approve_records_approver(
        self, service, pending_budget, test_actor_id, deterministic_clock,
    ):
        approved = service.process_approval(
            pending_budget.id, ApprovalAction.APPROVE, test_actor_id, notes="Looks right",
        )

        assert approved.status == BudgetStatus.APPROVED
        assert approved.approved_by_id == test_actor_id
        assert approved.approved_at == deterministic_clock.now()
        assert approved.approval_notes == "Looks right"

    def test_reject_then_resubmit(self, service, pending_budget, test_actor_id):
        rejected = service.process_approval(
            pending_budget.id, ApprovalAction.REJECT, test_actor_id, notes="Trim travel",
        )
        assert rejected.status == BudgetStatus.REJECTED
        assert rejected.approved_by_id is None
        assert rejected.approved_at is None
        assert rejected.approval_notes == "Trim travel"

        resubmitted = service.submit_for_approval(pending_budget.id, test_actor_id)
        assert resubmitted.status == BudgetStatus.PENDING_APPROVAL

    def test_action_accepts_plain_string(self, service, pending_budget, test_actor_id):
        approved = service.process_approval(pending_budget.id, "approve", test_actor_id)
        assert approved.status == BudgetStatus.APPROVED

    def test_emptied_rejected_budget_cannot_resubmit(
        self, service, budget_with_lines, test_actor_id,
    ):
        budget, rent, salaries = budget_with_lines
        service.submit_for_approval(budget.id, test_actor_id)
        service.process_approval(budget.id, ApprovalAction.REJECT, test_actor_id)
        service.delete_line(rent.id, test_actor_id)
        service.delete_line(salaries.id, test_actor_id)

        with pytest.raises(EmptyBudgetError):
            service.submit_for_approval(budget.id, test_actor_id)
        assert service.get_budget(budget.id).status == BudgetStatus.REJECTED

    def test_approve_from_draft(self, service, budget_with_lines, test_actor_id):
        budget, _, _ = budget_with_lines
        with pytest.raises(InvalidTransitionError) as exc_info:
            service.process_approval(budget.id, ApprovalAction.APPROVE, test_actor_id)

        assert exc_info.value.code == "INVALID_TRANSITION"
        assert exc_info.value.current_status == "draft"
        assert service.get_budget(budget.id).approved_by_id is None


class TestActivate:

    def test_approved_to_active(self, active_budget):
        budget, _, _ = active_budget
        assert budget.status == BudgetStatus.ACTIVE

    def test_activate_from_pending(self, service, budget_with_lines, test_actor_id):
        budget, _, _ = budget_with_lines
        service.submit_for_approval(budget.id, test_actor_id)

        with pytest.raises(InvalidTransitionError):
            service.activate(budget.id, test_actor_id)
        assert service.get_budget(budget.id).status == BudgetStatus.PENDING_APPROVAL

    def test_activate_twice(self, service, active_budget, test_actor_id):
        budget, _, _ = active_budget
        with pytest.raises(InvalidTransitionError):
            service.activate(budget.id, test_actor_id)

    def test_status_changes_ignore_lock(self, service, budget_with_lines, test_actor_id):
        budget, _, _ = budget_with_lines
        service.lock_budget(budget.id, test_actor_id)

        service.submit_for_approval(budget.id, test_actor_id)
        service.process_approval(budget.id, ApprovalAction.APPROVE, test_actor_id)
        activated = service.activate(budget.id, test_actor_id)

        assert activated.status == BudgetStatus.ACTIVE
        assert activated.is_locked is True


class TestStatusLogging:

    def test_transition_logged(self, service, budget_with_lines, test_actor_id, captured_logs):
        budget, _, _ = budget_with_lines
        service.submit_for_approval(budget.id, test_actor_id)

        changed = [r for r in captured_logs() if r["message"] == "budget_status_changed"]
        assert changed[-1]["from_status"] == "draft"
        assert changed[-1]["to_status"] == "pending_approval"
        assert changed[-1]["budget_id"] == str(budget.id)

"""
Tests for workflow value types and the planning state machines.
"""

import pytest

from budget_kernel.domain.workflow import Transition, Workflow
from budget_modules.planning.workflows import (
    BUDGET_LIFECYCLE_WORKFLOW,
    BUDGET_REVISION_WORKFLOW,
)


class TestWorkflowValidation:

    def test_initial_state_must_be_declared(self):
        with pytest.raises(ValueError):
            Workflow(
                name="w", description="", initial_state="missing",
                states=("a",), transitions=(),
            )

    def test_transition_to_undeclared_state_rejected(self):
        with pytest.raises(ValueError):
            Workflow(
                name="w", description="", initial_state="a",
                states=("a",), transitions=(Transition("a", "b", action="go"),),
            )

    def test_terminal_state_cannot_have_outgoing_transition(self):
        with pytest.raises(ValueError):
            Workflow(
                name="w", description="", initial_state="a",
                states=("a", "b"),
                transitions=(Transition("b", "a", action="back"),),
                terminal_states=("b",),
            )


class TestBudgetLifecycleWorkflow:

    @pytest.mark.parametrize(
        "status,action,target",
        [
            ("draft", "submit", "pending_approval"),
            ("rejected", "submit", "pending_approval"),
            ("pending_approval", "approve", "approved"),
            ("pending_approval", "reject", "rejected"),
            ("approved", "activate", "active"),
            ("approved", "revise", "revised"),
            ("active", "revise", "revised"),
        ],
    )
    def test_legal_transitions(self, status, action, target):
        transition = BUDGET_LIFECYCLE_WORKFLOW.find_transition(status, action)
        assert transition is not None
        assert transition.to_state == target

    @pytest.mark.parametrize(
        "status,action",
        [
            ("draft", "approve"),
            ("draft", "activate"),
            ("pending_approval", "submit"),
            ("active", "submit"),
            ("rejected", "activate"),
            ("revised", "revise"),
        ],
    )
    def test_illegal_transitions(self, status, action):
        assert BUDGET_LIFECYCLE_WORKFLOW.find_transition(status, action) is None

    def test_allowed_actions(self):
        assert set(BUDGET_LIFECYCLE_WORKFLOW.allowed_actions("pending_approval")) == {
            "approve", "reject",
        }
        assert BUDGET_LIFECYCLE_WORKFLOW.allowed_actions("revised") == ()


class TestRevisionWorkflow:

    def test_pending_moves_once(self):
        assert BUDGET_REVISION_WORKFLOW.find_transition("pending", "apply").to_state == "approved"
        assert BUDGET_REVISION_WORKFLOW.find_transition("pending", "reject").to_state == "rejected"
        for terminal in ("approved", "rejected"):
            assert BUDGET_REVISION_WORKFLOW.allowed_actions(terminal) == ()

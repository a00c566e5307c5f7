"""Budget planning workflows.

State machines for the budget lifecycle and the revision lifecycle.  The
Lifecycle Controller and Revision Manager look up every (status, action)
pair here; an absent transition is an ``InvalidTransitionError``.
"""

from budget_kernel.domain.workflow import Guard, Transition, Workflow
from budget_kernel.logging_config import get_logger

logger = get_logger("modules.planning.workflows")


HAS_LINE_ITEMS = Guard("has_line_items", "Budget has at least one line item")
REVISION_APPLIED = Guard("revision_applied", "A pending revision was applied in full")
REVISION_NOT_STALE = Guard(
    "revision_not_stale",
    "Budget version still equals the revision's previous version",
)


BUDGET_LIFECYCLE_WORKFLOW = Workflow(
    name="budget_lifecycle",
    description="Budget approval, activation and revision lifecycle",
    initial_state="draft",
    states=("draft", "pending_approval", "approved", "rejected", "active", "revised"),
    transitions=(
        Transition("draft", "pending_approval", action="submit", guard=HAS_LINE_ITEMS),
        Transition("rejected", "pending_approval", action="submit", guard=HAS_LINE_ITEMS),
        Transition("pending_approval", "approved", action="approve"),
        Transition("pending_approval", "rejected", action="reject"),
        Transition("approved", "active", action="activate"),
        Transition("approved", "revised", action="revise", guard=REVISION_APPLIED),
        Transition("active", "revised", action="revise", guard=REVISION_APPLIED),
    ),
    terminal_states=("revised",),
)


BUDGET_REVISION_WORKFLOW = Workflow(
    name="budget_revision",
    description="Budget revision proposal lifecycle",
    initial_state="pending",
    states=("pending", "approved", "rejected"),
    transitions=(
        Transition("pending", "approved", action="apply", guard=REVISION_NOT_STALE),
        Transition("pending", "rejected", action="reject"),
    ),
    terminal_states=("approved", "rejected"),
)

logger.info("planning_workflows_registered", extra={
    "workflows": [BUDGET_LIFECYCLE_WORKFLOW.name, BUDGET_REVISION_WORKFLOW.name],
    "transition_count": (
        len(BUDGET_LIFECYCLE_WORKFLOW.transitions)
        + len(BUDGET_REVISION_WORKFLOW.transitions)
    ),
})

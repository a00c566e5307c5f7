"""
Typed Exception Hierarchy for the Budget Planning Engine.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers (forms, grids, CRM screens) must explain *why* an operation was
rejected -- "cannot delete a line with recorded actuals" is a different
message from "budget is locked".  Matching on message text is fragile, so:

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (not just a message string)

Example:
    try:
        service.delete_line(line_id, actor_id=user_id)
    except HasActualsError as e:
        show_error(code=e.code, line=e.line_id, actual=e.annual_actual)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    BudgetEngineError (base)
    |
    +-- NotFoundError
    |   +-- BudgetNotFoundError
    |   +-- BudgetLineNotFoundError
    |   +-- RevisionNotFoundError
    |   +-- AccountNotFoundError
    |   +-- LineNotFoundError          (revision proposal references)
    |
    +-- LifecycleError
    |   +-- InvalidTransitionError
    |   +-- EmptyBudgetError
    |
    +-- MutationError
    |   +-- LockedBudgetError
    |   +-- HasActualsError
    |
    +-- AllocationError
    |   +-- InvalidAllocationError
    |   +-- InvalidFiscalMonthError
    |
    +-- CurrencyError
    |   +-- InvalidCurrencyError
    |
    +-- ConcurrencyError
    |   +-- OptimisticLockError
    |
    +-- PolicyError
        +-- InvalidPolicyError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category     | Code                      | When Raised
-------------|---------------------------|--------------------------------------
Not found    | BUDGET_NOT_FOUND          | Budget id does not resolve
             | BUDGET_LINE_NOT_FOUND     | Line id does not resolve
             | REVISION_NOT_FOUND        | Revision id does not resolve
             | ACCOUNT_NOT_FOUND         | Account catalog has no such account
             | LINE_NOT_FOUND            | Revision change names a foreign line
-------------|---------------------------|--------------------------------------
Lifecycle    | INVALID_TRANSITION        | Operation illegal in current status
             | EMPTY_BUDGET              | Approval submitted with zero lines
-------------|---------------------------|--------------------------------------
Mutation     | LOCKED_BUDGET             | Budget or line is locked
             | HAS_ACTUALS               | Deleting a line with recorded actuals
-------------|---------------------------|--------------------------------------
Allocation   | INVALID_ALLOCATION        | Malformed custom period amounts
Currency     | INVALID_CURRENCY          | Not a valid ISO 4217 code
Concurrency  | OPTIMISTIC_LOCK_CONFLICT  | Roll-up write lost compare-and-swap
Policy       | INVALID_POLICY            | Planning policy fails validation

All of the above are detected before any write occurs.  Storage driver
errors (SQLAlchemy) are not wrapped -- they propagate unchanged.
===============================================================================
"""

from typing import Any


class BudgetEngineError(Exception):
    """
    Base exception for all budget engine errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "BUDGET_ENGINE_ERROR"


# Not-found exceptions


class NotFoundError(BudgetEngineError):
    """Base exception for ids that do not resolve."""

    code: str = "NOT_FOUND"

    def __init__(self, entity_type: str, entity_id: Any):
        self.entity_type = entity_type
        self.entity_id = str(entity_id)
        super().__init__(f"{entity_type} not found: {entity_id}")


class BudgetNotFoundError(NotFoundError):
    """Budget with given ID was not found."""

    code: str = "BUDGET_NOT_FOUND"

    def __init__(self, budget_id: Any):
        self.budget_id = str(budget_id)
        super().__init__("Budget", budget_id)


class BudgetLineNotFoundError(NotFoundError):
    """Budget line item with given ID was not found."""

    code: str = "BUDGET_LINE_NOT_FOUND"

    def __init__(self, line_id: Any):
        self.line_id = str(line_id)
        super().__init__("Budget line", line_id)


class RevisionNotFoundError(NotFoundError):
    """Budget revision with given ID was not found."""

    code: str = "REVISION_NOT_FOUND"

    def __init__(self, revision_id: Any):
        self.revision_id = str(revision_id)
        super().__init__("Budget revision", revision_id)


class AccountNotFoundError(NotFoundError):
    """Account catalog has no account with the given ID."""

    code: str = "ACCOUNT_NOT_FOUND"

    def __init__(self, account_id: Any):
        self.account_id = str(account_id)
        super().__init__("Account", account_id)


class LineNotFoundError(NotFoundError):
    """A proposed revision change references a line absent from the budget."""

    code: str = "LINE_NOT_FOUND"

    def __init__(self, budget_id: Any, line_id: Any):
        self.budget_id = str(budget_id)
        self.line_id = str(line_id)
        super().__init__(f"Line of budget {budget_id}", line_id)


# Lifecycle exceptions


class LifecycleError(BudgetEngineError):
    """Base exception for lifecycle / state machine errors."""

    code: str = "LIFECYCLE_ERROR"


class InvalidTransitionError(LifecycleError):
    """Operation invoked from a status that does not permit it."""

    code: str = "INVALID_TRANSITION"

    def __init__(
        self,
        entity_type: str,
        entity_id: Any,
        current_status: str,
        action: str,
        reason: str | None = None,
    ):
        self.entity_type = entity_type
        self.entity_id = str(entity_id)
        self.current_status = current_status
        self.action = action
        self.reason = reason
        message = (
            f"Cannot {action} {entity_type} {entity_id} "
            f"in status '{current_status}'"
        )
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class EmptyBudgetError(LifecycleError):
    """Approval submitted for a budget with zero line items."""

    code: str = "EMPTY_BUDGET"

    def __init__(self, budget_id: Any):
        self.budget_id = str(budget_id)
        super().__init__(
            f"Budget {budget_id} has no line items and cannot be submitted"
        )


# Mutation exceptions


class MutationError(BudgetEngineError):
    """Base exception for rejected mutations."""

    code: str = "MUTATION_ERROR"


class LockedBudgetError(MutationError):
    """Mutation attempted while the budget (or line) is locked."""

    code: str = "LOCKED_BUDGET"

    def __init__(self, entity_type: str, entity_id: Any):
        self.entity_type = entity_type
        self.entity_id = str(entity_id)
        super().__init__(f"{entity_type} {entity_id} is locked")


class HasActualsError(MutationError):
    """Deletion attempted on a line with nonzero actual spend."""

    code: str = "HAS_ACTUALS"

    def __init__(self, line_id: Any, annual_actual: Any):
        self.line_id = str(line_id)
        self.annual_actual = str(annual_actual)
        super().__init__(
            f"Cannot delete budget line {line_id} with recorded actuals "
            f"({annual_actual})"
        )


# Allocation exceptions


class AllocationError(BudgetEngineError):
    """Base exception for period allocation errors."""

    code: str = "ALLOCATION_ERROR"


class InvalidAllocationError(AllocationError):
    """Custom period amounts are malformed."""

    code: str = "INVALID_ALLOCATION"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Invalid allocation: {reason}")


class InvalidFiscalMonthError(AllocationError):
    """A fiscal month outside 1..12."""

    code: str = "INVALID_FISCAL_MONTH"

    def __init__(self, fiscal_month: Any):
        self.fiscal_month = fiscal_month
        super().__init__(f"Fiscal month out of range (1-12): {fiscal_month}")


# Currency exceptions


class CurrencyError(BudgetEngineError):
    """Base exception for currency errors."""

    code: str = "CURRENCY_ERROR"


class InvalidCurrencyError(CurrencyError):
    """Currency code is not a valid ISO 4217 code."""

    code: str = "INVALID_CURRENCY"

    def __init__(self, currency: str):
        self.currency = currency
        super().__init__(f"Invalid ISO 4217 currency code: '{currency}'")


# Concurrency exceptions


class ConcurrencyError(BudgetEngineError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class OptimisticLockError(ConcurrencyError):
    """Optimistic locking conflict detected."""

    code: str = "OPTIMISTIC_LOCK_CONFLICT"

    def __init__(self, entity_type: str, entity_id: Any, attempts: int = 1):
        self.entity_type = entity_type
        self.entity_id = str(entity_id)
        self.attempts = attempts
        super().__init__(
            f"Optimistic lock conflict on {entity_type} {entity_id}: "
            f"entity was modified by another transaction "
            f"(after {attempts} attempt(s))"
        )


# Policy exceptions


class PolicyError(BudgetEngineError):
    """Base exception for planning policy errors."""

    code: str = "POLICY_ERROR"


class InvalidPolicyError(PolicyError):
    """Planning policy values fail validation."""

    code: str = "INVALID_POLICY"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid planning policy field '{field}': {reason}")

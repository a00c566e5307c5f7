"""
Budget Planning Domain Models (``budget_modules.planning.models``).

Responsibility
--------------
Frozen dataclass value objects representing the nouns of budget
planning: budgets, line items, revisions and their line changes, plus
the input/update/filter records callers pass in.

Architecture position
---------------------
**Modules layer** -- pure data definitions with ZERO I/O.  Consumed by
``BudgetService`` and returned to callers.  The period-table row and the
allocation method come from ``budget_engines.types`` so engines and
module share one definition.

Invariants enforced
-------------------
* All models are ``frozen=True`` (immutable after construction); changes
  go through ``dataclasses.replace``.
* All monetary fields use ``Decimal`` -- NEVER ``float``.
* Roll-up and annual derived figures are never set by callers; only the
  aggregator and the allocation engine produce them.

Failure modes
-------------
* Construction with invalid enum values raises ``ValueError``.
"""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from budget_engines.forecast import BudgetForecast, MonthlyProjection
from budget_engines.types import AllocationMethod, BudgetPeriodAmount
from budget_engines.variance import (
    BudgetVariance,
    LineVariance,
    VarianceGroup,
    VarianceStatus,
)

ZERO = Decimal("0")


class BudgetStatus(Enum):
    """Budget lifecycle states."""
    DRAFT = "draft"
    PENDING_APPROVAL = "pending_approval"
    APPROVED = "approved"
    REJECTED = "rejected"
    ACTIVE = "active"
    REVISED = "revised"


class BudgetType(Enum):
    """Budget classification."""
    OPERATING = "operating"
    CAPITAL = "capital"
    PROJECT = "project"
    DEPARTMENT = "department"
    CASH_FLOW = "cash_flow"


class PeriodType(Enum):
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    ANNUAL = "annual"


class RevisionStatus(Enum):
    """Revision states. APPROVED means applied."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class ApprovalAction(Enum):
    APPROVE = "approve"
    REJECT = "reject"


@dataclass(frozen=True)
class Budget:
    """One fiscal-year spending plan (header plus roll-up totals)."""
    id: UUID
    company_id: UUID
    name: str
    code: str
    type: BudgetType
    fiscal_year: int
    start_date: date
    end_date: date
    currency: str
    period_type: PeriodType = PeriodType.MONTHLY
    description: str | None = None
    department_id: str | None = None
    project_id: str | None = None
    tags: tuple[str, ...] = ()

    total_budget: Decimal = ZERO
    total_actual: Decimal = ZERO
    total_committed: Decimal = ZERO
    total_available: Decimal = ZERO
    total_variance: Decimal = ZERO
    variance_percent: Decimal = ZERO

    status: BudgetStatus = BudgetStatus.DRAFT
    version: int = 1
    is_locked: bool = False
    parent_budget_id: UUID | None = None
    has_children: bool = False

    approved_by_id: UUID | None = None
    approved_at: datetime | None = None
    approval_notes: str | None = None

    created_at: datetime | None = None
    created_by_id: UUID | None = None
    updated_at: datetime | None = None
    updated_by_id: UUID | None = None
    row_version: int = 1


@dataclass(frozen=True)
class BudgetLineItem:
    """
    One account's annual allocation within a budget.

    Account code/name/type/sub-type are a snapshot taken when the line was
    created; they are not re-synced from the catalog.
    """
    id: UUID
    budget_id: UUID
    account_id: str
    account_code: str
    account_name: str
    account_type: str
    annual_budget: Decimal
    account_sub_type: str | None = None
    annual_actual: Decimal = ZERO
    annual_committed: Decimal = ZERO
    annual_available: Decimal = ZERO
    annual_variance: Decimal = ZERO
    variance_percent: Decimal = ZERO
    period_amounts: tuple[BudgetPeriodAmount, ...] = ()
    allocation_method: AllocationMethod = AllocationMethod.EQUAL
    description: str | None = None
    notes: str | None = None
    department_id: str | None = None
    project_id: str | None = None
    cost_center_id: str | None = None
    is_locked: bool = False

    created_at: datetime | None = None
    created_by_id: UUID | None = None
    updated_at: datetime | None = None
    updated_by_id: UUID | None = None


@dataclass(frozen=True)
class BudgetLineChange:
    """One line's amount change within a revision."""
    line_id: UUID
    account_code: str
    account_name: str
    previous_amount: Decimal
    new_amount: Decimal
    change_amount: Decimal
    reason: str | None = None


@dataclass(frozen=True)
class BudgetRevision:
    """An append-only record of a proposed (and possibly applied) set of line changes."""
    id: UUID
    budget_id: UUID
    revision_number: int
    reason: str
    previous_version: int
    new_version: int
    previous_total: Decimal
    new_total: Decimal
    change_amount: Decimal
    line_changes: tuple[BudgetLineChange, ...] = ()
    status: RevisionStatus = RevisionStatus.PENDING
    revision_date: datetime | None = None
    approved_by_id: UUID | None = None
    approved_at: datetime | None = None
    rejected_by_id: UUID | None = None
    rejected_at: datetime | None = None
    rejection_notes: str | None = None
    created_at: datetime | None = None
    created_by_id: UUID | None = None


# ---------------------------------------------------------------------------
# Caller inputs
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BudgetInput:
    """Fields a caller supplies to create a budget."""
    name: str
    type: BudgetType
    fiscal_year: int
    period_type: PeriodType = PeriodType.MONTHLY
    code: str | None = None
    description: str | None = None
    department_id: str | None = None
    project_id: str | None = None
    currency: str | None = None
    parent_budget_id: UUID | None = None
    tags: tuple[str, ...] = ()


@dataclass(frozen=True)
class BudgetUpdate:
    """Editable budget header fields. ``None`` leaves a field unchanged."""
    name: str | None = None
    code: str | None = None
    description: str | None = None
    department_id: str | None = None
    project_id: str | None = None
    currency: str | None = None
    tags: tuple[str, ...] | None = None


@dataclass(frozen=True)
class BudgetLineInput:
    """Fields a caller supplies to add a line. ``period_amounts`` feeds ``custom``."""
    account_id: str
    annual_budget: Decimal
    allocation_method: AllocationMethod = AllocationMethod.EQUAL
    period_amounts: tuple[Decimal, ...] | None = None
    description: str | None = None
    notes: str | None = None
    department_id: str | None = None
    project_id: str | None = None
    cost_center_id: str | None = None


@dataclass(frozen=True)
class BudgetLineUpdate:
    """Editable line fields. ``None`` leaves a field unchanged."""
    annual_budget: Decimal | None = None
    allocation_method: AllocationMethod | None = None
    period_amounts: tuple[Decimal, ...] | None = None
    description: str | None = None
    notes: str | None = None
    department_id: str | None = None
    project_id: str | None = None
    cost_center_id: str | None = None

    @property
    def changes_allocation(self) -> bool:
        return (
            self.annual_budget is not None
            or self.allocation_method is not None
            or self.period_amounts is not None
        )


@dataclass(frozen=True)
class LineChangeRequest:
    """A requested new annual amount for one line in a revision proposal."""
    line_id: UUID
    new_amount: Decimal
    reason: str | None = None


@dataclass(frozen=True)
class BudgetFilters:
    """Budget query filters. Tuples match any of their members."""
    fiscal_year: int | None = None
    types: tuple[BudgetType, ...] = ()
    statuses: tuple[BudgetStatus, ...] = ()
    department_id: str | None = None
    project_id: str | None = None
    search_term: str | None = None


@dataclass(frozen=True)
class BudgetQueryResult:
    budgets: tuple[Budget, ...]
    total: int
    total_budget: Decimal
    total_actual: Decimal


__all__ = [
    "AllocationMethod",
    "ApprovalAction",
    "Budget",
    "BudgetFilters",
    "BudgetForecast",
    "BudgetInput",
    "BudgetLineChange",
    "BudgetLineInput",
    "BudgetLineItem",
    "BudgetLineUpdate",
    "BudgetPeriodAmount",
    "BudgetQueryResult",
    "BudgetRevision",
    "BudgetStatus",
    "BudgetType",
    "BudgetUpdate",
    "BudgetVariance",
    "LineChangeRequest",
    "LineVariance",
    "MonthlyProjection",
    "PeriodType",
    "RevisionStatus",
    "VarianceGroup",
    "VarianceStatus",
]

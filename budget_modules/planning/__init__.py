"""
Budget Planning Module (``budget_modules.planning``).

Responsibility
--------------
Fiscal-year budgets and their account lines: period allocation, roll-up
totals, the draft -> approval -> activation lifecycle, versioned
revisions, and on-demand variance and forecast reports.

Architecture position
---------------------
**Modules layer** -- DTOs, ORM models, the SQLAlchemy store, workflows
and the ``BudgetService`` facade.  Calculations are delegated to
``budget_engines``; thresholds and heuristics come from ``budget_config``.

Failure modes
-------------
* Typed ``budget_kernel.exceptions`` errors, raised before any write.
"""

from budget_modules.planning.catalog import (
    AccountCatalog,
    AccountInfo,
    MappingAccountCatalog,
)
from budget_modules.planning.models import (
    AllocationMethod,
    ApprovalAction,
    Budget,
    BudgetFilters,
    BudgetForecast,
    BudgetInput,
    BudgetLineChange,
    BudgetLineInput,
    BudgetLineItem,
    BudgetLineUpdate,
    BudgetPeriodAmount,
    BudgetQueryResult,
    BudgetRevision,
    BudgetStatus,
    BudgetType,
    BudgetUpdate,
    BudgetVariance,
    LineChangeRequest,
    LineVariance,
    MonthlyProjection,
    PeriodType,
    RevisionStatus,
    VarianceGroup,
    VarianceStatus,
)
from budget_modules.planning.service import BudgetService
from budget_modules.planning.workflows import (
    BUDGET_LIFECYCLE_WORKFLOW,
    BUDGET_REVISION_WORKFLOW,
)

__all__ = [
    "AccountCatalog",
    "AccountInfo",
    "AllocationMethod",
    "ApprovalAction",
    "BUDGET_LIFECYCLE_WORKFLOW",
    "BUDGET_REVISION_WORKFLOW",
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
    "BudgetService",
    "BudgetStatus",
    "BudgetType",
    "BudgetUpdate",
    "BudgetVariance",
    "LineChangeRequest",
    "LineVariance",
    "MappingAccountCatalog",
    "MonthlyProjection",
    "PeriodType",
    "RevisionStatus",
    "VarianceGroup",
    "VarianceStatus",
]

"""
Budget Planning Service (``budget_modules.planning.service``).

Responsibility
--------------
Orchestrates budget planning operations -- budget and line maintenance,
period actual recording, the approval lifecycle, revisions, roll-up
recalculation and the variance/forecast reports -- over the Budget
Store, the allocation/variance/forecast engines and the planning policy.

Architecture position
---------------------
**Modules layer** -- thin glue.  ``BudgetService`` is the sole public
entry point for collaborators (forms, grids, CRM screens).  Pure
calculation lives in ``budget_engines``; persistence lives in
``SqlBudgetStore``.

Invariants enforced
-------------------
* Each public mutating method owns the transaction boundary
  (``commit`` on success, ``rollback`` and re-raise on any exception).
* Every validation happens before the first write, so a rejected
  operation leaves persisted state unchanged.
* Every line create/update/delete and every actual recording ends with a
  roll-up recalculation inside the same transaction.
* The actor id is an explicit parameter of every mutating method.

Failure modes
-------------
* ``BudgetEngineError`` subclasses for caller-input and state errors;
  each is logged at WARNING as ``<operation>_rejected`` with its code.
* SQLAlchemy errors propagate unchanged after rollback.

Audit relevance
---------------
Structured log events for every operation carry budget, line and
revision ids and stringified amounts; ``LogContext`` binds the actor and
budget ids for the duration of each call.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import replace
from datetime import date
from decimal import Decimal
from typing import TypeVar
from uuid import UUID, uuid4

from sqlalchemy.orm import Session

from budget_config import get_default_policy
from budget_config.schema import PlanningPolicy
from budget_engines.allocation import (
    allocate_periods,
    reallocate_periods,
    with_period_actual,
)
from budget_engines.forecast import ForecastGenerator
from budget_engines.rollup import derive_line_totals
from budget_engines.variance import VarianceAnalyzer
from budget_kernel.db.types import ZERO, to_decimal, validate_currency
from budget_kernel.domain.clock import Clock, SystemClock
from budget_kernel.domain.fiscal import fiscal_year_bounds
from budget_kernel.exceptions import (
    AccountNotFoundError,
    BudgetEngineError,
    HasActualsError,
    LockedBudgetError,
)
from budget_kernel.logging_config import LogContext, get_logger
from budget_modules.planning.aggregator import BudgetAggregator
from budget_modules.planning.catalog import AccountCatalog
from budget_modules.planning.lifecycle import BudgetLifecycle
from budget_modules.planning.models import (
    ApprovalAction,
    Budget,
    BudgetFilters,
    BudgetForecast,
    BudgetInput,
    BudgetLineInput,
    BudgetLineItem,
    BudgetLineUpdate,
    BudgetQueryResult,
    BudgetRevision,
    BudgetUpdate,
    BudgetVariance,
    LineChangeRequest,
)
from budget_modules.planning.revisions import RevisionManager
from budget_modules.planning.store import SqlBudgetStore

logger = get_logger("modules.planning.service")

T = TypeVar("T")


def default_budget_code(fiscal_year: int, budget_type) -> str:
    """``BUD-2026-OP`` style code: fiscal year plus the type's first two letters."""
    return f"BUD-{fiscal_year}-{budget_type.value[:2].upper()}"


class BudgetService:
    """
    Orchestrates budget planning through the store, engines and policy.

    Contract
    --------
    * Mutating methods return the refreshed DTO after commit.
    * Read methods (``get_*``, ``list_budgets``, ``analyze_variance``,
      ``forecast``) never write.

    Guarantees
    ----------
    * Session is committed only when the whole operation succeeded.
    * Clock is injectable for deterministic testing.

    Non-goals
    ---------
    * Does NOT authenticate or authorize the actor.
    * Does NOT convert between currencies; the currency is a tag.
    """

    def __init__(
        self,
        session: Session,
        account_catalog: AccountCatalog,
        policy: PlanningPolicy | None = None,
        clock: Clock | None = None,
    ):
        self._session = session
        self._catalog = account_catalog
        self._policy = policy or get_default_policy()
        self._clock = clock or SystemClock()

        self._store = SqlBudgetStore(session)
        self._aggregator = BudgetAggregator(self._store, self._policy.rollup, self._clock)
        self._lifecycle = BudgetLifecycle(self._store, self._clock)
        self._revisions = RevisionManager(
            self._store, self._aggregator, self._policy.allocation, self._clock,
        )
        self._variance = VarianceAnalyzer(self._policy.variance)
        self._forecaster = ForecastGenerator(
            self._policy.forecast, self._policy.money_decimal_places,
        )

    @property
    def store(self) -> SqlBudgetStore:
        return self._store

    @property
    def policy(self) -> PlanningPolicy:
        return self._policy

    def _transact(self, operation: str, func: Callable[[], T]) -> T:
        """Run ``func`` and commit, or roll back and re-raise."""
        try:
            result = func()
            self._session.commit()
            return result
        except BudgetEngineError as exc:
            self._session.rollback()
            logger.warning(f"{operation}_rejected", extra={
                "operation": operation,
                "error_code": exc.code,
                "error": str(exc),
            })
            raise
        except Exception:
            self._session.rollback()
            raise

    # =========================================================================
    # Budgets
    # =========================================================================

    def create_budget(
        self,
        company_id: UUID,
        data: BudgetInput,
        actor_id: UUID,
    ) -> Budget:
        """Create a draft budget at version 1 with zero totals."""
        with LogContext.bind(actor_id=actor_id, company_id=company_id):
            logger.info("budget_create_started", extra={
                "company_id": str(company_id),
                "fiscal_year": data.fiscal_year,
                "budget_type": data.type.value,
            })

            def _create() -> Budget:
                currency = validate_currency(data.currency or self._policy.default_currency)
                parent = None
                if data.parent_budget_id is not None:
                    parent = self._store.get_budget(data.parent_budget_id)

                start, end = fiscal_year_bounds(data.fiscal_year)
                now = self._clock.now()
                budget = self._store.create_budget(
                    Budget(
                        id=uuid4(),
                        company_id=company_id,
                        name=data.name,
                        code=data.code or default_budget_code(data.fiscal_year, data.type),
                        type=data.type,
                        fiscal_year=data.fiscal_year,
                        start_date=start,
                        end_date=end,
                        currency=currency,
                        period_type=data.period_type,
                        description=data.description,
                        department_id=data.department_id,
                        project_id=data.project_id,
                        tags=tuple(data.tags),
                        parent_budget_id=data.parent_budget_id,
                        created_at=now,
                        created_by_id=actor_id,
                        updated_at=now,
                    ),
                    actor_id=actor_id,
                )
                if parent is not None and not parent.has_children:
                    self._store.update_budget(
                        replace(parent, has_children=True, updated_at=now, updated_by_id=actor_id)
                    )
                return budget

            budget = self._transact("budget_create", _create)
            logger.info("budget_created", extra={
                "budget_id": str(budget.id),
                "code": budget.code,
                "currency": budget.currency,
            })
            return budget

    def get_budget(self, budget_id: UUID) -> Budget:
        return self._store.get_budget(budget_id)

    def update_budget(
        self,
        budget_id: UUID,
        update: BudgetUpdate,
        actor_id: UUID,
    ) -> Budget:
        """Edit header fields. Fields left as ``None`` are unchanged."""
        with LogContext.bind(actor_id=actor_id, budget_id=budget_id):
            def _update() -> Budget:
                budget = self._store.get_budget(budget_id)
                if budget.is_locked:
                    raise LockedBudgetError("Budget", budget_id)
                changes = {
                    name: getattr(update, name)
                    for name in ("name", "code", "description", "department_id", "project_id")
                    if getattr(update, name) is not None
                }
                if update.currency is not None:
                    changes["currency"] = validate_currency(update.currency)
                if update.tags is not None:
                    changes["tags"] = tuple(update.tags)
                return self._store.update_budget(
                    replace(
                        budget,
                        updated_at=self._clock.now(),
                        updated_by_id=actor_id,
                        **changes,
                    )
                )

            budget = self._transact("budget_update", _update)
            logger.info("budget_updated", extra={"budget_id": str(budget_id)})
            return budget

    def list_budgets(
        self,
        company_id: UUID,
        filters: BudgetFilters | None = None,
    ) -> BudgetQueryResult:
        budgets = self._store.query_budgets(company_id, filters)
        return BudgetQueryResult(
            budgets=tuple(budgets),
            total=len(budgets),
            total_budget=sum((b.total_budget for b in budgets), ZERO),
            total_actual=sum((b.total_actual for b in budgets), ZERO),
        )

    def lock_budget(self, budget_id: UUID, actor_id: UUID) -> Budget:
        with LogContext.bind(actor_id=actor_id, budget_id=budget_id):
            return self._transact(
                "budget_lock",
                lambda: self._lifecycle.set_locked(budget_id, True, actor_id),
            )

    def unlock_budget(self, budget_id: UUID, actor_id: UUID) -> Budget:
        with LogContext.bind(actor_id=actor_id, budget_id=budget_id):
            return self._transact(
                "budget_unlock",
                lambda: self._lifecycle.set_locked(budget_id, False, actor_id),
            )

    # =========================================================================
    # Line items
    # =========================================================================

    def _mutable_line(self, line_id: UUID) -> tuple[Budget, BudgetLineItem]:
        line = self._store.get_line(line_id)
        budget = self._store.get_budget(line.budget_id)
        if budget.is_locked:
            raise LockedBudgetError("Budget", budget.id)
        if line.is_locked:
            raise LockedBudgetError("Budget line", line_id)
        return budget, line

    @staticmethod
    def _with_totals(line: BudgetLineItem, periods, **changes) -> BudgetLineItem:
        annual_budget = changes.pop("annual_budget", line.annual_budget)
        totals = derive_line_totals(annual_budget, periods)
        return replace(
            line,
            annual_budget=totals.annual_budget,
            annual_actual=totals.annual_actual,
            annual_committed=totals.annual_committed,
            annual_available=totals.annual_available,
            annual_variance=totals.annual_variance,
            variance_percent=totals.variance_percent,
            period_amounts=periods,
            **changes,
        )

    def add_line(
        self,
        budget_id: UUID,
        data: BudgetLineInput,
        actor_id: UUID,
    ) -> BudgetLineItem:
        """
        Add an account line, allocate its periods and recalculate the roll-up.

        The account's code, name, type and sub-type are snapshotted now and
        never re-read from the catalog.
        """
        with LogContext.bind(actor_id=actor_id, budget_id=budget_id):
            logger.info("budget_line_add_started", extra={
                "account_id": data.account_id,
                "annual_budget": str(data.annual_budget),
                "allocation_method": data.allocation_method.value,
            })

            def _add() -> BudgetLineItem:
                budget = self._store.get_budget(budget_id)
                if budget.is_locked:
                    raise LockedBudgetError("Budget", budget_id)
                account = self._catalog.get_account(data.account_id)
                if account is None:
                    raise AccountNotFoundError(data.account_id)

                annual = to_decimal(data.annual_budget)
                periods = allocate_periods(
                    annual_amount=annual,
                    method=data.allocation_method,
                    fiscal_year=budget.fiscal_year,
                    custom_amounts=data.period_amounts,
                    policy=self._policy.allocation,
                )
                now = self._clock.now()
                skeleton = BudgetLineItem(
                    id=uuid4(),
                    budget_id=budget_id,
                    account_id=account.account_id,
                    account_code=account.code,
                    account_name=account.name,
                    account_type=account.type,
                    account_sub_type=account.sub_type,
                    annual_budget=annual,
                    allocation_method=data.allocation_method,
                    description=data.description,
                    notes=data.notes,
                    department_id=data.department_id,
                    project_id=data.project_id,
                    cost_center_id=data.cost_center_id,
                    created_at=now,
                    created_by_id=actor_id,
                    updated_at=now,
                )
                line = self._store.create_line(
                    self._with_totals(skeleton, periods), actor_id=actor_id,
                )
                self._aggregator.recalculate(budget_id, actor_id)
                return line

            line = self._transact("budget_line_add", _add)
            logger.info("budget_line_added", extra={
                "line_id": str(line.id),
                "account_code": line.account_code,
                "annual_budget": str(line.annual_budget),
            })
            return line

    def get_lines(self, budget_id: UUID) -> list[BudgetLineItem]:
        self._store.get_budget(budget_id)
        return self._store.get_lines(budget_id)

    def get_line(self, line_id: UUID) -> BudgetLineItem:
        return self._store.get_line(line_id)

    def update_line(
        self,
        line_id: UUID,
        update: BudgetLineUpdate,
        actor_id: UUID,
    ) -> BudgetLineItem:
        """
        Edit a line.  A new annual amount, method or set of custom amounts
        reallocates the budget column; recorded actuals are kept.
        """
        with LogContext.bind(actor_id=actor_id, line_id=line_id):
            def _update() -> BudgetLineItem:
                budget, line = self._mutable_line(line_id)
                changes = {
                    name: getattr(update, name)
                    for name in (
                        "description", "notes", "department_id",
                        "project_id", "cost_center_id",
                    )
                    if getattr(update, name) is not None
                }
                periods = line.period_amounts
                if update.changes_allocation:
                    annual = (
                        to_decimal(update.annual_budget)
                        if update.annual_budget is not None
                        else line.annual_budget
                    )
                    method = update.allocation_method or line.allocation_method
                    periods = reallocate_periods(
                        line.period_amounts,
                        annual_amount=annual,
                        method=method,
                        fiscal_year=budget.fiscal_year,
                        custom_amounts=update.period_amounts,
                        policy=self._policy.allocation,
                    )
                    changes["annual_budget"] = annual
                    changes["allocation_method"] = method

                updated = self._store.update_line(
                    self._with_totals(
                        line, periods,
                        updated_at=self._clock.now(),
                        updated_by_id=actor_id,
                        **changes,
                    )
                )
                self._aggregator.recalculate(budget.id, actor_id)
                return updated

            line = self._transact("budget_line_update", _update)
            logger.info("budget_line_updated", extra={
                "line_id": str(line_id),
                "budget_id": str(line.budget_id),
                "annual_budget": str(line.annual_budget),
                "reallocated": update.changes_allocation,
            })
            return line

    def delete_line(self, line_id: UUID, actor_id: UUID) -> Budget:
        """Delete a line without recorded actuals; return the recalculated budget."""
        with LogContext.bind(actor_id=actor_id, line_id=line_id):
            def _delete() -> Budget:
                budget, line = self._mutable_line(line_id)
                if line.annual_actual != ZERO:
                    raise HasActualsError(line_id, line.annual_actual)
                self._store.delete_line(line_id)
                return self._aggregator.recalculate(budget.id, actor_id)

            budget = self._transact("budget_line_delete", _delete)
            logger.info("budget_line_deleted", extra={
                "line_id": str(line_id),
                "budget_id": str(budget.id),
            })
            return budget

    def record_period_actual(
        self,
        line_id: UUID,
        fiscal_month: int,
        actual_amount: Decimal,
        actor_id: UUID,
        committed_amount: Decimal | None = None,
    ) -> BudgetLineItem:
        """
        Set one fiscal month's actual (and optionally committed) spend.

        The month and YTD fields of the period table and the line's annual
        figures are rederived, then the roll-up is recalculated.
        """
        with LogContext.bind(actor_id=actor_id, line_id=line_id):
            def _record() -> BudgetLineItem:
                budget, line = self._mutable_line(line_id)
                periods = with_period_actual(
                    line.period_amounts,
                    fiscal_year=budget.fiscal_year,
                    fiscal_month=fiscal_month,
                    actual_amount=actual_amount,
                    committed_amount=committed_amount,
                )
                updated = self._store.update_line(
                    self._with_totals(
                        line, periods,
                        updated_at=self._clock.now(),
                        updated_by_id=actor_id,
                    )
                )
                self._aggregator.recalculate(budget.id, actor_id)
                return updated

            line = self._transact("period_actual_record", _record)
            logger.info("period_actual_recorded", extra={
                "line_id": str(line_id),
                "fiscal_month": fiscal_month,
                "actual_amount": str(actual_amount),
                "annual_actual": str(line.annual_actual),
            })
            return line

    def _set_line_locked(self, line_id: UUID, locked: bool, actor_id: UUID) -> BudgetLineItem:
        line = self._store.get_line(line_id)
        return self._store.update_line(
            replace(
                line,
                is_locked=locked,
                updated_at=self._clock.now(),
                updated_by_id=actor_id,
            )
        )

    def lock_line(self, line_id: UUID, actor_id: UUID) -> BudgetLineItem:
        return self._transact(
            "budget_line_lock", lambda: self._set_line_locked(line_id, True, actor_id),
        )

    def unlock_line(self, line_id: UUID, actor_id: UUID) -> BudgetLineItem:
        return self._transact(
            "budget_line_unlock", lambda: self._set_line_locked(line_id, False, actor_id),
        )

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def submit_for_approval(self, budget_id: UUID, actor_id: UUID) -> Budget:
        with LogContext.bind(actor_id=actor_id, budget_id=budget_id):
            return self._transact(
                "budget_submit",
                lambda: self._lifecycle.submit_for_approval(budget_id, actor_id),
            )

    def process_approval(
        self,
        budget_id: UUID,
        action: ApprovalAction,
        actor_id: UUID,
        notes: str | None = None,
    ) -> Budget:
        with LogContext.bind(actor_id=actor_id, budget_id=budget_id):
            return self._transact(
                "budget_approval",
                lambda: self._lifecycle.process_approval(budget_id, action, actor_id, notes),
            )

    def activate(self, budget_id: UUID, actor_id: UUID) -> Budget:
        with LogContext.bind(actor_id=actor_id, budget_id=budget_id):
            return self._transact(
                "budget_activate",
                lambda: self._lifecycle.activate(budget_id, actor_id),
            )

    # =========================================================================
    # Revisions
    # =========================================================================

    def propose_revision(
        self,
        budget_id: UUID,
        reason: str,
        changes: list[LineChangeRequest],
        actor_id: UUID,
    ) -> BudgetRevision:
        with LogContext.bind(actor_id=actor_id, budget_id=budget_id):
            return self._transact(
                "revision_propose",
                lambda: self._revisions.propose(budget_id, reason, changes, actor_id),
            )

    def apply_revision(self, revision_id: UUID, actor_id: UUID) -> BudgetRevision:
        """Apply a pending revision; line updates, revision and budget version commit together."""
        with LogContext.bind(actor_id=actor_id, revision_id=revision_id):
            return self._transact(
                "revision_apply",
                lambda: self._revisions.apply(revision_id, actor_id),
            )

    def reject_revision(
        self,
        revision_id: UUID,
        actor_id: UUID,
        notes: str | None = None,
    ) -> BudgetRevision:
        with LogContext.bind(actor_id=actor_id, revision_id=revision_id):
            return self._transact(
                "revision_reject",
                lambda: self._revisions.reject(revision_id, actor_id, notes),
            )

    def get_revisions(self, budget_id: UUID) -> list[BudgetRevision]:
        return self._revisions.get_revisions(budget_id)

    def get_revision(self, revision_id: UUID) -> BudgetRevision:
        return self._store.get_revision(revision_id)

    # =========================================================================
    # Roll-up and reports
    # =========================================================================

    def recalculate(self, budget_id: UUID, actor_id: UUID) -> Budget:
        """Recompute the roll-up from current lines (idempotent)."""
        with LogContext.bind(actor_id=actor_id, budget_id=budget_id):
            return self._transact(
                "budget_recalculate",
                lambda: self._aggregator.recalculate(budget_id, actor_id),
            )

    def analyze_variance(self, budget_id: UUID, as_of: date | None = None) -> BudgetVariance:
        budget = self._store.get_budget(budget_id)
        lines = self._store.get_lines(budget_id)
        return self._variance.analyze(budget, lines, as_of=as_of or self._clock.today())

    def forecast(self, budget_id: UUID, as_of: date | None = None) -> BudgetForecast:
        budget = self._store.get_budget(budget_id)
        lines = self._store.get_lines(budget_id)
        return self._forecaster.forecast(budget, lines, as_of=as_of or self._clock.today())

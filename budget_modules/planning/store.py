"""
Budget Store (``budget_modules.planning.store``).

Responsibility
--------------
Persistence boundary for budgets, budget lines and budget revisions:
create/get/update/delete by id, budget queries, the roll-up
compare-and-swap write, and the all-or-nothing batch commit used to
apply revisions.

Architecture position
---------------------
**Modules layer** -- SQLAlchemy adapter.  Accepts a Session from the
caller and returns DTOs, never ORM instances.

Invariants enforced
-------------------
* Single-record methods only ``flush``; the calling service owns
  ``commit``/``rollback``.
* ``batch_commit`` is the one method that commits: every operation, and
  any follow-up write made by its ``before_commit`` step, lands or none does.
* ``write_rollup`` only succeeds when the budget's ``row_version`` still
  equals the version the caller read, and increments it.
* Header reads always refresh from the database so a roll-up written by
  another writer is never masked by the identity map.

Failure modes
-------------
* ``BudgetNotFoundError`` / ``BudgetLineNotFoundError`` /
  ``RevisionNotFoundError`` for ids that do not resolve.
* SQLAlchemy errors propagate unchanged.
"""

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from budget_engines.rollup import RollupTotals
from budget_kernel.exceptions import (
    BudgetLineNotFoundError,
    BudgetNotFoundError,
    RevisionNotFoundError,
)
from budget_kernel.logging_config import get_logger
from budget_modules.planning.models import (
    Budget,
    BudgetFilters,
    BudgetLineItem,
    BudgetRevision,
)
from budget_modules.planning.orm import (
    BudgetLineModel,
    BudgetModel,
    BudgetRevisionModel,
)

logger = get_logger("modules.planning.store")


# ---------------------------------------------------------------------------
# Batch operations
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class UpdateLineOp:
    line: BudgetLineItem


@dataclass(frozen=True)
class UpdateRevisionOp:
    revision: BudgetRevision


@dataclass(frozen=True)
class UpdateBudgetOp:
    budget: Budget


BatchOperation = UpdateLineOp | UpdateRevisionOp | UpdateBudgetOp


class SqlBudgetStore:
    """
    SQLAlchemy-backed Budget Store.

    Contract:
        The caller owns the session and its transaction, except for
        ``batch_commit`` which commits (or rolls back) itself.
    """

    def __init__(self, session: Session):
        self._session = session

    @property
    def session(self) -> Session:
        return self._session

    # =========================================================================
    # Budgets
    # =========================================================================

    def _budget_model(self, budget_id: UUID) -> BudgetModel:
        self._session.flush()
        model = self._session.get(BudgetModel, budget_id, populate_existing=True)
        if model is None:
            raise BudgetNotFoundError(budget_id)
        return model

    def create_budget(self, budget: Budget, actor_id: UUID) -> Budget:
        model = BudgetModel.from_dto(budget, created_by_id=actor_id)
        self._session.add(model)
        self._session.flush()
        return model.to_dto()

    def find_budget(self, budget_id: UUID) -> Budget | None:
        self._session.flush()
        model = self._session.get(BudgetModel, budget_id, populate_existing=True)
        return model.to_dto() if model is not None else None

    def get_budget(self, budget_id: UUID) -> Budget:
        return self._budget_model(budget_id).to_dto()

    def update_budget(self, budget: Budget) -> Budget:
        model = self._budget_model(budget.id)
        model.apply_dto(budget)
        self._session.flush()
        return model.to_dto()

    def delete_budget(self, budget_id: UUID) -> None:
        """Delete a budget with its lines and revisions."""
        model = self._budget_model(budget_id)
        self._session.delete(model)
        self._session.flush()

    def query_budgets(
        self,
        company_id: UUID,
        filters: BudgetFilters | None = None,
    ) -> list[Budget]:
        """
        Budgets of a company ordered by fiscal year (newest first), then name.

        Equality filters run in SQL; the search term is a case-insensitive
        substring match on name, code or description.
        """
        filters = filters or BudgetFilters()
        stmt = select(BudgetModel).where(BudgetModel.company_id == company_id)
        if filters.fiscal_year is not None:
            stmt = stmt.where(BudgetModel.fiscal_year == filters.fiscal_year)
        if filters.types:
            stmt = stmt.where(BudgetModel.budget_type.in_([t.value for t in filters.types]))
        if filters.statuses:
            stmt = stmt.where(BudgetModel.status.in_([s.value for s in filters.statuses]))
        if filters.department_id is not None:
            stmt = stmt.where(BudgetModel.department_id == filters.department_id)
        if filters.project_id is not None:
            stmt = stmt.where(BudgetModel.project_id == filters.project_id)
        stmt = stmt.order_by(BudgetModel.fiscal_year.desc(), BudgetModel.name)

        self._session.flush()
        budgets = [
            m.to_dto()
            for m in self._session.scalars(
                stmt.execution_options(populate_existing=True)
            )
        ]

        if filters.search_term:
            term = filters.search_term.lower()
            budgets = [
                b for b in budgets
                if term in b.name.lower()
                or term in b.code.lower()
                or (b.description is not None and term in b.description.lower())
            ]
        return budgets

    # =========================================================================
    # Roll-up compare-and-swap
    # =========================================================================

    def read_row_version(self, budget_id: UUID) -> int:
        self._session.flush()
        row_version = self._session.scalar(
            select(BudgetModel.row_version).where(BudgetModel.id == budget_id)
        )
        if row_version is None:
            raise BudgetNotFoundError(budget_id)
        return row_version

    def write_rollup(
        self,
        budget_id: UUID,
        *,
        expected_row_version: int,
        totals: RollupTotals,
        actor_id: UUID,
        now: datetime,
    ) -> bool:
        """
        Write roll-up totals if ``row_version`` is still ``expected_row_version``.

        Returns False (writing nothing) when another writer got there first.
        """
        stmt = (
            update(BudgetModel)
            .where(
                BudgetModel.id == budget_id,
                BudgetModel.row_version == expected_row_version,
            )
            .values(
                total_budget=totals.total_budget,
                total_actual=totals.total_actual,
                total_committed=totals.total_committed,
                total_available=totals.total_available,
                total_variance=totals.total_variance,
                variance_percent=totals.variance_percent,
                row_version=expected_row_version + 1,
                updated_at=now,
                updated_by_id=actor_id,
            )
            .execution_options(synchronize_session=False)
        )
        result = self._session.execute(stmt)
        return result.rowcount == 1

    # =========================================================================
    # Lines
    # =========================================================================

    def _line_model(self, line_id: UUID) -> BudgetLineModel:
        model = self._session.get(BudgetLineModel, line_id)
        if model is None:
            raise BudgetLineNotFoundError(line_id)
        return model

    def create_line(self, line: BudgetLineItem, actor_id: UUID) -> BudgetLineItem:
        model = BudgetLineModel.from_dto(line, created_by_id=actor_id)
        self._session.add(model)
        self._session.flush()
        return model.to_dto()

    def find_line(self, line_id: UUID) -> BudgetLineItem | None:
        model = self._session.get(BudgetLineModel, line_id)
        return model.to_dto() if model is not None else None

    def get_line(self, line_id: UUID) -> BudgetLineItem:
        return self._line_model(line_id).to_dto()

    def update_line(self, line: BudgetLineItem) -> BudgetLineItem:
        model = self._line_model(line.id)
        model.apply_dto(line)
        self._session.flush()
        return model.to_dto()

    def delete_line(self, line_id: UUID) -> None:
        model = self._line_model(line_id)
        self._session.delete(model)
        self._session.flush()

    def get_lines(self, budget_id: UUID) -> list[BudgetLineItem]:
        """Lines of a budget ordered by account code."""
        stmt = (
            select(BudgetLineModel)
            .where(BudgetLineModel.budget_id == budget_id)
            .order_by(BudgetLineModel.account_code, BudgetLineModel.created_at)
        )
        return [m.to_dto() for m in self._session.scalars(stmt)]

    def count_lines(self, budget_id: UUID) -> int:
        return self._session.scalar(
            select(func.count())
            .select_from(BudgetLineModel)
            .where(BudgetLineModel.budget_id == budget_id)
        ) or 0

    # =========================================================================
    # Revisions
    # =========================================================================

    def _revision_model(self, revision_id: UUID) -> BudgetRevisionModel:
        model = self._session.get(BudgetRevisionModel, revision_id)
        if model is None:
            raise RevisionNotFoundError(revision_id)
        return model

    def create_revision(self, revision: BudgetRevision, actor_id: UUID) -> BudgetRevision:
        model = BudgetRevisionModel.from_dto(revision, created_by_id=actor_id)
        self._session.add(model)
        self._session.flush()
        return model.to_dto()

    def get_revision(self, revision_id: UUID) -> BudgetRevision:
        return self._revision_model(revision_id).to_dto()

    def update_revision(self, revision: BudgetRevision) -> BudgetRevision:
        """Persist a revision's status change. Line changes are immutable."""
        model = self._revision_model(revision.id)
        model.apply_status(revision)
        self._session.flush()
        return model.to_dto()

    def list_revisions(self, budget_id: UUID) -> list[BudgetRevision]:
        stmt = (
            select(BudgetRevisionModel)
            .where(BudgetRevisionModel.budget_id == budget_id)
            .order_by(BudgetRevisionModel.revision_number, BudgetRevisionModel.created_at)
        )
        return [m.to_dto() for m in self._session.scalars(stmt)]

    # =========================================================================
    # Batch commit
    # =========================================================================

    def _apply_op(self, operation: BatchOperation) -> None:
        if isinstance(operation, UpdateLineOp):
            self._line_model(operation.line.id).apply_dto(operation.line)
        elif isinstance(operation, UpdateRevisionOp):
            self._revision_model(operation.revision.id).apply_status(operation.revision)
        elif isinstance(operation, UpdateBudgetOp):
            self._budget_model(operation.budget.id).apply_dto(operation.budget)
        else:
            raise TypeError(f"Unsupported batch operation: {operation!r}")

    def batch_commit(
        self,
        operations: Iterable[BatchOperation],
        before_commit: Callable[[], object] | None = None,
    ) -> None:
        """
        Apply every operation and commit, or roll back all of them.

        ``before_commit`` runs after the operations are flushed and inside
        the same transaction; if it raises, the operations are rolled back
        with it.  Raises whatever failed, after rollback.
        """
        operations = list(operations)
        try:
            for operation in operations:
                self._apply_op(operation)
            self._session.flush()
            if before_commit is not None:
                before_commit()
            self._session.commit()
        except Exception:
            self._session.rollback()
            logger.warning(
                "batch_commit_rolled_back",
                extra={"operation_count": len(operations)},
                exc_info=True,
            )
            raise
        logger.info("batch_committed", extra={"operation_count": len(operations)})

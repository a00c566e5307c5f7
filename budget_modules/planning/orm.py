"""
SQLAlchemy ORM persistence models for the planning module.

Responsibility
--------------
Provide database-backed persistence for budgets, budget lines (with their
twelve-row period tables), and budget revisions (with their line
changes).  Variance reports and forecasts are computed on demand and are
not persisted.

Architecture position
---------------------
**Modules layer** -- ORM models consumed by ``SqlBudgetStore``.  Inherits
from ``TrackedBase`` (kernel db layer).

Invariants enforced
-------------------
* All monetary fields use ``Decimal`` (Numeric(38,9)) -- NEVER float.
* Enum fields stored as String(50) for readability and portability.
* One period row per (line_id, fiscal_month).
* ``BudgetLineChangeModel.line_id`` is a plain back-reference (no foreign
  key, no cascade): deleting a line never rewrites revision history.
* ``BudgetModel.row_version`` increments on every roll-up write.
"""

import json
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    Boolean,
    Date,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from budget_kernel.db.base import Base, TrackedBase
from budget_kernel.db.types import PERCENT_COLUMN, ZERO


# ---------------------------------------------------------------------------
# BudgetModel
# ---------------------------------------------------------------------------


class BudgetModel(TrackedBase):
    """
    A budget header with its roll-up totals.

    Maps to the ``Budget`` DTO in ``budget_modules.planning.models``.
    """

    __tablename__ = "planning_budgets"

    __table_args__ = (
        Index("idx_planning_budget_company_year", "company_id", "fiscal_year"),
        Index("idx_planning_budget_status", "status"),
    )

    company_id: Mapped[UUID] = mapped_column(nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    code: Mapped[str] = mapped_column(String(50), nullable=False)
    description: Mapped[str | None] = mapped_column(String(4000), nullable=True)
    budget_type: Mapped[str] = mapped_column(String(50), nullable=False)
    fiscal_year: Mapped[int]
    period_type: Mapped[str] = mapped_column(String(50), nullable=False, default="monthly")
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    department_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    project_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="USD")
    tags_json: Mapped[str | None] = mapped_column(Text, nullable=True)

    total_budget: Mapped[Decimal] = mapped_column(default=ZERO)
    total_actual: Mapped[Decimal] = mapped_column(default=ZERO)
    total_committed: Mapped[Decimal] = mapped_column(default=ZERO)
    total_available: Mapped[Decimal] = mapped_column(default=ZERO)
    total_variance: Mapped[Decimal] = mapped_column(default=ZERO)
    variance_percent: Mapped[Decimal] = mapped_column(PERCENT_COLUMN, default=ZERO)

    status: Mapped[str] = mapped_column(String(50), nullable=False, default="draft")
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    is_locked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    parent_budget_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("planning_budgets.id"), nullable=True,
    )
    has_children: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    approved_by_id: Mapped[UUID | None] = mapped_column(nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(nullable=True)
    approval_notes: Mapped[str | None] = mapped_column(String(4000), nullable=True)

    row_version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    lines: Mapped[list["BudgetLineModel"]] = relationship(
        "BudgetLineModel",
        back_populates="budget",
        cascade="all, delete-orphan",
        lazy="select",
    )
    revisions: Mapped[list["BudgetRevisionModel"]] = relationship(
        "BudgetRevisionModel",
        back_populates="budget",
        cascade="all, delete-orphan",
        lazy="select",
    )

    def to_dto(self):
        from budget_modules.planning.models import (
            Budget,
            BudgetStatus,
            BudgetType,
            PeriodType,
        )

        return Budget(
            id=self.id,
            company_id=self.company_id,
            name=self.name,
            code=self.code,
            type=BudgetType(self.budget_type),
            fiscal_year=self.fiscal_year,
            start_date=self.start_date,
            end_date=self.end_date,
            currency=self.currency,
            period_type=PeriodType(self.period_type),
            description=self.description,
            department_id=self.department_id,
            project_id=self.project_id,
            tags=tuple(json.loads(self.tags_json)) if self.tags_json else (),
            total_budget=self.total_budget,
            total_actual=self.total_actual,
            total_committed=self.total_committed,
            total_available=self.total_available,
            total_variance=self.total_variance,
            variance_percent=self.variance_percent,
            status=BudgetStatus(self.status),
            version=self.version,
            is_locked=self.is_locked,
            parent_budget_id=self.parent_budget_id,
            has_children=self.has_children,
            approved_by_id=self.approved_by_id,
            approved_at=self.approved_at,
            approval_notes=self.approval_notes,
            created_at=self.created_at,
            created_by_id=self.created_by_id,
            updated_at=self.updated_at,
            updated_by_id=self.updated_by_id,
            row_version=self.row_version,
        )

    @classmethod
    def from_dto(cls, dto, created_by_id: UUID) -> "BudgetModel":
        model = cls(
            id=dto.id,
            company_id=dto.company_id,
            total_budget=dto.total_budget,
            total_actual=dto.total_actual,
            total_committed=dto.total_committed,
            total_available=dto.total_available,
            total_variance=dto.total_variance,
            variance_percent=dto.variance_percent,
            row_version=dto.row_version,
            created_by_id=created_by_id,
        )
        model.apply_dto(dto)
        if dto.created_at is not None:
            model.created_at = dto.created_at
        return model

    def apply_dto(self, dto) -> None:
        """
        Copy the editable header and lifecycle fields from the DTO.

        Roll-up totals and row_version are not copied: only the
        aggregator's conditional write changes them.
        """
        self.name = dto.name
        self.code = dto.code
        self.description = dto.description
        self.budget_type = dto.type.value
        self.fiscal_year = dto.fiscal_year
        self.period_type = dto.period_type.value
        self.start_date = dto.start_date
        self.end_date = dto.end_date
        self.department_id = dto.department_id
        self.project_id = dto.project_id
        self.currency = dto.currency
        self.tags_json = json.dumps(list(dto.tags)) if dto.tags else None
        self.status = dto.status.value
        self.version = dto.version
        self.is_locked = dto.is_locked
        self.parent_budget_id = dto.parent_budget_id
        self.has_children = dto.has_children
        self.approved_by_id = dto.approved_by_id
        self.approved_at = dto.approved_at
        self.approval_notes = dto.approval_notes
        if dto.updated_at is not None:
            self.updated_at = dto.updated_at
        self.updated_by_id = dto.updated_by_id

    def __repr__(self) -> str:
        return f"<BudgetModel {self.code} FY{self.fiscal_year} [{self.status}] v{self.version}>"


# ---------------------------------------------------------------------------
# BudgetLineModel
# ---------------------------------------------------------------------------


class BudgetLineModel(TrackedBase):
    """
    One account's annual allocation within a budget.

    Maps to the ``BudgetLineItem`` DTO in ``budget_modules.planning.models``.
    """

    __tablename__ = "planning_budget_lines"

    __table_args__ = (
        Index("idx_planning_line_budget", "budget_id"),
        Index("idx_planning_line_account", "account_code"),
    )

    budget_id: Mapped[UUID] = mapped_column(ForeignKey("planning_budgets.id"), nullable=False)
    account_id: Mapped[str] = mapped_column(String(100), nullable=False)
    account_code: Mapped[str] = mapped_column(String(50), nullable=False)
    account_name: Mapped[str] = mapped_column(String(255), nullable=False)
    account_type: Mapped[str] = mapped_column(String(50), nullable=False)
    account_sub_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    description: Mapped[str | None] = mapped_column(String(4000), nullable=True)
    notes: Mapped[str | None] = mapped_column(String(4000), nullable=True)

    annual_budget: Mapped[Decimal] = mapped_column(default=ZERO)
    annual_actual: Mapped[Decimal] = mapped_column(default=ZERO)
    annual_committed: Mapped[Decimal] = mapped_column(default=ZERO)
    annual_available: Mapped[Decimal] = mapped_column(default=ZERO)
    annual_variance: Mapped[Decimal] = mapped_column(default=ZERO)
    variance_percent: Mapped[Decimal] = mapped_column(PERCENT_COLUMN, default=ZERO)

    allocation_method: Mapped[str] = mapped_column(String(50), nullable=False, default="equal")
    department_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    project_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    cost_center_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    is_locked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    budget: Mapped["BudgetModel"] = relationship("BudgetModel", back_populates="lines")
    periods: Mapped[list["BudgetPeriodModel"]] = relationship(
        "BudgetPeriodModel",
        back_populates="line",
        cascade="all, delete-orphan",
        order_by="BudgetPeriodModel.fiscal_month",
        lazy="selectin",
    )

    def to_dto(self):
        from budget_modules.planning.models import AllocationMethod, BudgetLineItem

        return BudgetLineItem(
            id=self.id,
            budget_id=self.budget_id,
            account_id=self.account_id,
            account_code=self.account_code,
            account_name=self.account_name,
            account_type=self.account_type,
            account_sub_type=self.account_sub_type,
            annual_budget=self.annual_budget,
            annual_actual=self.annual_actual,
            annual_committed=self.annual_committed,
            annual_available=self.annual_available,
            annual_variance=self.annual_variance,
            variance_percent=self.variance_percent,
            period_amounts=tuple(p.to_dto() for p in self.periods),
            allocation_method=AllocationMethod(self.allocation_method),
            description=self.description,
            notes=self.notes,
            department_id=self.department_id,
            project_id=self.project_id,
            cost_center_id=self.cost_center_id,
            is_locked=self.is_locked,
            created_at=self.created_at,
            created_by_id=self.created_by_id,
            updated_at=self.updated_at,
            updated_by_id=self.updated_by_id,
        )

    @classmethod
    def from_dto(cls, dto, created_by_id: UUID) -> "BudgetLineModel":
        model = cls(
            id=dto.id,
            budget_id=dto.budget_id,
            account_id=dto.account_id,
            account_code=dto.account_code,
            account_name=dto.account_name,
            account_type=dto.account_type,
            account_sub_type=dto.account_sub_type,
            created_by_id=created_by_id,
        )
        model.apply_dto(dto)
        if dto.created_at is not None:
            model.created_at = dto.created_at
        return model

    def apply_dto(self, dto) -> None:
        """
        Copy every mutable field from the DTO onto this row.

        Period rows are updated in place keyed by fiscal month so a full
        table replacement never collides with the (line, month) uniqueness.
        The account snapshot is never touched after creation.
        """
        self.description = dto.description
        self.notes = dto.notes
        self.annual_budget = dto.annual_budget
        self.annual_actual = dto.annual_actual
        self.annual_committed = dto.annual_committed
        self.annual_available = dto.annual_available
        self.annual_variance = dto.annual_variance
        self.variance_percent = dto.variance_percent
        self.allocation_method = dto.allocation_method.value
        self.department_id = dto.department_id
        self.project_id = dto.project_id
        self.cost_center_id = dto.cost_center_id
        self.is_locked = dto.is_locked
        if dto.updated_at is not None:
            self.updated_at = dto.updated_at
        self.updated_by_id = dto.updated_by_id

        existing = {p.fiscal_month: p for p in self.periods}
        wanted = {p.fiscal_month for p in dto.period_amounts}
        for row in dto.period_amounts:
            model = existing.get(row.fiscal_month)
            if model is None:
                self.periods.append(BudgetPeriodModel.from_dto(row))
            else:
                model.apply_dto(row)
        for month, model in existing.items():
            if month not in wanted:
                self.periods.remove(model)

    def __repr__(self) -> str:
        return f"<BudgetLineModel {self.account_code} {self.annual_budget}>"


# ---------------------------------------------------------------------------
# BudgetPeriodModel
# ---------------------------------------------------------------------------


class BudgetPeriodModel(Base):
    """One fiscal month of a line's period table."""

    __tablename__ = "planning_budget_periods"

    __table_args__ = (
        UniqueConstraint("line_id", "fiscal_month", name="uq_planning_period_line_month"),
    )

    line_id: Mapped[UUID] = mapped_column(
        ForeignKey("planning_budget_lines.id"), nullable=False,
    )
    period: Mapped[int] = mapped_column(Integer, nullable=False)
    fiscal_month: Mapped[int] = mapped_column(Integer, nullable=False)
    calendar_month: Mapped[int] = mapped_column(Integer, nullable=False)
    calendar_year: Mapped[int] = mapped_column(Integer, nullable=False)

    budget_amount: Mapped[Decimal] = mapped_column(default=ZERO)
    actual_amount: Mapped[Decimal] = mapped_column(default=ZERO)
    committed_amount: Mapped[Decimal] = mapped_column(default=ZERO)
    available_amount: Mapped[Decimal] = mapped_column(default=ZERO)
    variance: Mapped[Decimal] = mapped_column(default=ZERO)
    variance_percent: Mapped[Decimal] = mapped_column(PERCENT_COLUMN, default=ZERO)
    ytd_budget: Mapped[Decimal] = mapped_column(default=ZERO)
    ytd_actual: Mapped[Decimal] = mapped_column(default=ZERO)
    ytd_variance: Mapped[Decimal] = mapped_column(default=ZERO)
    ytd_variance_percent: Mapped[Decimal] = mapped_column(PERCENT_COLUMN, default=ZERO)

    line: Mapped["BudgetLineModel"] = relationship("BudgetLineModel", back_populates="periods")

    def to_dto(self):
        from budget_engines.types import BudgetPeriodAmount

        return BudgetPeriodAmount(
            period=self.period,
            fiscal_month=self.fiscal_month,
            calendar_month=self.calendar_month,
            calendar_year=self.calendar_year,
            budget_amount=self.budget_amount,
            actual_amount=self.actual_amount,
            committed_amount=self.committed_amount,
            available_amount=self.available_amount,
            variance=self.variance,
            variance_percent=self.variance_percent,
            ytd_budget=self.ytd_budget,
            ytd_actual=self.ytd_actual,
            ytd_variance=self.ytd_variance,
            ytd_variance_percent=self.ytd_variance_percent,
        )

    @classmethod
    def from_dto(cls, dto) -> "BudgetPeriodModel":
        model = cls(fiscal_month=dto.fiscal_month)
        model.apply_dto(dto)
        return model

    def apply_dto(self, dto) -> None:
        self.period = dto.period
        self.calendar_month = dto.calendar_month
        self.calendar_year = dto.calendar_year
        self.budget_amount = dto.budget_amount
        self.actual_amount = dto.actual_amount
        self.committed_amount = dto.committed_amount
        self.available_amount = dto.available_amount
        self.variance = dto.variance
        self.variance_percent = dto.variance_percent
        self.ytd_budget = dto.ytd_budget
        self.ytd_actual = dto.ytd_actual
        self.ytd_variance = dto.ytd_variance
        self.ytd_variance_percent = dto.ytd_variance_percent

    def __repr__(self) -> str:
        return f"<BudgetPeriodModel M{self.fiscal_month} {self.budget_amount}>"


# ---------------------------------------------------------------------------
# BudgetRevisionModel
# ---------------------------------------------------------------------------


class BudgetRevisionModel(TrackedBase):
    """
    A proposed/applied set of line-amount changes.

    Maps to the ``BudgetRevision`` DTO.  Rows are only ever inserted and
    then moved once from pending to approved or rejected.
    """

    __tablename__ = "planning_budget_revisions"

    __table_args__ = (
        Index("idx_planning_revision_budget", "budget_id", "revision_number"),
    )

    budget_id: Mapped[UUID] = mapped_column(ForeignKey("planning_budgets.id"), nullable=False)
    revision_number: Mapped[int] = mapped_column(Integer, nullable=False)
    reason: Mapped[str] = mapped_column(String(4000), nullable=False)
    previous_version: Mapped[int] = mapped_column(Integer, nullable=False)
    new_version: Mapped[int] = mapped_column(Integer, nullable=False)
    previous_total: Mapped[Decimal] = mapped_column(default=ZERO)
    new_total: Mapped[Decimal] = mapped_column(default=ZERO)
    change_amount: Mapped[Decimal] = mapped_column(default=ZERO)
    status: Mapped[str] = mapped_column(String(50), nullable=False, default="pending")
    revision_date: Mapped[datetime | None] = mapped_column(nullable=True)
    approved_by_id: Mapped[UUID | None] = mapped_column(nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(nullable=True)
    rejected_by_id: Mapped[UUID | None] = mapped_column(nullable=True)
    rejected_at: Mapped[datetime | None] = mapped_column(nullable=True)
    rejection_notes: Mapped[str | None] = mapped_column(String(4000), nullable=True)

    budget: Mapped["BudgetModel"] = relationship("BudgetModel", back_populates="revisions")
    changes: Mapped[list["BudgetLineChangeModel"]] = relationship(
        "BudgetLineChangeModel",
        back_populates="revision",
        cascade="all, delete-orphan",
        order_by="BudgetLineChangeModel.sequence",
        lazy="selectin",
    )

    def to_dto(self):
        from budget_modules.planning.models import BudgetRevision, RevisionStatus

        return BudgetRevision(
            id=self.id,
            budget_id=self.budget_id,
            revision_number=self.revision_number,
            reason=self.reason,
            previous_version=self.previous_version,
            new_version=self.new_version,
            previous_total=self.previous_total,
            new_total=self.new_total,
            change_amount=self.change_amount,
            line_changes=tuple(c.to_dto() for c in self.changes),
            status=RevisionStatus(self.status),
            revision_date=self.revision_date,
            approved_by_id=self.approved_by_id,
            approved_at=self.approved_at,
            rejected_by_id=self.rejected_by_id,
            rejected_at=self.rejected_at,
            rejection_notes=self.rejection_notes,
            created_at=self.created_at,
            created_by_id=self.created_by_id,
        )

    @classmethod
    def from_dto(cls, dto, created_by_id: UUID) -> "BudgetRevisionModel":
        model = cls(
            id=dto.id,
            budget_id=dto.budget_id,
            revision_number=dto.revision_number,
            reason=dto.reason,
            previous_version=dto.previous_version,
            new_version=dto.new_version,
            previous_total=dto.previous_total,
            new_total=dto.new_total,
            change_amount=dto.change_amount,
            revision_date=dto.revision_date,
            created_by_id=created_by_id,
            changes=[
                BudgetLineChangeModel.from_dto(change, sequence)
                for sequence, change in enumerate(dto.line_changes)
            ],
        )
        model.apply_status(dto)
        if dto.created_at is not None:
            model.created_at = dto.created_at
            model.updated_at = dto.created_at
        return model

    def apply_status(self, dto) -> None:
        """Copy the status fields, the only part of a revision that ever changes."""
        self.status = dto.status.value
        self.approved_by_id = dto.approved_by_id
        self.approved_at = dto.approved_at
        self.rejected_by_id = dto.rejected_by_id
        self.rejected_at = dto.rejected_at
        self.rejection_notes = dto.rejection_notes

    def __repr__(self) -> str:
        return f"<BudgetRevisionModel #{self.revision_number} [{self.status}]>"


class BudgetLineChangeModel(Base):
    """One line change within a revision."""

    __tablename__ = "planning_budget_line_changes"

    revision_id: Mapped[UUID] = mapped_column(
        ForeignKey("planning_budget_revisions.id"), nullable=False,
    )
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    line_id: Mapped[UUID] = mapped_column(nullable=False)
    account_code: Mapped[str] = mapped_column(String(50), nullable=False)
    account_name: Mapped[str] = mapped_column(String(255), nullable=False)
    previous_amount: Mapped[Decimal] = mapped_column(default=ZERO)
    new_amount: Mapped[Decimal] = mapped_column(default=ZERO)
    change_amount: Mapped[Decimal] = mapped_column(default=ZERO)
    reason: Mapped[str | None] = mapped_column(String(4000), nullable=True)

    revision: Mapped["BudgetRevisionModel"] = relationship(
        "BudgetRevisionModel", back_populates="changes",
    )

    def to_dto(self):
        from budget_modules.planning.models import BudgetLineChange

        return BudgetLineChange(
            line_id=self.line_id,
            account_code=self.account_code,
            account_name=self.account_name,
            previous_amount=self.previous_amount,
            new_amount=self.new_amount,
            change_amount=self.change_amount,
            reason=self.reason,
        )

    @classmethod
    def from_dto(cls, dto, sequence: int) -> "BudgetLineChangeModel":
        return cls(
            sequence=sequence,
            line_id=dto.line_id,
            account_code=dto.account_code,
            account_name=dto.account_name,
            previous_amount=dto.previous_amount,
            new_amount=dto.new_amount,
            change_amount=dto.change_amount,
            reason=dto.reason,
        )

    def __repr__(self) -> str:
        return f"<BudgetLineChangeModel {self.account_code} {self.change_amount}>"

"""
Roll-up compare-and-swap under interleaved writers.

These tests use sequential simulation of concurrent scenarios: a
competing writer bumps the budget's row_version between the aggregator's
read and its conditional write.
"""

from decimal import Decimal

import pytest
from sqlalchemy import update

from budget_engines.rollup import RollupTotals
from budget_kernel.exceptions import OptimisticLockError
from budget_modules.planning.models import BudgetStatus, LineChangeRequest, RevisionStatus
from budget_modules.planning.orm import BudgetModel


def _interleave_writer(monkeypatch, service, budget_id, times):
    """Bump row_version each time the aggregator reads lines, ``times`` times."""
    store = service.store
    original_get_lines = store.get_lines
    bumps = []

    def get_lines_with_competing_writer(target_budget_id):
        lines = original_get_lines(target_budget_id)
        if times is None or len(bumps) < times:
            store.session.execute(
                update(BudgetModel)
                .where(BudgetModel.id == budget_id)
                .values(row_version=BudgetModel.row_version + 1)
                .execution_options(synchronize_session=False)
            )
            bumps.append(target_budget_id)
        return lines

    monkeypatch.setattr(store, "get_lines", get_lines_with_competing_writer)
    return bumps


class TestRollupConflicts:

    def test_single_conflict_is_retried(
        self, service, budget_with_lines, test_actor_id, monkeypatch, captured_logs,
    ):
        budget, _, _ = budget_with_lines
        before = service.get_budget(budget.id).row_version
        bumps = _interleave_writer(monkeypatch, service, budget.id, times=1)

        refreshed = service.recalculate(budget.id, test_actor_id)

        assert len(bumps) == 1
        assert refreshed.total_budget == Decimal("1120000")
        # one competing bump plus our own successful write
        assert refreshed.row_version == before + 2

        logs = captured_logs()
        conflicts = [r for r in logs if r["message"] == "rollup_write_conflict"]
        assert len(conflicts) == 1
        assert conflicts[0]["attempt"] == 1
        recalculated = [r for r in logs if r["message"] == "budget_totals_recalculated"]
        assert recalculated[-1]["attempt"] == 2

    def test_persistent_conflict_raises(
        self, service, budget_with_lines, test_actor_id, monkeypatch, captured_logs,
    ):
        budget, _, _ = budget_with_lines
        bumps = _interleave_writer(monkeypatch, service, budget.id, times=None)

        with pytest.raises(OptimisticLockError) as exc_info:
            service.recalculate(budget.id, test_actor_id)

        assert exc_info.value.code == "OPTIMISTIC_LOCK_CONFLICT"
        assert exc_info.value.attempts == service.policy.rollup.max_retries
        assert len(bumps) == service.policy.rollup.max_retries

        rejected = [r for r in captured_logs() if r["message"] == "budget_recalculate_rejected"]
        assert rejected[0]["error_code"] == "OPTIMISTIC_LOCK_CONFLICT"

    def test_conflict_rolls_back_line_change(
        self, service, budget_with_lines, test_actor_id, monkeypatch,
    ):
        budget, rent, _ = budget_with_lines
        _interleave_writer(monkeypatch, service, budget.id, times=None)

        with pytest.raises(OptimisticLockError):
            service.record_period_actual(
                rent.id, fiscal_month=1, actual_amount=Decimal("10000"),
                actor_id=test_actor_id,
            )

        monkeypatch.undo()
        assert service.get_line(rent.id).annual_actual == Decimal("0")
        assert service.get_budget(budget.id).total_actual == Decimal("0")

    def test_conflict_after_revision_apply_commits_nothing(
        self, service, active_budget, test_actor_id, monkeypatch, captured_logs,
    ):
        budget, rent, _ = active_budget
        revision = service.propose_revision(
            budget.id,
            "New lease",
            [LineChangeRequest(line_id=rent.id, new_amount=Decimal("130000"))],
            actor_id=test_actor_id,
        )
        _interleave_writer(monkeypatch, service, budget.id, times=None)

        with pytest.raises(OptimisticLockError):
            service.apply_revision(revision.id, test_actor_id)

        monkeypatch.undo()
        refreshed = service.get_budget(budget.id)
        assert refreshed.status == BudgetStatus.ACTIVE
        assert refreshed.version == 1
        assert service.get_revision(revision.id).status == RevisionStatus.PENDING
        assert service.get_line(rent.id).annual_budget == Decimal("120000")
        lines = service.get_lines(budget.id)
        assert refreshed.total_budget == sum(line.annual_budget for line in lines)
        assert not [r for r in captured_logs() if r["message"] == "budget_revision_applied"]

    def test_revision_apply_survives_one_conflict(
        self, service, active_budget, test_actor_id, monkeypatch,
    ):
        budget, rent, _ = active_budget
        revision = service.propose_revision(
            budget.id,
            "New lease",
            [LineChangeRequest(line_id=rent.id, new_amount=Decimal("130000"))],
            actor_id=test_actor_id,
        )
        _interleave_writer(monkeypatch, service, budget.id, times=1)

        applied = service.apply_revision(revision.id, test_actor_id)

        monkeypatch.undo()
        assert applied.status == RevisionStatus.APPROVED
        refreshed = service.get_budget(budget.id)
        assert refreshed.status == BudgetStatus.REVISED
        assert refreshed.total_budget == Decimal("1130000")

    def test_stale_totals_never_overwrite_newer(
        self, service, budget_with_lines, test_actor_id, session,
    ):
        budget, _, _ = budget_with_lines
        current = service.get_budget(budget.id)

        stale = RollupTotals(
            total_budget=Decimal("1"),
            total_actual=Decimal("0"),
            total_committed=Decimal("0"),
            total_available=Decimal("1"),
            total_variance=Decimal("1"),
            variance_percent=Decimal("100"),
        )
        written = service.store.write_rollup(
            budget.id,
            expected_row_version=current.row_version - 1,
            totals=stale,
            actor_id=test_actor_id,
            now=current.updated_at,
        )
        session.commit()

        assert written is False
        assert service.get_budget(budget.id).total_budget == Decimal("1120000")

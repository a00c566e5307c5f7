"""
Pytest fixtures for the budget planning engine test suite.

Provides:
- In-memory SQLite sessions (fresh schema per test)
- A deterministic clock and a fixed actor/company
- An account catalog with a small chart of accounts
- A BudgetService wired to all of the above
- Budgets at each lifecycle stage and a line factory
- Structured log capture
"""

import json
import logging
from datetime import datetime, timezone
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from budget_config.schema import PlanningPolicy
from budget_kernel.db.base import Base
from budget_kernel.domain.clock import DeterministicClock
from budget_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from budget_modules.planning import orm  # noqa: F401  (registers tables)
from budget_modules.planning.catalog import AccountInfo, MappingAccountCatalog
from budget_modules.planning.models import (
    AllocationMethod,
    ApprovalAction,
    BudgetInput,
    BudgetLineInput,
    BudgetType,
)
from budget_modules.planning.service import BudgetService

# Test actor ID for all test operations
TEST_ACTOR_ID = uuid4()
TEST_COMPANY_ID = uuid4()

CHART_OF_ACCOUNTS = (
    AccountInfo("acc-4000", "4000", "Product Revenue", "revenue", "operating"),
    AccountInfo("acc-5000", "5000", "Salaries", "expense", "personnel"),
    AccountInfo("acc-5100", "5100", "Benefits", "expense", "personnel"),
    AccountInfo("acc-6000", "6000", "Rent", "expense", "facilities"),
    AccountInfo("acc-6100", "6100", "Utilities", "expense", "facilities"),
    AccountInfo("acc-6200", "6200", "Travel", "expense"),
    AccountInfo("acc-7000", "7000", "Equipment", "asset", "capital"),
)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture budget_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, service):
            service.create_budget(...)
            logs = captured_logs()
            assert any(r["message"] == "budget_created" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("budget_kernel")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture
def engine():
    """Fresh in-memory SQLite database with the planning schema."""
    eng = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session(engine):
    factory = sessionmaker(bind=engine, expire_on_commit=False)
    sess = factory()
    yield sess
    sess.close()


# =============================================================================
# Domain fixtures
# =============================================================================


@pytest.fixture
def deterministic_clock():
    return DeterministicClock(datetime(2025, 12, 15, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def test_actor_id():
    return TEST_ACTOR_ID


@pytest.fixture
def company_id():
    return TEST_COMPANY_ID


@pytest.fixture
def account_catalog():
    return MappingAccountCatalog(CHART_OF_ACCOUNTS)


@pytest.fixture
def policy():
    return PlanningPolicy()


@pytest.fixture
def service(session, account_catalog, policy, deterministic_clock):
    return BudgetService(
        session=session,
        account_catalog=account_catalog,
        policy=policy,
        clock=deterministic_clock,
    )


# =============================================================================
# Budget fixtures (created through BudgetService)
# =============================================================================


@pytest.fixture
def draft_budget(service, company_id, test_actor_id):
    return service.create_budget(
        company_id,
        BudgetInput(name="FY2026 Operating", type=BudgetType.OPERATING, fiscal_year=2026),
        actor_id=test_actor_id,
    )


@pytest.fixture
def add_line(service, test_actor_id):
    def _add(budget_id, account_id, amount, method=AllocationMethod.EQUAL, **kwargs):
        return service.add_line(
            budget_id,
            BudgetLineInput(
                account_id=account_id,
                annual_budget=Decimal(amount),
                allocation_method=method,
                **kwargs,
            ),
            actor_id=test_actor_id,
        )
    return _add


@pytest.fixture
def budget_with_lines(draft_budget, add_line):
    """Draft budget with rent (120,000) and salaries (1,000,000) lines."""
    rent = add_line(draft_budget.id, "acc-6000", "120000")
    salaries = add_line(draft_budget.id, "acc-5000", "1000000")
    return draft_budget, rent, salaries


@pytest.fixture
def active_budget(service, budget_with_lines, test_actor_id):
    budget, rent, salaries = budget_with_lines
    service.submit_for_approval(budget.id, test_actor_id)
    service.process_approval(budget.id, ApprovalAction.APPROVE, test_actor_id)
    budget = service.activate(budget.id, test_actor_id)
    return budget, rent, salaries

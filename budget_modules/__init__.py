"""
Budget Modules.

Domain layers over the budget kernel and engines.  Each module contains:
- Domain models (the nouns)
- ORM models and a store adapter
- Workflows (state machines)
- A service facade that owns the transaction boundary

Modules:
- Planning: budgets, line items, period allocation, approval lifecycle,
  revisions, variance and forecast reports

Actual calculation logic lives in ``budget_engines``.
"""

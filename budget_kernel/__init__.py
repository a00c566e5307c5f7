"""
Budget Kernel

Infrastructure shared by the budget planning engine:
- Structured JSON logging with request-scoped context
- Typed exceptions with machine-readable codes
- SQLAlchemy declarative base, session helpers and money column types
- Injectable clock, workflow value types and the fiscal calendar
"""

__version__ = "0.1.0"

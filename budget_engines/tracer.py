"""
budget_engines.tracer -- BUDGET_ENGINE_TRACE records for engine calls.

Responsibility:
    ``@traced_engine`` wraps a pure calculation (allocation, roll-up,
    variance, forecast) and logs one structured record per call: engine
    name and version, a fingerprint of the selected inputs, the duration
    and the outcome.  A failing call is logged with its error code and the
    exception propagates unchanged.

Architecture position:
    Engines -- support for the pure calculation layer.  Emits log records
    only; never touches a session or the clock.

Invariants enforced:
    - Fingerprints are deterministic: Decimals are normalized (100 and
      100.00 match), mappings are key-sorted, and budget/line objects are
      reduced to ``<Type>:<id>`` so an unchanged input set always hashes
      the same.
    - Positional and keyword arguments are fingerprinted alike.

Usage:
    from budget_engines.tracer import traced_engine

    @traced_engine("variance", "1.0", fingerprint_fields=("budget", "as_of"))
    def analyze(self, budget, lines, *, as_of):
        ...
"""

from __future__ import annotations

import functools
import hashlib
import inspect
import time
from collections.abc import Callable, Mapping
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any

from budget_kernel.logging_config import get_logger

logger = get_logger("engines.tracer")

TRACE_MESSAGE = "BUDGET_ENGINE_TRACE"


def _canonicalize(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, Enum):
        return str(value.value)
    if isinstance(value, Decimal):
        return str(value.normalize()) if value else "0"
    if isinstance(value, (str, int, float, date)):
        return str(value)
    if isinstance(value, Mapping):
        items = sorted(value.items(), key=lambda kv: str(kv[0]))
        return "{" + ",".join(f"{k}:{_canonicalize(v)}" for k, v in items) + "}"
    if isinstance(value, (list, tuple)):
        return "[" + ",".join(_canonicalize(v) for v in value) + "]"
    entity_id = getattr(value, "id", None)
    if entity_id is not None:
        return f"{type(value).__name__}:{entity_id}"
    return str(value)


def compute_input_fingerprint(
    fingerprint_fields: tuple[str, ...],
    arguments: Mapping[str, Any],
) -> str:
    """16-hex-char SHA-256 of the named arguments; absent ones hash as "null"."""
    canonical = "|".join(
        f"{name}={_canonicalize(arguments.get(name))}" for name in fingerprint_fields
    )
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:16]


def traced_engine(
    engine_name: str,
    engine_version: str,
    fingerprint_fields: tuple[str, ...] = (),
) -> Callable:
    """Decorate an engine entry point so every call emits BUDGET_ENGINE_TRACE."""

    def decorator(func: Callable) -> Callable:
        signature = inspect.signature(func)

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            fingerprint = ""
            if fingerprint_fields:
                bound = signature.bind_partial(*args, **kwargs)
                fingerprint = compute_input_fingerprint(fingerprint_fields, bound.arguments)

            trace = {
                "trace_type": TRACE_MESSAGE,
                "engine_name": engine_name,
                "engine_version": engine_version,
                "input_fingerprint": fingerprint,
                "function": func.__qualname__,
            }
            started = time.monotonic()
            try:
                result = func(*args, **kwargs)
            except Exception as exc:
                logger.warning(TRACE_MESSAGE, extra={
                    **trace,
                    "outcome": "error",
                    "error_code": getattr(exc, "code", type(exc).__name__),
                    "duration_ms": round((time.monotonic() - started) * 1000, 2),
                })
                raise

            logger.info(TRACE_MESSAGE, extra={
                **trace,
                "outcome": "ok",
                "duration_ms": round((time.monotonic() - started) * 1000, 2),
            })
            return result

        return wrapper

    return decorator

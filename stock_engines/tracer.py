"""
stock_engines.tracer -- STOCK_ENGINE_TRACE records for engine calls.

Every engine entry point is wrapped with ``@traced_engine``.  One INFO record
is written per call, on ``stock_kernel.engines.tracer``:

    engine_name / engine_version
    input_fingerprint   16 hex chars over the named keyword inputs; two
                        calls with equal inputs share a fingerprint, which
                        is how a reduction or a match is shown to be
                        repeatable from the logs alone
    input_sizes         element counts for collection inputs (the event
                        stream of a reduction, the lines of a GRN)
    outcome             short summary of the result: an expiry status, a
                        match status, "blocking"/"clear" for a receipt
                        check, the batch count of a reduction
    duration_ms

Engines are called with keyword arguments only; positional arguments are
not fingerprinted.  A named field missing from the call is recorded as
"null".
"""

from __future__ import annotations

import functools
import hashlib
import logging
import time
from collections.abc import Callable, Iterator, Mapping
from dataclasses import fields, is_dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any

# stock_kernel logger hierarchy, reached without importing the kernel config
_logger = logging.getLogger("stock_kernel.engines.tracer")


def _stable_text(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, Enum):
        return str(value.value)
    if isinstance(value, Decimal):
        # 10 and 10.000000000 read back from Numeric(38, 9) are the same input
        return str(value.normalize())
    if isinstance(value, date):
        return value.isoformat()
    if is_dataclass(value) and not isinstance(value, type):
        # DTOs, settings and events all arrive as dataclasses
        return _stable_text({f.name: getattr(value, f.name) for f in fields(value)})
    if isinstance(value, Mapping):
        pairs = sorted((str(k), _stable_text(v)) for k, v in value.items())
        return "{" + ",".join(f"{k}:{v}" for k, v in pairs) + "}"
    if isinstance(value, (list, tuple)):
        return "[" + ",".join(_stable_text(v) for v in value) + "]"
    return str(value)


def compute_input_fingerprint(
    fingerprint_fields: tuple[str, ...],
    kwargs: dict[str, Any],
) -> str:
    """SHA-256 prefix (16 hex chars) over the named keyword inputs."""
    canonical = "|".join(f"{name}={_stable_text(kwargs.get(name))}" for name in fingerprint_fields)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:16]


def _input_sizes(fingerprint_fields: tuple[str, ...], kwargs: dict[str, Any]) -> dict[str, int]:
    return {
        name: len(kwargs[name])
        for name in fingerprint_fields
        if isinstance(kwargs.get(name), (list, tuple, Mapping))
    }


def _outcome(result: Any) -> str:
    if isinstance(result, Enum):
        return str(result.value)
    status = getattr(result, "status", None)
    if isinstance(status, Enum):
        return str(status.value)
    blocking = getattr(result, "blocking", None)
    if isinstance(blocking, bool):
        return "blocking" if blocking else "clear"
    batches = getattr(result, "batches", None)
    if isinstance(batches, Mapping):
        return f"{len(batches)} batches"
    return type(result).__name__


def traced_engine(
    engine_name: str,
    engine_version: str,
    fingerprint_fields: tuple[str, ...] = (),
) -> Callable:
    """
    Wrap an engine entry point so each call emits STOCK_ENGINE_TRACE.

    Args:
        engine_name: e.g. "ledger_reducer", "matching".
        engine_version: bumped when the engine's results change for equal inputs.
        fingerprint_fields: keyword arguments that determine the result.
    """

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            for name in fingerprint_fields:
                # a generator would be spent by the engine before it is fingerprinted
                if isinstance(kwargs.get(name), Iterator):
                    kwargs[name] = tuple(kwargs[name])
            fingerprint = (
                compute_input_fingerprint(fingerprint_fields, kwargs) if fingerprint_fields else ""
            )
            sizes = _input_sizes(fingerprint_fields, kwargs)

            started = time.monotonic()
            result = func(*args, **kwargs)
            duration_ms = round((time.monotonic() - started) * 1000, 2)

            _logger.info(
                "STOCK_ENGINE_TRACE",
                extra={
                    "trace_type": "STOCK_ENGINE_TRACE",
                    "engine_name": engine_name,
                    "engine_version": engine_version,
                    "input_fingerprint": fingerprint,
                    "input_sizes": sizes,
                    "outcome": _outcome(result),
                    "duration_ms": duration_ms,
                    "function": func.__qualname__,
                },
            )
            return result

        return wrapper

    return decorator

"""
Module: stock_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure
    calculation engines.  This is the canonical import surface for
    stock_modules.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import stock_kernel (domain, exceptions, logging) and sibling
    engine modules.  MUST NOT import stock_modules or stock_config.

Invariants enforced:
    - Purity: engines NEVER call ``datetime.now()`` or ``date.today()``.
      "Today" is always passed in by the caller.
    - Decimal-only arithmetic: quantities, prices and percentages are
      ``Decimal``; floats are rejected at the event boundary.
    - Determinism: identical inputs always produce identical outputs.

Audit relevance:
    Every engine invocation is traced via ``@traced_engine``, emitting
    STOCK_ENGINE_TRACE log records with engine name, version, input
    fingerprint, and duration.
"""

from stock_engines.expiry import (
    DEFAULT_EXPIRING_SOON_DAYS,
    ExpiryClassifier,
    ExpiryStatus,
    classify_expiry,
)
from stock_engines.ledger_reducer import (
    BatchKey,
    BatchState,
    ItemKey,
    LedgerReducer,
    ReductionResult,
    expand_legs,
)
from stock_engines.matching import (
    FieldVariance,
    InvoiceLine,
    ManualOverride,
    MatchField,
    MatchingEngine,
    MatchResult,
    MatchStatus,
    ReceiptReference,
    SCORE_PENALTIES,
    variance_pct,
)
from stock_engines.receipt_reconciler import (
    ReceiptReconciler,
    ReceiptReconciliation,
    ReconciliationResult,
    check_item_balance,
    format_quantity,
)
from stock_engines.stock_status import DEFAULT_REORDER_LEVEL, StockStatus, stock_status
from stock_engines.tracer import compute_input_fingerprint, traced_engine

__all__ = [
    "BatchKey",
    "BatchState",
    "DEFAULT_EXPIRING_SOON_DAYS",
    "DEFAULT_REORDER_LEVEL",
    "ExpiryClassifier",
    "ExpiryStatus",
    "FieldVariance",
    "InvoiceLine",
    "ItemKey",
    "LedgerReducer",
    "ManualOverride",
    "MatchField",
    "MatchResult",
    "MatchStatus",
    "MatchingEngine",
    "ReceiptReconciler",
    "ReceiptReconciliation",
    "ReceiptReference",
    "ReconciliationResult",
    "ReductionResult",
    "SCORE_PENALTIES",
    "StockStatus",
    "check_item_balance",
    "classify_expiry",
    "compute_input_fingerprint",
    "expand_legs",
    "format_quantity",
    "stock_status",
    "traced_engine",
    "variance_pct",
]

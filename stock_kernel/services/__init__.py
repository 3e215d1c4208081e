"""Kernel write services.  Flush only; callers own the transaction."""

from stock_kernel.services.ledger_service import (
    AppendResult,
    AppendStatus,
    TransactionLedger,
)
from stock_kernel.services.sequence_service import SequenceService

__all__ = ["AppendResult", "AppendStatus", "SequenceService", "TransactionLedger"]

"""Kernel ORM models."""

from stock_kernel.models.sequence import SequenceCounterModel
from stock_kernel.models.transaction import InventoryTransactionModel

__all__ = ["InventoryTransactionModel", "SequenceCounterModel"]

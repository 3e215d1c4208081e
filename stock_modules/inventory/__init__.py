"""
Inventory Module (``stock_modules.inventory``).

Responsibility
--------------
Thin glue for warehouse stock: product catalog, per-warehouse stock
levels, movement recording (check-in, check-out, transfer, adjustment)
and the derived stock views (items with status, batches with expiry
tiers).  All quantity and value computation is delegated to
``stock_engines`` (LedgerReducer, ExpiryClassifier, stock_status); all
persistence of movements goes through the kernel ``TransactionLedger``.

Architecture
------------
Layer: **Modules**.  Imports from ``stock_engines`` and ``stock_kernel``
but never the reverse.

Failure Modes
-------------
- ``EventValidationError`` for malformed movements.
- Any exception triggers a session rollback before re-raising.
"""

from stock_modules.inventory.config import InventoryConfig
from stock_modules.inventory.models import (
    BatchListing,
    BatchSummary,
    BatchView,
    InventoryItem,
    Product,
    StockLevels,
)
from stock_modules.inventory.service import InventoryService

__all__ = [
    "BatchListing",
    "BatchSummary",
    "BatchView",
    "InventoryConfig",
    "InventoryItem",
    "InventoryService",
    "Product",
    "StockLevels",
]

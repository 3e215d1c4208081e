"""
Stock Modules.

Thin orchestration layers over the Stock Kernel and Engines.
Each module contains:
- Domain models (the nouns)
- ORM models (persistence)
- Workflows (state machines)
- Configuration schemas (policy and settings)
- A service that owns the transaction boundary

Modules:
- Inventory: Products, stock levels, movements, batch and item views
- Procurement: Purchase orders, goods-received notes, receiving
- Matching: Tolerance settings, invoice matching, manual overrides
"""

from stock_modules import inventory, matching, procurement

__all__ = [
    "inventory",
    "matching",
    "procurement",
]

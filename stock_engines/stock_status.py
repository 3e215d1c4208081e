"""
stock_engines.stock_status -- Stock status tag for an inventory item.

    out     quantity <= 0
    low     quantity <  reorder_level
    normal  otherwise

A missing or zero reorder level falls back to ``default_reorder_level`` (1 unless
configured), so an item with any stock and no configured level is normal.
"""

from __future__ import annotations

from decimal import Decimal
from enum import Enum

DEFAULT_REORDER_LEVEL = Decimal("1")


class StockStatus(str, Enum):
    OUT = "out"
    LOW = "low"
    NORMAL = "normal"


def stock_status(
    quantity: Decimal,
    reorder_level: Decimal | None = None,
    default_reorder_level: Decimal = DEFAULT_REORDER_LEVEL,
) -> StockStatus:
    if quantity <= 0:
        return StockStatus.OUT
    # zero counts as unset
    level = reorder_level or default_reorder_level
    if quantity < level:
        return StockStatus.LOW
    return StockStatus.NORMAL

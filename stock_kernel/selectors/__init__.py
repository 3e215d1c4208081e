"""Read-only selectors."""

from stock_kernel.selectors.inventory_selector import InventorySelector

__all__ = ["InventorySelector"]

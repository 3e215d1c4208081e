"""
Inventory Configuration Schema.

Defines the structure and defaults for the stock-query settings.  Actual
values come from ``stock_config`` at runtime.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Self

from stock_kernel.logging_config import get_logger

logger = get_logger("modules.inventory.config")


@dataclass
class InventoryConfig:
    """
    Configuration schema for the inventory module.

        config = InventoryConfig(expiring_soon_days=14)
    """

    # Batches expiring in [today, today + N days) are "expiring soon"
    expiring_soon_days: int = 30

    # Used when an item has no reorder level of its own
    default_reorder_level: Decimal = Decimal("1")

    def __post_init__(self):
        if isinstance(self.default_reorder_level, (int, str)):
            self.default_reorder_level = Decimal(str(self.default_reorder_level))
        if self.expiring_soon_days < 0:
            raise ValueError("expiring_soon_days cannot be negative")
        if self.default_reorder_level < 0:
            raise ValueError("default_reorder_level cannot be negative")

        logger.info(
            "inventory_config_initialized",
            extra={
                "expiring_soon_days": self.expiring_soon_days,
                "default_reorder_level": str(self.default_reorder_level),
            },
        )

    @classmethod
    def with_defaults(cls) -> Self:
        """Create config with the standard defaults."""
        logger.info("inventory_config_created_with_defaults")
        return cls()

    @classmethod
    def from_dict(cls, data: dict) -> Self:
        """Create config from dictionary (e.g., loaded from file)."""
        logger.info(
            "inventory_config_loading_from_dict",
            extra={"keys": sorted(data.keys())},
        )
        return cls(**data)

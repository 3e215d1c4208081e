"""
Procurement Configuration Schema.

Defines the structure and defaults for receiving settings.  Actual values
come from ``stock_config`` at runtime.
"""

from dataclasses import dataclass
from typing import Self

from stock_kernel.logging_config import get_logger

logger = get_logger("modules.procurement.config")


@dataclass
class ProcurementConfig:
    """
    Configuration schema for the procurement module.

        config = ProcurementConfig(grn_number_prefix="GR", grn_number_width=6)
    """

    # GRN numbers look like GRN-2024-00001
    grn_number_prefix: str = "GRN"
    grn_number_width: int = 5

    def __post_init__(self):
        if not self.grn_number_prefix or "-" in self.grn_number_prefix:
            raise ValueError("grn_number_prefix must be non-empty and contain no '-'")
        if not 1 <= self.grn_number_width <= 12:
            raise ValueError("grn_number_width must be between 1 and 12")

        logger.info(
            "procurement_config_initialized",
            extra={
                "grn_number_prefix": self.grn_number_prefix,
                "grn_number_width": self.grn_number_width,
            },
        )

    def grn_number(self, year: int, sequence: int) -> str:
        return f"{self.grn_number_prefix}-{year}-{sequence:0{self.grn_number_width}d}"

    @classmethod
    def with_defaults(cls) -> Self:
        """Create config with the standard defaults."""
        logger.info("procurement_config_created_with_defaults")
        return cls()

    @classmethod
    def from_dict(cls, data: dict) -> Self:
        """Create config from dictionary (e.g., loaded from file)."""
        logger.info(
            "procurement_config_loading_from_dict",
            extra={"keys": sorted(data.keys())},
        )
        return cls(**data)

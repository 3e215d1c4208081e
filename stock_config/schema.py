"""
StockConfig schema.

The human-authored, reviewable configuration for the stock system.  YAML
files under ``stock_config/sets/`` are parsed into these types by the
loader.  Each section maps onto one module's configuration:

  InventorySettings   -> stock_modules.inventory.config.InventoryConfig
  ProcurementSettings -> stock_modules.procurement.config.ProcurementConfig
  MatchingDefaults    -> stock_modules.matching.config.MatchingSettings
                         (seed values for the settings record)
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from decimal import Decimal
from typing import Any

# ---------------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class InventorySettings:
    expiring_soon_days: int = 30
    default_reorder_level: Decimal = Decimal("1")

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ProcurementSettings:
    grn_number_prefix: str = "GRN"
    grn_number_width: int = 5

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class MatchingDefaults:
    """First-access values for the matching settings record."""

    price_tolerance_pct: Decimal = Decimal("5")
    quantity_tolerance_pct: Decimal = Decimal("5")
    tax_tolerance_pct: Decimal = Decimal("2")
    total_tolerance_pct: Decimal = Decimal("5")
    strict_matching_mode: bool = False
    allow_over_receipt: bool = False
    require_grn_for_invoice: bool = True
    auto_approve_matched: bool = False

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class StockConfig:
    """
    A complete, validated configuration set.

    ``checksum`` is the SHA-256 of the canonical JSON of the parsed source
    and identifies the exact configuration that governed a run.
    """

    config_id: str
    version: int
    inventory: InventorySettings = field(default_factory=InventorySettings)
    procurement: ProcurementSettings = field(default_factory=ProcurementSettings)
    matching: MatchingDefaults = field(default_factory=MatchingDefaults)
    description: str = ""
    checksum: str = ""

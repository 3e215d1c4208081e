"""
Config -> Module Bridges.

Functions that turn a loaded ``StockConfig`` into the configuration objects
and services of ``stock_modules``.  They live in stock_config (the producer)
because the kernel and engines must NEVER import stock_config.

Usage:
    from stock_config import get_active_config
    from stock_config.bridges import build_services

    config = get_active_config()
    services = build_services(session, config)
    services.grn.approve(grn_id, actor_id)
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.orm import Session

from stock_config.schema import StockConfig
from stock_kernel.domain.clock import Clock, SystemClock
from stock_modules.inventory.config import InventoryConfig
from stock_modules.inventory.service import InventoryService
from stock_modules.matching.config import MatchingSettings
from stock_modules.matching.service import InvoiceMatchingService
from stock_modules.matching.settings import MatchingSettingsService
from stock_modules.procurement.config import ProcurementConfig
from stock_modules.procurement.service import GRNService


def build_inventory_config(config: StockConfig) -> InventoryConfig:
    return InventoryConfig.from_dict(config.inventory.as_dict())


def build_procurement_config(config: StockConfig) -> ProcurementConfig:
    return ProcurementConfig.from_dict(config.procurement.as_dict())


def build_matching_defaults(config: StockConfig) -> MatchingSettings:
    """Seed values for the settings record; used only on first access."""
    return MatchingSettings.from_dict(config.matching.as_dict())


@dataclass(frozen=True)
class StockServices:
    """The module services sharing one session and clock."""

    settings: MatchingSettingsService
    inventory: InventoryService
    grn: GRNService
    matching: InvoiceMatchingService


def build_services(
    session: Session,
    config: StockConfig,
    clock: Clock | None = None,
) -> StockServices:
    """Wire every module service from one configuration set."""
    clock = clock or SystemClock()
    settings = MatchingSettingsService(
        session, clock=clock, defaults=build_matching_defaults(config),
    )
    return StockServices(
        settings=settings,
        inventory=InventoryService(session, clock=clock, config=build_inventory_config(config)),
        grn=GRNService(
            session,
            clock=clock,
            config=build_procurement_config(config),
            settings_service=settings,
        ),
        matching=InvoiceMatchingService(session, clock=clock, settings_service=settings),
    )

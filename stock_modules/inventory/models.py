"""
Inventory Domain Models (``stock_modules.inventory.models``).

Frozen value objects returned by stock queries: products, inventory items
with their stock status, batch views with their expiry tier, and the batch
summary.  They carry NO database identity and NO I/O.

Quantities here are always derived from the ledger at query time; none of
these objects is ever written back.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from stock_engines.expiry import ExpiryStatus
from stock_engines.stock_status import StockStatus


@dataclass(frozen=True)
class Product:
    """Catalog entry for a product (name/SKU/category used for search)."""
    id: UUID
    product_id: str
    name: str
    sku: str | None = None
    category: str | None = None
    unit: str = "EA"


@dataclass(frozen=True)
class StockLevels:
    """Configured thresholds for one (product, warehouse)."""
    product_id: str
    warehouse_id: str
    minimum_level: Decimal | None = None
    reorder_level: Decimal | None = None


@dataclass(frozen=True)
class InventoryItem:
    """Current quantity of a product in a warehouse, with its status tag."""
    product_id: str
    warehouse_id: str
    quantity: Decimal
    status: StockStatus
    minimum_level: Decimal | None = None
    reorder_level: Decimal | None = None
    product_name: str | None = None
    sku: str | None = None
    category: str | None = None


@dataclass(frozen=True)
class BatchView:
    """A materialized batch plus its expiry tier and catalog details."""
    batch_number: str
    product_id: str
    warehouse_id: str
    quantity: Decimal
    total_value: Decimal
    unit_price: Decimal
    received_date: date
    expiry_date: date | None
    expiry_status: ExpiryStatus
    product_name: str | None = None
    sku: str | None = None


@dataclass(frozen=True)
class BatchSummary:
    """Aggregate counts over a filtered batch list."""
    unique_batches: int
    unique_products: int
    total_quantity: Decimal
    total_value: Decimal
    expired_count: int
    expiring_soon_count: int


@dataclass(frozen=True)
class BatchListing:
    batches: tuple[BatchView, ...]
    summary: BatchSummary

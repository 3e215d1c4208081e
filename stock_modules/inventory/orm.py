"""
Module: stock_modules.inventory.orm
Responsibility: SQLAlchemy ORM persistence for the product catalog and the
    per-warehouse stock thresholds.

Architecture position: Modules > Inventory > ORM.  Inherits from TrackedBase
    (stock_kernel.db.base).  Warehouses are owned by an external system and
    referenced by String id with NO foreign key.

Invariants enforced:
    - No quantity column exists anywhere here.  Quantities are derived
      from inventory_transactions at query time.
    - (product_id, warehouse_id) is unique for stock levels.
"""

from decimal import Decimal

from sqlalchemy import Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from stock_kernel.db.base import TrackedBase


class ProductModel(TrackedBase):
    """
    ORM model for a catalog product.

    Maps to: stock_modules.inventory.models.Product.
    """

    __tablename__ = "stock_products"

    __table_args__ = (
        UniqueConstraint("product_id", name="uq_stock_product_id"),
        Index("idx_stock_product_sku", "sku"),
        Index("idx_stock_product_category", "category"),
    )

    # External product key used by ledger events
    product_id: Mapped[str] = mapped_column(String(100), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    sku: Mapped[str | None] = mapped_column(String(100), nullable=True)
    category: Mapped[str | None] = mapped_column(String(100), nullable=True)
    unit: Mapped[str] = mapped_column(String(20), nullable=False, default="EA")

    def to_dto(self):
        from stock_modules.inventory.models import Product

        return Product(
            id=self.id,
            product_id=self.product_id,
            name=self.name,
            sku=self.sku,
            category=self.category,
            unit=self.unit,
        )

    def __repr__(self) -> str:
        return f"<ProductModel {self.product_id}: {self.name}>"


class InventoryItemModel(TrackedBase):
    """
    ORM model for the configured thresholds of one product in one warehouse.

    Maps to: stock_modules.inventory.models.StockLevels.
    """

    __tablename__ = "stock_inventory_items"

    __table_args__ = (
        UniqueConstraint("product_id", "warehouse_id", name="uq_stock_item_product_warehouse"),
        Index("idx_stock_item_warehouse", "warehouse_id"),
    )

    product_id: Mapped[str] = mapped_column(String(100), nullable=False)
    warehouse_id: Mapped[str] = mapped_column(String(100), nullable=False)
    minimum_level: Mapped[Decimal | None] = mapped_column(nullable=True)
    reorder_level: Mapped[Decimal | None] = mapped_column(nullable=True)

    def to_dto(self):
        from stock_modules.inventory.models import StockLevels

        return StockLevels(
            product_id=self.product_id,
            warehouse_id=self.warehouse_id,
            minimum_level=self.minimum_level,
            reorder_level=self.reorder_level,
        )

    def __repr__(self) -> str:
        return f"<InventoryItemModel {self.product_id}@{self.warehouse_id}>"

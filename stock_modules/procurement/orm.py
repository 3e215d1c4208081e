"""
SQLAlchemy ORM persistence models for the Procurement module.

Responsibility
--------------
Provide database-backed persistence for purchase orders, their lines,
goods-received notes and GRN items.

Architecture position
---------------------
**Modules layer** -- ORM models consumed by ``GRNService``.  Inherits from
``TrackedBase`` (kernel db layer).  Warehouses and vendors are owned by
external systems and referenced by ``String(100)`` with NO foreign key.

Invariants enforced
-------------------
* All quantity and money fields use ``Decimal`` (Numeric(38,9)) -- NEVER float.
* ``quantity_received`` on a PO line changes only inside ``GRNService.approve``.
* ``GoodsReceivedNoteModel.version`` is the SQLAlchemy ``version_id_col``:
  every status change bumps it and a concurrent writer holding an older
  version fails with ``StaleDataError``.
* GRN items satisfy accepted + rejected == received (CHECK constraint).
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import CheckConstraint, Date, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stock_kernel.db.base import TrackedBase

# ---------------------------------------------------------------------------
# PurchaseOrderModel
# ---------------------------------------------------------------------------


class PurchaseOrderModel(TrackedBase):
    """
    A purchase order issued to a vendor.

    Maps to the ``PurchaseOrder`` DTO in ``stock_modules.procurement.models``.
    """

    __tablename__ = "procurement_purchase_orders"

    __table_args__ = (
        UniqueConstraint("po_number", name="uq_purchase_order_number"),
        Index("idx_purchase_order_vendor", "vendor_id"),
    )

    po_number: Mapped[str] = mapped_column(String(50), nullable=False)
    vendor_id: Mapped[str] = mapped_column(String(100), nullable=False)
    order_date: Mapped[date] = mapped_column(Date, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="USD")

    lines: Mapped[list["PurchaseOrderLineModel"]] = relationship(
        "PurchaseOrderLineModel",
        back_populates="purchase_order",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="PurchaseOrderLineModel.line_number",
    )

    def to_dto(self):
        from stock_modules.procurement.models import PurchaseOrder

        return PurchaseOrder(
            id=self.id,
            po_number=self.po_number,
            vendor_id=self.vendor_id,
            order_date=self.order_date,
            currency=self.currency,
            lines=tuple(line.to_dto() for line in self.lines),
        )

    def __repr__(self) -> str:
        return f"<PurchaseOrderModel {self.po_number}>"


# ---------------------------------------------------------------------------
# PurchaseOrderLineModel
# ---------------------------------------------------------------------------


class PurchaseOrderLineModel(TrackedBase):
    """
    One line of a purchase order.

    Guarantees:
        - ``quantity_received`` is monotonically non-decreasing.
        - ``quantity_pending`` is derived, never stored.
    """

    __tablename__ = "procurement_purchase_order_lines"

    __table_args__ = (
        UniqueConstraint("purchase_order_id", "line_number", name="uq_po_line_number"),
        Index("idx_po_line_product", "product_id"),
    )

    purchase_order_id: Mapped[UUID] = mapped_column(
        ForeignKey("procurement_purchase_orders.id"), nullable=False
    )
    line_number: Mapped[int] = mapped_column(Integer, nullable=False)
    product_id: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)
    quantity_ordered: Mapped[Decimal] = mapped_column(nullable=False)
    quantity_received: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    unit_price: Mapped[Decimal] = mapped_column(nullable=False)
    tax_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    purchase_order: Mapped["PurchaseOrderModel"] = relationship(
        "PurchaseOrderModel",
        back_populates="lines",
    )

    def to_dto(self):
        from stock_modules.procurement.models import POLine

        return POLine(
            id=self.id,
            purchase_order_id=self.purchase_order_id,
            line_number=self.line_number,
            product_id=self.product_id,
            quantity_ordered=self.quantity_ordered,
            quantity_received=self.quantity_received,
            unit_price=self.unit_price,
            tax_amount=self.tax_amount,
            description=self.description,
        )

    def __repr__(self) -> str:
        return f"<PurchaseOrderLineModel {self.line_number}: {self.product_id}>"


# ---------------------------------------------------------------------------
# GoodsReceivedNoteModel
# ---------------------------------------------------------------------------


class GoodsReceivedNoteModel(TrackedBase):
    """
    A goods-received note against one purchase order.

    Guarantees:
        - ``grn_number`` is unique.
        - ``status`` follows GRN_WORKFLOW:
          draft -> pending_approval -> approved | rejected; draft or
          pending_approval -> cancelled.
    """

    __tablename__ = "procurement_grns"

    __table_args__ = (
        UniqueConstraint("grn_number", name="uq_grn_number"),
        Index("idx_grn_purchase_order", "purchase_order_id"),
        Index("idx_grn_status", "status"),
    )

    grn_number: Mapped[str] = mapped_column(String(50), nullable=False)
    purchase_order_id: Mapped[UUID] = mapped_column(
        ForeignKey("procurement_purchase_orders.id"), nullable=False
    )
    warehouse_id: Mapped[str] = mapped_column(String(100), nullable=False)
    receipt_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String(50), nullable=False, default="draft")
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    is_published_to_vendor: Mapped[bool] = mapped_column(nullable=False, default=False)
    published_at: Mapped[datetime | None]
    submitted_by: Mapped[UUID | None]
    submitted_at: Mapped[datetime | None]
    approved_by: Mapped[UUID | None]
    approved_at: Mapped[datetime | None]
    comments: Mapped[str | None] = mapped_column(String(2000), nullable=True)
    rejected_by: Mapped[UUID | None]
    rejected_at: Mapped[datetime | None]
    rejection_reason: Mapped[str | None] = mapped_column(String(2000), nullable=True)
    cancelled_by: Mapped[UUID | None]
    cancelled_at: Mapped[datetime | None]

    __mapper_args__ = {"version_id_col": version}

    items: Mapped[list["GRNItemModel"]] = relationship(
        "GRNItemModel",
        back_populates="grn",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="GRNItemModel.line_number",
    )

    def to_dto(self):
        from stock_modules.procurement.models import GRN, GRNStatus

        return GRN(
            id=self.id,
            grn_number=self.grn_number,
            purchase_order_id=self.purchase_order_id,
            warehouse_id=self.warehouse_id,
            receipt_date=self.receipt_date,
            status=GRNStatus(self.status),
            items=tuple(item.to_dto() for item in self.items),
            version=self.version,
            is_published_to_vendor=self.is_published_to_vendor,
            published_at=self.published_at,
            submitted_by=self.submitted_by,
            submitted_at=self.submitted_at,
            approved_by=self.approved_by,
            approved_at=self.approved_at,
            comments=self.comments,
            rejected_by=self.rejected_by,
            rejected_at=self.rejected_at,
            rejection_reason=self.rejection_reason,
            cancelled_by=self.cancelled_by,
            cancelled_at=self.cancelled_at,
        )

    def __repr__(self) -> str:
        return f"<GoodsReceivedNoteModel {self.grn_number} [{self.status}] v{self.version}>"


# ---------------------------------------------------------------------------
# GRNItemModel
# ---------------------------------------------------------------------------


class GRNItemModel(TrackedBase):
    """One received line of a GRN, tied to the PO line it fulfils."""

    __tablename__ = "procurement_grn_items"

    __table_args__ = (
        CheckConstraint(
            "quantity_accepted + quantity_rejected = quantity_received",
            name="ck_grn_item_quantity_balance",
        ),
        Index("idx_grn_item_grn", "grn_id"),
        Index("idx_grn_item_po_line", "po_line_id"),
    )

    grn_id: Mapped[UUID] = mapped_column(ForeignKey("procurement_grns.id"), nullable=False)
    po_line_id: Mapped[UUID] = mapped_column(
        ForeignKey("procurement_purchase_order_lines.id"), nullable=False
    )
    line_number: Mapped[int] = mapped_column(Integer, nullable=False)
    product_id: Mapped[str] = mapped_column(String(100), nullable=False)
    quantity_ordered: Mapped[Decimal] = mapped_column(nullable=False)
    quantity_received: Mapped[Decimal] = mapped_column(nullable=False)
    quantity_accepted: Mapped[Decimal] = mapped_column(nullable=False)
    quantity_rejected: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    unit_price: Mapped[Decimal] = mapped_column(nullable=False)
    batch_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    expiry_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(String(500), nullable=True)

    grn: Mapped["GoodsReceivedNoteModel"] = relationship(
        "GoodsReceivedNoteModel",
        back_populates="items",
    )

    def to_dto(self):
        from stock_modules.procurement.models import GRNItem

        return GRNItem(
            id=self.id,
            grn_id=self.grn_id,
            po_line_id=self.po_line_id,
            product_id=self.product_id,
            quantity_ordered=self.quantity_ordered,
            quantity_received=self.quantity_received,
            quantity_accepted=self.quantity_accepted,
            quantity_rejected=self.quantity_rejected,
            unit_price=self.unit_price,
            batch_number=self.batch_number,
            expiry_date=self.expiry_date,
            rejection_reason=self.rejection_reason,
        )

    def __repr__(self) -> str:
        return (
            f"<GRNItemModel {self.product_id} "
            f"recv={self.quantity_received} acc={self.quantity_accepted}>"
        )

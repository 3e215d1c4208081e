"""
Procurement Domain Models.

The nouns of receiving: purchase orders, their lines, goods-received notes
and their items, plus the read-side receipt summaries.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from stock_kernel.logging_config import get_logger

logger = get_logger("modules.procurement.models")

ZERO = Decimal("0")


class GRNStatus(Enum):
    """Goods-received-note lifecycle states."""
    DRAFT = "draft"
    PENDING_APPROVAL = "pending_approval"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


class DeliveryStatus(Enum):
    PENDING = "pending"
    PARTIALLY_RECEIVED = "partially_received"
    FULLY_RECEIVED = "fully_received"


@dataclass(frozen=True)
class POLineInput:
    """A purchase-order line as submitted when the PO is created."""
    product_id: str
    quantity_ordered: Decimal
    unit_price: Decimal
    tax_amount: Decimal = ZERO
    description: str | None = None


@dataclass(frozen=True)
class POLine:
    """A purchase-order line with its received-quantity counter."""
    id: UUID
    purchase_order_id: UUID
    line_number: int
    product_id: str
    quantity_ordered: Decimal
    quantity_received: Decimal
    unit_price: Decimal
    tax_amount: Decimal = ZERO
    description: str | None = None

    @property
    def quantity_pending(self) -> Decimal:
        # Negative only after an authorized over-receipt
        return self.quantity_ordered - self.quantity_received

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity_ordered + self.tax_amount


@dataclass(frozen=True)
class PurchaseOrder:
    id: UUID
    po_number: str
    vendor_id: str
    order_date: date
    currency: str = "USD"
    lines: tuple[POLine, ...] = field(default_factory=tuple)

    @property
    def total_amount(self) -> Decimal:
        return sum((line.line_total for line in self.lines), ZERO)


@dataclass(frozen=True)
class GRNItemInput:
    """
    A GRN item as entered by the receiving clerk.

    ``unit_price`` defaults to the PO line's price when omitted.
    """
    po_line_id: UUID
    quantity_received: Decimal
    quantity_accepted: Decimal
    quantity_rejected: Decimal = ZERO
    unit_price: Decimal | None = None
    batch_number: str | None = None
    expiry_date: date | None = None
    rejection_reason: str | None = None


@dataclass(frozen=True)
class GRNItem:
    """A persisted GRN item.  accepted + rejected == received always holds."""
    id: UUID
    grn_id: UUID
    po_line_id: UUID
    product_id: str
    quantity_ordered: Decimal
    quantity_received: Decimal
    quantity_accepted: Decimal
    quantity_rejected: Decimal
    unit_price: Decimal
    batch_number: str | None = None
    expiry_date: date | None = None
    rejection_reason: str | None = None

    @property
    def total_value(self) -> Decimal:
        return self.quantity_accepted * self.unit_price


@dataclass(frozen=True)
class GRN:
    """A goods-received note and its audit trail."""
    id: UUID
    grn_number: str
    purchase_order_id: UUID
    warehouse_id: str
    receipt_date: date
    status: GRNStatus
    items: tuple[GRNItem, ...] = field(default_factory=tuple)
    version: int = 1
    is_published_to_vendor: bool = False
    published_at: datetime | None = None
    submitted_by: UUID | None = None
    submitted_at: datetime | None = None
    approved_by: UUID | None = None
    approved_at: datetime | None = None
    comments: str | None = None
    rejected_by: UUID | None = None
    rejected_at: datetime | None = None
    rejection_reason: str | None = None
    cancelled_by: UUID | None = None
    cancelled_at: datetime | None = None

    @property
    def total_value(self) -> Decimal:
        return sum((item.total_value for item in self.items), ZERO)


@dataclass(frozen=True)
class LineReceiptStatus:
    """Receipt progress of one PO line."""
    po_line_id: UUID
    line_number: int
    product_id: str
    quantity_ordered: Decimal
    quantity_received: Decimal
    quantity_pending: Decimal
    received_value: Decimal


@dataclass(frozen=True)
class DeliverySummary:
    """Receipt progress of a whole purchase order (approved GRNs only)."""
    purchase_order_id: UUID
    grn_count: int
    total_ordered: Decimal
    total_received: Decimal
    total_pending: Decimal
    total_received_value: Decimal
    delivery_status: DeliveryStatus
    lines: tuple[LineReceiptStatus, ...] = field(default_factory=tuple)

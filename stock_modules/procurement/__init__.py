"""
Procurement Module (``stock_modules.procurement``).

Responsibility
--------------
Purchase orders and goods-received notes: drafting, the GRN approval
workflow and PO receipt tracking.  Approval is the only path by which a
GRN puts stock into the inventory ledger; it appends check-in events and
increments PO line received quantities in one transaction.

Architecture
------------
Layer: **Modules**.  Pending-quantity checks come from
``stock_engines.receipt_reconciler``; ledger writes go through
``stock_kernel.services.ledger_service``.  Over-receipt policy is read from
the matching settings (``stock_modules.matching.settings``).

Failure Modes
-------------
- Validation errors for unbalanced or negative item quantities.
- ``OverReceiptBlockedError`` when accepted exceeds pending and
  over-receipt is not allowed.
- ``InvalidGRNTransitionError`` for any action the current status forbids.
- Any exception triggers a session rollback before re-raising.
"""

from stock_modules.procurement.models import (
    GRN,
    DeliveryStatus,
    DeliverySummary,
    GRNItem,
    GRNItemInput,
    GRNStatus,
    LineReceiptStatus,
    POLine,
    POLineInput,
    PurchaseOrder,
)
from stock_modules.procurement.workflows import GRN_WORKFLOW
from stock_modules.procurement.config import ProcurementConfig
from stock_modules.procurement.service import GRNService

__all__ = [
    "DeliveryStatus",
    "DeliverySummary",
    "GRN",
    "GRNItem",
    "GRNItemInput",
    "GRNService",
    "GRNStatus",
    "GRN_WORKFLOW",
    "LineReceiptStatus",
    "POLine",
    "POLineInput",
    "ProcurementConfig",
    "PurchaseOrder",
]

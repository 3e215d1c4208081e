"""
Invoice Matching Service (``stock_modules.matching.service``).

Responsibility
--------------
Evaluates invoice lines against their PO lines and approved receipts using
``MatchingEngine``, and records manual overrides.

Architecture position
---------------------
**Modules layer** -- thin ERP glue.  Reads PO and GRN persistence from
``stock_modules.procurement.orm``, settings from
``MatchingSettingsService``; computes nothing itself.

Invariants enforced
-------------------
* Only APPROVED GRNs count as received for matching.
* Match results are computed on request, never stored.
* Overrides are append-only; the latest one for an invoice line is in
  force.  Each override carries score, reason, approver and timestamp.

Failure modes
-------------
* ``PurchaseOrderLineNotFoundError`` -- unknown PO line, or the line does
  not belong to the invoiced purchase order.
* ``InvalidOverrideError`` -- override without reason/approver or with a
  score outside [0, 100].
* ``GRNRequiredError`` -- from ``require_payable`` when nothing approved has
  been received and a GRN is required.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from stock_engines.matching import (
    InvoiceLine,
    ManualOverride,
    MatchingEngine,
    MatchResult,
    ReceiptReference,
)
from stock_kernel.domain.clock import Clock, SystemClock
from stock_kernel.exceptions import GRNRequiredError, PurchaseOrderLineNotFoundError
from stock_kernel.logging_config import get_logger
from stock_modules.matching.orm import MatchOverrideModel
from stock_modules.matching.settings import MatchingSettingsService
from stock_modules.procurement.models import GRNStatus
from stock_modules.procurement.orm import (
    GoodsReceivedNoteModel,
    GRNItemModel,
    PurchaseOrderLineModel,
)

logger = get_logger("modules.matching.service")

ZERO = Decimal("0")
CENT = Decimal("0.01")


class InvoiceMatchingService:
    """
    Three-way matching of invoice lines.

    Contract:
        ``evaluate`` is read-only.  ``record_override`` commits or rolls back.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        settings_service: MatchingSettingsService | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._settings = settings_service or MatchingSettingsService(session, clock=self._clock)
        self._engine = MatchingEngine()

    def evaluate(self, invoice_line: InvoiceLine) -> MatchResult:
        """Match one invoice line under the current settings."""
        settings = self._settings.get()
        po_line = self._load_po_line(invoice_line)
        receipt = self.receipt_reference(po_line)
        has_approved_grn = self.has_approved_grn(po_line.purchase_order_id)
        override = self.latest_override(invoice_line.id)

        return self._engine.evaluate(
            invoice_line=invoice_line,
            po_line=po_line.to_dto(),
            grn_line=receipt,
            settings=settings,
            has_approved_grn=has_approved_grn,
            override=override,
        )

    def require_payable(self, invoice_line: InvoiceLine) -> MatchResult:
        """
        Evaluate, raising when the line is blocked for want of a GRN.

        Raises:
            GRNRequiredError: no approved GRN exists and one is required.
        """
        result = self.evaluate(invoice_line)
        if result.is_blocked:
            raise GRNRequiredError(invoice_line.purchase_order_id)
        return result

    def record_override(
        self,
        invoice_line: InvoiceLine,
        score: Decimal,
        reason: str,
        approver_id: UUID | str,
        approved: bool = True,
    ) -> ManualOverride:
        """Record a manual override; it supersedes any earlier one for the line."""
        try:
            override = ManualOverride(
                invoice_line_id=invoice_line.id,
                score=score,
                reason=reason.strip() if reason else reason,
                approver_id=str(approver_id) if approver_id else "",
                recorded_at=self._clock.now_utc(),
                approved=approved,
            )
            computed = self.evaluate(invoice_line)

            sequence = self._session.execute(
                select(func.max(MatchOverrideModel.sequence)).where(
                    MatchOverrideModel.invoice_line_id == invoice_line.id
                )
            ).scalar_one_or_none() or 0

            self._session.add(
                MatchOverrideModel(
                    invoice_line_id=override.invoice_line_id,
                    sequence=sequence + 1,
                    score=override.score,
                    reason=override.reason,
                    approver_id=override.approver_id,
                    approved=override.approved,
                    computed_score=computed.computed_score,
                    recorded_at=override.recorded_at,
                )
            )
            self._session.flush()
            self._session.commit()
            logger.info(
                "match_override_recorded",
                extra={
                    "invoice_line_id": override.invoice_line_id,
                    "sequence": sequence + 1,
                    "score": str(override.score),
                    "computed_score": str(computed.computed_score),
                    "approved": override.approved,
                    "approver_id": override.approver_id,
                },
            )
            return override
        except Exception:
            self._session.rollback()
            raise

    def latest_override(self, invoice_line_id: str) -> ManualOverride | None:
        model = self._session.execute(
            select(MatchOverrideModel)
            .where(MatchOverrideModel.invoice_line_id == invoice_line_id)
            .order_by(MatchOverrideModel.sequence.desc())
            .limit(1)
        ).scalar_one_or_none()
        return model.to_dto() if model is not None else None

    def receipt_reference(self, po_line: PurchaseOrderLineModel) -> ReceiptReference | None:
        """
        Accepted quantity and value over approved GRNs for one PO line.

        The value carries the PO line's tax in proportion to the accepted
        quantity, rounded to the cent, so it is on the same basis as an
        invoice total (net plus tax).
        """
        rows = self._session.execute(
            select(GRNItemModel.quantity_accepted, GRNItemModel.unit_price)
            .join(GoodsReceivedNoteModel, GRNItemModel.grn_id == GoodsReceivedNoteModel.id)
            .where(
                GRNItemModel.po_line_id == po_line.id,
                GoodsReceivedNoteModel.status == GRNStatus.APPROVED.value,
            )
        ).all()
        if not rows:
            return None
        accepted = sum((quantity for quantity, _ in rows), ZERO)
        net_value = sum((quantity * price for quantity, price in rows), ZERO)
        return ReceiptReference(
            quantity_accepted=accepted,
            total_value=net_value + _received_tax(po_line, accepted),
        )

    def has_approved_grn(self, purchase_order_id: UUID) -> bool:
        count = self._session.execute(
            select(func.count(GoodsReceivedNoteModel.id)).where(
                GoodsReceivedNoteModel.purchase_order_id == purchase_order_id,
                GoodsReceivedNoteModel.status == GRNStatus.APPROVED.value,
            )
        ).scalar_one()
        return count > 0

    def _load_po_line(self, invoice_line: InvoiceLine) -> PurchaseOrderLineModel:
        try:
            po_line_id = UUID(str(invoice_line.po_line_id))
        except ValueError:
            raise PurchaseOrderLineNotFoundError(str(invoice_line.po_line_id))
        line = self._session.get(PurchaseOrderLineModel, po_line_id)
        if line is None or str(line.purchase_order_id) != str(invoice_line.purchase_order_id):
            raise PurchaseOrderLineNotFoundError(str(invoice_line.po_line_id))
        return line


def _received_tax(po_line: PurchaseOrderLineModel, accepted: Decimal) -> Decimal:
    if not po_line.tax_amount:
        return ZERO
    if po_line.quantity_ordered <= ZERO:
        return po_line.tax_amount
    share = po_line.tax_amount * accepted / po_line.quantity_ordered
    return share.quantize(CENT, rounding=ROUND_HALF_UP)

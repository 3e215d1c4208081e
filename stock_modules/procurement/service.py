"""
Procurement Module Service (``stock_modules.procurement.service``).

Responsibility
--------------
Orchestrates receiving: purchase-order creation, GRN drafting and the GRN
lifecycle (submit, approve, reject, cancel, publish), plus the PO receipt
status views.  Pure checks are delegated to ``ReceiptReconciler``; stock
movements are appended through the kernel ``TransactionLedger``.

Architecture position
---------------------
**Modules layer** -- thin ERP glue.  ``GRNService`` is the sole public entry
point for receiving.  Every state change is looked up in ``GRN_WORKFLOW``.

Invariants enforced
-------------------
* Each public method owns the transaction boundary (``commit`` on success,
  ``rollback`` on any exception).
* accepted + rejected == received is checked when items are entered, again
  on submit, and by a CHECK constraint in the database.
* ``approve`` appends one check-in per accepted item AND increments the PO
  line counters in ONE transaction.  Either both happen or neither.
* Transitions on one GRN are mutually exclusive: the GRN row is loaded
  ``FOR UPDATE`` and its ``version`` column is checked on flush.  The loser
  of a race gets ``InvalidGRNTransitionError``.

Failure modes
-------------
* ``GRNItemQuantityMismatchError`` / ``InvalidQuantityError`` -- bad item.
* ``EmptyReceiptError`` -- submit with nothing received.
* ``OverReceiptBlockedError`` -- accepted exceeds pending, over-receipt off.
* ``MissingRejectionReasonError`` -- reject without a reason.
* ``InvalidGRNTransitionError`` -- action not allowed from current status.
* ``ConsistencyViolationError`` -- ledger already holds movements for a GRN
  that is not approved.  Never repaired automatically.

Usage::

    service = GRNService(session, clock=clock)
    po = service.create_purchase_order(
        po_number="PO-1", vendor_id="V-1", order_date=date(2024, 1, 1),
        lines=[POLineInput("P1", Decimal("100"), Decimal("2.50"))],
        actor_id=actor_id,
    )
    grn = service.create_draft(
        purchase_order_id=po.id, warehouse_id="W1",
        items=[GRNItemInput(po.lines[0].id, Decimal("60"), Decimal("60"))],
        actor_id=actor_id,
    )
    grn = service.submit(grn.id, actor_id)
    grn = service.approve(grn.id, actor_id, comments="ok")
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from stock_engines.receipt_reconciler import (
    ReceiptReconciler,
    ReceiptReconciliation,
    check_item_balance,
)
from stock_kernel.domain.clock import Clock, SystemClock
from stock_kernel.domain.events import TransactionType
from stock_kernel.domain.workflow import Transition
from stock_kernel.exceptions import (
    ConsistencyViolationError,
    EmptyReceiptError,
    GRNNotFoundError,
    InvalidGRNTransitionError,
    InvalidQuantityError,
    MissingRejectionReasonError,
    OverReceiptBlockedError,
    PurchaseOrderLineNotFoundError,
    PurchaseOrderNotFoundError,
)
from stock_kernel.logging_config import LogContext, get_logger
from stock_kernel.selectors.inventory_selector import InventorySelector
from stock_kernel.services.ledger_service import TransactionLedger
from stock_kernel.services.sequence_service import SequenceService
from stock_kernel.utils.hashing import grn_check_in_event_id
from stock_modules.matching.config import MatchingSettings
from stock_modules.matching.settings import MatchingSettingsService
from stock_modules.procurement.config import ProcurementConfig
from stock_modules.procurement.models import (
    GRN,
    DeliveryStatus,
    DeliverySummary,
    GRNItemInput,
    GRNStatus,
    LineReceiptStatus,
    POLineInput,
    PurchaseOrder,
)
from stock_modules.procurement.orm import (
    GoodsReceivedNoteModel,
    GRNItemModel,
    PurchaseOrderLineModel,
    PurchaseOrderModel,
)
from stock_modules.procurement.workflows import GRN_WORKFLOW

logger = get_logger("modules.procurement.service")

ZERO = Decimal("0")


class GRNService:
    """
    Orchestrates purchase orders and goods-received notes.

    Contract:
        Every public write method either commits its complete effect or
        rolls back and re-raises.  Returned values are frozen DTOs.

    Guarantees:
        - Clock is injectable for deterministic audit timestamps.
        - Matching settings are read once per operation, before any write.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: ProcurementConfig | None = None,
        settings_service: MatchingSettingsService | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._config = config or ProcurementConfig.with_defaults()
        self._settings = settings_service or MatchingSettingsService(session, clock=self._clock)

        self._ledger = TransactionLedger(session, clock=self._clock)
        self._selector = InventorySelector(session)
        self._sequences = SequenceService(session)
        self._reconciler = ReceiptReconciler()

    # =========================================================================
    # Purchase orders
    # =========================================================================

    def create_purchase_order(
        self,
        po_number: str,
        vendor_id: str,
        order_date: date,
        lines: Sequence[POLineInput],
        actor_id: UUID,
        currency: str = "USD",
    ) -> PurchaseOrder:
        try:
            logger.info(
                "purchase_order_create_started",
                extra={"po_number": po_number, "vendor_id": vendor_id, "line_count": len(lines)},
            )
            for line in lines:
                if line.quantity_ordered <= ZERO:
                    raise InvalidQuantityError(
                        "quantity_ordered", str(line.quantity_ordered), "must be positive"
                    )
                if line.unit_price < ZERO:
                    raise InvalidQuantityError(
                        "unit_price", str(line.unit_price), "must not be negative"
                    )
                if line.tax_amount < ZERO:
                    raise InvalidQuantityError(
                        "tax_amount", str(line.tax_amount), "must not be negative"
                    )

            po = PurchaseOrderModel(
                po_number=po_number,
                vendor_id=vendor_id,
                order_date=order_date,
                currency=currency,
                created_by_id=actor_id,
            )
            for number, line in enumerate(lines, start=1):
                po.lines.append(
                    PurchaseOrderLineModel(
                        line_number=number,
                        product_id=line.product_id,
                        description=line.description,
                        quantity_ordered=line.quantity_ordered,
                        quantity_received=ZERO,
                        unit_price=line.unit_price,
                        tax_amount=line.tax_amount,
                        created_by_id=actor_id,
                    )
                )
            self._session.add(po)
            self._session.flush()
            dto = po.to_dto()
            self._session.commit()
            logger.info(
                "purchase_order_created",
                extra={"purchase_order_id": str(dto.id), "po_number": po_number},
            )
            return dto
        except Exception:
            self._session.rollback()
            raise

    def get_purchase_order(self, purchase_order_id: UUID) -> PurchaseOrder:
        return self._load_po(purchase_order_id).to_dto()

    # =========================================================================
    # GRN drafting
    # =========================================================================

    def create_draft(
        self,
        purchase_order_id: UUID,
        warehouse_id: str,
        items: Sequence[GRNItemInput],
        actor_id: UUID,
        receipt_date: date | None = None,
    ) -> GRN:
        """Create a draft GRN.  Items are validated before anything is stored."""
        try:
            po = self._load_po(purchase_order_id)
            item_models = self._build_items(po, items, actor_id)

            today = self._clock.today()
            grn = GoodsReceivedNoteModel(
                grn_number=self._next_grn_number(today.year),
                purchase_order_id=po.id,
                warehouse_id=warehouse_id,
                receipt_date=receipt_date or today,
                status=GRNStatus.DRAFT.value,
                created_by_id=actor_id,
            )
            grn.items.extend(item_models)
            self._session.add(grn)
            self._session.flush()
            dto = grn.to_dto()
            self._session.commit()
            logger.info(
                "grn_draft_created",
                extra={
                    "grn_id": str(dto.id),
                    "grn_number": dto.grn_number,
                    "purchase_order_id": str(po.id),
                    "item_count": len(dto.items),
                },
            )
            return dto
        except Exception:
            self._session.rollback()
            raise

    def replace_draft_items(
        self,
        grn_id: UUID,
        items: Sequence[GRNItemInput],
        actor_id: UUID,
    ) -> GRN:
        """Replace every item of a draft GRN.  Only drafts are editable."""
        try:
            grn = self._load_grn(grn_id, for_update=True)
            if grn.status != GRNStatus.DRAFT.value:
                self._reject_transition(grn, "edit")
            po = self._load_po(grn.purchase_order_id)
            item_models = self._build_items(po, items, actor_id)

            grn.items.clear()
            self._session.flush()
            grn.items.extend(item_models)
            grn.record_change(actor_id)
            self._flush_transition(grn, GRNStatus.DRAFT.value, "edit")
            dto = grn.to_dto()
            self._session.commit()
            logger.info(
                "grn_draft_items_replaced",
                extra={"grn_id": str(grn_id), "item_count": len(dto.items)},
            )
            return dto
        except Exception:
            self._session.rollback()
            raise

    def get_grn(self, grn_id: UUID) -> GRN:
        return self._load_grn(grn_id).to_dto()

    def check_receipt(self, grn_id: UUID) -> ReceiptReconciliation:
        """Over-receipt warnings for a GRN under the current settings (no writes)."""
        settings = self._settings.get()
        grn = self._load_grn(grn_id)
        return self._reconcile(grn, settings)

    # =========================================================================
    # GRN lifecycle
    # =========================================================================

    def submit(self, grn_id: UUID, actor_id: UUID) -> GRN:
        settings = self._settings.get()
        with LogContext.bind(grn_id=str(grn_id), actor_id=str(actor_id)):
            try:
                grn = self._load_grn(grn_id, for_update=True)
                from_state = grn.status
                transition = self._find_transition(grn, "submit")

                if not any(item.quantity_received > ZERO for item in grn.items):
                    raise EmptyReceiptError(str(grn_id))

                reconciliation = self._reconcile(grn, settings)
                self._raise_if_blocked(grn, reconciliation, "submit")

                grn.status = transition.to_state
                grn.submitted_by = actor_id
                grn.submitted_at = self._clock.now_utc()
                grn.record_change(actor_id)
                self._flush_transition(grn, from_state, "submit")
                dto = grn.to_dto()
                self._session.commit()
                logger.info(
                    "grn_submitted",
                    extra={
                        "grn_number": dto.grn_number,
                        "warnings": list(reconciliation.warnings),
                        "version": dto.version,
                    },
                )
                return dto
            except Exception:
                self._session.rollback()
                raise

    def approve(self, grn_id: UUID, actor_id: UUID, comments: str | None = None) -> GRN:
        """
        Approve a pending GRN: post check-ins and bump PO received counters.

        The pending-quantity check is re-run against the PO lines as they
        stand now, so two GRNs submitted against the same pending quantity
        cannot both be approved unless over-receipt is allowed.
        """
        settings = self._settings.get()
        with LogContext.bind(grn_id=str(grn_id), actor_id=str(actor_id)):
            try:
                grn = self._load_grn(grn_id, for_update=True)
                from_state = grn.status
                transition = self._find_transition(grn, "approve")
                self._claim_transition(grn, transition, from_state, "approve", actor_id)
                logger.info(
                    "grn_approval_started",
                    extra={"grn_number": grn.grn_number, "item_count": len(grn.items)},
                )

                po_lines = self._load_po_lines(grn.purchase_order_id, for_update=True)
                reconciliation = self._reconcile(grn, settings, po_lines)
                self._raise_if_blocked(grn, reconciliation, "approve")

                if self._selector.events_for_grn(grn.id):
                    logger.critical(
                        "grn_consistency_violation",
                        extra={"grn_number": grn.grn_number, "status": from_state},
                    )
                    raise ConsistencyViolationError(
                        str(grn_id), "ledger already holds movements for an unapproved GRN"
                    )

                appended = 0
                for item in grn.items:
                    if item.quantity_accepted <= ZERO:
                        continue
                    self._ledger.append(
                        {
                            "id": str(grn_check_in_event_id(grn.id, item.id)),
                            "type": TransactionType.CHECK_IN.value,
                            "product_id": item.product_id,
                            "target_warehouse_id": grn.warehouse_id,
                            "quantity": item.quantity_accepted,
                            "unit_price": item.unit_price,
                            "batch_number": item.batch_number,
                            "expiry_date": item.expiry_date,
                            "transaction_date": grn.receipt_date,
                            "reference": grn.grn_number,
                            "actor_id": str(actor_id),
                        },
                        grn_id=grn.id,
                    )
                    line = po_lines[str(item.po_line_id)]
                    line.quantity_received = line.quantity_received + item.quantity_accepted
                    line.record_change(actor_id)
                    appended += 1

                grn.approved_by = actor_id
                grn.approved_at = self._clock.now_utc()
                grn.comments = comments
                grn.record_change(actor_id)
                self._flush_transition(grn, from_state, "approve")
                dto = grn.to_dto()
                self._session.commit()
                logger.info(
                    "grn_approved",
                    extra={
                        "grn_number": dto.grn_number,
                        "movements_appended": appended,
                        "total_value": str(dto.total_value),
                        "over_receipt_lines": [
                            r.po_line_id for r in reconciliation.lines if r.warnings
                        ],
                        "version": dto.version,
                    },
                )
                return dto
            except Exception:
                self._session.rollback()
                logger.warning("grn_approval_rolled_back")
                raise

    def reject(self, grn_id: UUID, actor_id: UUID, reason: str) -> GRN:
        with LogContext.bind(grn_id=str(grn_id), actor_id=str(actor_id)):
            try:
                if not reason or not reason.strip():
                    raise MissingRejectionReasonError(str(grn_id))
                grn = self._load_grn(grn_id, for_update=True)
                from_state = grn.status
                transition = self._find_transition(grn, "reject")

                grn.status = transition.to_state
                grn.rejected_by = actor_id
                grn.rejected_at = self._clock.now_utc()
                grn.rejection_reason = reason.strip()
                grn.record_change(actor_id)
                self._flush_transition(grn, from_state, "reject")
                dto = grn.to_dto()
                self._session.commit()
                logger.info("grn_rejected", extra={"grn_number": dto.grn_number})
                return dto
            except Exception:
                self._session.rollback()
                raise

    def cancel(self, grn_id: UUID, actor_id: UUID) -> GRN:
        with LogContext.bind(grn_id=str(grn_id), actor_id=str(actor_id)):
            try:
                grn = self._load_grn(grn_id, for_update=True)
                from_state = grn.status
                transition = self._find_transition(grn, "cancel")

                grn.status = transition.to_state
                grn.cancelled_by = actor_id
                grn.cancelled_at = self._clock.now_utc()
                grn.record_change(actor_id)
                self._flush_transition(grn, from_state, "cancel")
                dto = grn.to_dto()
                self._session.commit()
                logger.info(
                    "grn_cancelled",
                    extra={"grn_number": dto.grn_number, "from_state": from_state},
                )
                return dto
            except Exception:
                self._session.rollback()
                raise

    def publish(self, grn_id: UUID, actor_id: UUID) -> GRN:
        """Mark an approved GRN as published to the vendor.  Repeating is a no-op."""
        with LogContext.bind(grn_id=str(grn_id), actor_id=str(actor_id)):
            try:
                grn = self._load_grn(grn_id, for_update=True)
                from_state = grn.status
                transition = self._find_transition(grn, "publish")

                if grn.is_published_to_vendor and transition.idempotent:
                    dto = grn.to_dto()
                    self._session.commit()
                    logger.info("grn_publish_noop", extra={"grn_number": dto.grn_number})
                    return dto

                grn.is_published_to_vendor = True
                grn.published_at = self._clock.now_utc()
                grn.record_change(actor_id)
                self._flush_transition(grn, from_state, "publish")
                dto = grn.to_dto()
                self._session.commit()
                logger.info("grn_published", extra={"grn_number": dto.grn_number})
                return dto
            except Exception:
                self._session.rollback()
                raise

    # =========================================================================
    # Receipt status
    # =========================================================================

    def line_receipt_status(self, purchase_order_id: UUID) -> tuple[LineReceiptStatus, ...]:
        po = self._load_po(purchase_order_id)
        values = self._approved_values_by_line(po.id)
        return tuple(
            LineReceiptStatus(
                po_line_id=line.id,
                line_number=line.line_number,
                product_id=line.product_id,
                quantity_ordered=line.quantity_ordered,
                quantity_received=line.quantity_received,
                quantity_pending=line.quantity_ordered - line.quantity_received,
                received_value=values.get(line.id, ZERO),
            )
            for line in po.lines
        )

    def delivery_summary(self, purchase_order_id: UUID) -> DeliverySummary:
        lines = self.line_receipt_status(purchase_order_id)
        grn_count = self._session.execute(
            select(func.count(GoodsReceivedNoteModel.id)).where(
                GoodsReceivedNoteModel.purchase_order_id == purchase_order_id,
                GoodsReceivedNoteModel.status == GRNStatus.APPROVED.value,
            )
        ).scalar_one()

        total_received = sum((line.quantity_received for line in lines), ZERO)
        if lines and all(line.quantity_pending <= ZERO for line in lines):
            status = DeliveryStatus.FULLY_RECEIVED
        elif total_received > ZERO:
            status = DeliveryStatus.PARTIALLY_RECEIVED
        else:
            status = DeliveryStatus.PENDING

        return DeliverySummary(
            purchase_order_id=purchase_order_id,
            grn_count=grn_count,
            total_ordered=sum((line.quantity_ordered for line in lines), ZERO),
            total_received=total_received,
            total_pending=sum((line.quantity_pending for line in lines), ZERO),
            total_received_value=sum((line.received_value for line in lines), ZERO),
            delivery_status=status,
            lines=lines,
        )

    # =========================================================================
    # Helpers
    # =========================================================================

    def _load_po(self, purchase_order_id: UUID) -> PurchaseOrderModel:
        po = self._session.execute(
            select(PurchaseOrderModel)
            .where(PurchaseOrderModel.id == purchase_order_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if po is None:
            raise PurchaseOrderNotFoundError(str(purchase_order_id))
        return po

    def _load_po_lines(
        self,
        purchase_order_id: UUID,
        for_update: bool = False,
    ) -> dict[str, PurchaseOrderLineModel]:
        stmt = (
            select(PurchaseOrderLineModel)
            .where(PurchaseOrderLineModel.purchase_order_id == purchase_order_id)
            .order_by(PurchaseOrderLineModel.line_number)
            .execution_options(populate_existing=True)
        )
        if for_update:
            stmt = stmt.with_for_update()
        return {str(m.id): m for m in self._session.execute(stmt).scalars()}

    def _load_grn(self, grn_id: UUID, for_update: bool = False) -> GoodsReceivedNoteModel:
        stmt = (
            select(GoodsReceivedNoteModel)
            .where(GoodsReceivedNoteModel.id == grn_id)
            .execution_options(populate_existing=True)
        )
        if for_update:
            stmt = stmt.with_for_update()
        grn = self._session.execute(stmt).scalar_one_or_none()
        if grn is None:
            raise GRNNotFoundError(str(grn_id))
        return grn

    def _build_items(
        self,
        po: PurchaseOrderModel,
        items: Sequence[GRNItemInput],
        actor_id: UUID,
    ) -> list[GRNItemModel]:
        lines = {line.id: line for line in po.lines}
        models = []
        for number, item in enumerate(items, start=1):
            line = lines.get(item.po_line_id)
            if line is None:
                raise PurchaseOrderLineNotFoundError(str(item.po_line_id))
            check_item_balance(item)
            unit_price = item.unit_price if item.unit_price is not None else line.unit_price
            if unit_price < ZERO:
                raise InvalidQuantityError("unit_price", str(unit_price), "must not be negative")
            models.append(
                GRNItemModel(
                    po_line_id=line.id,
                    line_number=number,
                    product_id=line.product_id,
                    quantity_ordered=line.quantity_ordered,
                    quantity_received=item.quantity_received,
                    quantity_accepted=item.quantity_accepted,
                    quantity_rejected=item.quantity_rejected,
                    unit_price=unit_price,
                    batch_number=item.batch_number,
                    expiry_date=item.expiry_date,
                    rejection_reason=item.rejection_reason,
                    created_by_id=actor_id,
                )
            )
        return models

    def _next_grn_number(self, year: int) -> str:
        # one counter per prefix and year; the row lock is held until commit
        sequence = self._sequences.next_value(f"{self._config.grn_number_prefix}-{year}")
        return self._config.grn_number(year, sequence)

    def _reconcile(
        self,
        grn: GoodsReceivedNoteModel,
        settings: MatchingSettings,
        po_lines: dict[str, PurchaseOrderLineModel] | None = None,
    ) -> ReceiptReconciliation:
        if po_lines is None:
            po_lines = self._load_po_lines(grn.purchase_order_id)
        return self._reconciler.validate_receipt(
            lines={key: model.to_dto() for key, model in po_lines.items()},
            items=[item.to_dto() for item in grn.items],
            settings=settings,
        )

    def _raise_if_blocked(
        self,
        grn: GoodsReceivedNoteModel,
        reconciliation: ReceiptReconciliation,
        action: str,
    ) -> None:
        if not reconciliation.blocking:
            return
        logger.warning(
            "grn_over_receipt_blocked",
            extra={
                "grn_number": grn.grn_number,
                "action": action,
                "po_line_ids": list(reconciliation.blocking_line_ids),
                "warnings": list(reconciliation.warnings),
            },
        )
        raise OverReceiptBlockedError(
            str(grn.id), reconciliation.warnings, reconciliation.blocking_line_ids
        )

    def _find_transition(self, grn: GoodsReceivedNoteModel, action: str) -> Transition:
        transition = GRN_WORKFLOW.find_transition(grn.status, action)
        if transition is None:
            self._reject_transition(grn, action)
        return transition

    def _reject_transition(self, grn: GoodsReceivedNoteModel, action: str) -> None:
        logger.warning(
            "grn_transition_rejected",
            extra={"grn_number": grn.grn_number, "from_state": grn.status, "action": action},
        )
        raise InvalidGRNTransitionError(str(grn.id), grn.status, action)

    def _claim_transition(
        self,
        grn: GoodsReceivedNoteModel,
        transition: Transition,
        from_state: str,
        action: str,
        actor_id: UUID,
    ) -> None:
        """
        Write the target state before any other work of the transition.

        The flush is a versioned UPDATE (``WHERE id = ? AND version = ?``).
        A writer that read the same version and committed first makes it
        match no row, and the transition ends here as invalid instead of
        running its checks against a state that no longer holds.
        """
        grn.status = transition.to_state
        grn.record_change(actor_id)
        self._flush_transition(grn, from_state, action)

    def _flush_transition(
        self,
        grn: GoodsReceivedNoteModel,
        from_state: str,
        action: str,
    ) -> None:
        try:
            self._session.flush()
        except StaleDataError as exc:
            # Another writer changed this GRN after we read it
            logger.warning(
                "grn_transition_lost_race",
                extra={"grn_id": str(grn.id), "from_state": from_state, "action": action},
            )
            raise InvalidGRNTransitionError(str(grn.id), from_state, action) from exc

    def _approved_values_by_line(self, purchase_order_id: UUID) -> dict[UUID, Decimal]:
        rows = self._session.execute(
            select(
                GRNItemModel.po_line_id,
                GRNItemModel.quantity_accepted,
                GRNItemModel.unit_price,
            )
            .join(GoodsReceivedNoteModel, GRNItemModel.grn_id == GoodsReceivedNoteModel.id)
            .where(
                GoodsReceivedNoteModel.purchase_order_id == purchase_order_id,
                GoodsReceivedNoteModel.status == GRNStatus.APPROVED.value,
            )
        ).all()
        values: dict[UUID, Decimal] = {}
        for po_line_id, accepted, unit_price in rows:
            values[po_line_id] = values.get(po_line_id, ZERO) + accepted * unit_price
        return values

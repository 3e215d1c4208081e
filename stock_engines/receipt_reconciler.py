"""
stock_engines.receipt_reconciler -- Validate proposed receipts against PO lines.

Responsibility:
    Two checks on a goods-received note before it may move forward:

    1. Item balance (hard validation): quantity_accepted + quantity_rejected
       must equal quantity_received, and no quantity may be negative.
       Violations raise; they are never warnings.
    2. Over-receipt (policy): accepting more than a PO line's pending
       quantity produces a warning naming the line and the pending
       quantity.  The warning is blocking unless over-receipt is allowed.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  Inputs are described by
    Protocols so the procurement module's DTOs can be passed straight in.

Usage:
    reconciler = ReceiptReconciler()
    result = reconciler.validate(line=po_line, proposed=grn_item, settings=settings)
    if result.blocking:
        raise OverReceiptBlockedError(...)
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from decimal import Decimal
from typing import Protocol

from stock_engines.tracer import traced_engine
from stock_kernel.exceptions import GRNItemQuantityMismatchError, InvalidQuantityError
from stock_kernel.logging_config import get_logger

logger = get_logger("engines.receipt_reconciler")

ZERO = Decimal("0")


class ReceiptPolicy(Protocol):
    """The one matching setting the reconciler reads."""

    @property
    def allow_over_receipt(self) -> bool: ...


class ReceivableLine(Protocol):
    """A PO line as the reconciler sees it."""

    @property
    def id(self): ...

    @property
    def quantity_pending(self) -> Decimal: ...


class ProposedReceipt(Protocol):
    """A GRN item as the reconciler sees it."""

    @property
    def po_line_id(self): ...

    @property
    def quantity_received(self) -> Decimal: ...

    @property
    def quantity_accepted(self) -> Decimal: ...

    @property
    def quantity_rejected(self) -> Decimal: ...


def format_quantity(value: Decimal) -> str:
    """Plain notation without trailing zeros: 40.000000000 -> '40'."""
    normalized = value.normalize()
    if normalized == normalized.to_integral_value():
        return f"{normalized.quantize(Decimal(1)):f}"
    return f"{normalized:f}"


@dataclass(frozen=True)
class ReconciliationResult:
    """Outcome for one PO line."""

    po_line_id: str
    quantity_pending: Decimal
    quantity_accepted: Decimal
    warnings: tuple[str, ...] = ()
    blocking: bool = False

    @property
    def over_receipt(self) -> Decimal:
        return max(self.quantity_accepted - self.quantity_pending, ZERO)

    def __iter__(self):
        return iter((self.warnings, self.blocking))


@dataclass(frozen=True)
class ReceiptReconciliation:
    """Outcome for a whole GRN: every line result, flattened."""

    lines: tuple[ReconciliationResult, ...]

    @property
    def warnings(self) -> tuple[str, ...]:
        return tuple(w for line in self.lines for w in line.warnings)

    @property
    def blocking(self) -> bool:
        return any(line.blocking for line in self.lines)

    @property
    def blocking_line_ids(self) -> tuple[str, ...]:
        return tuple(line.po_line_id for line in self.lines if line.blocking)


def check_item_balance(proposed: ProposedReceipt) -> None:
    """
    Raise unless the item's quantities are non-negative and balanced.

    Raises:
        InvalidQuantityError: any quantity is negative.
        GRNItemQuantityMismatchError: accepted + rejected != received.
    """
    for field in ("quantity_received", "quantity_accepted", "quantity_rejected"):
        value = getattr(proposed, field)
        if value < ZERO:
            raise InvalidQuantityError(field, format_quantity(value), "must not be negative")

    if proposed.quantity_accepted + proposed.quantity_rejected != proposed.quantity_received:
        logger.warning(
            "grn_item_balance_violation",
            extra={
                "po_line_id": str(proposed.po_line_id),
                "quantity_received": str(proposed.quantity_received),
                "quantity_accepted": str(proposed.quantity_accepted),
                "quantity_rejected": str(proposed.quantity_rejected),
            },
        )
        raise GRNItemQuantityMismatchError(
            po_line_id=str(proposed.po_line_id),
            quantity_received=format_quantity(proposed.quantity_received),
            quantity_accepted=format_quantity(proposed.quantity_accepted),
            quantity_rejected=format_quantity(proposed.quantity_rejected),
        )


class ReceiptReconciler:
    """Pending-quantity checks for goods receipts."""

    @traced_engine(
        "receipt_reconciler",
        "1.0",
        fingerprint_fields=("line", "proposed", "settings"),
    )
    def validate(
        self,
        *,
        line: ReceivableLine,
        proposed: ProposedReceipt,
        settings: ReceiptPolicy,
    ) -> ReconciliationResult:
        """Check one proposed item against one PO line."""
        check_item_balance(proposed)
        return self._compare(
            po_line_id=str(line.id),
            pending=line.quantity_pending,
            accepted=proposed.quantity_accepted,
            allow_over_receipt=settings.allow_over_receipt,
        )

    @traced_engine(
        "receipt_reconciler",
        "1.0",
        fingerprint_fields=("lines", "items", "settings"),
    )
    def validate_receipt(
        self,
        *,
        lines: Mapping[str, ReceivableLine],
        items: Sequence[ProposedReceipt],
        settings: ReceiptPolicy,
    ) -> ReceiptReconciliation:
        """
        Check every item of a GRN.

        Items against the same PO line are summed before comparing, so
        splitting a receipt across two items cannot slip past the check.

        Args:
            lines: PO lines keyed by str(line id).
            items: The GRN's items.
        """
        accepted_by_line: dict[str, Decimal] = {}
        for item in items:
            check_item_balance(item)
            key = str(item.po_line_id)
            accepted_by_line[key] = accepted_by_line.get(key, ZERO) + item.quantity_accepted

        results = tuple(
            self._compare(
                po_line_id=key,
                pending=lines[key].quantity_pending,
                accepted=accepted,
                allow_over_receipt=settings.allow_over_receipt,
            )
            for key, accepted in sorted(accepted_by_line.items())
        )
        return ReceiptReconciliation(lines=results)

    def _compare(
        self,
        *,
        po_line_id: str,
        pending: Decimal,
        accepted: Decimal,
        allow_over_receipt: bool,
    ) -> ReconciliationResult:
        if accepted <= pending:
            return ReconciliationResult(
                po_line_id=po_line_id,
                quantity_pending=pending,
                quantity_accepted=accepted,
            )

        warning = (
            f"PO line {po_line_id}: accepted quantity {format_quantity(accepted)} "
            f"exceeds pending quantity {format_quantity(pending)}"
        )
        blocking = not allow_over_receipt
        logger.info(
            "over_receipt_detected",
            extra={
                "po_line_id": po_line_id,
                "quantity_pending": str(pending),
                "quantity_accepted": str(accepted),
                "blocking": blocking,
            },
        )
        return ReconciliationResult(
            po_line_id=po_line_id,
            quantity_pending=pending,
            quantity_accepted=accepted,
            warnings=(warning,),
            blocking=blocking,
        )

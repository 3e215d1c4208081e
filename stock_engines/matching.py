"""
stock_engines.matching -- Tolerance-based invoice matching (3-way match).

Responsibility:
    Compare an invoice line against its purchase-order line and the value
    actually received (approved GRNs) under percentage tolerances, and
    decide whether the line can be auto-approved, needs manual approval,
    or is blocked because nothing has been received.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import stock_kernel.domain, stock_kernel.exceptions and
    stock_kernel.logging_config.

Field references:
    price     invoice unit price      vs PO unit price
    quantity  invoice quantity        vs GRN accepted quantity
                                         (PO ordered quantity when no GRN)
    tax       invoice tax amount      vs PO tax amount
    total     invoice total           vs GRN received value
                                         (PO line total when no GRN)

Invariants enforced:
    - variance_pct = |invoice - reference| / |reference| * 100, Decimal only.
    - within_tolerance is inclusive (variance_pct <= tolerance_pct).
    - Zero reference: 0 vs 0 is 0% variance; anything else vs 0 is
      Decimal('Infinity') and always out of tolerance.
    - Strict mode treats every tolerance as 0.
    - "No approved GRN" with require_grn_for_invoice returns a blocked
      result before any field is compared.
    - A manual override supersedes the computed decision; the computed
      variances are kept alongside it for audit.

Tolerance breaches are outcomes, not errors: nothing here raises for an
out-of-tolerance line.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Protocol

from stock_engines.tracer import traced_engine
from stock_kernel.exceptions import InvalidOverrideError
from stock_kernel.logging_config import get_logger

logger = get_logger("engines.matching")

ZERO = Decimal("0")
HUNDRED = Decimal("100")
INFINITE_VARIANCE = Decimal("Infinity")


class MatchField(str, Enum):
    PRICE = "price"
    QUANTITY = "quantity"
    TAX = "tax"
    TOTAL = "total"


class MatchStatus(str, Enum):
    AUTO_APPROVED = "auto_approved"  # All fields within tolerance, auto-approve on
    MATCHED = "matched"  # All fields within tolerance, manual approval required
    VARIANCE = "variance"  # At least one field out of tolerance
    BLOCKED_NO_GRN = "blocked_no_grn"  # GRN required, none approved
    OVERRIDDEN = "overridden"  # Manual override recorded


# Penalty subtracted from 100 for each field out of tolerance
SCORE_PENALTIES: dict[MatchField, Decimal] = {
    MatchField.PRICE: Decimal("30"),
    MatchField.QUANTITY: Decimal("20"),
    MatchField.TAX: Decimal("10"),
    MatchField.TOTAL: Decimal("40"),
}


class MatchingPolicy(Protocol):
    """The matching settings the engine reads."""

    price_tolerance_pct: Decimal
    quantity_tolerance_pct: Decimal
    tax_tolerance_pct: Decimal
    total_tolerance_pct: Decimal
    strict_matching_mode: bool
    require_grn_for_invoice: bool
    auto_approve_matched: bool


class PurchaseOrderReference(Protocol):
    """A PO line as the matcher sees it."""

    @property
    def unit_price(self) -> Decimal: ...

    @property
    def quantity_ordered(self) -> Decimal: ...

    @property
    def tax_amount(self) -> Decimal: ...

    @property
    def line_total(self) -> Decimal: ...


@dataclass(frozen=True)
class InvoiceLine:
    """One invoice line submitted for matching."""

    id: str
    purchase_order_id: str
    po_line_id: str
    unit_price: Decimal
    quantity: Decimal
    tax_amount: Decimal = ZERO
    total_amount: Decimal | None = None

    @property
    def total(self) -> Decimal:
        if self.total_amount is not None:
            return self.total_amount
        return self.unit_price * self.quantity + self.tax_amount


@dataclass(frozen=True)
class ReceiptReference:
    """
    What approved GRNs actually delivered against one PO line.

    ``total_value`` is net receipt value plus the PO line's tax prorated to
    the accepted quantity, the same basis as ``InvoiceLine.total``.
    """

    quantity_accepted: Decimal
    total_value: Decimal


@dataclass(frozen=True)
class ManualOverride:
    """
    A recorded human decision that supersedes the computed match.

    Contract:
        score in [0, 100]; reason and approver_id non-empty; recorded_at set.
    """

    invoice_line_id: str
    score: Decimal
    reason: str
    approver_id: str
    recorded_at: datetime
    approved: bool = True

    def __post_init__(self) -> None:
        if not self.reason or not self.reason.strip():
            raise InvalidOverrideError(self.invoice_line_id, "reason is required")
        if not self.approver_id or not str(self.approver_id).strip():
            raise InvalidOverrideError(self.invoice_line_id, "approver identity is required")
        if self.recorded_at is None:
            raise InvalidOverrideError(self.invoice_line_id, "timestamp is required")
        if not (ZERO <= self.score <= HUNDRED):
            raise InvalidOverrideError(
                self.invoice_line_id, f"score must be between 0 and 100, got {self.score}"
            )


@dataclass(frozen=True)
class FieldVariance:
    field: MatchField
    invoice_value: Decimal
    reference_value: Decimal
    variance_pct: Decimal
    tolerance_pct: Decimal
    within_tolerance: bool


@dataclass(frozen=True)
class MatchResult:
    """
    Outcome of matching one invoice line.  Computed, never stored.

    ``computed_score`` always reflects the variances; ``score`` is the
    override's score when one is recorded.
    """

    invoice_line_id: str
    status: MatchStatus
    variances: tuple[FieldVariance, ...]
    within_tolerance: bool
    is_approved: bool
    computed_score: Decimal
    strict_mode: bool
    manual_override: ManualOverride | None = None
    blocked_reason: str | None = None

    @property
    def score(self) -> Decimal:
        if self.manual_override is not None:
            return self.manual_override.score
        return self.computed_score

    @property
    def requires_manual_approval(self) -> bool:
        return self.status in (MatchStatus.MATCHED, MatchStatus.VARIANCE)

    @property
    def is_blocked(self) -> bool:
        return self.status is MatchStatus.BLOCKED_NO_GRN

    def variance_for(self, field: MatchField) -> FieldVariance | None:
        for v in self.variances:
            if v.field is field:
                return v
        return None


def variance_pct(invoice_value: Decimal, reference_value: Decimal) -> Decimal:
    """Relative variance in percent; Infinity when the reference is zero and the invoice is not."""
    if reference_value == ZERO:
        return ZERO if invoice_value == ZERO else INFINITE_VARIANCE
    return abs(invoice_value - reference_value) / abs(reference_value) * HUNDRED


def compare_field(
    field: MatchField,
    invoice_value: Decimal,
    reference_value: Decimal,
    tolerance_pct: Decimal,
) -> FieldVariance:
    pct = variance_pct(invoice_value, reference_value)
    return FieldVariance(
        field=field,
        invoice_value=invoice_value,
        reference_value=reference_value,
        variance_pct=pct,
        tolerance_pct=tolerance_pct,
        within_tolerance=pct <= tolerance_pct,
    )


def match_score(variances: tuple[FieldVariance, ...]) -> Decimal:
    score = HUNDRED
    for v in variances:
        if not v.within_tolerance:
            score -= SCORE_PENALTIES[v.field]
    return min(max(score, ZERO), HUNDRED)


class MatchingEngine:
    """
    Tolerance-based 3-way matcher.

    Contract:
        Pure -- no I/O, no clock.  Settings are passed per call; a slightly
        stale settings snapshot is acceptable to callers.
    """

    @traced_engine(
        "matching",
        "1.0",
        fingerprint_fields=("invoice_line", "po_line", "grn_line", "settings", "override"),
    )
    def evaluate(
        self,
        *,
        invoice_line: InvoiceLine,
        po_line: PurchaseOrderReference,
        grn_line: ReceiptReference | None,
        settings: MatchingPolicy,
        has_approved_grn: bool | None = None,
        override: ManualOverride | None = None,
    ) -> MatchResult:
        """
        Evaluate one invoice line.

        Args:
            invoice_line: The invoice line being matched.
            po_line: The purchase-order line it bills against.
            grn_line: Approved-receipt totals for that PO line, or None.
            settings: Tolerances and flags.
            has_approved_grn: Whether the PO has any approved GRN.  Defaults
                to ``grn_line is not None``.
            override: Latest manual override for the line, if any.
        """
        t0 = time.monotonic()
        strict = bool(settings.strict_matching_mode)
        if has_approved_grn is None:
            has_approved_grn = grn_line is not None

        if settings.require_grn_for_invoice and not has_approved_grn:
            logger.info(
                "match_blocked_no_grn",
                extra={
                    "invoice_line_id": invoice_line.id,
                    "purchase_order_id": invoice_line.purchase_order_id,
                },
            )
            return MatchResult(
                invoice_line_id=invoice_line.id,
                status=MatchStatus.BLOCKED_NO_GRN,
                variances=(),
                within_tolerance=False,
                is_approved=False,
                computed_score=ZERO,
                strict_mode=strict,
                blocked_reason=(
                    f"No approved GRN for purchase order {invoice_line.purchase_order_id}"
                ),
            )

        def tol(value: Decimal) -> Decimal:
            return ZERO if strict else Decimal(value)

        if grn_line is not None:
            quantity_ref = grn_line.quantity_accepted
            total_ref = grn_line.total_value
        else:
            quantity_ref = po_line.quantity_ordered
            total_ref = po_line.line_total

        variances = (
            compare_field(
                MatchField.PRICE,
                invoice_line.unit_price,
                po_line.unit_price,
                tol(settings.price_tolerance_pct),
            ),
            compare_field(
                MatchField.QUANTITY,
                invoice_line.quantity,
                quantity_ref,
                tol(settings.quantity_tolerance_pct),
            ),
            compare_field(
                MatchField.TAX,
                invoice_line.tax_amount,
                po_line.tax_amount,
                tol(settings.tax_tolerance_pct),
            ),
            compare_field(
                MatchField.TOTAL,
                invoice_line.total,
                total_ref,
                tol(settings.total_tolerance_pct),
            ),
        )
        within = all(v.within_tolerance for v in variances)
        computed_score = match_score(variances)

        if override is not None:
            status = MatchStatus.OVERRIDDEN
            is_approved = override.approved
        elif within and settings.auto_approve_matched:
            status = MatchStatus.AUTO_APPROVED
            is_approved = True
        elif within:
            status = MatchStatus.MATCHED
            is_approved = False
        else:
            status = MatchStatus.VARIANCE
            is_approved = False

        duration_ms = round((time.monotonic() - t0) * 1000, 2)
        logger.info(
            "match_evaluated",
            extra={
                "invoice_line_id": invoice_line.id,
                "status": status.value,
                "within_tolerance": within,
                "out_of_tolerance_fields": [
                    v.field.value for v in variances if not v.within_tolerance
                ],
                "computed_score": str(computed_score),
                "strict_mode": strict,
                "has_override": override is not None,
                "duration_ms": duration_ms,
            },
        )

        return MatchResult(
            invoice_line_id=invoice_line.id,
            status=status,
            variances=variances,
            within_tolerance=within,
            is_approved=is_approved,
            computed_score=computed_score,
            strict_mode=strict,
            manual_override=override,
        )

"""
Tests for MatchingEngine (tolerance-based 3-way matching).

Covers:
- Variance percentage, including zero references
- Inclusive tolerance boundaries
- Strict mode
- Blocking when no approved GRN exists
- Auto-approval vs manual approval
- Manual overrides and score
"""

from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from stock_engines.matching import (
    INFINITE_VARIANCE,
    InvoiceLine,
    ManualOverride,
    MatchField,
    MatchingEngine,
    MatchStatus,
    ReceiptReference,
    variance_pct,
)
from stock_kernel.exceptions import InvalidOverrideError
from stock_modules.matching.config import MatchingSettings
from stock_modules.procurement.models import POLine

RECORDED_AT = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


def po_line(unit_price="100", quantity="10", tax="0"):
    return POLine(
        id=uuid4(),
        purchase_order_id=uuid4(),
        line_number=1,
        product_id="P1",
        quantity_ordered=Decimal(quantity),
        quantity_received=Decimal("0"),
        unit_price=Decimal(unit_price),
        tax_amount=Decimal(tax),
    )


def invoice(unit_price="100", quantity="10", tax="0", total=None):
    return InvoiceLine(
        id="INV-1/1",
        purchase_order_id="PO-1",
        po_line_id="L-1",
        unit_price=Decimal(unit_price),
        quantity=Decimal(quantity),
        tax_amount=Decimal(tax),
        total_amount=Decimal(total) if total is not None else None,
    )


def receipt(quantity="10", value="1000"):
    return ReceiptReference(quantity_accepted=Decimal(quantity), total_value=Decimal(value))


class TestVariancePct:

    def test_relative_difference(self):
        assert variance_pct(Decimal("105"), Decimal("100")) == Decimal("5")

    def test_direction_does_not_matter(self):
        assert variance_pct(Decimal("95"), Decimal("100")) == Decimal("5")

    def test_zero_against_zero_is_exact(self):
        assert variance_pct(Decimal("0"), Decimal("0")) == Decimal("0")

    def test_nonzero_against_zero_is_infinite(self):
        assert variance_pct(Decimal("1"), Decimal("0")) == INFINITE_VARIANCE


class TestTolerance:

    def setup_method(self):
        self.engine = MatchingEngine()

    def test_price_at_boundary_is_within(self):
        """105 invoiced against 100 ordered at 5% tolerance is within."""
        result = self.engine.evaluate(
            invoice_line=invoice(unit_price="105", total="1050"),
            po_line=po_line(unit_price="100"),
            grn_line=receipt(value="1050"),
            settings=MatchingSettings(price_tolerance_pct=Decimal("5")),
        )

        price = result.variance_for(MatchField.PRICE)
        assert price.variance_pct == Decimal("5")
        assert price.within_tolerance is True
        assert result.within_tolerance is True

    def test_price_just_over_boundary_is_out(self):
        result = self.engine.evaluate(
            invoice_line=invoice(unit_price="105.01", total="1000"),
            po_line=po_line(unit_price="100"),
            grn_line=receipt(),
            settings=MatchingSettings(),
        )

        assert result.variance_for(MatchField.PRICE).within_tolerance is False
        assert result.status is MatchStatus.VARIANCE
        assert result.requires_manual_approval is True

    def test_quantity_compared_to_received_not_ordered(self):
        result = self.engine.evaluate(
            invoice_line=invoice(quantity="10"),
            po_line=po_line(quantity="10"),
            grn_line=receipt(quantity="6", value="600"),
            settings=MatchingSettings(),
        )

        quantity = result.variance_for(MatchField.QUANTITY)
        assert quantity.reference_value == Decimal("6")
        assert quantity.within_tolerance is False

    def test_ordered_quantity_used_without_receipt(self):
        result = self.engine.evaluate(
            invoice_line=invoice(),
            po_line=po_line(),
            grn_line=None,
            settings=MatchingSettings(require_grn_for_invoice=False),
        )

        assert result.variance_for(MatchField.QUANTITY).reference_value == Decimal("10")
        assert result.variance_for(MatchField.TOTAL).reference_value == Decimal("1000")
        assert result.within_tolerance is True

    def test_zero_tax_on_both_sides_matches(self):
        result = self.engine.evaluate(
            invoice_line=invoice(),
            po_line=po_line(tax="0"),
            grn_line=receipt(),
            settings=MatchingSettings(),
        )

        assert result.variance_for(MatchField.TAX).within_tolerance is True

    def test_tax_against_zero_reference_never_within(self):
        result = self.engine.evaluate(
            invoice_line=invoice(tax="0.01", total="1000"),
            po_line=po_line(tax="0"),
            grn_line=receipt(),
            settings=MatchingSettings(tax_tolerance_pct=Decimal("100")),
        )

        tax = result.variance_for(MatchField.TAX)
        assert tax.variance_pct == INFINITE_VARIANCE
        assert tax.within_tolerance is False

    def test_strict_mode_zeroes_tolerances(self):
        result = self.engine.evaluate(
            invoice_line=invoice(unit_price="101", total="1000"),
            po_line=po_line(),
            grn_line=receipt(),
            settings=MatchingSettings(strict_matching_mode=True),
        )

        price = result.variance_for(MatchField.PRICE)
        assert price.tolerance_pct == Decimal("0")
        assert price.within_tolerance is False
        assert result.strict_mode is True

    def test_strict_mode_exact_match_passes(self):
        result = self.engine.evaluate(
            invoice_line=invoice(),
            po_line=po_line(),
            grn_line=receipt(),
            settings=MatchingSettings(strict_matching_mode=True),
        )

        assert result.within_tolerance is True


class TestDecision:

    def setup_method(self):
        self.engine = MatchingEngine()

    def test_matched_requires_manual_approval_by_default(self):
        result = self.engine.evaluate(
            invoice_line=invoice(), po_line=po_line(), grn_line=receipt(),
            settings=MatchingSettings(),
        )

        assert result.status is MatchStatus.MATCHED
        assert result.is_approved is False
        assert result.computed_score == Decimal("100")

    def test_auto_approve_when_enabled(self):
        result = self.engine.evaluate(
            invoice_line=invoice(), po_line=po_line(), grn_line=receipt(),
            settings=MatchingSettings(auto_approve_matched=True),
        )

        assert result.status is MatchStatus.AUTO_APPROVED
        assert result.is_approved is True
        assert result.requires_manual_approval is False

    def test_auto_approve_never_applies_to_variance(self):
        result = self.engine.evaluate(
            invoice_line=invoice(unit_price="200", total="1000"),
            po_line=po_line(),
            grn_line=receipt(),
            settings=MatchingSettings(auto_approve_matched=True),
        )

        assert result.status is MatchStatus.VARIANCE
        assert result.is_approved is False

    def test_score_penalties(self):
        """Price (30) and total (40) out of tolerance leaves 30."""
        result = self.engine.evaluate(
            invoice_line=invoice(unit_price="200", quantity="10"),
            po_line=po_line(),
            grn_line=receipt(),
            settings=MatchingSettings(),
        )

        assert result.computed_score == Decimal("30")

    def test_blocked_without_approved_grn(self):
        result = self.engine.evaluate(
            invoice_line=invoice(), po_line=po_line(), grn_line=None,
            settings=MatchingSettings(require_grn_for_invoice=True),
        )

        assert result.status is MatchStatus.BLOCKED_NO_GRN
        assert result.is_blocked is True
        assert result.variances == ()
        assert "PO-1" in result.blocked_reason

    def test_blocked_even_with_override(self):
        override = ManualOverride("INV-1/1", Decimal("90"), "vendor credit", "U1", RECORDED_AT)

        result = self.engine.evaluate(
            invoice_line=invoice(), po_line=po_line(), grn_line=None,
            settings=MatchingSettings(), override=override,
        )

        assert result.is_blocked is True
        assert result.is_approved is False

    def test_explicit_has_approved_grn_flag(self):
        """An approved GRN on another line of the PO unblocks this line."""
        result = self.engine.evaluate(
            invoice_line=invoice(), po_line=po_line(), grn_line=None,
            settings=MatchingSettings(), has_approved_grn=True,
        )

        assert result.is_blocked is False


class TestOverride:

    def setup_method(self):
        self.engine = MatchingEngine()

    def test_override_supersedes_variance(self):
        override = ManualOverride("INV-1/1", Decimal("85"), "agreed surcharge", "U1", RECORDED_AT)

        result = self.engine.evaluate(
            invoice_line=invoice(unit_price="200", total="1000"),
            po_line=po_line(),
            grn_line=receipt(),
            settings=MatchingSettings(),
            override=override,
        )

        assert result.status is MatchStatus.OVERRIDDEN
        assert result.is_approved is True
        assert result.score == Decimal("85")
        assert result.computed_score == Decimal("70")
        assert result.within_tolerance is False
        assert result.manual_override is override

    def test_override_can_reject(self):
        override = ManualOverride(
            "INV-1/1", Decimal("0"), "duplicate invoice", "U1", RECORDED_AT, approved=False,
        )

        result = self.engine.evaluate(
            invoice_line=invoice(), po_line=po_line(), grn_line=receipt(),
            settings=MatchingSettings(auto_approve_matched=True), override=override,
        )

        assert result.status is MatchStatus.OVERRIDDEN
        assert result.is_approved is False

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"reason": ""},
            {"reason": "   "},
            {"approver_id": ""},
            {"recorded_at": None},
            {"score": Decimal("101")},
            {"score": Decimal("-1")},
        ],
    )
    def test_invalid_override_rejected(self, kwargs):
        values = dict(
            invoice_line_id="INV-1/1",
            score=Decimal("50"),
            reason="ok",
            approver_id="U1",
            recorded_at=RECORDED_AT,
        )
        values.update(kwargs)

        with pytest.raises(InvalidOverrideError):
            ManualOverride(**values)

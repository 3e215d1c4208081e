"""
Tests for ReceiptReconciler.

Covers:
- Item balance (accepted + rejected == received) as a hard error
- Negative quantities rejected
- Over-receipt warning text and blocking under allow_over_receipt
- Whole-GRN validation summing items per PO line
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from stock_engines.receipt_reconciler import (
    ReceiptReconciler,
    check_item_balance,
    format_quantity,
)
from stock_kernel.exceptions import GRNItemQuantityMismatchError, InvalidQuantityError
from stock_modules.matching.config import MatchingSettings
from stock_modules.procurement.models import GRNItemInput, POLine


def make_line(ordered="100", received="0", line_id=None):
    return POLine(
        id=line_id or uuid4(),
        purchase_order_id=uuid4(),
        line_number=1,
        product_id="P1",
        quantity_ordered=Decimal(ordered),
        quantity_received=Decimal(received),
        unit_price=Decimal("10"),
    )


def make_item(line, received, accepted, rejected="0"):
    return GRNItemInput(
        po_line_id=line.id,
        quantity_received=Decimal(received),
        quantity_accepted=Decimal(accepted),
        quantity_rejected=Decimal(rejected),
    )


STRICT = MatchingSettings(allow_over_receipt=False)
LENIENT = MatchingSettings(allow_over_receipt=True)


class TestItemBalance:

    def test_balanced_item_passes(self):
        line = make_line()
        check_item_balance(make_item(line, "10", "8", "2"))

    def test_unbalanced_item_raises(self):
        line = make_line()

        with pytest.raises(GRNItemQuantityMismatchError) as exc_info:
            check_item_balance(make_item(line, "10", "8", "1"))

        assert exc_info.value.code == "GRN_ITEM_QUANTITY_MISMATCH"
        assert "10" in str(exc_info.value)

    def test_negative_quantity_raises(self):
        line = make_line()

        with pytest.raises(InvalidQuantityError):
            check_item_balance(make_item(line, "-5", "-5"))

    def test_validate_checks_balance_before_policy(self):
        line = make_line()

        with pytest.raises(GRNItemQuantityMismatchError):
            ReceiptReconciler().validate(
                line=line, proposed=make_item(line, "10", "4", "4"), settings=LENIENT,
            )


class TestOverReceipt:
    """PO line ordered 100 with 60 already received leaves 40 pending."""

    def setup_method(self):
        self.reconciler = ReceiptReconciler()
        self.line = make_line(ordered="100", received="60")

    def test_within_pending_no_warning(self):
        result = self.reconciler.validate(
            line=self.line, proposed=make_item(self.line, "40", "40"), settings=STRICT,
        )

        assert result.warnings == ()
        assert result.blocking is False
        assert result.over_receipt == Decimal("0")

    def test_over_pending_blocks_when_not_allowed(self):
        warnings, blocking = self.reconciler.validate(
            line=self.line, proposed=make_item(self.line, "50", "50"), settings=STRICT,
        )

        assert blocking is True
        assert warnings == (
            f"PO line {self.line.id}: accepted quantity 50 exceeds pending quantity 40",
        )

    def test_over_pending_warns_but_allows_when_permitted(self):
        result = self.reconciler.validate(
            line=self.line, proposed=make_item(self.line, "50", "50"), settings=LENIENT,
        )

        assert result.blocking is False
        assert len(result.warnings) == 1
        assert "pending quantity 40" in result.warnings[0]
        assert result.over_receipt == Decimal("10")

    def test_rejected_quantity_does_not_count(self):
        """Only accepted stock consumes the pending quantity."""
        result = self.reconciler.validate(
            line=self.line, proposed=make_item(self.line, "60", "40", "20"), settings=STRICT,
        )

        assert result.blocking is False

    def test_already_over_received_line(self):
        line = make_line(ordered="100", received="110")

        result = self.reconciler.validate(
            line=line, proposed=make_item(line, "1", "1"), settings=STRICT,
        )

        assert result.blocking is True
        assert "pending quantity -10" in result.warnings[0]


class TestValidateReceipt:

    def setup_method(self):
        self.reconciler = ReceiptReconciler()

    def test_items_on_same_line_are_summed(self):
        line = make_line(ordered="100", received="60")
        items = [make_item(line, "25", "25"), make_item(line, "25", "25")]

        result = self.reconciler.validate_receipt(
            lines={str(line.id): line}, items=items, settings=STRICT,
        )

        assert result.blocking is True
        assert result.blocking_line_ids == (str(line.id),)
        assert "accepted quantity 50" in result.warnings[0]

    def test_lines_reported_independently(self):
        ok_line = make_line(ordered="10")
        over_line = make_line(ordered="5")
        items = [make_item(ok_line, "10", "10"), make_item(over_line, "6", "6")]

        result = self.reconciler.validate_receipt(
            lines={str(ok_line.id): ok_line, str(over_line.id): over_line},
            items=items,
            settings=STRICT,
        )

        assert len(result.lines) == 2
        assert result.blocking_line_ids == (str(over_line.id),)
        assert len(result.warnings) == 1

    def test_lenient_settings_never_block(self):
        line = make_line(ordered="5")

        result = self.reconciler.validate_receipt(
            lines={str(line.id): line}, items=[make_item(line, "9", "9")], settings=LENIENT,
        )

        assert result.blocking is False
        assert result.warnings


class TestFormatQuantity:

    @pytest.mark.parametrize(
        "value, expected",
        [
            (Decimal("40.000000000"), "40"),
            (Decimal("-10"), "-10"),
            (Decimal("2.500"), "2.5"),
            (Decimal("1E+2"), "100"),
        ],
    )
    def test_plain_notation(self, value, expected):
        assert format_quantity(value) == expected

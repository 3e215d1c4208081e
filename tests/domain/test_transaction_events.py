"""
Tests for movement event parsing.

Each event type has its own required-field set; anything malformed is
rejected with one entry per offending field and never reaches the ledger.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import uuid4

import pytest

from stock_kernel.domain.events import (
    AdjustmentEvent,
    CheckInEvent,
    CheckOutEvent,
    LedgerFilter,
    LegDirection,
    TransactionType,
    TransferEvent,
    event_to_payload,
    parse_transaction_event,
)
from stock_kernel.exceptions import EventValidationError


def payload(**overrides):
    base = {
        "id": str(uuid4()),
        "type": "check_in",
        "product_id": "P1",
        "target_warehouse_id": "W1",
        "quantity": "10",
        "unit_price": "2.50",
        "transaction_date": "2024-01-01",
        "actor_id": "U1",
    }
    base.update(overrides)
    return base


def field_names(exc_info) -> set[str]:
    return {e["field"] for e in exc_info.value.field_errors}


class TestCheckIn:

    def test_valid_check_in(self):
        event = parse_transaction_event(payload(batch_number="B1", expiry_date="2024-06-30"))

        assert isinstance(event, CheckInEvent)
        assert event.type is TransactionType.CHECK_IN
        assert event.quantity == Decimal("10")
        assert event.unit_price == Decimal("2.50")
        assert event.transaction_date == date(2024, 1, 1)
        assert event.expiry_date == date(2024, 6, 30)

    def test_missing_target_warehouse(self):
        with pytest.raises(EventValidationError) as exc_info:
            parse_transaction_event(payload(target_warehouse_id=None))

        assert "target_warehouse_id" in field_names(exc_info)

    def test_missing_unit_price(self):
        with pytest.raises(EventValidationError) as exc_info:
            parse_transaction_event(payload(unit_price=None))

        assert field_names(exc_info) == {"unit_price"}

    def test_source_warehouse_not_allowed(self):
        with pytest.raises(EventValidationError) as exc_info:
            parse_transaction_event(payload(source_warehouse_id="W9"))

        assert "source_warehouse_id" in field_names(exc_info)

    def test_datetime_transaction_date_truncated_to_day(self):
        event = parse_transaction_event(payload(transaction_date=datetime(2024, 3, 5, 23, 30)))

        assert event.transaction_date == date(2024, 3, 5)

    def test_blank_batch_number_treated_as_missing(self):
        event = parse_transaction_event(payload(batch_number="   "))

        assert event.batch_number is None


class TestQuantityValidation:

    @pytest.mark.parametrize("quantity", ["0", "-1", "abc", "NaN", "Infinity"])
    def test_bad_quantity(self, quantity):
        with pytest.raises(EventValidationError) as exc_info:
            parse_transaction_event(payload(quantity=quantity))

        assert "quantity" in field_names(exc_info)

    def test_float_rejected(self):
        with pytest.raises(EventValidationError) as exc_info:
            parse_transaction_event(payload(quantity=10.5))

        assert "quantity" in field_names(exc_info)

    def test_negative_unit_price(self):
        with pytest.raises(EventValidationError) as exc_info:
            parse_transaction_event(payload(unit_price="-0.01"))

        assert "unit_price" in field_names(exc_info)

    def test_all_errors_reported_together(self):
        with pytest.raises(EventValidationError) as exc_info:
            parse_transaction_event(
                payload(product_id="", quantity=None, actor_id=None, transaction_date="not-a-date")
            )

        assert {"product_id", "quantity", "actor_id", "transaction_date"} <= field_names(exc_info)


class TestOtherTypes:

    def test_check_out(self):
        event = parse_transaction_event(
            payload(type="check_out", target_warehouse_id=None, source_warehouse_id="W1",
                    unit_price=None)
        )

        assert isinstance(event, CheckOutEvent)
        assert event.unit_price == Decimal("0")
        (leg,) = event.legs()
        assert leg.direction is LegDirection.OUTBOUND
        assert leg.warehouse_id == "W1"

    def test_check_out_needs_source(self):
        with pytest.raises(EventValidationError) as exc_info:
            parse_transaction_event(payload(type="check_out", target_warehouse_id=None))

        assert "source_warehouse_id" in field_names(exc_info)

    def test_transfer_yields_two_legs(self):
        event = parse_transaction_event(
            payload(type="transfer", source_warehouse_id="W1", target_warehouse_id="W2")
        )

        assert isinstance(event, TransferEvent)
        out_leg, in_leg = event.legs()
        assert (out_leg.direction, out_leg.warehouse_id) == (LegDirection.OUTBOUND, "W1")
        assert (in_leg.direction, in_leg.warehouse_id) == (LegDirection.INBOUND, "W2")
        assert out_leg.quantity == in_leg.quantity

    def test_transfer_to_same_warehouse_rejected(self):
        with pytest.raises(EventValidationError) as exc_info:
            parse_transaction_event(
                payload(type="transfer", source_warehouse_id="W1", target_warehouse_id="W1")
            )

        assert "target_warehouse_id" in field_names(exc_info)

    def test_adjustment_increase(self):
        event = parse_transaction_event(payload(type="adjustment", reason_code="COUNT"))

        assert isinstance(event, AdjustmentEvent)
        assert event.is_increase is True
        assert event.legs()[0].direction is LegDirection.INBOUND

    def test_adjustment_decrease(self):
        event = parse_transaction_event(
            payload(type="adjustment", reason_code="DAMAGE", target_warehouse_id=None,
                    source_warehouse_id="W1")
        )

        assert event.is_increase is False
        assert event.legs()[0].direction is LegDirection.OUTBOUND

    def test_adjustment_needs_reason(self):
        with pytest.raises(EventValidationError) as exc_info:
            parse_transaction_event(payload(type="adjustment"))

        assert "reason_code" in field_names(exc_info)

    def test_adjustment_needs_exactly_one_side(self):
        with pytest.raises(EventValidationError):
            parse_transaction_event(
                payload(type="adjustment", reason_code="COUNT", source_warehouse_id="W2")
            )

    def test_unknown_type(self):
        with pytest.raises(EventValidationError) as exc_info:
            parse_transaction_event(payload(type="teleport"))

        assert field_names(exc_info) == {"type"}
        assert exc_info.value.code == "EVENT_VALIDATION_FAILED"


class TestPayloadAndFilter:

    def test_payload_round_trips(self):
        event = parse_transaction_event(payload(batch_number="B1", reference="GRN-2024-00001"))

        assert parse_transaction_event(event_to_payload(event)) == event

    def test_filter_admits_by_warehouse_and_date(self):
        event = parse_transaction_event(
            payload(type="transfer", source_warehouse_id="W1", target_warehouse_id="W2")
        )
        out_leg, in_leg = event.legs()

        scope = LedgerFilter(warehouse_id="W2", as_of=date(2024, 1, 1))
        assert not scope.admits(out_leg)
        assert scope.admits(in_leg)
        assert not LedgerFilter(as_of=date(2023, 12, 31)).admits(in_leg)

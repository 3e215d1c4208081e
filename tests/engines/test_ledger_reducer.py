"""
Tests for LedgerReducer.

Covers:
- Net quantity and earliest received date per batch
- Valuation of outbound legs at the batch's average inbound price
- Transfers (warehouse attribution, system-wide quantity conserved)
- Filters (warehouse, product, as_of)
- Non-materialization of exhausted batches
- Unbatched stock counted in item totals only
- Order independence
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

import pytest

from stock_engines.ledger_reducer import BatchKey, ItemKey, LedgerReducer
from stock_kernel.domain.events import LedgerFilter, parse_transaction_event

ACTOR = "11111111-1111-1111-1111-111111111111"


def _uuid(n: int) -> str:
    return str(UUID(int=n))


def check_in(n, qty, price, day, batch="B1", product="P1", warehouse="W1", expiry=None):
    return parse_transaction_event({
        "id": _uuid(n),
        "type": "check_in",
        "product_id": product,
        "target_warehouse_id": warehouse,
        "quantity": str(qty),
        "unit_price": str(price),
        "batch_number": batch,
        "expiry_date": expiry,
        "transaction_date": day,
        "actor_id": ACTOR,
    })


def check_out(n, qty, day, batch="B1", product="P1", warehouse="W1"):
    return parse_transaction_event({
        "id": _uuid(n),
        "type": "check_out",
        "product_id": product,
        "source_warehouse_id": warehouse,
        "quantity": str(qty),
        "batch_number": batch,
        "transaction_date": day,
        "actor_id": ACTOR,
    })


def transfer(n, qty, day, source, target, price="0", batch="B1", product="P1"):
    return parse_transaction_event({
        "id": _uuid(n),
        "type": "transfer",
        "product_id": product,
        "source_warehouse_id": source,
        "target_warehouse_id": target,
        "quantity": str(qty),
        "unit_price": str(price),
        "batch_number": batch,
        "transaction_date": day,
        "actor_id": ACTOR,
    })


class TestBatchQuantity:
    """Net quantity and received date."""

    def setup_method(self):
        self.reducer = LedgerReducer()

    def test_two_receipts_and_a_checkout(self):
        """100 + 20 - 30 leaves 90, received on the earliest date."""
        events = [
            check_in(1, 100, "2.00", date(2024, 1, 1)),
            check_in(2, 20, "2.00", date(2024, 1, 5)),
            check_out(3, 30, date(2024, 1, 10)),
        ]

        result = self.reducer.reduce(events=events)

        batch = result.batches[BatchKey("B1", "P1", "W1")]
        assert batch.quantity == Decimal("90")
        assert batch.received_date == date(2024, 1, 1)
        assert result.item_quantity("P1", "W1") == Decimal("90")

    def test_received_date_is_earliest_even_when_listed_last(self):
        events = [
            check_in(1, 20, "2.00", date(2024, 1, 5)),
            check_in(2, 100, "2.00", date(2024, 1, 1)),
        ]

        result = self.reducer.reduce(events=events)

        assert result.batches[BatchKey("B1", "P1", "W1")].received_date == date(2024, 1, 1)

    def test_expiry_comes_from_earliest_dated_receipt(self):
        events = [
            check_in(1, 10, "1.00", date(2024, 2, 1), expiry=date(2024, 9, 1)),
            check_in(2, 10, "1.00", date(2024, 1, 1), expiry=date(2024, 6, 1)),
        ]

        result = self.reducer.reduce(events=events)

        assert result.batches[BatchKey("B1", "P1", "W1")].expiry_date == date(2024, 6, 1)

    def test_exhausted_batch_not_materialized(self):
        events = [
            check_in(1, 10, "1.00", date(2024, 1, 1)),
            check_out(2, 10, date(2024, 1, 2)),
        ]

        result = self.reducer.reduce(events=events)

        assert result.batches == {}
        assert result.item_quantity("P1", "W1") == Decimal("0")

    def test_overdrawn_batch_not_materialized(self):
        events = [
            check_in(1, 10, "1.00", date(2024, 1, 1)),
            check_out(2, 15, date(2024, 1, 2)),
        ]

        result = self.reducer.reduce(events=events)

        assert BatchKey("B1", "P1", "W1") not in result.batches
        assert result.item_quantity("P1", "W1") == Decimal("-5")

    def test_empty_stream(self):
        result = self.reducer.reduce(events=[])

        assert result.batches == {}
        assert result.items == {}
        assert result.total_quantity == Decimal("0")

    def test_result_unpacks_as_pair(self):
        batches, items = self.reducer.reduce(events=[check_in(1, 5, "1.00", date(2024, 1, 1))])

        assert list(batches) == [BatchKey("B1", "P1", "W1")]
        assert items == {ItemKey("P1", "W1"): Decimal("5")}


class TestBatchValuation:
    """Outbound legs are valued at the batch's average inbound price."""

    def setup_method(self):
        self.reducer = LedgerReducer()

    def test_single_price(self):
        events = [
            check_in(1, 100, "2.50", date(2024, 1, 1)),
            check_out(2, 40, date(2024, 1, 2)),
        ]

        batch = self.reducer.reduce(events=events).batches[BatchKey("B1", "P1", "W1")]

        assert batch.total_value == Decimal("150")
        assert batch.unit_price == Decimal("2.5")

    def test_mixed_prices_use_average(self):
        """100 @ 1.00 + 100 @ 3.00 averages 2.00; removing 50 leaves 300."""
        events = [
            check_in(1, 100, "1.00", date(2024, 1, 1)),
            check_in(2, 100, "3.00", date(2024, 1, 2)),
            check_out(3, 50, date(2024, 1, 3)),
        ]

        batch = self.reducer.reduce(events=events).batches[BatchKey("B1", "P1", "W1")]

        assert batch.quantity == Decimal("150")
        assert batch.total_value == Decimal("300")
        assert batch.unit_price == Decimal("2")

    def test_checkout_listed_before_checkin_is_still_valued(self):
        events = [
            check_out(1, 30, date(2024, 1, 10)),
            check_in(2, 100, "2.00", date(2024, 1, 1)),
        ]

        batch = self.reducer.reduce(events=events).batches[BatchKey("B1", "P1", "W1")]

        assert batch.quantity == Decimal("70")
        assert batch.total_value == Decimal("140")


class TestTransfers:
    """A transfer moves attribution, never total quantity."""

    def setup_method(self):
        self.reducer = LedgerReducer()

    def test_transfer_moves_quantity_between_warehouses(self):
        events = [
            check_in(1, 100, "2.00", date(2024, 1, 1)),
            transfer(2, 40, date(2024, 1, 5), "W1", "W2", price="2.00"),
        ]

        result = self.reducer.reduce(events=events)

        assert result.batches[BatchKey("B1", "P1", "W1")].quantity == Decimal("60")
        target = result.batches[BatchKey("B1", "P1", "W2")]
        assert target.quantity == Decimal("40")
        assert target.total_value == Decimal("80")
        assert target.received_date == date(2024, 1, 5)
        assert result.total_quantity == Decimal("100")

    def test_warehouse_filter_keeps_only_that_side(self):
        events = [
            check_in(1, 100, "2.00", date(2024, 1, 1)),
            transfer(2, 40, date(2024, 1, 5), "W1", "W2", price="2.00"),
        ]

        result = self.reducer.reduce(events=events, ledger_filter=LedgerFilter(warehouse_id="W2"))

        assert list(result.batches) == [BatchKey("B1", "P1", "W2")]
        assert list(result.items) == [ItemKey("P1", "W2")]

    def test_full_transfer_removes_source_batch(self):
        events = [
            check_in(1, 25, "4.00", date(2024, 1, 1)),
            transfer(2, 25, date(2024, 1, 2), "W1", "W2", price="4.00"),
        ]

        result = self.reducer.reduce(events=events)

        assert BatchKey("B1", "P1", "W1") not in result.batches
        assert result.batches[BatchKey("B1", "P1", "W2")].quantity == Decimal("25")


class TestFiltersAndItems:

    def setup_method(self):
        self.reducer = LedgerReducer()

    def test_as_of_excludes_later_events(self):
        events = [
            check_in(1, 100, "1.00", date(2024, 1, 1)),
            check_out(2, 30, date(2024, 2, 1)),
        ]

        result = self.reducer.reduce(
            events=events, ledger_filter=LedgerFilter(as_of=date(2024, 1, 31))
        )

        assert result.batches[BatchKey("B1", "P1", "W1")].quantity == Decimal("100")

    def test_product_filter(self):
        events = [
            check_in(1, 10, "1.00", date(2024, 1, 1), product="P1"),
            check_in(2, 20, "1.00", date(2024, 1, 1), product="P2"),
        ]

        result = self.reducer.reduce(events=events, ledger_filter=LedgerFilter(product_id="P2"))

        assert list(result.items) == [ItemKey("P2", "W1")]

    def test_unbatched_events_count_toward_items_only(self):
        events = [
            check_in(1, 10, "1.00", date(2024, 1, 1), batch=None),
            check_in(2, 5, "1.00", date(2024, 1, 1), batch="B9"),
        ]

        result = self.reducer.reduce(events=events)

        assert list(result.batches) == [BatchKey("B9", "P1", "W1")]
        assert result.item_quantity("P1", "W1") == Decimal("15")

    def test_batches_are_distinct_per_warehouse_and_product(self):
        events = [
            check_in(1, 10, "1.00", date(2024, 1, 1), warehouse="W1"),
            check_in(2, 10, "1.00", date(2024, 1, 1), warehouse="W2"),
            check_in(3, 10, "1.00", date(2024, 1, 1), product="P2"),
        ]

        result = self.reducer.reduce(events=events)

        assert len(result.batches) == 3


class TestDeterminism:

    @pytest.mark.parametrize("order", [(0, 1, 2, 3), (3, 2, 1, 0), (2, 0, 3, 1)])
    def test_order_independent(self, order):
        events = [
            check_in(1, 100, "1.00", date(2024, 1, 1)),
            check_in(2, 50, "4.00", date(2024, 1, 1)),
            check_out(3, 30, date(2024, 1, 3)),
            transfer(4, 20, date(2024, 1, 4), "W1", "W2", price="2.00"),
        ]
        baseline = LedgerReducer().reduce(events=events)

        shuffled = [events[i] for i in order]
        result = LedgerReducer().reduce(events=shuffled)

        assert result.batches == baseline.batches
        assert result.items == baseline.items

    def test_same_input_same_output(self):
        events = [check_in(1, 7, "3.00", date(2024, 1, 1)), check_out(2, 2, date(2024, 1, 2))]
        reducer = LedgerReducer()

        assert reducer.reduce(events=events) == reducer.reduce(events=events)

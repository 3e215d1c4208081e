"""
Tests for TransactionLedger and InventorySelector.

Covers:
- Validation before storage
- Idempotent re-delivery (same id, same payload)
- Payload mismatch on id reuse
- Append-only enforcement (no UPDATE, no DELETE)
- Snapshot reads scoped by filter
- Movement hashing and derived GRN event ids
- session_scope commit and rollback around ledger writes
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import select

from stock_kernel.db.engine import session_scope
from stock_kernel.domain.events import LedgerFilter
from stock_kernel.exceptions import (
    EventValidationError,
    ImmutabilityViolationError,
    PayloadMismatchError,
)
from stock_kernel.models.transaction import InventoryTransactionModel
from stock_kernel.selectors.inventory_selector import InventorySelector
from stock_kernel.services.ledger_service import AppendStatus, TransactionLedger
from stock_kernel.utils.hashing import grn_check_in_event_id, movement_hash


def check_in_payload(**overrides):
    base = {
        "id": str(uuid4()),
        "type": "check_in",
        "product_id": "P1",
        "target_warehouse_id": "W1",
        "quantity": "10",
        "unit_price": "3.00",
        "batch_number": "B1",
        "transaction_date": date(2024, 1, 1),
        "actor_id": "U1",
    }
    base.update(overrides)
    return base


@pytest.fixture
def ledger(session, deterministic_clock):
    return TransactionLedger(session, clock=deterministic_clock)


class TestAppend:

    def test_append_stores_event(self, session, ledger):
        result = ledger.append(check_in_payload())
        session.commit()

        assert result.status is AppendStatus.APPENDED
        assert result.is_new is True
        assert InventorySelector(session).count() == 1

    def test_duplicate_with_same_payload_is_idempotent(self, session, ledger):
        payload = check_in_payload()
        first = ledger.append(payload)
        session.commit()

        second = ledger.append(payload)

        assert second.status is AppendStatus.DUPLICATE
        assert second.payload_hash == first.payload_hash
        assert second.event.id == first.event.id
        assert InventorySelector(session).count() == 1

    def test_equivalent_decimal_forms_hash_identically(self, session, ledger):
        payload = check_in_payload(quantity="10")
        ledger.append(payload)
        session.commit()

        again = ledger.append({**payload, "quantity": Decimal("10.000")})

        assert again.status is AppendStatus.DUPLICATE

    def test_same_id_different_payload_rejected(self, session, ledger):
        payload = check_in_payload()
        ledger.append(payload)
        session.commit()

        with pytest.raises(PayloadMismatchError) as exc_info:
            ledger.append({**payload, "quantity": "11"})

        assert exc_info.value.event_id == payload["id"]

    def test_invalid_payload_never_stored(self, session, ledger):
        with pytest.raises(EventValidationError):
            ledger.append(check_in_payload(target_warehouse_id=None))
        session.rollback()

        assert InventorySelector(session).count() == 0

    def test_grn_link_recorded(self, session, ledger):
        grn_id = uuid4()
        ledger.append(check_in_payload(), grn_id=grn_id)
        ledger.append(check_in_payload())
        session.commit()

        events = InventorySelector(session).events_for_grn(grn_id)

        assert len(events) == 1


class TestImmutability:

    def test_update_blocked(self, session, ledger):
        ledger.append(check_in_payload())
        session.commit()
        row = session.execute(select(InventoryTransactionModel)).scalar_one()

        row.quantity = Decimal("99")
        with pytest.raises(ImmutabilityViolationError):
            session.flush()
        session.rollback()

    def test_delete_blocked(self, session, ledger):
        ledger.append(check_in_payload())
        session.commit()
        row = session.execute(select(InventoryTransactionModel)).scalar_one()

        session.delete(row)
        with pytest.raises(ImmutabilityViolationError):
            session.flush()
        session.rollback()


class TestSnapshot:

    def test_snapshot_ordered_and_filtered(self, session, ledger):
        ledger.append(check_in_payload(transaction_date=date(2024, 1, 5)))
        ledger.append(check_in_payload(transaction_date=date(2024, 1, 2)))
        ledger.append(check_in_payload(product_id="P2", transaction_date=date(2024, 1, 3)))
        ledger.append(
            check_in_payload(
                type="transfer",
                source_warehouse_id="W1",
                target_warehouse_id="W2",
                unit_price="3.00",
                transaction_date=date(2024, 1, 6),
            )
        )
        session.commit()
        selector = InventorySelector(session)

        everything = selector.event_snapshot()
        dates = [e.transaction_date for e in everything]
        assert dates == sorted(dates)
        assert len(everything) == 4

        assert len(selector.event_snapshot(LedgerFilter(product_id="P2"))) == 1
        assert len(selector.event_snapshot(LedgerFilter(warehouse_id="W2"))) == 1
        assert len(selector.event_snapshot(LedgerFilter(as_of=date(2024, 1, 3)))) == 2


class TestMovementHashing:

    def test_key_order_and_decimal_scale_ignored(self):
        first = {"quantity": Decimal("10"), "product_id": "P1", "transaction_date": date(2024, 1, 1)}
        second = {"transaction_date": date(2024, 1, 1), "product_id": "P1", "quantity": Decimal("10.000")}

        assert movement_hash(first) == movement_hash(second)
        assert len(movement_hash(first)) == 64

    def test_quantity_change_changes_hash(self):
        assert movement_hash({"quantity": Decimal("10")}) != movement_hash({"quantity": Decimal("11")})

    def test_unhashable_field_rejected(self):
        with pytest.raises(TypeError):
            movement_hash({"quantity": object()})

    def test_grn_event_id_derived(self):
        grn_id, item_id = uuid4(), uuid4()

        assert grn_check_in_event_id(grn_id, item_id) == grn_check_in_event_id(str(grn_id), str(item_id))
        assert grn_check_in_event_id(grn_id, item_id) != grn_check_in_event_id(grn_id, uuid4())


class TestSessionScope:

    def test_commits_on_exit(self, session, deterministic_clock):
        with session_scope() as scoped:
            TransactionLedger(scoped, clock=deterministic_clock).append(check_in_payload())

        assert InventorySelector(session).count() == 1

    def test_rolls_back_on_error(self, session, deterministic_clock):
        with pytest.raises(EventValidationError):
            with session_scope() as scoped:
                TransactionLedger(scoped, clock=deterministic_clock).append(check_in_payload())
                TransactionLedger(scoped, clock=deterministic_clock).append(
                    check_in_payload(quantity="-1")
                )

        assert InventorySelector(session).count() == 0

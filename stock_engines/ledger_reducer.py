"""
stock_engines.ledger_reducer -- Fold movement events into current stock.

Responsibility:
    Derive per-batch state and per-item quantities from the append-only
    movement ledger.  Nothing here is stored; every call recomputes from
    the events it is given.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import stock_kernel.domain and stock_kernel.logging_config.

Invariants enforced:
    - Net quantity: for every batch key,
      quantity == sum(inbound legs) - sum(outbound legs).
    - Order independence: the result does not depend on the order events
      are supplied in.  received_date is the minimum inbound date, ties
      broken by event id; outbound legs are valued at the key's average
      inbound unit price, which is itself order-free.
    - Batch keys with quantity <= 0 are not materialized.  The events stay
      in the ledger; the key is only filtered from the view.
    - Events without a batch number never produce a batch; they still count
      towards item totals.

Algorithm:
    1. Expand every event into legs (transfer = outbound at source plus
       inbound at target with the same quantity).
    2. Apply the filter to legs, so a warehouse scope keeps only that
       warehouse's side of a transfer.
    3. Accumulate inbound legs per key (quantity, value, earliest receipt,
       expiry of the earliest dated inbound).
    4. Subtract outbound legs per key, valued at inbound value / inbound qty.
    5. Drop batch keys whose net quantity <= 0.

Usage:
    from stock_engines.ledger_reducer import LedgerReducer

    result = LedgerReducer().reduce(events=events, ledger_filter=LedgerFilter(warehouse_id="W1"))
    for key, batch in result.batches.items():
        ...
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_EVEN, Decimal

from stock_engines.tracer import traced_engine
from stock_kernel.domain.events import (
    LedgerFilter,
    LegDirection,
    MovementLeg,
    TransactionEvent,
)
from stock_kernel.logging_config import get_logger

logger = get_logger("engines.ledger_reducer")

ZERO = Decimal("0")
VALUE_QUANTUM = Decimal("0.000000001")


@dataclass(frozen=True, order=True)
class BatchKey:
    batch_number: str
    product_id: str
    warehouse_id: str


@dataclass(frozen=True, order=True)
class ItemKey:
    product_id: str
    warehouse_id: str


@dataclass(frozen=True)
class BatchState:
    """Derived state of one batch in one warehouse."""

    batch_number: str
    product_id: str
    warehouse_id: str
    quantity: Decimal
    total_value: Decimal
    received_date: date
    expiry_date: date | None

    @property
    def key(self) -> BatchKey:
        return BatchKey(self.batch_number, self.product_id, self.warehouse_id)

    @property
    def unit_price(self) -> Decimal:
        if self.quantity == ZERO:
            return ZERO
        return (self.total_value / self.quantity).quantize(VALUE_QUANTUM, ROUND_HALF_EVEN)


@dataclass(frozen=True)
class ReductionResult:
    """Batches keyed by (batch, product, warehouse); item quantities by (product, warehouse)."""

    batches: dict[BatchKey, BatchState]
    items: dict[ItemKey, Decimal]

    def __iter__(self):
        return iter((self.batches, self.items))

    @property
    def total_quantity(self) -> Decimal:
        return sum((b.quantity for b in self.batches.values()), ZERO)

    def item_quantity(self, product_id: str, warehouse_id: str) -> Decimal:
        return self.items.get(ItemKey(product_id, warehouse_id), ZERO)


class _BatchAccumulator:
    __slots__ = ("in_qty", "in_value", "out_qty", "first_receipt", "expiry_from")

    def __init__(self) -> None:
        self.in_qty = ZERO
        self.in_value = ZERO
        self.out_qty = ZERO
        self.first_receipt: tuple[date, str] | None = None
        self.expiry_from: tuple[tuple[date, str], date] | None = None

    def add_inbound(self, leg: MovementLeg) -> None:
        self.in_qty += leg.quantity
        self.in_value += leg.quantity * leg.unit_price
        if self.first_receipt is None or leg.sort_key < self.first_receipt:
            self.first_receipt = leg.sort_key
        if leg.expiry_date is not None:
            if self.expiry_from is None or leg.sort_key < self.expiry_from[0]:
                self.expiry_from = (leg.sort_key, leg.expiry_date)

    def net_quantity(self) -> Decimal:
        return self.in_qty - self.out_qty

    def net_value(self) -> Decimal:
        if self.in_qty == ZERO:
            return ZERO
        # in_value * net / in_qty: multiply first so whole-number cases stay exact
        value = self.in_value * self.net_quantity() / self.in_qty
        return value.quantize(VALUE_QUANTUM, ROUND_HALF_EVEN)


def expand_legs(
    events: Iterable[TransactionEvent],
    ledger_filter: LedgerFilter | None = None,
) -> list[MovementLeg]:
    """All legs of the given events that fall inside the filter."""
    f = ledger_filter or LedgerFilter()
    return [leg for event in events for leg in event.legs() if f.admits(leg)]


class LedgerReducer:
    """
    Folds movement events into BatchState and item quantities.

    Contract:
        Assumes a well-formed stream (events built by
        parse_transaction_event).  Pure: no clock, no I/O, no state kept
        between calls.
    """

    @traced_engine("ledger_reducer", "1.0", fingerprint_fields=("events", "ledger_filter"))
    def reduce(
        self,
        *,
        events: Iterable[TransactionEvent],
        ledger_filter: LedgerFilter | None = None,
    ) -> ReductionResult:
        legs = expand_legs(events, ledger_filter)

        batch_acc: dict[BatchKey, _BatchAccumulator] = {}
        items: dict[ItemKey, Decimal] = {}

        inbound = [leg for leg in legs if leg.direction is LegDirection.INBOUND]
        outbound = [leg for leg in legs if leg.direction is LegDirection.OUTBOUND]

        for leg in inbound:
            item_key = ItemKey(leg.product_id, leg.warehouse_id)
            items[item_key] = items.get(item_key, ZERO) + leg.quantity
            if leg.batch_number is None:
                continue
            key = BatchKey(leg.batch_number, leg.product_id, leg.warehouse_id)
            batch_acc.setdefault(key, _BatchAccumulator()).add_inbound(leg)

        for leg in outbound:
            item_key = ItemKey(leg.product_id, leg.warehouse_id)
            items[item_key] = items.get(item_key, ZERO) - leg.quantity
            if leg.batch_number is None:
                continue
            key = BatchKey(leg.batch_number, leg.product_id, leg.warehouse_id)
            batch_acc.setdefault(key, _BatchAccumulator()).out_qty += leg.quantity

        batches: dict[BatchKey, BatchState] = {}
        dropped = 0
        for key in sorted(batch_acc):
            acc = batch_acc[key]
            quantity = acc.net_quantity()
            if quantity <= ZERO or acc.first_receipt is None:
                dropped += 1
                continue
            batches[key] = BatchState(
                batch_number=key.batch_number,
                product_id=key.product_id,
                warehouse_id=key.warehouse_id,
                quantity=quantity,
                total_value=acc.net_value(),
                received_date=acc.first_receipt[0],
                expiry_date=acc.expiry_from[1] if acc.expiry_from else None,
            )

        logger.debug(
            "ledger_reduced",
            extra={
                "leg_count": len(legs),
                "batch_count": len(batches),
                "batches_not_materialized": dropped,
                "item_count": len(items),
            },
        )
        return ReductionResult(
            batches=batches,
            items=dict(sorted(items.items())),
        )

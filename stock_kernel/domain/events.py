"""
Tagged movement events for the inventory ledger.

Responsibility:
    Turns a loose movement payload (as produced by warehouse forms) into one
    of four frozen variants, each with its own required-field set.  Anything
    that fails here never reaches the ledger, so the reducer can assume a
    well-formed stream.

Architecture position:
    Kernel > Domain -- pure value objects and a pure parser.  ZERO I/O.

Variant rules:
    check_in     target warehouse only; unit_price required
    check_out    source warehouse only
    transfer     source and target, and they differ
    adjustment   reason_code plus exactly one of target (increase) or
                 source (decrease)

Every variant exposes ``legs()``: one inbound or outbound leg per warehouse
it touches.  A transfer yields one of each with the same quantity, so it
never changes system-wide quantity.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Union
from uuid import UUID

from stock_kernel.exceptions import EventValidationError
from stock_kernel.logging_config import get_logger

logger = get_logger("domain.events")

ZERO = Decimal("0")


class TransactionType(str, Enum):
    CHECK_IN = "check_in"
    CHECK_OUT = "check_out"
    TRANSFER = "transfer"
    ADJUSTMENT = "adjustment"


class LegDirection(str, Enum):
    INBOUND = "inbound"
    OUTBOUND = "outbound"


@dataclass(frozen=True, slots=True)
class MovementLeg:
    """One warehouse-side effect of a movement event."""

    event_id: UUID
    direction: LegDirection
    product_id: str
    warehouse_id: str
    quantity: Decimal
    unit_price: Decimal
    batch_number: str | None
    expiry_date: date | None
    transaction_date: date

    @property
    def sort_key(self) -> tuple[date, str]:
        """Deterministic tie-break: earliest date, then event id."""
        return (self.transaction_date, str(self.event_id))


@dataclass(frozen=True)
class CheckInEvent:
    id: UUID
    product_id: str
    target_warehouse_id: str
    quantity: Decimal
    unit_price: Decimal
    transaction_date: date
    actor_id: str
    batch_number: str | None = None
    expiry_date: date | None = None
    reference: str | None = None

    type = TransactionType.CHECK_IN

    def legs(self) -> tuple[MovementLeg, ...]:
        return (
            _leg(self, LegDirection.INBOUND, self.target_warehouse_id, self.unit_price),
        )


@dataclass(frozen=True)
class CheckOutEvent:
    id: UUID
    product_id: str
    source_warehouse_id: str
    quantity: Decimal
    transaction_date: date
    actor_id: str
    unit_price: Decimal = ZERO
    batch_number: str | None = None
    expiry_date: date | None = None
    reference: str | None = None

    type = TransactionType.CHECK_OUT

    def legs(self) -> tuple[MovementLeg, ...]:
        return (
            _leg(self, LegDirection.OUTBOUND, self.source_warehouse_id, self.unit_price),
        )


@dataclass(frozen=True)
class TransferEvent:
    """Move stock between warehouses; valued at ``unit_price`` on arrival."""

    id: UUID
    product_id: str
    source_warehouse_id: str
    target_warehouse_id: str
    quantity: Decimal
    transaction_date: date
    actor_id: str
    unit_price: Decimal = ZERO
    batch_number: str | None = None
    expiry_date: date | None = None
    reference: str | None = None

    type = TransactionType.TRANSFER

    def legs(self) -> tuple[MovementLeg, ...]:
        return (
            _leg(self, LegDirection.OUTBOUND, self.source_warehouse_id, self.unit_price),
            _leg(self, LegDirection.INBOUND, self.target_warehouse_id, self.unit_price),
        )


@dataclass(frozen=True)
class AdjustmentEvent:
    """Stock-count correction.  Target means increase, source means decrease."""

    id: UUID
    product_id: str
    quantity: Decimal
    transaction_date: date
    actor_id: str
    reason_code: str
    target_warehouse_id: str | None = None
    source_warehouse_id: str | None = None
    unit_price: Decimal = ZERO
    batch_number: str | None = None
    expiry_date: date | None = None
    reference: str | None = None

    type = TransactionType.ADJUSTMENT

    @property
    def is_increase(self) -> bool:
        return self.target_warehouse_id is not None

    def legs(self) -> tuple[MovementLeg, ...]:
        if self.is_increase:
            return (
                _leg(self, LegDirection.INBOUND, self.target_warehouse_id, self.unit_price),
            )
        return (
            _leg(self, LegDirection.OUTBOUND, self.source_warehouse_id, self.unit_price),
        )


TransactionEvent = Union[CheckInEvent, CheckOutEvent, TransferEvent, AdjustmentEvent]


def _leg(event: Any, direction: LegDirection, warehouse_id: str, unit_price: Decimal) -> MovementLeg:
    return MovementLeg(
        event_id=event.id,
        direction=direction,
        product_id=event.product_id,
        warehouse_id=warehouse_id,
        quantity=event.quantity,
        unit_price=unit_price,
        batch_number=event.batch_number,
        expiry_date=event.expiry_date,
        transaction_date=event.transaction_date,
    )


@dataclass(frozen=True)
class LedgerFilter:
    """Scope for a ledger read or reduction.  ``None`` means unrestricted."""

    product_id: str | None = None
    warehouse_id: str | None = None
    batch_number: str | None = None
    as_of: date | None = None

    def admits(self, leg: MovementLeg) -> bool:
        if self.product_id is not None and leg.product_id != self.product_id:
            return False
        if self.warehouse_id is not None and leg.warehouse_id != self.warehouse_id:
            return False
        if self.batch_number is not None and leg.batch_number != self.batch_number:
            return False
        if self.as_of is not None and leg.transaction_date > self.as_of:
            return False
        return True


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------


def event_to_payload(event: TransactionEvent) -> dict[str, Any]:
    """
    Dict form of an event; the ledger hashes this.

    Values keep their native types (Decimal, date) so that hashing can
    normalize them: 10 and 10.000000000 must hash identically.
    """
    return {
        "id": str(event.id),
        "type": event.type.value,
        "product_id": event.product_id,
        "source_warehouse_id": getattr(event, "source_warehouse_id", None),
        "target_warehouse_id": getattr(event, "target_warehouse_id", None),
        "quantity": event.quantity,
        "unit_price": event.unit_price,
        "batch_number": event.batch_number,
        "expiry_date": event.expiry_date,
        "transaction_date": event.transaction_date,
        "reference": event.reference,
        "actor_id": event.actor_id,
        "reason_code": getattr(event, "reason_code", None),
    }


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _text(payload: dict[str, Any], name: str) -> str | None:
    value = payload.get(name)
    if _blank(value):
        return None
    return str(value).strip()


def _decimal(payload: dict[str, Any], name: str, errors: list[dict]) -> Decimal | None:
    value = payload.get(name)
    if value is None or value == "":
        return None
    if isinstance(value, float):
        errors.append({"field": name, "message": "must be a Decimal or string, not float"})
        return None
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError):
        errors.append({"field": name, "message": f"not a number: {value!r}"})
        return None
    if not result.is_finite():
        errors.append({"field": name, "message": "must be finite"})
        return None
    return result


def _date(payload: dict[str, Any], name: str, errors: list[dict]) -> date | None:
    value = payload.get(name)
    if _blank(value):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        errors.append({"field": name, "message": f"not an ISO date: {value!r}"})
        return None


def _require(value: Any, name: str, errors: list[dict]) -> None:
    if value is None and not any(e["field"] == name for e in errors):
        errors.append({"field": name, "message": "is required"})


def _forbid(value: Any, name: str, type_: TransactionType, errors: list[dict]) -> None:
    if value is not None:
        errors.append({"field": name, "message": f"not allowed for {type_.value}"})


def parse_transaction_event(payload: dict[str, Any]) -> TransactionEvent:
    """
    Validate a movement payload and build its tagged variant.

    Raises:
        EventValidationError: with one entry per offending field.
    """
    errors: list[dict] = []

    raw_type = payload.get("type")
    try:
        type_ = TransactionType(raw_type)
    except ValueError:
        errors.append({"field": "type", "message": f"unknown transaction type: {raw_type!r}"})
        raise EventValidationError(str(raw_type) if raw_type else None, errors)

    event_id: UUID | None = None
    raw_id = payload.get("id")
    if isinstance(raw_id, UUID):
        event_id = raw_id
    elif not _blank(raw_id):
        try:
            event_id = UUID(str(raw_id))
        except ValueError:
            errors.append({"field": "id", "message": f"not a UUID: {raw_id!r}"})

    product_id = _text(payload, "product_id")
    source = _text(payload, "source_warehouse_id")
    target = _text(payload, "target_warehouse_id")
    actor_id = _text(payload, "actor_id")
    batch_number = _text(payload, "batch_number")
    reference = _text(payload, "reference")
    reason_code = _text(payload, "reason_code")
    quantity = _decimal(payload, "quantity", errors)
    unit_price = _decimal(payload, "unit_price", errors)
    transaction_date = _date(payload, "transaction_date", errors)
    expiry_date = _date(payload, "expiry_date", errors)

    _require(event_id, "id", errors)
    _require(product_id, "product_id", errors)
    _require(actor_id, "actor_id", errors)
    _require(quantity, "quantity", errors)
    _require(transaction_date, "transaction_date", errors)

    if quantity is not None and quantity <= ZERO:
        errors.append({"field": "quantity", "message": "must be greater than zero"})
    if unit_price is not None and unit_price < ZERO:
        errors.append({"field": "unit_price", "message": "must not be negative"})

    if type_ is TransactionType.CHECK_IN:
        _require(target, "target_warehouse_id", errors)
        _forbid(source, "source_warehouse_id", type_, errors)
        _require(unit_price, "unit_price", errors)
    elif type_ is TransactionType.CHECK_OUT:
        _require(source, "source_warehouse_id", errors)
        _forbid(target, "target_warehouse_id", type_, errors)
    elif type_ is TransactionType.TRANSFER:
        _require(source, "source_warehouse_id", errors)
        _require(target, "target_warehouse_id", errors)
        if source is not None and source == target:
            errors.append(
                {"field": "target_warehouse_id", "message": "must differ from source_warehouse_id"}
            )
    else:
        _require(reason_code, "reason_code", errors)
        if (source is None) == (target is None):
            errors.append(
                {
                    "field": "target_warehouse_id",
                    "message": "adjustment needs exactly one of source_warehouse_id or target_warehouse_id",
                }
            )

    if errors:
        logger.warning(
            "event_validation_failed",
            extra={
                "event_type": type_.value,
                "error_count": len(errors),
                "fields": [e["field"] for e in errors],
            },
        )
        raise EventValidationError(type_.value, errors)

    common = dict(
        id=event_id,
        product_id=product_id,
        quantity=quantity,
        transaction_date=transaction_date,
        actor_id=actor_id,
        unit_price=unit_price if unit_price is not None else ZERO,
        batch_number=batch_number,
        expiry_date=expiry_date,
        reference=reference,
    )
    if type_ is TransactionType.CHECK_IN:
        return CheckInEvent(target_warehouse_id=target, **common)
    if type_ is TransactionType.CHECK_OUT:
        return CheckOutEvent(source_warehouse_id=source, **common)
    if type_ is TransactionType.TRANSFER:
        return TransferEvent(source_warehouse_id=source, target_warehouse_id=target, **common)
    return AdjustmentEvent(
        reason_code=reason_code,
        target_warehouse_id=target,
        source_warehouse_id=source,
        **common,
    )

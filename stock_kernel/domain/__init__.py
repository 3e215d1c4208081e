"""Pure domain types: clock, workflow state machines, tagged movement events."""

from stock_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from stock_kernel.domain.events import (
    AdjustmentEvent,
    CheckInEvent,
    CheckOutEvent,
    LedgerFilter,
    LegDirection,
    MovementLeg,
    TransactionEvent,
    TransactionType,
    TransferEvent,
    event_to_payload,
    parse_transaction_event,
)
from stock_kernel.domain.workflow import Guard, Transition, Workflow

__all__ = [
    "AdjustmentEvent",
    "CheckInEvent",
    "CheckOutEvent",
    "Clock",
    "DeterministicClock",
    "Guard",
    "LedgerFilter",
    "LegDirection",
    "MovementLeg",
    "SystemClock",
    "TransactionEvent",
    "TransactionType",
    "TransferEvent",
    "Transition",
    "Workflow",
    "event_to_payload",
    "parse_transaction_event",
]

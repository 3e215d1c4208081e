"""
TransactionLedger -- append-only store of inventory movement events.

Responsibility:
    Persists validated movement events.  Appends are individually atomic
    and need no serialization relative to each other.  Re-delivering an
    event is safe: the same id with the same payload returns the stored
    event, the same id with a different payload is rejected.

Architecture position:
    Kernel > Services -- imperative shell.  Flushes only; the caller owns
    the transaction.

Invariants enforced:
    - Append-only ledger: rows are never updated or deleted (ORM listeners
      back this up).
    - Well-formed events: every payload passes parse_transaction_event()
      before it is stored.

Failure modes:
    - EventValidationError: malformed payload.
    - PayloadMismatchError: event id reused with a different payload.
    - EventAlreadyExistsError: a concurrent writer inserted the same id
      between our existence check and our flush.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from stock_kernel.domain.clock import Clock, SystemClock
from stock_kernel.domain.events import (
    TransactionEvent,
    event_to_payload,
    parse_transaction_event,
)
from stock_kernel.exceptions import EventAlreadyExistsError, PayloadMismatchError
from stock_kernel.logging_config import get_logger
from stock_kernel.models.transaction import InventoryTransactionModel
from stock_kernel.utils.hashing import movement_hash

logger = get_logger("services.ledger")


class AppendStatus(str, Enum):
    APPENDED = "appended"
    DUPLICATE = "duplicate"  # Idempotent success


@dataclass(frozen=True)
class AppendResult:
    status: AppendStatus
    event: TransactionEvent
    payload_hash: str

    @property
    def is_new(self) -> bool:
        return self.status is AppendStatus.APPENDED


class TransactionLedger:
    """
    Append-only movement ledger.

    Contract:
        ``append`` accepts either a raw payload dict (validated here) or an
        already-parsed event, and returns an ``AppendResult``.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self.session = session
        self._clock = clock or SystemClock()

    def append(
        self,
        event: TransactionEvent | dict[str, Any],
        grn_id: UUID | None = None,
    ) -> AppendResult:
        if isinstance(event, dict):
            event = parse_transaction_event(event)

        payload_hash = movement_hash(event_to_payload(event))

        existing = self._get_existing(event.id)
        if existing is not None:
            if existing.payload_hash != payload_hash:
                logger.warning(
                    "ledger_append_rejected_hash_mismatch",
                    extra={
                        "event_id": str(event.id),
                        "expected_hash": existing.payload_hash,
                        "received_hash": payload_hash,
                    },
                )
                raise PayloadMismatchError(
                    str(event.id), existing.payload_hash, payload_hash
                )
            logger.info(
                "ledger_append_duplicate",
                extra={"event_id": str(event.id), "transaction_type": event.type.value},
            )
            return AppendResult(
                status=AppendStatus.DUPLICATE,
                event=parse_transaction_event(existing.to_payload()),
                payload_hash=existing.payload_hash,
            )

        row = InventoryTransactionModel(
            event_id=event.id,
            transaction_type=event.type.value,
            product_id=event.product_id,
            source_warehouse_id=getattr(event, "source_warehouse_id", None),
            target_warehouse_id=getattr(event, "target_warehouse_id", None),
            quantity=event.quantity,
            unit_price=event.unit_price,
            batch_number=event.batch_number,
            expiry_date=event.expiry_date,
            transaction_date=event.transaction_date,
            reference=event.reference,
            reason_code=getattr(event, "reason_code", None),
            actor_id=event.actor_id,
            grn_id=grn_id,
            payload_hash=payload_hash,
            recorded_at=self._clock.now(),
        )
        self.session.add(row)
        try:
            self.session.flush()
        except IntegrityError:
            # The caller owns the transaction and must roll it back.
            logger.warning(
                "concurrent_ledger_insert_conflict",
                extra={"event_id": str(event.id)},
            )
            raise EventAlreadyExistsError(str(event.id))

        logger.info(
            "ledger_event_appended",
            extra={
                "event_id": str(event.id),
                "transaction_type": event.type.value,
                "product_id": event.product_id,
                "quantity": str(event.quantity),
                "batch_number": event.batch_number,
                "payload_hash": payload_hash,
            },
        )
        return AppendResult(
            status=AppendStatus.APPENDED,
            event=event,
            payload_hash=payload_hash,
        )

    def _get_existing(self, event_id: UUID) -> InventoryTransactionModel | None:
        return self.session.execute(
            select(InventoryTransactionModel).where(
                InventoryTransactionModel.event_id == event_id
            )
        ).scalar_one_or_none()

"""
Module: stock_kernel.models.transaction
Responsibility: ORM persistence for inventory movement events -- the only
    source of truth for stock quantities.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Ledger immutability (ORM before_update/before_delete listeners in
      db/immutability.py).
    - event_id uniqueness (UNIQUE constraint via uq_inventory_txn_event_id).
    - Payload hash stored at append time; same event_id with a different
      hash is rejected by TransactionLedger.

Failure modes:
    - IntegrityError on duplicate event_id.
    - ImmutabilityViolationError on any UPDATE or DELETE.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import Date, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from stock_kernel.db.base import Base, UUIDString


class InventoryTransactionModel(Base):
    """
    One movement event in the append-only inventory ledger.

    Contract:
        Once INSERTed the row never changes.  Quantities are always positive;
        direction comes from transaction_type and which warehouse columns are
        set.
    """

    __tablename__ = "inventory_transactions"
    __immutable_entity__ = "InventoryTransaction"
    __immutable_hint__ = "record an adjustment instead"

    __table_args__ = (
        UniqueConstraint("event_id", name="uq_inventory_txn_event_id"),
        Index("idx_inventory_txn_product_date", "product_id", "transaction_date"),
        Index("idx_inventory_txn_batch", "batch_number", "product_id"),
        Index("idx_inventory_txn_source", "source_warehouse_id"),
        Index("idx_inventory_txn_target", "target_warehouse_id"),
        Index("idx_inventory_txn_grn", "grn_id"),
    )

    event_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    transaction_type: Mapped[str] = mapped_column(String(20), nullable=False)

    product_id: Mapped[str] = mapped_column(String(100), nullable=False)

    source_warehouse_id: Mapped[str | None] = mapped_column(String(100), nullable=True)

    target_warehouse_id: Mapped[str | None] = mapped_column(String(100), nullable=True)

    quantity: Mapped[Decimal] = mapped_column(nullable=False)

    unit_price: Mapped[Decimal] = mapped_column(nullable=False)

    batch_number: Mapped[str | None] = mapped_column(String(100), nullable=True)

    expiry_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    transaction_date: Mapped[date] = mapped_column(Date, nullable=False)

    reference: Mapped[str | None] = mapped_column(String(255), nullable=True)

    reason_code: Mapped[str | None] = mapped_column(String(50), nullable=True)

    actor_id: Mapped[str] = mapped_column(String(100), nullable=False)

    # GRN that produced this check-in, when approval produced it
    grn_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    payload_hash: Mapped[str] = mapped_column(String(64), nullable=False)

    recorded_at: Mapped[datetime] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return f"<InventoryTransaction {self.transaction_type}:{self.event_id}>"

    def to_payload(self) -> dict[str, Any]:
        return {
            "id": str(self.event_id),
            "type": self.transaction_type,
            "product_id": self.product_id,
            "source_warehouse_id": self.source_warehouse_id,
            "target_warehouse_id": self.target_warehouse_id,
            "quantity": self.quantity,
            "unit_price": self.unit_price,
            "batch_number": self.batch_number,
            "expiry_date": self.expiry_date,
            "transaction_date": self.transaction_date,
            "reference": self.reference,
            "actor_id": self.actor_id,
            "reason_code": self.reason_code,
        }

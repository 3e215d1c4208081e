"""
Module: stock_kernel.selectors.inventory_selector
Responsibility: Read the inventory ledger as a consistent event snapshot.
Architecture position: Kernel > Selectors.  Read-only.

Every read is a single SELECT, so a reduction over the result never mixes
events from before and after a concurrent append.  The filter is pushed
into SQL where that is exact (product, batch, as_of); the warehouse scope
selects any event touching the warehouse and the reducer drops the legs
that do not.
"""

from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from stock_kernel.domain.events import (
    LedgerFilter,
    TransactionEvent,
    parse_transaction_event,
)
from stock_kernel.logging_config import get_logger
from stock_kernel.models.transaction import InventoryTransactionModel

logger = get_logger("selectors.inventory")


class InventorySelector:
    """Read-only access to ledger events.  The caller owns the session."""

    def __init__(self, session: Session):
        self.session = session

    def event_snapshot(self, ledger_filter: LedgerFilter | None = None) -> tuple[TransactionEvent, ...]:
        """
        Return every event in scope, ordered by (transaction_date, event_id).

        Args:
            ledger_filter: Optional scope.  ``None`` reads the whole ledger.
        """
        f = ledger_filter or LedgerFilter()
        m = InventoryTransactionModel
        stmt = select(m)
        if f.product_id is not None:
            stmt = stmt.where(m.product_id == f.product_id)
        if f.batch_number is not None:
            stmt = stmt.where(m.batch_number == f.batch_number)
        if f.as_of is not None:
            stmt = stmt.where(m.transaction_date <= f.as_of)
        if f.warehouse_id is not None:
            stmt = stmt.where(
                or_(
                    m.source_warehouse_id == f.warehouse_id,
                    m.target_warehouse_id == f.warehouse_id,
                )
            )
        stmt = stmt.order_by(m.transaction_date, m.event_id)

        rows = self.session.execute(stmt).scalars().all()
        events = tuple(parse_transaction_event(row.to_payload()) for row in rows)
        logger.debug(
            "ledger_snapshot_read",
            extra={"event_count": len(events)},
        )
        return events

    def events_for_grn(self, grn_id: UUID) -> tuple[TransactionEvent, ...]:
        """Check-in events produced by approving the given GRN."""
        m = InventoryTransactionModel
        rows = self.session.execute(
            select(m).where(m.grn_id == grn_id).order_by(m.event_id)
        ).scalars().all()
        return tuple(parse_transaction_event(row.to_payload()) for row in rows)

    def count(self) -> int:
        return self.session.execute(
            select(func.count()).select_from(InventoryTransactionModel)
        ).scalar_one()

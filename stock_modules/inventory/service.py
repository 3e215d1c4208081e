"""
Inventory Module Service (``stock_modules.inventory.service``).

Responsibility
--------------
Records warehouse movements (check-in, check-out, transfer, adjustment)
into the kernel ``TransactionLedger`` and answers stock queries by
folding a ledger snapshot through ``LedgerReducer`` and classifying
batches with ``ExpiryClassifier``.

Architecture position
---------------------
**Modules layer** -- thin ERP glue.  Composes the kernel ledger and
selector with the pure engines.  Owns the transaction boundary.

Invariants enforced
-------------------
* Each public write method commits on success and rolls back on any
  exception.
* Stock is never stored: every query reads one snapshot of the relevant
  events and reduces it.
* Movement payloads are validated by ``parse_transaction_event`` before
  they reach the ledger.

Failure modes
-------------
* ``EventValidationError`` -- malformed movement; nothing is written.
* ``PayloadMismatchError`` -- event id reused with a different payload.

Usage::

    service = InventoryService(session, clock=clock)
    service.check_in(
        product_id="P1", warehouse_id="W1", quantity=Decimal("100"),
        unit_price=Decimal("2.50"), actor_id=actor_id, batch_number="B1",
    )
    listing = service.list_batches(warehouse_id="W1")
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.orm import Session

from stock_engines.expiry import ExpiryClassifier, ExpiryStatus
from stock_engines.ledger_reducer import BatchKey, BatchState, LedgerReducer, ReductionResult
from stock_engines.stock_status import StockStatus, stock_status
from stock_kernel.domain.clock import Clock, SystemClock
from stock_kernel.domain.events import LedgerFilter, TransactionType
from stock_kernel.logging_config import get_logger
from stock_kernel.selectors.inventory_selector import InventorySelector
from stock_kernel.services.ledger_service import AppendResult, TransactionLedger
from stock_modules.inventory.config import InventoryConfig
from stock_modules.inventory.models import (
    BatchListing,
    BatchSummary,
    BatchView,
    InventoryItem,
    Product,
    StockLevels,
)
from stock_modules.inventory.orm import InventoryItemModel, ProductModel

logger = get_logger("modules.inventory.service")

ZERO = Decimal("0")


def _matches(term: str | None, *values: str | None) -> bool:
    if not term:
        return True
    needle = term.strip().lower()
    return any(v is not None and needle in v.lower() for v in values)


class InventoryService:
    """
    Orchestrates inventory movements and stock queries.

    Guarantees
    ----------
    * Session is committed after each successful movement; rolled back
      otherwise.
    * Clock is injectable so expiry tiers and default transaction dates are
      deterministic in tests.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: InventoryConfig | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._config = config or InventoryConfig.with_defaults()

        self._ledger = TransactionLedger(session, clock=self._clock)
        self._selector = InventorySelector(session)

        self._reducer = LedgerReducer()
        self._expiry = ExpiryClassifier(self._config.expiring_soon_days)

    # =========================================================================
    # Catalog
    # =========================================================================

    def register_product(
        self,
        product_id: str,
        name: str,
        actor_id: UUID,
        sku: str | None = None,
        category: str | None = None,
        unit: str = "EA",
    ) -> Product:
        """Add a product to the catalog, or update its descriptive fields."""
        try:
            model = self._session.execute(
                select(ProductModel).where(ProductModel.product_id == product_id)
            ).scalar_one_or_none()
            if model is None:
                model = ProductModel(
                    product_id=product_id,
                    name=name,
                    sku=sku,
                    category=category,
                    unit=unit,
                    created_by_id=actor_id,
                )
                self._session.add(model)
            else:
                model.name = name
                model.sku = sku
                model.category = category
                model.unit = unit
                model.record_change(actor_id)
            self._session.flush()
            dto = model.to_dto()
            self._session.commit()
            logger.info(
                "inventory_product_registered",
                extra={"product_id": product_id, "category": category},
            )
            return dto
        except Exception:
            self._session.rollback()
            raise

    def set_stock_levels(
        self,
        product_id: str,
        warehouse_id: str,
        actor_id: UUID,
        minimum_level: Decimal | None = None,
        reorder_level: Decimal | None = None,
    ) -> StockLevels:
        """Configure minimum and reorder levels for a product in a warehouse."""
        try:
            for name, value in (("minimum_level", minimum_level), ("reorder_level", reorder_level)):
                if value is not None and value < ZERO:
                    raise ValueError(f"{name} cannot be negative")
            model = self._session.execute(
                select(InventoryItemModel).where(
                    InventoryItemModel.product_id == product_id,
                    InventoryItemModel.warehouse_id == warehouse_id,
                )
            ).scalar_one_or_none()
            if model is None:
                model = InventoryItemModel(
                    product_id=product_id,
                    warehouse_id=warehouse_id,
                    minimum_level=minimum_level,
                    reorder_level=reorder_level,
                    created_by_id=actor_id,
                )
                self._session.add(model)
            else:
                model.minimum_level = minimum_level
                model.reorder_level = reorder_level
                model.record_change(actor_id)
            self._session.flush()
            dto = model.to_dto()
            self._session.commit()
            return dto
        except Exception:
            self._session.rollback()
            raise

    # =========================================================================
    # Movements
    # =========================================================================

    def record_movement(self, payload: dict[str, Any]) -> AppendResult:
        """
        Append a raw movement payload (as submitted by a warehouse form).

        A missing ``id`` gets a fresh one; a missing ``transaction_date``
        defaults to today.
        """
        payload = dict(payload)
        if not payload.get("id"):
            payload["id"] = str(uuid4())
        if not payload.get("transaction_date"):
            payload["transaction_date"] = self._clock.today()

        try:
            logger.info(
                "inventory_movement_started",
                extra={
                    "transaction_type": payload.get("type"),
                    "product_id": payload.get("product_id"),
                },
            )
            result = self._ledger.append(payload)
            self._session.commit()
            logger.info(
                "inventory_movement_committed",
                extra={
                    "event_id": str(result.event.id),
                    "transaction_type": result.event.type.value,
                    "status": result.status.value,
                },
            )
            return result
        except Exception:
            self._session.rollback()
            logger.warning(
                "inventory_movement_rolled_back",
                extra={"transaction_type": payload.get("type")},
            )
            raise

    def check_in(
        self,
        *,
        product_id: str,
        warehouse_id: str,
        quantity: Decimal,
        unit_price: Decimal,
        actor_id: UUID,
        batch_number: str | None = None,
        expiry_date: date | None = None,
        transaction_date: date | None = None,
        reference: str | None = None,
        event_id: UUID | None = None,
    ) -> AppendResult:
        return self.record_movement({
            "id": event_id,
            "type": TransactionType.CHECK_IN.value,
            "product_id": product_id,
            "target_warehouse_id": warehouse_id,
            "quantity": quantity,
            "unit_price": unit_price,
            "batch_number": batch_number,
            "expiry_date": expiry_date,
            "transaction_date": transaction_date,
            "reference": reference,
            "actor_id": str(actor_id),
        })

    def check_out(
        self,
        *,
        product_id: str,
        warehouse_id: str,
        quantity: Decimal,
        actor_id: UUID,
        batch_number: str | None = None,
        transaction_date: date | None = None,
        reference: str | None = None,
        event_id: UUID | None = None,
    ) -> AppendResult:
        return self.record_movement({
            "id": event_id,
            "type": TransactionType.CHECK_OUT.value,
            "product_id": product_id,
            "source_warehouse_id": warehouse_id,
            "quantity": quantity,
            "batch_number": batch_number,
            "transaction_date": transaction_date,
            "reference": reference,
            "actor_id": str(actor_id),
        })

    def transfer(
        self,
        *,
        product_id: str,
        source_warehouse_id: str,
        target_warehouse_id: str,
        quantity: Decimal,
        actor_id: UUID,
        batch_number: str | None = None,
        unit_price: Decimal | None = None,
        expiry_date: date | None = None,
        transaction_date: date | None = None,
        reference: str | None = None,
        event_id: UUID | None = None,
    ) -> AppendResult:
        """
        Move stock between warehouses.

        When the batch exists at the source, its current unit price and
        expiry travel with the transfer unless given explicitly.
        """
        if batch_number is not None and (unit_price is None or expiry_date is None):
            source_batch = self.get_batch(batch_number, product_id, source_warehouse_id)
            if source_batch is not None:
                if unit_price is None:
                    unit_price = source_batch.unit_price
                if expiry_date is None:
                    expiry_date = source_batch.expiry_date

        return self.record_movement({
            "id": event_id,
            "type": TransactionType.TRANSFER.value,
            "product_id": product_id,
            "source_warehouse_id": source_warehouse_id,
            "target_warehouse_id": target_warehouse_id,
            "quantity": quantity,
            "unit_price": unit_price if unit_price is not None else ZERO,
            "batch_number": batch_number,
            "expiry_date": expiry_date,
            "transaction_date": transaction_date,
            "reference": reference,
            "actor_id": str(actor_id),
        })

    def adjust(
        self,
        *,
        product_id: str,
        warehouse_id: str,
        quantity_delta: Decimal,
        reason_code: str,
        actor_id: UUID,
        batch_number: str | None = None,
        unit_price: Decimal | None = None,
        expiry_date: date | None = None,
        transaction_date: date | None = None,
        reference: str | None = None,
        event_id: UUID | None = None,
    ) -> AppendResult:
        """
        Record a stock-count correction.

        A positive delta is an increase into ``warehouse_id``; a negative
        delta is a decrease out of it.  A zero delta is rejected by event
        validation.
        """
        increase = quantity_delta > ZERO
        return self.record_movement({
            "id": event_id,
            "type": TransactionType.ADJUSTMENT.value,
            "product_id": product_id,
            "target_warehouse_id": warehouse_id if increase else None,
            "source_warehouse_id": None if increase else warehouse_id,
            "quantity": abs(quantity_delta),
            "unit_price": unit_price if unit_price is not None else ZERO,
            "batch_number": batch_number,
            "expiry_date": expiry_date,
            "transaction_date": transaction_date,
            "reference": reference,
            "reason_code": reason_code,
            "actor_id": str(actor_id),
        })

    # =========================================================================
    # Stock queries
    # =========================================================================

    def reduce(self, ledger_filter: LedgerFilter | None = None) -> ReductionResult:
        """Fold one consistent ledger snapshot into batches and item quantities."""
        events = self._selector.event_snapshot(ledger_filter)
        return self._reducer.reduce(events=events, ledger_filter=ledger_filter)

    def get_batch(
        self,
        batch_number: str,
        product_id: str,
        warehouse_id: str,
    ) -> BatchState | None:
        result = self.reduce(
            LedgerFilter(
                product_id=product_id,
                warehouse_id=warehouse_id,
                batch_number=batch_number,
            )
        )
        return result.batches.get(BatchKey(batch_number, product_id, warehouse_id))

    def item_quantity(self, product_id: str, warehouse_id: str) -> Decimal:
        result = self.reduce(LedgerFilter(product_id=product_id, warehouse_id=warehouse_id))
        return result.item_quantity(product_id, warehouse_id)

    def list_items(
        self,
        warehouse_id: str | None = None,
        category: str | None = None,
        search: str | None = None,
        status: StockStatus | None = None,
    ) -> tuple[InventoryItem, ...]:
        """
        Current item quantities with stock-status tags.

        Items with configured levels but no movements are listed with
        quantity 0 (status ``out``).
        """
        result = self.reduce(LedgerFilter(warehouse_id=warehouse_id))
        catalog = self._catalog()

        level_stmt = select(InventoryItemModel)
        if warehouse_id is not None:
            level_stmt = level_stmt.where(InventoryItemModel.warehouse_id == warehouse_id)
        levels = {
            (m.product_id, m.warehouse_id): m.to_dto()
            for m in self._session.execute(level_stmt).scalars()
        }

        keys = sorted(
            {(k.product_id, k.warehouse_id) for k in result.items} | set(levels)
        )
        items: list[InventoryItem] = []
        for product_id, wh in keys:
            product = catalog.get(product_id)
            lvl = levels.get((product_id, wh))
            if category is not None and (product is None or product.category != category):
                continue
            if not _matches(
                search,
                product_id,
                product.name if product else None,
                product.sku if product else None,
            ):
                continue
            quantity = result.item_quantity(product_id, wh)
            reorder_level = lvl.reorder_level if lvl else None
            tag = stock_status(
                quantity,
                reorder_level,
                default_reorder_level=self._config.default_reorder_level,
            )
            if status is not None and tag is not StockStatus(status):
                continue
            items.append(
                InventoryItem(
                    product_id=product_id,
                    warehouse_id=wh,
                    quantity=quantity,
                    status=tag,
                    minimum_level=lvl.minimum_level if lvl else None,
                    reorder_level=reorder_level,
                    product_name=product.name if product else None,
                    sku=product.sku if product else None,
                    category=product.category if product else None,
                )
            )

        logger.info(
            "inventory_items_listed",
            extra={
                "warehouse_id": warehouse_id,
                "category": category,
                "status": StockStatus(status).value if status else None,
                "item_count": len(items),
            },
        )
        return tuple(items)

    def list_batches(
        self,
        warehouse_id: str | None = None,
        expiry_status: ExpiryStatus | None = None,
        search: str | None = None,
        product_id: str | None = None,
    ) -> BatchListing:
        """
        Materialized batches with expiry tiers and aggregate counts.

        The summary covers exactly the batches returned.
        """
        today = self._clock.today()
        result = self.reduce(LedgerFilter(product_id=product_id, warehouse_id=warehouse_id))
        catalog = self._catalog()

        views: list[BatchView] = []
        for batch in result.batches.values():
            product = catalog.get(batch.product_id)
            if not _matches(
                search,
                batch.batch_number,
                product.name if product else None,
                product.sku if product else None,
            ):
                continue
            tier = self._expiry.classify(batch.expiry_date, today)
            if expiry_status is not None and tier is not ExpiryStatus(expiry_status):
                continue
            views.append(
                BatchView(
                    batch_number=batch.batch_number,
                    product_id=batch.product_id,
                    warehouse_id=batch.warehouse_id,
                    quantity=batch.quantity,
                    total_value=batch.total_value,
                    unit_price=batch.unit_price,
                    received_date=batch.received_date,
                    expiry_date=batch.expiry_date,
                    expiry_status=tier,
                    product_name=product.name if product else None,
                    sku=product.sku if product else None,
                )
            )

        summary = BatchSummary(
            unique_batches=len({v.batch_number for v in views}),
            unique_products=len({v.product_id for v in views}),
            total_quantity=sum((v.quantity for v in views), ZERO),
            total_value=sum((v.total_value for v in views), ZERO),
            expired_count=sum(1 for v in views if v.expiry_status is ExpiryStatus.EXPIRED),
            expiring_soon_count=sum(
                1 for v in views if v.expiry_status is ExpiryStatus.EXPIRING_SOON
            ),
        )
        logger.info(
            "inventory_batches_listed",
            extra={
                "warehouse_id": warehouse_id,
                "expiry_status": ExpiryStatus(expiry_status).value if expiry_status else None,
                "batch_count": len(views),
                "expired_count": summary.expired_count,
                "expiring_soon_count": summary.expiring_soon_count,
            },
        )
        return BatchListing(batches=tuple(views), summary=summary)

    def _catalog(self) -> dict[str, Product]:
        return {
            m.product_id: m.to_dto()
            for m in self._session.execute(select(ProductModel)).scalars()
        }

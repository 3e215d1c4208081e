"""
Declarative base for every table in the stock ledger.

Column conventions, applied through ``type_annotation_map`` so models only
write ``Mapped[Decimal]`` and get the right type:

    Decimal   -> Numeric(38, 9)     quantities, unit prices, tolerances.
                                    Fractional units (kg, litres) are
                                    allowed; floats never are.
    datetime  -> DateTime(tz=True)  approval/rejection stamps, recorded_at
    UUID      -> UUIDString         String(36) so SQLite and PostgreSQL agree
    int       -> BigInteger         version counters and GRN sequences

Every row has a uuid4 ``id``.  Mutable records (products, purchase orders,
GRNs, settings) inherit ``TrackedBase`` and carry who created and last
changed them.  The ledger table does not: a movement is written once by
its actor and never changed.

Nothing here imports models, services or outer layers.
"""

from datetime import datetime
from decimal import Decimal
from typing import ClassVar
from uuid import UUID, uuid4

from sqlalchemy import BigInteger, DateTime, Numeric, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


class UUIDString(TypeDecorator):
    """UUID in a String(36) column; binds str(uuid) and loads UUID(value)."""

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return None if value is None else str(value)

    def process_result_value(self, value, dialect):
        return None if value is None else UUID(value)


class Base(DeclarativeBase):

    type_annotation_map: ClassVar[dict] = {
        Decimal: Numeric(38, 9),
        datetime: DateTime(timezone=True),
        UUID: UUIDString(),
        int: BigInteger,
    }

    id: Mapped[UUID] = mapped_column(UUIDString(), primary_key=True, default=uuid4)


class TrackedBase(Base):
    """
    Abstract base for records that change over their life.

    ``created_by_id`` is required.  ``updated_by_id`` and ``updated_at``
    move on every change made through ``record_change``; the database
    stamps the times.
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
    created_by_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    updated_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    def record_change(self, actor_id: UUID) -> None:
        """Attribute the pending change on this row to ``actor_id``."""
        self.updated_by_id = actor_id

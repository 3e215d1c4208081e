"""
Named sequence counters.

One row per sequence (e.g. ``GRN-2024`` for that year's GRN numbers).
``current_value`` is the last number handed out.  Rows are only ever read
under a row lock and incremented by ``SequenceService``.
"""

from sqlalchemy import BigInteger, String
from sqlalchemy.orm import Mapped, mapped_column

from stock_kernel.db.base import Base


class SequenceCounterModel(Base):
    __tablename__ = "sequence_counters"

    name: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    current_value: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

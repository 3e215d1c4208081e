"""
SQLAlchemy ORM persistence models for the Matching module.

Responsibility
--------------
Persist the single matching-settings record and the append-only manual
overrides recorded against invoice lines.

Architecture position
---------------------
**Modules layer** -- ORM models consumed by ``MatchingSettingsService`` and
``InvoiceMatchingService``.  Invoice lines are owned by the accounts-payable
system and referenced by ``String(100)`` with NO foreign key.

Invariants enforced
-------------------
* Exactly one settings row, keyed by ``singleton_key`` (UNIQUE).
* Settings updates are compare-and-swap on ``version``.
* Override rows are immutable (``__immutable_entity__``, enforced by
  ``stock_kernel.db.immutability``);
  the row with the highest ``sequence`` for an invoice line is in force.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from stock_kernel.db.base import Base, TrackedBase

SETTINGS_SINGLETON_KEY = "default"


class MatchingSettingsModel(TrackedBase):
    """
    The process-wide matching settings record.

    Maps to ``stock_modules.matching.config.MatchingSettings``.
    """

    __tablename__ = "matching_settings"

    __table_args__ = (
        UniqueConstraint("singleton_key", name="uq_matching_settings_singleton"),
    )

    singleton_key: Mapped[str] = mapped_column(
        String(20), nullable=False, default=SETTINGS_SINGLETON_KEY
    )
    price_tolerance_pct: Mapped[Decimal] = mapped_column(nullable=False)
    quantity_tolerance_pct: Mapped[Decimal] = mapped_column(nullable=False)
    tax_tolerance_pct: Mapped[Decimal] = mapped_column(nullable=False)
    total_tolerance_pct: Mapped[Decimal] = mapped_column(nullable=False)
    strict_matching_mode: Mapped[bool] = mapped_column(nullable=False, default=False)
    allow_over_receipt: Mapped[bool] = mapped_column(nullable=False, default=False)
    require_grn_for_invoice: Mapped[bool] = mapped_column(nullable=False, default=True)
    auto_approve_matched: Mapped[bool] = mapped_column(nullable=False, default=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    def to_dto(self):
        from stock_modules.matching.config import MatchingSettings

        return MatchingSettings(
            price_tolerance_pct=self.price_tolerance_pct,
            quantity_tolerance_pct=self.quantity_tolerance_pct,
            tax_tolerance_pct=self.tax_tolerance_pct,
            total_tolerance_pct=self.total_tolerance_pct,
            strict_matching_mode=self.strict_matching_mode,
            allow_over_receipt=self.allow_over_receipt,
            require_grn_for_invoice=self.require_grn_for_invoice,
            auto_approve_matched=self.auto_approve_matched,
            version=self.version,
        )

    def __repr__(self) -> str:
        return f"<MatchingSettingsModel v{self.version}>"


class MatchOverrideModel(Base):
    """
    A manual override of a computed match, immutable once written.

    Maps to ``stock_engines.matching.ManualOverride``.
    """

    __tablename__ = "matching_overrides"
    __immutable_entity__ = "MatchOverride"
    __immutable_hint__ = "record a new override instead"

    __table_args__ = (
        UniqueConstraint("invoice_line_id", "sequence", name="uq_match_override_sequence"),
        Index("idx_match_override_invoice_line", "invoice_line_id"),
    )

    invoice_line_id: Mapped[str] = mapped_column(String(100), nullable=False)
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    score: Mapped[Decimal] = mapped_column(nullable=False)
    reason: Mapped[str] = mapped_column(String(2000), nullable=False)
    approver_id: Mapped[str] = mapped_column(String(100), nullable=False)
    approved: Mapped[bool] = mapped_column(nullable=False, default=True)
    computed_score: Mapped[Decimal | None] = mapped_column(nullable=True)
    recorded_at: Mapped[datetime] = mapped_column(nullable=False)

    def to_dto(self):
        from stock_engines.matching import ManualOverride

        return ManualOverride(
            invoice_line_id=self.invoice_line_id,
            score=self.score,
            reason=self.reason,
            approver_id=self.approver_id,
            recorded_at=self.recorded_at,
            approved=self.approved,
        )

    def __repr__(self) -> str:
        return f"<MatchOverrideModel {self.invoice_line_id}#{self.sequence} score={self.score}>"

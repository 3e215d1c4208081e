"""
Matching Configuration Schema.

``MatchingSettings`` is the process-wide tolerance policy used for invoice
matching and for the over-receipt check on goods receipts.  One persisted
copy exists (see ``MatchingSettingsService``); this dataclass is its value
form and validates every field on construction.
"""

from dataclasses import dataclass, field, fields
from decimal import Decimal, InvalidOperation
from typing import Self

from stock_kernel.exceptions import InvalidSettingsError
from stock_kernel.logging_config import get_logger

logger = get_logger("modules.matching.config")

ZERO = Decimal("0")
HUNDRED = Decimal("100")

TOLERANCE_FIELDS: tuple[str, ...] = (
    "price_tolerance_pct",
    "quantity_tolerance_pct",
    "tax_tolerance_pct",
    "total_tolerance_pct",
)

FLAG_FIELDS: tuple[str, ...] = (
    "strict_matching_mode",
    "allow_over_receipt",
    "require_grn_for_invoice",
    "auto_approve_matched",
)


def _to_decimal(name: str, value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise InvalidSettingsError(name, "must be a number")
    try:
        # str() first so 2.5 from YAML becomes Decimal('2.5'), not its binary expansion
        return Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise InvalidSettingsError(name, f"not a number: {value!r}") from exc


@dataclass
class MatchingSettings:
    """
    Tolerances and flags for 3-way matching.

    Defaults are the values the portal seeds on first access.  ``version``
    is the optimistic-lock counter of the persisted row and takes no part
    in equality.
    """

    price_tolerance_pct: Decimal = Decimal("5")
    quantity_tolerance_pct: Decimal = Decimal("5")
    tax_tolerance_pct: Decimal = Decimal("2")
    total_tolerance_pct: Decimal = Decimal("5")
    strict_matching_mode: bool = False
    allow_over_receipt: bool = False
    require_grn_for_invoice: bool = True
    auto_approve_matched: bool = False
    version: int = field(default=0, compare=False)

    def __post_init__(self):
        for name in TOLERANCE_FIELDS:
            value = _to_decimal(name, getattr(self, name))
            if not value.is_finite() or not (ZERO <= value <= HUNDRED):
                raise InvalidSettingsError(name, f"must be between 0 and 100, got {value}")
            setattr(self, name, value)
        for name in FLAG_FIELDS:
            if not isinstance(getattr(self, name), bool):
                raise InvalidSettingsError(name, "must be true or false")

        logger.debug(
            "matching_settings_initialized",
            extra={
                "strict_matching_mode": self.strict_matching_mode,
                "allow_over_receipt": self.allow_over_receipt,
                "require_grn_for_invoice": self.require_grn_for_invoice,
                "auto_approve_matched": self.auto_approve_matched,
                "version": self.version,
            },
        )

    def as_dict(self) -> dict:
        """Settable fields only (no version)."""
        return {f.name: getattr(self, f.name) for f in fields(self) if f.name != "version"}

    @classmethod
    def setting_names(cls) -> tuple[str, ...]:
        return TOLERANCE_FIELDS + FLAG_FIELDS

    @classmethod
    def with_defaults(cls) -> Self:
        """Create settings with the portal's first-access defaults."""
        logger.info("matching_settings_created_with_defaults")
        return cls()

    @classmethod
    def from_dict(cls, data: dict) -> Self:
        """Create settings from dictionary (e.g., loaded from file)."""
        logger.info(
            "matching_settings_loading_from_dict",
            extra={"keys": sorted(data.keys())},
        )
        unknown = set(data) - set(cls.setting_names()) - {"version"}
        if unknown:
            raise InvalidSettingsError(sorted(unknown)[0], "unknown setting")
        return cls(**data)

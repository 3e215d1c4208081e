"""
stock_engines.expiry -- Classify a batch by how close it is to expiry.

Pure function over calendar dates.  Both sides are normalized to dates
before comparing, so a batch never flaps between tiers within one day.

    none           no expiry date
    expired        expiry_date <  today
    expiring_soon  today <= expiry_date < today + window
    valid          otherwise

The window is half-open: a batch expiring exactly ``window_days`` from
today is ``valid``.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta
from enum import Enum

from stock_engines.tracer import traced_engine

DEFAULT_EXPIRING_SOON_DAYS = 30


class ExpiryStatus(str, Enum):
    NONE = "none"
    EXPIRED = "expired"
    EXPIRING_SOON = "expiring_soon"
    VALID = "valid"


def _as_date(value: date | datetime) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


@traced_engine("expiry", "1.0", fingerprint_fields=("expiry_date", "today", "window_days"))
def classify_expiry(
    *,
    expiry_date: date | datetime | None,
    today: date | datetime,
    window_days: int = DEFAULT_EXPIRING_SOON_DAYS,
) -> ExpiryStatus:
    """Map an expiry date, relative to ``today``, to its status tier."""
    if expiry_date is None:
        return ExpiryStatus.NONE
    if window_days < 0:
        raise ValueError(f"window_days must be non-negative, got {window_days}")

    expiry = _as_date(expiry_date)
    now = _as_date(today)

    if expiry < now:
        return ExpiryStatus.EXPIRED
    if expiry < now + timedelta(days=window_days):
        return ExpiryStatus.EXPIRING_SOON
    return ExpiryStatus.VALID


class ExpiryClassifier:
    """Classifier bound to one window length (from config)."""

    def __init__(self, window_days: int = DEFAULT_EXPIRING_SOON_DAYS):
        if window_days < 0:
            raise ValueError(f"window_days must be non-negative, got {window_days}")
        self.window_days = window_days

    def classify(self, expiry_date: date | datetime | None, today: date | datetime) -> ExpiryStatus:
        return classify_expiry(
            expiry_date=expiry_date,
            today=today,
            window_days=self.window_days,
        )

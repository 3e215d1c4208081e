"""
Tests for expiry classification.

The expiring-soon window is half-open: [today, today + window).
"""

from datetime import date, datetime, timedelta, timezone

import pytest

from stock_engines.expiry import ExpiryClassifier, ExpiryStatus, classify_expiry

TODAY = date(2024, 1, 1)


class TestClassifyExpiry:

    def test_no_expiry_date(self):
        assert classify_expiry(expiry_date=None, today=TODAY) is ExpiryStatus.NONE

    def test_yesterday_is_expired(self):
        result = classify_expiry(expiry_date=TODAY - timedelta(days=1), today=TODAY)
        assert result is ExpiryStatus.EXPIRED

    def test_today_is_expiring_soon(self):
        """An item expiring today is still usable today."""
        assert classify_expiry(expiry_date=TODAY, today=TODAY) is ExpiryStatus.EXPIRING_SOON

    def test_day_29_is_expiring_soon(self):
        result = classify_expiry(expiry_date=TODAY + timedelta(days=29), today=TODAY)
        assert result is ExpiryStatus.EXPIRING_SOON

    def test_day_30_is_valid(self):
        """Exactly the window length away is outside the window."""
        result = classify_expiry(expiry_date=TODAY + timedelta(days=30), today=TODAY)
        assert result is ExpiryStatus.VALID

    def test_far_future_is_valid(self):
        assert classify_expiry(expiry_date=date(2030, 1, 1), today=TODAY) is ExpiryStatus.VALID

    def test_datetimes_compare_by_calendar_day(self):
        """Late evening 'now' does not expire a batch dated today."""
        now = datetime(2024, 1, 1, 23, 59, 59, tzinfo=timezone.utc)
        expiry = datetime(2024, 1, 1, 0, 0, tzinfo=timezone.utc)

        assert classify_expiry(expiry_date=expiry, today=now) is ExpiryStatus.EXPIRING_SOON

    def test_custom_window(self):
        expiry = TODAY + timedelta(days=10)

        assert classify_expiry(expiry_date=expiry, today=TODAY, window_days=7) is ExpiryStatus.VALID
        assert (
            classify_expiry(expiry_date=expiry, today=TODAY, window_days=11)
            is ExpiryStatus.EXPIRING_SOON
        )

    def test_zero_window_has_no_soon_tier(self):
        assert classify_expiry(expiry_date=TODAY, today=TODAY, window_days=0) is ExpiryStatus.VALID

    def test_negative_window_rejected(self):
        with pytest.raises(ValueError):
            classify_expiry(expiry_date=TODAY, today=TODAY, window_days=-1)


class TestExpiryClassifier:

    def test_uses_bound_window(self):
        classifier = ExpiryClassifier(window_days=60)

        assert classifier.classify(TODAY + timedelta(days=45), TODAY) is ExpiryStatus.EXPIRING_SOON
        assert classifier.classify(TODAY + timedelta(days=60), TODAY) is ExpiryStatus.VALID

    def test_negative_window_rejected_at_construction(self):
        with pytest.raises(ValueError):
            ExpiryClassifier(window_days=-5)

    def test_status_values_are_wire_strings(self):
        assert [s.value for s in ExpiryStatus] == ["none", "expired", "expiring_soon", "valid"]

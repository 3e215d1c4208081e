"""
Clock -- the single source of "now" for services.

Three things in the stock ledger depend on the current time:

* the default ``transaction_date`` of a movement recorded without one,
* expiry classification of batches (expired / expiring soon / valid),
* GRN numbering (the year segment of ``GRN-YYYY-NNNNN``) and the
  submitted/approved/rejected timestamps on a GRN.

Services receive a Clock through their constructor; engines never see one
and take ``today`` as an argument instead.  Dates are UTC calendar dates.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime, time, timedelta, timezone

_NOON = time(12, 0, tzinfo=timezone.utc)


class Clock(ABC):
    """Injectable time source."""

    @abstractmethod
    def now(self) -> datetime:
        """Timezone-aware current instant."""

    def now_utc(self) -> datetime:
        return self.now().astimezone(timezone.utc)

    def today(self) -> date:
        """Business date used for expiry and GRN numbering."""
        return self.now_utc().date()


class SystemClock(Clock):

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Clock for tests: frozen until moved.

    Starts at noon UTC on 2024-01-01.  ``set_date`` jumps to noon on another
    business date so expiry windows can be walked day by day; ``advance``
    moves forward in seconds so GRN timestamps and override ordering stay
    distinct within one test.
    """

    def __init__(self, start: datetime | None = None):
        self._now = start or datetime.combine(date(2024, 1, 1), _NOON)

    def now(self) -> datetime:
        return self._now

    def set_date(self, day: date) -> None:
        self._now = datetime.combine(day, _NOON)

    def advance(self, seconds: int = 1) -> None:
        self._now += timedelta(seconds=seconds)

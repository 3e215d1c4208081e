"""
SequenceService -- gap-free document numbers from locked counter rows.

GRN numbers (``GRN-2024-00017``) come from here.  The counter row for a
sequence is read ``FOR UPDATE`` and incremented in the caller's
transaction, so two concurrent drafts serialize on the row instead of both
computing the same number.  Numbers are never derived from the highest
existing document number.

The first allocation of a sequence creates its row inside a savepoint.  If
another transaction creates it first, the savepoint is rolled back and the
now-existing row is locked and incremented.

Flushes only; a rolled-back caller returns its number to the sequence.
"""

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from stock_kernel.logging_config import get_logger
from stock_kernel.models.sequence import SequenceCounterModel

logger = get_logger("services.sequence")


class SequenceService:

    def __init__(self, session: Session):
        self.session = session

    def _locked_counter(self, name: str) -> SequenceCounterModel | None:
        return self.session.execute(
            select(SequenceCounterModel)
            .where(SequenceCounterModel.name == name)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def next_value(self, name: str) -> int:
        """Allocate the next number of ``name``; the first is 1."""
        counter = self._locked_counter(name)

        if counter is None:
            savepoint = self.session.begin_nested()
            try:
                self.session.add(SequenceCounterModel(name=name, current_value=1))
                self.session.flush()
                savepoint.commit()
                logger.debug("sequence_allocated", extra={"sequence_name": name, "value": 1})
                return 1
            except IntegrityError:
                savepoint.rollback()
                logger.debug("sequence_counter_race_retry", extra={"sequence_name": name})
                counter = self._locked_counter(name)
                if counter is None:
                    raise

        counter.current_value += 1
        self.session.flush()
        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": name, "value": counter.current_value},
        )
        return counter.current_value

    def current_value(self, name: str) -> int:
        """Last number handed out, 0 for an unused sequence."""
        value = self.session.execute(
            select(SequenceCounterModel.current_value).where(SequenceCounterModel.name == name)
        ).scalar_one_or_none()
        return value or 0

"""
SequenceService -- monotonic sequence allocation via locked counter rows.

Responsibility:
    Strictly increasing numbers per named sequence.  Invoice numbers use
    one sequence per prefix and issue year (``INV-2025``), so numbering
    restarts at 1 every year.

Invariants enforced:
    - The counter row is the sole source of truth; the next number is
      never derived from ``MAX(invoice_number)``.
    - The increment is transactional: a rolled-back caller returns the
      value.

Failure modes:
    - IntegrityError on a concurrent first use of a sequence is absorbed
      by a savepoint and a re-read.
"""

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from billing_kernel.logging_config import get_logger
from billing_kernel.models.sequence import SequenceCounter

logger = get_logger("services.sequence")


class SequenceService:
    """
    Transactional sequence numbers.

    Usage:
        seq = SequenceService(session).next_value("INV-2025")
    """

    def __init__(self, session: Session):
        self._session = session

    def _locked_counter(self, sequence_name: str) -> SequenceCounter | None:
        return self._session.execute(
            select(SequenceCounter)
            .where(SequenceCounter.name == sequence_name)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def next_value(self, sequence_name: str) -> int:
        """
        Next value for a named sequence (always > 0).

        Locks the counter row (creating it on first use), increments it and
        flushes.  Nothing is committed here.
        """
        if not sequence_name:
            raise ValueError("sequence_name must be non-empty")

        counter = self._locked_counter(sequence_name)
        if counter is None:
            savepoint = self._session.begin_nested()
            try:
                self._session.add(SequenceCounter(name=sequence_name, current_value=1))
                self._session.flush()
                savepoint.commit()
                logger.debug(
                    "sequence_allocated",
                    extra={"sequence_name": sequence_name, "value": 1},
                )
                return 1
            except IntegrityError:
                logger.debug(
                    "sequence_counter_race_retry",
                    extra={"sequence_name": sequence_name},
                )
                savepoint.rollback()
                counter = self._locked_counter(sequence_name)
                if counter is None:
                    raise

        counter.current_value += 1
        self._session.flush()
        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": sequence_name, "value": counter.current_value},
        )
        return counter.current_value

    def current_value(self, sequence_name: str) -> int | None:
        """Current value without incrementing; None if never used."""
        return self._session.execute(
            select(SequenceCounter.current_value).where(SequenceCounter.name == sequence_name)
        ).scalar_one_or_none()

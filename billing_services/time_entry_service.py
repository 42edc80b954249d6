"""
billing_services.time_entry_service -- Logging and editing billable hours.

Responsibility:
    Record daily time entries against an engagement and protect entries
    that have already been billed.

Architecture position:
    Services -- stateful orchestration over engines + kernel.

Invariants enforced:
    - 0 < hours <= 8 per entry (TimeEntry DTO).
    - Entries billed by an invoice are frozen while
      ``freeze_invoiced_time_entries`` is set: update and delete raise
      TimeEntryFrozenError.
    - Flush-only: the caller owns commit/rollback.

Failure modes:
    - InvalidTimeEntryError / InvalidDateFormatError on bad input.
    - EngagementNotFoundError / TimeEntryNotFoundError for unknown ids.
    - TimeEntryFrozenError for edits to billed entries.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import date
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy.orm import Session

from billing_config import BillingConfig
from billing_engines.date_ranges import DateRangeKey, resolve_named_range
from billing_kernel.domain.clock import Clock, SystemClock
from billing_kernel.domain.dates import parse_calendar_date
from billing_kernel.domain.dtos import ALL_TIME, TimeEntry
from billing_kernel.exceptions import (
    BillingValidationError,
    TimeEntryFrozenError,
    TimeEntryNotFoundError,
)
from billing_kernel.logging_config import get_logger
from billing_kernel.models.time_entry import TimeEntryRecord
from billing_kernel.selectors.billing_selector import BillingSelector
from billing_kernel.services.base import BaseService

logger = get_logger("services.time_entry")

_UNSET = object()


class TimeEntryService(BaseService[TimeEntryRecord]):
    """Time entry writes and filtered reads."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: BillingConfig | None = None,
    ):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._config = config or BillingConfig()
        self._selector = BillingSelector(session)

    def log(
        self,
        engagement_id: UUID,
        entry_date: date | str,
        hours: Decimal | str | int,
        description: str | None = None,
    ) -> TimeEntry:
        """
        Record hours worked on ``entry_date``.

        Raises:
            EngagementNotFoundError, InvalidTimeEntryError, InvalidDateFormatError
        """
        self._selector.load_engagement(engagement_id)
        entry_id = uuid4()
        try:
            entry = TimeEntry(
                id=entry_id,
                engagement_id=engagement_id,
                entry_date=parse_calendar_date(entry_date),
                hours=hours,
                description=description,
            )
        except BillingValidationError as e:
            logger.warning("time_entry_rejected", extra={
                "engagement_id": str(engagement_id),
                "error_code": e.code,
                "reason": str(e),
            })
            raise

        self.session.add(TimeEntryRecord(
            id=entry.id,
            engagement_id=entry.engagement_id,
            entry_date=entry.entry_date,
            hours=entry.hours,
            description=entry.description,
        ))
        self.session.flush()
        logger.info("time_entry_logged", extra={
            "time_entry_id": str(entry.id),
            "engagement_id": str(engagement_id),
            "entry_date": entry.entry_date.isoformat(),
            "hours": str(entry.hours),
        })
        return entry

    def update(
        self,
        entry_id: UUID,
        *,
        entry_date: date | str | None = None,
        hours: Decimal | str | int | None = None,
        description: str | None | object = _UNSET,
    ) -> TimeEntry:
        """
        Change date, hours or description of an unbilled entry.

        Pass ``description=None`` to clear the description.

        Raises:
            TimeEntryNotFoundError, TimeEntryFrozenError, InvalidTimeEntryError
        """
        record = self._record(entry_id)
        current = self._selector.load_time_entry(entry_id)
        self._check_not_frozen(current)

        changes: dict = {}
        if entry_date is not None:
            changes["entry_date"] = parse_calendar_date(entry_date)
        if hours is not None:
            changes["hours"] = hours
        if description is not _UNSET:
            changes["description"] = description

        try:
            updated = replace(current, **changes)
        except BillingValidationError as e:
            logger.warning("time_entry_update_rejected", extra={
                "time_entry_id": str(entry_id),
                "error_code": e.code,
                "reason": str(e),
            })
            raise

        record.entry_date = updated.entry_date
        record.hours = updated.hours
        record.description = updated.description
        self.session.flush()
        logger.info("time_entry_updated", extra={
            "time_entry_id": str(entry_id),
            "fields": sorted(changes),
        })
        return updated

    def delete(self, entry_id: UUID) -> None:
        """
        Delete an unbilled entry.

        Raises:
            TimeEntryNotFoundError, TimeEntryFrozenError
        """
        record = self._record(entry_id)
        self._check_not_frozen(self._selector.load_time_entry(entry_id))
        self.session.delete(record)
        self.session.flush()
        logger.info("time_entry_deleted", extra={"time_entry_id": str(entry_id)})

    def list_entries(
        self,
        engagement_id: UUID | None = None,
        range_key: DateRangeKey | str | None = None,
        custom_start: date | str | None = None,
        custom_end: date | str | None = None,
    ) -> tuple[TimeEntry, ...]:
        """Entries in the named range (default all time), newest first."""
        interval = ALL_TIME
        if range_key is not None:
            interval = resolve_named_range(
                range_key, self._clock.today(self._config.tz), custom_start, custom_end
            )
        return self._selector.list_time_entries(engagement_id, interval)

    def _record(self, entry_id: UUID) -> TimeEntryRecord:
        record = self.session.get(TimeEntryRecord, entry_id)
        if record is None:
            raise TimeEntryNotFoundError(entry_id)
        return record

    def _check_not_frozen(self, entry: TimeEntry) -> None:
        if not self._config.freeze_invoiced_time_entries:
            return
        invoice_id = self._selector.invoice_referencing_entry(entry)
        if invoice_id is not None:
            logger.warning("time_entry_frozen", extra={
                "time_entry_id": str(entry.id),
                "invoice_id": str(invoice_id),
            })
            raise TimeEntryFrozenError(entry.id, invoice_id)

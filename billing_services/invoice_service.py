"""
billing_services.invoice_service -- Invoice generation, payment and the overdue sweep.

Responsibility:
    Take a snapshot of an engagement's time entries, hand it to the billing
    engine, number and persist the resulting invoice; record payments; run
    the submitted -> overdue sweep against the database.

Architecture position:
    Services -- stateful orchestration over engines + kernel.
    Composes BillingSelector (snapshot), ``billing_engines.billing``
    (aggregation), ``billing_engines.invoice_lifecycle`` (state machine)
    and SequenceService (numbering).

Invariants enforced:
    - A time entry is billed at most once: entries already on an invoice
      are left out of the snapshot, and uq_billed_time_entry rejects a
      concurrent second billing.
    - A fixed-fee period never overlaps an earlier invoice period of the
      same engagement.
    - At most one invoice per (engagement, period) (uq_invoice_period).
      Every violation raises DuplicateInvoiceError.
    - Invoice numbers are ``PREFIX-YYYY-NNNN`` from a per-year counter row.
    - The sweep's UPDATE re-checks ``status = 'submitted'``, so an invoice
      paid after the sweep read it is never overwritten.
    - The clock is read once per operation.
    - Flush-only: the caller owns commit/rollback.

Failure modes:
    - EngagementNotFoundError / InvoiceNotFoundError for unknown ids.
    - InvalidDateFormatError for a bad or inverted billing period.
    - DuplicateInvoiceError when the period or its entries are already billed.
    - EmptyInvoiceError, EngagementMismatchError, InvalidTimeEntryError,
      RoundingMismatchError from the billing engine.
    - InvalidInvoiceTransitionError from mark_paid on a paid invoice.

Usage:
    with session_scope() as session:
        service = InvoiceService(session, clock, config)
        invoice = service.generate_invoice(engagement_id, "2025-04-01", "2025-04-30")
"""

from __future__ import annotations

import time
from collections.abc import Sequence
from dataclasses import replace
from datetime import date
from uuid import UUID, uuid4

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from billing_config import BillingConfig
from billing_engines.billing import AggregationMode, build_invoice, format_invoice_number
from billing_engines.date_ranges import DateRangeKey, custom_range, overlaps, resolve_named_range
from billing_engines.invoice_lifecycle import mark_paid, sweep_overdue
from billing_kernel.domain.clock import Clock, SystemClock
from billing_kernel.domain.dates import parse_calendar_date, to_calendar_date
from billing_kernel.domain.dtos import (
    ALL_TIME,
    BillingMode,
    DateInterval,
    Invoice,
    InvoiceStatus,
    StatusTransition,
    TimeEntry,
)
from billing_kernel.exceptions import DuplicateInvoiceError, InvoiceNotFoundError
from billing_kernel.logging_config import LogContext, get_logger
from billing_kernel.models.invoice import (
    BilledTimeEntryRecord,
    InvoiceLineRecord,
    InvoiceRecord,
)
from billing_kernel.selectors.billing_selector import BillingSelector
from billing_kernel.services.base import BaseService
from billing_kernel.services.sequence_service import SequenceService

logger = get_logger("services.invoice")


def _to_record(invoice: Invoice, billed_entry_ids: Sequence[UUID]) -> InvoiceRecord:
    return InvoiceRecord(
        id=invoice.id,
        invoice_number=invoice.invoice_number,
        engagement_id=invoice.engagement_id,
        client_name=invoice.client_name,
        project_name=invoice.project_name,
        billing_mode=invoice.billing_mode.value,
        issue_date=invoice.issue_date,
        due_date=invoice.due_date,
        period_start=invoice.period_start,
        period_end=invoice.period_end,
        status=invoice.status.value,
        currency=invoice.currency.code,
        total_amount=invoice.total_amount.amount,
        total_hours=invoice.total_hours,
        lines=[
            InvoiceLineRecord(
                line_no=index,
                description=line.description,
                hours=line.hours,
                rate=line.rate.amount,
                amount=line.amount.amount,
                time_entry_id=line.time_entry_id,
            )
            for index, line in enumerate(invoice.line_items, start=1)
        ],
        billed_entries=[
            BilledTimeEntryRecord(time_entry_id=entry_id) for entry_id in billed_entry_ids
        ],
    )


class InvoiceService(BaseService[InvoiceRecord]):
    """
    Invoice writes and filtered reads.

    Contract:
        Receives Session, Clock and BillingConfig via constructor injection.
        Returns frozen ``Invoice`` DTOs, never ORM rows.
    """

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
        self._sequences = SequenceService(session)

    def generate_invoice(
        self,
        engagement_id: UUID,
        period_start: date | str,
        period_end: date | str,
        *,
        mode: AggregationMode | str | None = None,
        allow_empty: bool | None = None,
        issue_date: date | str | None = None,
    ) -> Invoice:
        """
        Bill an engagement for a period.

        Hourly engagements bill every not-yet-billed time entry dated inside
        the period; the stored invoice period is the span of those entries.
        Fixed-fee engagements bill the fee for the requested period, which
        must not overlap an earlier invoice period.

        Args:
            engagement_id: Engagement to bill.
            period_start, period_end: Closed billing window.
            mode: Line aggregation; defaults to the configured mode.
            allow_empty: Permit a zero-amount invoice; defaults to config.
            issue_date: Defaults to today in the reference timezone.
        """
        t0 = time.monotonic()
        today = self._clock.today(self._config.tz)
        period = custom_range(period_start, period_end)
        issued = parse_calendar_date(issue_date) if issue_date is not None else today
        mode = AggregationMode(mode) if mode is not None else self._config.aggregation_mode
        if allow_empty is None:
            allow_empty = self._config.allow_zero_amount_invoices

        with LogContext.bind(engagement_id=engagement_id):
            engagement = self._selector.load_engagement(engagement_id)
            entries: tuple[TimeEntry, ...] = ()
            if engagement.billing_mode is BillingMode.HOURLY:
                entries = self._unbilled_entries(engagement_id, period)
            else:
                self._check_period_unbilled(engagement_id, period)

            draft = build_invoice(
                engagement,
                entries,
                period,
                issue_date=issued,
                mode=mode,
                allow_empty=allow_empty,
            )

            existing = self._selector.find_invoice_for_period(
                engagement_id, draft.period_start, draft.period_end
            )
            if existing is not None:
                logger.warning("invoice_duplicate_rejected", extra={
                    "existing_invoice_id": str(existing),
                    "period_start": draft.period_start.isoformat(),
                    "period_end": draft.period_end.isoformat(),
                })
                raise DuplicateInvoiceError(engagement_id, draft.period_start, draft.period_end)

            prefix = self._config.invoice_number_prefix
            sequence = self._sequences.next_value(f"{prefix}-{issued.year}")
            invoice = replace(
                draft,
                id=uuid4(),
                invoice_number=format_invoice_number(prefix, issued.year, sequence),
            )

            try:
                with self.session.begin_nested():
                    self.session.add(_to_record(invoice, [entry.id for entry in entries]))
            except IntegrityError as e:
                logger.warning("invoice_duplicate_rejected", extra={
                    "period_start": invoice.period_start.isoformat(),
                    "period_end": invoice.period_end.isoformat(),
                })
                raise DuplicateInvoiceError(
                    engagement_id, invoice.period_start, invoice.period_end
                ) from e

            logger.info("invoice_generated", extra={
                "invoice_id": str(invoice.id),
                "invoice_number": invoice.invoice_number,
                "total_amount": str(invoice.total_amount.amount),
                "currency": invoice.currency.code,
                "time_entry_count": len(entries),
                "due_date": invoice.due_date.isoformat(),
                "duration_ms": round((time.monotonic() - t0) * 1000, 2),
            })
        return invoice

    def _unbilled_entries(
        self, engagement_id: UUID, period: DateInterval
    ) -> tuple[TimeEntry, ...]:
        """
        Snapshot of the period's entries that no invoice has billed yet.

        Raises DuplicateInvoiceError when the period has entries and every
        one of them is already billed.
        """
        entries = self._selector.load_time_entries(engagement_id, period.start, period.end)
        billed = self._selector.billed_time_entries(entry.id for entry in entries)
        if not billed:
            return entries

        unbilled = tuple(entry for entry in entries if entry.id not in billed)
        logger.info("invoice_billed_entries_excluded", extra={
            "excluded_count": len(billed),
            "billed_on": sorted({str(invoice_id) for invoice_id in billed.values()}),
        })
        if not unbilled:
            logger.warning("invoice_duplicate_rejected", extra={
                "period_start": period.start.isoformat(),
                "period_end": period.end.isoformat(),
            })
            raise DuplicateInvoiceError(engagement_id, period.start, period.end)
        return unbilled

    def _check_period_unbilled(self, engagement_id: UUID, period: DateInterval) -> None:
        """A flat fee is billed once for any day: no overlapping invoice periods."""
        for invoice_id, billed_period in self._selector.invoice_periods(engagement_id):
            if overlaps(billed_period, period):
                logger.warning("invoice_duplicate_rejected", extra={
                    "existing_invoice_id": str(invoice_id),
                    "period_start": period.start.isoformat(),
                    "period_end": period.end.isoformat(),
                })
                raise DuplicateInvoiceError(engagement_id, period.start, period.end)

    def get(self, invoice_id: UUID) -> Invoice:
        return self._selector.load_invoice(invoice_id)

    def mark_paid(self, invoice_id: UUID) -> Invoice:
        """
        Record payment of a submitted or overdue invoice.

        Raises:
            InvoiceNotFoundError, InvalidInvoiceTransitionError
        """
        today = self._clock.today(self._config.tz)
        record = self.session.get(InvoiceRecord, invoice_id)
        if record is None:
            raise InvoiceNotFoundError(invoice_id)

        with LogContext.bind(invoice_id=invoice_id):
            current = self._selector.load_invoice(invoice_id)
            paid = mark_paid(current)
            record.status = paid.status.value
            record.paid_date = today
            self.session.flush()
            logger.info("invoice_paid", extra={
                "invoice_number": paid.invoice_number,
                "from_status": current.status.value,
                "paid_date": today.isoformat(),
            })
        return paid

    def run_overdue_sweep(self) -> tuple[StatusTransition, ...]:
        """
        Move every submitted invoice past its due date to overdue.

        Returns the transitions actually applied.  A transition whose row
        changed status since it was read is skipped.
        """
        now = self._clock.now()
        submitted = self._selector.load_invoices_by_status(InvoiceStatus.SUBMITTED)
        transitions = sweep_overdue(submitted, now, self._config.tz)

        applied = []
        for change in transitions:
            result = self.session.execute(
                update(InvoiceRecord)
                .where(
                    InvoiceRecord.id == change.invoice_id,
                    InvoiceRecord.status == change.from_status.value,
                )
                .values(status=change.to_status.value)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 1:
                applied.append(change)
        # Loaded rows still hold the pre-sweep status
        self.session.expire_all()

        logger.info("overdue_sweep_completed", extra={
            "as_of": to_calendar_date(now, self._config.tz).isoformat(),
            "examined_count": len(submitted),
            "transition_count": len(transitions),
            "applied_count": len(applied),
            "skipped_count": len(transitions) - len(applied),
        })
        return tuple(applied)

    def list_invoices(
        self,
        status: InvoiceStatus | str | None = None,
        range_key: DateRangeKey | str | None = None,
        custom_start: date | str | None = None,
        custom_end: date | str | None = None,
        engagement_id: UUID | None = None,
    ) -> tuple[Invoice, ...]:
        """Invoices by status and issue-date range, newest first."""
        interval = ALL_TIME
        if range_key is not None:
            interval = resolve_named_range(
                range_key, self._clock.today(self._config.tz), custom_start, custom_end
            )
        return self._selector.list_invoices(
            status=InvoiceStatus(status) if status is not None else None,
            interval=interval,
            engagement_id=engagement_id,
        )

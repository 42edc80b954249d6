"""
Module: billing_kernel.selectors.billing_selector
Responsibility: Read side for engagements, time entries and invoices.
    Implements the ``BillingStore`` protocol consumed by the billing
    services, and the list queries behind the engagement, time-log and
    invoice views.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Returns frozen DTOs from ``billing_kernel.domain.dtos``.
    - Stored amounts are handed back at the currency's minor unit when
      that is exact, so a value written as ``800.00`` reads back as
      ``800.00`` whatever the column scale.
    - Date filters are closed intervals on ``Date`` columns; ``ALL_TIME``
      applies no filter.

Failure modes:
    - EngagementNotFoundError / TimeEntryNotFoundError /
      InvoiceNotFoundError for unknown identifiers.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import selectinload

from billing_kernel.domain.dtos import (
    ALL_TIME,
    BillingMode,
    DateInterval,
    Engagement,
    EngagementStatus,
    Invoice,
    InvoiceLineItem,
    InvoiceStatus,
    TimeEntry,
)
from billing_kernel.domain.values import Currency, Money
from billing_kernel.exceptions import (
    EngagementNotFoundError,
    InvoiceNotFoundError,
    TimeEntryNotFoundError,
)
from billing_kernel.models.engagement import EngagementRecord
from billing_kernel.models.invoice import BilledTimeEntryRecord, InvoiceRecord
from billing_kernel.models.time_entry import TimeEntryRecord
from billing_kernel.selectors.base import BaseSelector


def _trim(value: Decimal | None, quantum: Decimal) -> Decimal | None:
    """Drop trailing column scale when the value is exact at ``quantum``."""
    if value is None:
        return None
    value = Decimal(value)
    quantized = value.quantize(quantum)
    return quantized if quantized == value else value


def engagement_to_dto(record: EngagementRecord) -> Engagement:
    quantum = Currency(record.currency).quantum
    return Engagement(
        id=record.id,
        client_id=record.client_id,
        client_name=record.client_name,
        project_name=record.project_name,
        description=record.description,
        start_date=record.start_date,
        end_date=record.end_date,
        billing_mode=BillingMode(record.billing_mode),
        hourly_rate=_trim(record.hourly_rate, quantum),
        fixed_fee=_trim(record.fixed_fee, quantum),
        net_terms_days=record.net_terms_days,
        currency=record.currency,
        status=EngagementStatus(record.status) if record.status else None,
    )


def time_entry_to_dto(record: TimeEntryRecord) -> TimeEntry:
    return TimeEntry(
        id=record.id,
        engagement_id=record.engagement_id,
        entry_date=record.entry_date,
        hours=_trim(record.hours, Decimal("0.01")),
        description=record.description,
    )


def invoice_to_dto(record: InvoiceRecord) -> Invoice:
    currency = Currency(record.currency)
    lines = tuple(
        InvoiceLineItem(
            description=line.description,
            hours=_trim(line.hours, Decimal("0.01")),
            rate=Money(_trim(line.rate, currency.quantum), currency),
            amount=Money(_trim(line.amount, currency.quantum), currency),
            time_entry_id=line.time_entry_id,
        )
        for line in record.lines
    )
    return Invoice(
        id=record.id,
        invoice_number=record.invoice_number,
        engagement_id=record.engagement_id,
        billing_mode=BillingMode(record.billing_mode),
        client_name=record.client_name,
        project_name=record.project_name,
        issue_date=record.issue_date,
        due_date=record.due_date,
        period_start=record.period_start,
        period_end=record.period_end,
        total_amount=Money(_trim(record.total_amount, currency.quantum), currency),
        total_hours=_trim(record.total_hours, Decimal("0.01")),
        line_items=lines,
        status=InvoiceStatus(record.status),
    )


class BillingSelector(BaseSelector[InvoiceRecord]):
    """
    Read-only billing queries.

    Satisfies ``billing_kernel.domain.store.BillingStore``.
    """

    # -- engagements --------------------------------------------------------

    def load_engagement(self, engagement_id: UUID) -> Engagement:
        record = self.session.get(EngagementRecord, engagement_id)
        if record is None:
            raise EngagementNotFoundError(engagement_id)
        return engagement_to_dto(record)

    def list_engagements(self) -> tuple[Engagement, ...]:
        """All engagements, earliest start first."""
        records = self.session.execute(
            select(EngagementRecord).order_by(
                EngagementRecord.start_date, EngagementRecord.client_name
            )
        ).scalars()
        return tuple(engagement_to_dto(r) for r in records)

    # -- time entries -------------------------------------------------------

    def load_time_entry(self, entry_id: UUID) -> TimeEntry:
        record = self.session.get(TimeEntryRecord, entry_id)
        if record is None:
            raise TimeEntryNotFoundError(entry_id)
        return time_entry_to_dto(record)

    def load_time_entries(
        self,
        engagement_id: UUID,
        period_start: date,
        period_end: date,
    ) -> tuple[TimeEntry, ...]:
        """Entries dated within [period_start, period_end], ordered by date."""
        records = self.session.execute(
            select(TimeEntryRecord)
            .where(
                TimeEntryRecord.engagement_id == engagement_id,
                TimeEntryRecord.entry_date >= period_start,
                TimeEntryRecord.entry_date <= period_end,
            )
            .order_by(TimeEntryRecord.entry_date, TimeEntryRecord.created_at, TimeEntryRecord.id)
        ).scalars()
        return tuple(time_entry_to_dto(r) for r in records)

    def list_time_entries(
        self,
        engagement_id: UUID | None = None,
        interval: DateInterval = ALL_TIME,
    ) -> tuple[TimeEntry, ...]:
        """Entries in ``interval``, newest first, optionally for one engagement."""
        stmt = select(TimeEntryRecord)
        if engagement_id is not None:
            stmt = stmt.where(TimeEntryRecord.engagement_id == engagement_id)
        if not interval.is_unbounded:
            stmt = stmt.where(
                TimeEntryRecord.entry_date >= interval.start,
                TimeEntryRecord.entry_date <= interval.end,
            )
        records = self.session.execute(
            stmt.order_by(TimeEntryRecord.entry_date.desc(), TimeEntryRecord.id)
        ).scalars()
        return tuple(time_entry_to_dto(r) for r in records)

    def invoice_referencing_entry(self, entry: TimeEntry) -> UUID | None:
        """Invoice that billed ``entry``, if any."""
        return self.billed_time_entries((entry.id,)).get(entry.id)

    def billed_time_entries(self, entry_ids: Iterable[UUID]) -> dict[UUID, UUID]:
        """Map each already-billed entry id to the invoice that billed it."""
        entry_ids = list(entry_ids)
        if not entry_ids:
            return {}
        rows = self.session.execute(
            select(BilledTimeEntryRecord.time_entry_id, BilledTimeEntryRecord.invoice_id)
            .where(BilledTimeEntryRecord.time_entry_id.in_(entry_ids))
        )
        return {entry_id: invoice_id for entry_id, invoice_id in rows}

    # -- invoices -----------------------------------------------------------

    def load_invoice(self, invoice_id: UUID) -> Invoice:
        record = self.session.execute(
            select(InvoiceRecord)
            .where(InvoiceRecord.id == invoice_id)
            .options(selectinload(InvoiceRecord.lines))
        ).scalar_one_or_none()
        if record is None:
            raise InvoiceNotFoundError(invoice_id)
        return invoice_to_dto(record)

    def load_invoices_by_status(self, status: InvoiceStatus) -> tuple[Invoice, ...]:
        return self.list_invoices(status=status)

    def list_invoices(
        self,
        status: InvoiceStatus | None = None,
        interval: DateInterval = ALL_TIME,
        engagement_id: UUID | None = None,
    ) -> tuple[Invoice, ...]:
        """Invoices filtered by status, issue date and engagement; newest first."""
        stmt = select(InvoiceRecord).options(selectinload(InvoiceRecord.lines))
        if status is not None:
            stmt = stmt.where(InvoiceRecord.status == InvoiceStatus(status).value)
        if engagement_id is not None:
            stmt = stmt.where(InvoiceRecord.engagement_id == engagement_id)
        if not interval.is_unbounded:
            stmt = stmt.where(
                InvoiceRecord.issue_date >= interval.start,
                InvoiceRecord.issue_date <= interval.end,
            )
        records = self.session.execute(
            stmt.order_by(InvoiceRecord.issue_date.desc(), InvoiceRecord.invoice_number.desc())
        ).scalars()
        return tuple(invoice_to_dto(r) for r in records)

    def find_invoice_for_period(
        self,
        engagement_id: UUID,
        period_start: date,
        period_end: date,
    ) -> UUID | None:
        return self.session.execute(
            select(InvoiceRecord.id).where(
                InvoiceRecord.engagement_id == engagement_id,
                InvoiceRecord.period_start == period_start,
                InvoiceRecord.period_end == period_end,
            )
        ).scalar_one_or_none()

    def invoice_periods(self, engagement_id: UUID) -> tuple[tuple[UUID, DateInterval], ...]:
        """Billing period of every invoice of an engagement, oldest first."""
        rows = self.session.execute(
            select(InvoiceRecord.id, InvoiceRecord.period_start, InvoiceRecord.period_end)
            .where(InvoiceRecord.engagement_id == engagement_id)
            .order_by(InvoiceRecord.period_start)
        )
        return tuple((invoice_id, DateInterval(start, end)) for invoice_id, start, end in rows)

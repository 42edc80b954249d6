"""
Consulting Billing Engine.

Pure functions with deterministic behavior. No I/O.

Aggregates a fixed snapshot of time entries (hourly engagements) or the
engagement's flat fee (fixed-fee engagements) into invoice line items and
totals.

Rounding rule:
    Each line amount is rounded to the currency's minor unit with
    ROUND_HALF_UP.  The invoice total is the exact sum of the rounded
    lines and is never rounded again, so an invoice always reconciles to
    its own lines.

Snapshot rule:
    The engine bills exactly the entries it is given.  It never looks up
    "all entries for this engagement"; the caller owns the snapshot.

Usage:
    from billing_engines.billing import AggregationMode, build_invoice

    invoice = build_invoice(
        engagement,
        entries,
        DateInterval(date(2025, 4, 1), date(2025, 4, 30)),
        issue_date=date(2025, 5, 1),
        mode=AggregationMode.ITEMIZED,
    )
"""

from __future__ import annotations

import time
from collections.abc import Sequence
from datetime import date, timedelta
from decimal import Decimal
from enum import Enum
from uuid import UUID

from billing_kernel.domain.dtos import (
    BillingMode,
    DateInterval,
    Engagement,
    Invoice,
    InvoiceLineItem,
    InvoiceStatus,
    TimeEntry,
)
from billing_kernel.domain.values import Money, sum_money
from billing_kernel.exceptions import (
    EmptyInvoiceError,
    EngagementMismatchError,
    InvalidTimeEntryError,
    RoundingMismatchError,
)
from billing_kernel.logging_config import get_logger
from billing_engines.tracer import traced_engine

logger = get_logger("engines.billing")

_ZERO_HOURS = Decimal("0")


class AggregationMode(str, Enum):
    """How hourly time entries become invoice lines."""

    SUMMARY = "summary"  # one line for the whole period
    ITEMIZED = "itemized"  # one line per time entry


# ============================================================================
# Line construction
# ============================================================================


def line_amount(hours: Decimal, rate: Money) -> Money:
    """hours x rate, rounded half-up to the minor currency unit."""
    return (rate * hours).round()


def format_period(period: DateInterval) -> str:
    """Display form of a period, e.g. "April 1, 2025 - April 30, 2025"."""

    def _fmt(day: date) -> str:
        return f"{day.strftime('%B')} {day.day}, {day.year}"

    if period.start == period.end:
        return _fmt(period.start)
    return f"{_fmt(period.start)} - {_fmt(period.end)}"


def format_invoice_number(prefix: str, year: int, sequence: int) -> str:
    """Sequential invoice number, e.g. ``INV-2025-0007``."""
    if sequence < 1:
        raise ValueError(f"Invoice sequence must be positive, got {sequence}")
    return f"{prefix}-{year}-{sequence:04d}"


def _entry_span(entries: Sequence[TimeEntry]) -> DateInterval:
    days = [entry.entry_date for entry in entries]
    return DateInterval(min(days), max(days))


def _check_snapshot(
    engagement: Engagement,
    entries: Sequence[TimeEntry],
    period: DateInterval,
) -> None:
    for entry in entries:
        if entry.engagement_id != engagement.id:
            raise EngagementMismatchError(engagement.id, entry.id, entry.engagement_id)
        if not period.contains(entry.entry_date):
            raise InvalidTimeEntryError(
                entry.id,
                f"dated {entry.entry_date.isoformat()}, outside billing period {period}",
            )


def hourly_lines(
    engagement: Engagement,
    entries: Sequence[TimeEntry],
    mode: AggregationMode = AggregationMode.SUMMARY,
) -> tuple[InvoiceLineItem, ...]:
    """
    Line items for an hourly engagement.

    SUMMARY: a single line carrying the total hours, described by project
    and the span of the entries.  The period range is part of that line's
    description, not a second zero-amount line, so a summary invoice has
    exactly one line.  ITEMIZED: one line per entry, in input order, each
    back-referencing its entry.
    """
    if not entries:
        return ()

    rate = engagement.rate
    if AggregationMode(mode) is AggregationMode.ITEMIZED:
        return tuple(
            InvoiceLineItem(
                description=(
                    f"{entry.entry_date.isoformat()}: "
                    f"{entry.description or f'Professional services - {engagement.project_name}'}"
                ),
                hours=entry.hours,
                rate=rate,
                amount=line_amount(entry.hours, rate),
                time_entry_id=entry.id,
            )
            for entry in entries
        )

    total_hours = sum((entry.hours for entry in entries), _ZERO_HOURS)
    return (
        InvoiceLineItem(
            description=(
                f"Professional services: {engagement.project_name} "
                f"({format_period(_entry_span(entries))})"
            ),
            hours=total_hours,
            rate=rate,
            amount=line_amount(total_hours, rate),
        ),
    )


def fixed_fee_line(engagement: Engagement, period: DateInterval) -> InvoiceLineItem:
    """The single line of a fixed-fee invoice."""
    fee = engagement.fee.round()
    return InvoiceLineItem(
        description=f"Project fee for {engagement.project_name} ({format_period(period)})",
        hours=_ZERO_HOURS,
        rate=fee,
        amount=fee,
    )


# ============================================================================
# Invoice construction
# ============================================================================


def verify_reconciliation(invoice: Invoice) -> None:
    """
    Check the invoice against its own lines.

    total_amount must equal the sum of line amounts; total_hours must equal
    the sum of line hours (hourly) or zero (fixed-fee).

    Raises:
        RoundingMismatchError: Always a programming error.
    """
    line_sum = invoice.line_sum()
    if line_sum.amount != invoice.total_amount.amount:
        logger.error("invoice_reconciliation_failed", extra={
            "declared_total": str(invoice.total_amount.amount),
            "line_sum": str(line_sum.amount),
        })
        raise RoundingMismatchError(invoice.total_amount.amount, line_sum.amount)

    expected_hours = (
        invoice.hours_sum() if invoice.billing_mode is BillingMode.HOURLY else _ZERO_HOURS
    )
    if invoice.total_hours != expected_hours:
        logger.error("invoice_hours_reconciliation_failed", extra={
            "declared_hours": str(invoice.total_hours),
            "line_hours": str(expected_hours),
        })
        raise RoundingMismatchError(invoice.total_hours, expected_hours)


@traced_engine(
    "billing",
    "1.0",
    fingerprint_fields=("engagement", "line_source", "period", "issue_date", "mode"),
)
def build_invoice(
    engagement: Engagement,
    line_source: Sequence[TimeEntry] | None,
    period: DateInterval,
    *,
    issue_date: date,
    mode: AggregationMode = AggregationMode.SUMMARY,
    allow_empty: bool = False,
    invoice_number: str | None = None,
    invoice_id: UUID | None = None,
) -> Invoice:
    """
    Build an invoice value for one engagement over one period.

    Pure function - no side effects, no I/O, deterministic output.

    Args:
        engagement: Billing terms (mode, rate or fee, net terms, currency).
        line_source: Fixed snapshot of time entries, in billing order.
            Ignored for fixed-fee engagements.
        period: The billing window.  Every entry must fall inside it.
        issue_date: Invoice date; due date is issue_date + net terms.
        mode: Hourly line aggregation.
        allow_empty: Permit a zero-amount invoice (drafts/placeholders).
        invoice_number: Optional number assigned by the caller.
        invoice_id: Optional identifier assigned by the caller.

    Returns:
        An Invoice in SUBMITTED status.

    Raises:
        EngagementMismatchError: An entry belongs to another engagement.
        InvalidTimeEntryError: An entry falls outside ``period``.
        EmptyInvoiceError: No billable amount and ``allow_empty`` is False.
        RoundingMismatchError: Totals do not reconcile (defect).
    """
    t0 = time.monotonic()
    mode = AggregationMode(mode)

    logger.info("invoice_build_started", extra={
        "engagement_id": str(engagement.id),
        "billing_mode": engagement.billing_mode.value,
        "aggregation_mode": mode.value,
        "period_start": period.start.isoformat(),
        "period_end": period.end.isoformat(),
    })

    if engagement.billing_mode is BillingMode.HOURLY:
        entries = tuple(line_source or ())
        _check_snapshot(engagement, entries, period)
        lines = hourly_lines(engagement, entries, mode)
        invoice_period = _entry_span(entries) if entries else period
        total_hours = sum((line.hours for line in lines), _ZERO_HOURS)
    else:
        lines = (fixed_fee_line(engagement, period),)
        invoice_period = period
        total_hours = _ZERO_HOURS

    total_amount = sum_money([line.amount for line in lines], engagement.currency)

    if total_amount.is_zero and not allow_empty:
        logger.warning("invoice_rejected_empty", extra={
            "engagement_id": str(engagement.id),
            "line_count": len(lines),
        })
        raise EmptyInvoiceError(engagement.id, len(lines), total_amount.amount)

    invoice = Invoice(
        id=invoice_id,
        invoice_number=invoice_number,
        engagement_id=engagement.id,
        billing_mode=engagement.billing_mode,
        client_name=engagement.client_name,
        project_name=engagement.project_name,
        issue_date=issue_date,
        due_date=issue_date + timedelta(days=engagement.net_terms_days),
        period_start=invoice_period.start,
        period_end=invoice_period.end,
        total_amount=total_amount,
        total_hours=total_hours,
        line_items=lines,
        status=InvoiceStatus.SUBMITTED,
    )
    verify_reconciliation(invoice)

    duration_ms = round((time.monotonic() - t0) * 1000, 2)
    logger.info("invoice_built", extra={
        "engagement_id": str(engagement.id),
        "total_amount": str(total_amount.amount),
        "total_hours": str(total_hours),
        "line_item_count": len(lines),
        "due_date": invoice.due_date.isoformat(),
        "duration_ms": duration_ms,
    })
    return invoice

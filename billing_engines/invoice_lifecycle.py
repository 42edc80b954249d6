"""
Module: billing_engines.invoice_lifecycle
Responsibility:
    Invoice status state machine and the overdue sweep.

        SUBMITTED --(user)--> PAID        (terminal)
        SUBMITTED --(sweep)-> OVERDUE
        OVERDUE   --(user)--> PAID

Architecture position:
    Engines -- pure calculation layer, zero I/O.  The sweep computes
    transitions; the caller applies and persists them.

Invariants enforced:
    - Only SUBMITTED invoices whose due date is strictly before today (in
      the reference timezone) become OVERDUE.
    - PAID is never left, whatever the due date.
    - The sweep is idempotent: invoices already OVERDUE or PAID produce no
      transition, so re-running it (or running it concurrently) is a no-op.

Failure modes:
    - InvalidInvoiceTransitionError for any transition not in the table.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import date, datetime, timezone, tzinfo

from billing_kernel.domain.dates import to_calendar_date
from billing_kernel.domain.dtos import Invoice, InvoiceStatus, StatusTransition
from billing_kernel.exceptions import InvalidInvoiceTransitionError
from billing_kernel.logging_config import get_logger
from billing_engines.tracer import traced_engine

logger = get_logger("engines.invoice_lifecycle")

ALLOWED_TRANSITIONS: dict[InvoiceStatus, frozenset[InvoiceStatus]] = {
    InvoiceStatus.SUBMITTED: frozenset({InvoiceStatus.PAID, InvoiceStatus.OVERDUE}),
    InvoiceStatus.OVERDUE: frozenset({InvoiceStatus.PAID}),
    InvoiceStatus.PAID: frozenset(),
}


def can_transition(from_status: InvoiceStatus, to_status: InvoiceStatus) -> bool:
    return InvoiceStatus(to_status) in ALLOWED_TRANSITIONS[InvoiceStatus(from_status)]


def transition(invoice: Invoice, to_status: InvoiceStatus) -> Invoice:
    """
    Apply a single status change.

    Raises:
        InvalidInvoiceTransitionError
    """
    to_status = InvoiceStatus(to_status)
    if not can_transition(invoice.status, to_status):
        raise InvalidInvoiceTransitionError(invoice.id, invoice.status.value, to_status.value)
    return invoice.with_status(to_status)


def mark_paid(invoice: Invoice) -> Invoice:
    """User action: SUBMITTED or OVERDUE -> PAID."""
    return transition(invoice, InvoiceStatus.PAID)


def is_past_due(invoice: Invoice, today: date) -> bool:
    return invoice.due_date < today


def days_past_due(invoice: Invoice, today: date) -> int:
    """Whole days since the due date; 0 when not yet due."""
    return max(0, (today - invoice.due_date).days)


@traced_engine("invoice_lifecycle", "1.0")
def sweep_overdue(
    invoices: Iterable[Invoice],
    now: date | datetime,
    tz: tzinfo = timezone.utc,
) -> tuple[StatusTransition, ...]:
    """
    Transitions for every SUBMITTED invoice past its due date.

    Invoices in any other status are ignored, so callers may pass an
    unfiltered list.  Order of the result follows the input order.
    """
    today = to_calendar_date(now, tz)
    examined = 0
    transitions = []
    for invoice in invoices:
        examined += 1
        if invoice.status is not InvoiceStatus.SUBMITTED:
            continue
        if is_past_due(invoice, today):
            transitions.append(StatusTransition(
                invoice_id=invoice.id,
                from_status=InvoiceStatus.SUBMITTED,
                to_status=InvoiceStatus.OVERDUE,
            ))

    logger.info("overdue_sweep_computed", extra={
        "as_of": today.isoformat(),
        "examined_count": examined,
        "transition_count": len(transitions),
    })
    return tuple(transitions)


def apply_transitions(
    invoices: Sequence[Invoice],
    transitions: Iterable[StatusTransition],
) -> tuple[Invoice, ...]:
    """
    Invoices with the given transitions applied.

    A transition whose ``from_status`` no longer matches the invoice (for
    example, paid since the sweep ran) is skipped.
    """
    by_id = {t.invoice_id: t for t in transitions}
    result = []
    for invoice in invoices:
        change = by_id.get(invoice.id)
        if change is not None and invoice.status is change.from_status:
            invoice = transition(invoice, change.to_status)
        result.append(invoice)
    return tuple(result)

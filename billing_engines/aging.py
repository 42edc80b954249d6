"""
Module: billing_engines.aging
Responsibility:
    Classify open (submitted or overdue) invoices into days-past-due buckets
    for the receivables view.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - Age is measured from the due date; invoices not yet due are Current.
    - Bucket totals sum to the report total.
    - Paid invoices never appear in the report.

Usage:
    report = age_open_invoices(invoices, as_of=date(2025, 6, 30), currency="USD")
    report.total_by_bucket()["31-60"]
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date
from uuid import UUID

from billing_kernel.domain.dtos import Invoice
from billing_kernel.domain.values import Money, sum_money
from billing_kernel.logging_config import get_logger
from billing_engines.invoice_lifecycle import days_past_due

logger = get_logger("engines.aging")


@dataclass(frozen=True)
class AgeBucket:
    """A contiguous range of days past due.  ``max_days`` None is unbounded."""

    name: str
    min_days: int
    max_days: int | None

    def __post_init__(self) -> None:
        if self.min_days < 0:
            raise ValueError("min_days cannot be negative")
        if self.max_days is not None and self.max_days < self.min_days:
            raise ValueError("max_days cannot be less than min_days")

    def contains(self, age_days: int) -> bool:
        if age_days < self.min_days:
            return False
        return self.max_days is None or age_days <= self.max_days


STANDARD_BUCKETS: tuple[AgeBucket, ...] = (
    AgeBucket("Current", 0, 0),
    AgeBucket("1-30", 1, 30),
    AgeBucket("31-60", 31, 60),
    AgeBucket("61-90", 61, 90),
    AgeBucket("Over 90", 91, None),
)


def classify(age_days: int, buckets: Sequence[AgeBucket] = STANDARD_BUCKETS) -> AgeBucket:
    """
    Bucket for a non-negative age.

    Raises:
        ValueError: If the buckets leave a gap covering ``age_days``.
    """
    for bucket in buckets:
        if bucket.contains(age_days):
            return bucket
    raise ValueError(f"Age {age_days} does not fit any bucket")


@dataclass(frozen=True)
class AgedInvoice:
    invoice_id: UUID | None
    invoice_number: str | None
    client_name: str | None
    due_date: date
    amount: Money
    days_past_due: int
    bucket: AgeBucket


@dataclass(frozen=True)
class ReceivablesAgingReport:
    as_of_date: date
    currency: str
    buckets: tuple[AgeBucket, ...]
    items: tuple[AgedInvoice, ...]

    def total_amount(self) -> Money:
        return sum_money([item.amount for item in self.items], self.currency)

    def total_by_bucket(self) -> dict[str, Money]:
        """Every bucket name mapped to its total, zero when empty."""
        return {
            bucket.name: sum_money(
                [i.amount for i in self.items if i.bucket.name == bucket.name],
                self.currency,
            )
            for bucket in self.buckets
        }

    def items_in_bucket(self, bucket_name: str) -> tuple[AgedInvoice, ...]:
        return tuple(i for i in self.items if i.bucket.name == bucket_name)


def age_open_invoices(
    invoices: Iterable[Invoice],
    as_of: date,
    currency: str = "USD",
    buckets: Sequence[AgeBucket] = STANDARD_BUCKETS,
) -> ReceivablesAgingReport:
    """Aging report over the open invoices in ``invoices``, oldest first."""
    items = []
    for invoice in invoices:
        if not invoice.is_open:
            continue
        age = days_past_due(invoice, as_of)
        items.append(AgedInvoice(
            invoice_id=invoice.id,
            invoice_number=invoice.invoice_number,
            client_name=invoice.client_name,
            due_date=invoice.due_date,
            amount=invoice.total_amount,
            days_past_due=age,
            bucket=classify(age, buckets),
        ))

    items.sort(key=lambda i: (-i.days_past_due, i.due_date))
    report = ReceivablesAgingReport(
        as_of_date=as_of,
        currency=currency,
        buckets=tuple(buckets),
        items=tuple(items),
    )
    logger.info("receivables_aging_generated", extra={
        "as_of": as_of.isoformat(),
        "item_count": len(items),
        "total_amount": str(report.total_amount().amount),
    })
    return report

"""
Module: billing_engines.dashboard
Responsibility:
    Practice-level metrics: year-to-date revenue, monthly revenue and
    billable hours, hours logged in a window, open receivables, and
    engagement counts by lifecycle state.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  Inputs are snapshots the
    caller loaded; ``today`` comes from the caller's clock.

Invariants enforced:
    - Revenue counts PAID invoices only, attributed to the issue date.
    - Pending counts SUBMITTED and OVERDUE invoices.
    - Engagement states come from the status resolver, never the cache.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date, timezone, tzinfo
from decimal import Decimal

from billing_kernel.domain.dtos import (
    DateInterval,
    Engagement,
    EngagementStatus,
    Invoice,
    InvoiceStatus,
    TimeEntry,
)
from billing_kernel.domain.values import Money, sum_money
from billing_kernel.logging_config import get_logger
from billing_engines.engagement_status import engagement_status
from billing_engines.tracer import traced_engine

logger = get_logger("engines.dashboard")


@dataclass(frozen=True)
class MonthlyRevenue:
    month: int  # 1-12
    revenue: Money
    billable_hours: Decimal


@dataclass(frozen=True)
class DashboardMetrics:
    as_of: date
    ytd_revenue: Money
    pending_total: Money
    overdue_total: Money
    month_to_date_hours: Decimal
    engagement_counts: dict[EngagementStatus, int]
    monthly: tuple[MonthlyRevenue, ...]


def ytd_revenue(invoices: Iterable[Invoice], year: int, currency: str = "USD") -> Money:
    """Total of PAID invoices issued in ``year``."""
    return sum_money(
        [
            inv.total_amount
            for inv in invoices
            if inv.status is InvoiceStatus.PAID and inv.issue_date.year == year
        ],
        currency,
    )


def pending_invoices_total(invoices: Iterable[Invoice], currency: str = "USD") -> Money:
    """Total still awaiting payment (submitted or overdue)."""
    return sum_money([inv.total_amount for inv in invoices if inv.is_open], currency)


def total_hours_logged(entries: Iterable[TimeEntry], interval: DateInterval) -> Decimal:
    return sum(
        (entry.hours for entry in entries if interval.contains(entry.entry_date)),
        Decimal("0"),
    )


def monthly_revenue(
    invoices: Sequence[Invoice],
    entries: Sequence[TimeEntry],
    year: int,
    currency: str = "USD",
) -> tuple[MonthlyRevenue, ...]:
    """Twelve rows: paid revenue by issue month, hours by entry month."""
    revenue = {month: Money.zero(currency) for month in range(1, 13)}
    hours = {month: Decimal("0") for month in range(1, 13)}

    for inv in invoices:
        if inv.status is InvoiceStatus.PAID and inv.issue_date.year == year:
            revenue[inv.issue_date.month] = revenue[inv.issue_date.month] + inv.total_amount
    for entry in entries:
        if entry.entry_date.year == year:
            hours[entry.entry_date.month] += entry.hours

    return tuple(
        MonthlyRevenue(month=month, revenue=revenue[month], billable_hours=hours[month])
        for month in range(1, 13)
    )


@traced_engine("dashboard", "1.0")
def compute_dashboard(
    engagements: Sequence[Engagement],
    entries: Sequence[TimeEntry],
    invoices: Sequence[Invoice],
    today: date,
    currency: str = "USD",
    tz: tzinfo = timezone.utc,
) -> DashboardMetrics:
    """All dashboard metrics as of ``today``."""
    counts = {status: 0 for status in EngagementStatus}
    for engagement in engagements:
        counts[engagement_status(engagement, today, tz)] += 1

    month = DateInterval(today.replace(day=1), today)
    metrics = DashboardMetrics(
        as_of=today,
        ytd_revenue=ytd_revenue(invoices, today.year, currency),
        pending_total=pending_invoices_total(invoices, currency),
        overdue_total=sum_money(
            [inv.total_amount for inv in invoices if inv.status is InvoiceStatus.OVERDUE],
            currency,
        ),
        month_to_date_hours=total_hours_logged(entries, month),
        engagement_counts=counts,
        monthly=monthly_revenue(invoices, entries, today.year, currency),
    )

    logger.info("dashboard_computed", extra={
        "as_of": today.isoformat(),
        "ytd_revenue": str(metrics.ytd_revenue.amount),
        "pending_total": str(metrics.pending_total.amount),
        "active_engagements": counts[EngagementStatus.ACTIVE],
    })
    return metrics

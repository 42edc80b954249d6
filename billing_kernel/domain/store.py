"""
BillingStore -- the narrow read interface the engines' callers depend on.

The engines never import a store.  Services receive something satisfying
this protocol (the SQLAlchemy ``BillingSelector`` in production, a plain
in-memory object in tests) and hand the engines fixed snapshots.
"""

from __future__ import annotations

from datetime import date
from typing import Protocol, runtime_checkable
from uuid import UUID

from billing_kernel.domain.dtos import Engagement, Invoice, InvoiceStatus, TimeEntry


@runtime_checkable
class BillingStore(Protocol):
    """Read-side contract for engagements, time entries and invoices."""

    def load_engagement(self, engagement_id: UUID) -> Engagement:
        """Raises EngagementNotFoundError when missing."""
        ...

    def load_time_entries(
        self,
        engagement_id: UUID,
        period_start: date,
        period_end: date,
    ) -> tuple[TimeEntry, ...]:
        """Entries dated within [period_start, period_end], ordered by date."""
        ...

    def load_invoices_by_status(self, status: InvoiceStatus) -> tuple[Invoice, ...]:
        ...

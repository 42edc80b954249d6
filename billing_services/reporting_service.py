"""
billing_services.reporting_service -- Dashboard metrics and receivables aging.

Responsibility:
    Load the snapshots the reporting engines need and run them as of today
    in the reference timezone.

Architecture position:
    Services -- read-only orchestration over engines + kernel.

Invariants enforced:
    - Totals are computed in the configured currency; invoices in any other
      currency are left out and counted in the log record.
"""

from __future__ import annotations

from datetime import date

from sqlalchemy.orm import Session

from billing_config import BillingConfig
from billing_engines.aging import ReceivablesAgingReport, age_open_invoices
from billing_engines.dashboard import DashboardMetrics, compute_dashboard
from billing_kernel.domain.clock import Clock, SystemClock
from billing_kernel.domain.dtos import Invoice
from billing_kernel.logging_config import get_logger
from billing_kernel.selectors.billing_selector import BillingSelector

logger = get_logger("services.reporting")


class ReportingService:
    """Read-only reports over the billing store."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: BillingConfig | None = None,
    ):
        self._clock = clock or SystemClock()
        self._config = config or BillingConfig()
        self._selector = BillingSelector(session)

    def _invoices_in_currency(self, invoices: tuple[Invoice, ...]) -> list[Invoice]:
        kept = [inv for inv in invoices if inv.currency.code == self._config.currency]
        if len(kept) != len(invoices):
            logger.info("report_invoices_excluded_by_currency", extra={
                "currency": self._config.currency,
                "excluded_count": len(invoices) - len(kept),
            })
        return kept

    def dashboard(self) -> DashboardMetrics:
        today = self._clock.today(self._config.tz)
        return compute_dashboard(
            self._selector.list_engagements(),
            self._selector.list_time_entries(),
            self._invoices_in_currency(self._selector.list_invoices()),
            today,
            currency=self._config.currency,
            tz=self._config.tz,
        )

    def receivables_aging(self, as_of: date | None = None) -> ReceivablesAgingReport:
        """Open invoices bucketed by days past due as of ``as_of`` (default today)."""
        as_of = as_of or self._clock.today(self._config.tz)
        return age_open_invoices(
            self._invoices_in_currency(self._selector.list_invoices()),
            as_of=as_of,
            currency=self._config.currency,
        )

"""
BillingConfig schema.

The human-authored YAML file is parsed into this frozen dataclass by
``billing_config.loader``; nothing at runtime reads YAML directly.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import tzinfo

from billing_kernel.domain.dates import resolve_timezone
from billing_kernel.domain.dtos import DEFAULT_NET_TERMS_DAYS
from billing_engines.billing import AggregationMode


@dataclass(frozen=True)
class BillingConfig:
    """
    Practice-wide billing settings.

    Attributes:
        reference_timezone: Zone in which "today" and every date comparison
            is evaluated.
        currency: Default currency for new engagements and empty totals.
        default_net_terms_days: Net terms applied when an engagement does
            not specify its own.
        aggregation_mode: Default hourly line aggregation.
        allow_zero_amount_invoices: Default for the per-call ``allow_empty``
            override.
        freeze_invoiced_time_entries: Reject edits to entries already billed.
        invoice_number_prefix: Prefix of generated invoice numbers.
    """

    reference_timezone: str = "UTC"
    currency: str = "USD"
    default_net_terms_days: int = DEFAULT_NET_TERMS_DAYS
    aggregation_mode: AggregationMode = AggregationMode.SUMMARY
    allow_zero_amount_invoices: bool = False
    freeze_invoiced_time_entries: bool = True
    invoice_number_prefix: str = "INV"

    @property
    def tz(self) -> tzinfo:
        return resolve_timezone(self.reference_timezone)

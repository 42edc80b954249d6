"""
Module: billing_engines
Responsibility:
    Re-exports the public symbols of the pure calculation engines.  This is
    the import surface for the service layer.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May import billing_kernel.domain, billing_kernel.exceptions and
    billing_kernel.logging_config only.  MUST NOT import services,
    selectors, models or billing_config.

Invariants enforced:
    - Engines never call ``datetime.now()`` or ``date.today()``; the
      current instant is always a parameter.
    - Decimal-only money arithmetic.
    - Identical inputs produce identical outputs.

Usage:
    from billing_engines import (
        build_invoice,
        overlaps,
        resolve_engagement_status,
        resolve_named_range,
        sweep_overdue,
    )
"""

from billing_engines.aging import (
    STANDARD_BUCKETS,
    AgeBucket,
    AgedInvoice,
    ReceivablesAgingReport,
    age_open_invoices,
)
from billing_engines.billing import (
    AggregationMode,
    build_invoice,
    format_invoice_number,
    format_period,
    line_amount,
    verify_reconciliation,
)
from billing_engines.dashboard import (
    DashboardMetrics,
    MonthlyRevenue,
    compute_dashboard,
    monthly_revenue,
    pending_invoices_total,
    total_hours_logged,
    ytd_revenue,
)
from billing_engines.date_ranges import (
    DateRangeKey,
    custom_range,
    overlaps,
    parse_range_key,
    resolve_named_range,
)
from billing_engines.engagement_status import (
    engagement_status,
    filter_engagements,
    refresh_statuses,
    resolve_engagement_status,
)
from billing_engines.invoice_lifecycle import (
    ALLOWED_TRANSITIONS,
    apply_transitions,
    can_transition,
    days_past_due,
    mark_paid,
    sweep_overdue,
    transition,
)
from billing_engines.tracer import compute_input_fingerprint, traced_engine

__all__ = [
    "ALLOWED_TRANSITIONS",
    "STANDARD_BUCKETS",
    "AgeBucket",
    "AgedInvoice",
    "AggregationMode",
    "DashboardMetrics",
    "DateRangeKey",
    "MonthlyRevenue",
    "ReceivablesAgingReport",
    "age_open_invoices",
    "apply_transitions",
    "build_invoice",
    "can_transition",
    "compute_dashboard",
    "compute_input_fingerprint",
    "custom_range",
    "days_past_due",
    "engagement_status",
    "filter_engagements",
    "format_invoice_number",
    "format_period",
    "line_amount",
    "mark_paid",
    "monthly_revenue",
    "overlaps",
    "parse_range_key",
    "pending_invoices_total",
    "refresh_statuses",
    "resolve_engagement_status",
    "resolve_named_range",
    "sweep_overdue",
    "total_hours_logged",
    "traced_engine",
    "transition",
    "verify_reconciliation",
    "ytd_revenue",
]

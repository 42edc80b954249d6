"""
Billing kernel -- domain values, persistence adapter, and services for the
consulting billing system.

Layers:
    domain/     Pure value objects, DTOs, clock, store protocol.
    db/         SQLAlchemy engine and declarative base.
    models/     ORM records (engagements, time entries, invoices).
    selectors/  Read side: ORM rows -> frozen DTOs (BillingStore).
    services/   Flush-only service base and invoice sequence counters.

The pure calculation layer lives in ``billing_engines``, orchestration in
``billing_services`` and configuration in ``billing_config``.
"""

"""
billing_services -- Stateful orchestration over billing engines and the kernel.

Services receive a SQLAlchemy Session, a Clock and a BillingConfig through
their constructor, flush but never commit, and return frozen domain DTOs.
"""

from billing_services.engagement_service import EngagementService
from billing_services.invoice_service import InvoiceService
from billing_services.reporting_service import ReportingService
from billing_services.time_entry_service import TimeEntryService

__all__ = [
    "EngagementService",
    "InvoiceService",
    "ReportingService",
    "TimeEntryService",
]

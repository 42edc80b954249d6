"""ORM models.  Importing this package registers every table on Base.metadata."""

from billing_kernel.models.engagement import EngagementRecord
from billing_kernel.models.invoice import BilledTimeEntryRecord, InvoiceLineRecord, InvoiceRecord
from billing_kernel.models.sequence import SequenceCounter
from billing_kernel.models.time_entry import TimeEntryRecord

__all__ = [
    "BilledTimeEntryRecord",
    "EngagementRecord",
    "InvoiceLineRecord",
    "InvoiceRecord",
    "SequenceCounter",
    "TimeEntryRecord",
]

"""
Typed exception hierarchy for the billing kernel.

Every exception carries a class-level ``code`` (machine-readable, stable
across message rewording) and stores its context as attributes so that the
HTTP layer can map it to a response without parsing messages, and the
structured log formatter can emit it as ``exc_*`` fields.

    BillingKernelError
    |
    +-- BillingValidationError
    |   +-- InvalidRangeError
    |   +-- InvalidDateFormatError
    |   +-- UnknownDateRangeError
    |   +-- InvalidBillingTermsError
    |   +-- InvalidTimeEntryError
    |
    +-- InvoiceError
    |   +-- EmptyInvoiceError
    |   +-- RoundingMismatchError
    |   +-- EngagementMismatchError
    |   +-- InvalidInvoiceTransitionError
    |   +-- DuplicateInvoiceError
    |
    +-- TimeEntryFrozenError
    |
    +-- NotFoundError
        +-- EngagementNotFoundError
        +-- InvoiceNotFoundError
        +-- TimeEntryNotFoundError

Propagation policy: the kernel never retries and never substitutes a
default for a failed computation.  All of these are recovered at the
boundary.  ``RoundingMismatchError`` signals a programming error and
should never be caught for recovery.
"""

from datetime import date
from decimal import Decimal
from typing import Any


class BillingKernelError(Exception):
    """Base exception for all billing kernel errors."""

    code: str = "BILLING_KERNEL_ERROR"


# Validation


class BillingValidationError(BillingKernelError):
    """Base exception for rejected input."""

    code: str = "VALIDATION_ERROR"


class InvalidRangeError(BillingValidationError):
    """End date precedes start date."""

    code: str = "INVALID_RANGE"

    def __init__(self, start_date: date, end_date: date):
        self.start_date = start_date
        self.end_date = end_date
        super().__init__(
            f"End date {end_date} precedes start date {start_date}"
        )


class InvalidDateFormatError(BillingValidationError):
    """A caller-supplied date or custom range could not be used."""

    code: str = "INVALID_DATE_FORMAT"

    def __init__(self, value: Any, reason: str = "not a calendar date"):
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid date {value!r}: {reason}")


class UnknownDateRangeError(BillingValidationError):
    """Range keyword is not part of the supported set."""

    code: str = "UNKNOWN_DATE_RANGE"

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"Unknown date range: {key!r}")


class InvalidBillingTermsError(BillingValidationError):
    """Engagement billing mode and rate/fee fields disagree."""

    code: str = "INVALID_BILLING_TERMS"

    def __init__(self, billing_mode: str, reason: str):
        self.billing_mode = billing_mode
        self.reason = reason
        super().__init__(f"Invalid billing terms for {billing_mode}: {reason}")


class InvalidTimeEntryError(BillingValidationError):
    """Time entry hours or date are out of bounds."""

    code: str = "INVALID_TIME_ENTRY"

    def __init__(self, entry_id: Any, reason: str):
        self.entry_id = entry_id
        self.reason = reason
        super().__init__(f"Invalid time entry {entry_id}: {reason}")


# Invoices


class InvoiceError(BillingKernelError):
    """Base exception for invoice construction and lifecycle errors."""

    code: str = "INVOICE_ERROR"


class EmptyInvoiceError(InvoiceError):
    """Invoice would carry no billable content."""

    code: str = "EMPTY_INVOICE"

    def __init__(self, engagement_id: Any, line_count: int, total: Decimal):
        self.engagement_id = engagement_id
        self.line_count = line_count
        self.total = total
        super().__init__(
            f"Refusing to build empty invoice for engagement {engagement_id}: "
            f"{line_count} line(s), total {total}"
        )


class RoundingMismatchError(InvoiceError):
    """Sum of line amounts does not equal the declared total.

    Fatal: indicates a defect in the aggregator, not bad input.
    """

    code: str = "ROUNDING_MISMATCH"

    def __init__(self, declared_total: Decimal, line_sum: Decimal):
        self.declared_total = declared_total
        self.line_sum = line_sum
        super().__init__(
            f"Invoice total {declared_total} does not equal line sum {line_sum}"
        )


class EngagementMismatchError(InvoiceError):
    """A time entry in the snapshot belongs to a different engagement."""

    code: str = "ENGAGEMENT_MISMATCH"

    def __init__(self, engagement_id: Any, entry_id: Any, entry_engagement_id: Any):
        self.engagement_id = engagement_id
        self.entry_id = entry_id
        self.entry_engagement_id = entry_engagement_id
        super().__init__(
            f"Time entry {entry_id} belongs to engagement {entry_engagement_id}, "
            f"not {engagement_id}"
        )


class InvalidInvoiceTransitionError(InvoiceError):
    """Requested status change is not allowed by the lifecycle."""

    code: str = "INVALID_INVOICE_TRANSITION"

    def __init__(self, invoice_id: Any, from_status: str, to_status: str):
        self.invoice_id = invoice_id
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Invoice {invoice_id} cannot move from {from_status} to {to_status}"
        )


class DuplicateInvoiceError(InvoiceError):
    """An invoice already exists for this engagement and period."""

    code: str = "DUPLICATE_INVOICE"

    def __init__(self, engagement_id: Any, period_start: date, period_end: date):
        self.engagement_id = engagement_id
        self.period_start = period_start
        self.period_end = period_end
        super().__init__(
            f"Engagement {engagement_id} already invoiced for "
            f"{period_start}..{period_end}"
        )


# Time entries


class TimeEntryFrozenError(BillingKernelError):
    """Time entry is referenced by an invoice and may not change."""

    code: str = "TIME_ENTRY_FROZEN"

    def __init__(self, entry_id: Any, invoice_id: Any):
        self.entry_id = entry_id
        self.invoice_id = invoice_id
        super().__init__(
            f"Time entry {entry_id} is billed on invoice {invoice_id}"
        )


# Lookups


class NotFoundError(BillingKernelError):
    """Base exception for missing records."""

    code: str = "NOT_FOUND"


class EngagementNotFoundError(NotFoundError):
    code: str = "ENGAGEMENT_NOT_FOUND"

    def __init__(self, engagement_id: Any):
        self.engagement_id = engagement_id
        super().__init__(f"Engagement not found: {engagement_id}")


class InvoiceNotFoundError(NotFoundError):
    code: str = "INVOICE_NOT_FOUND"

    def __init__(self, invoice_id: Any):
        self.invoice_id = invoice_id
        super().__init__(f"Invoice not found: {invoice_id}")


class TimeEntryNotFoundError(NotFoundError):
    code: str = "TIME_ENTRY_NOT_FOUND"

    def __init__(self, entry_id: Any):
        self.entry_id = entry_id
        super().__init__(f"Time entry not found: {entry_id}")

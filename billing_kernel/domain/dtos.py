"""
Domain DTOs -- frozen records passed between the store, engines and callers.

Responsibility:
    Typed, immutable shapes for engagements, time entries, invoices and date
    intervals.  Construction validates the record-level invariants so that an
    engine never sees, for example, an hourly engagement without a rate.

Architecture position:
    Kernel > Domain -- pure, zero I/O.  Selectors convert ORM rows into these
    types; services and engines only ever see these types.

Failure modes:
    - InvalidRangeError when an end date precedes its start date.
    - InvalidBillingTermsError when billing mode and rate/fee disagree.
    - InvalidTimeEntryError when hours are out of bounds.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime, timedelta
from decimal import Decimal
from enum import Enum
from uuid import UUID

from billing_kernel.domain.values import Currency, Money, to_decimal
from billing_kernel.exceptions import (
    InvalidBillingTermsError,
    InvalidRangeError,
    InvalidTimeEntryError,
)

DEFAULT_NET_TERMS_DAYS = 30
MAX_HOURS_PER_ENTRY = Decimal("8")


class BillingMode(str, Enum):
    """How an engagement is billed."""

    HOURLY = "hourly"
    FIXED_FEE = "fixed_fee"


class EngagementStatus(str, Enum):
    """Lifecycle state derived from the engagement's date range."""

    UPCOMING = "upcoming"
    ACTIVE = "active"
    COMPLETED = "completed"


class InvoiceStatus(str, Enum):
    """Invoice lifecycle state."""

    SUBMITTED = "submitted"
    PAID = "paid"
    OVERDUE = "overdue"


# ---------------------------------------------------------------------------
# Intervals
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DateInterval:
    """
    Closed calendar interval [start, end], both days inclusive.

    ``ALL_TIME`` (``date.min``..``date.max``) is the unbounded sentinel; it
    overlaps every interval so callers never special-case "no filter".
    """

    start: date
    end: date

    def __post_init__(self) -> None:
        for value in (self.start, self.end):
            if isinstance(value, datetime) or not isinstance(value, date):
                raise TypeError(f"DateInterval bounds must be dates, got {value!r}")
        if self.end < self.start:
            raise InvalidRangeError(self.start, self.end)

    @property
    def is_unbounded(self) -> bool:
        return self.start == date.min and self.end == date.max

    @property
    def days(self) -> int:
        """Number of calendar days covered."""
        return (self.end - self.start).days + 1

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end

    def to_datetime_bounds(self, tz) -> tuple[datetime, datetime | None]:
        """
        Half-open instant range [start 00:00, day-after-end 00:00) in ``tz``.

        The upper bound is None when the interval ends on ``date.max``.
        """
        lower = datetime.combine(self.start, datetime.min.time(), tzinfo=tz)
        if self.end == date.max:
            return lower, None
        upper = datetime.combine(self.end + timedelta(days=1), datetime.min.time(), tzinfo=tz)
        return lower, upper

    def __str__(self) -> str:
        return f"{self.start.isoformat()}..{self.end.isoformat()}"


ALL_TIME = DateInterval(date.min, date.max)


# ---------------------------------------------------------------------------
# Engagement
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Engagement:
    """
    A client contract.

    ``status`` is a denormalised cache written by the status resolver.  No
    business rule reads it.
    """

    id: UUID
    client_name: str
    project_name: str
    start_date: date
    end_date: date
    billing_mode: BillingMode
    hourly_rate: Decimal | None = None
    fixed_fee: Decimal | None = None
    net_terms_days: int = DEFAULT_NET_TERMS_DAYS
    currency: str = "USD"
    client_id: UUID | None = None
    description: str | None = None
    status: EngagementStatus | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "billing_mode", BillingMode(self.billing_mode))
        object.__setattr__(self, "currency", Currency(self.currency).code)
        if self.hourly_rate is not None:
            object.__setattr__(self, "hourly_rate", to_decimal(self.hourly_rate))
        if self.fixed_fee is not None:
            object.__setattr__(self, "fixed_fee", to_decimal(self.fixed_fee))
        if self.status is not None:
            object.__setattr__(self, "status", EngagementStatus(self.status))

        if self.end_date < self.start_date:
            raise InvalidRangeError(self.start_date, self.end_date)
        validate_billing_terms(self.billing_mode, self.hourly_rate, self.fixed_fee)
        if self.net_terms_days < 0:
            raise InvalidBillingTermsError(
                self.billing_mode.value, f"net terms must be >= 0, got {self.net_terms_days}"
            )

    @property
    def interval(self) -> DateInterval:
        return DateInterval(self.start_date, self.end_date)

    @property
    def rate(self) -> Money:
        """Hourly rate as Money.  Hourly engagements only."""
        if self.billing_mode is not BillingMode.HOURLY:
            raise InvalidBillingTermsError(self.billing_mode.value, "no hourly rate")
        return Money.of(self.hourly_rate, self.currency)

    @property
    def fee(self) -> Money:
        """Fixed fee as Money.  Fixed-fee engagements only."""
        if self.billing_mode is not BillingMode.FIXED_FEE:
            raise InvalidBillingTermsError(self.billing_mode.value, "no fixed fee")
        return Money.of(self.fixed_fee, self.currency)

    def with_status(self, status: EngagementStatus) -> Engagement:
        return replace(self, status=status)


def validate_billing_terms(
    billing_mode: BillingMode | str,
    hourly_rate: Decimal | None,
    fixed_fee: Decimal | None,
) -> None:
    """
    Exactly one of hourly rate / fixed fee is set, matching the mode.

    Raises:
        InvalidBillingTermsError
    """
    mode = BillingMode(billing_mode)
    if mode is BillingMode.HOURLY:
        if hourly_rate is None:
            raise InvalidBillingTermsError(mode.value, "hourly rate is required")
        if fixed_fee is not None:
            raise InvalidBillingTermsError(mode.value, "fixed fee must not be set")
        if hourly_rate < 0:
            raise InvalidBillingTermsError(mode.value, "hourly rate must be non-negative")
    else:
        if fixed_fee is None:
            raise InvalidBillingTermsError(mode.value, "fixed fee is required")
        if hourly_rate is not None:
            raise InvalidBillingTermsError(mode.value, "hourly rate must not be set")
        if fixed_fee < 0:
            raise InvalidBillingTermsError(mode.value, "fixed fee must be non-negative")


# ---------------------------------------------------------------------------
# Time entries
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TimeEntry:
    """One day's billable work against an engagement."""

    id: UUID
    engagement_id: UUID
    entry_date: date
    hours: Decimal
    description: str | None = None

    def __post_init__(self) -> None:
        if isinstance(self.entry_date, datetime) or not isinstance(self.entry_date, date):
            raise InvalidTimeEntryError(self.id, f"entry date must be a calendar date, got {self.entry_date!r}")
        try:
            hours = to_decimal(self.hours)
        except (TypeError, ValueError) as e:
            raise InvalidTimeEntryError(self.id, str(e)) from e
        validate_hours(self.id, hours)
        object.__setattr__(self, "hours", hours)


def validate_hours(entry_id: UUID | None, hours: Decimal) -> None:
    """0 < hours <= 8."""
    if hours <= 0:
        raise InvalidTimeEntryError(entry_id, f"hours must be positive, got {hours}")
    if hours > MAX_HOURS_PER_ENTRY:
        raise InvalidTimeEntryError(
            entry_id, f"hours must not exceed {MAX_HOURS_PER_ENTRY}, got {hours}"
        )


# ---------------------------------------------------------------------------
# Invoices
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class InvoiceLineItem:
    """
    One billed item.

    ``time_entry_id`` is a lookup-only back-reference; the line does not own
    the entry and survives the entry's deletion.
    """

    description: str
    hours: Decimal
    rate: Money
    amount: Money
    time_entry_id: UUID | None = None


@dataclass(frozen=True)
class Invoice:
    """
    A billing document for one engagement over one period.

    Only ``status`` changes after creation.
    """

    engagement_id: UUID
    billing_mode: BillingMode
    issue_date: date
    due_date: date
    period_start: date
    period_end: date
    total_amount: Money
    total_hours: Decimal
    line_items: tuple[InvoiceLineItem, ...] = field(default_factory=tuple)
    status: InvoiceStatus = InvoiceStatus.SUBMITTED
    id: UUID | None = None
    invoice_number: str | None = None
    client_name: str | None = None
    project_name: str | None = None

    @property
    def currency(self) -> Currency:
        return self.total_amount.currency

    @property
    def period(self) -> DateInterval:
        return DateInterval(self.period_start, self.period_end)

    @property
    def is_open(self) -> bool:
        """Submitted or overdue: awaiting payment."""
        return self.status in (InvoiceStatus.SUBMITTED, InvoiceStatus.OVERDUE)

    def line_sum(self) -> Money:
        total = Money.zero(self.currency)
        for line in self.line_items:
            total = total + line.amount
        return total

    def hours_sum(self) -> Decimal:
        return sum((line.hours for line in self.line_items), Decimal("0"))

    def with_status(self, status: InvoiceStatus) -> Invoice:
        return replace(self, status=status)


@dataclass(frozen=True)
class StatusTransition:
    """A status change computed by the lifecycle; the caller persists it."""

    invoice_id: UUID
    from_status: InvoiceStatus
    to_status: InvoiceStatus

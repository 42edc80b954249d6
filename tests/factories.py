"""Small DTO factories shared by engine and fuzzing tests."""

from datetime import date
from decimal import Decimal
from uuid import uuid4

from billing_kernel.domain.dtos import BillingMode, Engagement, TimeEntry


def make_engagement(
    *,
    billing_mode: BillingMode = BillingMode.HOURLY,
    hourly_rate: str | None = "100",
    fixed_fee: str | None = None,
    start_date: date = date(2025, 1, 1),
    end_date: date = date(2025, 12, 31),
    net_terms_days: int = 30,
    currency: str = "USD",
    project_name: str = "Data Platform Review",
) -> Engagement:
    if billing_mode is BillingMode.FIXED_FEE:
        hourly_rate = None
        fixed_fee = fixed_fee or "5000"
    return Engagement(
        id=uuid4(),
        client_name="Acme Corp",
        project_name=project_name,
        start_date=start_date,
        end_date=end_date,
        billing_mode=billing_mode,
        hourly_rate=Decimal(hourly_rate) if hourly_rate is not None else None,
        fixed_fee=Decimal(fixed_fee) if fixed_fee is not None else None,
        net_terms_days=net_terms_days,
        currency=currency,
    )


def make_entry(
    engagement: Engagement,
    entry_date: date,
    hours: str = "4",
    description: str | None = None,
) -> TimeEntry:
    return TimeEntry(
        id=uuid4(),
        engagement_id=engagement.id,
        entry_date=entry_date,
        hours=Decimal(hours),
        description=description,
    )

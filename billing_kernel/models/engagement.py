"""
Module: billing_kernel.models.engagement
Responsibility: ORM persistence for engagements (client contracts).
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - end_date >= start_date (ck_engagement_dates; also checked by the
      Engagement DTO before any write).
    - ``status`` is a cache written by the status resolver.  Nothing reads
      it to make a decision.

Deleting an engagement deletes its time entries and invoices.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import CheckConstraint, Date, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from billing_kernel.db.base import TrackedBase, UUIDString

if TYPE_CHECKING:
    from billing_kernel.models.invoice import InvoiceRecord
    from billing_kernel.models.time_entry import TimeEntryRecord


class EngagementRecord(TrackedBase):
    """A client contract with a date range and billing terms."""

    __tablename__ = "engagements"

    __table_args__ = (
        CheckConstraint("end_date >= start_date", name="ck_engagement_dates"),
        CheckConstraint("net_terms_days >= 0", name="ck_engagement_net_terms"),
        Index("idx_engagement_dates", "start_date", "end_date"),
    )

    client_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    client_name: Mapped[str] = mapped_column(String(200), nullable=False)
    project_name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)

    # "hourly" | "fixed_fee"
    billing_mode: Mapped[str] = mapped_column(String(20), nullable=False)
    hourly_rate: Mapped[Decimal | None] = mapped_column(nullable=True)
    fixed_fee: Mapped[Decimal | None] = mapped_column(nullable=True)
    net_terms_days: Mapped[int] = mapped_column(Integer, nullable=False, default=30)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="USD")

    # Cached lifecycle state
    status: Mapped[str | None] = mapped_column(String(20), nullable=True)

    time_entries: Mapped[list[TimeEntryRecord]] = relationship(
        back_populates="engagement",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    invoices: Mapped[list[InvoiceRecord]] = relationship(
        back_populates="engagement",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"<EngagementRecord {self.client_name}/{self.project_name}: {self.start_date}..{self.end_date}>"

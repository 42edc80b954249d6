"""
Module: billing_kernel.models.time_entry
Responsibility: ORM persistence for daily time entries.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - 0 < hours <= 8 (ck_time_entry_hours; also checked by the TimeEntry DTO).
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import CheckConstraint, Date, ForeignKey, Index, Numeric, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from billing_kernel.db.base import TrackedBase, UUIDString

if TYPE_CHECKING:
    from billing_kernel.models.engagement import EngagementRecord


class TimeEntryRecord(TrackedBase):
    """One day's billable hours against an engagement."""

    __tablename__ = "time_entries"

    __table_args__ = (
        CheckConstraint("hours > 0 AND hours <= 8", name="ck_time_entry_hours"),
        Index("idx_time_entry_engagement_date", "engagement_id", "entry_date"),
    )

    engagement_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("engagements.id", ondelete="CASCADE"),
        nullable=False,
    )
    entry_date: Mapped[date] = mapped_column(Date, nullable=False)
    hours: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    engagement: Mapped[EngagementRecord] = relationship(back_populates="time_entries")

    def __repr__(self) -> str:
        return f"<TimeEntryRecord {self.entry_date}: {self.hours}h>"

"""
Module: billing_kernel.models.invoice
Responsibility: ORM persistence for invoices and their line items.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - invoice_number is unique (uq_invoice_number).
    - At most one invoice per (engagement, period) (uq_invoice_period).
      The invoice service maps a violation to DuplicateInvoiceError.
    - Lines are owned by their invoice and ordered by ``line_no``.
    - ``invoice_lines.time_entry_id`` is a weak reference with no foreign
      key: deleting a time entry never touches a line.
    - A time entry is billed by at most one invoice (uq_billed_time_entry
      on ``invoice_time_entries``), in summary and itemized mode alike.

Only ``status`` and ``paid_date`` change after the row is written.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import Date, ForeignKey, Index, Integer, Numeric, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from billing_kernel.db.base import Base, TrackedBase, UUIDString

if TYPE_CHECKING:
    from billing_kernel.models.engagement import EngagementRecord


class InvoiceRecord(TrackedBase):
    """A billing document for one engagement over one period."""

    __tablename__ = "invoices"

    __table_args__ = (
        UniqueConstraint("invoice_number", name="uq_invoice_number"),
        UniqueConstraint("engagement_id", "period_start", "period_end", name="uq_invoice_period"),
        Index("idx_invoice_status_due", "status", "due_date"),
        Index("idx_invoice_issue_date", "issue_date"),
    )

    invoice_number: Mapped[str] = mapped_column(String(40), nullable=False)
    engagement_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("engagements.id", ondelete="CASCADE"),
        nullable=False,
    )

    # Snapshot of the engagement at issue time
    client_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    project_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    billing_mode: Mapped[str] = mapped_column(String(20), nullable=False)

    issue_date: Mapped[date] = mapped_column(Date, nullable=False)
    due_date: Mapped[date] = mapped_column(Date, nullable=False)
    period_start: Mapped[date] = mapped_column(Date, nullable=False)
    period_end: Mapped[date] = mapped_column(Date, nullable=False)

    # "submitted" | "paid" | "overdue"
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    paid_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(nullable=False)
    total_hours: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    engagement: Mapped[EngagementRecord] = relationship(back_populates="invoices")
    lines: Mapped[list[InvoiceLineRecord]] = relationship(
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceLineRecord.line_no",
        passive_deletes=True,
    )
    billed_entries: Mapped[list[BilledTimeEntryRecord]] = relationship(
        back_populates="invoice",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"<InvoiceRecord {self.invoice_number}: {self.status}>"


class InvoiceLineRecord(Base):
    """One billed item on an invoice."""

    __tablename__ = "invoice_lines"

    __table_args__ = (
        UniqueConstraint("invoice_id", "line_no", name="uq_invoice_line_no"),
        Index("idx_invoice_line_time_entry", "time_entry_id"),
    )

    invoice_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("invoices.id", ondelete="CASCADE"),
        nullable=False,
    )
    line_no: Mapped[int] = mapped_column(Integer, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    hours: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    rate: Mapped[Decimal] = mapped_column(nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)

    # Lookup-only back-reference; no foreign key
    time_entry_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    invoice: Mapped[InvoiceRecord] = relationship(back_populates="lines")


class BilledTimeEntryRecord(Base):
    """Link from an invoice to one time entry it billed."""

    __tablename__ = "invoice_time_entries"

    __table_args__ = (
        UniqueConstraint("time_entry_id", name="uq_billed_time_entry"),
        Index("idx_billed_time_entry_invoice", "invoice_id"),
    )

    invoice_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("invoices.id", ondelete="CASCADE"),
        nullable=False,
    )
    # Weak reference, like invoice_lines.time_entry_id
    time_entry_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    invoice: Mapped[InvoiceRecord] = relationship(back_populates="billed_entries")

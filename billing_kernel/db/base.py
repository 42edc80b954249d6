"""
Module: billing_kernel.db.base
Responsibility: Declarative base for the billing tables: string-stored UUID
    keys, one column type per Python type, and row timestamps.
Architecture position: Kernel > DB.  Every model imports from here; this
    module imports nothing from the kernel.

Invariants enforced:
    - Primary keys are uuid4 values, stored as 36-character strings so the
      schema runs unchanged on SQLite and PostgreSQL.
    - Money and rates map to Numeric(38, 9); hours columns narrow this to
      Numeric(10, 2)/Numeric(12, 2) explicitly.  Never float.
    - Calendar dates (engagement range, entry date, issue/due dates) are
      ``Date`` columns; only row timestamps are ``DateTime``.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import ClassVar
from uuid import UUID as PyUUID, uuid4

from sqlalchemy import BigInteger, Date, DateTime, Numeric, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


class UUIDString(TypeDecorator):
    """
    UUID stored as String(36).

    Accepts UUID objects or their string form on the way in (so string ids
    from a query parameter compare correctly) and always returns UUID.
    """

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if not isinstance(value, PyUUID):
            value = PyUUID(str(value))
        return str(value)

    def process_result_value(self, value, dialect):
        return PyUUID(value) if value is not None else None


class Base(DeclarativeBase):
    """Declarative base; every table gets a uuid4 ``id`` primary key."""

    type_annotation_map: ClassVar[dict] = {
        Decimal: Numeric(38, 9),
        date: Date,
        datetime: DateTime(timezone=True),
        PyUUID: UUIDString(),
        int: BigInteger,
    }

    id: Mapped[PyUUID] = mapped_column(primary_key=True, default=uuid4)


class TrackedBase(Base):
    """
    Abstract base with server-side row timestamps.

    ``created_at`` is also the tie-breaker when two time entries share a
    date, so the billing snapshot order is stable.
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(),
        onupdate=func.now(),
    )

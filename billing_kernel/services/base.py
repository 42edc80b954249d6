"""
BaseService -- abstract base for all services that write.

Responsibility:
    Common constructor and session-handling contract.  Concrete services
    receive a SQLAlchemy ``Session`` and use ``session.flush()`` -- never
    ``session.commit()``.

Invariants enforced:
    Transaction boundaries: services flush within the caller's transaction
    and never commit or roll back themselves.  The caller (``session_scope``
    or a test fixture) owns commit/rollback.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from billing_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for services.

    Non-goals:
        - Does NOT manage transaction lifecycle (commit/rollback).
        - Does NOT provide read queries; those belong in
          ``billing_kernel/selectors/``.
    """

    def __init__(self, session: Session):
        self.session = session

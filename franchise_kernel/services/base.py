"""
BaseService -- abstract base for all kernel services.

Responsibility:
    Common constructor and session contract for every mutating service.
    Services receive a SQLAlchemy ``Session`` and persist through
    ``session.flush()`` or Core statements executed on that session --
    never ``session.commit()``.

Architecture position:
    Kernel > Services -- imperative shell.  The facade in
    ``franchise_services.tracker`` owns commit and rollback.

Invariants enforced:
    - Services flush within the caller's transaction and never commit or
      roll back themselves.  This is what makes the franchise cascade one
      atomic unit: every step runs in the same transaction.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from franchise_kernel.db.base import Base
from franchise_kernel.domain.clock import Clock, SystemClock

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for all kernel services.

    Non-goals:
        - Does NOT manage transaction lifecycle (commit/rollback).
        - Does NOT provide read methods for callers; those live in
          ``franchise_kernel/selectors/``.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        """
        Args:
            session: SQLAlchemy session for database operations.
            clock: Time source for timestamps written by the service.
        """
        self.session = session
        self.clock = clock or SystemClock()

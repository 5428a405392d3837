"""
Module: franchise_kernel.selectors.base
Responsibility: Abstract base class for all read-only, scope-filtered
    queries.
Architecture position: Kernel > Selectors.  May import from db/, models/
    and domain/ (scopes, month keys, DTOs).  MUST NOT import from services/
    or outer layers.

Invariants enforced:
    - Read-only access: selectors never call session.add(), session.delete(),
      session.commit() or session.flush().
    - DTO return convention: selectors return frozen dataclasses, never ORM
      instances.
    - Every franchise-scoped query derives its tenant filter from the
      AccessScope argument, never from a bare caller-supplied id.
"""

from abc import ABC
from typing import Generic, TypeVar
from zoneinfo import ZoneInfo

from sqlalchemy.orm import Session

from franchise_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)

DEFAULT_REPORTING_TIMEZONE = "Asia/Jakarta"


class BaseSelector(ABC, Generic[ModelType]):
    """
    Abstract base class for all selectors.

    Guarantees:
        - session is stored as a public attribute for subclass query use.
        - ``tz`` is the reporting timezone month buckets are computed in.
    """

    def __init__(self, session: Session, tz: ZoneInfo | None = None):
        self.session = session
        self.tz = tz or ZoneInfo(DEFAULT_REPORTING_TIMEZONE)

"""
Module: franchise_kernel.db.change_capture
Responsibility: Collect row-level change events inside a session and hand
    them to a publisher only after the transaction commits.
Architecture position: Kernel > DB.  May import from domain/changes.py
    (pure value types) and domain/clock.py.

Invariants enforced:
    - Nothing is published for work that rolls back.  Pending events live in
      ``session.info`` and are discarded on rollback.
    - ORM inserts, updates and deletes of watched tables are captured by the
      after_flush listener.  Core statements (upserts, cascade deletes) are
      invisible to the ORM and must be recorded with ``note_change()``.

Failure modes:
    - An exception raised by the publisher is logged and does not affect the
      already committed transaction.
"""

from collections.abc import Callable
from uuid import UUID

from sqlalchemy import event
from sqlalchemy.orm import Session, sessionmaker

from franchise_kernel.domain.changes import (
    WATCHED_TABLE_NAMES,
    ChangeEvent,
    ChangeKind,
    WatchedTable,
)
from franchise_kernel.domain.clock import Clock, SystemClock
from franchise_kernel.logging_config import get_logger

logger = get_logger("db.change_capture")

_PENDING_KEY = "franchise_pending_changes"
_CLOCK_KEY = "franchise_change_clock"


def _pending(session: Session) -> list[ChangeEvent]:
    return session.info.setdefault(_PENDING_KEY, [])


def note_change(
    session: Session,
    table: WatchedTable,
    kind: ChangeKind,
    record_id: UUID | None,
    franchise_id: UUID | None,
) -> None:
    """Record a change made through a Core statement in this session."""
    clock: Clock = session.info.get(_CLOCK_KEY) or SystemClock()
    _pending(session).append(
        ChangeEvent(
            table=table,
            kind=kind,
            record_id=record_id,
            franchise_id=franchise_id,
            occurred_at=clock.now_utc(),
        )
    )


class ChangeCapture:
    """
    Session listeners bound to one session factory and one publisher.

    Attach with ``attach(factory)``; every session the factory creates then
    collects events and publishes them after commit.
    """

    def __init__(
        self,
        publish: Callable[[ChangeEvent], None],
        clock: Clock | None = None,
    ):
        self._publish = publish
        self._clock = clock or SystemClock()

    def attach(self, factory: sessionmaker) -> None:
        if not event.contains(factory, "after_flush", self._after_flush):
            event.listen(factory, "after_begin", self._after_begin)
            event.listen(factory, "after_flush", self._after_flush)
            event.listen(factory, "after_commit", self._after_commit)
            event.listen(factory, "after_rollback", self._after_rollback)

    def detach(self, factory: sessionmaker) -> None:
        for name, fn in (
            ("after_begin", self._after_begin),
            ("after_flush", self._after_flush),
            ("after_commit", self._after_commit),
            ("after_rollback", self._after_rollback),
        ):
            if event.contains(factory, name, fn):
                event.remove(factory, name, fn)

    def _after_begin(self, session, transaction, connection):
        session.info[_CLOCK_KEY] = self._clock

    def _after_flush(self, session, flush_context):
        for kind, objects in (
            (ChangeKind.INSERT, session.new),
            (ChangeKind.UPDATE, session.dirty),
            (ChangeKind.DELETE, session.deleted),
        ):
            for obj in objects:
                table = getattr(obj, "__tablename__", None)
                if table not in WATCHED_TABLE_NAMES:
                    continue
                if kind is ChangeKind.UPDATE and not session.is_modified(obj):
                    continue
                note_change(
                    session,
                    WatchedTable(table),
                    kind,
                    obj.id,
                    getattr(obj, "franchise_id", None),
                )

    def _after_commit(self, session):
        events = session.info.pop(_PENDING_KEY, [])
        for change in events:
            try:
                self._publish(change)
            except Exception:
                logger.exception(
                    "change_publish_failed",
                    extra={
                        "table": change.table.value,
                        "kind": change.kind.value,
                        "record_id": str(change.record_id),
                    },
                )
        if events:
            logger.debug("changes_published", extra={"count": len(events)})

    def _after_rollback(self, session):
        discarded = session.info.pop(_PENDING_KEY, [])
        if discarded:
            logger.debug("changes_discarded", extra={"count": len(discarded)})

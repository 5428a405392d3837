"""
ORM-level append-only enforcement for the role-change log.

===============================================================================
WHAT IS PROTECTED
===============================================================================

Role reassignment is the one mutation in the tracker whose history matters
after the fact: "who made this person a franchise owner, and when?"  The
RoleChange table is therefore append-only.  Rows are inserted by
RoleChangeAuditor in the same transaction as the binding upsert and are
never updated or deleted afterwards, not even by the franchise cascade.

Entity      | When Immutable          | Enforced by
------------|-------------------------|------------------------------------
RoleChange  | ALWAYS (from creation)  | before_update / before_delete here

===============================================================================
HOW IT WORKS
===============================================================================

    session.flush()
         |
         v
    [before_update event] --> _check_role_change_immutability() --+
         |                                                        |
    [before_delete event] --> _check_role_change_delete() --------+
         |                                                        v
         v                                      ImmutabilityViolationError
    SQL sent to database (only if checks pass)

The flush is aborted before any SQL reaches the database.  Bulk Core
statements bypass mapper events; no code path in the kernel issues them
against role_changes.

===============================================================================
USAGE
===============================================================================

Call ``register_immutability_listeners()`` once at startup (the facade does
this when it is constructed).  Tests that need to tamper with the log on
purpose call ``unregister_immutability_listeners()``.
"""

from sqlalchemy import event

from franchise_kernel.exceptions import ImmutabilityViolationError
from franchise_kernel.logging_config import get_logger

logger = get_logger("db.immutability")


def _check_role_change_immutability(mapper, connection, target):
    """Prevent any update to a RoleChange row."""
    from franchise_kernel.models.access import RoleChange

    if not isinstance(target, RoleChange):
        return

    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": "RoleChange",
            "entity_id": str(target.id),
            "operation": "UPDATE",
        },
    )
    raise ImmutabilityViolationError(
        entity_type="RoleChange",
        entity_id=str(target.id),
        reason="Role change entries are append-only and cannot be modified",
    )


def _check_role_change_delete(mapper, connection, target):
    """Prevent deletion of a RoleChange row."""
    from franchise_kernel.models.access import RoleChange

    if not isinstance(target, RoleChange):
        return

    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": "RoleChange",
            "entity_id": str(target.id),
            "operation": "DELETE",
        },
    )
    raise ImmutabilityViolationError(
        entity_type="RoleChange",
        entity_id=str(target.id),
        reason="Role change entries cannot be deleted",
    )


def register_immutability_listeners():
    """
    Register the append-only listeners.

    Safe to call more than once; an already registered listener is skipped.
    """
    from franchise_kernel.models.access import RoleChange

    if not event.contains(RoleChange, "before_update", _check_role_change_immutability):
        event.listen(RoleChange, "before_update", _check_role_change_immutability)
    if not event.contains(RoleChange, "before_delete", _check_role_change_delete):
        event.listen(RoleChange, "before_delete", _check_role_change_delete)


def _safe_remove_listener(target, event_name, listener_fn):
    """Remove an event listener, ignoring it if it was never registered."""
    if event.contains(target, event_name, listener_fn):
        event.remove(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove the append-only listeners.

    WARNING: Only use this in tests that deliberately modify the log.
    """
    from franchise_kernel.models.access import RoleChange

    _safe_remove_listener(RoleChange, "before_update", _check_role_change_immutability)
    _safe_remove_listener(RoleChange, "before_delete", _check_role_change_delete)

"""
Module: franchise_kernel.db.upsert
Responsibility: Dialect-aware ``INSERT ... ON CONFLICT`` construction.
Architecture position: Kernel > DB.

Every keyed write in the kernel (role bindings, percentage overrides,
profit-share records) is a single upsert statement so the storage layer's
unique constraint linearizes concurrent writers on the same key.  There is
never a read-then-insert window that could produce a second row.
"""

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session


def dialect_insert(session: Session, model):
    """
    Return an ``insert()`` construct that supports ``on_conflict_do_*``.

    Raises:
        NotImplementedError: for backends without ON CONFLICT support.
    """
    name = session.get_bind().dialect.name
    if name == "postgresql":
        return postgresql.insert(model)
    if name == "sqlite":
        return sqlite.insert(model)
    raise NotImplementedError(f"Upsert not supported on dialect '{name}'")

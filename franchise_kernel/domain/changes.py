"""
Row-level change events published to ChangeNotifier subscribers.

Events are hints: a subscriber re-fetches the affected aggregate rather than
applying the event as a delta.  Delivery is at-least-once and unordered
across tables.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from uuid import UUID


class ChangeKind(str, Enum):
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"


class WatchedTable(str, Enum):
    ADMIN_INCOME = "admin_income"
    WORKER_INCOME = "worker_income"
    EXPENSES = "expenses"
    PROFIT_SHARE_RECORDS = "profit_share_records"


WATCHED_TABLE_NAMES = frozenset(table.value for table in WatchedTable)


@dataclass(frozen=True)
class ChangeEvent:
    """One committed insert, update or delete on a watched table."""

    table: WatchedTable
    kind: ChangeKind
    record_id: UUID | None
    franchise_id: UUID | None
    occurred_at: datetime

    def matches(self, table: WatchedTable, franchise_id: UUID | None) -> bool:
        """True when a subscription on (table, franchise_id) should see this."""
        if self.table != table:
            return False
        return franchise_id is None or self.franchise_id == franchise_id

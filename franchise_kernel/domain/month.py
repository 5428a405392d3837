"""
Module: franchise_kernel.domain.month
Responsibility: Calendar-month keys and their half-open UTC boundaries.
Architecture position: Kernel > Domain.  Pure values, zero I/O.

Month buckets are computed in the reporting timezone: a record belongs to
month M when ``start(M) <= occurred_at < start(M.next())``, both boundaries
being local midnights converted to UTC.  Half-open ranges mean a record at
exactly local midnight on the 1st belongs to the new month and never to two
months.
"""

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from zoneinfo import ZoneInfo

from franchise_kernel.exceptions import InvalidMonthKeyError

_MONTH_KEY_RE = re.compile(r"^(\d{4})-(\d{2})$")

# Keeps both UTC boundaries of every key inside datetime.min..datetime.max
MIN_YEAR = 2
MAX_YEAR = 9998


@dataclass(frozen=True, order=True)
class MonthKey:
    """A calendar month, rendered as ``YYYY-MM``."""

    year: int
    month: int

    def __post_init__(self) -> None:
        if not 1 <= self.month <= 12 or not MIN_YEAR <= self.year <= MAX_YEAR:
            raise InvalidMonthKeyError(f"{self.year:04d}-{self.month:02d}")

    @classmethod
    def parse(cls, value: "MonthKey | str") -> "MonthKey":
        """
        Parse ``YYYY-MM``.

        Raises:
            InvalidMonthKeyError: on any other shape or an impossible month.
        """
        if isinstance(value, MonthKey):
            return value
        match = _MONTH_KEY_RE.match(value) if isinstance(value, str) else None
        if match is None:
            raise InvalidMonthKeyError(str(value))
        return cls(int(match.group(1)), int(match.group(2)))

    @classmethod
    def containing(cls, moment: datetime, tz: ZoneInfo) -> "MonthKey":
        """The month that ``moment`` falls in, seen from ``tz``."""
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=timezone.utc)
        local = moment.astimezone(tz)
        return cls(local.year, local.month)

    def __str__(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"

    def next(self) -> "MonthKey":
        if self.month == 12:
            return MonthKey(self.year + 1, 1)
        return MonthKey(self.year, self.month + 1)

    def previous(self) -> "MonthKey":
        if self.month == 1:
            return MonthKey(self.year - 1, 12)
        return MonthKey(self.year, self.month - 1)

    def start(self, tz: ZoneInfo) -> datetime:
        """Local midnight on the 1st, as a UTC datetime."""
        return _utc_midnight(self.year, self.month, tz)

    def bounds(self, tz: ZoneInfo) -> tuple[datetime, datetime]:
        """Half-open ``[start, next_start)`` in UTC."""
        year, month = divmod(self.year * 12 + self.month, 12)
        return self.start(tz), _utc_midnight(year, month + 1, tz)

    def trailing(self, count: int) -> list["MonthKey"]:
        """The ``count`` months ending with this one, oldest first."""
        if count < 1:
            raise ValueError("count must be positive")
        months = [self]
        while len(months) < count:
            months.append(months[-1].previous())
        months.reverse()
        return months


def _utc_midnight(year: int, month: int, tz: ZoneInfo) -> datetime:
    return datetime(year, month, 1, tzinfo=tz).astimezone(timezone.utc)


def month_range(first: MonthKey, last: MonthKey) -> list[MonthKey]:
    """Every month from ``first`` to ``last`` inclusive, oldest first."""
    if last < first:
        raise ValueError(f"month range is reversed: {first} > {last}")
    months = [first]
    while months[-1] < last:
        months.append(months[-1].next())
    return months

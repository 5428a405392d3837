"""
Module: franchise_kernel.db.types
Responsibility: The sanctioned rounding and coercion helpers for money,
    percentages and timestamps read back from storage.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    services/, and selectors/.  MUST NOT import from any of those layers.

Invariants enforced:
    - No floats for money.  Every amount entering the kernel passes through
      to_decimal(); floats are converted through their repr, never binary.
    - round_whole() is the ONLY rounding used for share amounts (ROUND_HALF_UP
      to whole currency units).
"""

from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal

DEFAULT_ROUNDING = ROUND_HALF_UP
PERCENT_DECIMAL_PLACES = 2


def to_decimal(value: object) -> Decimal:
    """
    Coerce an int, str, float or Decimal to Decimal.

    Raises:
        decimal.InvalidOperation: if the value is not numeric.
        TypeError: for unsupported types.
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise TypeError("bool is not a numeric amount")
    if isinstance(value, (int, str)):
        return Decimal(value)
    if isinstance(value, float):
        return Decimal(repr(value))
    raise TypeError(f"Unsupported numeric type: {type(value).__name__}")


def round_whole(value: Decimal, rounding: str = DEFAULT_ROUNDING) -> Decimal:
    """Round to whole currency units."""
    return value.quantize(Decimal("1"), rounding=rounding)


def round_percentage(value: Decimal) -> Decimal:
    """Quantize a percentage to the stored precision."""
    return value.quantize(
        Decimal(1).scaleb(-PERCENT_DECIMAL_PLACES), rounding=DEFAULT_ROUNDING
    )


def normalize_amount(value: Decimal | None) -> Decimal:
    """
    Normalize an amount read back from storage.

    SQLite returns aggregates as floats re-parsed at scale 9; PostgreSQL
    returns exact numerics.  Both normalize to the same canonical Decimal so
    repeated reads compare equal.
    """
    if value is None:
        return Decimal("0")
    normalized = to_decimal(value).normalize()
    # normalize() turns 300000 into 3E+5; keep a plain exponent >= 0
    if normalized.as_tuple().exponent > 0:
        normalized = normalized.quantize(Decimal("1"))
    return normalized


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive timestamps read back from SQLite."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)

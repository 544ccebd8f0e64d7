"""Custom SQLAlchemy column types for exact money storage."""

from __future__ import annotations

from decimal import Decimal
from typing import Any

from sqlalchemy.types import BigInteger, TypeDecorator

CENT = Decimal("0.01")


def to_cents(value: Decimal | int | str) -> int:
    """Convert a decimal amount into integer cents without rounding.

    Raises ``ValueError`` when the amount carries sub-cent precision, so a
    value such as ``29.999`` can never be silently stored as ``30.00``.
    """

    amount = value if isinstance(value, Decimal) else Decimal(str(value))
    if not amount.is_finite():
        raise ValueError(f"Amount {value!r} is not a finite number")
    if amount != amount.quantize(CENT):
        raise ValueError(f"Amount {value!r} has sub-cent precision")
    return int(amount.scaleb(2))


def from_cents(cents: int) -> Decimal:
    """Convert integer cents back into a two-digit decimal amount."""

    return Decimal(int(cents)).scaleb(-2).quantize(CENT)


class Cents(TypeDecorator):
    """Stores decimal money values as integer cents.

    Values are bound as ``BIGINT`` cents and read back as ``Decimal`` with two
    fraction digits, so sums computed in Python or SQL stay exact.
    """

    impl = BigInteger
    cache_ok = True

    def process_bind_param(self, value: Any, dialect):  # type: ignore[override]
        if value is None:
            return value
        return to_cents(value)

    def process_result_value(self, value: Any, dialect):  # type: ignore[override]
        if value is None:
            return value
        return from_cents(value)

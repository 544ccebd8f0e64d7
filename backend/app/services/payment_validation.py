"""Exact validation of record prices against their payment breakdown."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Optional, Sequence

from .. import models
from ..db_types import from_cents, to_cents
from .errors import RecordValidationError


@dataclass(frozen=True)
class NormalizedPayment:
    """Payment entry after validation, amounts held as integer cents."""

    method: models.PaymentMethod
    amount_cents: int
    label: Optional[str]

    @property
    def amount(self) -> Decimal:
        return from_cents(self.amount_cents)


class PaymentValidator:
    """Checks that payment entries reconcile exactly with a declared price."""

    @staticmethod
    def _as_decimal(value, field: str) -> Decimal:
        if isinstance(value, float):
            value = str(value)
        try:
            amount = value if isinstance(value, Decimal) else Decimal(value)
        except (InvalidOperation, TypeError, ValueError) as exc:
            raise RecordValidationError(
                "invalid_amount", f"{field} is not a valid amount", field=field
            ) from exc
        if not amount.is_finite():
            raise RecordValidationError(
                "invalid_amount", f"{field} is not a valid amount", field=field
            )
        return amount

    @classmethod
    def amount_to_cents(cls, value, field: str) -> int:
        amount = cls._as_decimal(value, field)
        if amount < 0:
            rule = "negative_price" if field == "price" else "negative_amount"
            raise RecordValidationError(rule, f"{field} must not be negative", field=field)
        try:
            return to_cents(amount)
        except ValueError as exc:
            raise RecordValidationError(
                "sub_cent_precision",
                f"{field} has more than two fraction digits",
                field=field,
            ) from exc

    @classmethod
    def validate(cls, price, payments: Sequence) -> list[NormalizedPayment]:
        """Return the normalized payments or raise ``RecordValidationError``.

        ``payments`` may hold schema objects, ORM rows or dictionaries with
        ``method``, ``amount`` and ``label``. The sum is compared in integer
        cents, so a breakdown that is off by a fraction of a cent fails.
        """

        price_cents = cls.amount_to_cents(price, "price")

        if not payments:
            raise RecordValidationError(
                "payments_required",
                "At least one payment entry is required",
                field="payments",
            )

        normalized: list[NormalizedPayment] = []
        for index, entry in enumerate(payments):
            field = f"payments[{index}].amount"
            method = _read(entry, "method")
            try:
                method = models.PaymentMethod(method)
            except ValueError as exc:
                raise RecordValidationError(
                    "invalid_method",
                    f"Unsupported payment method {method!r}",
                    field=f"payments[{index}].method",
                ) from exc

            amount_cents = cls.amount_to_cents(_read(entry, "amount"), field)

            label = _read(entry, "label")
            label = label.strip() if isinstance(label, str) else None
            if method == models.PaymentMethod.OTHER and not label:
                raise RecordValidationError(
                    "label_required",
                    "Payments with method 'other' need a label",
                    field=f"payments[{index}].label",
                )

            normalized.append(
                NormalizedPayment(method=method, amount_cents=amount_cents, label=label or None)
            )

        total_cents = sum(entry.amount_cents for entry in normalized)
        if total_cents != price_cents:
            raise RecordValidationError(
                "payment_sum_mismatch",
                "Payment amounts must sum to price "
                f"(payments total {from_cents(total_cents)}, price {from_cents(price_cents)})",
                field="payments",
            )
        return normalized


def _read(entry, name: str):
    if isinstance(entry, dict):
        return entry.get(name)
    return getattr(entry, name, None)

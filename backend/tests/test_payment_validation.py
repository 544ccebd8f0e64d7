from __future__ import annotations

from decimal import Decimal

import pytest

from backend.app import models
from backend.app.db_types import from_cents, to_cents
from backend.app.services import PaymentValidator, RecordValidationError


def _entry(method: str, amount: str, label: str | None = None) -> dict:
    return {"method": method, "amount": Decimal(amount), "label": label}


def test_exact_breakdown_is_accepted():
    payments = PaymentValidator.validate(
        Decimal("60.00"), [_entry("card", "40.00"), _entry("cash", "20.00")]
    )

    assert [entry.method for entry in payments] == [
        models.PaymentMethod.CARD,
        models.PaymentMethod.CASH,
    ]
    assert sum(entry.amount_cents for entry in payments) == 6000
    assert payments[0].amount == Decimal("40.00")


def test_one_cent_short_is_rejected():
    with pytest.raises(RecordValidationError) as excinfo:
        PaymentValidator.validate(
            Decimal("50.00"), [_entry("cash", "20.00"), _entry("card", "29.99")]
        )

    assert excinfo.value.rule == "payment_sum_mismatch"
    assert excinfo.value.field == "payments"


def test_sub_cent_amount_is_not_rounded():
    with pytest.raises(RecordValidationError) as excinfo:
        PaymentValidator.validate(Decimal("30.00"), [_entry("cash", "29.999"), _entry("card", "0.001")])

    assert excinfo.value.rule == "sub_cent_precision"


def test_float_amounts_are_read_through_their_decimal_text():
    payments = PaymentValidator.validate(0.3, [{"method": "cash", "amount": 0.1}, {"method": "zelle", "amount": 0.2}])

    assert sum(entry.amount_cents for entry in payments) == 30


def test_missing_payments_are_rejected():
    with pytest.raises(RecordValidationError) as excinfo:
        PaymentValidator.validate(Decimal("10.00"), [])

    assert excinfo.value.rule == "payments_required"


def test_negative_amount_is_rejected():
    with pytest.raises(RecordValidationError) as excinfo:
        PaymentValidator.validate(
            Decimal("10.00"), [_entry("cash", "15.00"), _entry("card", "-5.00")]
        )

    assert excinfo.value.rule == "negative_amount"
    assert excinfo.value.field == "payments[1].amount"


def test_negative_price_is_rejected():
    with pytest.raises(RecordValidationError) as excinfo:
        PaymentValidator.validate(Decimal("-1.00"), [_entry("cash", "1.00")])

    assert excinfo.value.rule == "negative_price"


def test_other_method_requires_label():
    with pytest.raises(RecordValidationError) as excinfo:
        PaymentValidator.validate(Decimal("10.00"), [_entry("other", "10.00", "   ")])

    assert excinfo.value.rule == "label_required"

    payments = PaymentValidator.validate(Decimal("10.00"), [_entry("other", "10.00", " Venmo ")])
    assert payments[0].label == "Venmo"


def test_unknown_method_is_rejected():
    with pytest.raises(RecordValidationError) as excinfo:
        PaymentValidator.validate(Decimal("10.00"), [_entry("paypal", "10.00")])

    assert excinfo.value.rule == "invalid_method"


def test_zero_price_with_zero_payment_is_valid():
    payments = PaymentValidator.validate(Decimal("0"), [_entry("cash", "0")])

    assert payments[0].amount == Decimal("0.00")


def test_cents_helpers_are_exact():
    assert to_cents(Decimal("19.99")) == 1999
    assert to_cents("0.10") == 10
    assert from_cents(1999) == Decimal("19.99")
    with pytest.raises(ValueError):
        to_cents(Decimal("0.005"))

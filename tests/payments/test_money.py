from decimal import Decimal

import pytest

from domain.common.exceptions import DomainValidationException
from domain.payment.value_objects import Money, PaymentMethod, PaymentState


@pytest.mark.parametrize("units", [0, 1, 10, 999, 123456])
def test_from_major_is_exactly_invertible(units):
    money = Money.from_major(units)
    assert money.to_minor() == units * 100
    assert money.to_major() == Decimal(units)


def test_from_major_accepts_whole_cent_decimal():
    assert Money.from_major(Decimal("10.01")).to_minor() == 1001


def test_from_major_rejects_sub_cent_precision():
    with pytest.raises(DomainValidationException):
        Money.from_major(Decimal("0.015"))


@pytest.mark.parametrize("value", [1.5, True, "100"])
def test_rejects_non_integer_cents(value):
    with pytest.raises(DomainValidationException):
        Money(value)


def test_display_format():
    assert str(Money.from_minor(1000)) == "¥10.00"
    assert str(Money.from_minor(5)) == "¥0.05"


def test_is_positive():
    assert Money.from_minor(1).is_positive()
    assert not Money.from_minor(0).is_positive()
    assert not Money.from_minor(-1).is_positive()


def test_canonical_tokens():
    assert str(PaymentMethod.MINI_PROGRAM) == "mini_program"
    assert PaymentState("succeeded") is PaymentState.SUCCEEDED
    assert PaymentMethod.JSAPI.requires_payer
    assert not PaymentMethod.NATIVE.requires_payer

"""Tests for rental fee computation."""

from dataclasses import dataclass
from decimal import Decimal

import pytest

from agri_rental.services.fee_calculator import FeeQuote, compute, to_money


@dataclass
class RateCard:
    daily_rate: Decimal
    delivery_fee: Decimal
    security_deposit: Decimal


@pytest.fixture
def tractor():
    return RateCard(Decimal("1000.00"), Decimal("200.00"), Decimal("5000.00"))


def test_three_days(tractor):
    quote = compute(3, tractor)

    assert quote.machine_fee == Decimal("3000.00")
    assert quote.delivery_fee == Decimal("200.00")
    assert quote.total_fee == Decimal("3200.00")
    assert quote.security_deposit == Decimal("5000.00")
    assert quote.total_amount == Decimal("8200.00")


def test_zero_days_is_all_zero(tractor):
    quote = compute(0, tractor)

    assert quote.machine_fee == Decimal("0.00")
    assert quote.delivery_fee == Decimal("0.00")
    assert quote.total_fee == Decimal("0.00")
    assert quote.total_amount == Decimal("0.00")


def test_pure(tractor):
    assert compute(4, tractor) == compute(4, tractor)


def test_negative_days_rejected(tractor):
    with pytest.raises(ValueError):
        compute(-1, tractor)


def test_fractional_rates_round_half_up():
    card = RateCard(Decimal("333.335"), Decimal("0"), Decimal("0"))
    quote = compute(1, card)
    assert quote.machine_fee == Decimal("333.34")


def test_quote_is_frozen(tractor):
    quote = compute(1, tractor)
    with pytest.raises(Exception):
        quote.days = 2  # type: ignore[misc]
    assert isinstance(quote, FeeQuote)


@pytest.mark.parametrize(
    "value, expected",
    [
        (None, Decimal("0.00")),
        (10, Decimal("10.00")),
        (0.1, Decimal("0.10")),
        (Decimal("2.005"), Decimal("2.01")),
    ],
)
def test_to_money(value, expected):
    assert to_money(value) == expected

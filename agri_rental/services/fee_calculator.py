"""Rental fee computation.

machine_fee = billed days x daily rate
total_fee   = machine_fee + delivery_fee     (quote shown to the farmer)
total_amount = total_fee + security_deposit  (persisted on the request)
"""
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Protocol

CENTS = Decimal("0.01")
ZERO = Decimal("0.00")


class RateCard(Protocol):
    daily_rate: Decimal
    delivery_fee: Decimal
    security_deposit: Decimal


def to_money(value) -> Decimal:
    """Exact two-place Decimal; floats go through ``str`` to avoid binary noise."""
    if value is None:
        return ZERO
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class FeeQuote:
    days: int
    machine_fee: Decimal
    delivery_fee: Decimal
    total_fee: Decimal
    security_deposit: Decimal

    @property
    def total_amount(self) -> Decimal:
        return self.total_fee + self.security_deposit


def compute(selected_day_count: int, equipment: RateCard) -> FeeQuote:
    """Quote for ``selected_day_count`` billed days; all zero for an empty selection."""
    if selected_day_count < 0:
        raise ValueError("selected_day_count cannot be negative")
    if selected_day_count == 0:
        return FeeQuote(0, ZERO, ZERO, ZERO, ZERO)

    machine_fee = to_money(to_money(equipment.daily_rate) * selected_day_count)
    delivery_fee = to_money(equipment.delivery_fee)
    return FeeQuote(
        days=selected_day_count,
        machine_fee=machine_fee,
        delivery_fee=delivery_fee,
        total_fee=machine_fee + delivery_fee,
        security_deposit=to_money(equipment.security_deposit),
    )

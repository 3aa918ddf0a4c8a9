"""Conversions between Stripe minor units and decimal prices"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Union

CENTS = Decimal("0.01")


def minor_to_decimal(amount: Optional[int]) -> Decimal:
    """Stripe amount in minor units (cents) -> decimal currency units"""
    return (Decimal(amount or 0) / 100).quantize(CENTS)


def decimal_to_minor(price: Union[Decimal, str, float, int]) -> int:
    """Decimal price -> integer minor units, rounding half up"""
    value = price if isinstance(price, Decimal) else Decimal(str(price))
    return int((value * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))

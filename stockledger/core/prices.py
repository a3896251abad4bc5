"""Conversion between stored minor currency units and presentation money."""

from decimal import ROUND_HALF_UP, Decimal

from django.conf import settings
from prices import Money


def minor_units_to_money(amount: int | Decimal, currency: str | None = None) -> Money:
    """Return `amount` minor units as a Money in major units.

    `minor_units_to_money(165000)` is `Money("1650.00", "USD")` with the default
    two decimal places.
    """
    places = settings.DEFAULT_CURRENCY_DECIMAL_PLACES
    value = (Decimal(amount) / (Decimal(10) ** places)).quantize(
        Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP
    )
    return Money(value, currency or settings.DEFAULT_CURRENCY)


def money_to_minor_units(money: Money) -> int:
    places = settings.DEFAULT_CURRENCY_DECIMAL_PLACES
    return int(
        (money.amount * (Decimal(10) ** places)).quantize(
            Decimal(1), rounding=ROUND_HALF_UP
        )
    )

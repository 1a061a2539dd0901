"""Decimal helpers for money and quantity fields."""

from decimal import ROUND_CEILING, ROUND_FLOOR, ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Union

USD_PLACES = Decimal("0.01")
QUANTITY_PLACES = Decimal("0.00000001")

Number = Union[Decimal, int, float, str]


def to_decimal(value: Number) -> Decimal:
    """Convert a user supplied number to a finite Decimal.

    Floats go through ``str`` so that ``0.1`` becomes ``Decimal("0.1")``
    rather than its binary expansion.

    Raises:
        ValueError: If the value is not a finite number
    """
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value).strip())
        except (InvalidOperation, ValueError) as e:
            raise ValueError(f"Not a number: {value!r}") from e
    if not result.is_finite():
        raise ValueError(f"Not a finite number: {value!r}")
    return result


def quantize_usd(value: Decimal) -> Decimal:
    """Round a USD amount to cents."""
    return value.quantize(USD_PLACES, rounding=ROUND_HALF_UP)


def quantize_usd_up(value: Decimal) -> Decimal:
    """Round a USD amount up to the next cent."""
    return value.quantize(USD_PLACES, rounding=ROUND_CEILING)


def quantize_usd_down(value: Decimal) -> Decimal:
    """Round a USD amount down to the cent."""
    return value.quantize(USD_PLACES, rounding=ROUND_FLOOR)


def quantize_quantity(value: Decimal) -> Decimal:
    """Round an asset quantity to 8 decimal places."""
    return value.quantize(QUANTITY_PLACES, rounding=ROUND_HALF_UP)

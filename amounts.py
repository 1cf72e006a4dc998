from decimal import ROUND_CEILING, ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Union

CENT = Decimal("0.01")


def to_cents(
    value: Union[Decimal, int, float, str],
    *,
    allow_negative: bool = False,
    rounding: str = ROUND_HALF_UP,
) -> int:
    """Convert a decimal amount to integer cents, rounding half-up by default.

    Pass ``rounding=ROUND_CEILING`` for lower bounds, so the cent threshold is
    never below the requested amount.
    """
    try:
        amount = Decimal(str(value).strip())
        if not amount.is_finite():
            raise ValueError("Invalid amount")
        rounded = amount.quantize(CENT, rounding=rounding)
    except InvalidOperation as exc:
        raise ValueError("Invalid amount") from exc
    cents = int((rounded * 100).to_integral_value())
    if cents < 0 and not allow_negative:
        raise ValueError("Amount must be positive")
    return cents


def min_price_cents(value: Union[Decimal, int, float, str]) -> int:
    return to_cents(value, allow_negative=True, rounding=ROUND_CEILING)


def from_cents(cents: int) -> float:
    return float(Decimal(cents) / 100)

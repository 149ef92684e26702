from decimal import ROUND_HALF_DOWN, ROUND_HALF_UP, Decimal
from typing import Iterable, Union

# Type alias for money values
Money = Decimal

ZERO = Decimal("0.00")

MoneyLike = Union[Decimal, float, int, str]


def round_money(value: MoneyLike) -> Decimal:
    """
    Round monetary value to 2 decimal places using ROUND_HALF_UP.

    Examples:
        >>> round_money(10.125)
        Decimal('10.13')
        >>> round_money("10.115")
        Decimal('10.12')
    """
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    if value < 0:
        return value.quantize(Decimal("0.01"), rounding=ROUND_HALF_DOWN)
    return value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def clamp_money(value: MoneyLike, lower: MoneyLike = ZERO, upper: MoneyLike | None = None) -> Decimal:
    """Round and clamp into [lower, upper]; used for untrusted discount input."""
    result = round_money(value)
    low = round_money(lower)
    if result < low:
        result = low
    if upper is not None:
        high = round_money(upper)
        if result > high:
            result = high
    return result


def sum_money(values: Iterable[MoneyLike]) -> Decimal:
    """Sum of money values, rounded; an empty iterable sums to 0.00."""
    return round_money(sum((Decimal(str(v)) for v in values), Decimal("0")))

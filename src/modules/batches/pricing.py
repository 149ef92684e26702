"""
Batch pricing resolution.

A batch may override its course's regular and discount price. The discount
percentage is never taken from input: it is derived from the resolved pair
every time pricing is written or read.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import NamedTuple

from src.shared.utils.money import MoneyLike, round_money


class ResolvedPricing(NamedTuple):
    regular_price: Decimal
    discount_price: Decimal | None
    discount_percentage: int

    @property
    def has_discount(self) -> bool:
        return is_valid_discount(self.regular_price, self.discount_price)

    @property
    def effective_price(self) -> Decimal:
        """What a student pays before promo codes."""
        if is_valid_discount(self.regular_price, self.discount_price):
            return self.discount_price
        return self.regular_price

    @property
    def price_discount(self) -> Decimal:
        """Amount knocked off the regular price by the discount price."""
        return round_money(self.regular_price - self.effective_price)


def is_valid_discount(regular: MoneyLike | None, discount: MoneyLike | None) -> bool:
    if regular is None or discount is None:
        return False
    regular = Decimal(str(regular))
    discount = Decimal(str(discount))
    return regular > 0 and Decimal("0") <= discount < regular


def calculate_discount_percentage(regular: MoneyLike | None, discount: MoneyLike | None) -> int:
    """
    round(((regular - discount) / regular) * 100), half-up.

    0 when there is no discount, the regular price is not positive,
    or the discount is not below the regular price.

        >>> calculate_discount_percentage(10000, 8000)
        20
        >>> calculate_discount_percentage(1000, 1000)
        0
    """
    if not is_valid_discount(regular, discount):
        return 0
    regular = Decimal(str(regular))
    discount = Decimal(str(discount))
    percentage = (regular - discount) / regular * Decimal("100")
    return int(percentage.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def resolve_pricing(
    batch_regular: MoneyLike | None,
    batch_discount: MoneyLike | None,
    course_regular: MoneyLike | None,
    course_discount: MoneyLike | None,
) -> ResolvedPricing:
    """Batch values win when present; otherwise fall back to the course."""
    regular = batch_regular if batch_regular is not None else course_regular
    discount = batch_discount if batch_discount is not None else course_discount

    regular = round_money(regular) if regular is not None else Decimal("0.00")
    discount = round_money(discount) if discount is not None else None

    return ResolvedPricing(
        regular_price=regular,
        discount_price=discount,
        discount_percentage=calculate_discount_percentage(regular, discount),
    )


def resolve_batch_pricing(batch, course=None) -> ResolvedPricing:
    """Resolve pricing for a loaded Batch (course defaults to batch.course)."""
    course = course if course is not None else batch.course
    return resolve_pricing(
        batch.regular_price,
        batch.discount_price,
        course.regular_price if course is not None else None,
        course.discount_price if course is not None else None,
    )

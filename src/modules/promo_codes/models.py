"""Promo code model."""

from datetime import datetime
from decimal import Decimal
from enum import StrEnum

from sqlalchemy import BigInteger, Boolean, DateTime, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from src.core.database.base import BaseModel, Money


class PromoValueType(StrEnum):
    """How the promo value is applied."""

    PERCENTAGE = "percentage"
    FIXED = "fixed"


class PromoCode(BaseModel):
    """
    Discount code a student can enter at enrollment.

    batch_id / course_id restrict where the code applies; both null means
    any batch.
    """

    __tablename__ = "promo_codes"

    code: Mapped[str] = mapped_column(String(20), nullable=False, unique=True, index=True)
    description: Mapped[str | None] = mapped_column(String(200), nullable=True)

    value_type: Mapped[str] = mapped_column(String(20), nullable=False)
    # Percentage (0-100) or fixed amount
    value: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    min_amount: Mapped[Decimal | None] = mapped_column(Money, nullable=True)
    # Cap for percentage codes
    max_discount: Mapped[Decimal | None] = mapped_column(Money, nullable=True)

    valid_from: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    valid_until: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    usage_limit: Mapped[int | None] = mapped_column(Integer, nullable=True)
    used_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    batch_id: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("batches.id"), nullable=True, index=True
    )
    course_id: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("courses.id"), nullable=True, index=True
    )

    created_by_id: Mapped[int] = mapped_column(BigInteger, nullable=False)

    @property
    def is_percentage(self) -> bool:
        return self.value_type == PromoValueType.PERCENTAGE.value

    @property
    def is_exhausted(self) -> bool:
        return self.usage_limit is not None and self.used_count >= self.usage_limit

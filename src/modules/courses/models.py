"""Course model (parent of batches)."""

from decimal import Decimal

from sqlalchemy import Boolean, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.core.database.base import BaseModel, Money


class Course(BaseModel):
    """
    A course in the catalogue.

    Content is managed elsewhere; batches read course_code / course_shortcut
    for identifiers and the prices as the fallback for batch pricing.
    """

    __tablename__ = "courses"

    title: Mapped[str] = mapped_column(String(200), nullable=False, unique=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Short code for batch codes, e.g. "GDI" -> GDI2601
    course_code: Mapped[str] = mapped_column(String(10), nullable=False, unique=True, index=True)
    # Short name for batch names, e.g. "Graphics Design" -> "Graphics Design Batch-01"
    course_shortcut: Mapped[str] = mapped_column(String(50), nullable=False)

    regular_price: Mapped[Decimal] = mapped_column(Money, nullable=False)
    discount_price: Mapped[Decimal | None] = mapped_column(Money, nullable=True)
    discount_percentage: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    batches: Mapped[list["Batch"]] = relationship("Batch", back_populates="course")


from src.modules.batches.models import Batch

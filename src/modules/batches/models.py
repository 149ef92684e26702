"""Batch model."""

from datetime import date
from decimal import Decimal
from enum import StrEnum

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    Date,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.core.database.base import Money, VersionedModel


class CourseType(StrEnum):
    """How the batch is delivered."""

    ONLINE = "online"
    OFFLINE = "offline"


class BatchStatus(StrEnum):
    """Batch lifecycle status."""

    DRAFT = "draft"
    PUBLISHED = "published"
    UPCOMING = "upcoming"
    ONGOING = "ongoing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# Forward transitions; cancellation is accepted from any non-terminal status
BATCH_STATUS_TRANSITIONS: dict[str, frozenset[str]] = {
    BatchStatus.DRAFT.value: frozenset({BatchStatus.PUBLISHED.value, BatchStatus.CANCELLED.value}),
    BatchStatus.PUBLISHED.value: frozenset({BatchStatus.UPCOMING.value, BatchStatus.CANCELLED.value}),
    BatchStatus.UPCOMING.value: frozenset({BatchStatus.ONGOING.value, BatchStatus.CANCELLED.value}),
    BatchStatus.ONGOING.value: frozenset({BatchStatus.COMPLETED.value, BatchStatus.CANCELLED.value}),
    BatchStatus.COMPLETED.value: frozenset(),
    BatchStatus.CANCELLED.value: frozenset(),
}

TERMINAL_BATCH_STATUSES = frozenset({BatchStatus.COMPLETED.value, BatchStatus.CANCELLED.value})

# Statuses in which students may enroll
ENROLLABLE_BATCH_STATUSES = frozenset({BatchStatus.PUBLISHED.value, BatchStatus.UPCOMING.value})


class Batch(VersionedModel):
    """
    One scheduled offering of a course.

    batch_code, name and slug are derived once at creation. current_students
    only moves through BatchService.increment_enrollment.
    """

    __tablename__ = "batches"

    batch_code: Mapped[str] = mapped_column(String(30), nullable=False, unique=True, index=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    course_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("courses.id"), nullable=False, index=True
    )
    course_type: Mapped[str] = mapped_column(
        String(20), nullable=False, default=CourseType.ONLINE.value
    )

    # Marketing
    slug: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    meta_description: Mapped[str | None] = mapped_column(String(160), nullable=True)

    # Schedule
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)

    # Capacity
    max_students: Mapped[int] = mapped_column(Integer, nullable=False, default=30)
    current_students: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Pricing (resolved against the course at creation)
    regular_price: Mapped[Decimal] = mapped_column(Money, nullable=False)
    discount_price: Mapped[Decimal | None] = mapped_column(Money, nullable=True)
    discount_percentage: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=BatchStatus.DRAFT.value, index=True
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, index=True)

    created_by_id: Mapped[int] = mapped_column(BigInteger, nullable=False)

    # Relationships
    course: Mapped["Course"] = relationship("Course", back_populates="batches")

    __table_args__ = (
        CheckConstraint("end_date > start_date", name="ck_batch_date_range"),
        CheckConstraint("max_students >= 1", name="ck_batch_max_students"),
        CheckConstraint(
            "current_students >= 0 AND current_students <= max_students",
            name="ck_batch_capacity",
        ),
    )

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_BATCH_STATUSES

    @property
    def is_enrollable(self) -> bool:
        return self.is_active and self.status in ENROLLABLE_BATCH_STATUSES

    @property
    def is_full(self) -> bool:
        return self.current_students >= self.max_students

    @property
    def available_seats(self) -> int:
        return max(self.max_students - self.current_students, 0)

    def can_transition_to(self, status: str) -> bool:
        return status in BATCH_STATUS_TRANSITIONS.get(self.status, frozenset())


# Import at the end to avoid circular imports
from src.modules.courses.models import Course

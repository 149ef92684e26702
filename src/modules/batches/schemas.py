"""Schemas for Batches module."""

from datetime import date
from decimal import Decimal

from pydantic import BaseModel, Field, field_validator

from src.modules.batches.models import BatchStatus, CourseType


class BatchCreate(BaseModel):
    """
    Schema for creating a batch.

    batch_code and slug are always derived; name is derived when omitted.
    discount_percentage is not accepted: it is computed from the prices.
    """

    course_id: int
    name: str | None = Field(None, min_length=1, max_length=100)
    description: str | None = Field(None, max_length=500)
    meta_description: str | None = Field(None, max_length=160)
    course_type: CourseType = CourseType.ONLINE
    start_date: date
    end_date: date
    max_students: int | None = Field(None, ge=1)
    regular_price: Decimal | None = Field(None, ge=0)
    discount_price: Decimal | None = Field(None, ge=0)
    status: BatchStatus = BatchStatus.DRAFT
    # Year used for the batch code; defaults to the current year
    year: int | None = Field(None, ge=2000, le=2999)

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v = v.strip()
        return v or None


class BatchUpdate(BaseModel):
    """
    Explicit admin edit. Slug, batch code, status and current_students are not editable here.

    Sending regular_price/discount_price as null clears the override and falls
    back to the course price.
    """

    name: str | None = Field(None, min_length=1, max_length=100)
    description: str | None = Field(None, max_length=500)
    meta_description: str | None = Field(None, max_length=160)
    course_type: CourseType | None = None
    start_date: date | None = None
    end_date: date | None = None
    max_students: int | None = Field(None, ge=1)
    regular_price: Decimal | None = Field(None, ge=0)
    discount_price: Decimal | None = Field(None, ge=0)
    is_active: bool | None = None


class BatchStatusUpdate(BaseModel):
    """Schema for a lifecycle transition."""

    status: BatchStatus


class BatchActiveUpdate(BaseModel):
    """Schema for archival toggle."""

    is_active: bool


class BatchPricing(BaseModel):
    """Resolved pricing for a batch."""

    regular_price: float
    discount_price: float | None
    discount_percentage: int
    effective_price: float


class BatchResponse(BaseModel):
    """Schema for batch response."""

    id: int
    batch_code: str
    name: str
    description: str | None
    course_id: int
    course_title: str | None = None
    course_type: str
    slug: str
    meta_description: str | None
    start_date: date
    end_date: date
    max_students: int
    current_students: int
    available_seats: int
    regular_price: float
    discount_price: float | None
    discount_percentage: int
    pricing: BatchPricing
    status: str
    is_active: bool
    created_by_id: int

    model_config = {"from_attributes": True}


class BatchFilters(BaseModel):
    """Filters for listing batches."""

    course_id: int | None = None
    status: BatchStatus | None = None
    course_type: CourseType | None = None
    is_active: bool | None = None
    search: str | None = None  # batch name or code
    page: int = Field(1, ge=1)
    limit: int = Field(20, ge=1, le=100)

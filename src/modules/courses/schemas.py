"""Schemas for Courses module."""

from decimal import Decimal

from pydantic import BaseModel, Field, field_validator, model_validator


class CourseCreate(BaseModel):
    """Schema for creating a course."""

    title: str = Field(..., min_length=1, max_length=200)
    description: str | None = None
    course_code: str = Field(..., min_length=1, max_length=10)
    course_shortcut: str = Field(..., min_length=1, max_length=50)
    regular_price: Decimal = Field(..., ge=0)
    discount_price: Decimal | None = Field(None, ge=0)

    @field_validator("course_code")
    @classmethod
    def normalize_code(cls, v: str) -> str:
        v = v.strip().upper()
        if not v.isalnum():
            raise ValueError("Course code must be alphanumeric")
        return v

    @field_validator("title", "course_shortcut")
    @classmethod
    def strip_text(cls, v: str) -> str:
        return v.strip()

    @model_validator(mode="after")
    def check_discount(self):
        if self.discount_price is not None and self.discount_price > self.regular_price:
            raise ValueError("Discount price cannot exceed regular price")
        return self


class CourseResponse(BaseModel):
    """Schema for course response."""

    id: int
    title: str
    description: str | None
    course_code: str
    course_shortcut: str
    regular_price: float
    discount_price: float | None
    discount_percentage: int
    is_active: bool

    model_config = {"from_attributes": True}

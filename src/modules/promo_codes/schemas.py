"""Schemas for Promo codes module."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field, field_validator, model_validator

from src.modules.promo_codes.models import PromoValueType


class PromoCodeCreate(BaseModel):
    """Schema for creating a promo code."""

    code: str = Field(..., min_length=1, max_length=20)
    description: str | None = Field(None, max_length=200)
    value_type: PromoValueType
    value: Decimal = Field(..., gt=0)
    min_amount: Decimal | None = Field(None, ge=0)
    max_discount: Decimal | None = Field(None, ge=0)
    valid_from: datetime
    valid_until: datetime
    usage_limit: int | None = Field(None, ge=1)
    batch_id: int | None = None
    course_id: int | None = None

    @field_validator("code")
    @classmethod
    def normalize_code(cls, v: str) -> str:
        return v.strip().upper()

    @model_validator(mode="after")
    def check_ranges(self):
        if self.valid_until <= self.valid_from:
            raise ValueError("valid_until must be after valid_from")
        if self.value_type == PromoValueType.PERCENTAGE and self.value > 100:
            raise ValueError("Percentage cannot exceed 100")
        return self


class PromoCodeResponse(BaseModel):
    """Schema for promo code response."""

    id: int
    code: str
    description: str | None
    value_type: str
    value: float
    min_amount: float | None
    max_discount: float | None
    valid_from: datetime
    valid_until: datetime
    usage_limit: int | None
    used_count: int
    is_active: bool
    batch_id: int | None
    course_id: int | None

    model_config = {"from_attributes": True}

"""Schemas for Invoices module."""

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, Field, field_validator

from src.modules.invoices.models import InvoiceStatus, PaymentMethod


# --- Enrollment ---


class EnrollmentCreate(BaseModel):
    """Student request to enroll in a batch."""

    batch_id: int
    promo_code: str | None = Field(None, max_length=20)

    @field_validator("promo_code")
    @classmethod
    def normalize_promo(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v = v.strip().upper()
        return v or None


# --- Payments on an invoice ---


class PaymentClaim(BaseModel):
    """A student's claim that money was sent."""

    amount: Decimal = Field(..., gt=0)
    method: PaymentMethod
    sender_number: str = Field(..., min_length=3, max_length=30)
    transaction_id: str | None = Field(None, max_length=100)
    screenshot_url: str | None = Field(None, max_length=500)


class InvoicePaymentResponse(BaseModel):
    """Schema for a payment on an invoice."""

    id: int
    invoice_id: int
    amount: float
    method: str
    sender_number: str
    transaction_id: str | None
    screenshot_url: str | None
    status: str
    submitted_at: datetime
    verified_at: datetime | None
    decided_at: datetime | None
    decided_by_id: int | None
    admin_notes: str | None
    rejection_reason: str | None

    model_config = {"from_attributes": True}


# --- Invoice ---


class InvoiceResponse(BaseModel):
    """Schema for invoice response."""

    id: int
    invoice_number: str
    student_id: int
    batch_id: int
    batch_name: str
    currency: str
    amount: float
    discount_amount: float
    promo_code: str | None
    promo_discount: float
    final_amount: float
    paid_amount: float
    remaining_amount: float
    # Includes the read-time overdue status
    status: str
    due_date: date
    seat_counted: bool
    notes: str | None
    created_by_id: int
    created_at: datetime
    payments: list[InvoicePaymentResponse] = Field(default_factory=list)


class InvoiceCancel(BaseModel):
    """Schema for cancelling an invoice."""

    reason: str | None = Field(None, max_length=500)


class InvoiceFilters(BaseModel):
    """Filters for listing invoices."""

    student_id: int | None = None
    batch_id: int | None = None
    status: InvoiceStatus | None = None
    search: str | None = None
    page: int = Field(1, ge=1)
    limit: int = Field(20, ge=1, le=100)

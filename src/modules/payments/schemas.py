"""Schemas for Payments module."""

from datetime import datetime

from pydantic import BaseModel, Field, model_validator

from src.modules.invoices.models import VerificationDecision
from src.modules.invoices.schemas import PaymentClaim


class PaymentSubmission(PaymentClaim):
    """Student payment submission against one of their invoices."""

    invoice_id: int


class PaymentDecisionRequest(BaseModel):
    """Admin verify / reject request."""

    action: VerificationDecision
    notes: str | None = Field(None, max_length=1000)
    reason: str | None = Field(None, max_length=1000)

    @model_validator(mode="after")
    def strip_text(self):
        if self.notes is not None:
            self.notes = self.notes.strip() or None
        return self


class PendingPaymentResponse(BaseModel):
    """Pending payment with the invoice it belongs to."""

    id: int
    invoice_id: int
    invoice_number: str
    student_id: int
    batch_id: int
    batch_name: str
    invoice_final_amount: float
    invoice_remaining_amount: float
    amount: float
    method: str
    sender_number: str
    transaction_id: str | None
    screenshot_url: str | None
    status: str
    submitted_at: datetime


class PendingPaymentFilters(BaseModel):
    """Filters for the verification queue."""

    batch_id: int | None = None
    page: int = Field(1, ge=1)
    limit: int = Field(50, ge=1, le=100)

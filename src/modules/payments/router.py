"""API endpoints for Payments module."""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.auth.dependencies import AdminUser, StudentUser
from src.core.database.session import get_db
from src.modules.invoices.models import InvoicePayment, VerificationDecision
from src.modules.invoices.router import invoice_to_response
from src.modules.invoices.schemas import InvoicePaymentResponse, InvoiceResponse
from src.modules.payments.schemas import (
    PaymentDecisionRequest,
    PaymentSubmission,
    PendingPaymentFilters,
    PendingPaymentResponse,
)
from src.modules.payments.service import PaymentVerificationService
from src.shared.schemas.base import ApiResponse, PaginatedResponse

router = APIRouter(prefix="/payments", tags=["Payments"])


def _pending_to_response(payment: InvoicePayment) -> PendingPaymentResponse:
    invoice = payment.invoice
    return PendingPaymentResponse(
        id=payment.id,
        invoice_id=invoice.id,
        invoice_number=invoice.invoice_number,
        student_id=invoice.student_id,
        batch_id=invoice.batch_id,
        batch_name=invoice.batch_name,
        invoice_final_amount=float(invoice.final_amount),
        invoice_remaining_amount=float(invoice.remaining_amount),
        amount=float(payment.amount),
        method=payment.method,
        sender_number=payment.sender_number,
        transaction_id=payment.transaction_id,
        screenshot_url=payment.screenshot_url,
        status=payment.status,
        submitted_at=payment.submitted_at,
    )


@router.post(
    "/submissions",
    response_model=ApiResponse[InvoicePaymentResponse],
    status_code=status.HTTP_201_CREATED,
)
async def submit_payment(
    data: PaymentSubmission,
    current_user: StudentUser,
    db: AsyncSession = Depends(get_db),
):
    """Submit a payment for verification. The invoice is unchanged until an admin verifies it."""
    service = PaymentVerificationService(db)
    payment = await service.submit(data.invoice_id, data, student_id=current_user.user_id)
    return ApiResponse(
        data=InvoicePaymentResponse.model_validate(payment),
        message="Payment submitted for verification",
    )


@router.get("/pending", response_model=ApiResponse[PaginatedResponse[PendingPaymentResponse]])
async def list_pending_payments(
    current_user: AdminUser,
    batch_id: int | None = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    """Verification queue, oldest first."""
    service = PaymentVerificationService(db)
    filters = PendingPaymentFilters(batch_id=batch_id, page=page, limit=limit)
    payments, total = await service.list_pending(filters)
    return ApiResponse(
        data=PaginatedResponse.create(
            items=[_pending_to_response(p) for p in payments],
            total=total,
            page=page,
            limit=limit,
        ),
    )


@router.post("/{payment_id}/decision", response_model=ApiResponse[InvoiceResponse])
async def decide_payment(
    payment_id: int,
    data: PaymentDecisionRequest,
    current_user: AdminUser,
    db: AsyncSession = Depends(get_db),
):
    """Verify or reject a pending payment. Returns the updated invoice."""
    service = PaymentVerificationService(db)
    invoice = await service.decide(payment_id, data, decided_by_id=current_user.user_id)
    return ApiResponse(
        data=invoice_to_response(invoice),
        message="Payment verified" if data.action == VerificationDecision.VERIFY else "Payment rejected",
    )

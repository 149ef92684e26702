"""API endpoints for Invoices module."""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.auth.dependencies import AdminUser, CurrentPrincipal, StudentUser
from src.core.database.session import get_db
from src.core.exceptions import NotFoundError
from src.modules.invoices.models import Invoice, InvoiceStatus
from src.modules.invoices.schemas import (
    EnrollmentCreate,
    InvoiceCancel,
    InvoiceFilters,
    InvoicePaymentResponse,
    InvoiceResponse,
)
from src.modules.invoices.service import InvoiceService
from src.shared.schemas.base import ApiResponse, PaginatedResponse

router = APIRouter(prefix="/invoices", tags=["Invoices"])
enrollment_router = APIRouter(prefix="/enrollments", tags=["Enrollments"])


def invoice_to_response(invoice: Invoice) -> InvoiceResponse:
    """Convert Invoice model to response schema."""
    return InvoiceResponse(
        id=invoice.id,
        invoice_number=invoice.invoice_number,
        student_id=invoice.student_id,
        batch_id=invoice.batch_id,
        batch_name=invoice.batch_name,
        currency=invoice.currency,
        amount=float(invoice.amount),
        discount_amount=float(invoice.discount_amount),
        promo_code=invoice.promo_code,
        promo_discount=float(invoice.promo_discount),
        final_amount=float(invoice.final_amount),
        paid_amount=float(invoice.paid_amount),
        remaining_amount=float(invoice.remaining_amount),
        status=invoice.effective_status,
        due_date=invoice.due_date,
        seat_counted=invoice.seat_counted,
        notes=invoice.notes,
        created_by_id=invoice.created_by_id,
        created_at=invoice.created_at,
        payments=[InvoicePaymentResponse.model_validate(p) for p in invoice.payments],
    )


@enrollment_router.post(
    "",
    response_model=ApiResponse[InvoiceResponse],
    status_code=status.HTTP_201_CREATED,
)
async def enroll(
    data: EnrollmentCreate,
    current_user: StudentUser,
    db: AsyncSession = Depends(get_db),
):
    """Enroll in a batch. Returns the invoice to pay."""
    service = InvoiceService(db)
    invoice = await service.enroll(
        student_id=current_user.user_id,
        batch_id=data.batch_id,
        promo_code=data.promo_code,
    )
    return ApiResponse(
        data=invoice_to_response(invoice),
        message="Enrollment invoice created",
    )


@router.get("", response_model=ApiResponse[PaginatedResponse[InvoiceResponse]])
async def list_invoices(
    current_user: AdminUser,
    student_id: int | None = Query(None),
    batch_id: int | None = Query(None),
    status: InvoiceStatus | None = Query(None),
    search: str | None = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    """List invoices with optional filters."""
    service = InvoiceService(db)
    filters = InvoiceFilters(
        student_id=student_id,
        batch_id=batch_id,
        status=status,
        search=search,
        page=page,
        limit=limit,
    )
    invoices, total = await service.list_invoices(filters)
    return ApiResponse(
        data=PaginatedResponse.create(
            items=[invoice_to_response(i) for i in invoices],
            total=total,
            page=page,
            limit=limit,
        ),
    )


@router.get("/my", response_model=ApiResponse[list[InvoiceResponse]])
async def list_my_invoices(
    current_user: StudentUser,
    db: AsyncSession = Depends(get_db),
):
    """Invoices of the calling student."""
    service = InvoiceService(db)
    invoices = await service.list_student_invoices(current_user.user_id)
    return ApiResponse(data=[invoice_to_response(i) for i in invoices])


@router.get("/{invoice_id}", response_model=ApiResponse[InvoiceResponse])
async def get_invoice(
    invoice_id: int,
    current_user: CurrentPrincipal,
    db: AsyncSession = Depends(get_db),
):
    """Get invoice with payments. Students only see their own."""
    service = InvoiceService(db)
    invoice = await service.get_invoice(invoice_id)
    if not current_user.is_admin and invoice.student_id != current_user.user_id:
        raise NotFoundError("Invoice", invoice_id)
    return ApiResponse(data=invoice_to_response(invoice))


@router.post("/{invoice_id}/cancel", response_model=ApiResponse[InvoiceResponse])
async def cancel_invoice(
    invoice_id: int,
    current_user: AdminUser,
    data: InvoiceCancel | None = None,
    db: AsyncSession = Depends(get_db),
):
    """Cancel an invoice with no verified payments."""
    service = InvoiceService(db)
    invoice = await service.cancel_invoice(
        invoice_id,
        cancelled_by_id=current_user.user_id,
        reason=data.reason if data else None,
    )
    return ApiResponse(
        data=invoice_to_response(invoice),
        message="Invoice cancelled successfully",
    )

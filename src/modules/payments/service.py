"""Service for Payments module."""

import logging

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from src.core.exceptions import MissingReason, NotFoundError
from src.modules.invoices.models import (
    Invoice,
    InvoicePayment,
    PaymentStatus,
    VerificationDecision,
)
from src.modules.invoices.schemas import PaymentClaim
from src.modules.invoices.service import InvoiceService
from src.modules.payments.schemas import PaymentDecisionRequest, PendingPaymentFilters

logger = logging.getLogger(__name__)


class PaymentVerificationService:
    """Admin verification queue over the invoice ledger."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.invoices = InvoiceService(db)

    async def get_payment(self, payment_id: int) -> InvoicePayment:
        result = await self.db.execute(
            select(InvoicePayment).where(InvoicePayment.id == payment_id)
        )
        payment = result.scalar_one_or_none()
        if not payment:
            raise NotFoundError("Payment", payment_id)
        return payment

    async def list_pending(
        self, filters: PendingPaymentFilters
    ) -> tuple[list[InvoicePayment], int]:
        """Pending payments across all invoices, oldest first."""
        query = select(InvoicePayment).where(
            InvoicePayment.status == PaymentStatus.PENDING.value
        )
        if filters.batch_id is not None:
            query = query.join(Invoice).where(Invoice.batch_id == filters.batch_id)

        count_query = select(func.count()).select_from(query.subquery())
        total = (await self.db.execute(count_query)).scalar() or 0

        query = (
            query.options(selectinload(InvoicePayment.invoice))
            .order_by(InvoicePayment.submitted_at.asc(), InvoicePayment.id.asc())
            .offset((filters.page - 1) * filters.limit)
            .limit(filters.limit)
        )
        result = await self.db.execute(query)
        return list(result.scalars().all()), total

    async def submit(
        self, invoice_id: int, claim: PaymentClaim, student_id: int
    ) -> InvoicePayment:
        return await self.invoices.record_payment_submission(invoice_id, claim, student_id)

    async def verify(
        self, payment_id: int, decided_by_id: int, notes: str | None = None
    ) -> Invoice:
        payment = await self.get_payment(payment_id)
        return await self.invoices.apply_verification_decision(
            payment.invoice_id,
            payment.id,
            VerificationDecision.VERIFY,
            decided_by_id=decided_by_id,
            notes=notes,
        )

    async def reject(
        self,
        payment_id: int,
        reason: str | None,
        decided_by_id: int,
        notes: str | None = None,
    ) -> Invoice:
        # Nothing is read or written without a reason
        if not reason or not reason.strip():
            raise MissingReason()

        payment = await self.get_payment(payment_id)
        return await self.invoices.apply_verification_decision(
            payment.invoice_id,
            payment.id,
            VerificationDecision.REJECT,
            decided_by_id=decided_by_id,
            notes=notes,
            reason=reason.strip(),
        )

    async def decide(
        self, payment_id: int, data: PaymentDecisionRequest, decided_by_id: int
    ) -> Invoice:
        """Dispatch an admin verify / reject request."""
        logger.debug("Decision %s on payment %s by user %s", data.action, payment_id, decided_by_id)
        if data.action == VerificationDecision.REJECT:
            return await self.reject(payment_id, data.reason, decided_by_id, notes=data.notes)
        return await self.verify(payment_id, decided_by_id, notes=data.notes)

"""Service for Invoices module."""

import logging
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from src.core.audit.service import AuditAction, AuditService
from src.core.config import settings
from src.core.documents.number_generator import DocumentNumberGenerator
from src.core.exceptions import (
    AlreadyDecided,
    CapacityExceeded,
    DuplicateEnrollment,
    MissingReason,
    NotFoundError,
    ValidationError,
)
from src.modules.batches.models import Batch
from src.modules.batches.pricing import ResolvedPricing, resolve_batch_pricing
from src.modules.batches.service import BatchService
from src.modules.invoices.models import (
    Invoice,
    InvoicePayment,
    InvoiceStatus,
    PaymentStatus,
    VerificationDecision,
)
from src.modules.invoices.schemas import InvoiceFilters, PaymentClaim
from src.modules.promo_codes.models import PromoCode
from src.modules.promo_codes.service import PromoCodeService
from src.shared.utils.money import ZERO, clamp_money, round_money, sum_money

logger = logging.getLogger(__name__)

# Stored statuses that can turn overdue at read time
_OPEN_STATUSES = (InvoiceStatus.PENDING.value, InvoiceStatus.PARTIAL.value)


class InvoiceService:
    """Invoice ledger: enrollment invoices, payment claims and decisions."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.audit = AuditService(db)
        self.batches = BatchService(db)
        self.promo_codes = PromoCodeService(db)

    # --- Derivation ---

    @staticmethod
    def recalculate(invoice: Invoice) -> None:
        """Derive paid/remaining/status from verified payments."""
        invoice.paid_amount = sum_money(p.amount for p in invoice.verified_payments)
        invoice.remaining_amount = max(round_money(invoice.final_amount - invoice.paid_amount), ZERO)

        if invoice.status == InvoiceStatus.CANCELLED.value:
            return
        if invoice.remaining_amount == ZERO:
            invoice.status = InvoiceStatus.PAID.value
        elif invoice.paid_amount > ZERO:
            invoice.status = InvoiceStatus.PARTIAL.value
        else:
            invoice.status = InvoiceStatus.PENDING.value

    # --- Queries ---

    async def get_invoice(self, invoice_id: int) -> Invoice:
        """Get invoice by ID with payments loaded."""
        result = await self.db.execute(
            select(Invoice)
            .where(Invoice.id == invoice_id)
            .options(selectinload(Invoice.payments))
            .execution_options(populate_existing=True)
        )
        invoice = result.scalar_one_or_none()
        if not invoice:
            raise NotFoundError("Invoice", invoice_id)
        return invoice

    async def _get_invoice_for_update(self, invoice_id: int) -> Invoice:
        result = await self.db.execute(
            select(Invoice)
            .where(Invoice.id == invoice_id)
            .options(selectinload(Invoice.payments))
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        invoice = result.scalar_one_or_none()
        if not invoice:
            raise NotFoundError("Invoice", invoice_id)
        return invoice

    async def find_active_invoice(self, student_id: int, batch_id: int) -> Invoice | None:
        """Non-cancelled invoice for the (student, batch) pair, if any."""
        result = await self.db.execute(
            select(Invoice).where(
                Invoice.student_id == student_id,
                Invoice.batch_id == batch_id,
                Invoice.status != InvoiceStatus.CANCELLED.value,
            )
        )
        return result.scalars().first()

    async def list_invoices(
        self, filters: InvoiceFilters, today: date | None = None
    ) -> tuple[list[Invoice], int]:
        """
        List invoices with filters.

        Filtering by overdue matches open invoices past their due date;
        pending and partial then exclude those.
        """
        today = today or date.today()
        query = select(Invoice)

        if filters.student_id is not None:
            query = query.where(Invoice.student_id == filters.student_id)
        if filters.batch_id is not None:
            query = query.where(Invoice.batch_id == filters.batch_id)
        if filters.status is not None:
            if filters.status == InvoiceStatus.OVERDUE:
                query = query.where(
                    Invoice.status.in_(_OPEN_STATUSES),
                    Invoice.remaining_amount > 0,
                    Invoice.due_date < today,
                )
            elif filters.status.value in _OPEN_STATUSES:
                query = query.where(
                    Invoice.status == filters.status.value,
                    Invoice.due_date >= today,
                )
            else:
                query = query.where(Invoice.status == filters.status.value)
        if filters.search:
            term = f"%{filters.search.strip()}%"
            query = query.where(
                or_(Invoice.invoice_number.ilike(term), Invoice.batch_name.ilike(term))
            )

        count_query = select(func.count()).select_from(query.subquery())
        total = (await self.db.execute(count_query)).scalar() or 0

        query = (
            query.options(selectinload(Invoice.payments))
            .order_by(Invoice.created_at.desc(), Invoice.id.desc())
            .offset((filters.page - 1) * filters.limit)
            .limit(filters.limit)
        )
        result = await self.db.execute(query)
        return list(result.scalars().all()), total

    async def list_student_invoices(self, student_id: int) -> list[Invoice]:
        result = await self.db.execute(
            select(Invoice)
            .where(Invoice.student_id == student_id)
            .options(selectinload(Invoice.payments))
            .order_by(Invoice.created_at.desc(), Invoice.id.desc())
        )
        return list(result.scalars().all())

    # --- Invoice creation ---

    async def enroll(
        self, student_id: int, batch_id: int, promo_code: str | None = None
    ) -> Invoice:
        """
        Enroll a student: validate the batch, apply the promo code and issue
        the invoice. The seat is taken later, when the invoice is paid.
        """
        batch = await self.batches.get_batch(batch_id)

        if not batch.is_enrollable:
            raise ValidationError(
                f"Batch {batch.batch_code} is not open for enrollment", field="batch_id"
            )
        if batch.is_full:
            raise CapacityExceeded(batch.id, batch.current_students, batch.max_students)
        if await self.find_active_invoice(student_id, batch.id):
            raise DuplicateEnrollment(student_id, batch.id)

        pricing = resolve_batch_pricing(batch)

        promo: PromoCode | None = None
        promo_discount = ZERO
        if promo_code:
            promo, promo_discount = await self.promo_codes.calculate_discount(
                promo_code, batch, pricing.effective_price
            )

        invoice = await self._add_invoice(
            student_id=student_id,
            batch=batch,
            pricing=pricing,
            promo_discount=promo_discount,
            promo_code=promo.code if promo else None,
            created_by_id=student_id,
        )
        if promo is not None:
            await self.promo_codes.consume(promo)

        await self.db.commit()
        return await self.get_invoice(invoice.id)

    async def create_invoice(
        self,
        student_id: int,
        batch_id: int,
        pricing: ResolvedPricing,
        promo_discount: Decimal = ZERO,
        promo_code: str | None = None,
        created_by_id: int | None = None,
    ) -> Invoice:
        """Issue an invoice for (student, batch) at the given pricing."""
        batch = await self.batches.get_batch(batch_id)
        invoice = await self._add_invoice(
            student_id=student_id,
            batch=batch,
            pricing=pricing,
            promo_discount=promo_discount,
            promo_code=promo_code,
            created_by_id=created_by_id if created_by_id is not None else student_id,
        )
        await self.db.commit()
        return await self.get_invoice(invoice.id)

    async def _add_invoice(
        self,
        student_id: int,
        batch: Batch,
        pricing: ResolvedPricing,
        promo_discount: Decimal,
        promo_code: str | None,
        created_by_id: int,
    ) -> Invoice:
        if await self.find_active_invoice(student_id, batch.id):
            raise DuplicateEnrollment(student_id, batch.id)

        amount = round_money(pricing.regular_price)
        price_discount = pricing.price_discount
        # Promo discount is untrusted input
        promo_discount = clamp_money(promo_discount, ZERO, amount - price_discount)
        discount_amount = clamp_money(price_discount + promo_discount, ZERO, amount)
        final_amount = round_money(amount - discount_amount)

        invoice_number = await DocumentNumberGenerator(self.db).generate(
            settings.invoice_number_prefix
        )

        invoice = Invoice(
            invoice_number=invoice_number,
            student_id=student_id,
            batch_id=batch.id,
            batch_name=batch.name,
            currency=settings.currency,
            amount=amount,
            discount_amount=discount_amount,
            promo_code=promo_code,
            promo_discount=promo_discount,
            final_amount=final_amount,
            paid_amount=ZERO,
            remaining_amount=final_amount,
            status=InvoiceStatus.PENDING.value,
            due_date=date.today() + timedelta(days=settings.invoice_due_days),
            seat_counted=False,
            created_by_id=created_by_id,
            payments=[],
        )
        try:
            async with self.db.begin_nested():
                self.db.add(invoice)
        except IntegrityError:
            # Lost the race against a concurrent enrollment
            raise DuplicateEnrollment(student_id, batch.id)

        # A fully discounted invoice is paid on creation
        self.recalculate(invoice)
        if invoice.is_paid:
            await self.db.flush()
            await self._count_seat(invoice)

        logger.info(
            "Issued invoice %s for student %s in batch %s: %s %s",
            invoice.invoice_number,
            student_id,
            batch.batch_code,
            invoice.final_amount,
            invoice.currency,
        )

        await self.audit.log(
            action=AuditAction.CREATE_INVOICE,
            entity_type="Invoice",
            entity_id=invoice.id,
            entity_identifier=invoice.invoice_number,
            user_id=created_by_id,
            new_values={
                "student_id": student_id,
                "batch_id": batch.id,
                "amount": str(amount),
                "discount_amount": str(discount_amount),
                "promo_code": promo_code,
                "final_amount": str(final_amount),
            },
        )
        return invoice

    # --- Payments ---

    async def record_payment_submission(
        self, invoice_id: int, claim: PaymentClaim, student_id: int | None = None
    ) -> InvoicePayment:
        """Append a pending payment. Paid amount and status do not change."""
        invoice = await self.get_invoice(invoice_id)

        if student_id is not None and invoice.student_id != student_id:
            raise NotFoundError("Invoice", invoice_id)
        if not invoice.can_receive_payment:
            raise ValidationError(
                f"Invoice {invoice.invoice_number} is {invoice.status} and cannot receive payments"
            )
        batch = await self.batches.get_batch(invoice.batch_id)
        if batch.is_terminal:
            raise ValidationError(
                f"Batch {batch.batch_code} is {batch.status} and no longer takes payments",
                field="invoice_id",
            )

        amount = round_money(claim.amount)
        if amount <= ZERO:
            raise ValidationError("Payment amount must be positive", field="amount")
        if amount > invoice.remaining_amount:
            raise ValidationError(
                f"Payment amount {amount} exceeds remaining balance {invoice.remaining_amount}",
                field="amount",
            )

        payment = InvoicePayment(
            amount=amount,
            method=claim.method.value,
            sender_number=claim.sender_number.strip(),
            transaction_id=claim.transaction_id,
            screenshot_url=claim.screenshot_url,
            status=PaymentStatus.PENDING.value,
            submitted_at=datetime.now(timezone.utc),
        )
        invoice.payments.append(payment)
        await self.db.flush()

        await self.audit.log(
            action=AuditAction.SUBMIT_PAYMENT,
            entity_type="InvoicePayment",
            entity_id=payment.id,
            entity_identifier=invoice.invoice_number,
            user_id=student_id,
            new_values={"amount": str(amount), "method": payment.method},
        )

        await self.db.commit()
        return payment

    async def apply_verification_decision(
        self,
        invoice_id: int,
        payment_id: int,
        decision: VerificationDecision,
        decided_by_id: int,
        notes: str | None = None,
        reason: str | None = None,
    ) -> Invoice:
        """
        Verify or reject one pending payment.

        Repeating the decision a payment already carries is a no-op; the
        opposite decision raises AlreadyDecided. When a verification pays the
        invoice in full, the batch seat is taken exactly once.
        """
        if decision == VerificationDecision.REJECT and not (reason and reason.strip()):
            raise MissingReason()

        invoice = await self._get_invoice_for_update(invoice_id)
        payment = next((p for p in invoice.payments if p.id == payment_id), None)
        if payment is None:
            raise NotFoundError("Payment", payment_id)

        target = (
            PaymentStatus.VERIFIED.value
            if decision == VerificationDecision.VERIFY
            else PaymentStatus.REJECTED.value
        )
        if payment.is_decided:
            if payment.status == target:
                logger.info("Payment %s already %s, nothing to do", payment.id, payment.status)
                return invoice
            raise AlreadyDecided(payment.id, payment.status)

        if invoice.is_cancelled:
            raise ValidationError(f"Invoice {invoice.invoice_number} is cancelled")

        now = datetime.now(timezone.utc)
        old_values = {
            "paid_amount": str(invoice.paid_amount),
            "remaining_amount": str(invoice.remaining_amount),
            "status": invoice.status,
        }

        if decision == VerificationDecision.VERIFY:
            if payment.amount > invoice.remaining_amount:
                raise ValidationError(
                    f"Payment amount {payment.amount} exceeds remaining balance "
                    f"{invoice.remaining_amount}",
                    field="amount",
                )
            if payment.amount == invoice.remaining_amount and not invoice.seat_counted:
                batch = await self.batches.get_batch(invoice.batch_id)
                if not batch.is_terminal:
                    await self.batches.ensure_capacity(batch.id)

            payment.status = PaymentStatus.VERIFIED.value
            payment.verified_at = now
            payment.decided_at = now
            payment.decided_by_id = decided_by_id
            payment.admin_notes = notes

            self.recalculate(invoice)
            await self.db.flush()

            if invoice.is_paid:
                await self._count_seat(invoice)
            action = AuditAction.VERIFY_PAYMENT
        else:
            payment.status = PaymentStatus.REJECTED.value
            payment.decided_at = now
            payment.decided_by_id = decided_by_id
            payment.rejection_reason = reason.strip()
            payment.admin_notes = notes
            await self.db.flush()
            action = AuditAction.REJECT_PAYMENT

        logger.info(
            "Payment %s on invoice %s %s by user %s; invoice now %s (paid %s, remaining %s)",
            payment.id,
            invoice.invoice_number,
            payment.status,
            decided_by_id,
            invoice.status,
            invoice.paid_amount,
            invoice.remaining_amount,
        )

        await self.audit.log(
            action=action,
            entity_type="InvoicePayment",
            entity_id=payment.id,
            entity_identifier=invoice.invoice_number,
            user_id=decided_by_id,
            old_values=old_values,
            new_values={
                "paid_amount": str(invoice.paid_amount),
                "remaining_amount": str(invoice.remaining_amount),
                "status": invoice.status,
            },
            comment=payment.rejection_reason or notes,
        )

        await self.db.commit()
        return await self.get_invoice(invoice_id)

    async def _count_seat(self, invoice: Invoice) -> None:
        """Take the batch seat for a paid invoice, at most once."""
        batch = await self.batches.get_batch(invoice.batch_id)
        if batch.is_terminal:
            logger.info(
                "Batch %s is %s, no seat taken for invoice %s",
                batch.batch_code,
                batch.status,
                invoice.invoice_number,
            )
            return

        claim = await self.db.execute(
            update(Invoice)
            .where(Invoice.id == invoice.id, Invoice.seat_counted == False)
            .values(seat_counted=True)
            .execution_options(synchronize_session="fetch")
        )
        if claim.rowcount == 0:
            logger.info("Seat for invoice %s already counted", invoice.invoice_number)
            return
        await self.batches.increment_enrollment(invoice.batch_id)

    # --- Cancellation ---

    async def cancel_invoice(
        self, invoice_id: int, cancelled_by_id: int, reason: str | None = None
    ) -> Invoice:
        """Cancel an unpaid invoice; pending payments on it are rejected."""
        invoice = await self._get_invoice_for_update(invoice_id)

        if not invoice.can_be_cancelled:
            if invoice.paid_amount > ZERO:
                raise ValidationError("Cannot cancel an invoice with verified payments")
            raise ValidationError(f"Cannot cancel invoice with status '{invoice.status}'")

        now = datetime.now(timezone.utc)
        for payment in invoice.pending_payments:
            payment.status = PaymentStatus.REJECTED.value
            payment.decided_at = now
            payment.decided_by_id = cancelled_by_id
            payment.rejection_reason = "Invoice cancelled"

        invoice.status = InvoiceStatus.CANCELLED.value
        if invoice.promo_code:
            await self.promo_codes.release(invoice.promo_code)

        await self.audit.log(
            action=AuditAction.CANCEL_INVOICE,
            entity_type="Invoice",
            entity_id=invoice.id,
            entity_identifier=invoice.invoice_number,
            user_id=cancelled_by_id,
            new_values={"status": InvoiceStatus.CANCELLED.value},
            comment=reason,
        )

        await self.db.commit()
        return await self.get_invoice(invoice_id)

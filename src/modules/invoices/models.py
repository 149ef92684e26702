"""Invoice and InvoicePayment models."""

from datetime import date, datetime
from decimal import Decimal
from enum import StrEnum

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.core.database.base import Base, BigIntPK, Money, VersionedModel


class InvoiceStatus(StrEnum):
    """Invoice status enumeration."""

    PENDING = "pending"
    PARTIAL = "partial"
    PAID = "paid"
    # Never stored; see Invoice.effective_status
    OVERDUE = "overdue"
    CANCELLED = "cancelled"


class PaymentMethod(StrEnum):
    """How the student sent the money."""

    BKASH = "bkash"
    NAGAD = "nagad"
    BANK_TRANSFER = "bank_transfer"
    CASH = "cash"


class PaymentStatus(StrEnum):
    """Verification status of a submitted payment."""

    PENDING = "pending"
    VERIFIED = "verified"
    REJECTED = "rejected"


class VerificationDecision(StrEnum):
    """Admin decision on a pending payment."""

    VERIFY = "verify"
    REJECT = "reject"


class Invoice(VersionedModel):
    """
    Billing record for one student's enrollment in one batch.

    paid_amount / remaining_amount / status are derived from the verified
    payments by InvoiceService.recalculate and nowhere else.
    """

    __tablename__ = "invoices"

    invoice_number: Mapped[str] = mapped_column(
        String(50), nullable=False, unique=True, index=True
    )

    # Students live in the identity service
    student_id: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    batch_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("batches.id"), nullable=False, index=True
    )
    batch_name: Mapped[str] = mapped_column(String(100), nullable=False)

    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="BDT")

    # Amounts
    amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    discount_amount: Mapped[Decimal] = mapped_column(
        Money, nullable=False, default=Decimal("0.00")
    )
    promo_code: Mapped[str | None] = mapped_column(String(20), nullable=True)
    promo_discount: Mapped[Decimal] = mapped_column(
        Money, nullable=False, default=Decimal("0.00")
    )
    final_amount: Mapped[Decimal] = mapped_column(Money, nullable=False)  # amount - discount_amount
    paid_amount: Mapped[Decimal] = mapped_column(
        Money, nullable=False, default=Decimal("0.00")
    )
    remaining_amount: Mapped[Decimal] = mapped_column(Money, nullable=False)  # final - paid

    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=InvoiceStatus.PENDING.value, index=True
    )
    due_date: Mapped[date] = mapped_column(Date, nullable=False)

    # Set once when the paid invoice took its seat in the batch
    seat_counted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_by_id: Mapped[int] = mapped_column(BigInteger, nullable=False)

    # Relationships
    batch: Mapped["Batch"] = relationship("Batch")
    payments: Mapped[list["InvoicePayment"]] = relationship(
        "InvoicePayment",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoicePayment.id",
    )

    __table_args__ = (
        CheckConstraint("remaining_amount >= 0", name="ck_invoice_remaining_non_negative"),
        CheckConstraint("paid_amount >= 0", name="ck_invoice_paid_non_negative"),
        # One live invoice per (student, batch)
        Index(
            "uq_invoices_active_enrollment",
            "student_id",
            "batch_id",
            unique=True,
            postgresql_where=text("status <> 'cancelled'"),
            sqlite_where=text("status <> 'cancelled'"),
        ),
    )

    @property
    def is_cancelled(self) -> bool:
        return self.status == InvoiceStatus.CANCELLED.value

    @property
    def is_paid(self) -> bool:
        return self.status == InvoiceStatus.PAID.value

    @property
    def can_receive_payment(self) -> bool:
        """Open for new payment submissions."""
        return self.status in (InvoiceStatus.PENDING.value, InvoiceStatus.PARTIAL.value)

    @property
    def can_be_cancelled(self) -> bool:
        """Only while nothing has been paid."""
        return self.can_receive_payment and self.paid_amount == Decimal("0.00")

    def status_on(self, today: date) -> str:
        """Stored status, or overdue once the due date has passed with money owed."""
        if (
            self.can_receive_payment
            and self.remaining_amount > Decimal("0.00")
            and today > self.due_date
        ):
            return InvoiceStatus.OVERDUE.value
        return self.status

    @property
    def effective_status(self) -> str:
        return self.status_on(date.today())

    @property
    def pending_payments(self) -> list["InvoicePayment"]:
        return [p for p in self.payments if p.status == PaymentStatus.PENDING.value]

    @property
    def verified_payments(self) -> list["InvoicePayment"]:
        return [p for p in self.payments if p.status == PaymentStatus.VERIFIED.value]


class InvoicePayment(Base):
    """A payment claim on an invoice, verified or rejected by an admin."""

    __tablename__ = "invoice_payments"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    invoice_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False, index=True
    )

    amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    method: Mapped[str] = mapped_column(String(20), nullable=False)
    sender_number: Mapped[str] = mapped_column(String(30), nullable=False)
    transaction_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    # Opaque URL handed out by file storage
    screenshot_url: Mapped[str | None] = mapped_column(String(500), nullable=True)

    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=PaymentStatus.PENDING.value, index=True
    )
    submitted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    verified_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    decided_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    decided_by_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    admin_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Relationships
    invoice: Mapped["Invoice"] = relationship("Invoice", back_populates="payments")

    __table_args__ = (CheckConstraint("amount > 0", name="ck_invoice_payment_amount_positive"),)

    @property
    def is_decided(self) -> bool:
        return self.status != PaymentStatus.PENDING.value


# Import at the end to avoid circular imports
from src.modules.batches.models import Batch

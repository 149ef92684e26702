"""Add invoices and invoice_payments tables

Revision ID: 003_invoices_and_payments
Revises: 002_courses_and_batches
Create Date: 2026-10-06

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "003_invoices_and_payments"
down_revision: Union[str, None] = "002_courses_and_batches"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Invoices table
    op.create_table(
        "invoices",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("invoice_number", sa.String(50), nullable=False),
        sa.Column("student_id", sa.BigInteger(), nullable=False),
        sa.Column("batch_id", sa.BigInteger(), nullable=False),
        sa.Column("batch_name", sa.String(100), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False, server_default="BDT"),
        sa.Column("amount", sa.Numeric(15, 2), nullable=False),
        sa.Column("discount_amount", sa.Numeric(15, 2), nullable=False, server_default="0.00"),
        sa.Column("promo_code", sa.String(20), nullable=True),
        sa.Column("promo_discount", sa.Numeric(15, 2), nullable=False, server_default="0.00"),
        sa.Column("final_amount", sa.Numeric(15, 2), nullable=False),
        sa.Column("paid_amount", sa.Numeric(15, 2), nullable=False, server_default="0.00"),
        sa.Column("remaining_amount", sa.Numeric(15, 2), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("due_date", sa.Date(), nullable=False),
        sa.Column("seat_counted", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_by_id", sa.BigInteger(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["batch_id"], ["batches.id"]),
        sa.CheckConstraint("remaining_amount >= 0", name="ck_invoice_remaining_non_negative"),
        sa.CheckConstraint("paid_amount >= 0", name="ck_invoice_paid_non_negative"),
    )
    op.create_index("ix_invoices_invoice_number", "invoices", ["invoice_number"], unique=True)
    op.create_index("ix_invoices_student_id", "invoices", ["student_id"], unique=False)
    op.create_index("ix_invoices_batch_id", "invoices", ["batch_id"], unique=False)
    op.create_index("ix_invoices_status", "invoices", ["status"], unique=False)
    # One live invoice per (student, batch)
    op.create_index(
        "uq_invoices_active_enrollment",
        "invoices",
        ["student_id", "batch_id"],
        unique=True,
        postgresql_where=sa.text("status <> 'cancelled'"),
    )

    # Invoice payments table
    op.create_table(
        "invoice_payments",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("invoice_id", sa.BigInteger(), nullable=False),
        sa.Column("amount", sa.Numeric(15, 2), nullable=False),
        sa.Column("method", sa.String(20), nullable=False),
        sa.Column("sender_number", sa.String(30), nullable=False),
        sa.Column("transaction_id", sa.String(100), nullable=True),
        sa.Column("screenshot_url", sa.String(500), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column(
            "submitted_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column("verified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("decided_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("decided_by_id", sa.BigInteger(), nullable=True),
        sa.Column("admin_notes", sa.Text(), nullable=True),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["invoice_id"], ["invoices.id"], ondelete="CASCADE"),
        sa.CheckConstraint("amount > 0", name="ck_invoice_payment_amount_positive"),
    )
    op.create_index("ix_invoice_payments_invoice_id", "invoice_payments", ["invoice_id"], unique=False)
    op.create_index("ix_invoice_payments_status", "invoice_payments", ["status"], unique=False)


def downgrade() -> None:
    op.drop_table("invoice_payments")
    op.drop_index("uq_invoices_active_enrollment", table_name="invoices")
    op.drop_table("invoices")

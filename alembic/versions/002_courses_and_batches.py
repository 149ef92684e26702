"""Add courses and batches tables

Revision ID: 002_courses_and_batches
Revises: 001_initial
Create Date: 2026-10-05

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "002_courses_and_batches"
down_revision: Union[str, None] = "001_initial"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
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
    ]


def upgrade() -> None:
    # Courses table
    op.create_table(
        "courses",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("course_code", sa.String(10), nullable=False),
        sa.Column("course_shortcut", sa.String(50), nullable=False),
        sa.Column("regular_price", sa.Numeric(15, 2), nullable=False),
        sa.Column("discount_price", sa.Numeric(15, 2), nullable=True),
        sa.Column("discount_percentage", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("title"),
    )
    op.create_index("ix_courses_course_code", "courses", ["course_code"], unique=True)

    # Batches table
    op.create_table(
        "batches",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("batch_code", sa.String(30), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("course_id", sa.BigInteger(), nullable=False),
        sa.Column("course_type", sa.String(20), nullable=False, server_default="online"),
        sa.Column("slug", sa.String(255), nullable=False),
        sa.Column("meta_description", sa.String(160), nullable=True),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("max_students", sa.Integer(), nullable=False, server_default="30"),
        sa.Column("current_students", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("regular_price", sa.Numeric(15, 2), nullable=False),
        sa.Column("discount_price", sa.Numeric(15, 2), nullable=True),
        sa.Column("discount_percentage", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("status", sa.String(20), nullable=False, server_default="draft"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_by_id", sa.BigInteger(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["course_id"], ["courses.id"]),
        sa.CheckConstraint("end_date > start_date", name="ck_batch_date_range"),
        sa.CheckConstraint("max_students >= 1", name="ck_batch_max_students"),
        sa.CheckConstraint(
            "current_students >= 0 AND current_students <= max_students",
            name="ck_batch_capacity",
        ),
    )
    op.create_index("ix_batches_batch_code", "batches", ["batch_code"], unique=True)
    op.create_index("ix_batches_slug", "batches", ["slug"], unique=True)
    op.create_index("ix_batches_course_id", "batches", ["course_id"], unique=False)
    op.create_index("ix_batches_status", "batches", ["status"], unique=False)
    op.create_index("ix_batches_is_active", "batches", ["is_active"], unique=False)


def downgrade() -> None:
    op.drop_table("batches")
    op.drop_table("courses")

from datetime import datetime
from enum import StrEnum
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.audit.models import AuditLog


class AuditAction(StrEnum):
    """Standard audit actions."""

    CREATE_BATCH = "batch.create"
    UPDATE_BATCH = "batch.update"
    CHANGE_BATCH_STATUS = "batch.status"
    TOGGLE_BATCH_ACTIVE = "batch.active"
    CREATE_COURSE = "course.create"
    CREATE_INVOICE = "invoice.create"
    CANCEL_INVOICE = "invoice.cancel"
    SUBMIT_PAYMENT = "payment.submit"
    VERIFY_PAYMENT = "payment.verify"
    REJECT_PAYMENT = "payment.reject"
    CREATE_PROMO_CODE = "promo_code.create"


class AuditService:
    """Service for creating audit logs."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def log(
        self,
        action: str | AuditAction,
        entity_type: str,
        entity_id: int,
        user_id: int | None = None,
        entity_identifier: str | None = None,
        old_values: dict[str, Any] | None = None,
        new_values: dict[str, Any] | None = None,
        comment: str | None = None,
    ) -> AuditLog:
        """Create an audit log entry."""
        return await create_audit_log(
            session=self.db,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            user_id=user_id,
            entity_identifier=entity_identifier,
            old_values=old_values,
            new_values=new_values,
            comment=comment,
        )


async def create_audit_log(
    session: AsyncSession,
    action: str | AuditAction,
    entity_type: str,
    entity_id: int,
    user_id: int | None = None,
    entity_identifier: str | None = None,
    old_values: dict[str, Any] | None = None,
    new_values: dict[str, Any] | None = None,
    comment: str | None = None,
) -> AuditLog:
    """
    Create an audit log entry.

    Args:
        session: Database session
        action: Action performed (e.g., batch.create, payment.verify)
        entity_type: Type of entity (e.g., Batch, Invoice, Payment)
        entity_id: ID of the entity
        user_id: ID of the user who performed the action
        entity_identifier: Human-readable identifier (e.g., batch code, invoice number)
        old_values: State before change
        new_values: State after change
        comment: Additional comment

    Returns:
        Created AuditLog instance
    """
    audit_log = AuditLog(
        user_id=user_id,
        action=str(action),
        entity_type=entity_type,
        entity_id=entity_id,
        entity_identifier=entity_identifier,
        old_values=old_values,
        new_values=new_values,
        comment=comment,
    )

    session.add(audit_log)
    await session.flush()

    return audit_log


async def list_audit_entries(
    session: AsyncSession,
    *,
    entity_type: str | None = None,
    entity_id: int | None = None,
    action: str | None = None,
    date_from: datetime | None = None,
    page: int = 1,
    limit: int = 50,
) -> tuple[list[AuditLog], int]:
    """List audit log entries, newest first. Returns (entries, total_count)."""
    q = select(AuditLog).order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
    if entity_type is not None:
        q = q.where(AuditLog.entity_type == entity_type)
    if entity_id is not None:
        q = q.where(AuditLog.entity_id == entity_id)
    if action is not None:
        q = q.where(AuditLog.action == action)
    if date_from is not None:
        q = q.where(AuditLog.created_at >= date_from)

    total = (await session.execute(select(func.count()).select_from(q.subquery()))).scalar_one()

    q = q.offset((page - 1) * limit).limit(limit)
    result = await session.execute(q)
    return list(result.scalars().all()), total

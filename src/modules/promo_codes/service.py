"""Service for Promo codes module."""

from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.audit.service import AuditAction, AuditService
from src.core.exceptions import DuplicateError, NotFoundError, ValidationError
from src.modules.batches.models import Batch
from src.modules.promo_codes.models import PromoCode
from src.modules.promo_codes.schemas import PromoCodeCreate
from src.shared.utils.money import ZERO, round_money


def _as_utc(value: datetime) -> datetime:
    # SQLite drops tzinfo on the way back
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


class PromoCodeService:
    """Validates promo codes and computes their discount."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.audit = AuditService(db)

    async def get_by_code(self, code: str) -> PromoCode | None:
        result = await self.db.execute(
            select(PromoCode).where(PromoCode.code == code.strip().upper())
        )
        return result.scalar_one_or_none()

    async def list_promo_codes(self, include_inactive: bool = False) -> list[PromoCode]:
        query = select(PromoCode).order_by(PromoCode.created_at.desc(), PromoCode.id.desc())
        if not include_inactive:
            query = query.where(PromoCode.is_active == True)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def create_promo_code(self, data: PromoCodeCreate, created_by_id: int) -> PromoCode:
        if await self.get_by_code(data.code):
            raise DuplicateError("PromoCode", "code", data.code)

        if data.batch_id is not None:
            batch = await self.db.execute(select(Batch.id).where(Batch.id == data.batch_id))
            if batch.first() is None:
                raise NotFoundError("Batch", data.batch_id)

        promo = PromoCode(
            code=data.code,
            description=data.description,
            value_type=data.value_type.value,
            value=data.value,
            min_amount=round_money(data.min_amount) if data.min_amount is not None else None,
            max_discount=round_money(data.max_discount) if data.max_discount is not None else None,
            valid_from=data.valid_from,
            valid_until=data.valid_until,
            usage_limit=data.usage_limit,
            used_count=0,
            is_active=True,
            batch_id=data.batch_id,
            course_id=data.course_id,
            created_by_id=created_by_id,
        )
        self.db.add(promo)
        await self.db.flush()

        await self.audit.log(
            action=AuditAction.CREATE_PROMO_CODE,
            entity_type="PromoCode",
            entity_id=promo.id,
            entity_identifier=promo.code,
            user_id=created_by_id,
            new_values={"value_type": promo.value_type, "value": str(promo.value)},
        )

        await self.db.commit()
        return promo

    async def calculate_discount(
        self, code: str, batch: Batch, amount: Decimal, now: datetime | None = None
    ) -> tuple[PromoCode, Decimal]:
        """
        Validate `code` for `batch` and return (promo, discount).

        The discount never exceeds `amount`.
        """
        promo = await self.get_by_code(code)
        if promo is None or not promo.is_active:
            raise ValidationError("Invalid or expired promo code", field="promo_code")

        now = now or datetime.now(timezone.utc)
        if not (_as_utc(promo.valid_from) <= now <= _as_utc(promo.valid_until)):
            raise ValidationError("Invalid or expired promo code", field="promo_code")

        if promo.is_exhausted:
            raise ValidationError("Promo code has reached its usage limit", field="promo_code")

        restricted = promo.batch_id is not None or promo.course_id is not None
        applies = promo.batch_id == batch.id or promo.course_id == batch.course_id
        if restricted and not applies:
            raise ValidationError("Promo code is not valid for this batch", field="promo_code")

        if promo.min_amount is not None and amount < promo.min_amount:
            raise ValidationError(
                f"Minimum amount of {promo.min_amount} required for this promo code",
                field="promo_code",
            )

        if promo.is_percentage:
            discount = round_money(amount * promo.value / Decimal("100"))
            if promo.max_discount is not None:
                discount = min(discount, promo.max_discount)
        else:
            discount = round_money(promo.value)

        discount = max(min(discount, amount), ZERO)
        return promo, round_money(discount)

    async def consume(self, promo: PromoCode) -> None:
        """Count one use; refuses when the limit was reached concurrently."""
        stmt = update(PromoCode).where(PromoCode.id == promo.id)
        if promo.usage_limit is not None:
            stmt = stmt.where(PromoCode.used_count < PromoCode.usage_limit)
        stmt = stmt.values(used_count=PromoCode.used_count + 1).execution_options(
            synchronize_session="fetch"
        )
        result = await self.db.execute(stmt)
        if result.rowcount == 0:
            raise ValidationError("Promo code has reached its usage limit", field="promo_code")

    async def release(self, code: str) -> None:
        """Give back one use, e.g. when the invoice that consumed it is cancelled."""
        await self.db.execute(
            update(PromoCode)
            .where(PromoCode.code == code.strip().upper(), PromoCode.used_count > 0)
            .values(used_count=PromoCode.used_count - 1)
            .execution_options(synchronize_session="fetch")
        )

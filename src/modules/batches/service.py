"""Service for Batches module."""

import logging
from datetime import date, datetime

from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from src.core.audit.service import AuditAction, AuditService
from src.core.config import settings
from src.core.exceptions import (
    CapacityExceeded,
    GenerationError,
    InvalidDateRange,
    InvalidStatusTransition,
    NotFoundError,
    ValidationError,
)
from src.modules.batches.identifiers import BatchIdentifierGenerator, default_batch_name
from src.modules.batches.models import Batch, BatchStatus, TERMINAL_BATCH_STATUSES
from src.modules.batches.pricing import resolve_pricing
from src.modules.batches.schemas import BatchCreate, BatchFilters, BatchUpdate

logger = logging.getLogger(__name__)


class BatchService:
    """Owns batch creation, edits, lifecycle and seat capacity."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.audit = AuditService(db)
        self.identifiers = BatchIdentifierGenerator(db)

    # --- Invariants ---

    @staticmethod
    def _check_date_range(start: date, end: date) -> None:
        if end <= start:
            raise InvalidDateRange(start, end)

    @staticmethod
    def _check_capacity(batch_id: int | None, current: int, maximum: int) -> None:
        if current < 0 or current > maximum:
            raise CapacityExceeded(batch_id, current, maximum)

    # --- Queries ---

    async def get_batch(self, batch_id: int) -> Batch:
        """Get batch by ID with its course loaded."""
        result = await self.db.execute(
            select(Batch)
            .where(Batch.id == batch_id)
            .options(selectinload(Batch.course))
            .execution_options(populate_existing=True)
        )
        batch = result.scalar_one_or_none()
        if not batch:
            raise NotFoundError("Batch", batch_id)
        return batch

    async def get_batch_by_slug(self, slug: str) -> Batch:
        result = await self.db.execute(
            select(Batch).where(Batch.slug == slug.lower()).options(selectinload(Batch.course))
        )
        batch = result.scalar_one_or_none()
        if not batch:
            raise NotFoundError(f"Batch with slug '{slug}'")
        return batch

    async def list_batches(self, filters: BatchFilters) -> tuple[list[Batch], int]:
        """List batches with filters."""
        query = select(Batch)

        if filters.course_id:
            query = query.where(Batch.course_id == filters.course_id)
        if filters.status:
            query = query.where(Batch.status == filters.status.value)
        if filters.course_type:
            query = query.where(Batch.course_type == filters.course_type.value)
        if filters.is_active is not None:
            query = query.where(Batch.is_active == filters.is_active)
        if filters.search:
            term = f"%{filters.search.strip()}%"
            query = query.where(or_(Batch.name.ilike(term), Batch.batch_code.ilike(term)))

        count_query = select(func.count()).select_from(query.subquery())
        total = (await self.db.execute(count_query)).scalar() or 0

        query = (
            query.options(selectinload(Batch.course))
            .order_by(Batch.start_date.desc(), Batch.id.desc())
            .offset((filters.page - 1) * filters.limit)
            .limit(filters.limit)
        )
        result = await self.db.execute(query)
        return list(result.scalars().all()), total

    # --- Commands ---

    async def create_batch(self, data: BatchCreate, created_by_id: int) -> Batch:
        """
        Create a batch with derived code, name, slug and pricing.

        Everything is validated and derived before the single insert. A unique
        constraint collision (another request took the same code or slug) is
        retried with fresh identifiers.
        """
        course = await self.identifiers.resolve_course(data.course_id)

        self._check_date_range(data.start_date, data.end_date)
        max_students = data.max_students or settings.default_max_students
        self._check_capacity(None, 0, max_students)

        if data.status.value in TERMINAL_BATCH_STATUSES:
            raise InvalidStatusTransition("New batch", "none", data.status.value)

        pricing = resolve_pricing(
            data.regular_price, data.discount_price, course.regular_price, course.discount_price
        )
        year = data.year or datetime.now().year

        batch: Batch | None = None
        skip_to = 0
        for attempt in range(1, settings.identifier_max_attempts + 1):
            batch_code, sequence = await self.identifiers.generate_batch_code(course, year, after=skip_to)
            name = data.name or default_batch_name(course, sequence)
            slug = await self.identifiers.generate_unique_slug(course.title, name)

            candidate = Batch(
                batch_code=batch_code,
                name=name,
                description=data.description,
                meta_description=data.meta_description,
                course_id=course.id,
                course_type=data.course_type.value,
                slug=slug,
                start_date=data.start_date,
                end_date=data.end_date,
                max_students=max_students,
                current_students=0,
                regular_price=pricing.regular_price,
                discount_price=pricing.discount_price,
                discount_percentage=pricing.discount_percentage,
                status=data.status.value,
                is_active=True,
                created_by_id=created_by_id,
            )
            try:
                async with self.db.begin_nested():
                    self.db.add(candidate)
            except IntegrityError:
                logger.warning(
                    "Identifier collision for batch %s / %s (attempt %d), retrying",
                    batch_code,
                    slug,
                    attempt,
                )
                skip_to = sequence
                continue
            batch = candidate
            break

        if batch is None:
            raise GenerationError(
                f"Could not allocate a unique batch code for course {course.course_code} "
                f"after {settings.identifier_max_attempts} attempts",
                course_id=course.id,
            )

        logger.info("Created batch %s (%s) for course %s", batch.batch_code, batch.slug, course.course_code)

        await self.audit.log(
            action=AuditAction.CREATE_BATCH,
            entity_type="Batch",
            entity_id=batch.id,
            entity_identifier=batch.batch_code,
            user_id=created_by_id,
            new_values={
                "course_id": course.id,
                "name": batch.name,
                "slug": batch.slug,
                "regular_price": str(batch.regular_price),
                "discount_price": str(batch.discount_price) if batch.discount_price is not None else None,
                "discount_percentage": batch.discount_percentage,
            },
        )

        await self.db.commit()
        return await self.get_batch(batch.id)

    async def update_batch(self, batch_id: int, data: BatchUpdate, updated_by_id: int) -> Batch:
        """
        Explicit admin edit.

        Slug and batch code stay as generated. Prices sent as null fall back
        to the course; discount_percentage is recomputed.
        """
        batch = await self.get_batch(batch_id)
        fields = data.model_fields_set

        if batch.is_terminal and fields - {"is_active"}:
            raise ValidationError(f"Cannot edit a {batch.status} batch", field="status")

        start = data.start_date if data.start_date is not None else batch.start_date
        end = data.end_date if data.end_date is not None else batch.end_date
        self._check_date_range(start, end)

        max_students = data.max_students if data.max_students is not None else batch.max_students
        self._check_capacity(batch.id, batch.current_students, max_students)

        old_values: dict = {}
        new_values: dict = {}

        def _set(attr: str, value) -> None:
            old = getattr(batch, attr)
            if old != value:
                old_values[attr] = str(old) if old is not None else None
                new_values[attr] = str(value) if value is not None else None
                setattr(batch, attr, value)

        if data.name is not None:
            _set("name", data.name.strip())
        if "description" in fields:
            _set("description", data.description)
        if "meta_description" in fields:
            _set("meta_description", data.meta_description)
        if data.course_type is not None:
            _set("course_type", data.course_type.value)
        _set("start_date", start)
        _set("end_date", end)
        _set("max_students", max_students)
        if data.is_active is not None:
            _set("is_active", data.is_active)

        if "regular_price" in fields or "discount_price" in fields:
            regular = data.regular_price if "regular_price" in fields else batch.regular_price
            discount = data.discount_price if "discount_price" in fields else batch.discount_price
            pricing = resolve_pricing(
                regular, discount, batch.course.regular_price, batch.course.discount_price
            )
            _set("regular_price", pricing.regular_price)
            _set("discount_price", pricing.discount_price)
            _set("discount_percentage", pricing.discount_percentage)

        if new_values:
            await self.audit.log(
                action=AuditAction.UPDATE_BATCH,
                entity_type="Batch",
                entity_id=batch.id,
                entity_identifier=batch.batch_code,
                user_id=updated_by_id,
                old_values=old_values,
                new_values=new_values,
            )

        await self.db.commit()
        return await self.get_batch(batch_id)

    async def change_status(
        self, batch_id: int, new_status: BatchStatus, changed_by_id: int
    ) -> Batch:
        """Move the batch along draft -> published -> upcoming -> ongoing -> completed/cancelled."""
        batch = await self.get_batch(batch_id)
        target = new_status.value

        if not batch.can_transition_to(target):
            raise InvalidStatusTransition("Batch", batch.status, target)

        old_status = batch.status
        batch.status = target

        await self.audit.log(
            action=AuditAction.CHANGE_BATCH_STATUS,
            entity_type="Batch",
            entity_id=batch.id,
            entity_identifier=batch.batch_code,
            user_id=changed_by_id,
            old_values={"status": old_status},
            new_values={"status": target},
        )

        await self.db.commit()
        return await self.get_batch(batch_id)

    async def set_active(self, batch_id: int, is_active: bool, user_id: int) -> Batch:
        """Archive or restore a batch; allowed in any status."""
        batch = await self.get_batch(batch_id)
        if batch.is_active != is_active:
            batch.is_active = is_active
            await self.audit.log(
                action=AuditAction.TOGGLE_BATCH_ACTIVE,
                entity_type="Batch",
                entity_id=batch.id,
                entity_identifier=batch.batch_code,
                user_id=user_id,
                new_values={"is_active": is_active},
            )
            await self.db.commit()
        return await self.get_batch(batch_id)

    # --- Capacity ---

    async def ensure_capacity(self, batch_id: int) -> Batch:
        """Raise CapacityExceeded if the batch has no free seat."""
        batch = await self.get_batch(batch_id)
        if batch.is_full:
            raise CapacityExceeded(batch.id, batch.current_students, batch.max_students)
        return batch

    async def increment_enrollment(self, batch_id: int) -> int:
        """
        Take one seat. Returns the new current_students.

        A single conditional UPDATE, so the capacity check and the increment
        cannot be separated by a concurrent enrollment. Does not commit; the
        caller's unit of work does.
        """
        stmt = (
            update(Batch)
            .where(Batch.id == batch_id, Batch.current_students < Batch.max_students)
            .values(
                current_students=Batch.current_students + 1,
                version=Batch.version + 1,
            )
            .execution_options(synchronize_session="fetch")
        )
        result = await self.db.execute(stmt)

        batch = await self.get_batch(batch_id)
        if result.rowcount == 0:
            raise CapacityExceeded(batch.id, batch.current_students, batch.max_students)

        logger.info(
            "Seat taken in batch %s: %d/%d", batch.batch_code, batch.current_students, batch.max_students
        )
        return batch.current_students

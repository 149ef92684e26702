"""Batch code, name and slug derivation."""

import re
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.exceptions import GenerationError
from src.modules.batches.models import Batch
from src.modules.courses.models import Course

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def slugify(text: str) -> str:
    """
    Lower-case, collapse non-alphanumeric runs to '-', trim '-'.

        >>> slugify("Graphics Design - Batch 01!")
        'graphics-design-batch-01'
    """
    return _NON_ALNUM.sub("-", text.lower()).strip("-")


def batch_code_prefix(course_code: str, year: int) -> str:
    return f"{course_code.upper()}{year % 100:02d}"


def format_batch_code(course_code: str, year: int, sequence: int) -> str:
    """GDI + 2026 + 1 -> GDI2601."""
    return f"{batch_code_prefix(course_code, year)}{sequence:02d}"


def default_batch_name(course: Course, sequence: int) -> str:
    return f"{course.course_shortcut} Batch-{sequence:02d}"


class BatchIdentifierGenerator:
    """
    Derives unique identifiers for a new batch.

    Only reads from the batches table; the unique constraints on batch_code
    and slug catch anything that slips between the read and the insert.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def resolve_course(self, course_id: int | None) -> Course:
        if course_id is None:
            raise GenerationError("Batch cannot be created without a course")
        result = await self.session.execute(select(Course).where(Course.id == course_id))
        course = result.scalar_one_or_none()
        if course is None:
            raise GenerationError(
                f"Course with id={course_id} could not be resolved", course_id=course_id
            )
        if not course.course_code:
            raise GenerationError(
                f"Course with id={course_id} has no course code", course_id=course_id
            )
        return course

    async def next_sequence(self, course: Course, year: int) -> int:
        """Highest existing sequence for (course_code, year) plus one; 1 if none."""
        prefix = batch_code_prefix(course.course_code, year)
        result = await self.session.execute(
            select(Batch.batch_code).where(
                Batch.course_id == course.id,
                Batch.batch_code.like(f"{prefix}%"),
            )
        )
        highest = 0
        for code in result.scalars().all():
            suffix = code[len(prefix):]
            if suffix.isdigit():
                highest = max(highest, int(suffix))
        return highest + 1

    async def generate_batch_code(
        self, course: Course, year: int | None = None, after: int = 0
    ) -> tuple[str, int]:
        """
        Return (batch_code, sequence).

        `after` lets a retry skip past a sequence that lost an insert race.
        """
        if year is None:
            year = datetime.now().year
        sequence = max(await self.next_sequence(course, year), after + 1)
        return format_batch_code(course.course_code, year, sequence), sequence

    async def slug_exists(self, slug: str) -> bool:
        result = await self.session.execute(select(Batch.id).where(Batch.slug == slug).limit(1))
        return result.first() is not None

    async def generate_unique_slug(self, course_title: str, batch_name: str) -> str:
        base = slugify(f"{course_title}-{batch_name}") or "batch"
        slug = base
        counter = 1
        while await self.slug_exists(slug):
            slug = f"{base}-{counter}"
            counter += 1
        return slug

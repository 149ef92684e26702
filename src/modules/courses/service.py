"""Service for Courses module."""

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.audit.service import AuditAction, AuditService
from src.core.exceptions import DuplicateError, NotFoundError
from src.modules.batches.pricing import calculate_discount_percentage
from src.modules.courses.models import Course
from src.modules.courses.schemas import CourseCreate
from src.shared.utils.money import round_money


class CourseService:
    """Read-mostly access to the course catalogue."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.audit = AuditService(db)

    async def get_course(self, course_id: int) -> Course:
        result = await self.db.execute(select(Course).where(Course.id == course_id))
        course = result.scalar_one_or_none()
        if not course:
            raise NotFoundError("Course", course_id)
        return course

    async def list_courses(self, include_inactive: bool = False) -> list[Course]:
        query = select(Course).order_by(Course.title)
        if not include_inactive:
            query = query.where(Course.is_active == True)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def create_course(self, data: CourseCreate, created_by_id: int) -> Course:
        existing = await self.db.execute(
            select(Course).where(
                or_(Course.course_code == data.course_code, Course.title == data.title)
            )
        )
        clash = existing.scalars().first()
        if clash:
            if clash.course_code == data.course_code:
                raise DuplicateError("Course", "course_code", data.course_code)
            raise DuplicateError("Course", "title", data.title)

        regular = round_money(data.regular_price)
        discount = round_money(data.discount_price) if data.discount_price is not None else None
        course = Course(
            title=data.title,
            description=data.description,
            course_code=data.course_code,
            course_shortcut=data.course_shortcut,
            regular_price=regular,
            discount_price=discount,
            discount_percentage=calculate_discount_percentage(regular, discount),
            is_active=True,
        )
        self.db.add(course)
        await self.db.flush()

        await self.audit.log(
            action=AuditAction.CREATE_COURSE,
            entity_type="Course",
            entity_id=course.id,
            entity_identifier=course.course_code,
            user_id=created_by_id,
            new_values={"title": course.title, "course_code": course.course_code},
        )

        await self.db.commit()
        return await self.get_course(course.id)

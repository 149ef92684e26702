"""API endpoints for Courses module."""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.auth.dependencies import AdminUser, CurrentPrincipal
from src.core.database.session import get_db
from src.modules.courses.schemas import CourseCreate, CourseResponse
from src.modules.courses.service import CourseService
from src.shared.schemas.base import ApiResponse

router = APIRouter(prefix="/courses", tags=["Courses"])


@router.post(
    "",
    response_model=ApiResponse[CourseResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_course(
    data: CourseCreate,
    current_user: AdminUser,
    db: AsyncSession = Depends(get_db),
):
    """Create a course (parent for batches)."""
    service = CourseService(db)
    course = await service.create_course(data, current_user.user_id)
    return ApiResponse(
        data=CourseResponse.model_validate(course),
        message="Course created successfully",
    )


@router.get("", response_model=ApiResponse[list[CourseResponse]])
async def list_courses(
    current_user: CurrentPrincipal,
    include_inactive: bool = Query(False),
    db: AsyncSession = Depends(get_db),
):
    """List courses."""
    service = CourseService(db)
    courses = await service.list_courses(include_inactive=include_inactive)
    return ApiResponse(data=[CourseResponse.model_validate(c) for c in courses])


@router.get("/{course_id}", response_model=ApiResponse[CourseResponse])
async def get_course(
    course_id: int,
    current_user: CurrentPrincipal,
    db: AsyncSession = Depends(get_db),
):
    """Get course by ID."""
    service = CourseService(db)
    course = await service.get_course(course_id)
    return ApiResponse(data=CourseResponse.model_validate(course))

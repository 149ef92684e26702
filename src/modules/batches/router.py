"""API endpoints for Batches module."""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.auth.dependencies import AdminUser, CurrentPrincipal, StaffUser
from src.core.database.session import get_db
from src.modules.batches.models import Batch, BatchStatus, CourseType
from src.modules.batches.pricing import resolve_batch_pricing
from src.modules.batches.schemas import (
    BatchActiveUpdate,
    BatchCreate,
    BatchFilters,
    BatchPricing,
    BatchResponse,
    BatchStatusUpdate,
    BatchUpdate,
)
from src.modules.batches.service import BatchService
from src.shared.schemas.base import ApiResponse, PaginatedResponse

router = APIRouter(prefix="/batches", tags=["Batches"])


def build_batch_response(batch: Batch) -> BatchResponse:
    """Batch response with pricing resolved against the course at read time."""
    pricing = resolve_batch_pricing(batch)
    return BatchResponse(
        id=batch.id,
        batch_code=batch.batch_code,
        name=batch.name,
        description=batch.description,
        course_id=batch.course_id,
        course_title=batch.course.title if batch.course else None,
        course_type=batch.course_type,
        slug=batch.slug,
        meta_description=batch.meta_description,
        start_date=batch.start_date,
        end_date=batch.end_date,
        max_students=batch.max_students,
        current_students=batch.current_students,
        available_seats=batch.available_seats,
        regular_price=float(pricing.regular_price),
        discount_price=float(pricing.discount_price) if pricing.discount_price is not None else None,
        discount_percentage=pricing.discount_percentage,
        pricing=BatchPricing(
            regular_price=float(pricing.regular_price),
            discount_price=float(pricing.discount_price) if pricing.discount_price is not None else None,
            discount_percentage=pricing.discount_percentage,
            effective_price=float(pricing.effective_price),
        ),
        status=batch.status,
        is_active=batch.is_active,
        created_by_id=batch.created_by_id,
    )


@router.post(
    "",
    response_model=ApiResponse[BatchResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_batch(
    data: BatchCreate,
    current_user: StaffUser,
    db: AsyncSession = Depends(get_db),
):
    """
    Create a batch for a course.

    Batch code (e.g. GDI2601), name and slug are generated; prices fall back
    to the course when not given.
    """
    service = BatchService(db)
    batch = await service.create_batch(data, created_by_id=current_user.user_id)
    return ApiResponse(
        data=build_batch_response(batch),
        message="Batch created successfully",
    )


@router.get("", response_model=ApiResponse[PaginatedResponse[BatchResponse]])
async def list_batches(
    current_user: StaffUser,
    course_id: int | None = Query(None),
    status: BatchStatus | None = Query(None),
    course_type: CourseType | None = Query(None),
    is_active: bool | None = Query(None),
    search: str | None = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    """List batches with optional filters."""
    service = BatchService(db)
    filters = BatchFilters(
        course_id=course_id,
        status=status,
        course_type=course_type,
        is_active=is_active,
        search=search,
        page=page,
        limit=limit,
    )
    batches, total = await service.list_batches(filters)
    return ApiResponse(
        data=PaginatedResponse.create(
            items=[build_batch_response(b) for b in batches],
            total=total,
            page=page,
            limit=limit,
        ),
    )


@router.get("/slug/{slug}", response_model=ApiResponse[BatchResponse])
async def get_batch_by_slug(
    slug: str,
    db: AsyncSession = Depends(get_db),
):
    """Public batch page lookup."""
    service = BatchService(db)
    batch = await service.get_batch_by_slug(slug)
    return ApiResponse(data=build_batch_response(batch))


@router.get("/{batch_id}", response_model=ApiResponse[BatchResponse])
async def get_batch(
    batch_id: int,
    current_user: CurrentPrincipal,
    db: AsyncSession = Depends(get_db),
):
    """Get batch by ID with resolved pricing."""
    service = BatchService(db)
    batch = await service.get_batch(batch_id)
    return ApiResponse(data=build_batch_response(batch))


@router.patch("/{batch_id}", response_model=ApiResponse[BatchResponse])
async def update_batch(
    batch_id: int,
    data: BatchUpdate,
    current_user: AdminUser,
    db: AsyncSession = Depends(get_db),
):
    """Edit a batch. Slug and batch code are never regenerated."""
    service = BatchService(db)
    batch = await service.update_batch(batch_id, data, updated_by_id=current_user.user_id)
    return ApiResponse(
        data=build_batch_response(batch),
        message="Batch updated successfully",
    )


@router.post("/{batch_id}/status", response_model=ApiResponse[BatchResponse])
async def change_batch_status(
    batch_id: int,
    data: BatchStatusUpdate,
    current_user: AdminUser,
    db: AsyncSession = Depends(get_db),
):
    """Move a batch to the next lifecycle status."""
    service = BatchService(db)
    batch = await service.change_status(batch_id, data.status, changed_by_id=current_user.user_id)
    return ApiResponse(
        data=build_batch_response(batch),
        message=f"Batch is now {batch.status}",
    )


@router.post("/{batch_id}/active", response_model=ApiResponse[BatchResponse])
async def set_batch_active(
    batch_id: int,
    data: BatchActiveUpdate,
    current_user: AdminUser,
    db: AsyncSession = Depends(get_db),
):
    """Archive or restore a batch."""
    service = BatchService(db)
    batch = await service.set_active(batch_id, data.is_active, user_id=current_user.user_id)
    return ApiResponse(
        data=build_batch_response(batch),
        message="Batch archived" if not batch.is_active else "Batch restored",
    )

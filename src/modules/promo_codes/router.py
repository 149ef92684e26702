"""API endpoints for Promo codes module."""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.auth.dependencies import AdminUser
from src.core.database.session import get_db
from src.modules.promo_codes.schemas import PromoCodeCreate, PromoCodeResponse
from src.modules.promo_codes.service import PromoCodeService
from src.shared.schemas.base import ApiResponse

router = APIRouter(prefix="/promo-codes", tags=["Promo codes"])


@router.post(
    "",
    response_model=ApiResponse[PromoCodeResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_promo_code(
    data: PromoCodeCreate,
    current_user: AdminUser,
    db: AsyncSession = Depends(get_db),
):
    """Create a promo code."""
    service = PromoCodeService(db)
    promo = await service.create_promo_code(data, created_by_id=current_user.user_id)
    return ApiResponse(
        data=PromoCodeResponse.model_validate(promo),
        message="Promo code created successfully",
    )


@router.get("", response_model=ApiResponse[list[PromoCodeResponse]])
async def list_promo_codes(
    current_user: AdminUser,
    include_inactive: bool = Query(False),
    db: AsyncSession = Depends(get_db),
):
    """List promo codes."""
    service = PromoCodeService(db)
    promos = await service.list_promo_codes(include_inactive=include_inactive)
    return ApiResponse(data=[PromoCodeResponse.model_validate(p) for p in promos])

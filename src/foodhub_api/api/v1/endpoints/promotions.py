"""API endpoints for the promotion catalogue and promo code validation."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from foodhub_api.api.dependencies.rate_limit import rate_limit
from foodhub_api.core.settings import settings
from foodhub_api.db.session import get_session
from foodhub_api.models.promotion import Promotion
from foodhub_api.schemas.common import Envelope
from foodhub_api.services.promotions import (
    PromotionQuery,
    PromotionRejectedError,
    PromotionService,
)
from foodhub_api.services.rate_limit import STANDARD


router = APIRouter(prefix="/promotions", tags=["promotions"])


class PromotionResponse(BaseModel):
    id: UUID
    code: str
    name: str
    description: Optional[str]
    type: str
    discountValue: float
    minimumOrder: float
    maxDiscount: Optional[float]
    usageLimit: Optional[int]
    usageCount: int
    startDate: Optional[datetime]
    endDate: Optional[datetime]
    isActive: bool


class PromotionValidateRequest(BaseModel):
    code: str = Field(..., min_length=1, description="Promo code entered by the customer")
    subtotal: Decimal = Field(..., ge=0, description="Order subtotal before discounts")
    restaurantId: Optional[str] = Field(None, description="Restaurant the order is placed with")


class PromotionValidateResponse(BaseModel):
    discount: float
    promotionId: Optional[UUID]
    promotionCode: Optional[str]
    promotionName: Optional[str]
    freeDelivery: bool


def _serialize_promotion(promotion: Promotion) -> PromotionResponse:
    return PromotionResponse(
        id=promotion.id,
        code=promotion.code,
        name=promotion.name,
        description=promotion.description,
        type=promotion.promotion_type.name,
        discountValue=float(promotion.discount_value or 0),
        minimumOrder=float(promotion.minimum_order or 0),
        maxDiscount=float(promotion.max_discount) if promotion.max_discount is not None else None,
        usageLimit=promotion.usage_limit,
        usageCount=promotion.usage_count or 0,
        startDate=promotion.start_date,
        endDate=promotion.end_date,
        isActive=bool(promotion.is_active),
    )


@router.get("", response_model=Envelope[List[PromotionResponse]])
async def list_promotions(
    type: Optional[str] = Query(None, description="Comma separated promotion types"),
    codePrefix: Optional[str] = Query(None),
    applicableTo: Optional[Decimal] = Query(None, description="Only promotions usable at this subtotal"),
    sort: Optional[str] = Query(None, description="Sort field, prefix with '-' for descending"),
    limit: Optional[int] = Query(None),
    db: AsyncSession = Depends(get_session),
) -> Envelope[List[PromotionResponse]]:
    query = PromotionQuery.from_params(
        types=type,
        code_prefix=codePrefix,
        applicable_to=applicableTo,
        sort=sort,
        limit=limit,
    )
    service = PromotionService(db)
    promotions = await service.list_active(query)
    if not promotions and not query.filters and settings.promotion_demo_seed_enabled:
        if await service.seed_demo_promotions():
            promotions = await service.list_active(query)

    return Envelope(data=[_serialize_promotion(promotion) for promotion in promotions])


@router.post(
    "/validate",
    response_model=Envelope[PromotionValidateResponse],
    dependencies=[rate_limit(STANDARD)],
)
async def validate_promotion(
    payload: PromotionValidateRequest,
    db: AsyncSession = Depends(get_session),
) -> Envelope[PromotionValidateResponse]:
    """Quote a promo code without consuming it."""

    calculation = await PromotionService(db).evaluate(payload.code, payload.subtotal)
    if calculation.error:
        raise PromotionRejectedError(calculation.error)

    return Envelope(
        data=PromotionValidateResponse(
            discount=float(calculation.discount),
            promotionId=calculation.promotion_id,
            promotionCode=calculation.promotion_code,
            promotionName=calculation.promotion_name,
            freeDelivery=calculation.free_delivery,
        )
    )

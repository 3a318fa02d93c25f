"""API endpoints for loyalty balances and point redemption."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from foodhub_api.api.dependencies.rate_limit import rate_limit
from foodhub_api.db.session import get_session
from foodhub_api.models.loyalty import PointTransaction
from foodhub_api.schemas.common import Envelope
from foodhub_api.services.loyalty import LoyaltyLedger
from foodhub_api.services.rate_limit import STRICT


router = APIRouter(prefix="/loyalty", tags=["loyalty"])


class TierBenefitsResponse(BaseModel):
    discount: int
    pointMultiplier: float
    freeDelivery: bool


class PointTransactionResponse(BaseModel):
    id: UUID
    type: str
    points: int
    balanceBefore: int
    balanceAfter: int
    orderId: Optional[str]
    description: Optional[str]
    createdAt: datetime


class LoyaltyAccountResponse(BaseModel):
    id: UUID
    userId: str
    points: int
    totalEarned: int
    totalSpent: int
    tier: str
    benefits: TierBenefitsResponse
    transactions: List[PointTransactionResponse]


class LoyaltyRedeemRequest(BaseModel):
    userId: str = Field(..., min_length=1)
    points: int = Field(..., gt=0, description="Points to convert into a discount")


class LoyaltyRedeemResponse(BaseModel):
    pointsRedeemed: int
    discountAmount: float
    remainingPoints: int


def _serialize_transaction(transaction: PointTransaction) -> PointTransactionResponse:
    return PointTransactionResponse(
        id=transaction.id,
        type=transaction.transaction_type.name,
        points=transaction.points,
        balanceBefore=transaction.balance_before,
        balanceAfter=transaction.balance_after,
        orderId=transaction.order_id,
        description=transaction.description,
        createdAt=transaction.created_at,
    )


@router.get("", response_model=Envelope[LoyaltyAccountResponse])
async def get_loyalty_account(
    userId: str = Query(..., min_length=1),
    db: AsyncSession = Depends(get_session),
) -> Envelope[LoyaltyAccountResponse]:
    overview = await LoyaltyLedger(db).overview(userId)
    account = overview.account
    return Envelope(
        data=LoyaltyAccountResponse(
            id=account.id,
            userId=account.user_id,
            points=account.points,
            totalEarned=account.total_earned,
            totalSpent=account.total_spent,
            tier=account.tier.name,
            benefits=TierBenefitsResponse(
                discount=overview.benefits.discount_percent,
                pointMultiplier=float(overview.benefits.point_multiplier),
                freeDelivery=overview.benefits.free_delivery,
            ),
            transactions=[_serialize_transaction(entry) for entry in overview.transactions],
        )
    )


@router.post(
    "/redeem",
    response_model=Envelope[LoyaltyRedeemResponse],
    dependencies=[rate_limit(STRICT)],
)
async def redeem_points(
    payload: LoyaltyRedeemRequest,
    db: AsyncSession = Depends(get_session),
) -> Envelope[LoyaltyRedeemResponse]:
    result = await LoyaltyLedger(db).redeem(payload.userId, payload.points)
    return Envelope(
        data=LoyaltyRedeemResponse(
            pointsRedeemed=result.points_redeemed,
            discountAmount=float(result.discount_amount),
            remainingPoints=result.remaining_points,
        )
    )

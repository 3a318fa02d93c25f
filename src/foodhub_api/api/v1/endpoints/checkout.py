"""API endpoints for pricing and settling orders."""

from __future__ import annotations

from decimal import Decimal
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from foodhub_api.api.dependencies.rate_limit import rate_limit
from foodhub_api.db.session import get_session
from foodhub_api.schemas.common import Envelope
from foodhub_api.services.checkout import CheckoutQuote, CheckoutService, PaymentMethodEnum
from foodhub_api.services.rate_limit import STANDARD


router = APIRouter(prefix="/checkout", tags=["checkout"])


class CheckoutQuoteRequest(BaseModel):
    subtotal: Decimal = Field(..., ge=0)
    deliveryFee: Decimal = Field(Decimal("0"), ge=0)
    promoCode: Optional[str] = None


class CheckoutSettleRequest(CheckoutQuoteRequest):
    userId: str = Field(..., min_length=1)
    orderId: str = Field(..., min_length=1)
    paymentMethod: PaymentMethodEnum


class CheckoutQuoteResponse(BaseModel):
    subtotal: float
    deliveryFee: float
    deliveryFeeWaived: bool
    discount: float
    total: float
    promotionId: Optional[UUID]
    promotionCode: Optional[str]


class CheckoutSettleResponse(BaseModel):
    orderId: str
    paymentMethod: str
    quote: CheckoutQuoteResponse
    walletBalance: Optional[float]
    walletTransactionId: Optional[UUID]
    pointsEarned: Optional[int]


def _serialize_quote(quote: CheckoutQuote) -> CheckoutQuoteResponse:
    return CheckoutQuoteResponse(
        subtotal=float(quote.subtotal),
        deliveryFee=float(quote.delivery_fee),
        deliveryFeeWaived=quote.delivery_fee_waived,
        discount=float(quote.discount),
        total=float(quote.total),
        promotionId=quote.promotion.promotion_id,
        promotionCode=quote.promotion.promotion_code,
    )


@router.post(
    "/quote",
    response_model=Envelope[CheckoutQuoteResponse],
    dependencies=[rate_limit(STANDARD)],
)
async def quote_order(
    payload: CheckoutQuoteRequest,
    db: AsyncSession = Depends(get_session),
) -> Envelope[CheckoutQuoteResponse]:
    quote = await CheckoutService(db).quote(
        payload.subtotal,
        delivery_fee=payload.deliveryFee,
        promo_code=payload.promoCode,
    )
    return Envelope(data=_serialize_quote(quote))


@router.post(
    "/settle",
    response_model=Envelope[CheckoutSettleResponse],
    dependencies=[rate_limit(STANDARD)],
)
async def settle_order(
    payload: CheckoutSettleRequest,
    db: AsyncSession = Depends(get_session),
) -> Envelope[CheckoutSettleResponse]:
    """Consume the promotion, take payment and award loyalty points."""

    result = await CheckoutService(db).settle(
        user_id=payload.userId,
        order_id=payload.orderId,
        subtotal=payload.subtotal,
        payment_method=payload.paymentMethod,
        delivery_fee=payload.deliveryFee,
        promo_code=payload.promoCode,
    )
    wallet_transaction = result.wallet_transaction
    points_transaction = result.points_transaction
    return Envelope(
        data=CheckoutSettleResponse(
            orderId=result.order_id,
            paymentMethod=result.payment_method.value,
            quote=_serialize_quote(result.quote),
            walletBalance=float(wallet_transaction.balance_after) if wallet_transaction else None,
            walletTransactionId=wallet_transaction.id if wallet_transaction else None,
            pointsEarned=points_transaction.points if points_transaction else None,
        )
    )

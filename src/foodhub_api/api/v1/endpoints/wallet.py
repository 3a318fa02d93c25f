"""API endpoints for wallet balances and top-ups."""

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
from foodhub_api.models.wallet import WalletTransaction
from foodhub_api.schemas.common import Envelope
from foodhub_api.services.rate_limit import STRICT
from foodhub_api.services.wallet import WalletLedger, WalletOverview


router = APIRouter(prefix="/wallet", tags=["wallet"])


class WalletTransactionResponse(BaseModel):
    id: UUID
    type: str
    amount: float
    balanceBefore: float
    balanceAfter: float
    orderId: Optional[str]
    gatewayTxnId: Optional[str]
    gatewayProvider: Optional[str]
    description: Optional[str]
    createdAt: datetime


class WalletResponse(BaseModel):
    id: UUID
    userId: str
    balance: float
    currency: str
    transactions: List[WalletTransactionResponse]


class WalletTopUpRequest(BaseModel):
    userId: str = Field(..., min_length=1)
    amount: Decimal = Field(..., description="Amount to add; must be greater than 0")
    gatewayTxnId: Optional[str] = Field(None, description="Payment gateway reference for reconciliation")
    gatewayProvider: Optional[str] = Field(None, description="Payment gateway name")


class WalletTopUpResponse(BaseModel):
    newBalance: float
    transaction: WalletTransactionResponse
    wallet: WalletResponse


def _serialize_transaction(transaction: WalletTransaction) -> WalletTransactionResponse:
    return WalletTransactionResponse(
        id=transaction.id,
        type=transaction.transaction_type.name,
        amount=float(transaction.amount),
        balanceBefore=float(transaction.balance_before),
        balanceAfter=float(transaction.balance_after),
        orderId=transaction.order_id,
        gatewayTxnId=transaction.gateway_txn_id,
        gatewayProvider=transaction.gateway_provider,
        description=transaction.description,
        createdAt=transaction.created_at,
    )


def _serialize_wallet(overview: WalletOverview) -> WalletResponse:
    wallet = overview.wallet
    return WalletResponse(
        id=wallet.id,
        userId=wallet.user_id,
        balance=float(wallet.balance or 0),
        currency=wallet.currency,
        transactions=[_serialize_transaction(entry) for entry in overview.transactions],
    )


@router.get("", response_model=Envelope[WalletResponse])
async def get_wallet(
    userId: str = Query(..., min_length=1),
    db: AsyncSession = Depends(get_session),
) -> Envelope[WalletResponse]:
    overview = await WalletLedger(db).overview(userId)
    return Envelope(data=_serialize_wallet(overview))


@router.post(
    "",
    response_model=Envelope[WalletTopUpResponse],
    dependencies=[rate_limit(STRICT)],
)
async def top_up_wallet(
    payload: WalletTopUpRequest,
    db: AsyncSession = Depends(get_session),
) -> Envelope[WalletTopUpResponse]:
    ledger = WalletLedger(db)
    transaction = await ledger.top_up(
        payload.userId,
        payload.amount,
        gateway_txn_id=payload.gatewayTxnId,
        gateway_provider=payload.gatewayProvider,
    )
    overview = await ledger.overview(payload.userId, limit=settings.wallet_topup_history_limit)
    return Envelope(
        data=WalletTopUpResponse(
            newBalance=float(transaction.balance_after),
            transaction=_serialize_transaction(transaction),
            wallet=_serialize_wallet(overview),
        )
    )

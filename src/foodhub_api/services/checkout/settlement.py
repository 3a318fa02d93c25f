"""Order quoting and settlement across promotions, wallet and loyalty."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from foodhub_api.core.errors import ValidationError
from foodhub_api.db.session import transactional
from foodhub_api.models.loyalty import PointTransaction
from foodhub_api.models.wallet import WalletTransaction
from foodhub_api.services.loyalty import LoyaltyLedger
from foodhub_api.services.money import round_currency, to_decimal, utcnow
from foodhub_api.services.promotions import (
    DiscountCalculation,
    PromotionRejectedError,
    PromotionService,
)
from foodhub_api.services.wallet import WalletLedger


class PaymentMethodEnum(str, Enum):
    WALLET = "wallet"
    PROMPTPAY = "promptpay"
    CASH = "cash"


@dataclass
class CheckoutQuote:
    subtotal: Decimal
    delivery_fee: Decimal
    delivery_fee_waived: bool
    discount: Decimal
    total: Decimal
    promotion: DiscountCalculation


@dataclass
class SettlementResult:
    order_id: str
    quote: CheckoutQuote
    payment_method: PaymentMethodEnum
    wallet_transaction: WalletTransaction | None
    points_transaction: PointTransaction | None


class CheckoutService:
    """Prices an order and settles it as one unit of work."""

    def __init__(
        self,
        db_session: AsyncSession,
        *,
        promotions: PromotionService | None = None,
        wallet: WalletLedger | None = None,
        loyalty: LoyaltyLedger | None = None,
    ) -> None:
        self._db = db_session
        self._promotions = promotions or PromotionService(db_session)
        self._wallet = wallet or WalletLedger(db_session)
        self._loyalty = loyalty or LoyaltyLedger(db_session)

    async def quote(
        self,
        subtotal: Decimal,
        *,
        delivery_fee: Decimal = Decimal("0"),
        promo_code: str | None = None,
        now: datetime | None = None,
    ) -> CheckoutQuote:
        subtotal = round_currency(to_decimal(subtotal))
        delivery_fee = round_currency(to_decimal(delivery_fee))
        if subtotal < 0 or delivery_fee < 0:
            raise ValidationError("subtotal and deliveryFee must not be negative")

        calculation = await self._promotions.evaluate(promo_code, subtotal, now=now)
        if calculation.error:
            raise PromotionRejectedError(calculation.error)

        payable_fee = Decimal("0.00") if calculation.free_delivery else delivery_fee
        total = round_currency(subtotal - calculation.discount + payable_fee)
        return CheckoutQuote(
            subtotal=subtotal,
            delivery_fee=delivery_fee,
            delivery_fee_waived=calculation.free_delivery,
            discount=calculation.discount,
            total=total,
            promotion=calculation,
        )

    async def settle(
        self,
        *,
        user_id: str,
        order_id: str,
        subtotal: Decimal,
        payment_method: PaymentMethodEnum,
        delivery_fee: Decimal = Decimal("0"),
        promo_code: str | None = None,
        now: datetime | None = None,
    ) -> SettlementResult:
        """Consume the promotion and take the wallet payment, then award points.

        Promotion usage and the wallet debit commit or roll back together. Points are
        awarded afterwards; a failure there is logged and does not undo the payment.
        """

        now = now or utcnow()
        quote = await self.quote(subtotal, delivery_fee=delivery_fee, promo_code=promo_code, now=now)

        if payment_method is PaymentMethodEnum.WALLET:
            await self._wallet.ensure_wallet(user_id)

        wallet_transaction: WalletTransaction | None = None
        async with transactional(self._db):
            if quote.promotion.applied:
                await self._promotions.redeem(quote.promotion.promotion_id)
            if payment_method is PaymentMethodEnum.WALLET and quote.total > 0:
                wallet_transaction = await self._wallet.debit(user_id, quote.total, order_id=order_id)

        logger.info(
            "Order settled",
            order_id=order_id,
            user_id=user_id,
            total=str(quote.total),
            payment_method=payment_method.value,
            promotion=quote.promotion.promotion_code,
        )

        points_transaction: PointTransaction | None = None
        try:
            points_transaction = await self._loyalty.earn(user_id, quote.total, order_id=order_id)
        except Exception as exc:
            logger.exception(
                "Failed to award loyalty points",
                order_id=order_id,
                user_id=user_id,
                error=str(exc),
            )

        return SettlementResult(
            order_id=order_id,
            quote=quote,
            payment_method=payment_method,
            wallet_transaction=wallet_transaction,
            points_transaction=points_transaction,
        )

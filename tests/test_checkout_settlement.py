from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from foodhub_api.models.promotion import Promotion, PromotionTypeEnum
from foodhub_api.services.checkout import CheckoutService, PaymentMethodEnum
from foodhub_api.services.loyalty import LoyaltyLedger
from foodhub_api.services.promotions import PromotionRejectedError, PromotionService
from foodhub_api.services.wallet import InsufficientBalanceError, WalletLedger


NOW = datetime(2026, 7, 4, 18, 30, tzinfo=timezone.utc)


async def _seed_promotions(session_factory) -> None:
    async with session_factory() as session:
        session.add_all(
            [
                Promotion(
                    code="SAVE100",
                    name="100 THB off",
                    promotion_type=PromotionTypeEnum.FIXED_AMOUNT,
                    discount_value=Decimal("100"),
                    minimum_order=Decimal("500"),
                    usage_limit=5,
                    start_date=NOW - timedelta(days=1),
                    end_date=NOW + timedelta(days=14),
                ),
                Promotion(
                    code="FREEDEL",
                    name="Free delivery",
                    promotion_type=PromotionTypeEnum.FREE_DELIVERY,
                    discount_value=Decimal("0"),
                    minimum_order=Decimal("0"),
                    start_date=NOW - timedelta(days=1),
                    end_date=NOW + timedelta(days=7),
                ),
            ]
        )
        await session.commit()


class FailingLoyaltyLedger(LoyaltyLedger):
    async def earn(self, *args, **kwargs):
        raise RuntimeError("loyalty store unavailable")


@pytest.mark.asyncio
async def test_quote_applies_discount_and_delivery_waiver(session_factory):
    await _seed_promotions(session_factory)

    async with session_factory() as session:
        service = CheckoutService(session)
        discounted = await service.quote(
            Decimal("500"), delivery_fee=Decimal("30"), promo_code="SAVE100", now=NOW
        )
        free_delivery = await service.quote(
            Decimal("120"), delivery_fee=Decimal("30"), promo_code="FREEDEL", now=NOW
        )
        plain = await service.quote(Decimal("120"), delivery_fee=Decimal("30"), now=NOW)

    assert discounted.discount == Decimal("100.00")
    assert discounted.total == Decimal("430.00")
    assert free_delivery.delivery_fee_waived is True
    assert free_delivery.total == Decimal("120.00")
    assert plain.total == Decimal("150.00")
    assert not plain.promotion.applied


@pytest.mark.asyncio
async def test_quote_rejects_unqualified_code(session_factory):
    await _seed_promotions(session_factory)

    async with session_factory() as session:
        with pytest.raises(PromotionRejectedError) as exc_info:
            await CheckoutService(session).quote(Decimal("50"), promo_code="SAVE100", now=NOW)

    assert exc_info.value.message == "Minimum order of 500 THB required for this promotion"


@pytest.mark.asyncio
async def test_wallet_settlement_consumes_promotion_debits_and_awards_points(session_factory):
    await _seed_promotions(session_factory)
    async with session_factory() as session:
        await WalletLedger(session).top_up("user-1", Decimal("1000"))

    async with session_factory() as session:
        result = await CheckoutService(session).settle(
            user_id="user-1",
            order_id="ORD-100",
            subtotal=Decimal("600"),
            delivery_fee=Decimal("35"),
            promo_code="SAVE100",
            payment_method=PaymentMethodEnum.WALLET,
            now=NOW,
        )

    assert result.quote.total == Decimal("535.00")
    assert result.wallet_transaction.amount == Decimal("-535.00")
    assert result.wallet_transaction.balance_after == Decimal("465.00")
    assert result.points_transaction.points == 53

    async with session_factory() as session:
        promotion = await PromotionService(session).get_by_code("SAVE100")
        assert promotion.usage_count == 1
        wallet = await WalletLedger(session).get_wallet("user-1")
        assert wallet.balance == Decimal("465.00")
        account = await LoyaltyLedger(session).get_account("user-1")
        assert account.points == 53


@pytest.mark.asyncio
async def test_failed_wallet_debit_rolls_back_promotion_usage(session_factory):
    await _seed_promotions(session_factory)
    async with session_factory() as session:
        await WalletLedger(session).top_up("user-2", Decimal("50"))

    async with session_factory() as session:
        with pytest.raises(InsufficientBalanceError):
            await CheckoutService(session).settle(
                user_id="user-2",
                order_id="ORD-200",
                subtotal=Decimal("600"),
                promo_code="SAVE100",
                payment_method=PaymentMethodEnum.WALLET,
                now=NOW,
            )

    async with session_factory() as session:
        promotion = await PromotionService(session).get_by_code("SAVE100")
        assert promotion.usage_count == 0
        wallet = await WalletLedger(session).get_wallet("user-2")
        assert wallet.balance == Decimal("50")
        assert await LoyaltyLedger(session).get_account("user-2") is None


@pytest.mark.asyncio
async def test_points_failure_does_not_undo_payment(session_factory):
    await _seed_promotions(session_factory)

    async with session_factory() as session:
        service = CheckoutService(session, loyalty=FailingLoyaltyLedger(session))
        result = await service.settle(
            user_id="user-3",
            order_id="ORD-300",
            subtotal=Decimal("600"),
            promo_code="SAVE100",
            payment_method=PaymentMethodEnum.CASH,
            now=NOW,
        )

    assert result.points_transaction is None
    assert result.wallet_transaction is None
    assert result.quote.total == Decimal("500.00")

    async with session_factory() as session:
        promotion = await PromotionService(session).get_by_code("SAVE100")
        assert promotion.usage_count == 1

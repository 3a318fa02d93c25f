"""Points ledger: balance mutations paired with their transaction rows."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_FLOOR, Decimal

from loguru import logger
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from foodhub_api.core.errors import InsufficientFundsError, NotFoundError, ValidationError
from foodhub_api.core.settings import settings
from foodhub_api.db.session import transactional
from foodhub_api.models.loyalty import (
    LoyaltyAccount,
    LoyaltyTierEnum,
    PointTransaction,
    PointTransactionTypeEnum,
)
from foodhub_api.services.money import to_decimal

# 1 point per 10 currency units spent; 10 points are worth 1 currency unit.
CURRENCY_PER_POINT_EARNED = Decimal("10")
POINTS_PER_CURRENCY_UNIT = Decimal("10")


class LoyaltyAccountNotFoundError(NotFoundError):
    def __init__(self) -> None:
        super().__init__("Loyalty account not found")


class InsufficientPointsError(InsufficientFundsError):
    code = "INSUFFICIENT_POINTS"

    def __init__(self) -> None:
        super().__init__("Insufficient points")


@dataclass(frozen=True)
class TierBenefits:
    discount_percent: int
    point_multiplier: Decimal
    free_delivery: bool


TIER_BENEFITS: dict[LoyaltyTierEnum, TierBenefits] = {
    LoyaltyTierEnum.BRONZE: TierBenefits(0, Decimal("1"), False),
    LoyaltyTierEnum.SILVER: TierBenefits(5, Decimal("1.2"), False),
    LoyaltyTierEnum.GOLD: TierBenefits(10, Decimal("1.5"), True),
    LoyaltyTierEnum.PLATINUM: TierBenefits(15, Decimal("2"), True),
    LoyaltyTierEnum.DIAMOND: TierBenefits(20, Decimal("3"), True),
}


@dataclass
class RedemptionResult:
    points_redeemed: int
    discount_amount: Decimal
    remaining_points: int
    transaction: PointTransaction


@dataclass
class LoyaltyOverview:
    account: LoyaltyAccount
    benefits: TierBenefits
    transactions: list[PointTransaction]


def points_for_order(order_amount: Decimal) -> int:
    """Points earned for an order: one per full 10 currency units."""

    amount = to_decimal(order_amount)
    if amount < 0:
        raise ValidationError("Order amount must not be negative")
    return int((amount / CURRENCY_PER_POINT_EARNED).to_integral_value(rounding=ROUND_FLOOR))


def discount_for_points(points: int) -> Decimal:
    """Currency value of redeemed points; fractional amounts are kept (125 -> 12.5)."""

    return Decimal(points) / POINTS_PER_CURRENCY_UNIT


class LoyaltyLedger:
    """Earns and redeems loyalty points for users."""

    def __init__(self, db_session: AsyncSession) -> None:
        self._db = db_session

    async def get_account(self, user_id: str) -> LoyaltyAccount | None:
        stmt = (
            select(LoyaltyAccount)
            .where(LoyaltyAccount.user_id == user_id)
            .execution_options(populate_existing=True)
        )
        result = await self._db.execute(stmt)
        return result.scalar_one_or_none()

    async def ensure_account(self, user_id: str) -> LoyaltyAccount:
        """Fetch or lazily create the account with a zero balance and BRONZE tier."""

        account = await self.get_account(user_id)
        if account:
            return account

        account = LoyaltyAccount(
            user_id=user_id,
            points=0,
            total_earned=0,
            total_spent=0,
            tier=LoyaltyTierEnum.BRONZE,
        )
        self._db.add(account)
        try:
            async with transactional(self._db):
                await self._db.flush()
        except IntegrityError:
            logger.warning("Detected race when creating loyalty account", user_id=user_id)
            account = await self.get_account(user_id)
            if account is None:
                raise
            return account

        logger.info("Created loyalty account", user_id=user_id, account_id=str(account.id))
        return account

    async def earn(
        self,
        user_id: str,
        order_amount: Decimal,
        *,
        order_id: str | None = None,
        description: str | None = None,
    ) -> PointTransaction:
        """Credit points for a paid order."""

        points = points_for_order(order_amount)
        account = await self.ensure_account(user_id)

        async with transactional(self._db):
            stmt = (
                update(LoyaltyAccount)
                .where(LoyaltyAccount.id == account.id)
                .values(
                    points=LoyaltyAccount.points + points,
                    total_earned=LoyaltyAccount.total_earned + points,
                )
                .returning(LoyaltyAccount.points)
                .execution_options(synchronize_session=False)
            )
            balance_after = (await self._db.execute(stmt)).scalar_one()
            transaction = PointTransaction(
                account_id=account.id,
                transaction_type=PointTransactionTypeEnum.EARNED,
                points=points,
                balance_before=balance_after - points,
                balance_after=balance_after,
                order_id=order_id,
                description=description or (f"Earned from order #{order_id}" if order_id else "Points earned"),
            )
            self._db.add(transaction)
            await self._db.flush()

        logger.info(
            "Awarded loyalty points",
            user_id=user_id,
            points=points,
            balance=balance_after,
            order_id=order_id,
        )
        return transaction

    async def redeem(self, user_id: str, points: int) -> RedemptionResult:
        """Convert points into a discount amount."""

        if isinstance(points, bool) or not isinstance(points, int) or points <= 0:
            raise ValidationError("points must be a positive integer")

        account = await self.get_account(user_id)
        if account is None:
            raise LoyaltyAccountNotFoundError()

        async with transactional(self._db):
            stmt = (
                update(LoyaltyAccount)
                .where(LoyaltyAccount.id == account.id, LoyaltyAccount.points >= points)
                .values(
                    points=LoyaltyAccount.points - points,
                    total_spent=LoyaltyAccount.total_spent + points,
                )
                .returning(LoyaltyAccount.points)
                .execution_options(synchronize_session=False)
            )
            balance_after = (await self._db.execute(stmt)).scalar_one_or_none()
            if balance_after is None:
                logger.info("Loyalty redemption refused", user_id=user_id, points=points)
                raise InsufficientPointsError()

            transaction = PointTransaction(
                account_id=account.id,
                transaction_type=PointTransactionTypeEnum.REDEEMED,
                points=-points,
                balance_before=balance_after + points,
                balance_after=balance_after,
                description="Points redeemed for discount",
            )
            self._db.add(transaction)
            await self._db.flush()

        discount_amount = discount_for_points(points)
        logger.info(
            "Redeemed loyalty points",
            user_id=user_id,
            points=points,
            discount=str(discount_amount),
            balance=balance_after,
        )
        return RedemptionResult(
            points_redeemed=points,
            discount_amount=discount_amount,
            remaining_points=balance_after,
            transaction=transaction,
        )

    async def list_transactions(
        self,
        account: LoyaltyAccount,
        *,
        limit: int | None = None,
    ) -> list[PointTransaction]:
        stmt = (
            select(PointTransaction)
            .where(PointTransaction.account_id == account.id)
            .order_by(PointTransaction.created_at.desc())
            .limit(limit or settings.loyalty_history_limit)
        )
        result = await self._db.execute(stmt)
        return list(result.scalars().all())

    async def overview(self, user_id: str, *, limit: int | None = None) -> LoyaltyOverview:
        account = await self.ensure_account(user_id)
        transactions = await self.list_transactions(account, limit=limit)
        return LoyaltyOverview(
            account=account,
            benefits=TIER_BENEFITS[account.tier],
            transactions=transactions,
        )

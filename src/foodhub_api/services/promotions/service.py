"""Promo code evaluation and redemption."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from uuid import UUID

from loguru import logger
from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from foodhub_api.core.errors import NotFoundError, ValidationError
from foodhub_api.core.settings import settings
from foodhub_api.db.session import transactional
from foodhub_api.models.promotion import Promotion, PromotionTypeEnum
from foodhub_api.services.money import ensure_aware, format_amount, round_currency, to_decimal, utcnow
from foodhub_api.services.promotions.query import PromotionQuery

ERROR_INVALID_CODE = "Invalid promo code"
ERROR_INACTIVE = "Promotion is not active"
ERROR_NOT_STARTED = "Promotion has not started yet"
ERROR_EXPIRED = "Promotion has expired"
ERROR_USAGE_LIMIT = "Promotion usage limit reached"


class PromotionUsageLimitReachedError(ValidationError):
    """Raised when a redemption would push usage past the configured limit."""

    code = "PROMOTION_USAGE_LIMIT"

    def __init__(self) -> None:
        super().__init__(ERROR_USAGE_LIMIT)


class PromotionRejectedError(ValidationError):
    """Raised when a caller requires a promo code to apply and it does not."""

    code = "PROMOTION_REJECTED"


@dataclass
class DiscountCalculation:
    discount: Decimal
    promotion_id: UUID | None = None
    promotion_code: str | None = None
    promotion_name: str | None = None
    free_delivery: bool = False
    error: str | None = None

    @property
    def applied(self) -> bool:
        return self.error is None and self.promotion_id is not None


def compute_discount_amount(
    promotion_type: PromotionTypeEnum,
    discount_value: Decimal,
    subtotal: Decimal,
    *,
    max_discount: Decimal | None = None,
) -> Decimal:
    """Apply a promotion formula to a subtotal, rounded half-up to cents."""

    if promotion_type is PromotionTypeEnum.PERCENTAGE:
        discount = subtotal * discount_value / Decimal("100")
        if max_discount is not None and discount > max_discount:
            discount = max_discount
    elif promotion_type is PromotionTypeEnum.FIXED_AMOUNT:
        discount = min(discount_value, subtotal)
    else:
        # FREE_DELIVERY waives the fee, which the caller handles.
        discount = Decimal("0")
    return round_currency(discount)


def calculate_discount(
    promotion: Promotion | None,
    subtotal: Decimal,
    *,
    now: datetime,
) -> DiscountCalculation:
    """Validate a loaded promotion against an order and compute its discount."""

    if promotion is None:
        return DiscountCalculation(discount=Decimal("0"), error=ERROR_INVALID_CODE)

    def rejected(message: str) -> DiscountCalculation:
        return DiscountCalculation(discount=Decimal("0"), promotion_code=promotion.code, error=message)

    now = ensure_aware(now)
    if not promotion.is_active:
        return rejected(ERROR_INACTIVE)
    if promotion.start_date is not None and ensure_aware(promotion.start_date) > now:
        return rejected(ERROR_NOT_STARTED)
    if promotion.end_date is not None and ensure_aware(promotion.end_date) < now:
        return rejected(ERROR_EXPIRED)
    if promotion.usage_limit is not None and (promotion.usage_count or 0) >= promotion.usage_limit:
        return rejected(ERROR_USAGE_LIMIT)

    minimum_order = to_decimal(promotion.minimum_order or 0)
    if subtotal < minimum_order:
        return rejected(
            f"Minimum order of {format_amount(minimum_order)} {settings.currency} "
            "required for this promotion"
        )

    max_discount = to_decimal(promotion.max_discount) if promotion.max_discount is not None else None
    discount = compute_discount_amount(
        promotion.promotion_type,
        to_decimal(promotion.discount_value or 0),
        subtotal,
        max_discount=max_discount,
    )
    return DiscountCalculation(
        discount=discount,
        promotion_id=promotion.id,
        promotion_code=promotion.code,
        promotion_name=promotion.name,
        free_delivery=promotion.promotion_type is PromotionTypeEnum.FREE_DELIVERY,
    )


class PromotionService:
    """Looks up, evaluates and redeems promo codes."""

    def __init__(self, db_session: AsyncSession) -> None:
        self._db = db_session

    async def get_by_code(self, code: str) -> Promotion | None:
        stmt = (
            select(Promotion)
            .where(Promotion.code == code.strip().upper())
            .execution_options(populate_existing=True)
        )
        result = await self._db.execute(stmt)
        return result.scalar_one_or_none()

    async def evaluate(
        self,
        code: str | None,
        subtotal: Decimal,
        *,
        now: datetime | None = None,
    ) -> DiscountCalculation:
        """Quote the discount for ``code``; never consumes a usage."""

        if not code or not code.strip():
            return DiscountCalculation(discount=Decimal("0"))

        subtotal = to_decimal(subtotal)
        if subtotal < 0:
            raise ValidationError("subtotal must not be negative")

        promotion = await self.get_by_code(code)
        calculation = calculate_discount(promotion, subtotal, now=now or utcnow())
        if calculation.error:
            logger.info(
                "Promotion rejected",
                code=code.strip().upper(),
                subtotal=str(subtotal),
                reason=calculation.error,
            )
        else:
            logger.debug(
                "Promotion evaluated",
                code=calculation.promotion_code,
                discount=str(calculation.discount),
            )
        return calculation

    async def redeem(self, promotion_id: UUID) -> None:
        """Consume one usage of a promotion.

        The limit check and the increment happen in one conditional UPDATE, so concurrent
        redemptions cannot push ``usage_count`` past ``usage_limit``.
        """

        async with transactional(self._db):
            stmt = (
                update(Promotion)
                .where(
                    Promotion.id == promotion_id,
                    Promotion.is_active.is_(True),
                    or_(
                        Promotion.usage_limit.is_(None),
                        Promotion.usage_count < Promotion.usage_limit,
                    ),
                )
                .values(usage_count=Promotion.usage_count + 1)
                .returning(Promotion.usage_count)
                .execution_options(synchronize_session=False)
            )
            result = await self._db.execute(stmt)
            usage_count = result.scalar_one_or_none()
            if usage_count is None:
                exists = await self._db.scalar(select(Promotion.id).where(Promotion.id == promotion_id))
                if exists is None:
                    raise NotFoundError("Promotion not found")
                logger.warning("Promotion redemption refused", promotion_id=str(promotion_id))
                raise PromotionUsageLimitReachedError()

        logger.info("Promotion redeemed", promotion_id=str(promotion_id), usage_count=usage_count)

    async def check_free_delivery(self, code: str | None, *, now: datetime | None = None) -> bool:
        if not code or not code.strip():
            return False
        promotion = await self.get_by_code(code)
        if promotion is None or promotion.promotion_type is not PromotionTypeEnum.FREE_DELIVERY:
            return False
        now = ensure_aware(now or utcnow())
        if not promotion.is_active:
            return False
        if promotion.start_date is not None and ensure_aware(promotion.start_date) > now:
            return False
        return promotion.end_date is None or ensure_aware(promotion.end_date) >= now

    async def list_active(
        self,
        query: PromotionQuery | None = None,
        *,
        now: datetime | None = None,
    ) -> list[Promotion]:
        query = query or PromotionQuery()
        now = now or utcnow()
        stmt = (
            select(Promotion)
            .where(
                Promotion.is_active.is_(True),
                or_(Promotion.start_date.is_(None), Promotion.start_date <= now),
                or_(Promotion.end_date.is_(None), Promotion.end_date >= now),
                *query.where_clauses(),
            )
            .order_by(*query.order_by())
            .limit(query.limit)
        )
        result = await self._db.execute(stmt)
        promotions = list(result.scalars().all())
        logger.debug("Fetched active promotions", count=len(promotions))
        return promotions

    async def seed_demo_promotions(self, *, now: datetime | None = None) -> list[Promotion]:
        """Populate an empty catalogue with the launch promotions."""

        existing = await self._db.scalar(select(Promotion.id).limit(1))
        if existing is not None:
            return []

        now = now or utcnow()
        promotions = [
            Promotion(
                code=entry["code"],
                name=entry["name"],
                description=entry["description"],
                promotion_type=entry["promotion_type"],
                discount_value=entry["discount_value"],
                minimum_order=entry["minimum_order"],
                max_discount=entry.get("max_discount"),
                usage_limit=entry.get("usage_limit"),
                is_active=True,
                start_date=now,
                end_date=now + entry["duration"],
            )
            for entry in _DEMO_PROMOTIONS
        ]
        async with transactional(self._db):
            self._db.add_all(promotions)
            await self._db.flush()
        logger.info("Seeded demo promotions", count=len(promotions))
        return promotions


_DEMO_PROMOTIONS: list[dict] = [
    {
        "code": "WELCOME50",
        "name": "50% off your first order",
        "description": "50% off your first order, capped at 100 THB.",
        "promotion_type": PromotionTypeEnum.PERCENTAGE,
        "discount_value": Decimal("50"),
        "minimum_order": Decimal("100"),
        "max_discount": Decimal("100"),
        "usage_limit": 1,
        "duration": timedelta(days=30),
    },
    {
        "code": "FREEDEL",
        "name": "Free delivery",
        "description": "Free delivery at every restaurant, no minimum.",
        "promotion_type": PromotionTypeEnum.FREE_DELIVERY,
        "discount_value": Decimal("0"),
        "minimum_order": Decimal("0"),
        "duration": timedelta(days=7),
    },
    {
        "code": "SAVE100",
        "name": "100 THB off",
        "description": "100 THB off orders of 500 THB or more.",
        "promotion_type": PromotionTypeEnum.FIXED_AMOUNT,
        "discount_value": Decimal("100"),
        "minimum_order": Decimal("500"),
        "duration": timedelta(days=14),
    },
    {
        "code": "LUNCH15",
        "name": "Lunch deal",
        "description": "15% off lunch orders over 200 THB, capped at 50 THB.",
        "promotion_type": PromotionTypeEnum.PERCENTAGE,
        "discount_value": Decimal("15"),
        "minimum_order": Decimal("200"),
        "max_discount": Decimal("50"),
        "duration": timedelta(days=30),
    },
    {
        "code": "WEEKEND20",
        "name": "Weekend deal",
        "description": "20% off weekend orders over 300 THB, capped at 80 THB.",
        "promotion_type": PromotionTypeEnum.PERCENTAGE,
        "discount_value": Decimal("20"),
        "minimum_order": Decimal("300"),
        "max_discount": Decimal("80"),
        "duration": timedelta(days=60),
    },
]

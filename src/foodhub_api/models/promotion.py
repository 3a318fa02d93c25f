"""Promotion code catalogue."""

from __future__ import annotations

from enum import Enum
from uuid import uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Enum as SqlEnum,
    Integer,
    Numeric,
    String,
    Text,
    func,
)
from sqlalchemy.dialects.postgresql import UUID

from foodhub_api.db.base import Base
from foodhub_api.services.money import utcnow


class PromotionTypeEnum(str, Enum):
    """Discount formulas supported by promotion codes."""

    PERCENTAGE = "percentage"
    FIXED_AMOUNT = "fixed_amount"
    FREE_DELIVERY = "free_delivery"


class Promotion(Base):
    """Redeemable discount rule identified by a code."""

    __tablename__ = "promotions"
    __table_args__ = (
        CheckConstraint("usage_count >= 0", name="ck_promotions_usage_count_non_negative"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    code = Column(String(64), nullable=False, unique=True, index=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    promotion_type = Column(SqlEnum(PromotionTypeEnum, name="promotion_type"), nullable=False)
    discount_value = Column(Numeric(12, 2), nullable=False, default=0, server_default="0")
    minimum_order = Column(Numeric(12, 2), nullable=False, default=0, server_default="0")
    max_discount = Column(Numeric(12, 2), nullable=True)
    usage_limit = Column(Integer, nullable=True)
    usage_count = Column(Integer, nullable=False, default=0, server_default="0")
    start_date = Column(DateTime(timezone=True), nullable=True)
    end_date = Column(DateTime(timezone=True), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True, server_default="true")
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        onupdate=utcnow,
        nullable=False,
    )

"""Loyalty points accounts and their transaction log."""

from __future__ import annotations

from enum import Enum
from uuid import uuid4

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    Enum as SqlEnum,
    ForeignKey,
    Integer,
    String,
    func,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from foodhub_api.db.base import Base
from foodhub_api.services.money import utcnow


class LoyaltyTierEnum(str, Enum):
    """Benefit levels assigned to loyalty accounts."""

    BRONZE = "bronze"
    SILVER = "silver"
    GOLD = "gold"
    PLATINUM = "platinum"
    DIAMOND = "diamond"


class PointTransactionTypeEnum(str, Enum):
    """Kinds of point balance movements."""

    EARNED = "earned"
    REDEEMED = "redeemed"


class LoyaltyAccount(Base):
    """Per-user points balance."""

    __tablename__ = "loyalty_accounts"
    __table_args__ = (
        CheckConstraint("points >= 0", name="ck_loyalty_accounts_points_non_negative"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    user_id = Column(String(64), nullable=False, unique=True, index=True)
    points = Column(Integer, nullable=False, default=0, server_default="0")
    total_earned = Column(Integer, nullable=False, default=0, server_default="0")
    total_spent = Column(Integer, nullable=False, default=0, server_default="0")
    tier = Column(
        SqlEnum(LoyaltyTierEnum, name="loyalty_tier"),
        nullable=False,
        default=LoyaltyTierEnum.BRONZE,
        server_default=LoyaltyTierEnum.BRONZE.name,
    )
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        onupdate=utcnow,
        nullable=False,
    )

    transactions = relationship(
        "PointTransaction", back_populates="account", cascade="all, delete-orphan"
    )


class PointTransaction(Base):
    """Append-only record of a single point balance change."""

    __tablename__ = "loyalty_point_transactions"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    account_id = Column(
        UUID(as_uuid=True),
        ForeignKey("loyalty_accounts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    transaction_type = Column(
        SqlEnum(PointTransactionTypeEnum, name="loyalty_point_transaction_type"),
        nullable=False,
    )
    points = Column(Integer, nullable=False)
    balance_before = Column(Integer, nullable=False)
    balance_after = Column(Integer, nullable=False)
    order_id = Column(String(64), nullable=True)
    description = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)

    account = relationship("LoyaltyAccount", back_populates="transactions")

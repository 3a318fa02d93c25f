"""Loyalty service exports."""

from .ledger import (  # noqa: F401
    TIER_BENEFITS,
    InsufficientPointsError,
    LoyaltyAccountNotFoundError,
    LoyaltyLedger,
    LoyaltyOverview,
    RedemptionResult,
    TierBenefits,
    discount_for_points,
    points_for_order,
)

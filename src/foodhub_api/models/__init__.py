"""SQLAlchemy models package."""

from .loyalty import (  # noqa: F401
    LoyaltyAccount,
    LoyaltyTierEnum,
    PointTransaction,
    PointTransactionTypeEnum,
)
from .promotion import Promotion, PromotionTypeEnum  # noqa: F401
from .wallet import Wallet, WalletTransaction, WalletTransactionTypeEnum  # noqa: F401

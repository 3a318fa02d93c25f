"""Promotion service exports."""

from .query import (  # noqa: F401
    ApplicableToSubtotalFilter,
    CodePrefixFilter,
    PromotionQuery,
    PromotionSortField,
    SortDirection,
    TypeFilter,
)
from .service import (  # noqa: F401
    DiscountCalculation,
    PromotionRejectedError,
    PromotionService,
    PromotionUsageLimitReachedError,
    calculate_discount,
    compute_discount_amount,
)

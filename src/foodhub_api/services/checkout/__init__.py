"""Checkout service exports."""

from .settlement import (  # noqa: F401
    CheckoutQuote,
    CheckoutService,
    PaymentMethodEnum,
    SettlementResult,
)

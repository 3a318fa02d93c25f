"""Wallet service exports."""

from .ledger import (  # noqa: F401
    InsufficientBalanceError,
    InvalidAmountError,
    WalletLedger,
    WalletOverview,
)

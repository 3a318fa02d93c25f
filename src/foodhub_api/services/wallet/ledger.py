"""Wallet ledger: balance mutations paired with their transaction rows."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from loguru import logger
from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from foodhub_api.core.errors import InsufficientFundsError, ValidationError
from foodhub_api.core.settings import settings
from foodhub_api.db.session import transactional
from foodhub_api.models.wallet import Wallet, WalletTransaction, WalletTransactionTypeEnum
from foodhub_api.services.money import round_currency, to_decimal


class InvalidAmountError(ValidationError):
    code = "INVALID_AMOUNT"

    def __init__(self) -> None:
        super().__init__("Amount must be greater than 0")


class InsufficientBalanceError(InsufficientFundsError):
    code = "INSUFFICIENT_BALANCE"

    def __init__(self) -> None:
        super().__init__("Insufficient wallet balance")


@dataclass
class WalletOverview:
    wallet: Wallet
    transactions: list[WalletTransaction]


def _cents(expression):
    # SQLite stores Numeric as float; keep balances on whole cents.
    return func.round(expression, 2, type_=Wallet.balance.type)


def _validated_amount(amount: Decimal) -> Decimal:
    try:
        value = round_currency(to_decimal(amount))
    except TypeError as exc:
        raise InvalidAmountError() from exc
    if value <= 0:
        raise InvalidAmountError()
    return value


class WalletLedger:
    """Tops up, debits and refunds customer wallets."""

    def __init__(self, db_session: AsyncSession) -> None:
        self._db = db_session

    async def get_wallet(self, user_id: str) -> Wallet | None:
        stmt = (
            select(Wallet)
            .where(Wallet.user_id == user_id)
            .execution_options(populate_existing=True)
        )
        result = await self._db.execute(stmt)
        return result.scalar_one_or_none()

    async def ensure_wallet(self, user_id: str) -> Wallet:
        """Fetch or lazily create the wallet with a zero balance."""

        wallet = await self.get_wallet(user_id)
        if wallet:
            return wallet

        wallet = Wallet(user_id=user_id, balance=Decimal("0"), currency=settings.currency)
        self._db.add(wallet)
        try:
            async with transactional(self._db):
                await self._db.flush()
        except IntegrityError:
            logger.warning("Detected race when creating wallet", user_id=user_id)
            wallet = await self.get_wallet(user_id)
            if wallet is None:
                raise
            return wallet

        logger.info("Created wallet", user_id=user_id, wallet_id=str(wallet.id))
        return wallet

    async def top_up(
        self,
        user_id: str,
        amount: Decimal,
        *,
        gateway_txn_id: str | None = None,
        gateway_provider: str | None = None,
    ) -> WalletTransaction:
        value = _validated_amount(amount)
        wallet = await self.ensure_wallet(user_id)
        transaction = await self._post(
            wallet,
            WalletTransactionTypeEnum.TOP_UP,
            value,
            description="Wallet top-up",
            gateway_txn_id=gateway_txn_id,
            gateway_provider=gateway_provider,
        )
        logger.info(
            "Wallet topped up",
            user_id=user_id,
            amount=str(value),
            balance=str(transaction.balance_after),
            gateway_provider=gateway_provider,
        )
        return transaction

    async def debit(
        self,
        user_id: str,
        amount: Decimal,
        *,
        order_id: str | None = None,
    ) -> WalletTransaction:
        """Pay for an order from the wallet balance."""

        value = _validated_amount(amount)
        wallet = await self.ensure_wallet(user_id)
        transaction = await self._post(
            wallet,
            WalletTransactionTypeEnum.PAYMENT,
            -value,
            order_id=order_id,
            description=f"Payment for order #{order_id}" if order_id else "Wallet payment",
        )
        logger.info(
            "Wallet debited",
            user_id=user_id,
            amount=str(value),
            balance=str(transaction.balance_after),
            order_id=order_id,
        )
        return transaction

    async def refund(
        self,
        user_id: str,
        amount: Decimal,
        *,
        order_id: str | None = None,
    ) -> WalletTransaction:
        value = _validated_amount(amount)
        wallet = await self.ensure_wallet(user_id)
        transaction = await self._post(
            wallet,
            WalletTransactionTypeEnum.REFUND,
            value,
            order_id=order_id,
            description=f"Refund for order #{order_id}" if order_id else "Wallet refund",
        )
        logger.info("Wallet refunded", user_id=user_id, amount=str(value), order_id=order_id)
        return transaction

    async def _post(
        self,
        wallet: Wallet,
        transaction_type: WalletTransactionTypeEnum,
        signed_amount: Decimal,
        *,
        description: str,
        order_id: str | None = None,
        gateway_txn_id: str | None = None,
        gateway_provider: str | None = None,
    ) -> WalletTransaction:
        """Apply ``signed_amount`` and write its transaction row as one unit of work."""

        async with transactional(self._db):
            stmt = update(Wallet).where(Wallet.id == wallet.id)
            if signed_amount < 0:
                stmt = stmt.where(_cents(Wallet.balance) >= -signed_amount)
            stmt = (
                stmt.values(balance=_cents(Wallet.balance + signed_amount))
                .returning(Wallet.balance)
                .execution_options(synchronize_session=False)
            )
            balance_after = (await self._db.execute(stmt)).scalar_one_or_none()
            if balance_after is None:
                logger.info(
                    "Wallet debit refused",
                    wallet_id=str(wallet.id),
                    amount=str(-signed_amount),
                )
                raise InsufficientBalanceError()

            balance_after = round_currency(to_decimal(balance_after))
            transaction = WalletTransaction(
                wallet_id=wallet.id,
                transaction_type=transaction_type,
                amount=signed_amount,
                balance_before=balance_after - signed_amount,
                balance_after=balance_after,
                order_id=order_id,
                gateway_txn_id=gateway_txn_id,
                gateway_provider=gateway_provider,
                description=description,
            )
            self._db.add(transaction)
            await self._db.flush()
        return transaction

    async def list_transactions(
        self,
        wallet: Wallet,
        *,
        limit: int | None = None,
    ) -> list[WalletTransaction]:
        stmt = (
            select(WalletTransaction)
            .where(WalletTransaction.wallet_id == wallet.id)
            .order_by(WalletTransaction.created_at.desc())
            .limit(limit or settings.wallet_history_limit)
        )
        result = await self._db.execute(stmt)
        return list(result.scalars().all())

    async def reconstruct_balance(self, wallet: Wallet) -> Decimal:
        """Sum of every signed transaction amount; matches ``wallet.balance``."""

        total = await self._db.scalar(
            select(func.coalesce(func.sum(WalletTransaction.amount), 0)).where(
                WalletTransaction.wallet_id == wallet.id
            )
        )
        return round_currency(to_decimal(total))

    async def overview(self, user_id: str, *, limit: int | None = None) -> WalletOverview:
        wallet = await self.ensure_wallet(user_id)
        transactions = await self.list_transactions(wallet, limit=limit)
        return WalletOverview(wallet=wallet, transactions=transactions)

from decimal import Decimal

import pytest
from sqlalchemy import select

from foodhub_api.db.session import transactional
from foodhub_api.models.wallet import Wallet
from foodhub_api.services.money import format_amount, round_currency, to_decimal


def test_money_helpers():
    assert round_currency(Decimal("10.005")) == Decimal("10.01")
    assert round_currency(Decimal("10.004")) == Decimal("10.00")
    assert format_amount(Decimal("500.00")) == "500"
    assert format_amount(Decimal("99.50")) == "99.5"
    assert to_decimal(12) == Decimal("12")
    with pytest.raises(TypeError):
        to_decimal(True)


@pytest.mark.asyncio
async def test_nested_scopes_commit_once_at_outermost_level(session_factory):
    async with session_factory() as session:
        async with transactional(session):
            session.add(Wallet(user_id="outer", balance=Decimal("0")))
            async with transactional(session):
                session.add(Wallet(user_id="inner", balance=Decimal("0")))
                await session.flush()

    async with session_factory() as session:
        users = (await session.execute(select(Wallet.user_id).order_by(Wallet.user_id))).scalars().all()
        assert users == ["inner", "outer"]


@pytest.mark.asyncio
async def test_failure_in_nested_scope_rolls_back_everything(session_factory):
    async with session_factory() as session:
        with pytest.raises(RuntimeError):
            async with transactional(session):
                session.add(Wallet(user_id="kept?", balance=Decimal("0")))
                await session.flush()
                async with transactional(session):
                    raise RuntimeError("boom")

    async with session_factory() as session:
        assert (await session.execute(select(Wallet))).scalars().all() == []

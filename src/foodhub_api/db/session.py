"""Async engine, session factory and transactional scope helpers."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from foodhub_api.core.settings import settings

_SCOPE_DEPTH_KEY = "foodhub.transaction_depth"

engine = create_async_engine(settings.database_url, future=True, pool_pre_ping=True)
async_session = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


async def get_session() -> AsyncIterator[AsyncSession]:
    """FastAPI dependency yielding a request-scoped session."""

    async with async_session() as session:
        yield session


@asynccontextmanager
async def transactional(session: AsyncSession) -> AsyncIterator[AsyncSession]:
    """Run a block as one unit of work.

    The outermost scope commits when the block exits cleanly and rolls back on any
    exception. Nested scopes join the enclosing unit of work and leave the commit or
    rollback to it, so a service method that opens a scope can be composed into a
    larger one (e.g. checkout settlement) without committing half of it.
    """

    depth = session.info.get(_SCOPE_DEPTH_KEY, 0)
    session.info[_SCOPE_DEPTH_KEY] = depth + 1
    try:
        yield session
        if depth == 0:
            await session.commit()
    except BaseException:
        if depth == 0:
            await session.rollback()
        raise
    finally:
        session.info[_SCOPE_DEPTH_KEY] = depth


__all__ = ["async_session", "engine", "get_session", "transactional"]

import os

os.environ.setdefault("OTEL_SDK_DISABLED", "true")

import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from foodhub_api import models  # noqa: F401
from foodhub_api.app import create_app
from foodhub_api.core.settings import settings
from foodhub_api.db.base import Base
from foodhub_api.db.session import get_session
from foodhub_api.services.rate_limit import InMemoryRateLimitStore, RateLimiterRegistry, build_policies


@pytest_asyncio.fixture
async def session_factory():
    """In-memory store; every session shares one connection, so keep it to sequential use."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", future=True)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)

    try:
        yield factory
    finally:
        await engine.dispose()


@pytest_asyncio.fixture
async def app_with_db(session_factory):
    app = create_app(rate_limiters=RateLimiterRegistry(InMemoryRateLimitStore(), build_policies(settings)))

    async def override_get_session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session

    try:
        yield app, session_factory
    finally:
        app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def file_session_factory(tmp_path):
    """Sessions on separate connections to one SQLite file, for concurrent writers."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'foodhub.db'}", future=True)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)

    try:
        yield factory
    finally:
        await engine.dispose()

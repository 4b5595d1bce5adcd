"""Shared test fixtures.

Tests run against an in-memory SQLite database built from the ORM metadata and
an in-memory stand-in for the Redis counter store.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from datetime import datetime, timezone

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from redis.exceptions import ConnectionError as RedisConnectionError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from idlecore.config import get_settings
from idlecore.content.catalog import set_catalog
from idlecore.db.base import Base
from idlecore.db.models import Progress
from idlecore.economy.achievement_seed import seed_achievements
from idlecore.economy.player_state import get_or_create_user

NOW = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


class InMemoryPipeline:
    """Queues INCRBY/EXPIRE calls and applies them on execute()."""

    def __init__(self, redis: InMemoryRedis) -> None:
        self._redis = redis
        self._ops: list[tuple[str, str, int]] = []

    def incrby(self, key: str, amount: int) -> InMemoryPipeline:
        self._ops.append(("incrby", key, amount))
        return self

    def expire(self, key: str, seconds: int) -> InMemoryPipeline:
        self._ops.append(("expire", key, seconds))
        return self

    async def execute(self) -> list[int | bool]:
        if self._redis.fail:
            raise RedisConnectionError("connection refused")
        results: list[int | bool] = []
        for op, key, value in self._ops:
            if op == "incrby":
                self._redis.store[key] = int(self._redis.store.get(key, 0)) + value
                results.append(self._redis.store[key])
            else:
                self._redis.ttls[key] = value
                results.append(True)
        self._ops.clear()
        return results


class InMemoryRedis:
    """Just enough of redis.asyncio.Redis for the tap limiter and cache invalidation."""

    def __init__(self) -> None:
        self.store: dict[str, object] = {}
        self.ttls: dict[str, int] = {}
        self.deleted: list[str] = []
        self.fail = False

    def pipeline(self) -> InMemoryPipeline:
        return InMemoryPipeline(self)

    async def delete(self, *keys: str) -> int:
        if self.fail:
            raise RedisConnectionError("connection refused")
        removed = 0
        for key in keys:
            self.deleted.append(key)
            if self.store.pop(key, None) is not None:
                removed += 1
        return removed

    async def ping(self) -> bool:
        if self.fail:
            raise RedisConnectionError("connection refused")
        return True


@pytest.fixture(autouse=True)
def _fresh_settings_and_catalog():
    """Reset cached settings and the content catalog around every test."""
    get_settings.cache_clear()
    set_catalog(None)
    yield
    get_settings.cache_clear()
    set_catalog(None)


@pytest_asyncio.fixture
async def session_factory() -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with factory() as session:
        await seed_achievements(session)

    yield factory
    await engine.dispose()


@pytest_asyncio.fixture
async def db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def redis() -> InMemoryRedis:
    return InMemoryRedis()


@pytest_asyncio.fixture
async def user_id(db: AsyncSession) -> int:
    """A committed player with no economy rows yet."""
    user = await get_or_create_user(db, "player-1", "player")
    await db.commit()
    return user.id


@pytest_asyncio.fixture
async def progress(db: AsyncSession, user_id: int) -> Progress:
    """A committed level-1 Progress row for ``user_id``."""
    row = Progress(user_id=user_id, created_at=NOW, updated_at=NOW)
    db.add(row)
    await db.commit()
    return row


@pytest_asyncio.fixture
async def client(session_factory, redis) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client against the app with the database and Redis dependencies swapped."""
    from idlecore.dependencies import get_db, get_redis_dep
    from idlecore.main import create_app

    app = create_app()

    async def _db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    async def _redis() -> AsyncGenerator[object, None]:
        yield redis

    app.dependency_overrides[get_db] = _db
    app.dependency_overrides[get_redis_dep] = _redis

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

"""
Pytest fixtures for testing.

Provides:
- Async database session with rollback
- Entity registry with the host test models
- Bastion facades, uncached and cached
- Factory fixtures for creating test data
- Mock implementations for interfaces
"""

from typing import AsyncGenerator
from uuid import uuid4

import pytest
import pytest_asyncio
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from bastion.core.auth import Bastion, EntityRegistry, Scope
from bastion.implementations.cache.memory import MemoryCacheBackend
from bastion.models import Base

from tests.models import Post, Team, User


# Test database URL (SQLite in-memory for speed)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture(scope="function")
async def db_engine():
    """Create test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db(db_engine) -> AsyncGenerator[AsyncSession, None]:
    """
    Create database session with automatic rollback.

    Each test gets a fresh transaction that's rolled back after.
    """
    session_factory = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def registry() -> EntityRegistry:
    registry = EntityRegistry()
    registry.register(User, tag="users")
    registry.register(Post, tag="posts")
    registry.register(Team, tag="teams")
    return registry


@pytest.fixture
def scope() -> Scope:
    return Scope()


@pytest_asyncio.fixture
async def bastion(db: AsyncSession, registry: EntityRegistry, scope: Scope) -> Bastion:
    """Facade without a cache: every check hits the store."""
    return Bastion(db, registry, scope=scope)


@pytest_asyncio.fixture
async def cache() -> "MockCacheBackend":
    return MockCacheBackend()


@pytest_asyncio.fixture
async def cached_bastion(
    db: AsyncSession,
    registry: EntityRegistry,
    scope: Scope,
    cache: "MockCacheBackend",
) -> Bastion:
    return Bastion(db, registry, scope=scope, cache=cache)


# ============ Factory Fixtures ============


class EntityFactory:
    """Factory for creating host entities."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def user(
        self,
        name: str | None = None,
        approval_limit: int = 0,
        id: int | None = None,
    ) -> User:
        user = User(
            id=id,
            name=name or f"user-{uuid4().hex[:8]}",
            approval_limit=approval_limit,
        )
        self.db.add(user)
        await self.db.flush()
        return user

    async def post(
        self,
        owner: User | None = None,
        title: str = "Hello",
        amount: int = 0,
    ) -> Post:
        post = Post(
            user_id=None if owner is None else owner.id,
            title=title,
            amount=amount,
        )
        self.db.add(post)
        await self.db.flush()
        return post

    async def team(self, name: str | None = None) -> Team:
        team = Team(name=name or f"team-{uuid4().hex[:8]}")
        self.db.add(team)
        await self.db.flush()
        return team


@pytest_asyncio.fixture
async def factory(db: AsyncSession) -> EntityFactory:
    """Fixture that provides EntityFactory."""
    return EntityFactory(db)


@pytest_asyncio.fixture
async def user(factory: EntityFactory) -> User:
    """Create a standard test user."""
    return await factory.user(name="Alice")


@pytest_asyncio.fixture
async def other_user(factory: EntityFactory) -> User:
    return await factory.user(name="Bob")


# ============ Helpers ============


async def count(db: AsyncSession, model, *criteria) -> int:
    """Count rows of a model matching the criteria."""
    stmt = select(func.count()).select_from(model)
    if criteria:
        stmt = stmt.where(*criteria)
    return (await db.execute(stmt)).scalar_one()


# ============ Mock Implementations ============


class MockCacheBackend(MemoryCacheBackend):
    """Memory cache that records traffic."""

    def __init__(self):
        super().__init__()
        self.hits = 0
        self.misses = 0
        self.writes = 0

    async def get(self, key: str):
        value = await super().get(key)
        if value is None:
            self.misses += 1
        else:
            self.hits += 1
        return value

    async def set(self, key: str, value, ttl=None) -> bool:
        self.writes += 1
        return await super().set(key, value, ttl)

    def reset_counters(self) -> None:
        self.hits = 0
        self.misses = 0
        self.writes = 0

"""Pytest configuration and fixtures."""

import os
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

# Set test environment
os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["REDIS_DSN"] = ""  # L1-only cache for tests

from taskhub.cache.invalidation import CacheInvalidator
from taskhub.cache.layer import CacheLayer, get_cache
from taskhub.core.config import Settings, get_settings
from taskhub.core.security import hash_password
from taskhub.database import build_engine, build_session_factory, get_db
from taskhub.main import app
from taskhub.models import Role, Task, TaskPriority, TaskStatus, User

TEST_DATABASE_URL = "sqlite+aiosqlite://"


def make_settings(**overrides) -> Settings:
    values = {
        "environment": "test",
        "database_url": TEST_DATABASE_URL,
        "redis_dsn": None,
    }
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest_asyncio.fixture
async def engine():
    """Fresh in-memory database per test."""
    engine = build_engine(TEST_DATABASE_URL)
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest_asyncio.fixture
async def session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def cache(settings) -> AsyncGenerator[CacheLayer, None]:
    cache = CacheLayer(settings)
    await cache.init_cache()
    yield cache
    await cache.close()


@pytest.fixture
def invalidator(cache, settings) -> CacheInvalidator:
    return CacheInvalidator(cache, settings)


# Test data helpers
async def create_user(
    session: AsyncSession,
    email: str = "user@example.com",
    name: str = "Test User",
    role: Role = Role.USER,
    password: str = "password123",
) -> User:
    user = User(email=email, name=name, password_hash=hash_password(password), role=role)
    session.add(user)
    await session.commit()
    return user


async def create_task(
    session: AsyncSession,
    user: User,
    title: str = "Write report",
    description: str | None = None,
    status: TaskStatus = TaskStatus.PENDING,
    priority: TaskPriority = TaskPriority.MEDIUM,
    **extra,
) -> Task:
    task = Task(
        title=title,
        description=description,
        status=status,
        priority=priority,
        user_id=user.id,
        **extra,
    )
    session.add(task)
    await session.commit()
    return task


@pytest_asyncio.fixture
async def user(session) -> User:
    return await create_user(session, email="alice@example.com", name="Alice")


@pytest_asyncio.fixture
async def other_user(session) -> User:
    return await create_user(session, email="bob@example.com", name="Bob")


@pytest_asyncio.fixture
async def admin(session) -> User:
    return await create_user(session, email="root@example.com", name="Root", role=Role.ADMIN)


@pytest_asyncio.fixture
async def client(session_factory, cache, settings) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client against the app with database, cache and settings overridden."""

    async def get_test_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = get_test_db
    app.dependency_overrides[get_cache] = lambda: cache
    app.dependency_overrides[get_settings] = lambda: settings

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as test_client:
        yield test_client

    app.dependency_overrides.clear()

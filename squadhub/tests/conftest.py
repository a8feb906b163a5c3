"""
Shared pytest configuration for squadhub tests.

Service tests run against an in-memory SQLite database by default. Set
TEST_DATABASE_URL to run them against PostgreSQL instead; the database name
must contain "test" so a misconfigured run cannot drop real tables.
"""

import os

# Disable rate limiting before any route module is imported
os.environ.setdefault("ENV", "test")

import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import NullPool, StaticPool

from squadhub.database.db import Base
from squadhub.database.models import Player


def _resolve_test_database_url() -> str:
    """Build the test database URL, refusing non-test PostgreSQL databases."""
    url = os.getenv("TEST_DATABASE_URL", "sqlite+aiosqlite:///:memory:")
    if url.startswith("sqlite"):
        return url

    db_name = url.rsplit("/", 1)[-1].split("?")[0]
    if "test" not in db_name.lower():
        raise RuntimeError(
            f"SAFETY: Refusing to run tests against database '{db_name}'. "
            f"Point TEST_DATABASE_URL at a database whose name contains 'test'."
        )
    return url


TEST_DATABASE_URL = _resolve_test_database_url()


@pytest_asyncio.fixture(scope="function")
async def test_engine():
    """Create a fresh schema for each test and point db.AsyncSessionLocal at it."""
    if TEST_DATABASE_URL.startswith("sqlite"):
        # One shared connection so every session sees the same in-memory database
        engine = create_async_engine(
            TEST_DATABASE_URL,
            poolclass=StaticPool,
        )
    else:
        engine = create_async_engine(TEST_DATABASE_URL, poolclass=NullPool)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    from squadhub.database import db

    test_session_maker = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )
    original_async_session_local = db.AsyncSessionLocal
    db.AsyncSessionLocal = test_session_maker

    yield engine

    db.AsyncSessionLocal = original_async_session_local
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(test_engine):
    """Session factory bound to the test engine (for code that opens its own sessions)."""
    from squadhub.database import db

    return db.AsyncSessionLocal


@pytest_asyncio.fixture
async def db_session(session_factory):
    """Test database session; rolled back and closed after the test."""
    async with session_factory() as session:
        try:
            yield session
        finally:
            await session.rollback()
            await session.close()


async def create_player(session, display_name, auth_id=None, steam_id=None, rating=1000):
    """Helper: insert a player row and return it (flushed, not committed)."""
    player = Player(
        display_name=display_name,
        auth_id=auth_id,
        steam_id=steam_id,
        rating=rating,
    )
    session.add(player)
    await session.flush()
    await session.refresh(player)
    return player


@pytest_asyncio.fixture
async def players(db_session):
    """Create six players: enough to fill a roster and have one left over."""
    names = ["alice", "bob", "carol", "dave", "erin", "frank"]
    created = {}
    for index, name in enumerate(names):
        player = await create_player(db_session, name.title(), auth_id=f"auth-{name}", rating=1000 + index)
        created[name] = player.id
    return created

"""
Root Pytest Fixtures.

Shared fixtures available to all test types.

Test Database Configuration:
    Tests use an in-memory SQLite database. Each test gets a fresh engine,
    so no test can see another's notes.
"""

from collections.abc import AsyncGenerator
from datetime import datetime

import pytest
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from notekeeper.core.database import create_engine
from notekeeper.mirror import CompanionMirror, InMemoryMirrorStorage, MirrorSync
from notekeeper.models.base import Base

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


# =============================================================================
# Database Engine Fixtures
# =============================================================================


@pytest.fixture
async def db_engine() -> AsyncGenerator[AsyncEngine, None]:
    """
    Create the test database engine.

    SQLite in-memory needs a single shared connection (StaticPool) so the
    schema created here is visible to every session.
    """
    engine = create_engine(
        TEST_DATABASE_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def db_session_factory(db_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create a session factory bound to the test engine."""
    return async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


# =============================================================================
# Database Session Fixtures
# =============================================================================


@pytest.fixture
async def db_session(
    db_session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """
    Provide a database session for a single test.

    Changes are rolled back after the test.
    """
    async with db_session_factory() as session:
        yield session
        await session.rollback()


# =============================================================================
# Mirror Fixtures
# =============================================================================


@pytest.fixture
def mirror_storage() -> InMemoryMirrorStorage:
    return InMemoryMirrorStorage()


@pytest.fixture
def mirror(mirror_storage: InMemoryMirrorStorage) -> CompanionMirror:
    return CompanionMirror(mirror_storage)


@pytest.fixture
def mirror_sync(mirror: CompanionMirror) -> MirrorSync:
    """Dispatcher with fast retries so failure tests stay quick."""
    return MirrorSync(
        mirror,
        max_attempts=2,
        backoff_multiplier=0,
        backoff_max=0,
        timeout_seconds=1.0,
    )


# =============================================================================
# Clock Fixtures
# =============================================================================


class FakeClock:
    """Settable clock for services under test."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2024, 5, 1, 12, 0, 0))

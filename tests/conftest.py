"""
Test fixtures for the Payment Gateway test suite.

This module provides shared fixtures used across all test files:

  - db_engine / db_session: Fresh in-memory SQLite database for each test
  - clock: A FixedClock injected wherever the app needs "now"
  - store / service: The SQL store and payment service on the test session
  - client: Async HTTP test client wired to the test database and clock

Key design decisions:
  - In-memory SQLite (sqlite+aiosqlite://) is used for speed and isolation.
    Each test gets a completely fresh database.
  - FastAPI's get_db and get_clock dependencies are overridden, so the
    application code runs exactly as in production with a pinned clock.
  - CARD_ENCRYPTION_KEY is set before the app is imported, because
    app.config builds its settings at import time.
"""

import os

os.environ.setdefault("CARD_ENCRYPTION_KEY", "AAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAA=")
os.environ.setdefault("LOG_JSON", "false")

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

from app.clock import FixedClock
from app.database import Base, get_db, use_immediate_transactions
from app.dependencies import get_clock
from app.main import app
from app.services.payment_service import PaymentService
from app.services.transaction_store import CardSimulation, SQLTransactionStore

from factories import (
    AUTHORIZATION_DECLINE_PAN,
    CAPTURE_DECLINE_PAN,
    REFUND_DECLINE_PAN,
    START,
)


# In-memory SQLite for fast, isolated tests
TEST_DATABASE_URL = "sqlite+aiosqlite://"


@pytest.fixture
def clock():
    return FixedClock(START)


@pytest_asyncio.fixture
async def db_engine():
    """Create a fresh async engine with all tables for each test."""
    engine = create_async_engine(TEST_DATABASE_URL)
    use_immediate_transactions(engine)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(db_engine):
    """Provide an async session bound to the test engine."""
    async_session = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    async with async_session() as session:
        yield session


@pytest.fixture
def simulation():
    return CardSimulation(
        authorization_failures=[AUTHORIZATION_DECLINE_PAN],
        capture_failures=[CAPTURE_DECLINE_PAN],
        refund_failures=[REFUND_DECLINE_PAN],
    )


@pytest.fixture
def store(db_session, simulation):
    return SQLTransactionStore(db_session, simulation)


@pytest.fixture
def service(store, clock):
    return PaymentService(store, clock)


@pytest_asyncio.fixture
async def client(db_engine, clock):
    """
    Async HTTP test client with the test database and clock injected.

    Card simulation uses the defaults from settings, which list the same
    decline card numbers as factories.py.
    """
    async_session = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async def override_get_db():
        async with async_session() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


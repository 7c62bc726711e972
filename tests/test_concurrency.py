"""
Tests for concurrent operations on one transaction.

These run against a file-backed SQLite database with one session per
operation, the way concurrent API requests run. They verify:
  - Concurrent captures cannot push the captured total past the authorization
  - Concurrent refunds cannot push the refunded total past the captured total
  - A request replayed concurrently is applied once
"""

import asyncio
import uuid

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

from app.database import Base, use_immediate_transactions
from app.domain.commands import Authorization, Capture, CardDetails, Refund
from app.domain.transaction import ActionType, Money
from app.exceptions import UnprocessableError
from app.services.payment_service import PaymentService
from app.services.transaction_store import SQLTransactionStore

from factories import VALID_PAN


def gbp(minor_units: int) -> Money:
    return Money(minor_units, "GBP", 2)


@pytest_asyncio.fixture
async def session_factory(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'gateway.db'}")
    use_immediate_transactions(engine)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
def run(session_factory, clock):
    """Run one service call on its own session, as a single request would."""

    async def _run(call):
        async with session_factory() as session:
            return await call(PaymentService(SQLTransactionStore(session), clock))

    return _run


async def authorize(run, minor_units: int = 10000):
    command = Authorization(
        request_id=uuid.uuid4(),
        card=CardDetails(pan=VALID_PAN, cvv="123", expiry_month=12, expiry_year=2030),
        amount=gbp(minor_units),
    )
    txn = await run(lambda service: service.authorize(command))
    return txn.authorization_id


class TestConcurrentOperations:

    async def test_concurrent_captures_cannot_exceed_authorized(self, run):
        """Two captures of 6000 against 10000: one succeeds, one is rejected."""
        auth_id = await authorize(run, 10000)

        def capture():
            command = Capture(uuid.uuid4(), auth_id, gbp(6000))
            return run(lambda service: service.capture(command))

        results = await asyncio.gather(capture(), capture(), return_exceptions=True)

        rejected = [r for r in results if isinstance(r, UnprocessableError)]
        assert len(rejected) == 1
        assert rejected[0].error_type == "exceeds_authorized"

        txn = await run(lambda service: service.get_transaction(auth_id))
        assert txn.captured_amount == gbp(6000)

    async def test_concurrent_refunds_cannot_exceed_captured(self, run):
        auth_id = await authorize(run, 10000)
        await run(lambda service: service.capture(Capture(uuid.uuid4(), auth_id, gbp(10000))))

        def refund():
            command = Refund(uuid.uuid4(), auth_id, gbp(7000))
            return run(lambda service: service.refund(command))

        results = await asyncio.gather(refund(), refund(), refund(), return_exceptions=True)

        assert sum(isinstance(r, UnprocessableError) for r in results) == 2
        txn = await run(lambda service: service.get_transaction(auth_id))
        assert txn.refunded_amount == gbp(7000)

    async def test_concurrent_replay_applied_once(self, run):
        auth_id = await authorize(run, 10000)
        command = Capture(uuid.uuid4(), auth_id, gbp(4000))

        results = await asyncio.gather(
            run(lambda service: service.capture(command)),
            run(lambda service: service.capture(command)),
        )

        assert results[0] == results[1]
        assert results[0].captured_amount == gbp(4000)
        assert [a.type for a in results[0].actions].count(ActionType.CAPTURE) == 1

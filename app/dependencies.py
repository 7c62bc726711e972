"""
FastAPI dependencies for the payment endpoints.

The dependency chain per request:

  get_db (AsyncSession) ─┐
                         ├── get_payment_service (PaymentService)
  get_clock (Clock) ─────┘

Tests override get_db with an in-memory database and get_clock with a
FixedClock, so the same service code runs with deterministic timestamps.
"""

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.clock import Clock, SystemClock
from app.database import get_db
from app.services.payment_service import PaymentService
from app.services.transaction_store import CardSimulation, SQLTransactionStore


_system_clock = SystemClock()


def get_clock() -> Clock:
    return _system_clock


def get_card_simulation() -> CardSimulation:
    return CardSimulation.from_settings()


async def get_payment_service(
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
    simulation: CardSimulation = Depends(get_card_simulation),
) -> PaymentService:
    """Build a PaymentService bound to this request's session."""
    return PaymentService(SQLTransactionStore(db, simulation), clock)

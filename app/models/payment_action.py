"""
PaymentAction model — the append-only log behind every transaction.

Each authorization, capture, refund and void is one row. Rows are inserted
and never updated or deleted.

Key fields:
  - type: "authorization", "capture", "refund" or "void"
  - status: "success" or "failed" (a simulated issuer decline)
  - amount_*: NULL for voids, which move no money
  - request_id: The client's idempotency key for this action
  - processed_date: When the gateway processed the action (injected clock)

Idempotency:
  UNIQUE (transaction_id, type, request_id) is the durable guard against
  replays. The store treats a conflict on this constraint as "already done".
  Amounts, where present, must be positive.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    BigInteger, String, SmallInteger, DateTime, ForeignKey, UniqueConstraint, CheckConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base


class PaymentAction(Base):
    __tablename__ = "payment_actions"

    __table_args__ = (
        UniqueConstraint(
            "transaction_id", "type", "request_id",
            name="uq_payment_actions_transaction_type_request",
        ),
        CheckConstraint(
            "amount_minor_units IS NULL OR amount_minor_units > 0",
            name="ck_payment_actions_positive_amount",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )

    transaction_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("transactions.id"),
        nullable=False,
        index=True,
    )

    type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
    )

    status: Mapped[str] = mapped_column(
        String(10),
        nullable=False,
    )

    amount_minor_units: Mapped[int | None] = mapped_column(
        BigInteger,
        nullable=True,
    )
    currency: Mapped[str | None] = mapped_column(
        String(3),
        nullable=True,
    )
    exponent: Mapped[int | None] = mapped_column(
        SmallInteger,
        nullable=True,
    )

    request_id: Mapped[uuid.UUID] = mapped_column(
        nullable=False,
    )

    processed_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        index=True,
    )

    # Insertion time; breaks ties between actions with the same processed_date
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

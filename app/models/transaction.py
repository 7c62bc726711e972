"""
Transaction model — one row per authorization.

The row holds only what never changes after authorization: the card, the
client's request id, the authorization id handed back to the client, and
the originally requested amount (the currency and exponent authority for
everything that follows).

There are deliberately no captured/refunded balance columns. Every monetary
event is a PaymentAction row, and totals are recomputed from those rows
each time the transaction is read.

Why amount_minor_units is BIGINT:
  Amounts are integers in the currency's minor unit (pence, cents), so all
  arithmetic is exact. BIGINT holds anything up to 2^63 - 1.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import BigInteger, String, SmallInteger, DateTime, ForeignKey, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base


class Transaction(Base):
    __tablename__ = "transactions"

    __table_args__ = (
        CheckConstraint("amount_minor_units > 0", name="ck_transactions_positive_amount"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )

    card_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("cards.id"),
        nullable=False,
        index=True,
    )

    # The client's idempotency key for the authorize call
    request_id: Mapped[uuid.UUID] = mapped_column(
        unique=True,
        nullable=False,
    )

    # Handle used by every capture/refund/void on this transaction
    authorization_id: Mapped[uuid.UUID] = mapped_column(
        unique=True,
        nullable=False,
        index=True,
        default=uuid.uuid4,
    )

    amount_minor_units: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
    )
    currency: Mapped[str] = mapped_column(
        String(3),
        nullable=False,
    )
    exponent: Mapped[int] = mapped_column(
        SmallInteger,
        nullable=False,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    card: Mapped["Card"] = relationship()

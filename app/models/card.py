"""
Card model — a payment card presented at authorization.

One row per distinct card number. Repeat authorizations with the same card
reuse the row, found through `pan_fingerprint`.

Storage strategy:
  - pan_encrypted: Full card number, Fernet-encrypted (AES-128-CBC + HMAC-SHA256)
  - cvv_encrypted: CVV, Fernet-encrypted
  - pan_fingerprint: Keyed HMAC-SHA256 of the card number. Fernet output is
    randomised, so the ciphertext cannot be used for lookups or uniqueness;
    the fingerprint can, without making the number recoverable.
  - pan_last_four: Plaintext, for display ("ending in 0366")

Enterprise note:
  In production, card data would live in a PCI DSS-compliant vault or
  tokenization service. This implementation demonstrates encryption at rest.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import String, Integer, DateTime, LargeBinary
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base


class Card(Base):
    __tablename__ = "cards"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )

    pan_encrypted: Mapped[bytes] = mapped_column(
        LargeBinary,
        nullable=False,
    )

    # Hex HMAC-SHA256 digest; UNIQUE gives one row per card number
    pan_fingerprint: Mapped[str] = mapped_column(
        String(64),
        unique=True,
        nullable=False,
        index=True,
    )

    pan_last_four: Mapped[str] = mapped_column(
        String(4),
        nullable=False,
    )

    cvv_encrypted: Mapped[bytes] = mapped_column(
        LargeBinary,
        nullable=False,
    )

    expiry_month: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )
    expiry_year: Mapped[int] = mapped_column(
        Integer,
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

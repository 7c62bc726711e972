"""
Inputs to the four payment operations, independent of any transport.

The HTTP layer builds these from request bodies; tests build them directly.
"""

import uuid
from dataclasses import dataclass

from app.domain.transaction import Money


@dataclass(frozen=True)
class CardDetails:
    pan: str
    cvv: str
    expiry_month: int
    expiry_year: int


@dataclass(frozen=True)
class Authorization:
    request_id: uuid.UUID
    card: CardDetails
    amount: Money


@dataclass(frozen=True)
class Capture:
    request_id: uuid.UUID
    authorization_id: uuid.UUID
    amount: Money


@dataclass(frozen=True)
class Refund:
    request_id: uuid.UUID
    authorization_id: uuid.UUID
    amount: Money


@dataclass(frozen=True)
class Void:
    request_id: uuid.UUID
    authorization_id: uuid.UUID

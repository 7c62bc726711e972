"""
Pydantic schemas for the payment endpoints.

All monetary amounts are integers in the currency's minor unit, with the
exponent saying how many decimal places that unit represents:
{"minor_units": 1050, "currency": "GBP", "exponent": 2} is £10.50.

Request schemas check shape only (UUIDs, ranges, formats). Payment rules
such as "captures cannot exceed the authorized amount" are enforced by the
service and reported as 422 with an error_type.
"""

import uuid
from datetime import datetime

from pydantic import BaseModel, Field

from app.domain.commands import Authorization, Capture, CardDetails, Refund, Void
from app.domain.transaction import (
    MAX_EXPONENT,
    MAX_MINOR_UNITS,
    Money,
    PaymentAction,
    TransactionAggregate,
)


class AmountRequest(BaseModel):
    """A positive amount in minor units."""
    minor_units: int = Field(gt=0, le=MAX_MINOR_UNITS, description="Amount in minor units")
    currency: str = Field(pattern=r"^[A-Z]{3}$", description="ISO 4217 code, e.g. GBP")
    exponent: int = Field(ge=0, le=MAX_EXPONENT, description="Decimal places of the minor unit")

    def to_money(self) -> Money:
        return Money(self.minor_units, self.currency, self.exponent)


class PaymentSourceRequest(BaseModel):
    """Card details presented at authorization. Spaces in the number are allowed."""
    pan: str = Field(min_length=1, max_length=32)
    cvv: str = Field(pattern=r"^\d{3,4}$")
    expiry_month: int = Field(ge=1, le=12)
    expiry_year: int = Field(ge=2000, le=2100)


class AuthorizationRequest(BaseModel):
    """Request body for POST /authorize."""
    request_id: uuid.UUID
    payment_source: PaymentSourceRequest
    amount: AmountRequest

    def to_command(self) -> Authorization:
        return Authorization(
            request_id=self.request_id,
            card=CardDetails(
                pan=self.payment_source.pan,
                cvv=self.payment_source.cvv,
                expiry_month=self.payment_source.expiry_month,
                expiry_year=self.payment_source.expiry_year,
            ),
            amount=self.amount.to_money(),
        )


class CaptureRequest(BaseModel):
    """Request body for POST /capture."""
    request_id: uuid.UUID
    authorization_id: uuid.UUID
    amount: AmountRequest

    def to_command(self) -> Capture:
        return Capture(self.request_id, self.authorization_id, self.amount.to_money())


class RefundRequest(BaseModel):
    """Request body for POST /refund."""
    request_id: uuid.UUID
    authorization_id: uuid.UUID
    amount: AmountRequest

    def to_command(self) -> Refund:
        return Refund(self.request_id, self.authorization_id, self.amount.to_money())


class VoidRequest(BaseModel):
    """Request body for POST /void."""
    request_id: uuid.UUID
    authorization_id: uuid.UUID

    def to_command(self) -> Void:
        return Void(self.request_id, self.authorization_id)


class AmountResponse(BaseModel):
    minor_units: int
    currency: str
    exponent: int

    model_config = {"from_attributes": True}


class PaymentSourceResponse(BaseModel):
    """Masked card: never the full number or CVV."""
    last_four: str
    expiry_month: int
    expiry_year: int

    model_config = {"from_attributes": True}


class PaymentActionResponse(BaseModel):
    type: str
    status: str
    processed_date: datetime
    request_id: uuid.UUID
    amount: AmountResponse | None

    @classmethod
    def from_action(cls, action: PaymentAction) -> "PaymentActionResponse":
        return cls(
            type=action.type.value,
            status=action.status.value,
            processed_date=action.processed_date,
            request_id=action.request_id,
            amount=AmountResponse.model_validate(action.amount) if action.amount else None,
        )


class TransactionResponse(BaseModel):
    """Public representation of a transaction and its action log."""
    id: uuid.UUID
    request_id: uuid.UUID
    authorization_id: uuid.UUID
    payment_source: PaymentSourceResponse
    amount: AmountResponse
    authorized_amount: AmountResponse
    captured_amount: AmountResponse
    refunded_amount: AmountResponse
    authorization_date: datetime | None
    is_voided: bool
    is_captured: bool
    is_refunded: bool
    payment_actions: list[PaymentActionResponse]

    @classmethod
    def from_aggregate(cls, txn: TransactionAggregate) -> "TransactionResponse":
        return cls(
            id=txn.id,
            request_id=txn.request_id,
            authorization_id=txn.authorization_id,
            payment_source=PaymentSourceResponse.model_validate(txn.payment_source),
            amount=AmountResponse.model_validate(txn.amount),
            authorized_amount=AmountResponse.model_validate(txn.authorized_amount),
            captured_amount=AmountResponse.model_validate(txn.captured_amount),
            refunded_amount=AmountResponse.model_validate(txn.refunded_amount),
            authorization_date=txn.authorization_processed_date(),
            is_voided=txn.is_voided(),
            is_captured=txn.is_captured(),
            is_refunded=txn.is_refunded(),
            payment_actions=[PaymentActionResponse.from_action(a) for a in txn.actions],
        )

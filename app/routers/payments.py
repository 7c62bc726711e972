"""
Payments router — the four payment operations plus a read.

Endpoints:
  POST /authorize                          — Validate a card and create a transaction
  POST /capture                            — Capture against an authorization
  POST /refund                             — Refund against captured funds
  POST /void                               — Cancel an uncaptured authorization
  GET  /transactions/{authorization_id}    — Current state of a transaction

Every POST carries a client-chosen request_id. Sending the same request
again (same operation, same request_id) returns the transaction without
repeating the action, so clients can retry safely after a timeout.
"""

import uuid

from fastapi import APIRouter, Depends, status

from app.dependencies import get_payment_service
from app.schemas.payment import (
    AuthorizationRequest,
    CaptureRequest,
    RefundRequest,
    TransactionResponse,
    VoidRequest,
)
from app.services.payment_service import PaymentService

router = APIRouter()


@router.post(
    "/authorize",
    response_model=TransactionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Authorize a payment",
)
async def authorize(
    request: AuthorizationRequest,
    service: PaymentService = Depends(get_payment_service),
):
    """
    Reserve funds on a card and create a transaction.

    - The card number must pass the Luhn checksum (spaces are allowed)
    - The returned **authorization_id** is used for all later operations
    - A declined card still creates a transaction, with a failed authorization
    """
    txn = await service.authorize(request.to_command())
    return TransactionResponse.from_aggregate(txn)


@router.post(
    "/capture",
    response_model=TransactionResponse,
    summary="Capture authorized funds",
)
async def capture(
    request: CaptureRequest,
    service: PaymentService = Depends(get_payment_service),
):
    """
    Capture some or all of the authorized amount. Repeatable until the
    captured total reaches the authorized amount.
    """
    txn = await service.capture(request.to_command())
    return TransactionResponse.from_aggregate(txn)


@router.post(
    "/refund",
    response_model=TransactionResponse,
    summary="Refund captured funds",
)
async def refund(
    request: RefundRequest,
    service: PaymentService = Depends(get_payment_service),
):
    """
    Refund some or all of the captured amount. Repeatable until the
    refunded total reaches the captured amount. No captures are allowed
    after the first refund.
    """
    txn = await service.refund(request.to_command())
    return TransactionResponse.from_aggregate(txn)


@router.post(
    "/void",
    response_model=TransactionResponse,
    summary="Void an authorization",
)
async def void(
    request: VoidRequest,
    service: PaymentService = Depends(get_payment_service),
):
    """Cancel an authorization before anything has been captured. Terminal."""
    txn = await service.void(request.to_command())
    return TransactionResponse.from_aggregate(txn)


@router.get(
    "/transactions/{authorization_id}",
    response_model=TransactionResponse,
    summary="Get a transaction",
)
async def get_transaction(
    authorization_id: uuid.UUID,
    service: PaymentService = Depends(get_payment_service),
):
    """Current totals, flags and action log for a transaction."""
    txn = await service.get_transaction(authorization_id)
    return TransactionResponse.from_aggregate(txn)

"""
Custom exception classes and FastAPI exception handlers.

The service layer raises these domain-specific errors without importing
HTTP concepts. The handlers registered here translate each one into a
single, stable HTTP status so clients never have to parse free text to
work out what went wrong.

Exception hierarchy:
    PaymentGatewayError (base)
    ├── TransactionNotFoundError  — no transaction for an authorization id (404)
    ├── UnprocessableError        — a payment rule would be violated (422)
    ├── StoreFailureError         — the persistence layer failed (500)
    └── DataIntegrityError        — stored data breaks a guaranteed invariant (500)
"""

import logging
import uuid
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Base exception
# ---------------------------------------------------------------------------

class PaymentGatewayError(Exception):
    """Base exception for all Payment Gateway domain errors."""

    def __init__(self, detail: str = "An error occurred"):
        self.detail = detail
        super().__init__(self.detail)


# ---------------------------------------------------------------------------
# Domain exceptions
# ---------------------------------------------------------------------------

class TransactionNotFoundError(PaymentGatewayError):
    """Raised when no transaction exists for the given authorization id."""

    def __init__(self, authorization_id: uuid.UUID):
        self.authorization_id = authorization_id
        super().__init__(f"Transaction with authorization {authorization_id} not found")


class UnprocessableError(PaymentGatewayError):
    """
    Raised when a request is well-formed but a payment rule rejects it.

    Attributes:
        reason: Human-readable explanation, returned to the client as-is.
        error_type: Stable machine-readable code (e.g. "exceeds_authorized").
    """

    def __init__(self, reason: str, error_type: str = "unprocessable"):
        self.reason = reason
        self.error_type = error_type
        super().__init__(reason)


class StoreFailureError(PaymentGatewayError):
    """
    Raised when the persistence layer fails (connection, constraint, I/O).

    The message carries the operation and identifiers for the logs; clients
    only ever see an opaque internal error.
    """

    def __init__(self, operation: str, **context: Any):
        self.operation = operation
        self.context = context
        details = ", ".join(f"{key}={value}" for key, value in context.items())
        super().__init__(f"Store failure during {operation}" + (f" ({details})" if details else ""))


class DataIntegrityError(PaymentGatewayError):
    """Raised when stored data violates an invariant that holds by construction."""


# ---------------------------------------------------------------------------
# FastAPI exception handlers
# ---------------------------------------------------------------------------

def register_exception_handlers(app: FastAPI) -> None:
    """
    Register custom exception handlers with the FastAPI application.

    Each handler maps a domain exception to exactly one HTTP status code
    and a JSON body of the form {"detail": ..., "error_type": ...}.
    """

    @app.exception_handler(TransactionNotFoundError)
    async def transaction_not_found_handler(
        request: Request, exc: TransactionNotFoundError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=404,
            content={"detail": exc.detail, "error_type": "transaction_not_found"},
        )

    @app.exception_handler(UnprocessableError)
    async def unprocessable_handler(
        request: Request, exc: UnprocessableError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=422,  # the request was valid but payment rules reject it
            content={
                "detail": exc.detail,
                "error_type": exc.error_type,
                "reason": exc.reason,
            },
        )

    @app.exception_handler(StoreFailureError)
    async def store_failure_handler(
        request: Request, exc: StoreFailureError
    ) -> JSONResponse:
        logger.error("store failure: %s", exc.detail, exc_info=exc)
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error", "error_type": "store_failure"},
        )

    @app.exception_handler(DataIntegrityError)
    async def data_integrity_handler(
        request: Request, exc: DataIntegrityError
    ) -> JSONResponse:
        logger.critical("data integrity violation: %s", exc.detail)
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error", "error_type": "data_integrity"},
        )

"""Shared constants and request builders for the test suite."""

import uuid
from datetime import datetime, timezone

VALID_PAN = "4532015112830366"
AUTHORIZATION_DECLINE_PAN = "4000000000000119"
CAPTURE_DECLINE_PAN = "4000000000000259"
REFUND_DECLINE_PAN = "4000000000003238"

START = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


def amount(minor_units: int, currency: str = "GBP", exponent: int = 2) -> dict:
    return {"minor_units": minor_units, "currency": currency, "exponent": exponent}


def authorize_body(minor_units: int = 10000, pan: str = VALID_PAN, **overrides) -> dict:
    """A valid POST /authorize body; override any top-level field by keyword."""
    body = {
        "request_id": str(uuid.uuid4()),
        "payment_source": {
            "pan": pan,
            "cvv": "123",
            "expiry_month": 12,
            "expiry_year": 2030,
        },
        "amount": amount(minor_units),
    }
    body.update(overrides)
    return body


def action_body(authorization_id: str, minor_units: int | None = None, **overrides) -> dict:
    """A POST /capture, /refund or /void body (no amount for void)."""
    body = {"request_id": str(uuid.uuid4()), "authorization_id": authorization_id}
    if minor_units is not None:
        body["amount"] = amount(minor_units)
    body.update(overrides)
    return body

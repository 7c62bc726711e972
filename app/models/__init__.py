"""
SQLAlchemy ORM models package.

All models are imported here so that:
  1. Base.metadata knows every table before create_all() runs
  2. String references in relationships ("Card", "PaymentAction") resolve
"""

from app.models.card import Card  # noqa: F401
from app.models.transaction import Transaction  # noqa: F401
from app.models.payment_action import PaymentAction  # noqa: F401

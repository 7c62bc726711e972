"""
Transaction aggregate — the payment lifecycle rules.

A transaction is an append-only log of payment actions. Nothing about its
monetary state is stored: authorized, captured and refunded totals are
recomputed from the log every time an aggregate is built or appended to.
A running counter can drift from the facts it summarises; a fold over the
facts cannot.

Lifecycle rules enforced by the validators:

    authorization ──► capture* ──► refund*
          │
          └──► void (terminal)

  - captures accumulate up to the authorized amount
  - refunds accumulate up to the captured amount
  - once anything is refunded, no further capture
  - once anything is captured, no void
  - once voided, nothing else
  - every amount must be in the currency and exponent of the authorization

Only successful actions count toward totals and lifecycle flags. Failed
actions (declines) are still part of the log, so their request ids still
deduplicate replays.
"""

import enum
import uuid
from dataclasses import dataclass, field
from datetime import datetime

from app.exceptions import DataIntegrityError

# Largest amount a signed BIGINT column can hold
MAX_MINOR_UNITS = 2**63 - 1
MAX_EXPONENT = 255


class ActionType(str, enum.Enum):
    AUTHORIZATION = "authorization"
    CAPTURE = "capture"
    REFUND = "refund"
    VOID = "void"


class ActionStatus(str, enum.Enum):
    SUCCESS = "success"
    FAILED = "failed"


@dataclass(frozen=True)
class Money:
    """An amount in minor units (pence, cents) with its currency and scale."""

    minor_units: int
    currency: str
    exponent: int

    def __post_init__(self):
        if not 0 <= self.minor_units <= MAX_MINOR_UNITS:
            raise ValueError(f"minor_units out of range: {self.minor_units}")
        if not 0 <= self.exponent <= MAX_EXPONENT:
            raise ValueError(f"exponent out of range: {self.exponent}")

    def same_denomination(self, other: "Money") -> bool:
        return self.currency == other.currency and self.exponent == other.exponent


@dataclass(frozen=True)
class PaymentAction:
    """One immutable fact in a transaction's log."""

    type: ActionType
    status: ActionStatus
    processed_date: datetime
    request_id: uuid.UUID
    amount: Money | None = None

    @property
    def succeeded(self) -> bool:
        return self.status == ActionStatus.SUCCESS


@dataclass(frozen=True)
class PaymentSource:
    """The card used at authorization, as much of it as may be shown."""

    card_id: uuid.UUID
    last_four: str
    expiry_month: int
    expiry_year: int


class Rejection(str, enum.Enum):
    ALREADY_VOIDED = "already_voided"
    ALREADY_CAPTURED = "already_captured"
    ALREADY_REFUNDED = "already_refunded"
    CURRENCY_MISMATCH = "currency_mismatch"
    EXPONENT_MISMATCH = "exponent_mismatch"
    EXCEEDS_AUTHORIZED = "exceeds_authorized"
    EXCEEDS_CAPTURED = "exceeds_captured"


class ActionRejectedError(Exception):
    """Raised by the validators when a proposed action breaks a lifecycle rule."""

    def __init__(self, rejection: Rejection, reason: str):
        self.rejection = rejection
        self.reason = reason
        super().__init__(reason)


@dataclass
class TransactionAggregate:
    """
    A transaction and its action log, with derived totals.

    Construct it from stored rows (the store does this on every read);
    totals are computed immediately. Two aggregates built from the same
    rows compare equal.
    """

    id: uuid.UUID
    request_id: uuid.UUID
    authorization_id: uuid.UUID
    payment_source: PaymentSource
    amount: Money
    actions: list[PaymentAction] = field(default_factory=list)

    authorized_amount: Money = field(init=False)
    captured_amount: Money = field(init=False)
    refunded_amount: Money = field(init=False)

    def __post_init__(self):
        # sorted() is stable, so actions sharing a timestamp keep insertion order
        self.actions = sorted(self.actions, key=lambda action: action.processed_date)
        self.recompute_totals()

    # -----------------------------------------------------------------------
    # Derived state
    # -----------------------------------------------------------------------

    def append(self, action: PaymentAction) -> None:
        """Append an action to the in-memory log and refresh the totals."""
        self.actions.append(action)
        self.recompute_totals()

    def recompute_totals(self) -> None:
        """
        Fold the action log into authorized/captured/refunded totals.

        Raises:
            DataIntegrityError: If the log holds more than one successful
                authorization, or an amount in a foreign currency.
        """
        authorized = 0
        captured = 0
        refunded = 0
        authorizations = 0

        for action in self.actions:
            if not action.succeeded or action.type == ActionType.VOID:
                continue
            if action.amount is None:
                raise DataIntegrityError(
                    f"{action.type.value} action {action.request_id} on transaction "
                    f"{self.id} has no amount"
                )
            if not action.amount.same_denomination(self.amount):
                raise DataIntegrityError(
                    f"{action.type.value} action {action.request_id} is in "
                    f"{action.amount.currency}, transaction {self.id} is in {self.amount.currency}"
                )

            if action.type == ActionType.AUTHORIZATION:
                authorizations += 1
                authorized = action.amount.minor_units
            elif action.type == ActionType.CAPTURE:
                captured += action.amount.minor_units
            elif action.type == ActionType.REFUND:
                refunded += action.amount.minor_units

        if authorizations > 1:
            raise DataIntegrityError(
                f"transaction {self.id} has {authorizations} successful authorizations"
            )

        self.authorized_amount = Money(authorized, self.amount.currency, self.amount.exponent)
        self.captured_amount = Money(captured, self.amount.currency, self.amount.exponent)
        self.refunded_amount = Money(refunded, self.amount.currency, self.amount.exponent)

    def _has_successful(self, action_type: ActionType) -> bool:
        return any(a.type == action_type and a.succeeded for a in self.actions)

    def is_voided(self) -> bool:
        return self._has_successful(ActionType.VOID)

    def is_captured(self) -> bool:
        return self._has_successful(ActionType.CAPTURE)

    def is_refunded(self) -> bool:
        return self._has_successful(ActionType.REFUND)

    def is_idempotent_replay(self, action_type: ActionType, request_id: uuid.UUID) -> bool:
        """True if this exact (type, request id) is already in the log, whatever its status."""
        return any(
            a.type == action_type and a.request_id == request_id for a in self.actions
        )

    def authorization_processed_date(self) -> datetime | None:
        """
        When the transaction was successfully authorized.

        Returns None for a declined authorization.

        Raises:
            DataIntegrityError: If the log has no authorization action at all.
        """
        authorizations = [a for a in self.actions if a.type == ActionType.AUTHORIZATION]
        if not authorizations:
            raise DataIntegrityError(f"transaction {self.id} has no authorization action")
        for action in authorizations:
            if action.succeeded:
                return action.processed_date
        return None

    # -----------------------------------------------------------------------
    # Validators
    # -----------------------------------------------------------------------

    def _check_denomination(self, action_type: ActionType, amount: Money) -> None:
        if amount.currency != self.amount.currency:
            raise ActionRejectedError(
                Rejection.CURRENCY_MISMATCH,
                f"{action_type.value} amount is in {amount.currency}, "
                f"transaction is in {self.amount.currency}",
            )
        if amount.exponent != self.amount.exponent:
            raise ActionRejectedError(
                Rejection.EXPONENT_MISMATCH,
                f"{action_type.value} amount has exponent {amount.exponent}, "
                f"transaction has exponent {self.amount.exponent}",
            )

    def validate_capture(self, amount: Money) -> None:
        """Raise ActionRejectedError unless capturing `amount` is allowed."""
        if self.is_voided():
            raise ActionRejectedError(
                Rejection.ALREADY_VOIDED, "cannot capture a voided transaction"
            )
        if self.is_refunded():
            raise ActionRejectedError(
                Rejection.ALREADY_REFUNDED, "cannot capture after a refund"
            )
        self._check_denomination(ActionType.CAPTURE, amount)

        new_total = self.captured_amount.minor_units + amount.minor_units
        if new_total > self.authorized_amount.minor_units:
            raise ActionRejectedError(
                Rejection.EXCEEDS_AUTHORIZED,
                f"capture of {amount.minor_units} would bring the captured total to "
                f"{new_total}, above the authorized {self.authorized_amount.minor_units}",
            )

    def validate_refund(self, amount: Money) -> None:
        """Raise ActionRejectedError unless refunding `amount` is allowed."""
        if self.is_voided():
            raise ActionRejectedError(
                Rejection.ALREADY_VOIDED, "cannot refund a voided transaction"
            )
        self._check_denomination(ActionType.REFUND, amount)

        new_total = self.refunded_amount.minor_units + amount.minor_units
        if new_total > self.captured_amount.minor_units:
            raise ActionRejectedError(
                Rejection.EXCEEDS_CAPTURED,
                f"refund of {amount.minor_units} would bring the refunded total to "
                f"{new_total}, above the captured {self.captured_amount.minor_units}",
            )

    def validate_void(self) -> None:
        """Raise ActionRejectedError unless the transaction can be voided."""
        if self.is_voided():
            raise ActionRejectedError(
                Rejection.ALREADY_VOIDED, "transaction is already voided"
            )
        if self.is_captured():
            raise ActionRejectedError(
                Rejection.ALREADY_CAPTURED, "cannot void a captured transaction"
            )

"""
Payment service — authorize, capture, refund and void.

THIS IS THE CORE OF THE GATEWAY. Every mutating operation follows the same
sequence inside one atomic store block:

    load (locked) → replay check → validate → append → reload

The reload means the caller always sees totals that were recomputed from
the stored log, never a locally patched copy.

Idempotency:
  Each action is keyed by (action type, request id). A request whose key is
  already in the transaction's log returns the current transaction without
  writing anything, whether the original action succeeded or was declined.
  Authorize is keyed by its request id alone: repeating it returns the
  transaction it created.

Error classification:
  - TransactionNotFoundError: unknown authorization id
  - UnprocessableError: card validation or a lifecycle rule failed; raised
    before anything is written
  - StoreFailureError: the store failed; not retried here
  - DataIntegrityError: the stored log contradicts itself

Time:
  Action timestamps come from the injected Clock, never from the wall clock
  directly, so tests can pin them.
"""

import logging
import uuid
from dataclasses import replace
from typing import Callable

from app.clock import Clock
from app.domain import luhn
from app.domain.commands import Authorization, Capture, Refund, Void
from app.domain.transaction import (
    ActionRejectedError,
    ActionType,
    Money,
    TransactionAggregate,
)
from app.exceptions import UnprocessableError
from app.services.transaction_store import TransactionStore

logger = logging.getLogger(__name__)


class PaymentService:
    def __init__(self, store: TransactionStore, clock: Clock):
        self.store = store
        self.clock = clock

    async def get_transaction(self, authorization_id: uuid.UUID) -> TransactionAggregate:
        """Current state of a transaction, with totals recomputed from its log."""
        return await self.store.get_transaction(authorization_id)

    async def authorize(self, command: Authorization) -> TransactionAggregate:
        """
        Validate the card and create a new transaction.

        The returned transaction may carry a failed authorization if the
        card is declined by the store's simulation rules; that is a result,
        not an error.

        Raises:
            UnprocessableError: If the card number fails validation.
            StoreFailureError: If the store fails.
        """
        log_extra = {"request_id": str(command.request_id), "action_type": "authorization"}

        try:
            pan = luhn.validate(command.card.pan)
        except luhn.CardNumberError as exc:
            logger.warning(
                "authorization rejected: %s", exc,
                extra={**log_extra, "rejection": exc.failure.value},
            )
            raise UnprocessableError(str(exc), error_type=exc.failure.value) from exc

        command = replace(command, card=replace(command.card, pan=pan))

        async with self.store.atomic("authorize", request_id=command.request_id):
            existing = await self.store.find_transaction_by_request_id(command.request_id)
            if existing is not None:
                logger.info(
                    "authorization replayed",
                    extra={**log_extra, "authorization_id": str(existing.authorization_id)},
                )
                return existing

            txn = await self.store.create_transaction(command, self.clock.now())

        logger.info(
            "authorization processed",
            extra={
                **log_extra,
                "authorization_id": str(txn.authorization_id),
                "status": txn.actions[0].status.value,
            },
        )
        return txn

    async def capture(self, command: Capture) -> TransactionAggregate:
        """
        Capture part or all of the authorized amount.

        Raises:
            TransactionNotFoundError: Unknown authorization id.
            UnprocessableError: Voided, refunded, wrong currency, or the
                captured total would exceed the authorized amount.
        """
        return await self._apply(
            ActionType.CAPTURE,
            command.authorization_id,
            command.request_id,
            command.amount,
            lambda txn: txn.validate_capture(command.amount),
        )

    async def refund(self, command: Refund) -> TransactionAggregate:
        """
        Refund part or all of the captured amount.

        Raises:
            TransactionNotFoundError: Unknown authorization id.
            UnprocessableError: Voided, wrong currency, or the refunded
                total would exceed the captured amount.
        """
        return await self._apply(
            ActionType.REFUND,
            command.authorization_id,
            command.request_id,
            command.amount,
            lambda txn: txn.validate_refund(command.amount),
        )

    async def void(self, command: Void) -> TransactionAggregate:
        """
        Cancel an authorization that has not been captured.

        Raises:
            TransactionNotFoundError: Unknown authorization id.
            UnprocessableError: Already voided or already captured.
        """
        return await self._apply(
            ActionType.VOID,
            command.authorization_id,
            command.request_id,
            None,
            lambda txn: txn.validate_void(),
        )

    async def _apply(
        self,
        action_type: ActionType,
        authorization_id: uuid.UUID,
        request_id: uuid.UUID,
        amount: Money | None,
        validate: Callable[[TransactionAggregate], None],
    ) -> TransactionAggregate:
        log_extra = {
            "authorization_id": str(authorization_id),
            "request_id": str(request_id),
            "action_type": action_type.value,
        }

        async with self.store.atomic(
            action_type.value, authorization_id=authorization_id, request_id=request_id
        ):
            txn = await self.store.get_transaction(authorization_id, for_update=True)

            if txn.is_idempotent_replay(action_type, request_id):
                logger.info("%s replayed", action_type.value, extra=log_extra)
                return txn

            try:
                validate(txn)
            except ActionRejectedError as exc:
                logger.warning(
                    "%s rejected: %s", action_type.value, exc.reason,
                    extra={**log_extra, "rejection": exc.rejection.value},
                )
                raise UnprocessableError(exc.reason, error_type=exc.rejection.value) from exc

            inserted = await self.store.create_payment_action(
                txn.id, request_id, action_type, amount, self.clock.now()
            )
            txn = await self.store.get_transaction(authorization_id)

        if inserted:
            logger.info("%s processed", action_type.value, extra=log_extra)
        else:
            logger.info("%s replayed concurrently", action_type.value, extra=log_extra)
        return txn

"""
Transaction store — persistence for transactions and their action logs.

The payment service depends only on the TransactionStore protocol below.
SQLTransactionStore implements it with async SQLAlchemy and is the only
place that knows about tables, rows and sessions. Everything it returns is
a freshly built TransactionAggregate, so totals are always recomputed from
the stored log.

Atomicity:
  Callers wrap each load-validate-append sequence in `atomic()`. The block
  commits on success and rolls back on any exception, so a rejected action
  never leaves a partial write behind.

Concurrency:
  get_transaction(..., for_update=True) locks the transaction row
  (SELECT ... FOR UPDATE) for the rest of the atomic block. Two requests
  against the same authorization id are serialised, so neither can validate
  against a stale captured/refunded total. SQLite ignores FOR UPDATE; there
  the engine opens every transaction with BEGIN IMMEDIATE instead (see
  app.database.use_immediate_transactions), which serialises whole
  transactions.

  The UNIQUE (transaction_id, type, request_id) constraint is the backstop
  for replays: an insert that loses a race on it is treated as a replay
  that already happened. Any other integrity error is a store failure.

Card simulation:
  There is no card network behind the gateway. CardSimulation decides
  whether an action is stored as "success" or "failed" from the card used
  at authorization, so clients can exercise decline paths with well-known
  test card numbers.
"""

import logging
import uuid
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Iterable, Protocol

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload

from app.config import settings
from app.domain import luhn
from app.domain.commands import Authorization, CardDetails
from app.domain.transaction import (
    ActionStatus,
    ActionType,
    Money,
    PaymentAction,
    PaymentSource,
    TransactionAggregate,
)
from app.exceptions import StoreFailureError, TransactionNotFoundError
from app.models.card import Card
from app.models.payment_action import PaymentAction as PaymentActionRow
from app.models.transaction import Transaction as TransactionRow
from app.security import card_fingerprint, encrypt_value

logger = logging.getLogger(__name__)


class TransactionStore(Protocol):
    """What the payment service needs from persistence."""

    def atomic(self, operation: str, **context: Any) -> AbstractAsyncContextManager[None]:
        ...

    async def create_transaction(
        self, authorization: Authorization, processed_date: datetime
    ) -> TransactionAggregate:
        ...

    async def get_transaction(
        self, authorization_id: uuid.UUID, *, for_update: bool = False
    ) -> TransactionAggregate:
        ...

    async def find_transaction_by_request_id(
        self, request_id: uuid.UUID
    ) -> TransactionAggregate | None:
        ...

    async def create_payment_action(
        self,
        transaction_id: uuid.UUID,
        request_id: uuid.UUID,
        action_type: ActionType,
        amount: Money | None,
        processed_date: datetime,
    ) -> bool:
        ...


class CardSimulation:
    """Per-card decline rules, keyed by card fingerprint."""

    def __init__(
        self,
        authorization_failures: Iterable[str] = (),
        capture_failures: Iterable[str] = (),
        refund_failures: Iterable[str] = (),
    ):
        self._failures = {
            ActionType.AUTHORIZATION: self._fingerprints(authorization_failures),
            ActionType.CAPTURE: self._fingerprints(capture_failures),
            ActionType.REFUND: self._fingerprints(refund_failures),
        }

    @staticmethod
    def _fingerprints(card_numbers: Iterable[str]) -> frozenset[str]:
        return frozenset(card_fingerprint(luhn.normalize(number)) for number in card_numbers)

    @classmethod
    def from_settings(cls) -> "CardSimulation":
        return cls(
            authorization_failures=settings.AUTHORIZATION_FAILURE_CARDS,
            capture_failures=settings.CAPTURE_FAILURE_CARDS,
            refund_failures=settings.REFUND_FAILURE_CARDS,
        )

    def status_for(self, action_type: ActionType, fingerprint: str) -> ActionStatus:
        if fingerprint in self._failures.get(action_type, frozenset()):
            return ActionStatus.FAILED
        return ActionStatus.SUCCESS


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes even for timezone=True columns
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _to_action(row: PaymentActionRow) -> PaymentAction:
    amount = None
    if row.amount_minor_units is not None:
        amount = Money(row.amount_minor_units, row.currency, row.exponent)
    return PaymentAction(
        type=ActionType(row.type),
        status=ActionStatus(row.status),
        processed_date=_as_utc(row.processed_date),
        request_id=row.request_id,
        amount=amount,
    )


class SQLTransactionStore:
    """TransactionStore backed by an async SQLAlchemy session."""

    def __init__(self, db: AsyncSession, simulation: CardSimulation | None = None):
        self.db = db
        self.simulation = simulation or CardSimulation()

    @asynccontextmanager
    async def atomic(self, operation: str, **context: Any):
        """Commit the enclosed work as one unit, or roll all of it back."""
        try:
            yield
            await self.db.commit()
        except SQLAlchemyError as exc:
            await self.db.rollback()
            raise StoreFailureError(operation, **context) from exc
        except Exception:
            await self.db.rollback()
            raise

    # -----------------------------------------------------------------------
    # Reads
    # -----------------------------------------------------------------------

    async def _load_aggregate(self, row: TransactionRow) -> TransactionAggregate:
        result = await self.db.execute(
            select(PaymentActionRow)
            .where(PaymentActionRow.transaction_id == row.id)
            .order_by(PaymentActionRow.processed_date, PaymentActionRow.created_at)
        )
        return TransactionAggregate(
            id=row.id,
            request_id=row.request_id,
            authorization_id=row.authorization_id,
            payment_source=PaymentSource(
                card_id=row.card.id,
                last_four=row.card.pan_last_four,
                expiry_month=row.card.expiry_month,
                expiry_year=row.card.expiry_year,
            ),
            amount=Money(row.amount_minor_units, row.currency, row.exponent),
            actions=[_to_action(action) for action in result.scalars().all()],
        )

    def _transaction_query(self):
        # populate_existing: re-read rows already in the identity map, so a
        # reload after an append never serves stale state
        return (
            select(TransactionRow)
            .options(joinedload(TransactionRow.card, innerjoin=True))
            .execution_options(populate_existing=True)
        )

    async def get_transaction(
        self, authorization_id: uuid.UUID, *, for_update: bool = False
    ) -> TransactionAggregate:
        """
        Load a transaction by its authorization id.

        Args:
            authorization_id: The handle returned by authorize.
            for_update: Lock the transaction row until the enclosing
                atomic block ends.

        Raises:
            TransactionNotFoundError: If no such transaction exists.
            StoreFailureError: If the database fails.
        """
        query = self._transaction_query().where(
            TransactionRow.authorization_id == authorization_id
        )
        if for_update:
            query = query.with_for_update(of=TransactionRow)  # Ignored by SQLite

        try:
            result = await self.db.execute(query)
            row = result.scalar_one_or_none()
            if row is None:
                raise TransactionNotFoundError(authorization_id)
            return await self._load_aggregate(row)
        except SQLAlchemyError as exc:
            raise StoreFailureError(
                "get_transaction", authorization_id=authorization_id
            ) from exc

    async def find_transaction_by_request_id(
        self, request_id: uuid.UUID
    ) -> TransactionAggregate | None:
        """Load the transaction created by the authorize call with this request id."""
        try:
            result = await self.db.execute(
                self._transaction_query().where(TransactionRow.request_id == request_id)
            )
            row = result.scalar_one_or_none()
            if row is None:
                return None
            return await self._load_aggregate(row)
        except SQLAlchemyError as exc:
            raise StoreFailureError(
                "find_transaction_by_request_id", request_id=request_id
            ) from exc

    # -----------------------------------------------------------------------
    # Writes
    # -----------------------------------------------------------------------

    async def _get_or_create_card(self, details: CardDetails, fingerprint: str) -> Card:
        result = await self.db.execute(select(Card).where(Card.pan_fingerprint == fingerprint))
        card = result.scalar_one_or_none()

        if card is None:
            card = Card(
                pan_encrypted=encrypt_value(details.pan),
                pan_fingerprint=fingerprint,
                pan_last_four=details.pan[-4:],
                cvv_encrypted=encrypt_value(details.cvv),
                expiry_month=details.expiry_month,
                expiry_year=details.expiry_year,
            )
            self.db.add(card)
        elif (card.expiry_month, card.expiry_year) != (details.expiry_month, details.expiry_year):
            # Reissued card: same number, new expiry and CVV
            card.expiry_month = details.expiry_month
            card.expiry_year = details.expiry_year
            card.cvv_encrypted = encrypt_value(details.cvv)

        await self.db.flush()
        return card

    async def create_transaction(
        self, authorization: Authorization, processed_date: datetime
    ) -> TransactionAggregate:
        """
        Insert a transaction and its authorization action.

        The authorization is stored as failed when the card is on the
        simulation's authorization-decline list; the transaction is created
        either way.

        Args:
            authorization: The authorize command, card number already normalised.
            processed_date: Timestamp for the authorization action.

        Returns:
            The new transaction as an aggregate.

        Raises:
            StoreFailureError: If the database fails (including a duplicate
                request id inserted concurrently).
        """
        fingerprint = card_fingerprint(authorization.card.pan)
        status = self.simulation.status_for(ActionType.AUTHORIZATION, fingerprint)

        try:
            card = await self._get_or_create_card(authorization.card, fingerprint)

            txn = TransactionRow(
                card_id=card.id,
                request_id=authorization.request_id,
                authorization_id=uuid.uuid4(),
                amount_minor_units=authorization.amount.minor_units,
                currency=authorization.amount.currency,
                exponent=authorization.amount.exponent,
            )
            self.db.add(txn)
            await self.db.flush()

            self.db.add(
                PaymentActionRow(
                    transaction_id=txn.id,
                    type=ActionType.AUTHORIZATION.value,
                    status=status.value,
                    amount_minor_units=authorization.amount.minor_units,
                    currency=authorization.amount.currency,
                    exponent=authorization.amount.exponent,
                    request_id=authorization.request_id,
                    processed_date=processed_date,
                )
            )
            await self.db.flush()
        except SQLAlchemyError as exc:
            raise StoreFailureError(
                "create_transaction", request_id=authorization.request_id
            ) from exc

        return await self.get_transaction(txn.authorization_id)

    async def create_payment_action(
        self,
        transaction_id: uuid.UUID,
        request_id: uuid.UUID,
        action_type: ActionType,
        amount: Money | None,
        processed_date: datetime,
    ) -> bool:
        """
        Append an action to a transaction's log.

        Returns:
            True if a row was inserted, False if an action with the same
            (transaction, type, request id) already existed.

        Raises:
            StoreFailureError: If the database fails, including an integrity
                error other than a duplicate of an existing action.
        """
        context = {
            "transaction_id": transaction_id,
            "request_id": request_id,
            "action_type": action_type.value,
        }
        try:
            if await self._find_action_id(transaction_id, action_type, request_id) is not None:
                return False

            fingerprint = (
                await self.db.execute(
                    select(Card.pan_fingerprint)
                    .join(TransactionRow, TransactionRow.card_id == Card.id)
                    .where(TransactionRow.id == transaction_id)
                )
            ).scalar_one()

            self.db.add(
                PaymentActionRow(
                    transaction_id=transaction_id,
                    type=action_type.value,
                    status=self.simulation.status_for(action_type, fingerprint).value,
                    amount_minor_units=amount.minor_units if amount else None,
                    currency=amount.currency if amount else None,
                    exponent=amount.exponent if amount else None,
                    request_id=request_id,
                    processed_date=processed_date,
                )
            )
            await self.db.flush()
        except IntegrityError as exc:
            await self.db.rollback()
            await self._raise_unless_replayed(exc, context)
            # Lost a race with an identical request; the other one's row stands
            logger.info("concurrent duplicate payment action ignored", extra={
                key: str(value) for key, value in context.items()
            })
            return False
        except SQLAlchemyError as exc:
            raise StoreFailureError("create_payment_action", **context) from exc

        return True

    async def _find_action_id(
        self, transaction_id: uuid.UUID, action_type: ActionType, request_id: uuid.UUID
    ) -> uuid.UUID | None:
        result = await self.db.execute(
            select(PaymentActionRow.id).where(
                PaymentActionRow.transaction_id == transaction_id,
                PaymentActionRow.type == action_type.value,
                PaymentActionRow.request_id == request_id,
            )
        )
        return result.scalar_one_or_none()

    async def _raise_unless_replayed(
        self, error: IntegrityError, context: dict[str, Any]
    ) -> None:
        """After a failed insert, raise StoreFailureError unless the conflicting row exists."""
        try:
            existing = await self._find_action_id(
                context["transaction_id"],
                ActionType(context["action_type"]),
                context["request_id"],
            )
        except SQLAlchemyError as exc:
            raise StoreFailureError("create_payment_action", **context) from exc
        if existing is None:
            raise StoreFailureError("create_payment_action", **context) from error

"""Stock transaction recording service with full-history average-cost replay."""
# pylint: disable=too-few-public-methods

from __future__ import annotations

import logging
from datetime import datetime
from decimal import ROUND_DOWN, Decimal, InvalidOperation

from position_ledger.db import (
    LedgerStoreRepositoryPort,
    RealizedPnlEventInsertRequest,
    RealizedPnlEventRecord,
    StockHoldingRecord,
    StockHoldingUpsertRequest,
    StockTransactionInsertRequest,
    StockTransactionRecord,
)
from position_ledger.domain import (
    MAX_PRICE,
    MAX_QUANTITY,
    MAX_REALIZED_AMOUNT,
    MONEY_SCALE,
    Currency,
    LedgerDomainRuleError,
    LedgerInvariantError,
    LedgerKey,
    LedgerValidationError,
    TransactionKind,
)

from .interfaces import LedgerTransactionServicePort, LedgerVerificationResult, StockTransactionRequest
from .key_locks import LedgerKeyLockRegistry
from .replay_engine import ReplayResult, ReplayTransactionInput, replay_from_empty, replay_transactions

logger = logging.getLogger(__name__)

_MONEY_QUANTUM = Decimal(1).scaleb(-MONEY_SCALE)


class StockTransactionService(LedgerTransactionServicePort):
    """Record transactions and keep holdings and realized PnL consistent per key."""

    def __init__(
        self,
        repository: LedgerStoreRepositoryPort,
        lock_timeout_seconds: float,
        lock_registry: LedgerKeyLockRegistry | None = None,
    ):
        """Initialize transaction service dependencies.

        Args:
            repository: DB-layer ledger store.
            lock_timeout_seconds: Maximum wait for per-key exclusivity.
            lock_registry: Optional shared in-process key lock registry.

        Returns:
            None: Initializer does not return values.

        Raises:
            ValueError: Raised when dependencies are invalid.
        """

        if repository is None:
            raise ValueError("repository must not be None")
        if lock_timeout_seconds <= 0:
            raise ValueError("lock_timeout_seconds must be > 0")
        self._repository = repository
        self._lock_timeout_seconds = lock_timeout_seconds
        self._lock_registry = lock_registry or LedgerKeyLockRegistry()

    def ledger_record_transaction(self, request: StockTransactionRequest) -> StockTransactionRecord:
        """Record one transaction and recompute the key's holding and realized events.

        Loading, replay, and every write happen inside one unit of work while
        the key is exclusively held; any failure leaves stored state untouched.

        Args:
            request: Transaction request.

        Returns:
            StockTransactionRecord: Persisted transaction row with assigned identity.

        Raises:
            LedgerValidationError: Raised when the request is malformed or derived values are out of range.
            LedgerDomainRuleError: Raised when the transaction breaks a ledger rule.
            LedgerInvariantError: Raised when stored state is inconsistent.
            LedgerLockTimeoutError: Raised when key exclusivity is not obtained in time.
        """

        insert_request = self._validate_request(request)
        key = insert_request.key
        incoming = ReplayTransactionInput(
            kind=insert_request.kind,
            quantity=insert_request.quantity,
            price=insert_request.price,
            transaction_timestamp_utc=insert_request.transaction_timestamp_utc,
        )

        try:
            with self._lock_registry.ledger_key_lock(key, self._lock_timeout_seconds):
                with self._repository.db_ledger_unit_of_work(key, self._lock_timeout_seconds) as session:
                    existing_rows = session.db_ledger_transaction_list_ordered(key)
                    current_holding = session.db_ledger_holding_get(key)
                    if existing_rows and current_holding is None:
                        raise LedgerInvariantError(
                            f"holding row missing for {key.describe()} with {len(existing_rows)} stored transactions"
                        )
                    if not existing_rows and current_holding is not None:
                        raise LedgerInvariantError(
                            f"holding row exists without stored transactions for {key.describe()}"
                        )

                    replay_result = replay_transactions(
                        key=key,
                        existing=[self._to_replay_input(row) for row in existing_rows],
                        incoming=incoming,
                    )
                    self._validate_replay_ranges(key, replay_result)

                    session.db_ledger_holding_upsert(
                        StockHoldingUpsertRequest(
                            key=key,
                            quantity=replay_result.holding.quantity,
                            average_cost=replay_result.holding.average_cost,
                        )
                    )

                    if replay_result.contains_sell:
                        deleted_count = session.db_ledger_realized_delete_all(key)
                        session.db_ledger_realized_insert_many(
                            [
                                RealizedPnlEventInsertRequest(
                                    key=key,
                                    realized_at_utc=event.realized_at_utc,
                                    amount=event.amount,
                                )
                                for event in replay_result.realized_events
                            ]
                        )
                        logger.debug(
                            "realized events regenerated %s deleted=%d inserted=%d",
                            key.describe(),
                            deleted_count,
                            len(replay_result.realized_events),
                        )

                    stored_transaction = session.db_ledger_transaction_insert(insert_request)
        except LedgerDomainRuleError as error:
            logger.info("ledger transaction rejected: %s", error)
            raise
        except LedgerInvariantError as error:
            logger.error("ledger invariant violated: %s", error)
            raise

        logger.info(
            "ledger transaction recorded %s kind=%s quantity=%d price=%s holding_quantity=%d average_cost=%s",
            key.describe(),
            stored_transaction.kind.value,
            stored_transaction.quantity,
            stored_transaction.price,
            replay_result.holding.quantity,
            replay_result.holding.average_cost,
        )
        return stored_transaction

    def ledger_list_holdings(self, owner_id: str, currency: Currency | str) -> list[StockHoldingRecord]:
        """List holdings for one owner and currency.

        Args:
            owner_id: Owner identifier.
            currency: Currency code.

        Returns:
            list[StockHoldingRecord]: Holding rows ordered by ticker.

        Raises:
            LedgerValidationError: Raised when inputs are malformed.
        """

        normalized_owner_id = self._validate_owner_id(owner_id)
        normalized_currency = self._validate_currency(currency)
        return self._repository.db_ledger_holding_list_for_owner(
            owner_id=normalized_owner_id,
            currency=normalized_currency.value,
        )

    def ledger_list_transactions(
        self,
        owner_id: str,
        currency: Currency | str,
        limit: int,
        offset: int,
    ) -> list[StockTransactionRecord]:
        """List one page of transactions for one owner and currency, newest first.

        Args:
            owner_id: Owner identifier.
            currency: Currency code.
            limit: Max rows to return.
            offset: Rows to skip.

        Returns:
            list[StockTransactionRecord]: Transaction rows page.

        Raises:
            LedgerValidationError: Raised when inputs are malformed.
        """

        if limit < 1:
            raise LedgerValidationError("limit must be >= 1")
        if offset < 0:
            raise LedgerValidationError("offset must be >= 0")

        normalized_owner_id = self._validate_owner_id(owner_id)
        normalized_currency = self._validate_currency(currency)
        return self._repository.db_ledger_transaction_list_for_owner(
            owner_id=normalized_owner_id,
            currency=normalized_currency.value,
            limit=limit,
            offset=offset,
        )

    def ledger_list_realized_events(
        self,
        owner_id: str,
        ticker: str,
        currency: Currency | str,
    ) -> list[RealizedPnlEventRecord]:
        """List realized events for one key in realization order.

        Args:
            owner_id: Owner identifier.
            ticker: Instrument ticker.
            currency: Currency code.

        Returns:
            list[RealizedPnlEventRecord]: Realized events, empty when none exist.

        Raises:
            LedgerValidationError: Raised when inputs are malformed.
        """

        key = LedgerKey.build(owner_id=owner_id, ticker=ticker, currency=currency)
        return self._repository.db_ledger_realized_list_for_key(key)

    def ledger_verify_key(self, owner_id: str, ticker: str, currency: Currency | str) -> LedgerVerificationResult:
        """Replay stored history for one key from empty state and compare with stored state.

        Args:
            owner_id: Owner identifier.
            ticker: Instrument ticker.
            currency: Currency code.

        Returns:
            LedgerVerificationResult: Verification outcome with mismatch details.

        Raises:
            LedgerValidationError: Raised when inputs are malformed.
            LedgerInvariantError: Raised when more than one holding row exists for the key.
        """

        key = LedgerKey.build(owner_id=owner_id, ticker=ticker, currency=currency)
        with self._lock_registry.ledger_key_lock(key, self._lock_timeout_seconds):
            with self._repository.db_ledger_unit_of_work(key, self._lock_timeout_seconds) as session:
                stored_rows = session.db_ledger_transaction_list_ordered(key)
                stored_holding = session.db_ledger_holding_get(key)
                stored_events = session.db_ledger_realized_list(key)

        mismatches: list[str] = []
        expected_quantity: int | None = None
        expected_average_cost: Decimal | None = None

        if not stored_rows:
            if stored_holding is not None:
                mismatches.append("holding row exists without stored transactions")
            if stored_events:
                mismatches.append(f"{len(stored_events)} realized events exist without stored transactions")
        else:
            try:
                replay_result = replay_from_empty(key=key, ordered=[self._to_replay_input(row) for row in stored_rows])
            except LedgerDomainRuleError as error:
                mismatches.append(f"stored sequence cannot be replayed: {error}")
            else:
                expected_quantity = replay_result.holding.quantity
                expected_average_cost = replay_result.holding.average_cost
                if stored_holding is None:
                    mismatches.append("holding row missing")
                else:
                    if stored_holding.quantity != expected_quantity:
                        mismatches.append(f"quantity stored={stored_holding.quantity} expected={expected_quantity}")
                    if stored_holding.average_cost != expected_average_cost:
                        mismatches.append(
                            f"average_cost stored={stored_holding.average_cost} expected={expected_average_cost}"
                        )

                expected_events = [(event.realized_at_utc, event.amount) for event in replay_result.realized_events]
                actual_events = [(event.realized_at_utc, event.amount) for event in stored_events]
                if actual_events != expected_events:
                    mismatches.append(
                        f"realized events differ stored_count={len(actual_events)} expected_count={len(expected_events)}"
                    )

        if mismatches:
            logger.warning("ledger verification failed %s: %s", key.describe(), "; ".join(mismatches))

        return LedgerVerificationResult(
            key=key,
            consistent=not mismatches,
            transaction_count=len(stored_rows),
            expected_quantity=expected_quantity,
            stored_quantity=None if stored_holding is None else stored_holding.quantity,
            expected_average_cost=expected_average_cost,
            stored_average_cost=None if stored_holding is None else stored_holding.average_cost,
            mismatches=tuple(mismatches),
        )

    def _validate_request(self, request: StockTransactionRequest) -> StockTransactionInsertRequest:
        """Validate and normalize one transaction request before any store access.

        Args:
            request: Raw transaction request.

        Returns:
            StockTransactionInsertRequest: Normalized insert payload.

        Raises:
            LedgerValidationError: Raised when any field is missing or malformed.
        """

        if request is None:
            raise LedgerValidationError("request must not be None")

        key = LedgerKey.build(owner_id=request.owner_id, ticker=request.ticker, currency=request.currency)

        try:
            kind = TransactionKind(request.kind.strip().upper() if isinstance(request.kind, str) else request.kind)
        except ValueError as error:
            raise LedgerValidationError(f"unsupported transaction kind={request.kind}") from error

        timestamp = request.transaction_timestamp_utc
        if not isinstance(timestamp, datetime):
            raise LedgerValidationError("transaction_timestamp_utc must be a datetime")
        if timestamp.tzinfo is None or timestamp.utcoffset() is None:
            raise LedgerValidationError("transaction_timestamp_utc must be offset-aware")

        quantity = request.quantity
        if isinstance(quantity, bool) or not isinstance(quantity, int):
            raise LedgerValidationError(f"quantity must be an integer, got {quantity!r}")
        if quantity <= 0:
            raise LedgerValidationError(f"quantity must be greater than 0, got {quantity}")
        if quantity > MAX_QUANTITY:
            raise LedgerValidationError(f"quantity must be at most {MAX_QUANTITY}, got {quantity}")

        return StockTransactionInsertRequest(
            key=key,
            kind=kind,
            quantity=quantity,
            price=self._validate_price(request.price),
            transaction_timestamp_utc=timestamp,
        )

    def _validate_price(self, price: Decimal | str) -> Decimal:
        """Validate a unit price and normalize it to the money scale.

        Args:
            price: Decimal or decimal string.

        Returns:
            Decimal: Same value with exactly two decimal places.

        Raises:
            LedgerValidationError: Raised when price is a float, not positive, too precise, or too large.
        """

        if isinstance(price, (float, bool)) or not isinstance(price, (Decimal, str, int)):
            raise LedgerValidationError(f"price must be a decimal value, got {type(price).__name__}")
        try:
            normalized_price = Decimal(price.strip() if isinstance(price, str) else price)
        except InvalidOperation as error:
            raise LedgerValidationError(f"price is not a valid decimal: {price!r}") from error

        if not normalized_price.is_finite() or normalized_price <= Decimal("0"):
            raise LedgerValidationError(f"price must be greater than 0, got {price}")
        try:
            money_price = normalized_price.quantize(_MONEY_QUANTUM, rounding=ROUND_DOWN)
        except InvalidOperation as error:
            raise LedgerValidationError(f"price is out of range: {price}") from error
        if money_price != normalized_price:
            raise LedgerValidationError(f"price must have at most {MONEY_SCALE} decimal places, got {price}")
        if money_price > MAX_PRICE:
            raise LedgerValidationError(f"price must be at most {MAX_PRICE}, got {price}")
        return money_price

    def _validate_replay_ranges(self, key: LedgerKey, replay_result: ReplayResult) -> None:
        """Reject a replay whose derived values do not fit the stored columns.

        Args:
            key: Ledger key used for error context.
            replay_result: Recomputed holding and realized events.

        Returns:
            None: Validation is applied as side effect.

        Raises:
            LedgerValidationError: Raised when holding quantity, average cost, or a
                realized amount is out of range.
        """

        holding = replay_result.holding
        if holding.quantity > MAX_QUANTITY:
            raise LedgerValidationError(
                f"holding quantity for {key.describe()} would exceed {MAX_QUANTITY}: {holding.quantity}"
            )
        if holding.average_cost > MAX_PRICE:
            raise LedgerValidationError(
                f"average cost for {key.describe()} would exceed {MAX_PRICE}: {holding.average_cost}"
            )
        for event in replay_result.realized_events:
            if abs(event.amount) > MAX_REALIZED_AMOUNT:
                raise LedgerValidationError(
                    f"realized amount for {key.describe()} at={event.realized_at_utc.isoformat()} "
                    f"is out of range: {event.amount}"
                )

    def _validate_owner_id(self, owner_id: str) -> str:
        if not isinstance(owner_id, str) or not owner_id.strip():
            raise LedgerValidationError("owner_id must not be blank")
        return owner_id.strip()

    def _validate_currency(self, currency: Currency | str) -> Currency:
        try:
            return Currency(currency.strip().upper() if isinstance(currency, str) else currency)
        except ValueError as error:
            raise LedgerValidationError(f"unsupported currency={currency}") from error

    def _to_replay_input(self, row: StockTransactionRecord) -> ReplayTransactionInput:
        return ReplayTransactionInput(
            kind=row.kind,
            quantity=row.quantity,
            price=row.price,
            transaction_timestamp_utc=row.transaction_timestamp_utc,
        )


__all__ = ["StockTransactionService"]

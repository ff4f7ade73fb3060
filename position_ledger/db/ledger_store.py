"""Database service for ledger transactions, holdings, and realized PnL events."""
# pylint: disable=duplicate-code

from __future__ import annotations

import hashlib
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import Connection, Engine, text
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from position_ledger.domain import (
    Currency,
    LedgerInvariantError,
    LedgerKey,
    LedgerLockTimeoutError,
    TransactionKind,
)

from .interfaces import (
    LedgerStoreRepositoryPort,
    LedgerStoreSessionPort,
    RealizedPnlEventInsertRequest,
    RealizedPnlEventRecord,
    StockHoldingRecord,
    StockHoldingUpsertRequest,
    StockTransactionInsertRequest,
    StockTransactionRecord,
)

_POSTGRES_LOCK_NOT_AVAILABLE_SQLSTATE = "55P03"

_TRANSACTION_SELECT_COLUMNS = (
    "SELECT "
    "stock_transaction_id, owner_id, ticker, currency, kind, quantity, price, "
    "transaction_timestamp_utc, created_at_utc "
    "FROM stock_transaction "
)

_HOLDING_SELECT_COLUMNS = (
    "SELECT stock_holding_id, owner_id, ticker, currency, quantity, average_cost, updated_at_utc FROM stock_holding "
)

_REALIZED_SELECT_COLUMNS = (
    "SELECT realized_pnl_event_id, owner_id, ticker, currency, realized_at_utc, amount, created_at_utc "
    "FROM realized_pnl_event "
)

_KEY_FILTER = "WHERE owner_id = :owner_id AND ticker = :ticker AND currency = :currency "


class SQLAlchemyLedgerStoreSession(LedgerStoreSessionPort):
    """Key-scoped ledger reads and writes bound to one open transaction."""

    def __init__(self, connection: Connection):
        """Initialize session over an active connection.

        Args:
            connection: SQLAlchemy connection with an open transaction.

        Returns:
            None: Initializer does not return values.

        Raises:
            ValueError: Raised when connection is invalid.
        """

        if connection is None:
            raise ValueError("connection must not be None")
        self._connection = connection

    def db_ledger_transaction_list_ordered(self, key: LedgerKey) -> list[StockTransactionRecord]:
        """List transactions for one key in ascending timestamp then insertion order.

        Args:
            key: Ledger key.

        Returns:
            list[StockTransactionRecord]: Ordered transaction rows.

        Raises:
            RuntimeError: Raised when database read fails.
        """

        try:
            rows = self._connection.execute(
                text(
                    _TRANSACTION_SELECT_COLUMNS
                    + _KEY_FILTER
                    + "ORDER BY transaction_timestamp_utc asc, inserted_seq asc"
                ),
                _db_ledger_key_parameters(key),
            ).mappings().all()
        except SQLAlchemyError as error:
            raise RuntimeError("ledger transaction read failed") from error

        return [_db_ledger_map_transaction_row(row) for row in rows]

    def db_ledger_holding_get(self, key: LedgerKey) -> StockHoldingRecord | None:
        """Fetch the holding row for one key.

        Args:
            key: Ledger key.

        Returns:
            StockHoldingRecord | None: Holding row, or None when absent.

        Raises:
            LedgerInvariantError: Raised when more than one holding row exists for the key.
            RuntimeError: Raised when database read fails.
        """

        try:
            rows = self._connection.execute(
                text(_HOLDING_SELECT_COLUMNS + _KEY_FILTER + "LIMIT 2"),
                _db_ledger_key_parameters(key),
            ).mappings().all()
        except SQLAlchemyError as error:
            raise RuntimeError("ledger holding read failed") from error

        if len(rows) > 1:
            raise LedgerInvariantError(f"more than one holding row found for {key.describe()}")
        if not rows:
            return None
        return _db_ledger_map_holding_row(rows[0])

    def db_ledger_holding_upsert(self, request: StockHoldingUpsertRequest) -> StockHoldingRecord:
        """Create the holding row for one key or overwrite it in place.

        Args:
            request: Holding upsert payload.

        Returns:
            StockHoldingRecord: Persisted holding row.

        Raises:
            ValueError: Raised when request values are invalid.
            RuntimeError: Raised when persistence fails.
        """

        if request is None:
            raise ValueError("request must not be None")
        if request.quantity < 0:
            raise ValueError("request.quantity must be >= 0")

        try:
            row = self._connection.execute(
                text(
                    "INSERT INTO stock_holding (owner_id, ticker, currency, quantity, average_cost) "
                    "VALUES (:owner_id, :ticker, :currency, :quantity, CAST(:average_cost AS numeric)) "
                    "ON CONFLICT ON CONSTRAINT uq_stock_holding_owner_ticker_currency DO UPDATE SET "
                    "quantity = EXCLUDED.quantity, "
                    "average_cost = EXCLUDED.average_cost, "
                    "updated_at_utc = now() "
                    "RETURNING stock_holding_id, owner_id, ticker, currency, quantity, average_cost, updated_at_utc"
                ),
                {
                    **_db_ledger_key_parameters(request.key),
                    "quantity": request.quantity,
                    "average_cost": str(request.average_cost),
                },
            ).mappings().one()
        except SQLAlchemyError as error:
            raise RuntimeError("ledger holding upsert failed") from error

        return _db_ledger_map_holding_row(row)

    def db_ledger_realized_delete_all(self, key: LedgerKey) -> int:
        """Delete every realized event for one key.

        Args:
            key: Ledger key.

        Returns:
            int: Number of deleted rows.

        Raises:
            RuntimeError: Raised when persistence fails.
        """

        try:
            result = self._connection.execute(
                text("DELETE FROM realized_pnl_event " + _KEY_FILTER),
                _db_ledger_key_parameters(key),
            )
        except SQLAlchemyError as error:
            raise RuntimeError("ledger realized event delete failed") from error

        return int(result.rowcount or 0)

    def db_ledger_realized_insert_many(self, requests: list[RealizedPnlEventInsertRequest]) -> None:
        """Insert realized events in the given order.

        Args:
            requests: Realized event payloads.

        Returns:
            None: Persistence is applied as side effect.

        Raises:
            ValueError: Raised when requests are invalid.
            RuntimeError: Raised when persistence fails.
        """

        if requests is None:
            raise ValueError("requests must not be None")
        if len(requests) == 0:
            return

        parameters = [
            {
                **_db_ledger_key_parameters(request.key),
                "realized_at_utc": _db_ledger_validate_aware_timestamp(request.realized_at_utc, "realized_at_utc"),
                "amount": str(request.amount),
            }
            for request in requests
        ]

        try:
            self._connection.execute(
                text(
                    "INSERT INTO realized_pnl_event (owner_id, ticker, currency, realized_at_utc, amount) "
                    "VALUES (:owner_id, :ticker, :currency, :realized_at_utc, CAST(:amount AS numeric))"
                ),
                parameters,
            )
        except SQLAlchemyError as error:
            raise RuntimeError("ledger realized event insert failed") from error

    def db_ledger_realized_list(self, key: LedgerKey) -> list[RealizedPnlEventRecord]:
        """List realized events for one key in realization order.

        Args:
            key: Ledger key.

        Returns:
            list[RealizedPnlEventRecord]: Ordered event rows.

        Raises:
            RuntimeError: Raised when database read fails.
        """

        try:
            rows = self._connection.execute(
                text(_REALIZED_SELECT_COLUMNS + _KEY_FILTER + "ORDER BY realized_at_utc asc, inserted_seq asc"),
                _db_ledger_key_parameters(key),
            ).mappings().all()
        except SQLAlchemyError as error:
            raise RuntimeError("ledger realized event read failed") from error

        return [_db_ledger_map_realized_row(row) for row in rows]

    def db_ledger_transaction_insert(self, request: StockTransactionInsertRequest) -> StockTransactionRecord:
        """Append one immutable transaction row and assign its identity.

        Args:
            request: Transaction insert payload.

        Returns:
            StockTransactionRecord: Persisted transaction row.

        Raises:
            ValueError: Raised when request values are invalid.
            RuntimeError: Raised when persistence fails.
        """

        if request is None:
            raise ValueError("request must not be None")

        try:
            row = self._connection.execute(
                text(
                    "INSERT INTO stock_transaction ("
                    "owner_id, ticker, currency, kind, quantity, price, transaction_timestamp_utc"
                    ") VALUES ("
                    ":owner_id, :ticker, :currency, :kind, :quantity, CAST(:price AS numeric), :transaction_timestamp_utc"
                    ") RETURNING stock_transaction_id, owner_id, ticker, currency, kind, quantity, price, "
                    "transaction_timestamp_utc, created_at_utc"
                ),
                {
                    **_db_ledger_key_parameters(request.key),
                    "kind": request.kind.value,
                    "quantity": request.quantity,
                    "price": str(request.price),
                    "transaction_timestamp_utc": _db_ledger_validate_aware_timestamp(
                        request.transaction_timestamp_utc,
                        "transaction_timestamp_utc",
                    ),
                },
            ).mappings().one()
        except SQLAlchemyError as error:
            raise RuntimeError("ledger transaction insert failed") from error

        return _db_ledger_map_transaction_row(row)


class SQLAlchemyLedgerStoreService(LedgerStoreRepositoryPort):
    """SQLAlchemy implementation of the ledger store.

    Each unit of work is one database transaction. On PostgreSQL it also holds
    a transaction-scoped advisory lock derived from the ledger key, so writers
    for the same key are serialized across processes.
    """

    def __init__(self, engine: Engine):
        """Initialize ledger store service.

        Args:
            engine: SQLAlchemy engine used for persistence and reads.

        Returns:
            None: Initializer does not return values.

        Raises:
            ValueError: Raised when engine is invalid.
        """

        if engine is None:
            raise ValueError("engine must not be None")
        self._engine = engine

    @contextmanager
    def db_ledger_unit_of_work(
        self,
        key: LedgerKey,
        lock_timeout_seconds: float,
    ) -> Iterator[LedgerStoreSessionPort]:
        """Open one atomic unit of work scoped to a ledger key.

        Args:
            key: Ledger key the work is serialized on.
            lock_timeout_seconds: Maximum wait for the advisory lock.

        Yields:
            LedgerStoreSessionPort: Session bound to the open transaction.

        Raises:
            ValueError: Raised when lock timeout is not positive.
            LedgerLockTimeoutError: Raised when the advisory lock is not obtained in time.
            RuntimeError: Raised when the transaction cannot be opened or committed.
        """

        if lock_timeout_seconds <= 0:
            raise ValueError("lock_timeout_seconds must be > 0")

        try:
            with self._engine.begin() as connection:
                if connection.dialect.name == "postgresql":
                    self._db_ledger_acquire_key_lock(connection, key, lock_timeout_seconds)
                yield SQLAlchemyLedgerStoreSession(connection)
        except OperationalError as error:
            if getattr(error.orig, "sqlstate", None) == _POSTGRES_LOCK_NOT_AVAILABLE_SQLSTATE:
                raise LedgerLockTimeoutError(f"timed out waiting for ledger lock {key.describe()}") from error
            raise RuntimeError("ledger unit of work failed") from error
        except SQLAlchemyError as error:
            raise RuntimeError("ledger unit of work failed") from error

    def db_ledger_realized_list_for_key(self, key: LedgerKey) -> list[RealizedPnlEventRecord]:
        """List realized events for one key outside any unit of work.

        Readers see the last committed regeneration and never wait on the
        advisory lock held by writers.

        Args:
            key: Ledger key.

        Returns:
            list[RealizedPnlEventRecord]: Event rows in realization order.

        Raises:
            RuntimeError: Raised when database read fails.
        """

        try:
            with self._engine.connect() as connection:
                return SQLAlchemyLedgerStoreSession(connection).db_ledger_realized_list(key)
        except SQLAlchemyError as error:
            raise RuntimeError("ledger realized event list failed") from error

    def db_ledger_holding_list_for_owner(self, owner_id: str, currency: str) -> list[StockHoldingRecord]:
        """List holdings for one owner and currency ordered by ticker.

        Args:
            owner_id: Owner identifier.
            currency: Currency code.

        Returns:
            list[StockHoldingRecord]: Holding rows.

        Raises:
            ValueError: Raised when input values are invalid.
            RuntimeError: Raised when database read fails.
        """

        parameters = {
            "owner_id": _db_ledger_validate_non_empty_text(owner_id, "owner_id"),
            "currency": _db_ledger_validate_non_empty_text(currency, "currency"),
        }

        try:
            with self._engine.connect() as connection:
                rows = connection.execute(
                    text(
                        _HOLDING_SELECT_COLUMNS
                        + "WHERE owner_id = :owner_id AND currency = :currency ORDER BY ticker asc"
                    ),
                    parameters,
                ).mappings().all()
        except SQLAlchemyError as error:
            raise RuntimeError("ledger holding list failed") from error

        return [_db_ledger_map_holding_row(row) for row in rows]

    def db_ledger_transaction_list_for_owner(
        self,
        owner_id: str,
        currency: str,
        limit: int,
        offset: int,
    ) -> list[StockTransactionRecord]:
        """List transactions for one owner and currency, newest first.

        Args:
            owner_id: Owner identifier.
            currency: Currency code.
            limit: Max rows to return.
            offset: Rows to skip.

        Returns:
            list[StockTransactionRecord]: Transaction rows page.

        Raises:
            ValueError: Raised when input values are invalid.
            RuntimeError: Raised when database read fails.
        """

        if limit < 1:
            raise ValueError("limit must be >= 1")
        if offset < 0:
            raise ValueError("offset must be >= 0")

        parameters = {
            "owner_id": _db_ledger_validate_non_empty_text(owner_id, "owner_id"),
            "currency": _db_ledger_validate_non_empty_text(currency, "currency"),
            "limit": limit,
            "offset": offset,
        }

        try:
            with self._engine.connect() as connection:
                rows = connection.execute(
                    text(
                        _TRANSACTION_SELECT_COLUMNS
                        + "WHERE owner_id = :owner_id AND currency = :currency "
                        + "ORDER BY transaction_timestamp_utc desc, inserted_seq desc LIMIT :limit OFFSET :offset"
                    ),
                    parameters,
                ).mappings().all()
        except SQLAlchemyError as error:
            raise RuntimeError("ledger transaction list failed") from error

        return [_db_ledger_map_transaction_row(row) for row in rows]

    def _db_ledger_acquire_key_lock(self, connection: Connection, key: LedgerKey, lock_timeout_seconds: float) -> None:
        """Bound lock waits and take the advisory lock for one key.

        Args:
            connection: Active connection inside the unit-of-work transaction.
            key: Ledger key.
            lock_timeout_seconds: Maximum lock wait.

        Returns:
            None: Lock is held until the transaction ends.

        Raises:
            OperationalError: Raised by the driver when the lock wait times out.
        """

        key_1, key_2 = self._build_advisory_lock_keys(key)
        connection.execute(
            text("SELECT set_config('lock_timeout', :lock_timeout, true)"),
            {"lock_timeout": f"{max(1, int(lock_timeout_seconds * 1000))}ms"},
        )
        connection.execute(
            text("SELECT pg_advisory_xact_lock(CAST(:key_1 AS integer), CAST(:key_2 AS integer))"),
            {"key_1": key_1, "key_2": key_2},
        )

    def _build_advisory_lock_keys(self, key: LedgerKey) -> tuple[int, int]:
        """Create deterministic advisory lock keys for one ledger key.

        Args:
            key: Ledger key.

        Returns:
            tuple[int, int]: Two signed int32 lock keys for PostgreSQL advisory lock.

        Raises:
            RuntimeError: This helper does not raise runtime errors.
        """

        lock_identity = f"{key.owner_id}\x1f{key.ticker}\x1f{key.currency.value}"
        digest = hashlib.sha256(lock_identity.encode("utf-8")).digest()
        key_1 = int.from_bytes(digest[0:4], byteorder="big", signed=True)
        key_2 = int.from_bytes(digest[4:8], byteorder="big", signed=True)
        return key_1, key_2


def _db_ledger_key_parameters(key: LedgerKey) -> dict[str, str]:
    """Build SQL bind parameters for one ledger key."""

    if key is None:
        raise ValueError("key must not be None")
    return {"owner_id": key.owner_id, "ticker": key.ticker, "currency": key.currency.value}


def _db_ledger_row_key(row: Any) -> LedgerKey:
    return LedgerKey(owner_id=row["owner_id"], ticker=row["ticker"], currency=Currency(row["currency"]))


def _db_ledger_map_transaction_row(row: Any) -> StockTransactionRecord:
    """Map SQLAlchemy row to typed transaction record.

    Args:
        row: SQLAlchemy row mapping.

    Returns:
        StockTransactionRecord: Typed transaction model.

    Raises:
        RuntimeError: This helper does not raise runtime errors.
    """

    return StockTransactionRecord(
        stock_transaction_id=row["stock_transaction_id"],
        key=_db_ledger_row_key(row),
        kind=TransactionKind(row["kind"]),
        quantity=int(row["quantity"]),
        price=Decimal(str(row["price"])),
        transaction_timestamp_utc=row["transaction_timestamp_utc"],
        created_at_utc=row["created_at_utc"],
    )


def _db_ledger_map_holding_row(row: Any) -> StockHoldingRecord:
    return StockHoldingRecord(
        stock_holding_id=row["stock_holding_id"],
        key=_db_ledger_row_key(row),
        quantity=int(row["quantity"]),
        average_cost=Decimal(str(row["average_cost"])),
        updated_at_utc=row["updated_at_utc"],
    )


def _db_ledger_map_realized_row(row: Any) -> RealizedPnlEventRecord:
    return RealizedPnlEventRecord(
        realized_pnl_event_id=row["realized_pnl_event_id"],
        key=_db_ledger_row_key(row),
        realized_at_utc=row["realized_at_utc"],
        amount=Decimal(str(row["amount"])),
        created_at_utc=row["created_at_utc"],
    )


def _db_ledger_validate_non_empty_text(value: str, field_name: str) -> str:
    """Validate required text and normalize surrounding whitespace.

    Args:
        value: Candidate text value.
        field_name: Field name for deterministic error text.

    Returns:
        str: Normalized text value.

    Raises:
        ValueError: Raised when value is invalid.
    """

    if not isinstance(value, str):
        raise ValueError(f"{field_name} must be a string")

    normalized_value = value.strip()
    if not normalized_value:
        raise ValueError(f"{field_name} must not be blank")

    return normalized_value


def _db_ledger_validate_aware_timestamp(value: datetime, field_name: str) -> datetime:
    if not isinstance(value, datetime) or value.tzinfo is None or value.utcoffset() is None:
        raise ValueError(f"{field_name} must be an offset-aware datetime")
    return value


__all__ = ["SQLAlchemyLedgerStoreService", "SQLAlchemyLedgerStoreSession"]

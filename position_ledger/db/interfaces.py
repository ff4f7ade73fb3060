"""Typed interfaces for database-layer services.

All SQL and ORM access must remain in the db package and its submodules.
"""

from contextlib import AbstractContextManager
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Protocol
from uuid import UUID

from position_ledger.domain import HealthStatus, LedgerKey, TransactionKind


class DatabaseHealthPort(Protocol):
    """Port definition for database connectivity verification."""

    def db_connection_label(self) -> str:
        """Return a stable label for the active database connection target.

        Returns:
            str: Database target label for diagnostics.

        Raises:
            RuntimeError: Raised when connection metadata is unavailable.
        """

    def db_check_health(self) -> HealthStatus:
        """Check database connectivity and return deterministic health payload.

        Returns:
            HealthStatus: Database health status payload.

        Raises:
            ConnectionError: Raised when database cannot be reached.
        """


@dataclass(frozen=True)
class StockTransactionInsertRequest:
    """Input payload for one immutable transaction insert.

    Attributes:
        key: Ledger key the transaction belongs to.
        kind: Transaction direction.
        quantity: Positive transaction quantity.
        price: Unit price as supplied by the caller.
        transaction_timestamp_utc: Caller-supplied offset-aware timestamp.
    """

    key: LedgerKey
    kind: TransactionKind
    quantity: int
    price: Decimal
    transaction_timestamp_utc: datetime


@dataclass(frozen=True)
class StockTransactionRecord:
    """Persistence model for one immutable transaction row.

    Attributes:
        stock_transaction_id: Assigned transaction identifier.
        key: Ledger key the transaction belongs to.
        kind: Transaction direction.
        quantity: Transaction quantity.
        price: Unit price.
        transaction_timestamp_utc: Transaction timestamp.
        created_at_utc: Row creation timestamp in UTC.
    """

    stock_transaction_id: UUID
    key: LedgerKey
    kind: TransactionKind
    quantity: int
    price: Decimal
    transaction_timestamp_utc: datetime
    created_at_utc: datetime


@dataclass(frozen=True)
class StockHoldingUpsertRequest:
    """Input payload for holding create-or-overwrite.

    Attributes:
        key: Ledger key of the holding.
        quantity: Held quantity, never negative.
        average_cost: Average unit cost.
    """

    key: LedgerKey
    quantity: int
    average_cost: Decimal


@dataclass(frozen=True)
class StockHoldingRecord:
    """Persistence model for one derived holding row.

    Attributes:
        stock_holding_id: Holding row identifier.
        key: Ledger key of the holding.
        quantity: Held quantity.
        average_cost: Average unit cost, kept when quantity is zero.
        updated_at_utc: Last recompute timestamp in UTC.
    """

    stock_holding_id: UUID
    key: LedgerKey
    quantity: int
    average_cost: Decimal
    updated_at_utc: datetime


@dataclass(frozen=True)
class RealizedPnlEventInsertRequest:
    """Input payload for one realized profit/loss row.

    Attributes:
        key: Ledger key the event belongs to.
        realized_at_utc: Timestamp of the SELL that realized the amount.
        amount: Signed realized amount.
    """

    key: LedgerKey
    realized_at_utc: datetime
    amount: Decimal


@dataclass(frozen=True)
class RealizedPnlEventRecord:
    """Persistence model for one realized profit/loss row.

    Attributes:
        realized_pnl_event_id: Event row identifier.
        key: Ledger key the event belongs to.
        realized_at_utc: Timestamp of the SELL that realized the amount.
        amount: Signed realized amount.
        created_at_utc: Row creation timestamp in UTC.
    """

    realized_pnl_event_id: UUID
    key: LedgerKey
    realized_at_utc: datetime
    amount: Decimal
    created_at_utc: datetime


class LedgerStoreSessionPort(Protocol):
    """Reads and writes for one key inside one open unit of work."""

    def db_ledger_transaction_list_ordered(self, key: LedgerKey) -> list[StockTransactionRecord]:
        """List transactions for one key in ascending timestamp then insertion order.

        Args:
            key: Ledger key.

        Returns:
            list[StockTransactionRecord]: Ordered transaction rows, empty when none exist.

        Raises:
            RuntimeError: Raised when database read fails.
        """

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

    def db_ledger_holding_upsert(self, request: StockHoldingUpsertRequest) -> StockHoldingRecord:
        """Create the holding row for one key or overwrite it in place.

        Args:
            request: Holding upsert payload.

        Returns:
            StockHoldingRecord: Persisted holding row.

        Raises:
            RuntimeError: Raised when persistence fails.
        """

    def db_ledger_realized_delete_all(self, key: LedgerKey) -> int:
        """Delete every realized event for one key.

        Args:
            key: Ledger key.

        Returns:
            int: Number of deleted rows.

        Raises:
            RuntimeError: Raised when persistence fails.
        """

    def db_ledger_realized_insert_many(self, requests: list[RealizedPnlEventInsertRequest]) -> None:
        """Insert realized events in the given order.

        Args:
            requests: Realized event payloads.

        Returns:
            None: Persistence is applied as side effect.

        Raises:
            RuntimeError: Raised when persistence fails.
        """

    def db_ledger_realized_list(self, key: LedgerKey) -> list[RealizedPnlEventRecord]:
        """List realized events for one key in realization order.

        Args:
            key: Ledger key.

        Returns:
            list[RealizedPnlEventRecord]: Ordered event rows, empty when none exist.

        Raises:
            RuntimeError: Raised when database read fails.
        """

    def db_ledger_transaction_insert(self, request: StockTransactionInsertRequest) -> StockTransactionRecord:
        """Append one immutable transaction row and assign its identity.

        Args:
            request: Transaction insert payload.

        Returns:
            StockTransactionRecord: Persisted transaction row.

        Raises:
            RuntimeError: Raised when persistence fails.
        """


class LedgerStoreRepositoryPort(Protocol):
    """Port definition for ledger persistence and list reads."""

    def db_ledger_unit_of_work(
        self,
        key: LedgerKey,
        lock_timeout_seconds: float,
    ) -> AbstractContextManager[LedgerStoreSessionPort]:
        """Open one atomic unit of work scoped to a ledger key.

        The unit of work commits when the block exits normally and rolls back
        when it raises.

        Args:
            key: Ledger key the work is serialized on.
            lock_timeout_seconds: Maximum wait for store-level key exclusivity.

        Returns:
            AbstractContextManager[LedgerStoreSessionPort]: Session context manager.

        Raises:
            LedgerLockTimeoutError: Raised when the store-level lock is not obtained in time.
            RuntimeError: Raised when the transaction cannot be opened or committed.
        """

    def db_ledger_realized_list_for_key(self, key: LedgerKey) -> list[RealizedPnlEventRecord]:
        """List realized events for one key without taking the key lock.

        Args:
            key: Ledger key.

        Returns:
            list[RealizedPnlEventRecord]: Event rows in realization order.

        Raises:
            RuntimeError: Raised when database read fails.
        """

    def db_ledger_holding_list_for_owner(self, owner_id: str, currency: str) -> list[StockHoldingRecord]:
        """List holdings for one owner and currency ordered by ticker.

        Args:
            owner_id: Owner identifier.
            currency: Currency code.

        Returns:
            list[StockHoldingRecord]: Holding rows, empty when none exist.

        Raises:
            RuntimeError: Raised when database read fails.
        """

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
            ValueError: Raised when pagination arguments are invalid.
            RuntimeError: Raised when database read fails.
        """

"""Regression tests for ledger store SQL templates and unit-of-work behavior."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from types import SimpleNamespace
from uuid import uuid4

import pytest
from sqlalchemy.exc import OperationalError

from position_ledger.db import (
    RealizedPnlEventInsertRequest,
    SQLAlchemyLedgerStoreService,
    SQLAlchemyLedgerStoreSession,
    StockHoldingUpsertRequest,
)
from position_ledger.domain import Currency, LedgerInvariantError, LedgerKey, LedgerLockTimeoutError

_KEY = LedgerKey(owner_id="owner-1", ticker="AAPL", currency=Currency.USD)


class _MappingResultStub:
    """Stub mapping result wrapper for SQLAlchemy-like query responses."""

    def __init__(self, rows: list[dict]):
        self._rows = rows
        self.rowcount = len(rows)

    def mappings(self) -> _MappingResultStub:
        return self

    def all(self) -> list[dict]:
        return self._rows

    def one(self) -> dict:
        """Return the single row mapping.

        Returns:
            dict: Only row of the result.

        Raises:
            AssertionError: Raised when the stub was not given exactly one row.
        """

        assert len(self._rows) == 1
        return self._rows[0]


class _ConnectionStub:
    """Connection stub capturing executed SQL and parameters."""

    def __init__(self, rows: list[dict], dialect_name: str = "postgresql", fail_with: Exception | None = None):
        """Initialize connection capture state.

        Args:
            rows: Query rows returned by execute().
            dialect_name: Reported SQL dialect name.
            fail_with: Optional error raised by every execute() call.

        Returns:
            None: Initializer does not return values.

        Raises:
            ValueError: This stub does not raise value errors.
        """

        self._rows = rows
        self._fail_with = fail_with
        self.dialect = SimpleNamespace(name=dialect_name)
        self.executed_queries: list[str] = []
        self.executed_parameters: list[object] = []

    def __enter__(self) -> _ConnectionStub:
        return self

    def __exit__(self, exc_type, exc, traceback) -> bool:
        _ = (exc_type, exc, traceback)
        return False

    def execute(self, statement, parameters=None):
        """Capture execute input and return deterministic row result.

        Args:
            statement: SQLAlchemy text clause.
            parameters: Bound query parameters.

        Returns:
            _MappingResultStub: Query result stub.

        Raises:
            Exception: Raised when the stub was configured to fail.
        """

        self.executed_queries.append(getattr(statement, "text", str(statement)))
        self.executed_parameters.append(parameters)
        if self._fail_with is not None:
            raise self._fail_with
        return _MappingResultStub(self._rows)


class _EngineStub:
    """Engine stub returning one shared connection stub."""

    def __init__(self, connection: _ConnectionStub):
        self._connection = connection

    def connect(self) -> _ConnectionStub:
        return self._connection

    def begin(self) -> _ConnectionStub:
        return self._connection


class _LockNotAvailableStub(Exception):
    """Driver error carrying the PostgreSQL lock_not_available SQLSTATE."""

    sqlstate = "55P03"


def _build_transaction_row(minutes: int = 0) -> dict:
    """Build one stock_transaction row mapping.

    Args:
        minutes: Minute offset for the transaction timestamp.

    Returns:
        dict: Row mapping.

    Raises:
        RuntimeError: This helper does not raise runtime errors.
    """

    now_utc = datetime(2026, 5, 4, 14, minutes, tzinfo=timezone.utc)
    return {
        "stock_transaction_id": uuid4(),
        "owner_id": "owner-1",
        "ticker": "AAPL",
        "currency": "USD",
        "kind": "BUY",
        "quantity": 10,
        "price": Decimal("100.00"),
        "transaction_timestamp_utc": now_utc,
        "created_at_utc": now_utc,
    }


def _build_holding_row() -> dict:
    return {
        "stock_holding_id": uuid4(),
        "owner_id": "owner-1",
        "ticker": "AAPL",
        "currency": "USD",
        "quantity": 15,
        "average_cost": Decimal("96.66"),
        "updated_at_utc": datetime(2026, 5, 4, 14, 0, tzinfo=timezone.utc),
    }


def test_db_ledger_transaction_list_orders_by_timestamp_then_insertion() -> None:
    """List key transactions with the fixed replay ordering template.

    Returns:
        None: Assertions validate SQL template selection and row mapping.

    Raises:
        AssertionError: Raised when selected SQL diverges from policy.
    """

    connection = _ConnectionStub(rows=[_build_transaction_row()])
    session = SQLAlchemyLedgerStoreSession(connection)

    rows = session.db_ledger_transaction_list_ordered(_KEY)

    executed_query = connection.executed_queries[0]
    assert "WHERE owner_id = :owner_id AND ticker = :ticker AND currency = :currency" in executed_query
    assert "ORDER BY transaction_timestamp_utc asc, inserted_seq asc" in executed_query
    assert connection.executed_parameters[0] == {"owner_id": "owner-1", "ticker": "AAPL", "currency": "USD"}
    assert rows[0].key == _KEY
    assert rows[0].price == Decimal("100.00")


def test_db_ledger_holding_get_raises_invariant_on_duplicate_rows() -> None:
    """Raise invariant error when a key has more than one holding row."""

    connection = _ConnectionStub(rows=[_build_holding_row(), _build_holding_row()])
    session = SQLAlchemyLedgerStoreSession(connection)

    with pytest.raises(LedgerInvariantError, match="more than one holding row"):
        session.db_ledger_holding_get(_KEY)


def test_db_ledger_holding_upsert_targets_composite_unique_constraint() -> None:
    """Upsert holdings against the owner/ticker/currency constraint.

    Returns:
        None: Assertions validate upsert template and parameters.

    Raises:
        AssertionError: Raised when selected SQL diverges from policy.
    """

    connection = _ConnectionStub(rows=[_build_holding_row()])
    session = SQLAlchemyLedgerStoreSession(connection)

    holding = session.db_ledger_holding_upsert(
        StockHoldingUpsertRequest(key=_KEY, quantity=15, average_cost=Decimal("96.66"))
    )

    executed_query = connection.executed_queries[0]
    assert "ON CONFLICT ON CONSTRAINT uq_stock_holding_owner_ticker_currency DO UPDATE" in executed_query
    assert connection.executed_parameters[0]["average_cost"] == "96.66"
    assert holding.average_cost == Decimal("96.66")
    assert holding.quantity == 15


def test_db_ledger_realized_insert_many_binds_every_event_in_order() -> None:
    """Insert realized events as one executemany call in processing order."""

    connection = _ConnectionStub(rows=[])
    session = SQLAlchemyLedgerStoreSession(connection)
    first_at = datetime(2026, 5, 4, 15, 0, tzinfo=timezone.utc)
    second_at = datetime(2026, 5, 4, 16, 0, tzinfo=timezone.utc)

    session.db_ledger_realized_insert_many(
        [
            RealizedPnlEventInsertRequest(key=_KEY, realized_at_utc=first_at, amount=Decimal("205.00")),
            RealizedPnlEventInsertRequest(key=_KEY, realized_at_utc=second_at, amount=Decimal("-12.50")),
        ]
    )

    parameters = connection.executed_parameters[0]
    assert [row["amount"] for row in parameters] == ["205.00", "-12.50"]
    assert [row["realized_at_utc"] for row in parameters] == [first_at, second_at]


def test_db_ledger_realized_insert_many_skips_empty_batch() -> None:
    """Execute nothing for an empty realized event batch."""

    connection = _ConnectionStub(rows=[])
    session = SQLAlchemyLedgerStoreSession(connection)

    session.db_ledger_realized_insert_many([])

    assert connection.executed_queries == []


def test_db_ledger_unit_of_work_takes_advisory_lock_on_postgresql() -> None:
    """Bound lock wait and take a transaction-scoped advisory lock before yielding.

    Returns:
        None: Assertions validate lock statements.

    Raises:
        AssertionError: Raised when lock statements differ.
    """

    connection = _ConnectionStub(rows=[])
    service = SQLAlchemyLedgerStoreService(engine=_EngineStub(connection=connection))

    with service.db_ledger_unit_of_work(_KEY, lock_timeout_seconds=2.5) as session:
        assert isinstance(session, SQLAlchemyLedgerStoreSession)

    assert "set_config('lock_timeout'" in connection.executed_queries[0]
    assert connection.executed_parameters[0] == {"lock_timeout": "2500ms"}
    assert "pg_advisory_xact_lock(CAST(:key_1 AS integer), CAST(:key_2 AS integer))" in connection.executed_queries[1]
    first_keys = connection.executed_parameters[1]
    again = _ConnectionStub(rows=[])
    with SQLAlchemyLedgerStoreService(engine=_EngineStub(connection=again)).db_ledger_unit_of_work(_KEY, 1):
        pass
    assert again.executed_parameters[1] == first_keys


def test_db_ledger_unit_of_work_skips_advisory_lock_on_other_dialects() -> None:
    """Open a plain transaction when the dialect has no advisory locks."""

    connection = _ConnectionStub(rows=[], dialect_name="sqlite")
    service = SQLAlchemyLedgerStoreService(engine=_EngineStub(connection=connection))

    with service.db_ledger_unit_of_work(_KEY, lock_timeout_seconds=1):
        pass

    assert connection.executed_queries == []


def test_db_ledger_unit_of_work_maps_lock_not_available_to_timeout() -> None:
    """Translate the lock_not_available SQLSTATE into a ledger lock timeout."""

    connection = _ConnectionStub(
        rows=[],
        fail_with=OperationalError("SELECT pg_advisory_xact_lock", {}, _LockNotAvailableStub()),
    )
    service = SQLAlchemyLedgerStoreService(engine=_EngineStub(connection=connection))

    with pytest.raises(LedgerLockTimeoutError, match="ticker=AAPL"):
        with service.db_ledger_unit_of_work(_KEY, lock_timeout_seconds=1):
            pass


def test_db_ledger_transaction_list_for_owner_uses_newest_first_template() -> None:
    """Page owner transactions newest first with bound limit and offset."""

    connection = _ConnectionStub(rows=[_build_transaction_row()])
    service = SQLAlchemyLedgerStoreService(engine=_EngineStub(connection=connection))

    service.db_ledger_transaction_list_for_owner(owner_id="owner-1", currency="USD", limit=10, offset=20)

    executed_query = connection.executed_queries[0]
    assert "ORDER BY transaction_timestamp_utc desc, inserted_seq desc LIMIT :limit OFFSET :offset" in executed_query
    assert connection.executed_parameters[0] == {"owner_id": "owner-1", "currency": "USD", "limit": 10, "offset": 20}


def test_db_ledger_transaction_list_for_owner_rejects_invalid_limit() -> None:
    """Reject invalid limit before query execution."""

    connection = _ConnectionStub(rows=[])
    service = SQLAlchemyLedgerStoreService(engine=_EngineStub(connection=connection))

    with pytest.raises(ValueError, match="limit must be >= 1"):
        service.db_ledger_transaction_list_for_owner(owner_id="owner-1", currency="USD", limit=0, offset=0)
    assert connection.executed_queries == []


def test_db_ledger_realized_list_for_key_reads_without_advisory_lock() -> None:
    """Read realized events over a plain connection, never taking the key lock."""

    connection = _ConnectionStub(
        rows=[
            {
                "realized_pnl_event_id": uuid4(),
                "owner_id": "owner-1",
                "ticker": "AAPL",
                "currency": "USD",
                "realized_at_utc": datetime(2026, 5, 4, 15, 0, tzinfo=timezone.utc),
                "amount": Decimal("205.00"),
                "created_at_utc": datetime(2026, 5, 4, 15, 0, tzinfo=timezone.utc),
            }
        ]
    )
    service = SQLAlchemyLedgerStoreService(engine=_EngineStub(connection=connection))

    events = service.db_ledger_realized_list_for_key(_KEY)

    assert len(connection.executed_queries) == 1
    assert "pg_advisory_xact_lock" not in connection.executed_queries[0]
    assert "ORDER BY realized_at_utc asc, inserted_seq asc" in connection.executed_queries[0]
    assert [event.amount for event in events] == [Decimal("205.00")]

"""Typed interfaces for ledger-layer operations."""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Protocol

from position_ledger.db import RealizedPnlEventRecord, StockHoldingRecord, StockTransactionRecord
from position_ledger.domain import Currency, LedgerKey, TransactionKind


@dataclass(frozen=True)
class StockTransactionRequest:
    """Caller request to record one BUY or SELL.

    Attributes:
        owner_id: Owner identifier.
        ticker: Instrument ticker.
        currency: Ledger currency code or enum member.
        transaction_timestamp_utc: Offset-aware transaction timestamp.
        quantity: Positive integer quantity.
        price: Positive unit price with at most two decimal places.
        kind: Transaction direction (`BUY` or `SELL`).
    """

    owner_id: str
    ticker: str
    currency: Currency | str
    transaction_timestamp_utc: datetime
    quantity: int
    price: Decimal | str
    kind: TransactionKind | str


@dataclass(frozen=True)
class LedgerVerificationResult:
    """Comparison of stored ledger state with a replay from empty state.

    Attributes:
        key: Verified ledger key.
        consistent: Whether stored state equals replayed state.
        transaction_count: Number of stored transactions replayed.
        expected_quantity: Replayed holding quantity, None when nothing is stored.
        stored_quantity: Stored holding quantity, None when no holding row exists.
        expected_average_cost: Replayed average cost, None when nothing is stored.
        stored_average_cost: Stored average cost, None when no holding row exists.
        mismatches: Human-readable mismatch descriptions, empty when consistent.
    """

    key: LedgerKey
    consistent: bool
    transaction_count: int
    expected_quantity: int | None
    stored_quantity: int | None
    expected_average_cost: Decimal | None
    stored_average_cost: Decimal | None
    mismatches: tuple[str, ...]


class LedgerTransactionServicePort(Protocol):
    """Port definition for the ledger operations exposed to boundary layers."""

    def ledger_record_transaction(self, request: StockTransactionRequest) -> StockTransactionRecord:
        """Record one transaction and recompute the key's holding and realized events.

        Args:
            request: Transaction request.

        Returns:
            StockTransactionRecord: Persisted transaction row.

        Raises:
            LedgerValidationError: Raised when the request is malformed.
            LedgerDomainRuleError: Raised when the transaction breaks a ledger rule.
            LedgerInvariantError: Raised when stored state is inconsistent.
            LedgerLockTimeoutError: Raised when key exclusivity is not obtained in time.
        """

    def ledger_list_holdings(self, owner_id: str, currency: Currency | str) -> list[StockHoldingRecord]:
        """List holdings for one owner and currency.

        Args:
            owner_id: Owner identifier.
            currency: Currency code.

        Returns:
            list[StockHoldingRecord]: Holding rows, empty when none exist.

        Raises:
            LedgerValidationError: Raised when inputs are malformed.
        """

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

    def ledger_list_realized_events(
        self,
        owner_id: str,
        ticker: str,
        currency: Currency | str,
    ) -> list[RealizedPnlEventRecord]:
        """List realized events for one key.

        Args:
            owner_id: Owner identifier.
            ticker: Instrument ticker.
            currency: Currency code.

        Returns:
            list[RealizedPnlEventRecord]: Realized events in realization order.

        Raises:
            LedgerValidationError: Raised when inputs are malformed.
        """

    def ledger_verify_key(self, owner_id: str, ticker: str, currency: Currency | str) -> LedgerVerificationResult:
        """Replay stored history for one key and compare with stored state.

        Args:
            owner_id: Owner identifier.
            ticker: Instrument ticker.
            currency: Currency code.

        Returns:
            LedgerVerificationResult: Verification outcome.

        Raises:
            LedgerValidationError: Raised when inputs are malformed.
        """

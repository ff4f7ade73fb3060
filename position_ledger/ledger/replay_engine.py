"""Full-history replay of one ledger key through the average-cost rules."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from position_ledger.domain import LedgerDomainRuleError, LedgerKey, LedgerValidationError, TransactionKind

from .cost_basis import CostBasisState, cost_basis_apply_buy, cost_basis_apply_sell


@dataclass(frozen=True)
class ReplayTransactionInput:
    """Transaction input contract for replay.

    Attributes:
        kind: Transaction direction.
        quantity: Positive transaction quantity.
        price: Unit price.
        transaction_timestamp_utc: Offset-aware transaction timestamp.
    """

    kind: TransactionKind
    quantity: int
    price: Decimal
    transaction_timestamp_utc: datetime


@dataclass(frozen=True)
class RealizedEventInput:
    """Realized profit or loss crystallized by one SELL.

    Attributes:
        realized_at_utc: Timestamp of the SELL that realized the amount.
        amount: Signed realized amount, positive for a gain.
    """

    realized_at_utc: datetime
    amount: Decimal


@dataclass(frozen=True)
class ReplayResult:
    """Output payload of one replay.

    Attributes:
        holding: Final holding accumulator.
        realized_events: Complete replacement set of realized events in processing order.
        contains_sell: Whether the replayed sequence holds at least one SELL.
        replayed_count: Number of transactions processed.
    """

    holding: CostBasisState
    realized_events: tuple[RealizedEventInput, ...]
    contains_sell: bool
    replayed_count: int


def replay_transactions(
    key: LedgerKey,
    existing: list[ReplayTransactionInput],
    incoming: ReplayTransactionInput,
) -> ReplayResult:
    """Merge one incoming transaction into stored history and re-derive state.

    Args:
        key: Ledger key used for error context.
        existing: Stored transactions in ascending timestamp order.
        incoming: Newly submitted transaction.

    Returns:
        ReplayResult: Holding and realized events derived from the merged sequence.

    Raises:
        LedgerValidationError: Raised when an input transaction is malformed.
        LedgerDomainRuleError: Raised when the merged sequence breaks a ledger rule.
    """

    if existing is None:
        raise LedgerValidationError("existing must not be None")
    _replay_validate_transaction(incoming)

    if not existing:
        if incoming.kind != TransactionKind.BUY:
            raise LedgerDomainRuleError(
                f"first transaction must be a buy for {key.describe()}: "
                f"kind={incoming.kind.value} quantity={incoming.quantity}"
            )
        return ReplayResult(
            holding=CostBasisState(quantity=incoming.quantity, average_cost=incoming.price),
            realized_events=(),
            contains_sell=False,
            replayed_count=1,
        )

    # sorted() is stable: equal timestamps keep input order, so incoming lands last among ties.
    merged = sorted([*existing, incoming], key=lambda transaction: transaction.transaction_timestamp_utc)
    return replay_from_empty(key=key, ordered=merged)


def replay_from_empty(key: LedgerKey, ordered: list[ReplayTransactionInput]) -> ReplayResult:
    """Replay an ordered transaction sequence from an empty holding.

    Args:
        key: Ledger key used for error context.
        ordered: Transactions in ascending timestamp order.

    Returns:
        ReplayResult: Holding and realized events for the sequence.

    Raises:
        LedgerValidationError: Raised when the sequence is empty or malformed.
        LedgerDomainRuleError: Raised when the sequence starts with a SELL or oversells.
    """

    if not ordered:
        raise LedgerValidationError(f"cannot replay an empty sequence for {key.describe()}")
    for transaction in ordered:
        _replay_validate_transaction(transaction)

    first = ordered[0]
    if first.kind != TransactionKind.BUY:
        raise LedgerDomainRuleError(
            f"first transaction must be a buy for {key.describe()}: "
            f"kind={first.kind.value} quantity={first.quantity} at={first.transaction_timestamp_utc.isoformat()}"
        )

    contains_sell = any(transaction.kind == TransactionKind.SELL for transaction in ordered)
    state = CostBasisState(quantity=first.quantity, average_cost=first.price)
    realized_events: list[RealizedEventInput] = []

    for transaction in ordered[1:]:
        if transaction.kind == TransactionKind.BUY:
            state = cost_basis_apply_buy(state, transaction.quantity, transaction.price)
            continue

        state, realized_amount = cost_basis_apply_sell(
            state,
            transaction.quantity,
            transaction.price,
            key=key,
            transaction_timestamp_utc=transaction.transaction_timestamp_utc,
        )
        realized_events.append(
            RealizedEventInput(
                realized_at_utc=transaction.transaction_timestamp_utc,
                amount=realized_amount,
            )
        )

    return ReplayResult(
        holding=state,
        realized_events=tuple(realized_events),
        contains_sell=contains_sell,
        replayed_count=len(ordered),
    )


def _replay_validate_transaction(transaction: ReplayTransactionInput) -> None:
    """Validate one replay input.

    Args:
        transaction: Candidate replay input.

    Returns:
        None: Validation has no return value.

    Raises:
        LedgerValidationError: Raised when kind, quantity, price, or timestamp is invalid.
    """

    if transaction is None:
        raise LedgerValidationError("transaction must not be None")
    if not isinstance(transaction.kind, TransactionKind):
        raise LedgerValidationError(f"unsupported transaction kind={transaction.kind}")
    if isinstance(transaction.quantity, bool) or not isinstance(transaction.quantity, int) or transaction.quantity <= 0:
        raise LedgerValidationError(f"quantity must be a positive integer, got {transaction.quantity!r}")
    if not isinstance(transaction.price, Decimal) or not transaction.price.is_finite() or transaction.price < 0:
        raise LedgerValidationError(f"price must be a finite non-negative Decimal, got {transaction.price!r}")
    timestamp = transaction.transaction_timestamp_utc
    if not isinstance(timestamp, datetime):
        raise LedgerValidationError("transaction_timestamp_utc must be a datetime")
    if timestamp.tzinfo is None or timestamp.utcoffset() is None:
        raise LedgerValidationError("transaction_timestamp_utc must be offset-aware")


__all__ = [
    "RealizedEventInput",
    "ReplayResult",
    "ReplayTransactionInput",
    "replay_from_empty",
    "replay_transactions",
]

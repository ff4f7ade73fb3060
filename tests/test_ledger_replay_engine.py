"""Tests for full-history ledger replay ordering and regeneration rules."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from position_ledger.domain import Currency, LedgerDomainRuleError, LedgerKey, LedgerValidationError, TransactionKind
from position_ledger.ledger import ReplayTransactionInput, replay_from_empty, replay_transactions

_KEY = LedgerKey(owner_id="owner-1", ticker="D05", currency=Currency.SGD)
_BASE_TIME = datetime(2026, 3, 2, 9, 30, tzinfo=timezone.utc)


def _replay_input(kind: TransactionKind, quantity: int, price: str, minutes: int = 0) -> ReplayTransactionInput:
    """Build one replay input offset from a fixed base timestamp.

    Args:
        kind: Transaction direction.
        quantity: Transaction quantity.
        price: Decimal price text.
        minutes: Minute offset from the base timestamp.

    Returns:
        ReplayTransactionInput: Replay input payload.

    Raises:
        RuntimeError: This helper does not raise runtime errors.
    """

    return ReplayTransactionInput(
        kind=kind,
        quantity=quantity,
        price=Decimal(price),
        transaction_timestamp_utc=_BASE_TIME + timedelta(minutes=minutes),
    )


def test_replay_first_buy_seeds_holding_without_events() -> None:
    """Seed holding from the first BUY with no realized events.

    Returns:
        None: Assertions validate replay result.

    Raises:
        AssertionError: Raised when replay output differs.
    """

    result = replay_transactions(_KEY, [], _replay_input(TransactionKind.BUY, 10, "100.00"))

    assert result.holding.quantity == 10
    assert result.holding.average_cost == Decimal("100.00")
    assert result.realized_events == ()
    assert result.contains_sell is False
    assert result.replayed_count == 1


def test_replay_rejects_sell_as_first_transaction() -> None:
    """Reject a SELL submitted against an empty ledger."""

    with pytest.raises(LedgerDomainRuleError, match="first transaction must be a buy"):
        replay_transactions(_KEY, [], _replay_input(TransactionKind.SELL, 1, "10.00"))


def test_replay_rejects_back_dated_sell_before_first_buy() -> None:
    """Reject a SELL that sorts ahead of every stored BUY."""

    existing = [_replay_input(TransactionKind.BUY, 10, "10.00", minutes=10)]

    with pytest.raises(LedgerDomainRuleError, match="first transaction must be a buy"):
        replay_transactions(_KEY, existing, _replay_input(TransactionKind.SELL, 1, "12.00", minutes=0))


def test_replay_places_incoming_last_among_equal_timestamps() -> None:
    """Apply a same-timestamp incoming SELL after the stored BUY it ties with.

    Returns:
        None: Assertions validate tie-break ordering.

    Raises:
        AssertionError: Raised when the SELL is not applied last.
    """

    existing = [
        _replay_input(TransactionKind.BUY, 5, "20.00", minutes=0),
        _replay_input(TransactionKind.BUY, 5, "30.00", minutes=5),
    ]

    result = replay_transactions(_KEY, existing, _replay_input(TransactionKind.SELL, 10, "40.00", minutes=5))

    assert result.holding.quantity == 0
    assert result.holding.average_cost == Decimal("25.00")
    assert [event.amount for event in result.realized_events] == [Decimal("150.00")]


def test_replay_back_dated_buy_regenerates_realized_events() -> None:
    """Recompute realized amounts when a BUY is inserted before an existing SELL.

    Returns:
        None: Assertions validate regenerated events.

    Raises:
        AssertionError: Raised when regenerated events differ.
    """

    existing = [
        _replay_input(TransactionKind.BUY, 10, "100.00", minutes=0),
        _replay_input(TransactionKind.SELL, 5, "110.00", minutes=20),
    ]

    result = replay_transactions(_KEY, existing, _replay_input(TransactionKind.BUY, 10, "80.00", minutes=10))

    assert result.contains_sell is True
    assert result.replayed_count == 3
    assert result.holding.quantity == 15
    assert result.holding.average_cost == Decimal("90.00")
    assert len(result.realized_events) == 1
    assert result.realized_events[0].amount == Decimal("100.00")
    assert result.realized_events[0].realized_at_utc == _BASE_TIME + timedelta(minutes=20)


def test_replay_rejects_back_dated_sell_that_overdraws_history() -> None:
    """Reject a back-dated SELL that would push the running quantity below zero."""

    existing = [
        _replay_input(TransactionKind.BUY, 5, "10.00", minutes=0),
        _replay_input(TransactionKind.BUY, 10, "10.00", minutes=30),
    ]

    with pytest.raises(LedgerDomainRuleError, match="held=5 requested=8"):
        replay_transactions(_KEY, existing, _replay_input(TransactionKind.SELL, 8, "12.00", minutes=15))


def test_replay_keeps_average_after_full_sell_out() -> None:
    """Keep the last average cost once the holding reaches zero."""

    result = replay_from_empty(
        _KEY,
        [
            _replay_input(TransactionKind.BUY, 4, "80.00", minutes=0),
            _replay_input(TransactionKind.SELL, 4, "90.00", minutes=1),
        ],
    )

    assert result.holding.quantity == 0
    assert result.holding.average_cost == Decimal("80.00")
    assert result.realized_events[0].amount == Decimal("40.00")


def test_replay_from_empty_rejects_empty_sequence() -> None:
    """Reject replay of an empty sequence."""

    with pytest.raises(LedgerValidationError):
        replay_from_empty(_KEY, [])


def test_replay_rejects_naive_timestamp() -> None:
    """Reject transactions without a UTC offset."""

    naive_input = ReplayTransactionInput(
        kind=TransactionKind.BUY,
        quantity=1,
        price=Decimal("1.00"),
        transaction_timestamp_utc=datetime(2026, 3, 2, 9, 30),
    )

    with pytest.raises(LedgerValidationError, match="offset-aware"):
        replay_transactions(_KEY, [], naive_input)

"""Average-cost basis primitives for BUY and SELL updates."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, localcontext

from position_ledger.domain import LedgerDomainRuleError, LedgerKey, LedgerValidationError

_COST_BASIS_PRECISION = 64


@dataclass(frozen=True)
class CostBasisState:
    """Running holding accumulator for one ledger key.

    Attributes:
        quantity: Held quantity, never negative.
        average_cost: Blended average unit cost. Kept as-is when quantity reaches zero.
    """

    quantity: int
    average_cost: Decimal


def cost_basis_apply_buy(state: CostBasisState, quantity: int, price: Decimal) -> CostBasisState:
    """Blend one acquisition into the running average cost.

    The new average is truncated toward zero at the decimal scale of the
    accumulated total cost, never rounded to nearest.

    Args:
        state: Accumulator before the acquisition.
        quantity: Acquired quantity.
        price: Acquisition unit price.

    Returns:
        CostBasisState: Accumulator after the acquisition.

    Raises:
        LedgerValidationError: Raised when quantity or price is not a valid exact value.
    """

    _cost_basis_validate_state(state)
    _cost_basis_validate_quantity(quantity)
    _cost_basis_validate_price(price)

    new_quantity = state.quantity + quantity
    with localcontext() as context:
        context.prec = _COST_BASIS_PRECISION
        total_cost = state.average_cost * state.quantity + price * quantity

    return CostBasisState(
        quantity=new_quantity,
        average_cost=_cost_basis_divide_truncated(total_cost, new_quantity),
    )


def cost_basis_apply_sell(
    state: CostBasisState,
    quantity: int,
    price: Decimal,
    key: LedgerKey,
    transaction_timestamp_utc: datetime | None = None,
) -> tuple[CostBasisState, Decimal]:
    """Dispose of held units and compute the realized profit or loss.

    Args:
        state: Accumulator before the disposal.
        quantity: Disposed quantity.
        price: Disposal unit price.
        key: Ledger key used for error context.
        transaction_timestamp_utc: Optional disposal timestamp used for error context.

    Returns:
        tuple[CostBasisState, Decimal]: Accumulator after the disposal and the
        realized amount (positive is a gain).

    Raises:
        LedgerValidationError: Raised when quantity or price is not a valid exact value.
        LedgerDomainRuleError: Raised when the disposal exceeds the held quantity.
    """

    _cost_basis_validate_state(state)
    _cost_basis_validate_quantity(quantity)
    _cost_basis_validate_price(price)

    if quantity > state.quantity:
        at_text = "" if transaction_timestamp_utc is None else f" at={transaction_timestamp_utc.isoformat()}"
        raise LedgerDomainRuleError(
            f"sell quantity exceeds holding for {key.describe()}{at_text}: "
            f"held={state.quantity} requested={quantity}"
        )

    with localcontext() as context:
        context.prec = _COST_BASIS_PRECISION
        realized_amount = (price - state.average_cost) * quantity

    return (
        CostBasisState(quantity=state.quantity - quantity, average_cost=state.average_cost),
        realized_amount,
    )


def _cost_basis_divide_truncated(numerator: Decimal, denominator: int) -> Decimal:
    """Divide toward zero keeping the numerator's exponent.

    Args:
        numerator: Exact decimal dividend.
        denominator: Positive integer divisor.

    Returns:
        Decimal: Quotient truncated at the numerator's scale.

    Raises:
        ValueError: Raised when denominator is not positive.
    """

    if denominator <= 0:
        raise ValueError("denominator must be > 0")

    sign, digits, exponent = numerator.as_tuple()
    coefficient = int("".join(str(digit) for digit in digits) or "0")
    quotient = coefficient // denominator
    return Decimal((sign if quotient else 0, tuple(int(digit) for digit in str(quotient)), exponent))


def _cost_basis_validate_state(state: CostBasisState) -> None:
    if state is None:
        raise LedgerValidationError("state must not be None")
    if isinstance(state.quantity, bool) or not isinstance(state.quantity, int) or state.quantity < 0:
        raise LedgerValidationError(f"state.quantity must be a non-negative integer, got {state.quantity!r}")
    if not isinstance(state.average_cost, Decimal) or not state.average_cost.is_finite():
        raise LedgerValidationError("state.average_cost must be a finite Decimal")


def _cost_basis_validate_quantity(quantity: int) -> None:
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise LedgerValidationError(f"quantity must be an integer, got {quantity!r}")
    if quantity <= 0:
        raise LedgerValidationError(f"quantity must be > 0, got {quantity}")


def _cost_basis_validate_price(price: Decimal) -> None:
    if not isinstance(price, Decimal):
        raise LedgerValidationError(f"price must be a Decimal, got {type(price).__name__}")
    if not price.is_finite() or price < Decimal("0"):
        raise LedgerValidationError(f"price must be a finite non-negative Decimal, got {price}")


__all__ = ["CostBasisState", "cost_basis_apply_buy", "cost_basis_apply_sell"]

"""Typed domain models shared across runtime layers.

This module provides the value objects that identify one independent ledger
and the enumerations used by transaction records.
"""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from .errors import LedgerValidationError

MONEY_SCALE = 2

# Column ranges: quantity is bigint, price and average_cost are numeric(20,2),
# realized amounts are numeric(38,2).
MAX_QUANTITY = 2**63 - 1
MAX_PRICE = Decimal("999999999999999999.99")
MAX_REALIZED_AMOUNT = Decimal("999999999999999999999999999999999999.99")


class TransactionKind(str, Enum):
    """Direction of one stock transaction."""

    BUY = "BUY"
    SELL = "SELL"


class Currency(str, Enum):
    """Currencies a ledger key can be denominated in."""

    USD = "USD"
    SGD = "SGD"


@dataclass(frozen=True)
class HealthStatus:
    """Health response contract used by health-check surfaces.

    Attributes:
        status: Overall status text for service health.
        detail: Additional message suitable for operational diagnostics.
    """

    status: str
    detail: str


@dataclass(frozen=True)
class LedgerKey:
    """Identity of one independent ledger.

    Attributes:
        owner_id: Owner identifier.
        ticker: Upper-cased instrument ticker.
        currency: Ledger currency.
    """

    owner_id: str
    ticker: str
    currency: Currency

    @classmethod
    def build(cls, owner_id: str, ticker: str, currency: str | Currency) -> "LedgerKey":
        """Build a normalized key from raw request values.

        Args:
            owner_id: Owner identifier.
            ticker: Instrument ticker.
            currency: Currency code or enum member.

        Returns:
            LedgerKey: Normalized key with stripped owner and upper-cased ticker.

        Raises:
            LedgerValidationError: Raised when a key part is blank or unsupported.
        """

        if not isinstance(owner_id, str) or not owner_id.strip():
            raise LedgerValidationError("owner_id must not be blank")
        if not isinstance(ticker, str) or not ticker.strip():
            raise LedgerValidationError("ticker must not be blank")
        try:
            normalized_currency = Currency(currency.strip().upper() if isinstance(currency, str) else currency)
        except ValueError as error:
            raise LedgerValidationError(f"unsupported currency={currency}") from error

        return cls(
            owner_id=owner_id.strip(),
            ticker=ticker.strip().upper(),
            currency=normalized_currency,
        )

    def describe(self) -> str:
        """Render the key for log lines and error messages."""

        return f"owner_id={self.owner_id} ticker={self.ticker} currency={self.currency.value}"

"""Domain models used across application layer boundaries."""

from .errors import (
	LedgerDomainRuleError,
	LedgerInvariantError,
	LedgerLockTimeoutError,
	LedgerValidationError,
)
from .models import (
	MAX_PRICE,
	MAX_QUANTITY,
	MAX_REALIZED_AMOUNT,
	MONEY_SCALE,
	Currency,
	HealthStatus,
	LedgerKey,
	TransactionKind,
)

__all__ = [
	"Currency",
	"HealthStatus",
	"LedgerDomainRuleError",
	"LedgerInvariantError",
	"LedgerKey",
	"LedgerLockTimeoutError",
	"LedgerValidationError",
	"MAX_PRICE",
	"MAX_QUANTITY",
	"MAX_REALIZED_AMOUNT",
	"MONEY_SCALE",
	"TransactionKind",
]

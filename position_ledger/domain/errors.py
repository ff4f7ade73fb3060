"""Error taxonomy for ledger operations.

Boundary layers map these classes to transport responses; the ledger core only
raises them and never recovers.
"""


class LedgerValidationError(ValueError):
    """Raised when a request is malformed and is rejected before store access."""


class LedgerDomainRuleError(ValueError):
    """Raised when a request breaches a business invariant of the ledger."""


class LedgerInvariantError(RuntimeError):
    """Raised when stored ledger state is internally inconsistent."""


class LedgerLockTimeoutError(RuntimeError):
    """Raised when exclusive access to a ledger key cannot be obtained in time."""

"""Ledger layer package for average-cost replay and transaction recording."""

from .cost_basis import CostBasisState, cost_basis_apply_buy, cost_basis_apply_sell
from .interfaces import LedgerTransactionServicePort, LedgerVerificationResult, StockTransactionRequest
from .key_locks import LedgerKeyLockRegistry
from .replay_engine import (
	RealizedEventInput,
	ReplayResult,
	ReplayTransactionInput,
	replay_from_empty,
	replay_transactions,
)
from .transaction_service import StockTransactionService

__all__ = [
	"CostBasisState",
	"cost_basis_apply_buy",
	"cost_basis_apply_sell",
	"LedgerKeyLockRegistry",
	"LedgerTransactionServicePort",
	"LedgerVerificationResult",
	"RealizedEventInput",
	"ReplayResult",
	"ReplayTransactionInput",
	"replay_from_empty",
	"replay_transactions",
	"StockTransactionRequest",
	"StockTransactionService",
]

"""Database layer package for all SQL and persistence boundaries."""

from .health import SQLAlchemyDatabaseHealthService
from .interfaces import (
	DatabaseHealthPort,
	LedgerStoreRepositoryPort,
	LedgerStoreSessionPort,
	RealizedPnlEventInsertRequest,
	RealizedPnlEventRecord,
	StockHoldingRecord,
	StockHoldingUpsertRequest,
	StockTransactionInsertRequest,
	StockTransactionRecord,
)
from .ledger_store import SQLAlchemyLedgerStoreService, SQLAlchemyLedgerStoreSession
from .session import db_create_engine

__all__ = [
	"DatabaseHealthPort",
	"LedgerStoreRepositoryPort",
	"LedgerStoreSessionPort",
	"RealizedPnlEventInsertRequest",
	"RealizedPnlEventRecord",
	"StockHoldingRecord",
	"StockHoldingUpsertRequest",
	"StockTransactionInsertRequest",
	"StockTransactionRecord",
	"SQLAlchemyDatabaseHealthService",
	"SQLAlchemyLedgerStoreService",
	"SQLAlchemyLedgerStoreSession",
	"db_create_engine",
]

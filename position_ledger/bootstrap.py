"""Application bootstrap wiring for startup validation and dependency assembly."""

from fastapi import FastAPI
from sqlalchemy import Engine

from position_ledger.api import create_api_application
from position_ledger.config import AppSettings, config_load_settings
from position_ledger.db import SQLAlchemyDatabaseHealthService, SQLAlchemyLedgerStoreService, db_create_engine
from position_ledger.ledger import StockTransactionService
from position_ledger.logging_config import setup_logging


def bootstrap_create_application(settings: AppSettings | None = None) -> FastAPI:
    """Assemble the runtime application after validating startup configuration.

    Args:
        settings: Optional pre-loaded settings; loaded from environment when absent.

    Returns:
        FastAPI: Fully initialized FastAPI application instance.

    Raises:
        SettingsLoadError: Raised when startup configuration validation fails.
    """

    settings = settings or config_load_settings()
    setup_logging(settings.log_level)
    engine = bootstrap_create_engine(settings)
    return create_api_application(
        settings=settings,
        db_health_service=SQLAlchemyDatabaseHealthService(engine=engine),
        transaction_service=bootstrap_create_transaction_service(settings=settings, engine=engine),
    )


def bootstrap_create_engine(settings: AppSettings) -> Engine:
    """Create the shared database engine from validated settings."""

    return db_create_engine(
        database_url=settings.database_url,
        statement_timeout_seconds=settings.ledger_statement_timeout_seconds,
    )


def bootstrap_create_transaction_service(
    settings: AppSettings | None = None,
    engine: Engine | None = None,
) -> StockTransactionService:
    """Build the ledger transaction service for HTTP and CLI surfaces.

    Args:
        settings: Optional pre-loaded settings; loaded from environment when absent.
        engine: Optional shared engine; created from settings when absent.

    Returns:
        StockTransactionService: Fully wired transaction service instance.

    Raises:
        SettingsLoadError: Raised when startup configuration validation fails.
    """

    resolved_settings = settings or config_load_settings()
    resolved_engine = engine or bootstrap_create_engine(resolved_settings)
    return StockTransactionService(
        repository=SQLAlchemyLedgerStoreService(engine=resolved_engine),
        lock_timeout_seconds=resolved_settings.ledger_lock_timeout_seconds,
    )

"""FastAPI application factory for the position ledger service."""

from fastapi import FastAPI

from position_ledger.config import AppSettings
from position_ledger.db import DatabaseHealthPort
from position_ledger.ledger import LedgerTransactionServicePort

from .routers import api_create_health_router, api_create_stocks_router


def create_api_application(
    settings: AppSettings,
    db_health_service: DatabaseHealthPort,
    transaction_service: LedgerTransactionServicePort,
) -> FastAPI:
    """Create the FastAPI application instance for the service.

    Args:
        settings: Validated application settings used for runtime metadata.
        db_health_service: Database health service used by health endpoints.
        transaction_service: Ledger service used by stocks endpoints.

    Returns:
        FastAPI: Framework application instance with all routers attached.

    Raises:
        ValueError: Raised when a router dependency is invalid.
    """
    application = FastAPI(title="Position Ledger")

    @application.get("/", tags=["foundation"])
    def foundation_index() -> dict[str, str]:
        """Return service identity for bootstrap verification."""

        return {
            "service": "position-ledger",
            "status": "ready",
            "environment": settings.environment_name,
        }

    application.include_router(api_create_health_router(db_health_service=db_health_service))
    application.include_router(
        api_create_stocks_router(
            settings=settings,
            transaction_service=transaction_service,
        )
    )

    return application

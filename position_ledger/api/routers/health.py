"""Liveness and readiness endpoints for the ledger service."""

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse

from position_ledger.db import DatabaseHealthPort


def api_create_health_router(db_health_service: DatabaseHealthPort) -> APIRouter:
    """Create health-check router.

    `/health/live` only reports that the process serves requests. `/health`
    also checks database connectivity and the presence of the ledger tables.

    Args:
        db_health_service: DB-layer health service interface.

    Returns:
        APIRouter: Router exposing health endpoints.

    Raises:
        ValueError: Raised when db_health_service is invalid.
    """

    if db_health_service is None:
        raise ValueError("db_health_service must not be None")

    router = APIRouter(tags=["health"])

    @router.get("/health/live")
    def api_health_live() -> dict[str, str]:
        return {"status": "ok", "app": "up"}

    @router.get("/health")
    def api_health_status() -> JSONResponse:
        """Return application, database, and ledger schema state.

        Returns:
            JSONResponse: 200 with `ok` or `degraded` when the database answers,
            503 when it does not.
        """

        target = db_health_service.db_connection_label()
        try:
            db_health = db_health_service.db_check_health()
        except ConnectionError as error:
            return JSONResponse(
                content=_api_health_payload("degraded", "down", str(error), target),
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            )

        overall_status = "ok" if db_health.status == "ok" else "degraded"
        return JSONResponse(
            content=_api_health_payload(overall_status, db_health.status, db_health.detail, target),
            status_code=status.HTTP_200_OK,
        )

    return router


def _api_health_payload(overall_status: str, database_status: str, detail: str, target: str) -> dict[str, str]:
    return {
        "status": overall_status,
        "app": "up",
        "database": database_status,
        "detail": detail,
        "target": target,
    }

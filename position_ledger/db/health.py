"""Database health service implementations for connectivity and schema checks."""

from sqlalchemy import Engine, text
from sqlalchemy.exc import SQLAlchemyError

from position_ledger.domain import HealthStatus

from .interfaces import DatabaseHealthPort

_LEDGER_TABLE_NAMES = ("stock_transaction", "stock_holding", "realized_pnl_event")


class SQLAlchemyDatabaseHealthService(DatabaseHealthPort):
    """Database health service backed by SQLAlchemy engine connectivity checks."""

    def __init__(self, engine: Engine):
        """Initialize database health service.

        Args:
            engine: SQLAlchemy engine used for connectivity checks.

        Raises:
            ValueError: Raised when engine is None.
        """

        if engine is None:
            raise ValueError("engine must not be None")
        self._engine = engine

    def db_connection_label(self) -> str:
        """Return the target database URL for diagnostics, password hidden."""

        return self._engine.url.render_as_string(hide_password=True)

    def db_check_health(self) -> HealthStatus:
        """Verify connectivity and, on PostgreSQL, presence of the ledger tables.

        Returns:
            HealthStatus: `ok` when reachable and migrated, `degraded` when tables are missing.

        Raises:
            ConnectionError: Raised when connectivity check fails.
        """

        try:
            with self._engine.connect() as connection:
                connection.execute(text("SELECT 1"))
                if connection.dialect.name != "postgresql":
                    return HealthStatus(status="ok", detail="database connectivity verified")

                missing_tables = [
                    table_name
                    for table_name in _LEDGER_TABLE_NAMES
                    if connection.execute(
                        text("SELECT to_regclass(:table_name) IS NOT NULL AS present"),
                        {"table_name": table_name},
                    ).scalar_one()
                    is not True
                ]
        except SQLAlchemyError as error:
            raise ConnectionError("database connectivity check failed") from error

        if missing_tables:
            return HealthStatus(
                status="degraded",
                detail=f"ledger tables missing, run migrations: {', '.join(missing_tables)}",
            )
        return HealthStatus(status="ok", detail="database connectivity and ledger schema verified")

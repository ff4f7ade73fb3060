"""HTTP surface for recording ledger transactions and reading ledger state."""

from .application import create_api_application
from .routers import api_create_health_router, api_create_stocks_router

__all__ = ["api_create_health_router", "api_create_stocks_router", "create_api_application"]

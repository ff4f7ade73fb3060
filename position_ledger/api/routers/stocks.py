"""Stocks API router composition for transaction recording and ledger reads."""
# pylint: disable=duplicate-code

from __future__ import annotations

import logging
from decimal import Decimal

from fastapi import APIRouter, Query, status
from fastapi.responses import JSONResponse
from pydantic import AwareDatetime, BaseModel, Field

from position_ledger.config import AppSettings
from position_ledger.db import RealizedPnlEventRecord, StockHoldingRecord, StockTransactionRecord
from position_ledger.domain import (
    MAX_PRICE,
    MAX_QUANTITY,
    Currency,
    LedgerDomainRuleError,
    LedgerInvariantError,
    LedgerLockTimeoutError,
    LedgerValidationError,
    TransactionKind,
)
from position_ledger.ledger import LedgerTransactionServicePort, LedgerVerificationResult, StockTransactionRequest

logger = logging.getLogger(__name__)


class StockTransactionPayload(BaseModel):
    """Request body for recording one stock transaction.

    Attributes:
        owner_id: Owner identifier.
        ticker: Instrument ticker.
        currency: Ledger currency.
        transaction_timestamp_utc: Offset-aware transaction timestamp.
        quantity: Positive integer quantity that fits a bigint column.
        price: Positive unit price that fits the price column.
        kind: Transaction direction.
    """

    owner_id: str = Field(min_length=1)
    ticker: str = Field(min_length=1)
    currency: Currency
    transaction_timestamp_utc: AwareDatetime
    quantity: int = Field(gt=0, le=MAX_QUANTITY)
    price: Decimal = Field(gt=0, le=MAX_PRICE)
    kind: TransactionKind


def api_create_stocks_router(
    settings: AppSettings,
    transaction_service: LedgerTransactionServicePort,
) -> APIRouter:
    """Create stocks router exposing transaction and ledger read APIs.

    Args:
        settings: Runtime settings used for pagination defaults.
        transaction_service: Ledger-layer transaction service.

    Returns:
        APIRouter: Router exposing stocks endpoints.

    Raises:
        ValueError: Raised when dependencies are invalid.
    """

    if settings is None:
        raise ValueError("settings must not be None")
    if transaction_service is None:
        raise ValueError("transaction_service must not be None")

    router = APIRouter(prefix="/v1/stocks", tags=["stocks"])

    @router.post("/transactions")
    def api_stock_transaction_create(payload: StockTransactionPayload) -> JSONResponse:
        """Record one BUY or SELL and return the stored transaction.

        Args:
            payload: Validated request body.

        Returns:
            JSONResponse: Stored transaction payload or error payload.

        Raises:
            RuntimeError: Raised when persistence fails unexpectedly.
        """

        try:
            stored_transaction = transaction_service.ledger_record_transaction(
                StockTransactionRequest(
                    owner_id=payload.owner_id,
                    ticker=payload.ticker,
                    currency=payload.currency,
                    transaction_timestamp_utc=payload.transaction_timestamp_utc,
                    quantity=payload.quantity,
                    price=payload.price,
                    kind=payload.kind,
                )
            )
        except (LedgerValidationError, LedgerDomainRuleError, LedgerLockTimeoutError, LedgerInvariantError) as error:
            return api_ledger_error_response(error)

        return JSONResponse(
            content=api_serialize_stock_transaction(stored_transaction),
            status_code=status.HTTP_201_CREATED,
        )

    @router.get("/transactions")
    def api_stock_transaction_list(
        owner_id: str = Query(min_length=1),
        currency: Currency = Query(),
        limit: int = Query(default=settings.api_default_limit, ge=1),
        offset: int = Query(default=0, ge=0),
    ) -> JSONResponse:
        """List transactions for one owner and currency, newest first.

        Args:
            owner_id: Owner identifier.
            currency: Ledger currency.
            limit: Max rows to return.
            offset: Rows to skip.

        Returns:
            JSONResponse: Transaction list envelope payload.

        Raises:
            RuntimeError: Raised when repository read fails.
        """

        applied_limit = min(limit, settings.api_max_limit)
        try:
            transaction_rows = transaction_service.ledger_list_transactions(
                owner_id=owner_id,
                currency=currency,
                limit=applied_limit,
                offset=offset,
            )
        except LedgerValidationError as error:
            return api_ledger_error_response(error)

        payload = {
            "items": [api_serialize_stock_transaction(row) for row in transaction_rows],
            "page": {
                "limit": limit,
                "applied_limit": applied_limit,
                "offset": offset,
                "returned": len(transaction_rows),
            },
        }
        return JSONResponse(content=payload, status_code=status.HTTP_200_OK)

    @router.get("/holdings")
    def api_stock_holding_list(
        owner_id: str = Query(min_length=1),
        currency: Currency = Query(),
    ) -> JSONResponse:
        """List holdings for one owner and currency.

        Returns:
            JSONResponse: Holding list payload.

        Raises:
            RuntimeError: Raised when repository read fails.
        """

        try:
            holding_rows = transaction_service.ledger_list_holdings(owner_id=owner_id, currency=currency)
        except LedgerValidationError as error:
            return api_ledger_error_response(error)

        payload = {"items": [api_serialize_stock_holding(row) for row in holding_rows]}
        return JSONResponse(content=payload, status_code=status.HTTP_200_OK)

    @router.get("/realized-pnl")
    def api_realized_pnl_list(
        owner_id: str = Query(min_length=1),
        ticker: str = Query(min_length=1),
        currency: Currency = Query(),
    ) -> JSONResponse:
        """List realized profit/loss events for one ledger key.

        Returns:
            JSONResponse: Realized event list payload with total.

        Raises:
            RuntimeError: Raised when repository read fails.
        """

        try:
            event_rows = transaction_service.ledger_list_realized_events(
                owner_id=owner_id,
                ticker=ticker,
                currency=currency,
            )
        except (LedgerValidationError, LedgerLockTimeoutError) as error:
            return api_ledger_error_response(error)

        payload = {
            "items": [api_serialize_realized_event(row) for row in event_rows],
            "total_amount": str(sum((row.amount for row in event_rows), Decimal("0"))),
        }
        return JSONResponse(content=payload, status_code=status.HTTP_200_OK)

    @router.get("/verify")
    def api_ledger_verify(
        owner_id: str = Query(min_length=1),
        ticker: str = Query(min_length=1),
        currency: Currency = Query(),
    ) -> JSONResponse:
        """Replay stored history for one key and report consistency.

        Returns:
            JSONResponse: Verification payload.

        Raises:
            RuntimeError: Raised when repository read fails.
        """

        try:
            verification = transaction_service.ledger_verify_key(owner_id=owner_id, ticker=ticker, currency=currency)
        except (LedgerValidationError, LedgerLockTimeoutError, LedgerInvariantError) as error:
            return api_ledger_error_response(error)

        return JSONResponse(content=api_serialize_verification(verification), status_code=status.HTTP_200_OK)

    return router


def api_ledger_error_response(error: Exception) -> JSONResponse:
    """Map a ledger error to its transport response.

    Args:
        error: Ledger error raised by the service.

    Returns:
        JSONResponse: Error payload with mapped status code.

    Raises:
        RuntimeError: This helper does not raise runtime errors.
    """

    if isinstance(error, LedgerValidationError):
        code, status_code = "INVALID_REQUEST", status.HTTP_400_BAD_REQUEST
    elif isinstance(error, LedgerDomainRuleError):
        code, status_code = "LEDGER_RULE_VIOLATION", status.HTTP_400_BAD_REQUEST
    elif isinstance(error, LedgerLockTimeoutError):
        code, status_code = "LEDGER_KEY_BUSY", status.HTTP_409_CONFLICT
    else:
        logger.error("ledger request failed with internal inconsistency: %s", error)
        code, status_code = "LEDGER_INVARIANT_VIOLATION", status.HTTP_500_INTERNAL_SERVER_ERROR

    payload = {"status": "error", "code": code, "message": str(error)}
    return JSONResponse(content=payload, status_code=status_code)


def api_serialize_stock_transaction(row: StockTransactionRecord) -> dict[str, object]:
    """Serialize one stored transaction to JSON payload.

    Args:
        row: Typed transaction row.

    Returns:
        dict[str, object]: JSON-serializable transaction payload.

    Raises:
        RuntimeError: This helper does not raise runtime errors.
    """

    return {
        "stock_transaction_id": str(row.stock_transaction_id),
        "owner_id": row.key.owner_id,
        "ticker": row.key.ticker,
        "currency": row.key.currency.value,
        "kind": row.kind.value,
        "quantity": row.quantity,
        "price": str(row.price),
        "transaction_timestamp_utc": row.transaction_timestamp_utc.isoformat(),
        "created_at_utc": row.created_at_utc.isoformat(),
    }


def api_serialize_stock_holding(row: StockHoldingRecord) -> dict[str, object]:
    """Serialize one holding row to JSON payload."""

    return {
        "stock_holding_id": str(row.stock_holding_id),
        "owner_id": row.key.owner_id,
        "ticker": row.key.ticker,
        "currency": row.key.currency.value,
        "quantity": row.quantity,
        "average_cost": str(row.average_cost),
        "updated_at_utc": row.updated_at_utc.isoformat(),
    }


def api_serialize_realized_event(row: RealizedPnlEventRecord) -> dict[str, object]:
    """Serialize one realized event row to JSON payload."""

    return {
        "realized_pnl_event_id": str(row.realized_pnl_event_id),
        "owner_id": row.key.owner_id,
        "ticker": row.key.ticker,
        "currency": row.key.currency.value,
        "realized_at_utc": row.realized_at_utc.isoformat(),
        "amount": str(row.amount),
    }


def api_serialize_verification(verification: LedgerVerificationResult) -> dict[str, object]:
    """Serialize one verification result to JSON payload."""

    return {
        "owner_id": verification.key.owner_id,
        "ticker": verification.key.ticker,
        "currency": verification.key.currency.value,
        "consistent": verification.consistent,
        "transaction_count": verification.transaction_count,
        "expected_quantity": verification.expected_quantity,
        "stored_quantity": verification.stored_quantity,
        "expected_average_cost": (
            None if verification.expected_average_cost is None else str(verification.expected_average_cost)
        ),
        "stored_average_cost": None if verification.stored_average_cost is None else str(verification.stored_average_cost),
        "mismatches": list(verification.mismatches),
    }


__all__ = [
    "StockTransactionPayload",
    "api_create_stocks_router",
    "api_ledger_error_response",
    "api_serialize_realized_event",
    "api_serialize_stock_holding",
    "api_serialize_stock_transaction",
    "api_serialize_verification",
]

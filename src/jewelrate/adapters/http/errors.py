# src/jewelrate/adapters/http/errors.py
"""
HTTP Error Envelope - Domain Errors to Status Codes

Every failure leaves the API as
  {"success": false, "message": ..., "timestamp": ..., "details": ...}
with a status code chosen from the domain error type.

Files that USE this module:
- jewelrate.app (install_error_handlers)
- jewelrate.adapters.http.routes (error_response for verification failures)

Files that this module USES:
- jewelrate.domain.errors (error hierarchy)
"""
import logging
from datetime import datetime, timezone
from typing import Any, Optional, Tuple, Type

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from jewelrate.domain.errors import (
    AuthenticationError,
    AuthorizationError,
    DomainError,
    InsufficientStock,
    InvalidSignature,
    NotFoundError,
    OrderStateError,
    PaymentGatewayError,
    PaymentGatewayNotConfigured,
    StockCommitRace,
    UpstreamError,
    ValidationError,
)

logger = logging.getLogger(__name__)

# First match wins; subclasses before their bases
STATUS_BY_ERROR: Tuple[Tuple[Type[DomainError], int], ...] = (
    (InsufficientStock, 409),
    (StockCommitRace, 409),
    (OrderStateError, 409),
    (InvalidSignature, 400),
    (ValidationError, 400),
    (AuthenticationError, 401),
    (AuthorizationError, 403),
    (NotFoundError, 404),
    (PaymentGatewayError, 502),
    (PaymentGatewayNotConfigured, 503),
    (UpstreamError, 503),
)


def error_response(status_code: int, message: str, details: Optional[Any] = None,
                   **fields: Any) -> JSONResponse:
    """Build the error envelope; extra keyword fields are added at the top level."""
    body = {
        "success": False,
        "message": message,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        **fields,
    }
    if details is not None:
        body["details"] = details
    return JSONResponse(status_code=status_code, content=body)


def status_for(error: DomainError) -> int:
    for error_type, status_code in STATUS_BY_ERROR:
        if isinstance(error, error_type):
            return status_code
    return 400


def _details_for(error: DomainError) -> Optional[Any]:
    if isinstance(error, InsufficientStock):
        return [
            {"productId": s.product_id, "requested": s.requested, "available": s.available}
            for s in error.shortages
        ]
    return None


def install_error_handlers(app: FastAPI) -> None:
    """Register the envelope handlers on an application."""

    @app.exception_handler(DomainError)
    async def _domain_error(request: Request, exc: DomainError):
        status_code = status_for(exc)
        if status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        else:
            logger.info("%s %s rejected (%d): %s", request.method, request.url.path, status_code, exc)
        return error_response(status_code, str(exc), _details_for(exc))

    @app.exception_handler(RequestValidationError)
    async def _request_invalid(request: Request, exc: RequestValidationError):
        errors = [
            {"field": ".".join(str(p) for p in e.get("loc", ())), "message": e.get("msg")}
            for e in exc.errors()
        ]
        return error_response(400, "Invalid request", errors)

    @app.exception_handler(HTTPException)
    async def _http_error(request: Request, exc: HTTPException):
        return error_response(exc.status_code, str(exc.detail))

    @app.exception_handler(Exception)
    async def _unexpected(request: Request, exc: Exception):
        logger.error("Unhandled error on %s %s: %s", request.method, request.url.path, exc, exc_info=True)
        return error_response(500, "Internal server error")

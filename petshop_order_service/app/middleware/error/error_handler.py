"""
Error handling for the order service.

Domain errors raised by the lifecycle engine are translated into HTTP statuses
here and rendered in the common ``{"error": {...}}`` envelope.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from ...core.exceptions import (
    ConcurrentModificationError,
    InsufficientStockError,
    InvalidTransitionError,
    NotFoundError,
    OrderServiceError,
)
from ...utils.logging import setup_order_logging

logger = setup_order_logging("order_service_error_handler")

# Most specific first; the first isinstance match wins
DOMAIN_ERROR_STATUS = (
    (NotFoundError, 404),
    (InvalidTransitionError, 409),
    (InsufficientStockError, 409),
    (ConcurrentModificationError, 409),
)


def status_for(exc: OrderServiceError) -> int:
    for exc_type, status_code in DOMAIN_ERROR_STATUS:
        if isinstance(exc, exc_type):
            return status_code
    return 400


def _request_identity(request: Request) -> Dict[str, Any]:
    return {
        "correlation_id": getattr(request.state, "correlation_id", None) or "unknown",
        "user_id": getattr(request.state, "user_id", None) or "anonymous",
        "path": request.url.path,
        "method": request.method,
    }


def error_envelope(
    request: Request,
    status_code: int,
    error_type: str,
    message: str,
    details: Optional[Dict[str, Any]] = None,
) -> JSONResponse:
    """Render an error in the service envelope; 4xx responses are logged at WARNING"""
    identity = _request_identity(request)
    body: Dict[str, Any] = {
        "type": error_type,
        "message": message,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        **identity,
    }
    if details:
        body["details"] = details

    if status_code < 500:
        logger.warning(
            f"Request rejected: {error_type}",
            extra={"status_code": status_code, "error_type": error_type, **identity},
        )

    return JSONResponse(
        status_code=status_code,
        content={"error": body},
        headers={"X-Correlation-ID": str(identity["correlation_id"])},
    )


class OrderServiceErrorHandler:
    """Exception handlers registered on the order service application"""

    @staticmethod
    async def domain_error(request: Request, exc: OrderServiceError) -> JSONResponse:
        return error_envelope(
            request, status_for(exc), exc.code, exc.message, exc.details
        )

    @staticmethod
    async def http_error(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        return error_envelope(request, exc.status_code, "http_error", str(exc.detail))

    @staticmethod
    async def validation_error(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        problems = [
            {
                "field": ".".join(str(part) for part in error["loc"]),
                "message": error["msg"],
                "type": error["type"],
            }
            for error in exc.errors()
        ]
        return error_envelope(
            request,
            422,
            "validation_error",
            "Request validation failed",
            {"validation_errors": problems},
        )

    @staticmethod
    async def value_error(request: Request, exc: ValueError) -> JSONResponse:
        # Malformed arguments such as a non-positive quantity or unknown status
        return error_envelope(request, 400, "value_error", str(exc))

    @staticmethod
    async def unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            "Unhandled exception",
            exc_info=exc,
            extra={"exception_type": type(exc).__name__, **_request_identity(request)},
        )
        return error_envelope(
            request,
            500,
            "internal_server_error",
            "An internal server error occurred",
        )

    @classmethod
    def setup_error_handlers(cls, app: FastAPI) -> None:
        handlers = {
            OrderServiceError: cls.domain_error,
            StarletteHTTPException: cls.http_error,
            RequestValidationError: cls.validation_error,
            ValueError: cls.value_error,
            Exception: cls.unexpected_error,
        }
        for exc_type, handler in handlers.items():
            app.add_exception_handler(exc_type, handler)


def setup_order_error_handling(app: FastAPI) -> None:
    OrderServiceErrorHandler.setup_error_handlers(app)
    logger.info("Order service error handlers registered")

"""
Domain errors and their HTTP mapping

Services raise these; register_exception_handlers() turns them into the
uniform error body:

    {"status": "error", "error": "<code>", "detail": "<message>", ...extra}
"""
import logging
from typing import Any, Dict, Optional

import psycopg2
from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class BazaarError(Exception):
    """Base class for errors that are safe to show to API clients"""

    status_code: int = status.HTTP_400_BAD_REQUEST
    error: str = "bad_request"

    def __init__(self, detail: str, **extra: Any):
        super().__init__(detail)
        self.detail = detail
        self.extra: Dict[str, Any] = extra

    def to_dict(self) -> dict:
        return {"status": "error", "error": self.error, "detail": self.detail, **self.extra}


class NotFoundError(BazaarError):
    status_code = status.HTTP_404_NOT_FOUND
    error = "not_found"


class EmptyCartError(BazaarError):
    error = "empty_cart"


class InsufficientStockError(BazaarError):
    error = "insufficient_stock"

    def __init__(self, product_id: int, product_name: str, available: int):
        super().__init__(
            f'Insufficient stock for "{product_name}" - only {available} left',
            product_id=product_id,
            available=available,
        )
        self.product_id = product_id
        self.product_name = product_name
        self.available = available


class UnauthorizedError(BazaarError):
    status_code = status.HTTP_401_UNAUTHORIZED
    error = "unauthorized"


class ForbiddenError(BazaarError):
    status_code = status.HTTP_403_FORBIDDEN
    error = "forbidden"


class InvalidStatusTransitionError(BazaarError):
    status_code = status.HTTP_409_CONFLICT
    error = "invalid_status_transition"

    def __init__(self, current: str, requested: str):
        super().__init__(
            f"Cannot move order from {current} to {requested}",
            current=current,
            requested=requested,
        )


class ConflictError(BazaarError):
    status_code = status.HTTP_409_CONFLICT
    error = "conflict"


class ConcurrentUpdateError(ConflictError):
    error = "concurrent_update"


class SignatureInvalidError(BazaarError):
    error = "signature_invalid"


class ExternalServiceError(BazaarError):
    status_code = status.HTTP_502_BAD_GATEWAY
    error = "external_service_error"

    def __init__(self, detail: str, order_id: Optional[int] = None):
        extra = {"retryable": True}
        if order_id is not None:
            extra["order_id"] = order_id
        super().__init__(detail, **extra)


def register_exception_handlers(app: FastAPI, expose_internal_errors: bool = False) -> None:
    """Install the boundary handlers on the application"""

    @app.exception_handler(BazaarError)
    async def handle_bazaar_error(request: Request, exc: BazaarError):
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "status": "error",
                "error": "validation_error",
                "detail": "Request validation failed",
                "errors": jsonable_encoder(exc.errors()),
            },
        )

    @app.exception_handler(psycopg2.OperationalError)
    async def handle_store_unavailable(request: Request, exc: psycopg2.OperationalError):
        # 503 tells the payment provider to redeliver
        logger.error(f"Database unavailable while handling {request.url.path}: {exc}")
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "error", "error": "store_unavailable", "detail": "Service temporarily unavailable"},
        )

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        detail = str(exc) if expose_internal_errors else "Internal server error"
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"status": "error", "error": "internal_error", "detail": detail},
        )

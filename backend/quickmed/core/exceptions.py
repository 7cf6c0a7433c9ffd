"""
Error taxonomy and the uniform JSON error envelope.

Handlers raise HTTPExceptions built by BusinessError; the exception handlers
registered in main.py turn every error into:

    {"status": "fail" | "error", "message": "..."}

"fail" is used for client errors (4xx), "error" for server errors (5xx).
Internal details never reach the client; they are logged server-side.
"""
import logging
from typing import Optional

from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class StockError(Exception):
    """Domain error raised by the stock layer; mapped to 400 by the routes."""

    def __init__(self, message: str, product_id: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.product_id = product_id


class BatchValidationError(StockError):
    """A batch failed its write-time invariants (dates, quantities)."""


class InsufficientStockError(StockError):
    """No active batch can cover an order item."""

    def __init__(self, message: str, product_id: int, product_name: str,
                 requested: int, available: int):
        super().__init__(message, product_id=product_id)
        self.product_name = product_name
        self.requested = requested
        self.available = available


class BusinessError:
    """Factories for HTTP errors with safe messages."""

    @staticmethod
    def not_found(resource: str = "Resource", reason: str = "") -> HTTPException:
        """
        404 for a missing record.

        Example:
            if not batch:
                raise BusinessError.not_found("Batch")
        """
        if reason:
            logger.info(f"Not found: {resource} - {reason}")
        return HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No {resource.lower()} found with that ID",
        )

    @staticmethod
    def unauthorized(reason: str = "") -> HTTPException:
        """
        Generic 401 for all authentication failures.

        Same response for wrong password and unknown email.
        """
        logger.warning(f"Unauthorized access attempt: {reason}")
        return HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication failed",
            headers={"WWW-Authenticate": "Bearer"},
        )

    @staticmethod
    def forbidden(reason: str = "") -> HTTPException:
        logger.warning(f"Forbidden access: {reason}")
        return HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You do not have permission to perform this action",
        )

    @staticmethod
    def bad_request(detail: str) -> HTTPException:
        """
        400 for input validation / business rule errors.

        OK to include specific details here since the caller caused the issue.
        Examples: "Expiry date must be after manufacturing date"
        """
        logger.info(f"Bad request: {detail}")
        return HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail,
        )

    @staticmethod
    def conflict(detail: str) -> HTTPException:
        """
        409 for unique-key conflicts.
        Example: "Batch number already exists"
        """
        logger.info(f"Conflict: {detail}")
        return HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=detail,
        )


def _error_body(status_code: int, message: str) -> dict:
    return {
        "status": "error" if status_code >= 500 else "fail",
        "message": message,
    }


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(exc.status_code, str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    # Missing/invalid fields are a 400 like every other validation failure
    messages = []
    for err in exc.errors():
        field = ".".join(str(part) for part in err.get("loc", ()) if part != "body")
        messages.append(f"{field}: {err.get('msg')}" if field else err.get("msg", "Invalid input"))
    message = "; ".join(messages) or "Invalid input"
    logger.info(f"Validation failed on {request.method} {request.url.path}: {message}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=_error_body(status.HTTP_400_BAD_REQUEST, message),
    )


async def stock_error_handler(request: Request, exc: StockError):
    logger.info(f"Stock rule violated on {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=_error_body(status.HTTP_400_BAD_REQUEST, exc.message),
    )


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(
        f"Unhandled error on {request.method} {request.url.path}: {type(exc).__name__}: {exc}",
        exc_info=exc,
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_error_body(500, "An internal error occurred. Please try again later."),
    )

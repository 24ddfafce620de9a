from typing import Any

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import ORJSONResponse


class AppError(Exception):
    """Base application error with consistent schema."""

    def __init__(
        self,
        message: str,
        code: str = "ERROR",
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)


class ValidationError(AppError):
    def __init__(self, message: str = "Validation error", details: dict[str, Any] | None = None):
        super().__init__(
            message,
            code="VALIDATION_ERROR",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details=details,
        )


class UnauthorizedError(AppError):
    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message, code="UNAUTHORIZED", status_code=status.HTTP_401_UNAUTHORIZED)


class ForbiddenError(AppError):
    def __init__(self, message: str = "Forbidden"):
        super().__init__(message, code="FORBIDDEN", status_code=status.HTTP_403_FORBIDDEN)


class NotFoundError(AppError):
    def __init__(self, message: str = "Not found"):
        super().__init__(message, code="NOT_FOUND", status_code=status.HTTP_404_NOT_FOUND)


class ConflictError(AppError):
    def __init__(self, message: str = "Conflict", details: dict[str, Any] | None = None):
        super().__init__(message, code="CONFLICT", status_code=status.HTTP_409_CONFLICT, details=details)


class BadRequestError(AppError):
    def __init__(self, message: str = "Bad request", details: dict[str, Any] | None = None):
        super().__init__(message, code="BAD_REQUEST", status_code=status.HTTP_400_BAD_REQUEST, details=details)


class AdjustmentError(AppError):
    """Credit adjustment could not be applied to the target user."""

    def __init__(
        self,
        message: str = "User credits update failed",
        code: str = "ADJUSTMENT_FAILED",
        status_code: int = status.HTTP_404_NOT_FOUND,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, code=code, status_code=status_code, details=details)


class InsufficientCreditsError(AdjustmentError):
    def __init__(self, message: str = "Insufficient credits", details: dict[str, Any] | None = None):
        super().__init__(
            message,
            code="INSUFFICIENT_CREDITS",
            status_code=status.HTTP_402_PAYMENT_REQUIRED,
            details=details,
        )


class AdjustmentPendingError(AdjustmentError):
    """Another adjustment holds the idempotency key but has not confirmed a balance."""

    def __init__(self, message: str = "Credit adjustment in progress or unconfirmed"):
        super().__init__(message, code="ADJUSTMENT_PENDING", status_code=status.HTTP_409_CONFLICT)


class StoreUnavailableError(AppError):
    def __init__(self, message: str = "Store unavailable"):
        super().__init__(message, code="STORE_UNAVAILABLE", status_code=status.HTTP_503_SERVICE_UNAVAILABLE)


def error_response(request: Request, exc: AppError) -> ORJSONResponse:
    body = {
        "error": {
            "message": exc.message,
            "code": exc.code,
            "details": exc.details,
        }
    }
    if hasattr(request.state, "request_id"):
        body["request_id"] = request.state.request_id
    return ORJSONResponse(status_code=exc.status_code, content=body)


async def app_exception_handler(request: Request, exc: AppError) -> ORJSONResponse:
    return error_response(request, exc)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> ORJSONResponse:
    errors = [{k: v for k, v in e.items() if k != "ctx"} for e in exc.errors()]
    return error_response(request, ValidationError(details={"errors": errors}))


async def generic_exception_handler(request: Request, exc: Exception) -> ORJSONResponse:
    from imaginify.core.logging import get_logger
    get_logger(__name__).exception("unhandled_exception", exc_info=exc)
    return error_response(request, AppError("Internal server error", code="INTERNAL_ERROR"))

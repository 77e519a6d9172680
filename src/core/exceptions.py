"""Custom exceptions for the application."""
from typing import Any, Optional

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
import structlog

logger = structlog.get_logger()


class AppException(Exception):
    """Base application exception."""

    def __init__(
        self,
        message: str,
        code: str = "APP_ERROR",
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: Optional[dict] = None,
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)


class InvalidEmailError(AppException):
    """Raised when an email address is missing or malformed."""

    def __init__(self, message: str = "Please enter a valid email address."):
        super().__init__(
            message=message,
            code="INVALID_EMAIL",
            status_code=status.HTTP_400_BAD_REQUEST,
            details={"field": "email"},
        )


class SubscriberAlreadyExistsError(AppException):
    """Raised when an operator adds an address that is already registered."""

    def __init__(self, message: str = "That email is already subscribed."):
        super().__init__(
            message=message,
            code="ALREADY_SUBSCRIBED",
            status_code=status.HTTP_409_CONFLICT,
        )


class ResourceNotFound(AppException):
    """Raised when a resource is not found."""

    def __init__(self, resource: str, identifier: Any):
        super().__init__(
            message=f"{resource} not found.",
            code="NOT_FOUND",
            status_code=status.HTTP_404_NOT_FOUND,
            details={
                "resource": resource,
                "identifier": str(identifier),
            },
        )


class AuthenticationError(AppException):
    """Raised when an operator-only action is attempted without credentials."""

    def __init__(self, message: str = "Unauthorized."):
        super().__init__(
            message=message,
            code="AUTHENTICATION_ERROR",
            status_code=status.HTTP_401_UNAUTHORIZED,
            details={"action": "login_required"},
        )


class BroadcastError(AppException):
    """Raised when a broadcast cannot start (nothing to send, nobody to send to)."""

    def __init__(self, message: str):
        super().__init__(
            message=message,
            code="BROADCAST_ERROR",
            status_code=status.HTTP_400_BAD_REQUEST,
        )


class ExternalServiceError(AppException):
    """Raised when an external service fails or is not configured."""

    def __init__(self, service: str, message: str = "External service unavailable."):
        super().__init__(
            message=message,
            code="EXTERNAL_SERVICE_ERROR",
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            details={"service": service},
        )


class StoreUnavailableError(AppException):
    """Raised when the subscriber store fails; the detail stays in the logs."""

    def __init__(self, message: str = "Something went wrong. Please try again."):
        super().__init__(
            message=message,
            code="STORE_ERROR",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )


# ===========================================
# Exception Handlers
# ===========================================

def error_response(
    status_code: int,
    code: str,
    message: str,
    details: Optional[dict] = None,
    headers: Optional[dict] = None,
) -> JSONResponse:
    """Build the ``{"error": {code, message, details}}`` envelope."""
    return JSONResponse(
        status_code=status_code,
        content={
            "error": {
                "code": code,
                "message": message,
                "details": details or {},
            }
        },
        headers=headers,
    )


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Handle custom application exceptions."""
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        "Application exception",
        code=exc.code,
        message=exc.message,
        path=request.url.path,
        method=request.method,
    )
    return error_response(exc.status_code, exc.code, exc.message, exc.details)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Handle HTTP exceptions raised by routing (404, 405) and security schemes."""
    return error_response(
        exc.status_code,
        "HTTP_ERROR",
        str(exc.detail),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handle request body / query validation errors."""
    errors = [
        {
            "field": ".".join(str(loc) for loc in error["loc"]),
            "message": error["msg"],
            "type": error["type"],
        }
        for error in exc.errors()
    ]
    logger.warning("Validation error", path=request.url.path, errors=errors)

    return error_response(
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        "VALIDATION_ERROR",
        "Invalid request data.",
        {"errors": errors},
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions. Internal detail goes to the log only."""
    logger.error(
        "Unexpected error",
        path=request.url.path,
        method=request.method,
        error=str(exc),
        exc_info=True,
    )
    return error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "INTERNAL_ERROR",
        "Something went wrong. Please try again later.",
    )


def register_exception_handlers(app):
    """Register all exception handlers with the FastAPI app."""
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

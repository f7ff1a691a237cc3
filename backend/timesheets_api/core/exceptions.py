"""
Application exceptions and the global exception handlers.
Every rejected action is rendered as a tagged error with a human-readable message.
"""

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import InterfaceError, OperationalError
from starlette.exceptions import HTTPException as StarletteHTTPException
import logging
from typing import Any

from timesheets_api.core.integrations.observability import record_exception


logger = logging.getLogger(__name__)


class AppException(Exception):
    """Base application exception."""

    code = "application_error"

    def __init__(self, message: str, status_code: int = 500, details: Any = None):
        self.message = message
        self.status_code = status_code
        self.details = details
        super().__init__(self.message)


class UnauthorizedError(AppException):
    """Actor lacks the role or relationship required for the action."""

    code = "unauthorized"

    def __init__(self, message: str = "You are not allowed to perform this action", details: Any = None):
        super().__init__(message, status.HTTP_403_FORBIDDEN, details)


class NotFoundError(AppException):
    """Referenced timesheet or user does not exist (or is not visible)."""

    code = "not_found"

    def __init__(self, message: str = "Not found", details: Any = None):
        super().__init__(message, status.HTTP_404_NOT_FOUND, details)


class InvalidTransitionError(AppException):
    """Action is not legal from the timesheet's current status."""

    code = "invalid_transition"

    def __init__(self, message: str, details: Any = None):
        super().__init__(message, status.HTTP_409_CONFLICT, details)


class DuplicateSignatureError(AppException):
    """Signer already signed this timesheet."""

    code = "duplicate_signature"

    def __init__(self, message: str = "You have already signed this timesheet", details: Any = None):
        super().__init__(message, status.HTTP_409_CONFLICT, details)


class ValidationError(AppException):
    """Missing or malformed input, e.g. an empty rejection reason."""

    code = "validation_error"

    def __init__(self, message: str, details: Any = None):
        super().__init__(message, status.HTTP_422_UNPROCESSABLE_ENTITY, details)


class ServiceUnavailableError(AppException):
    """Backing data store or identity provider could not be reached."""

    code = "service_unavailable"

    def __init__(self, message: str = "Service temporarily unavailable", details: Any = None):
        super().__init__(message, status.HTTP_503_SERVICE_UNAVAILABLE, details)


def _error_body(request: Request, exc: AppException) -> dict:
    return {
        "error": {
            "code": exc.code,
            "message": exc.message,
            "details": exc.details,
            "path": request.url.path,
        }
    }


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Handle custom application exceptions."""
    if exc.status_code >= 500:
        logger.error(
            f"Application exception: {exc.message}",
            extra={
                "status_code": exc.status_code,
                "path": request.url.path,
                "details": exc.details,
            },
        )
        record_exception(exc, request)
    else:
        logger.warning(
            f"Rejected request: {exc.message}",
            extra={
                "error_code": exc.code,
                "status_code": exc.status_code,
                "path": request.url.path,
            },
        )

    return JSONResponse(status_code=exc.status_code, content=_error_body(request, exc))


async def database_unavailable_handler(request: Request, exc: Exception) -> JSONResponse:
    """Translate lost database connectivity into a generic service error."""
    return await app_exception_handler(
        request,
        ServiceUnavailableError(details={"exception_type": type(exc).__name__}),
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Handle HTTP exceptions."""
    logger.warning(
        f"HTTP exception: {exc.detail}",
        extra={
            "status_code": exc.status_code,
            "path": request.url.path,
        },
    )

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": {
                "message": exc.detail,
                "status_code": exc.status_code,
                "path": request.url.path,
            }
        },
        headers=getattr(exc, "headers", None),
    )


def _serialize_validation_errors(errors: list) -> list:
    """Convert validation errors to JSON-serializable format."""
    serialized = []
    for error in errors:
        serialized_error = {}
        for key, value in error.items():
            if key == "ctx" and isinstance(value, dict):
                # ctx may carry the raising exception instance
                serialized_error[key] = {
                    ctx_key: str(ctx_value) if isinstance(ctx_value, Exception) else ctx_value
                    for ctx_key, ctx_value in value.items()
                }
            elif isinstance(value, Exception):
                serialized_error[key] = str(value)
            else:
                serialized_error[key] = value
        serialized.append(serialized_error)
    return serialized


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handle request validation errors."""
    serialized_errors = _serialize_validation_errors(exc.errors())

    logger.warning(
        f"Validation error: {serialized_errors}",
        extra={
            "path": request.url.path,
            "errors": serialized_errors,
        },
    )

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error": {
                "code": ValidationError.code,
                "message": "Validation error",
                "details": serialized_errors,
                "path": request.url.path,
            }
        },
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions."""
    logger.exception(
        f"Unhandled exception: {str(exc)}",
        extra={
            "path": request.url.path,
            "exception_type": type(exc).__name__,
        },
    )

    record_exception(exc, request)

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": {
                "message": "Internal server error",
                "path": request.url.path,
            }
        },
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI app."""
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(OperationalError, database_unavailable_handler)
    app.add_exception_handler(InterfaceError, database_unavailable_handler)
    app.add_exception_handler(ConnectionRefusedError, database_unavailable_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

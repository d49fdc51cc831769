"""
Global exception handlers for Chat Relay API.

Provides centralized error handling with consistent response formatting,
logging, and request context integration. Errors raised while a stream is
open never reach these handlers; they are turned into ``error`` frames.
"""

from __future__ import annotations

import traceback

from typing import Any

import asyncpg

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from openai import (
    APIError as OpenAIAPIError,
    AuthenticationError as OpenAIAuthError,
    RateLimitError as OpenAIRateLimitError,
)

from api.middleware.request_context import get_request_id
from core.constants import get_settings
from models.error_models import (
    ErrorCode,
    ErrorDetail,
    ErrorResponse,
    get_status_code,
)
from utils.logger import logger


class AppException(Exception):
    """Base application exception with error code support.

    Example:
        raise AppException(
            code=ErrorCode.CHAT_NOT_FOUND,
            message="Chat not found",
            details={"chat_id": chat_id},
        )
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        details: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ):
        self.code = code
        self.message = message
        self.details = details
        self.cause = cause
        super().__init__(message)

    @property
    def status_code(self) -> int:
        return get_status_code(self.code)


class AuthenticationError(AppException):
    """Missing/invalid credentials, or a requester acting on a chat they do not own."""

    def __init__(
        self,
        message: str = "Authentication required",
        code: ErrorCode = ErrorCode.AUTH_REQUIRED,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(code=code, message=message, details=details)


class ResourceNotFoundError(AppException):
    """Resource not found errors."""

    def __init__(
        self,
        resource: str,
        resource_id: str | None = None,
        code: ErrorCode = ErrorCode.RESOURCE_NOT_FOUND,
    ):
        message = f"{resource} not found"
        if resource_id:
            message = f"{resource} '{resource_id}' not found"
        super().__init__(code=code, message=message, details={"resource": resource, "id": resource_id})


class ChatNotFoundError(ResourceNotFoundError):
    def __init__(self, chat_id: str):
        super().__init__(resource="Chat", resource_id=chat_id, code=ErrorCode.CHAT_NOT_FOUND)


class DocumentNotFoundError(ResourceNotFoundError):
    def __init__(self, document_id: str):
        super().__init__(resource="Document", resource_id=document_id, code=ErrorCode.DOCUMENT_NOT_FOUND)


class MessageNotFoundError(ResourceNotFoundError):
    def __init__(self, message_id: str):
        super().__init__(resource="Message", resource_id=message_id, code=ErrorCode.MESSAGE_NOT_FOUND)


class ValidationException(AppException):
    """Bad request errors with optional field-level details."""

    def __init__(
        self,
        message: str = "Validation error",
        errors: list[ErrorDetail] | None = None,
        code: ErrorCode = ErrorCode.VALIDATION_ERROR,
    ):
        super().__init__(
            code=code,
            message=message,
            details={"errors": [e.model_dump() for e in errors]} if errors else None,
        )
        self.errors = errors or []


class ExternalServiceError(AppException):
    """Model provider, blob storage or tool backend failures."""

    def __init__(
        self,
        service: str,
        message: str,
        code: ErrorCode = ErrorCode.EXTERNAL_SERVICE_ERROR,
        cause: Exception | None = None,
    ):
        super().__init__(
            code=code,
            message=f"{service}: {message}",
            details={"service": service},
            cause=cause,
        )


class DatabaseError(AppException):
    """Storage write or read failures."""

    def __init__(
        self,
        message: str = "Database error",
        code: ErrorCode = ErrorCode.DATABASE_ERROR,
        cause: Exception | None = None,
    ):
        super().__init__(code=code, message=message, cause=cause)


def _create_error_response(
    code: ErrorCode,
    message: str,
    request: Request | None = None,
    details: list[ErrorDetail] | None = None,
    debug_info: dict[str, Any] | None = None,
) -> ErrorResponse:
    return ErrorResponse(
        code=code,
        message=message,
        request_id=get_request_id(),
        path=request.url.path if request else None,
        details=details,
        debug=debug_info,
    )


def _log_error(error: Exception, code: ErrorCode, status_code: int) -> None:
    """Log at error level for 5xx, warning for 4xx."""
    if status_code >= 500:
        logger.error(
            f"Server error: {code.value} - {error}",
            exc_info=True,
            error_code=code.value,
            status_code=status_code,
        )
    elif status_code >= 400:
        logger.warning(
            f"Client error: {code.value} - {error}",
            error_code=code.value,
            status_code=status_code,
        )


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Handle application-specific exceptions."""
    status_code = exc.status_code
    settings = get_settings()

    debug_info = None
    if settings.debug:
        debug_info = {
            "exception_type": type(exc).__name__,
            "cause": str(exc.cause) if exc.cause else None,
        }

    details = None
    if exc.details:
        if "errors" in exc.details:
            details = [ErrorDetail(**e) for e in exc.details["errors"]]
        else:
            details = [ErrorDetail(message=str(v), field=k) for k, v in exc.details.items()]

    error_response = _create_error_response(
        code=exc.code,
        message=exc.message,
        request=request,
        details=details,
        debug_info=debug_info,
    )
    _log_error(exc, exc.code, status_code)

    return JSONResponse(
        status_code=status_code,
        content=error_response.to_dict(include_debug=settings.debug),
    )


_HTTP_STATUS_TO_CODE: dict[int, ErrorCode] = {
    400: ErrorCode.VALIDATION_ERROR,
    401: ErrorCode.AUTH_REQUIRED,
    404: ErrorCode.RESOURCE_NOT_FOUND,
    409: ErrorCode.RESOURCE_CONFLICT,
    422: ErrorCode.VALIDATION_ERROR,
    429: ErrorCode.EXTERNAL_RATE_LIMITED,
    502: ErrorCode.EXTERNAL_SERVICE_ERROR,
    503: ErrorCode.EXTERNAL_TIMEOUT,
}


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handle FastAPI HTTPException with consistent formatting."""
    code = _HTTP_STATUS_TO_CODE.get(exc.status_code, ErrorCode.INTERNAL_ERROR)
    message = exc.detail if isinstance(exc.detail, str) else str(exc.detail)

    error_response = _create_error_response(code=code, message=message, request=request)
    _log_error(exc, code, exc.status_code)

    return JSONResponse(status_code=exc.status_code, content=error_response.to_dict())


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Request body/query validation failures are reported as 400."""
    details = [
        ErrorDetail(
            field=".".join(str(loc) for loc in error["loc"]),
            message=error["msg"],
            code=error["type"],
        )
        for error in exc.errors()
    ]

    error_response = _create_error_response(
        code=ErrorCode.VALIDATION_ERROR,
        message="Request validation failed",
        request=request,
        details=details,
    )
    _log_error(exc, ErrorCode.VALIDATION_ERROR, 400)

    return JSONResponse(status_code=400, content=error_response.to_dict())


async def openai_exception_handler(request: Request, exc: OpenAIAPIError) -> JSONResponse:
    """Handle OpenAI API errors raised outside a stream (e.g. title generation)."""
    if isinstance(exc, OpenAIAuthError):
        code = ErrorCode.OPENAI_ERROR
        status_code = 502
        message = "Model provider authentication failed"
    elif isinstance(exc, OpenAIRateLimitError):
        code = ErrorCode.EXTERNAL_RATE_LIMITED
        status_code = 429
        message = "Model provider rate limit exceeded"
    else:
        code = ErrorCode.OPENAI_ERROR
        status_code = 502
        message = f"Model provider error: {exc}"

    error_response = _create_error_response(code=code, message=message, request=request)
    _log_error(exc, code, status_code)

    return JSONResponse(status_code=status_code, content=error_response.to_dict())


async def asyncpg_exception_handler(request: Request, exc: asyncpg.PostgresError) -> JSONResponse:
    """Handle PostgreSQL database errors."""
    settings = get_settings()
    debug_info = None
    if settings.debug:
        debug_info = {
            "pg_error_code": getattr(exc, "sqlstate", None),
            "pg_error_class": type(exc).__name__,
        }

    error_response = _create_error_response(
        code=ErrorCode.DATABASE_ERROR,
        message="Database operation failed",
        request=request,
        debug_info=debug_info,
    )
    _log_error(exc, ErrorCode.DATABASE_ERROR, 500)

    return JSONResponse(
        status_code=500,
        content=error_response.to_dict(include_debug=settings.debug),
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions."""
    settings = get_settings()

    logger.error(
        f"Unhandled exception: {type(exc).__name__}: {exc}",
        exc_info=True,
    )

    debug_info = None
    if settings.debug:
        debug_info = {
            "exception_type": type(exc).__name__,
            "exception_message": str(exc),
            "traceback": traceback.format_exc(),
        }

    error_response = _create_error_response(
        code=ErrorCode.INTERNAL_UNEXPECTED,
        message="An unexpected error occurred",
        request=request,
        debug_info=debug_info,
    )

    return JSONResponse(
        status_code=500,
        content=error_response.to_dict(include_debug=settings.debug),
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI application."""
    # Starlette types handlers as taking Exception; narrower handlers are fine at runtime
    app.add_exception_handler(AppException, app_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(HTTPException, http_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, validation_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(OpenAIAPIError, openai_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(asyncpg.PostgresError, asyncpg_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, generic_exception_handler)


__all__ = [
    "AppException",
    "AuthenticationError",
    "ChatNotFoundError",
    "DatabaseError",
    "DocumentNotFoundError",
    "ExternalServiceError",
    "MessageNotFoundError",
    "ResourceNotFoundError",
    "ValidationException",
    "register_exception_handlers",
]

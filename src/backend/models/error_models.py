"""
Standardized error response models for Chat Relay API.

Provides consistent error formatting across REST responses and stream
frames with request tracking and error categorization.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class ErrorCode(str, Enum):
    """Application-specific error codes for categorization."""

    # Authentication errors (1xxx)
    AUTH_REQUIRED = "AUTH_1001"
    AUTH_INVALID_TOKEN = "AUTH_1002"
    AUTH_NOT_OWNER = "AUTH_1003"
    AUTH_USER_NOT_FOUND = "AUTH_1004"
    AUTH_INVALID_CREDENTIALS = "AUTH_1005"

    # Validation errors (2xxx)
    VALIDATION_ERROR = "VAL_2001"
    VALIDATION_MISSING_FIELD = "VAL_2002"
    VALIDATION_INVALID_FORMAT = "VAL_2003"

    # Resource errors (3xxx)
    RESOURCE_NOT_FOUND = "RES_3001"
    RESOURCE_CONFLICT = "RES_3002"
    DOCUMENT_NOT_FOUND = "RES_3010"
    MESSAGE_NOT_FOUND = "RES_3020"

    # Chat errors (4xxx)
    CHAT_NOT_FOUND = "CHAT_4001"
    CHAT_CREATE_FAILED = "CHAT_4002"
    CHAT_EMPTY_TURN = "CHAT_4003"

    # File errors (5xxx)
    FILE_NOT_FOUND = "FILE_5001"
    FILE_TOO_LARGE = "FILE_5002"
    FILE_INVALID_TYPE = "FILE_5003"
    FILE_UPLOAD_FAILED = "FILE_5004"
    FILE_PROCESSING_FAILED = "FILE_5005"

    # Stream errors (6xxx)
    STREAM_UPSTREAM_FAILED = "STREAM_6001"
    STREAM_CHANNEL_CLOSED = "STREAM_6002"

    # External service errors (7xxx)
    EXTERNAL_SERVICE_ERROR = "EXT_7001"
    EXTERNAL_TIMEOUT = "EXT_7002"
    EXTERNAL_RATE_LIMITED = "EXT_7003"
    OPENAI_ERROR = "EXT_7010"
    BLOB_STORAGE_ERROR = "EXT_7020"

    # Database errors (8xxx)
    DATABASE_ERROR = "DB_8001"
    DATABASE_CONNECTION_FAILED = "DB_8002"
    DATABASE_QUERY_FAILED = "DB_8003"

    # Internal errors (9xxx)
    INTERNAL_ERROR = "INT_9001"
    INTERNAL_UNEXPECTED = "INT_9999"


class ErrorDetail(BaseModel):
    """Detailed information about a specific validation or sub-error."""

    field: str | None = None
    message: str
    code: str | None = None


class ErrorResponse(BaseModel):
    """Standardized error body for REST endpoints.

    Example response:
    {
        "error": {
            "code": "CHAT_4001",
            "message": "Chat not found: c1",
            "request_id": "req_abc123",
            "timestamp": "2025-01-15T10:30:00Z",
            "path": "/api/v1/chats/c1"
        }
    }
    """

    code: ErrorCode
    message: str
    request_id: str | None = None
    timestamp: str = Field(default_factory=lambda: datetime.now(UTC).isoformat())
    details: list[ErrorDetail] | None = None
    path: str | None = None
    debug: dict[str, Any] | None = Field(default=None, exclude=True)

    def to_dict(self, include_debug: bool = False) -> dict[str, Any]:
        data = self.model_dump(mode="json", exclude_none=True)
        if include_debug and self.debug:
            data["debug"] = self.debug
        return {"error": data}


ERROR_CODE_TO_STATUS: dict[ErrorCode, int] = {
    # 400 Bad Request
    ErrorCode.VALIDATION_ERROR: 400,
    ErrorCode.VALIDATION_MISSING_FIELD: 400,
    ErrorCode.VALIDATION_INVALID_FORMAT: 400,
    ErrorCode.CHAT_EMPTY_TURN: 400,
    ErrorCode.FILE_TOO_LARGE: 400,
    ErrorCode.FILE_INVALID_TYPE: 400,
    # 401 Unauthorized (ownership mismatch is reported as 401 as well)
    ErrorCode.AUTH_REQUIRED: 401,
    ErrorCode.AUTH_INVALID_TOKEN: 401,
    ErrorCode.AUTH_NOT_OWNER: 401,
    ErrorCode.AUTH_USER_NOT_FOUND: 401,
    ErrorCode.AUTH_INVALID_CREDENTIALS: 401,
    # 404 Not Found
    ErrorCode.RESOURCE_NOT_FOUND: 404,
    ErrorCode.DOCUMENT_NOT_FOUND: 404,
    ErrorCode.MESSAGE_NOT_FOUND: 404,
    ErrorCode.CHAT_NOT_FOUND: 404,
    ErrorCode.FILE_NOT_FOUND: 404,
    # 409 Conflict
    ErrorCode.RESOURCE_CONFLICT: 409,
    # 429 Too Many Requests
    ErrorCode.EXTERNAL_RATE_LIMITED: 429,
    # 500 Internal Server Error
    ErrorCode.CHAT_CREATE_FAILED: 500,
    ErrorCode.FILE_UPLOAD_FAILED: 500,
    ErrorCode.FILE_PROCESSING_FAILED: 500,
    ErrorCode.DATABASE_ERROR: 500,
    ErrorCode.DATABASE_CONNECTION_FAILED: 500,
    ErrorCode.DATABASE_QUERY_FAILED: 500,
    ErrorCode.INTERNAL_ERROR: 500,
    ErrorCode.INTERNAL_UNEXPECTED: 500,
    # 502 Bad Gateway
    ErrorCode.STREAM_UPSTREAM_FAILED: 502,
    ErrorCode.EXTERNAL_SERVICE_ERROR: 502,
    ErrorCode.OPENAI_ERROR: 502,
    ErrorCode.BLOB_STORAGE_ERROR: 502,
    # 503 Service Unavailable
    ErrorCode.EXTERNAL_TIMEOUT: 503,
}


def get_status_code(error_code: ErrorCode) -> int:
    """Get HTTP status code for an error code."""
    return ERROR_CODE_TO_STATUS.get(error_code, 500)


__all__ = [
    "ERROR_CODE_TO_STATUS",
    "ErrorCode",
    "ErrorDetail",
    "ErrorResponse",
    "get_status_code",
]

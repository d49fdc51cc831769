"""
Authentication-related API schemas.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from models.api_models import UserInfo


class LoginRequest(BaseModel):
    """Login credentials."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "email": "user@example.com",
                "password": "secure_password_123",
            }
        }
    )

    email: str = Field(..., description="User email address")
    password: str = Field(..., min_length=1, max_length=128, description="User password")


class RegisterRequest(BaseModel):
    email: str = Field(
        ...,
        description="User email address",
        pattern=r"^[a-zA-Z0-9_.+-]+@[a-zA-Z0-9-]+\.[a-zA-Z0-9-.]+$",
    )
    password: str = Field(..., min_length=6, max_length=128, description="User password (minimum 6 characters)")
    display_name: str | None = Field(default=None, max_length=100)


class TokenResponse(BaseModel):
    """Bearer token for the REST, SSE and WebSocket endpoints."""

    access_token: str
    token_type: str = "bearer"
    expires_in: int = Field(default=3600, ge=0, description="Access token expiry in seconds")
    user: UserInfo | None = None

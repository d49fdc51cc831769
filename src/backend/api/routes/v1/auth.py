"""
Authentication endpoints (v1).
"""

from __future__ import annotations

from fastapi import APIRouter

from api.dependencies import DB
from api.middleware.auth import CurrentUser
from api.middleware.exception_handlers import AppException, AuthenticationError
from api.services.auth_service import AuthService
from models.api_models import UserInfo
from models.error_models import ErrorCode
from models.schemas.auth import LoginRequest, RegisterRequest, TokenResponse

router = APIRouter()


@router.post(
    "/register",
    response_model=TokenResponse,
    status_code=201,
    summary="Register",
    responses={409: {"description": "Email already registered"}},
)
async def register(body: RegisterRequest, db: DB) -> TokenResponse:
    """Create an account and log it in."""
    auth = AuthService(db)
    try:
        result = await auth.register(body.email, body.password, body.display_name)
    except ValueError as exc:
        raise AppException(code=ErrorCode.RESOURCE_CONFLICT, message=str(exc)) from exc
    return TokenResponse(**result)


@router.post(
    "/login",
    response_model=TokenResponse,
    summary="Login",
    responses={401: {"description": "Invalid credentials"}},
)
async def login(body: LoginRequest, db: DB) -> TokenResponse:
    auth = AuthService(db)
    try:
        result = await auth.login(body.email, body.password)
    except ValueError as exc:
        raise AuthenticationError(message=str(exc), code=ErrorCode.AUTH_INVALID_CREDENTIALS) from exc
    return TokenResponse(**result)


@router.get("/me", response_model=UserInfo, summary="Get current user")
async def me(user: CurrentUser) -> UserInfo:
    return user

from __future__ import annotations

from typing import Annotated
from uuid import UUID

import asyncpg

from fastapi import Depends, Request, WebSocket
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from api.dependencies import get_db
from api.middleware.exception_handlers import AuthenticationError
from api.middleware.request_context import update_request_context
from api.services.auth_service import AuthService
from core.constants import get_settings
from models.api_models import UserInfo
from models.error_models import ErrorCode

bearer_scheme = HTTPBearer(auto_error=False)

LOCALHOST_ADDRESSES = frozenset({"127.0.0.1", "localhost", "::1", "testclient"})


async def get_current_user(
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
    db: Annotated[asyncpg.Pool, Depends(get_db)],
) -> UserInfo:
    """Authenticate incoming REST requests.

    Runs as a dependency, so an unauthenticated chat turn is rejected
    before its event stream is opened.
    """
    auth = AuthService(db)
    token = credentials.credentials if credentials else None
    user = await _resolve_user(auth, token, _client_host(request))
    update_request_context(user_id=user.id)
    return user


async def get_websocket_user(websocket: WebSocket, db: asyncpg.Pool) -> UserInfo:
    """Authenticate WebSocket connections via ``?token=`` or a bearer header."""
    token = websocket.query_params.get("token")
    if not token:
        header = websocket.headers.get("authorization", "")
        if header.lower().startswith("bearer "):
            token = header[7:].strip()
    host = websocket.client.host if websocket.client else ""
    return await _resolve_user(AuthService(db), token, host)


async def _resolve_user(auth: AuthService, token: str | None, host: str) -> UserInfo:
    if not token:
        if get_settings().allow_localhost_noauth and host in LOCALHOST_ADDRESSES:
            default_user = await auth.get_default_user()
            if not default_user:
                raise AuthenticationError(
                    message="Default user not found",
                    code=ErrorCode.AUTH_USER_NOT_FOUND,
                )
            return UserInfo(**auth.user_payload(default_user))
        raise AuthenticationError(
            message="Authentication required",
            code=ErrorCode.AUTH_REQUIRED,
        )

    try:
        payload = auth.decode_access_token(token)
        user = await auth.get_user_by_id(UUID(payload["sub"]))
    except ValueError as exc:
        raise AuthenticationError(
            message="Invalid token",
            code=ErrorCode.AUTH_INVALID_TOKEN,
        ) from exc

    if not user:
        raise AuthenticationError(
            message="User not found",
            code=ErrorCode.AUTH_USER_NOT_FOUND,
        )

    return UserInfo(**auth.user_payload(user))


def _client_host(request: Request) -> str:
    return request.client.host if request.client else ""


CurrentUser = Annotated[UserInfo, Depends(get_current_user)]

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import UUID

import asyncpg
import bcrypt

from jose import JWTError, jwt

from core.constants import Settings, get_settings


class AuthService:
    """Credential checks and bearer tokens for chat users."""

    def __init__(self, pool: asyncpg.Pool, settings: Settings | None = None):
        self.pool = pool
        self.settings = settings or get_settings()

    async def login(self, email: str, password: str) -> dict[str, Any]:
        """Validate credentials and return an access token."""
        user = await self.get_user_by_email(email)
        if not user or not user["password_hash"]:
            raise ValueError("Invalid credentials")
        if not bcrypt.checkpw(password.encode(), user["password_hash"].encode()):
            raise ValueError("Invalid credentials")
        return self._token_response(user)

    async def register(self, email: str, password: str, display_name: str | None = None) -> dict[str, Any]:
        if await self.get_user_by_email(email):
            raise ValueError("Email already registered")

        password_hash = bcrypt.hashpw(password.encode(), bcrypt.gensalt()).decode()
        async with self.pool.acquire() as conn:
            user = await conn.fetchrow(
                """
                INSERT INTO users (email, password_hash, display_name)
                VALUES ($1, $2, $3)
                RETURNING *
                """,
                email,
                password_hash,
                display_name,
            )
        if not user:
            raise ValueError("Failed to create user")
        return self._token_response(user)

    async def get_default_user(self) -> asyncpg.Record | None:
        """The seeded user that localhost requests resolve to without a token."""
        return await self.get_user_by_email(self.settings.default_user_email)

    async def get_user_by_email(self, email: str) -> asyncpg.Record | None:
        async with self.pool.acquire() as conn:
            return await conn.fetchrow("SELECT * FROM users WHERE email = $1", email)

    async def get_user_by_id(self, user_id: UUID) -> asyncpg.Record | None:
        async with self.pool.acquire() as conn:
            return await conn.fetchrow("SELECT * FROM users WHERE id = $1", user_id)

    def issue_access_token(self, user_id: str, email: str) -> str:
        expires_at = datetime.now(UTC) + timedelta(minutes=self.settings.access_token_expires_minutes)
        payload = {"sub": user_id, "email": email, "type": "access", "exp": expires_at}
        token: str = jwt.encode(payload, self.settings.jwt_secret, algorithm=self.settings.jwt_algorithm)
        return token

    def decode_access_token(self, token: str) -> dict[str, Any]:
        """Decode and validate an access token; raises ``ValueError`` when unusable."""
        try:
            payload: dict[str, Any] = jwt.decode(
                token,
                self.settings.jwt_secret,
                algorithms=[self.settings.jwt_algorithm],
            )
        except JWTError as exc:
            raise ValueError("Invalid token") from exc

        if payload.get("type") != "access" or not payload.get("sub"):
            raise ValueError("Invalid token type")
        return payload

    def _token_response(self, user: asyncpg.Record) -> dict[str, Any]:
        return {
            "access_token": self.issue_access_token(str(user["id"]), user["email"]),
            "expires_in": self.settings.access_token_expires_minutes * 60,
            "user": self.user_payload(user),
        }

    def user_payload(self, user: asyncpg.Record) -> dict[str, Any]:
        return {
            "id": str(user["id"]),
            "email": user["email"],
            "display_name": user.get("display_name"),
        }

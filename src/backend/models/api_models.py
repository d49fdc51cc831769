"""
Shared API models for Chat Relay.
"""

from __future__ import annotations

from pydantic import BaseModel


class UserInfo(BaseModel):
    """Public user information resolved by authentication."""

    id: str
    email: str
    display_name: str | None = None

"""
Health check schemas.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field


class DatabaseHealth(BaseModel):
    healthy: bool
    pool_size: int = 0
    free_connections: int = 0
    used_connections: int = 0
    error: str | None = None


class StreamHealth(BaseModel):
    """Live fan-out state of this process."""

    total_subscriptions: int = Field(default=0, description="Channels subscribed across all chats")
    total_chats: int = Field(default=0, description="Chats with at least one subscriber")
    heartbeats_running: int = 0
    uploads_active: int = 0


class HealthResponse(BaseModel):
    status: Literal["healthy", "degraded", "unhealthy"]
    version: str
    database: DatabaseHealth
    streams: StreamHealth


class ReadinessResponse(BaseModel):
    ready: bool
    error: str | None = None


class LivenessResponse(BaseModel):
    alive: bool

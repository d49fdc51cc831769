"""
Health check endpoints (v1).

Provides health, readiness, and liveness probes.
"""

from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from api.dependencies import DB, AppSettings, Hub
from models.schemas.health import (
    DatabaseHealth,
    HealthResponse,
    LivenessResponse,
    ReadinessResponse,
    StreamHealth,
)
from utils.db_utils import check_pool_health

router = APIRouter()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
    description="Database connectivity plus live stream and heartbeat counts.",
    responses={
        200: {
            "description": "System health status",
            "content": {
                "application/json": {
                    "example": {
                        "status": "healthy",
                        "version": "1.0.0",
                        "database": {
                            "healthy": True,
                            "pool_size": 10,
                            "free_connections": 8,
                            "used_connections": 2,
                        },
                        "streams": {
                            "total_subscriptions": 5,
                            "total_chats": 3,
                            "heartbeats_running": 1,
                            "uploads_active": 1,
                        },
                    }
                }
            },
        }
    },
)
async def health_check(db: DB, hub: Hub, settings: AppSettings) -> HealthResponse:
    """Comprehensive health check endpoint."""
    db_health = DatabaseHealth(**await check_pool_health(db))
    registry_stats = hub.registry.get_stats()
    streams = StreamHealth(
        total_subscriptions=registry_stats["total_subscriptions"],
        total_chats=registry_stats["total_chats"],
        heartbeats_running=hub.heartbeats.running_count,
        uploads_active=len(hub.uploads.active_chats),
    )

    return HealthResponse(
        status="healthy" if db_health.healthy else "degraded",
        version=settings.app_version,
        database=db_health,
        streams=streams,
    )


@router.get(
    "/health/ready",
    response_model=ReadinessResponse,
    summary="Readiness probe",
    responses={
        503: {
            "description": "Service not ready",
            "content": {"application/json": {"example": {"ready": False, "error": "Database unavailable"}}},
        },
    },
)
async def readiness_check(db: DB) -> ReadinessResponse | JSONResponse:
    try:
        async with db.acquire(timeout=5.0) as conn:
            await conn.fetchval("SELECT 1")
        return ReadinessResponse(ready=True)
    except Exception as e:
        return JSONResponse(
            status_code=503,
            content={"ready": False, "error": str(e)},
        )


@router.get("/health/live", response_model=LivenessResponse, summary="Liveness probe")
async def liveness_check() -> LivenessResponse:
    return LivenessResponse(alive=True)

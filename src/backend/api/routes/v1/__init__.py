"""
API v1 Router - Aggregates all v1 endpoints.

Usage in main.py:
    from api.routes.v1 import router as v1_router
    app.include_router(v1_router, prefix="/api/v1")
"""

from fastapi import APIRouter

from api.routes.v1 import auth, chat, chats, documents, files, health, messages

# Create the v1 API router
router = APIRouter()

# Health endpoints (no auth required)
router.include_router(
    health.router,
    tags=["Health"],
)

# Authentication endpoints
router.include_router(
    auth.router,
    prefix="/auth",
    tags=["Authentication"],
)

# Chat turns and live stream subscription
router.include_router(
    chat.router,
    tags=["Chat"],
)

# History, visibility, deletion and votes
router.include_router(
    chats.router,
    tags=["Chats"],
)

router.include_router(
    messages.router,
    tags=["Messages"],
)

router.include_router(
    documents.router,
    tags=["Documents"],
)

# Uploads and document extraction
router.include_router(
    files.router,
    tags=["Files"],
)

__all__ = ["router"]

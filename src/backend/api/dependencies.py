from __future__ import annotations

from typing import Annotated

import asyncpg

from fastapi import Depends, Request

from api.services.blob_service import BlobService
from api.services.chat_repository import ChatRepository
from api.services.chat_service import ChatService
from api.services.document_repository import DocumentRepository
from api.services.model_client import ModelClient
from api.services.upload_service import UploadService
from api.streaming import StreamHub
from core.constants import Settings, get_settings


def get_app_settings() -> Settings:
    """Provide application settings via dependency injection.

    Usage in routes:
        @router.get("/example")
        async def example(settings: AppSettings):
            return {"debug": settings.debug}
    """
    return get_settings()


async def get_db(request: Request) -> asyncpg.Pool:
    """Get database connection pool from application state."""
    return request.app.state.db_pool


def get_stream_hub(request: Request) -> StreamHub:
    """Registry, heartbeats and upload tracker shared by the whole process."""
    return request.app.state.stream_hub


def get_chat_service(request: Request) -> ChatService:
    return request.app.state.chat_service


def get_model_client(request: Request) -> ModelClient:
    return request.app.state.model_client


def get_blob_service(request: Request) -> BlobService:
    return request.app.state.blob_service


def get_chat_repository(db: Annotated[asyncpg.Pool, Depends(get_db)]) -> ChatRepository:
    return ChatRepository(db)


def get_document_repository(db: Annotated[asyncpg.Pool, Depends(get_db)]) -> DocumentRepository:
    return DocumentRepository(db)


def get_upload_service(
    blobs: Annotated[BlobService, Depends(get_blob_service)],
    hub: Annotated[StreamHub, Depends(get_stream_hub)],
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> UploadService:
    return UploadService(
        blobs=blobs,
        hub=hub,
        max_upload_size=settings.max_upload_size,
        upload_timeout=settings.upload_timeout,
    )


# Type aliases for cleaner route signatures
DB = Annotated[asyncpg.Pool, Depends(get_db)]
AppSettings = Annotated[Settings, Depends(get_app_settings)]
Hub = Annotated[StreamHub, Depends(get_stream_hub)]
Chats = Annotated[ChatService, Depends(get_chat_service)]
ChatRepo = Annotated[ChatRepository, Depends(get_chat_repository)]
DocumentRepo = Annotated[DocumentRepository, Depends(get_document_repository)]
Model = Annotated[ModelClient, Depends(get_model_client)]
Uploads = Annotated[UploadService, Depends(get_upload_service)]

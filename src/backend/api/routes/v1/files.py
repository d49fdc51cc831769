"""
File upload and processing endpoints (v1).

Both endpoints keep the chat's heartbeat running while blob work is in
flight, so an open stream for the chat stays alive during long uploads.
"""

from __future__ import annotations

from typing import Annotated, cast

from fastapi import APIRouter, File as FastAPIFile, Form, UploadFile

from api.dependencies import AppSettings, Uploads
from api.middleware.auth import CurrentUser
from api.middleware.request_context import update_request_context
from models.schemas.files import ProcessRequest, ProcessResponse, UploadResponse

router = APIRouter()


@router.post(
    "/files/upload",
    response_model=UploadResponse,
    summary="Upload file",
    description="Store a PDF, text or image file (30MB max) under the chat's prefix.",
    responses={
        400: {"description": "Missing file or chat id, file too large, or unsupported type"},
        502: {"description": "Blob storage failed or timed out"},
    },
)
async def upload_file(
    user: CurrentUser,
    uploads: Uploads,
    settings: AppSettings,
    file: Annotated[UploadFile | None, FastAPIFile(description="File to upload")] = None,
    chat_id: Annotated[str | None, Form(alias="chatId")] = None,
) -> UploadResponse:
    update_request_context(chat_id=chat_id)
    filename = file.filename if file else None
    content_type = file.content_type if file else None
    # Read one byte past the limit so oversize files are detected without buffering them whole
    data = await file.read(settings.max_upload_size + 1) if file else b""
    uploads.validate_upload(chat_id, filename, content_type, len(data))
    stored = await uploads.upload(cast(str, chat_id), cast(str, filename), cast(str, content_type), data)
    return UploadResponse(
        url=stored.url,
        pathname=filename,
        content_type=stored.content_type,
        blob_name=stored.blob_name,
    )


@router.post(
    "/files/process",
    response_model=ProcessResponse,
    summary="Process uploaded file",
    description=(
        "Extract text from an uploaded PDF or text file into a JSON sidecar and notify the chat's "
        "subscribers. Images are returned as attachments without extraction."
    ),
    responses={400: {"description": "Missing required fields"}},
)
async def process_file(body: ProcessRequest, user: CurrentUser, uploads: Uploads) -> ProcessResponse:
    update_request_context(chat_id=body.chat_id)
    attachments = await uploads.process(body)
    return ProcessResponse(attachments=attachments)

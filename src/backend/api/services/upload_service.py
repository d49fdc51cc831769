"""
File upload and document processing.

Both handlers bracket their blob work with the chat's upload activity so
subscribers keep receiving heartbeats while the file is in flight; the
bracket is closed on every exit path.
"""

from __future__ import annotations

import asyncio
import json

from typing import Any, cast

from api.middleware.exception_handlers import ExternalServiceError, ValidationException
from api.services.blob_service import BlobService, StoredBlob, make_blob_name
from api.services.document_extractor import extract_document
from api.streaming import StreamHub
from core.constants import ALLOWED_UPLOAD_TYPES, EXTRACTABLE_TYPES, EXTRACTION_SIDECAR_SUFFIX
from models.error_models import ErrorCode, ErrorDetail
from models.schemas.files import Attachment, ProcessRequest
from utils.logger import logger

PROCESS_REQUIRED_FIELDS = ("blob_name", "content_type", "original_filename", "chat_id")


class UploadService:
    def __init__(
        self,
        blobs: BlobService,
        hub: StreamHub,
        max_upload_size: int,
        upload_timeout: float,
    ):
        self.blobs = blobs
        self.hub = hub
        self.max_upload_size = max_upload_size
        self.upload_timeout = upload_timeout

    def validate_upload(self, chat_id: str | None, filename: str | None, content_type: str | None, size: int) -> None:
        """Reject uploads before any activity is recorded.

        Raises:
            ValidationException: Missing file or chat id, oversize or unsupported type (400)
        """
        if not filename:
            raise ValidationException("No file provided", code=ErrorCode.VALIDATION_MISSING_FIELD)
        if not chat_id:
            raise ValidationException("No chat ID provided", code=ErrorCode.VALIDATION_MISSING_FIELD)
        if size > self.max_upload_size:
            limit_mb = self.max_upload_size // (1024 * 1024)
            raise ValidationException(f"File size should be < {limit_mb}MB", code=ErrorCode.FILE_TOO_LARGE)
        if content_type not in ALLOWED_UPLOAD_TYPES:
            raise ValidationException(
                "Unsupported file type. Please upload PDF, text, or image files.",
                code=ErrorCode.FILE_INVALID_TYPE,
            )

    async def upload(self, chat_id: str, filename: str, content_type: str, data: bytes) -> StoredBlob:
        self.validate_upload(chat_id, filename, content_type, len(data))
        blob_name = make_blob_name(chat_id, filename)
        logger.info(
            f"File upload request received: {filename}",
            chat_id=chat_id,
            file_size=len(data),
            mime_type=content_type,
        )

        async with self.hub.uploads.track(chat_id):
            try:
                stored = await asyncio.wait_for(
                    self.blobs.upload(blob_name, data, content_type),
                    timeout=self.upload_timeout,
                )
            except TimeoutError as e:
                logger.error(f"Upload of {filename} timed out after {self.upload_timeout}s", chat_id=chat_id)
                raise ExternalServiceError(
                    "blob-storage", "Upload processing timed out", code=ErrorCode.EXTERNAL_TIMEOUT, cause=e
                ) from e

        logger.info(f"File upload completed: {filename}", chat_id=chat_id, blob_name=blob_name)
        return stored

    async def process(self, request: ProcessRequest) -> list[Attachment]:
        """Build attachments for an uploaded blob, extracting text where supported.

        Extraction failures fall back to returning just the original file.
        """
        missing = [name for name in PROCESS_REQUIRED_FIELDS if not getattr(request, name)]
        if missing:
            wire_names = [ProcessRequest.model_fields[name].alias or name for name in missing]
            raise ValidationException(
                f"Missing required fields: {', '.join(wire_names)} are required",
                errors=[ErrorDetail(field=n, message="Field required") for n in wire_names],
                code=ErrorCode.VALIDATION_MISSING_FIELD,
            )
        chat_id = cast(str, request.chat_id)
        blob_name = cast(str, request.blob_name)
        content_type = cast(str, request.content_type)
        filename = cast(str, request.original_filename)

        async with self.hub.uploads.track(chat_id):
            source_url = await self.blobs.url_for(blob_name)
            original = Attachment(
                url=source_url,
                name=filename,
                content_type=content_type,
                original_name=filename,
                blob_name=blob_name,
            )
            attachments = [original]

            if content_type in EXTRACTABLE_TYPES:
                sidecar = await self._extract_sidecar(blob_name, content_type, filename, source_url)
                if sidecar is not None:
                    original.associated_file_name = filename
                    original.source_url = source_url
                    attachments.append(sidecar)
                    await self.hub.emit_document_context_update(chat_id, has_images=False)

        logger.info(
            f"File processing completed: {filename}",
            chat_id=chat_id,
            attachment_count=len(attachments),
        )
        return attachments

    async def _extract_sidecar(
        self, blob_name: str, content_type: str, filename: str, source_url: str
    ) -> Attachment | None:
        try:
            data = await self.blobs.download(blob_name)
            extracted = await extract_document(data, content_type, filename)
            body: dict[str, Any] = extracted.sidecar(filename, source_url)
            sidecar_name = f"{blob_name}{EXTRACTION_SIDECAR_SUFFIX}"
            stored = await self.blobs.upload(sidecar_name, json.dumps(body).encode("utf-8"), "application/json")
        except Exception as e:
            logger.error(
                f"Error processing {filename}, returning raw file: {e}",
                exc_info=True,
                blob_name=blob_name,
            )
            return None

        return Attachment(
            url=stored.url,
            name=filename,
            content_type="application/json",
            original_name=filename,
            blob_name=stored.blob_name,
            is_extracted_json=True,
            source_url=source_url,
        )

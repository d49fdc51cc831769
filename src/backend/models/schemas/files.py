"""
File upload and processing schemas.
"""

from __future__ import annotations

from models.schemas.base import CamelModel


class UploadResponse(CamelModel):
    """Where an uploaded file landed in blob storage."""

    model_config = CamelModel.model_config | {
        "json_schema_extra": {
            "example": {
                "url": "https://bucket.s3.amazonaws.com/c1/4f1c-report.pdf",
                "pathname": "report.pdf",
                "contentType": "application/pdf",
                "blobName": "c1/4f1c-report.pdf",
            }
        }
    }

    url: str
    pathname: str
    content_type: str
    blob_name: str


class ProcessRequest(CamelModel):
    """Body of ``POST /api/v1/files/process``; fields are checked by the handler."""

    blob_name: str | None = None
    content_type: str | None = None
    original_filename: str | None = None
    chat_id: str | None = None


class Attachment(CamelModel):
    """A file the client can attach to its next message.

    Extracted documents come back as two attachments: the original file and
    its JSON sidecar, linked through ``source_url``.
    """

    url: str
    name: str
    content_type: str
    original_name: str | None = None
    blob_name: str | None = None
    is_extracted_json: bool | None = None
    associated_file_name: str | None = None
    source_url: str | None = None


class ProcessResponse(CamelModel):
    attachments: list[Attachment]

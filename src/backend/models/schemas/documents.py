"""
Document and suggestion API schemas.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import Field

from models.schemas.base import CamelModel


class DocumentSaveRequest(CamelModel):
    title: str = Field(..., min_length=1, max_length=255)
    content: str = ""
    kind: str = Field(default="text", description="text, code or sheet")


class DocumentResponse(CamelModel):
    id: str
    created_at: datetime
    title: str
    content: str | None = None
    kind: str
    user_id: str


class SuggestionResponse(CamelModel):
    id: str
    document_id: str
    document_created_at: datetime
    original_text: str
    suggested_text: str
    description: str | None = None
    is_resolved: bool = False
    user_id: str
    created_at: datetime

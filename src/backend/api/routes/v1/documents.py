"""
Document version and suggestion endpoints (v1).
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Path, Query, Response

from api.dependencies import DocumentRepo
from api.middleware.auth import CurrentUser
from api.middleware.exception_handlers import AuthenticationError, DocumentNotFoundError
from models.api_models import UserInfo
from models.error_models import ErrorCode
from models.schemas.documents import DocumentResponse, DocumentSaveRequest, SuggestionResponse

router = APIRouter()

DocumentIdPath = Annotated[str, Path(..., min_length=1, max_length=255, description="Document identifier")]


def _require_owner(versions: list[dict[str, object]], user: UserInfo, document_id: str) -> None:
    if not versions:
        raise DocumentNotFoundError(document_id)
    if versions[0]["user_id"] != user.id:
        raise AuthenticationError("Unauthorized", code=ErrorCode.AUTH_NOT_OWNER)


@router.get(
    "/documents/{document_id}",
    response_model=list[DocumentResponse],
    summary="List document versions",
    description="All saved versions of a document, newest first.",
    responses={401: {"description": "Not the document owner"}, 404: {"description": "Document not found"}},
)
async def get_document_versions(
    document_id: DocumentIdPath,
    user: CurrentUser,
    documents: DocumentRepo,
) -> list[DocumentResponse]:
    versions = await documents.get_documents_by_id(document_id)
    _require_owner(versions, user, document_id)
    return [DocumentResponse.model_validate(v) for v in versions]


@router.post(
    "/documents/{document_id}",
    response_model=DocumentResponse,
    summary="Save document version",
)
async def save_document(
    document_id: DocumentIdPath,
    body: DocumentSaveRequest,
    user: CurrentUser,
    documents: DocumentRepo,
) -> DocumentResponse:
    existing = await documents.get_documents_by_id(document_id)
    if existing:
        _require_owner(existing, user, document_id)
    saved = await documents.save_document(document_id, body.title, body.content, body.kind, user.id)
    return DocumentResponse.model_validate(saved)


@router.delete(
    "/documents/{document_id}",
    status_code=204,
    summary="Delete later document versions",
    description="Delete suggestions, then versions created after ``timestamp``.",
    responses={401: {"description": "Not the document owner"}, 404: {"description": "Document not found"}},
)
async def delete_document_versions(
    document_id: DocumentIdPath,
    user: CurrentUser,
    documents: DocumentRepo,
    timestamp: Annotated[datetime, Query(description="Versions created after this instant are removed")],
) -> Response:
    versions = await documents.get_documents_by_id(document_id)
    _require_owner(versions, user, document_id)
    await documents.delete_documents_after(document_id, timestamp)
    return Response(status_code=204)


@router.get(
    "/suggestions",
    response_model=list[SuggestionResponse],
    summary="List suggestions for a document",
)
async def list_suggestions(
    user: CurrentUser,
    documents: DocumentRepo,
    document_id: Annotated[str, Query(alias="documentId", min_length=1)],
) -> list[SuggestionResponse]:
    versions = await documents.get_documents_by_id(document_id)
    _require_owner(versions, user, document_id)
    rows = await documents.get_suggestions_by_document_id(document_id)
    return [SuggestionResponse.model_validate(row) for row in rows]

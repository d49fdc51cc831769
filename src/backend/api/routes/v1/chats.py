"""
Chat history, visibility, deletion and vote endpoints (v1).
"""

from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Path, Response

from api.dependencies import ChatRepo, Chats
from api.middleware.auth import CurrentUser
from api.middleware.exception_handlers import ChatNotFoundError
from models.schemas.chat import (
    ChatResponse,
    MessageResponse,
    VisibilityUpdateRequest,
    VoteRequest,
    VoteResponse,
)

router = APIRouter()

ChatIdPath = Annotated[str, Path(..., min_length=1, max_length=255, description="Chat identifier")]

_OWNER_ONLY: dict[int | str, dict[str, Any]] = {
    401: {"description": "Not authenticated or not the chat owner"},
    404: {"description": "Chat not found"},
}


@router.get(
    "/history",
    response_model=list[ChatResponse],
    summary="List chats",
    description="The user's own chats plus all public chats, newest first.",
)
async def list_history(user: CurrentUser, repo: ChatRepo) -> list[ChatResponse]:
    rows = await repo.get_chats_by_user_id(user.id)
    return [ChatResponse.model_validate(row) for row in rows]


@router.delete(
    "/chats/{chat_id}",
    status_code=200,
    summary="Delete chat",
    description="Deletes the chat's votes, then its messages, then the chat.",
    responses={200: {"description": "Chat deleted"}, **_OWNER_ONLY},
)
async def delete_chat(chat_id: ChatIdPath, user: CurrentUser, chats: Chats) -> Response:
    await chats.delete_chat(user, chat_id)
    return Response(status_code=200)


@router.patch(
    "/chats/{chat_id}/visibility",
    response_model=ChatResponse,
    summary="Change chat visibility",
    responses=_OWNER_ONLY,
)
async def update_visibility(
    chat_id: ChatIdPath,
    body: VisibilityUpdateRequest,
    user: CurrentUser,
    chats: Chats,
) -> ChatResponse:
    await chats.get_owned_chat(user, chat_id)
    updated = await chats.chats.update_chat_visibility(chat_id, body.visibility)
    if updated is None:
        raise ChatNotFoundError(chat_id)
    return ChatResponse.model_validate(updated)


@router.get(
    "/chats/{chat_id}/messages",
    response_model=list[MessageResponse],
    summary="List chat messages",
    description="Messages in creation order. Readable by the owner, or anyone for a public chat.",
    responses=_OWNER_ONLY,
)
async def list_messages(chat_id: ChatIdPath, user: CurrentUser, chats: Chats) -> list[MessageResponse]:
    await chats.get_readable_chat(user, chat_id)
    rows = await chats.chats.get_messages_by_chat_id(chat_id)
    return [MessageResponse.model_validate(row) for row in rows]


@router.get(
    "/chats/{chat_id}/votes",
    response_model=list[VoteResponse],
    summary="List votes",
    responses=_OWNER_ONLY,
)
async def list_votes(chat_id: ChatIdPath, user: CurrentUser, chats: Chats) -> list[VoteResponse]:
    await chats.get_owned_chat(user, chat_id)
    rows = await chats.chats.get_votes_by_chat_id(chat_id)
    return [VoteResponse.model_validate(row) for row in rows]


@router.patch(
    "/chats/{chat_id}/votes",
    response_model=VoteResponse,
    summary="Vote on a message",
    description="Upsert the single vote for a message in this chat.",
    responses=_OWNER_ONLY,
)
async def vote_message(
    chat_id: ChatIdPath,
    body: VoteRequest,
    user: CurrentUser,
    chats: Chats,
) -> VoteResponse:
    await chats.get_owned_chat(user, chat_id)
    row = await chats.chats.vote_message(chat_id, body.message_id, body.type)
    return VoteResponse.model_validate(row)

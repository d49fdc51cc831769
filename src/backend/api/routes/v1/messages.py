"""
Message edit endpoints (v1).

Editing a message rewinds its chat: every message created after it is
removed so the conversation can be resubmitted from that point.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Path

from api.dependencies import Chats
from api.middleware.auth import CurrentUser
from models.schemas.chat import MessageResponse, MessageUpdateRequest

router = APIRouter()

MessageIdPath = Annotated[str, Path(..., min_length=1, max_length=255, description="Message identifier")]


@router.patch(
    "/messages/{message_id}",
    response_model=MessageResponse,
    summary="Edit message",
    responses={401: {"description": "Not the chat owner"}, 404: {"description": "Message or chat not found"}},
)
async def edit_message(
    message_id: MessageIdPath,
    body: MessageUpdateRequest,
    user: CurrentUser,
    chats: Chats,
) -> MessageResponse:
    updated = await chats.edit_message(user, message_id, body.content)
    return MessageResponse.model_validate(updated)


@router.delete(
    "/messages/{message_id}/trailing",
    summary="Delete trailing messages",
    description="Delete this message and every later message in its chat.",
    responses={401: {"description": "Not the chat owner"}, 404: {"description": "Message or chat not found"}},
)
async def delete_trailing_messages(message_id: MessageIdPath, user: CurrentUser, chats: Chats) -> dict[str, int]:
    deleted = await chats.delete_trailing_messages(user, message_id)
    return {"deleted": deleted}

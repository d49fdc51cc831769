"""
Chat turn and live stream endpoints (v1).

``POST /chat`` answers with a server-sent event stream of the turn's
frames. ``GET /chats/{chat_id}/stream`` lets other tabs and devices watch
the same chat.
"""

from __future__ import annotations

import contextlib

from typing import Annotated

from fastapi import APIRouter, Path
from sse_starlette.sse import EventSourceResponse

from api.dependencies import AppSettings, Chats, Hub
from api.middleware.auth import CurrentUser
from api.middleware.exception_handlers import ChatNotFoundError
from api.middleware.request_context import update_request_context
from api.streaming import QueueChannel
from api.streaming.sse import stream_channel
from models.event_models import ConnectedFrame
from models.schemas.chat import ChatTurnRequest
from utils.logger import logger

router = APIRouter()

ChatIdPath = Annotated[str, Path(..., min_length=1, max_length=255, description="Chat identifier")]

_STREAM_RESPONSES: dict[int | str, dict[str, object]] = {
    200: {
        "description": "Event stream of JSON frames",
        "content": {
            "text/event-stream": {
                "example": 'data: {"type": "text-delta", "content": "Hi"}\n\n',
            }
        },
    },
}


@router.post(
    "/chat",
    summary="Send a chat turn",
    description=(
        "Persist the user's message, then stream the assistant reply as text-delta frames. "
        "Validation and ownership failures are returned before the stream opens."
    ),
    responses={
        **_STREAM_RESPONSES,
        400: {"description": "Missing chat id or no user message"},
        401: {"description": "Not authenticated, or chat owned by another user"},
        500: {"description": "User message or chat could not be stored"},
    },
)
async def send_chat_turn(
    body: ChatTurnRequest,
    user: CurrentUser,
    chats: Chats,
    hub: Hub,
    settings: AppSettings,
) -> EventSourceResponse:
    update_request_context(chat_id=body.chat_id)
    turn = await chats.prepare_turn(
        user,
        body.chat_id,
        [message.model_dump() for message in body.messages],
        body.selected_model,
    )

    channel = QueueChannel(max_pending=settings.subscriber_queue_size)
    hub.registry.subscribe(turn.chat_id, channel)
    # The turn closes the requesting channel when done; the response then ends
    chats.start_turn(turn, on_done=channel.close)
    logger.info(f"Chat turn started for {turn.chat_id} (model={turn.model})", chat_id=turn.chat_id)

    return stream_channel(hub.registry, turn.chat_id, channel, ping_interval=settings.sse_ping_interval)


@router.get(
    "/chats/{chat_id}/stream",
    summary="Subscribe to a chat's live frames",
    responses={**_STREAM_RESPONSES, 401: {"description": "Not authenticated or not allowed to read the chat"}},
)
async def subscribe_chat_stream(
    chat_id: ChatIdPath,
    user: CurrentUser,
    chats: Chats,
    hub: Hub,
    settings: AppSettings,
) -> EventSourceResponse:
    # A chat that does not exist yet may be about to be created by this user's first turn
    with contextlib.suppress(ChatNotFoundError):
        await chats.get_readable_chat(user, chat_id)

    channel = QueueChannel(max_pending=settings.subscriber_queue_size)
    hub.registry.subscribe(chat_id, channel)
    connected = ConnectedFrame().to_frame()
    return stream_channel(
        hub.registry,
        chat_id,
        channel,
        first_frame=connected,
        ping_interval=settings.sse_ping_interval,
    )

from __future__ import annotations

import contextlib

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from api.middleware.auth import get_websocket_user
from api.middleware.exception_handlers import AuthenticationError, ChatNotFoundError
from api.middleware.request_context import clear_request_context, create_websocket_context, update_request_context
from api.services.chat_service import ChatService
from api.streaming import ChannelClosed, StreamHub, WebSocketChannel
from models.event_models import ConnectedFrame
from utils.logger import logger

router = APIRouter()

#: Close code sent when the connection cannot be authenticated or authorized
WS_CLOSE_UNAUTHORIZED = 4401


@router.websocket("/chats/{chat_id}")
async def chat_stream_websocket(websocket: WebSocket, chat_id: str) -> None:
    """Receive a chat's live frames over a WebSocket.

    Frames sent by the client are ignored; reading only detects disconnects.
    """
    hub: StreamHub = websocket.app.state.stream_hub
    chat_service: ChatService = websocket.app.state.chat_service
    client_ip = websocket.client.host if websocket.client else None
    create_websocket_context(chat_id=chat_id, client_ip=client_ip)

    try:
        user = await get_websocket_user(websocket, websocket.app.state.db_pool)
        # Subscribing to a chat that does not exist yet is allowed
        with contextlib.suppress(ChatNotFoundError):
            await chat_service.get_readable_chat(user, chat_id)
    except AuthenticationError as e:
        logger.info(f"WebSocket rejected for chat {chat_id}: {e.message}", chat_id=chat_id)
        await websocket.accept()
        await websocket.close(code=WS_CLOSE_UNAUTHORIZED, reason=e.message)
        clear_request_context()
        return

    update_request_context(user_id=user.id)
    await websocket.accept()
    channel = WebSocketChannel(websocket, send_timeout=hub.ws_send_timeout)
    hub.registry.subscribe(chat_id, channel)

    try:
        await channel.send(ConnectedFrame().to_frame())
        async for _ in websocket.iter_text():
            pass
    except (WebSocketDisconnect, ChannelClosed):
        pass  # Normal client disconnect
    except RuntimeError as e:
        # Handle "WebSocket is not connected" errors gracefully
        if "not connected" not in str(e).lower():
            raise
    finally:
        hub.registry.unsubscribe(chat_id, channel)
        await channel.close()
        clear_request_context()
        logger.info(f"WebSocket closed for chat {chat_id}", chat_id=chat_id)

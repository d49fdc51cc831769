"""Server-sent event responses backed by a subscribed :class:`QueueChannel`."""

from __future__ import annotations

import asyncio
import json

from collections.abc import AsyncIterator
from typing import Any

from sse_starlette.sse import EventSourceResponse

from api.streaming.channels import QueueChannel
from api.streaming.registry import ConnectionRegistry
from utils.logger import logger

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "X-Accel-Buffering": "no",
}


def encode_frame(frame: dict[str, Any]) -> dict[str, str]:
    return {"data": json.dumps(frame)}


def stream_channel(
    registry: ConnectionRegistry,
    chat_id: str,
    channel: QueueChannel,
    *,
    first_frame: dict[str, Any] | None = None,
    ping_interval: int = 15,
) -> EventSourceResponse:
    """Relay ``channel``'s frames until it closes or the client goes away.

    The channel must already be subscribed to ``chat_id``; it is
    unsubscribed and closed when the response ends for any reason.
    """

    async def event_stream() -> AsyncIterator[dict[str, str]]:
        try:
            if first_frame is not None:
                yield encode_frame(first_frame)
            async for frame in channel.frames():
                yield encode_frame(frame)
        except asyncio.CancelledError:
            logger.debug(f"SSE stream {channel.channel_id} cancelled", chat_id=chat_id)
            raise
        finally:
            registry.unsubscribe(chat_id, channel)
            await channel.close()

    return EventSourceResponse(event_stream(), headers=SSE_HEADERS, ping=ping_interval)

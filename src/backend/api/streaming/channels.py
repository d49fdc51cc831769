"""Output channels a chat's live frames are written to.

A channel belongs to exactly one client connection. ``send`` raises
:class:`ChannelClosed` (or whatever the transport raises) once the client is
gone; the registry treats any exception from ``send`` as a dead channel.
"""

from __future__ import annotations

import asyncio
import contextlib
import itertools

from collections.abc import AsyncIterator
from typing import Any, Protocol, runtime_checkable

from fastapi import WebSocket

_channel_ids = itertools.count(1)


class ChannelClosed(Exception):
    """Raised by ``send`` on a channel that can no longer deliver frames."""


@runtime_checkable
class OutputChannel(Protocol):
    """Anything frames can be written to."""

    channel_id: str

    async def send(self, event: dict[str, Any]) -> None: ...

    async def close(self) -> None: ...


class QueueChannel:
    """Queue-backed channel drained by an SSE response generator.

    ``send`` never blocks: a consumer that falls ``max_pending`` frames
    behind is considered dead, so one stalled browser tab cannot hold up
    the turn that is broadcasting.
    """

    _CLOSE = object()

    def __init__(self, max_pending: int = 256, label: str = "sse") -> None:
        self.channel_id = f"{label}-{next(_channel_ids)}"
        self._queue: asyncio.Queue[Any] = asyncio.Queue(maxsize=max_pending + 1)
        self._max_pending = max_pending
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def send(self, event: dict[str, Any]) -> None:
        if self._closed:
            raise ChannelClosed(self.channel_id)
        if self._queue.qsize() >= self._max_pending:
            await self.close()
            raise ChannelClosed(f"{self.channel_id} fell {self._max_pending} frames behind")
        self._queue.put_nowait(event)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        # One slot is reserved for the close marker
        with contextlib.suppress(asyncio.QueueFull):
            self._queue.put_nowait(self._CLOSE)

    async def frames(self) -> AsyncIterator[dict[str, Any]]:
        """Yield frames in send order until the channel is closed."""
        while True:
            item = await self._queue.get()
            if item is self._CLOSE:
                return
            yield item

    def __repr__(self) -> str:
        return f"<QueueChannel {self.channel_id} pending={self._queue.qsize()} closed={self._closed}>"


class WebSocketChannel:
    """Channel writing JSON frames to an accepted WebSocket.

    Sends are serialized with a lock because heartbeats and the turn's
    deltas are written from different tasks. A client that does not take a
    frame within ``send_timeout`` seconds is treated as dead, so a stalled
    socket cannot hold up the broadcast.
    """

    def __init__(self, websocket: WebSocket, send_timeout: float = 5.0) -> None:
        self.channel_id = f"ws-{next(_channel_ids)}"
        self.websocket = websocket
        self.send_timeout = send_timeout
        self._lock = asyncio.Lock()
        self._closed = False
        self._stalled = False

    async def send(self, event: dict[str, Any]) -> None:
        if self._closed or self._stalled:
            raise ChannelClosed(self.channel_id)
        try:
            await asyncio.wait_for(self._send_locked(event), timeout=self.send_timeout)
        except TimeoutError as e:
            self._stalled = True
            raise ChannelClosed(f"{self.channel_id} stalled for {self.send_timeout:.1f}s") from e

    async def _send_locked(self, event: dict[str, Any]) -> None:
        async with self._lock:
            await self.websocket.send_json(event)

    async def close(self, code: int = 1000, reason: str = "") -> None:
        if self._closed:
            return
        self._closed = True
        with contextlib.suppress(RuntimeError, OSError, TimeoutError):
            await asyncio.wait_for(self.websocket.close(code=code, reason=reason), timeout=self.send_timeout)

    def __repr__(self) -> str:
        return f"<WebSocketChannel {self.channel_id} closed={self._closed}>"


__all__ = [
    "ChannelClosed",
    "OutputChannel",
    "QueueChannel",
    "WebSocketChannel",
]

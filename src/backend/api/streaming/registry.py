"""Per-chat fan-out of live frames to subscribed output channels."""

from __future__ import annotations

import asyncio

from collections.abc import Callable
from typing import Any

from api.streaming.channels import OutputChannel
from utils.logger import logger
from utils.metrics import stream_channels_pruned_total, stream_frames_total, stream_subscriptions_active


class ConnectionRegistry:
    """Hold, per chat id, the set of channels subscribed to its live frames.

    Single-process and in-memory. All mutation happens on the event loop
    thread and never spans an ``await``, so each chat's set is updated
    atomically without a lock. There is no replay buffer: a channel only
    sees frames broadcast after it subscribed.
    """

    def __init__(self, on_chat_empty: Callable[[str], Any] | None = None) -> None:
        """Initialize the registry.

        Args:
            on_chat_empty: Called with the chat id when its last channel
                unsubscribes (used to stop the chat's heartbeat)
        """
        self.subscribers: dict[str, set[OutputChannel]] = {}
        self.on_chat_empty = on_chat_empty

    def subscribe(self, chat_id: str, channel: OutputChannel) -> None:
        """Register ``channel`` as a recipient for ``chat_id``. Re-subscribing is a no-op."""
        channels = self.subscribers.setdefault(chat_id, set())
        if channel in channels:
            return
        channels.add(channel)
        stream_subscriptions_active.inc()
        logger.info(
            f"Channel {channel.channel_id} subscribed to chat {chat_id} (chat subscribers: {len(channels)})",
            chat_id=chat_id,
        )

    def unsubscribe(self, chat_id: str, channel: OutputChannel) -> None:
        """Remove ``channel``; dropping the last one deletes the chat's entry."""
        channels = self.subscribers.get(chat_id)
        if channels is None or channel not in channels:
            return

        channels.discard(channel)
        stream_subscriptions_active.dec()
        logger.debug(f"Channel {channel.channel_id} unsubscribed from chat {chat_id}", chat_id=chat_id)

        if not channels:
            del self.subscribers[chat_id]
            if self.on_chat_empty is not None:
                self.on_chat_empty(chat_id)

    async def broadcast(self, chat_id: str, event: dict[str, Any]) -> int:
        """Send ``event`` to every channel currently subscribed to ``chat_id``.

        Delivery is best-effort. A channel whose send raises is logged and
        unsubscribed; the other channels still receive the frame.

        Returns:
            Number of channels the frame was delivered to
        """
        channels = list(self.subscribers.get(chat_id, ()))
        if not channels:
            return 0

        results = await asyncio.gather(
            *(channel.send(event) for channel in channels),
            return_exceptions=True,
        )

        delivered = 0
        for channel, result in zip(channels, results, strict=True):
            if isinstance(result, BaseException):
                if isinstance(result, asyncio.CancelledError):
                    raise result
                logger.warning(
                    f"Dropping channel {channel.channel_id} for chat {chat_id}: "
                    f"{type(result).__name__}: {result}",
                    chat_id=chat_id,
                )
                stream_channels_pruned_total.inc()
                self.unsubscribe(chat_id, channel)
            else:
                delivered += 1

        if delivered:
            stream_frames_total.labels(type=str(event.get("type", "unknown"))).inc(delivered)
        return delivered

    def subscriber_count(self, chat_id: str) -> int:
        return len(self.subscribers.get(chat_id, ()))

    def is_subscribed(self, chat_id: str, channel: OutputChannel) -> bool:
        return channel in self.subscribers.get(chat_id, ())

    @property
    def connection_count(self) -> int:
        """Total number of subscriptions across chats."""
        return sum(len(channels) for channels in self.subscribers.values())

    @property
    def chat_count(self) -> int:
        """Number of chats with at least one subscriber."""
        return len(self.subscribers)

    async def close_all(self) -> None:
        """Close and unsubscribe every channel (process shutdown)."""
        for chat_id, channels in list(self.subscribers.items()):
            for channel in list(channels):
                try:
                    await channel.close()
                except Exception as e:
                    logger.warning(f"Error closing channel {channel.channel_id}: {e}")
                self.unsubscribe(chat_id, channel)

    def get_stats(self) -> dict[str, Any]:
        return {
            "total_subscriptions": self.connection_count,
            "total_chats": self.chat_count,
        }

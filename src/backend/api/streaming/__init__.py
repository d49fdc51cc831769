"""Live streaming fan-out: connection registry, heartbeats and upload activity.

``StreamHub`` wires the three together the way the application uses them:
the registry stops a chat's heartbeat once nobody is subscribed to it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from api.streaming.channels import ChannelClosed, OutputChannel, QueueChannel, WebSocketChannel
from api.streaming.heartbeat import HeartbeatScheduler
from api.streaming.registry import ConnectionRegistry
from api.streaming.upload_activity import UploadActivityTracker
from models.event_models import DocumentContextUpdateFrame


@dataclass
class StreamHub:
    registry: ConnectionRegistry
    heartbeats: HeartbeatScheduler
    uploads: UploadActivityTracker
    ws_send_timeout: float = 5.0

    @classmethod
    def create(
        cls,
        heartbeat_interval: float = 1.0,
        heartbeat_lifetime: float = 120.0,
        ws_send_timeout: float = 5.0,
    ) -> StreamHub:
        registry = ConnectionRegistry()
        heartbeats = HeartbeatScheduler(registry, interval=heartbeat_interval, lifetime=heartbeat_lifetime)
        registry.on_chat_empty = heartbeats.stop
        return cls(
            registry=registry,
            heartbeats=heartbeats,
            uploads=UploadActivityTracker(heartbeats),
            ws_send_timeout=ws_send_timeout,
        )

    async def emit_document_context_update(self, chat_id: str, has_images: bool = False) -> int:
        """Tell every subscriber of ``chat_id`` that its document context changed."""
        frame = DocumentContextUpdateFrame(has_images=has_images)
        return await self.registry.broadcast(chat_id, frame.to_frame())

    async def shutdown(self) -> None:
        self.heartbeats.stop_all()
        await self.registry.close_all()

    def get_stats(self) -> dict[str, Any]:
        return {
            **self.registry.get_stats(),
            "heartbeats": self.heartbeats.get_stats(),
            "uploads_active": len(self.uploads.active_chats),
        }


__all__ = [
    "ChannelClosed",
    "ConnectionRegistry",
    "HeartbeatScheduler",
    "OutputChannel",
    "QueueChannel",
    "StreamHub",
    "UploadActivityTracker",
    "WebSocketChannel",
]

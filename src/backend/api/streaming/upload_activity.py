"""Track chats with in-flight background uploads and keep them warm."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from api.streaming.heartbeat import HeartbeatScheduler
from utils.logger import logger
from utils.metrics import uploads_active


class UploadActivityTracker:
    """Per-chat count of uploads in progress.

    The first upload for a chat starts its heartbeat; each additional
    upload extends it (fresh lifetime, same cadence), or starts it again if
    its lifetime already ran out. The heartbeat is stopped only when
    the last upload for the chat completes, so one upload finishing early
    never silences another that is still running.
    """

    def __init__(self, heartbeats: HeartbeatScheduler) -> None:
        self.heartbeats = heartbeats
        self._active: dict[str, int] = {}

    def mark_started(self, chat_id: str) -> None:
        count = self._active.get(chat_id, 0)
        if count == 0:
            uploads_active.inc()
        self._active[chat_id] = count + 1
        # Further uploads renew only the lifetime; the beat phase is kept
        if count and self.heartbeats.is_running(chat_id):
            self.heartbeats.extend(chat_id)
        else:
            self.heartbeats.start(chat_id)
        logger.info(f"Upload started for chat {chat_id} (in flight: {count + 1})", chat_id=chat_id)

    def mark_complete(self, chat_id: str) -> None:
        """Must run on every exit path of an upload, including failures."""
        count = self._active.get(chat_id, 0)
        if count > 1:
            self._active[chat_id] = count - 1
            logger.info(f"Upload finished for chat {chat_id} (in flight: {count - 1})", chat_id=chat_id)
            return

        if count == 1:
            del self._active[chat_id]
            uploads_active.dec()
        self.heartbeats.stop(chat_id)
        logger.info(f"Upload activity cleared for chat {chat_id}", chat_id=chat_id)

    @asynccontextmanager
    async def track(self, chat_id: str) -> AsyncIterator[None]:
        """Bracket an upload so completion is recorded even when it raises.

        Example:
            async with uploads.track(chat_id):
                await blob_service.upload(...)
        """
        self.mark_started(chat_id)
        try:
            yield
        finally:
            self.mark_complete(chat_id)

    def is_active(self, chat_id: str) -> bool:
        return chat_id in self._active

    def active_count(self, chat_id: str) -> int:
        return self._active.get(chat_id, 0)

    @property
    def active_chats(self) -> frozenset[str]:
        return frozenset(self._active)

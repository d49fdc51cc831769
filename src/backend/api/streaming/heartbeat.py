"""Per-chat keep-alive frames with a bounded lifetime.

Each chat is either stopped (no entry) or running with two asyncio tasks:
a periodic task that broadcasts a heartbeat frame every ``interval``
seconds, and a lifetime task that stops the heartbeat after ``lifetime``
seconds so a forgotten chat cannot heartbeat forever.
"""

from __future__ import annotations

import asyncio

from dataclasses import dataclass
from typing import Any

from api.streaming.registry import ConnectionRegistry
from models.event_models import HeartbeatFrame
from utils.logger import logger
from utils.metrics import heartbeats_running


@dataclass(slots=True)
class RunningHeartbeat:
    """Timer handles of a running heartbeat. Absence from the scheduler means stopped."""

    periodic: asyncio.Task[None]
    lifetime: asyncio.Task[None]


class HeartbeatScheduler:
    """Start, extend and stop heartbeats per chat id.

    ``start`` on a running chat restarts it (fresh lifetime, fresh phase).
    ``extend`` swaps only the lifetime task. ``stop`` cancels both and is
    safe on a stopped chat.
    """

    def __init__(
        self,
        registry: ConnectionRegistry,
        interval: float = 1.0,
        lifetime: float = 120.0,
    ) -> None:
        self.registry = registry
        self.interval = interval
        self.lifetime = lifetime
        self._running: dict[str, RunningHeartbeat] = {}

    def start(self, chat_id: str) -> None:
        """Start (or restart) the heartbeat for ``chat_id``."""
        if chat_id in self._running:
            self.stop(chat_id)

        self._running[chat_id] = RunningHeartbeat(
            periodic=asyncio.create_task(self._beat(chat_id), name=f"heartbeat:{chat_id}"),
            lifetime=self._schedule_expiry(chat_id),
        )
        heartbeats_running.inc()
        logger.debug(f"Heartbeat started for chat {chat_id}", chat_id=chat_id)

    def extend(self, chat_id: str) -> None:
        """Reset the bounded lifetime without touching the periodic cadence.

        The upload tracker calls this when another upload starts on a chat
        that is already warm.
        """
        running = self._running.get(chat_id)
        if running is None:
            return
        running.lifetime.cancel()
        running.lifetime = self._schedule_expiry(chat_id)

    def stop(self, chat_id: str) -> None:
        """Cancel both timers for ``chat_id``. No-op when not running."""
        running = self._running.pop(chat_id, None)
        if running is None:
            return

        current = asyncio.current_task()
        for task in (running.periodic, running.lifetime):
            # The expiry task stops its own chat; it must not cancel itself mid-call
            if task is not current:
                task.cancel()
        heartbeats_running.dec()
        logger.debug(f"Heartbeat stopped for chat {chat_id}", chat_id=chat_id)

    def stop_all(self) -> None:
        for chat_id in list(self._running):
            self.stop(chat_id)

    def is_running(self, chat_id: str) -> bool:
        return chat_id in self._running

    @property
    def running_count(self) -> int:
        return len(self._running)

    def _schedule_expiry(self, chat_id: str) -> asyncio.Task[None]:
        return asyncio.create_task(self._expire(chat_id), name=f"heartbeat-lifetime:{chat_id}")

    async def _beat(self, chat_id: str) -> None:
        frame = HeartbeatFrame().to_frame()
        this_task = asyncio.current_task()
        loop = asyncio.get_running_loop()
        next_tick = loop.time() + self.interval
        while True:
            # Sleep to absolute deadlines so slow broadcasts do not drift the cadence
            await asyncio.sleep(max(0.0, next_tick - loop.time()))
            next_tick += self.interval
            try:
                await self.registry.broadcast(chat_id, dict(frame))
            except Exception as e:
                logger.warning(f"Heartbeat broadcast failed for chat {chat_id}: {e}", chat_id=chat_id)
            # Pruning the last subscriber stops this chat from inside the broadcast
            running = self._running.get(chat_id)
            if running is None or running.periodic is not this_task:
                return

    async def _expire(self, chat_id: str) -> None:
        await asyncio.sleep(self.lifetime)
        logger.info(
            f"Heartbeat for chat {chat_id} reached its {self.lifetime:.0f}s lifetime; stopping",
            chat_id=chat_id,
        )
        self.stop(chat_id)

    def get_stats(self) -> dict[str, Any]:
        return {
            "running": self.running_count,
            "interval": self.interval,
            "lifetime": self.lifetime,
        }

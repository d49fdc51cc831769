"""Tests for the SSE relay built on a subscribed QueueChannel."""

from __future__ import annotations

import json

import pytest

from api.streaming.channels import QueueChannel
from api.streaming.registry import ConnectionRegistry
from api.streaming.sse import encode_frame, stream_channel


def test_encode_frame_is_json_data_field() -> None:
    encoded = encode_frame({"type": "text-delta", "content": "Hi"})

    assert json.loads(encoded["data"]) == {"type": "text-delta", "content": "Hi"}


class TestStreamChannel:
    """Tests for stream_channel's generator and headers."""

    @pytest.mark.asyncio
    async def test_relays_first_frame_then_channel_frames(self) -> None:
        registry = ConnectionRegistry()
        channel = QueueChannel()
        registry.subscribe("c1", channel)
        response = stream_channel(registry, "c1", channel, first_frame={"type": "connected"})

        await registry.broadcast("c1", {"type": "text-delta", "content": "Hi"})
        await channel.close()
        events = [json.loads(e["data"]) async for e in response.body_iterator]

        assert events == [{"type": "connected"}, {"type": "text-delta", "content": "Hi"}]

    @pytest.mark.asyncio
    async def test_unsubscribes_when_stream_ends(self) -> None:
        registry = ConnectionRegistry()
        channel = QueueChannel()
        registry.subscribe("c1", channel)
        response = stream_channel(registry, "c1", channel)

        await channel.close()
        _ = [e async for e in response.body_iterator]

        assert not registry.is_subscribed("c1", channel)
        assert registry.chat_count == 0

    @pytest.mark.asyncio
    async def test_unsubscribes_when_client_goes_away(self) -> None:
        registry = ConnectionRegistry()
        channel = QueueChannel()
        registry.subscribe("c1", channel)
        response = stream_channel(registry, "c1", channel, first_frame={"type": "connected"})

        stream = response.body_iterator
        await stream.__anext__()
        await stream.aclose()

        assert not registry.is_subscribed("c1", channel)
        assert channel.closed

    def test_disables_proxy_buffering(self) -> None:
        registry = ConnectionRegistry()
        channel = QueueChannel()

        response = stream_channel(registry, "c1", channel)

        assert response.headers["x-accel-buffering"] == "no"
        assert "no-cache" in response.headers["cache-control"]

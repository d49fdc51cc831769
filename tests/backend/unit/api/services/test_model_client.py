"""Tests for the OpenAI-backed model client and its stream wrapper."""

from __future__ import annotations

from collections.abc import AsyncIterator
from types import SimpleNamespace
from typing import Any
from unittest.mock import AsyncMock, Mock

import pytest

from api.services.model_client import (
    ModelClient,
    ModelStream,
    ToolCallRequest,
    message_text,
    resolve_model,
    to_model_messages,
)


def _chunk(content: str | None = None, tool_calls: list[Any] | None = None, finish_reason: str | None = None) -> Any:
    delta = SimpleNamespace(content=content, tool_calls=tool_calls)
    return SimpleNamespace(choices=[SimpleNamespace(delta=delta, finish_reason=finish_reason)])


def _fragment(index: int, id: str | None = None, name: str | None = None, arguments: str | None = None) -> Any:
    return SimpleNamespace(index=index, id=id, function=SimpleNamespace(name=name, arguments=arguments))


async def _aiter(items: list[Any]) -> AsyncIterator[Any]:
    for item in items:
        yield item


class TestModelStream:
    """Tests for chunk decoding."""

    @pytest.mark.asyncio
    async def test_text_deltas_in_order(self) -> None:
        stream = ModelStream(_aiter([_chunk("Hi"), _chunk(" there"), _chunk(finish_reason="stop")]))

        events = [e async for e in stream]

        assert [(e.type, e.payload) for e in events] == [("text-delta", "Hi"), ("text-delta", " there")]
        assert stream.response.text == "Hi there"
        assert stream.response.finish_reason == "stop"
        assert stream.response.tool_calls == []

    @pytest.mark.asyncio
    async def test_tool_call_fragments_are_assembled(self) -> None:
        stream = ModelStream(
            _aiter(
                [
                    _chunk(tool_calls=[_fragment(0, id="call_a", name="getWeather", arguments='{"lati')]),
                    _chunk(tool_calls=[_fragment(1, id="call_b", name="search", arguments='{"query": "x"}')]),
                    _chunk(tool_calls=[_fragment(0, arguments='tude": 1, "longitude": 2}')]),
                    _chunk(finish_reason="tool_calls"),
                ]
            )
        )

        events = [e async for e in stream]

        calls = stream.response.tool_calls
        assert [c.name for c in calls] == ["getWeather", "search"]
        assert calls[0].parsed_arguments() == {"latitude": 1, "longitude": 2}
        assert [e.type for e in events] == ["tool-call", "tool-call"]

    @pytest.mark.asyncio
    async def test_chunks_without_choices_are_skipped(self) -> None:
        stream = ModelStream(_aiter([SimpleNamespace(choices=[]), _chunk("ok")]))

        events = [e async for e in stream]

        assert [e.payload for e in events] == ["ok"]

    @pytest.mark.asyncio
    async def test_stream_is_single_use(self) -> None:
        stream = ModelStream(_aiter([_chunk("a")]))
        _ = [e async for e in stream]

        with pytest.raises(RuntimeError):
            stream.__aiter__()

    def test_response_before_completion_raises(self) -> None:
        stream = ModelStream(_aiter([]))

        with pytest.raises(RuntimeError):
            _ = stream.response


class TestToolCallRequest:
    def test_empty_arguments(self) -> None:
        assert ToolCallRequest(id="1", name="x").parsed_arguments() == {}

    def test_non_object_arguments_rejected(self) -> None:
        with pytest.raises(ValueError):
            ToolCallRequest(id="1", name="x", arguments="[1, 2]").parsed_arguments()

    def test_invalid_json_rejected(self) -> None:
        with pytest.raises(ValueError):
            ToolCallRequest(id="1", name="x", arguments="{oops").parsed_arguments()


class TestMessageConversion:
    def test_message_text_from_parts(self) -> None:
        content = [{"type": "text", "text": "Hello "}, {"type": "image", "url": "x"}, {"type": "text", "text": "you"}]

        assert message_text(content) == "Hello you"

    def test_message_text_unknown_shape(self) -> None:
        assert message_text(None) == ""

    def test_to_model_messages_skips_tool_and_empty(self) -> None:
        history = [
            {"role": "user", "content": "hello"},
            {"role": "tool", "content": "ignored"},
            {"role": "assistant", "content": ""},
            {"role": "assistant", "content": [{"type": "text", "text": "Hi"}]},
        ]

        assert to_model_messages(history) == [
            {"role": "user", "content": "hello"},
            {"role": "assistant", "content": "Hi"},
        ]


class TestResolveModel:
    def test_default(self) -> None:
        assert resolve_model(None) == "gpt-4o-mini"

    def test_client_id(self) -> None:
        assert resolve_model("chat-model-large") == "gpt-4o"

    def test_deployment_name_passes_through(self) -> None:
        assert resolve_model("gpt-4o") == "gpt-4o"

    def test_disabled_model_falls_back(self) -> None:
        assert resolve_model("chat-model-reasoning") == "gpt-4o-mini"


class TestModelClient:
    @pytest.mark.asyncio
    async def test_stream_prepends_system_prompt_and_passes_tools(self, mock_openai_client: Mock) -> None:
        mock_openai_client.chat.completions.create.return_value = _aiter([_chunk("Hi")])
        client = ModelClient(mock_openai_client)
        tools = [{"type": "function", "function": {"name": "x"}}]

        stream = await client.stream("be nice", [{"role": "user", "content": "hello"}], tools, model="gpt-4o")
        events = [e async for e in stream]

        kwargs = mock_openai_client.chat.completions.create.await_args.kwargs
        assert kwargs["messages"][0] == {"role": "system", "content": "be nice"}
        assert kwargs["messages"][1] == {"role": "user", "content": "hello"}
        assert kwargs["tools"] == tools
        assert kwargs["stream"] is True
        assert kwargs["model"] == "gpt-4o"
        assert events[0].payload == "Hi"

    @pytest.mark.asyncio
    async def test_stream_without_tools_omits_them(self, mock_openai_client: Mock) -> None:
        mock_openai_client.chat.completions.create.return_value = _aiter([])
        client = ModelClient(mock_openai_client)

        await client.stream("sys", [])

        assert "tools" not in mock_openai_client.chat.completions.create.await_args.kwargs

    @pytest.mark.asyncio
    async def test_complete_returns_message_content(self, mock_openai_client: Mock) -> None:
        message = SimpleNamespace(content="A Title")
        mock_openai_client.chat.completions.create.return_value = SimpleNamespace(
            choices=[SimpleNamespace(message=message)]
        )
        client = ModelClient(mock_openai_client, title_model="gpt-4o")

        result = await client.complete("title prompt", "hello", json_mode=True)

        kwargs = mock_openai_client.chat.completions.create.await_args.kwargs
        assert result == "A Title"
        assert kwargs["model"] == "gpt-4o"
        assert kwargs["response_format"] == {"type": "json_object"}

    @pytest.mark.asyncio
    async def test_upstream_rejection_propagates(self) -> None:
        openai_client = Mock()
        openai_client.chat.completions.create = AsyncMock(side_effect=RuntimeError("401"))
        client = ModelClient(openai_client)

        with pytest.raises(RuntimeError):
            await client.stream("sys", [])

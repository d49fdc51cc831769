"""Tests for the per-turn tool registry."""

from __future__ import annotations

import json

from typing import Any
from unittest.mock import MagicMock

import pytest

from api.services.model_client import ToolCallRequest
from tools import ToolContext, ToolNotFound, ToolRegistry, ToolSpec, create_chat_tools


async def _add(ctx: Any, a: int, b: int) -> dict[str, int]:
    return {"sum": a + b}


async def _fail(ctx: Any) -> str:
    raise RuntimeError("nope")


ADD = ToolSpec(name="add", description="Add numbers", parameters={"type": "object"}, handler=_add)
FAIL = ToolSpec(name="fail", description="Fails", parameters={"type": "object"}, handler=_fail)


def _context(tavily_api_key: str | None = None) -> ToolContext:
    return ToolContext(
        user_id="u1",
        chat_id="c1",
        documents=MagicMock(),
        model=MagicMock(),
        http=MagicMock(),
        tavily_api_key=tavily_api_key,
    )


class TestToolRegistry:
    """Tests for registration, schemas and dispatch."""

    def test_schema_is_openai_function_tool(self) -> None:
        registry = ToolRegistry(context=_context())
        registry.register(ADD)

        assert registry.schemas() == [
            {
                "type": "function",
                "function": {"name": "add", "description": "Add numbers", "parameters": {"type": "object"}},
            }
        ]

    @pytest.mark.asyncio
    async def test_execute_serializes_non_string_results(self) -> None:
        registry = ToolRegistry(context=_context())
        registry.register(ADD)

        result = await registry.execute(ToolCallRequest(id="1", name="add", arguments='{"a": 2, "b": 3}'))

        assert json.loads(result) == {"sum": 5}

    @pytest.mark.asyncio
    async def test_execute_passes_context(self) -> None:
        seen: list[Any] = []

        async def capture(ctx: ToolContext) -> str:
            seen.append(ctx)
            return "ok"

        context = _context()
        registry = ToolRegistry(context=context)
        registry.register(ToolSpec(name="capture", description="", parameters={}, handler=capture))

        assert await registry.execute(ToolCallRequest(id="1", name="capture")) == "ok"
        assert seen == [context]

    @pytest.mark.asyncio
    async def test_unknown_tool(self) -> None:
        registry = ToolRegistry(context=_context())

        with pytest.raises(ToolNotFound):
            await registry.execute(ToolCallRequest(id="1", name="missing"))

    @pytest.mark.asyncio
    async def test_tool_errors_propagate(self) -> None:
        registry = ToolRegistry(context=_context())
        registry.register(FAIL)

        with pytest.raises(RuntimeError, match="nope"):
            await registry.execute(ToolCallRequest(id="1", name="fail"))


class TestCreateChatTools:
    """Tests for the default per-turn tool set."""

    def test_default_tools_without_search_key(self) -> None:
        registry = create_chat_tools(_context())

        assert registry.names == ["createDocument", "updateDocument", "requestSuggestions", "getWeather"]

    def test_search_offered_with_tavily_key(self) -> None:
        registry = create_chat_tools(_context(tavily_api_key="tvly-key"))

        assert "search" in registry.names

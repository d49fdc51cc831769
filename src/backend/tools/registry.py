"""
Tool registry for chat turns.

Tools are plain async functions taking a :class:`ToolContext` plus the
model-supplied arguments. The registry publishes OpenAI function-tool
schemas and dispatches calls by name, timing and counting each one.
"""

from __future__ import annotations

import json
import time

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import httpx

if TYPE_CHECKING:
    from api.services.document_repository import DocumentRepository
    from api.services.model_client import ModelClient, ToolCallRequest

from utils.logger import logger
from utils.metrics import tool_calls_total

ToolHandler = Callable[..., Awaitable[Any]]


@dataclass
class ToolContext:
    """Per-turn values injected into every tool call."""

    user_id: str
    chat_id: str
    documents: DocumentRepository
    model: ModelClient
    http: httpx.AsyncClient
    tavily_api_key: str | None = None
    tavily_max_retries: int = 3


@dataclass(frozen=True)
class ToolSpec:
    name: str
    description: str
    parameters: dict[str, Any]
    handler: ToolHandler

    def schema(self) -> dict[str, Any]:
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }


class ToolNotFound(LookupError):
    pass


@dataclass
class ToolRegistry:
    context: ToolContext
    tools: dict[str, ToolSpec] = field(default_factory=dict)

    def register(self, spec: ToolSpec) -> None:
        self.tools[spec.name] = spec

    def schemas(self) -> list[dict[str, Any]]:
        return [spec.schema() for spec in self.tools.values()]

    @property
    def names(self) -> list[str]:
        return list(self.tools)

    async def execute(self, call: ToolCallRequest) -> str:
        """Run one tool call and return its result as text.

        Raises:
            ToolNotFound: If the model asked for an unregistered tool
            Exception: Whatever the tool raised; callers decide how to degrade
        """
        spec = self.tools.get(call.name)
        if spec is None:
            raise ToolNotFound(call.name)

        arguments = call.parsed_arguments()
        start = time.perf_counter()
        try:
            result = await spec.handler(self.context, **arguments)
        except Exception:
            tool_calls_total.labels(tool_name=call.name, status="error").inc()
            logger.log_tool_call(call.name, arguments, succeeded=False)
            raise

        tool_calls_total.labels(tool_name=call.name, status="success").inc()
        logger.log_tool_call(call.name, arguments, succeeded=True)
        logger.debug(f"Tool {call.name} finished in {(time.perf_counter() - start) * 1000:.0f}ms")
        return result if isinstance(result, str) else json.dumps(result, default=str)

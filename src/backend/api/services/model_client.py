"""Language model boundary over the OpenAI async SDK.

``ModelClient.stream`` returns a :class:`ModelStream`: an ordered,
single-use async iterator of :class:`ModelEvent` items. Once exhausted,
``ModelStream.response`` holds the final text and any requested tool calls.
"""

from __future__ import annotations

import json

from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Any, Literal

from openai import AsyncOpenAI

from core.constants import CHAT_MODEL_DEPLOYMENTS, DEFAULT_CHAT_MODEL, ROLE_ASSISTANT, ROLE_USER
from utils.logger import logger


@dataclass(slots=True)
class ToolCallRequest:
    """A tool invocation requested by the model."""

    id: str
    name: str
    arguments: str = ""

    def parsed_arguments(self) -> dict[str, Any]:
        """Decode the JSON argument string; raises ``ValueError`` on bad JSON."""
        if not self.arguments:
            return {}
        value = json.loads(self.arguments)
        if not isinstance(value, dict):
            raise ValueError(f"Tool arguments for {self.name} must be a JSON object")
        return value


@dataclass(slots=True)
class ModelEvent:
    type: Literal["text-delta", "tool-call"]
    payload: Any


@dataclass(slots=True)
class ModelResponse:
    text: str
    tool_calls: list[ToolCallRequest] = field(default_factory=list)
    finish_reason: str | None = None


class ModelStream:
    """Consume a chat-completions chunk stream exactly once."""

    def __init__(self, chunks: AsyncIterator[Any]):
        self._chunks = chunks
        self._consumed = False
        self._response: ModelResponse | None = None

    def __aiter__(self) -> AsyncIterator[ModelEvent]:
        if self._consumed:
            raise RuntimeError("ModelStream can only be iterated once")
        self._consumed = True
        return self._iterate()

    @property
    def response(self) -> ModelResponse:
        if self._response is None:
            raise RuntimeError("ModelStream has not completed")
        return self._response

    async def _iterate(self) -> AsyncIterator[ModelEvent]:
        text_parts: list[str] = []
        # Tool call fragments arrive keyed by index; id/name come first, arguments stream in pieces
        pending: dict[int, ToolCallRequest] = {}
        finish_reason: str | None = None

        async for chunk in self._chunks:
            if not chunk.choices:
                continue
            choice = chunk.choices[0]
            delta = choice.delta
            if delta is not None:
                if delta.content:
                    text_parts.append(delta.content)
                    yield ModelEvent(type="text-delta", payload=delta.content)
                for fragment in delta.tool_calls or ():
                    call = pending.setdefault(fragment.index, ToolCallRequest(id="", name=""))
                    if fragment.id:
                        call.id = fragment.id
                    if fragment.function is not None:
                        if fragment.function.name:
                            call.name = fragment.function.name
                        if fragment.function.arguments:
                            call.arguments += fragment.function.arguments
            if choice.finish_reason:
                finish_reason = choice.finish_reason

        tool_calls = [pending[i] for i in sorted(pending) if pending[i].name]
        for call in tool_calls:
            yield ModelEvent(type="tool-call", payload=call)

        self._response = ModelResponse(text="".join(text_parts), tool_calls=tool_calls, finish_reason=finish_reason)


def to_model_messages(history: list[dict[str, Any]]) -> list[dict[str, str]]:
    """Convert stored messages to chat-completions messages.

    Part lists are flattened to their text parts. Tool-role records and
    messages with no text are skipped.
    """
    converted: list[dict[str, str]] = []
    for message in history:
        role = message.get("role")
        if role not in (ROLE_USER, ROLE_ASSISTANT):
            continue
        text = message_text(message.get("content"))
        if text:
            converted.append({"role": role, "content": text})
    return converted


def message_text(content: Any) -> str:
    """Text of a message whose content is a string or a list of typed parts."""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        return "".join(
            str(part.get("text", "")) for part in content if isinstance(part, dict) and part.get("type") == "text"
        )
    return ""


def resolve_model(selected_model: str | None) -> str:
    """Map a client model id to a provider deployment, falling back to the default."""
    if selected_model and selected_model in CHAT_MODEL_DEPLOYMENTS:
        return CHAT_MODEL_DEPLOYMENTS[selected_model]
    if selected_model and selected_model in CHAT_MODEL_DEPLOYMENTS.values():
        return selected_model
    if selected_model:
        logger.warning(f"Unknown model '{selected_model}', using {DEFAULT_CHAT_MODEL}")
    return CHAT_MODEL_DEPLOYMENTS[DEFAULT_CHAT_MODEL]


class ModelClient:
    def __init__(self, client: AsyncOpenAI, title_model: str = "gpt-4o"):
        self.client = client
        self.title_model = title_model

    async def stream(
        self,
        system_prompt: str,
        messages: list[dict[str, str]],
        tools: list[dict[str, Any]] | None = None,
        model: str | None = None,
    ) -> ModelStream:
        """Start a streamed completion. Raises the SDK's errors if the request is rejected."""
        kwargs: dict[str, Any] = {
            "model": model or resolve_model(None),
            "messages": [{"role": "system", "content": system_prompt}, *messages],
            "stream": True,
        }
        if tools:
            kwargs["tools"] = tools
        chunks = await self.client.chat.completions.create(**kwargs)
        return ModelStream(chunks)

    async def complete(
        self,
        system_prompt: str,
        prompt: str,
        model: str | None = None,
        json_mode: bool = False,
    ) -> str:
        """Single non-streamed completion (titles, suggestions)."""
        kwargs: dict[str, Any] = {
            "model": model or self.title_model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": prompt},
            ],
        }
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}
        response = await self.client.chat.completions.create(**kwargs)
        return response.choices[0].message.content or ""

"""
Stream frame models for Chat Relay.
Every frame fanned out through the connection registry is built from one
of these and serialized with ``to_frame()``.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from core.constants import (
    FRAME_CONNECTED,
    FRAME_DOCUMENT_CONTEXT_UPDATE,
    FRAME_ERROR,
    FRAME_HEARTBEAT,
    FRAME_TEXT_DELTA,
)


def _now_ms() -> int:
    return int(datetime.now(UTC).timestamp() * 1000)


class StreamFrame(BaseModel):
    """Base for frames; serialized with camelCase aliases."""

    model_config = ConfigDict(populate_by_name=True)

    type: str

    def to_frame(self) -> dict[str, Any]:
        frame: dict[str, Any] = self.model_dump(by_alias=True, exclude_none=True)
        return frame


class TextDeltaFrame(StreamFrame):
    """One chunk of assistant text, in model order."""

    type: Literal["text-delta"] = FRAME_TEXT_DELTA
    content: str


class HeartbeatFrame(StreamFrame):
    type: Literal["heartbeat"] = FRAME_HEARTBEAT


class DocumentContextUpdateFrame(StreamFrame):
    """A processed upload is now part of the chat's document context."""

    type: Literal["document-context-update"] = FRAME_DOCUMENT_CONTEXT_UPDATE
    has_images: bool = Field(default=False, alias="hasImages")
    timestamp: int = Field(default_factory=_now_ms)


class ErrorFrame(StreamFrame):
    type: Literal["error"] = FRAME_ERROR
    message: str


class ConnectedFrame(StreamFrame):
    """First frame on a stream subscription."""

    type: Literal["connected"] = FRAME_CONNECTED
    timestamp: int = Field(default_factory=_now_ms)


__all__ = [
    "ConnectedFrame",
    "DocumentContextUpdateFrame",
    "ErrorFrame",
    "HeartbeatFrame",
    "StreamFrame",
    "TextDeltaFrame",
]

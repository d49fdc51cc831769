"""
Chat, message and vote API schemas.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import AliasChoices, Field, field_validator

from models.schemas.base import CamelModel


class ChatMessageIn(CamelModel):
    """A message as sent by the client in a chat turn."""

    id: str | None = Field(default=None, description="Client-generated message id")
    role: Literal["user", "assistant", "tool", "system"] = Field(..., description="Message author role")
    content: str | list[dict[str, Any]] = Field(default="", description="Text or a list of typed parts")
    attachments: list[dict[str, Any]] = Field(default_factory=list, description="Attachment references")


class ChatTurnRequest(CamelModel):
    """Body of ``POST /api/v1/chat``."""

    model_config = CamelModel.model_config | {
        "json_schema_extra": {
            "example": {
                "chatId": "c1",
                "messages": [{"id": "m1", "role": "user", "content": "hello"}],
                "selectedModel": "chat-model-small",
            }
        }
    }

    chat_id: str | None = Field(
        default=None,
        validation_alias=AliasChoices("chatId", "id", "chat_id"),
        description="Caller-supplied chat identifier",
    )
    messages: list[ChatMessageIn] = Field(default_factory=list, description="Conversation so far")
    selected_model: str | None = Field(
        default=None,
        validation_alias=AliasChoices("selectedModel", "selectedChatModel", "selected_model"),
        description="Model id from the model selector",
    )


class ChatResponse(CamelModel):
    id: str
    user_id: str
    title: str
    visibility: Literal["private", "public"]
    created_at: datetime


class VisibilityUpdateRequest(CamelModel):
    visibility: Literal["private", "public"]


class MessageResponse(CamelModel):
    id: str
    chat_id: str
    role: str
    content: str | list[dict[str, Any]]
    attachments: list[dict[str, Any]] = Field(default_factory=list)
    created_at: datetime


class MessageUpdateRequest(CamelModel):
    content: str | list[dict[str, Any]]

    @field_validator("content")
    @classmethod
    def content_not_empty(cls, value: str | list[dict[str, Any]]) -> str | list[dict[str, Any]]:
        if not value:
            raise ValueError("content must not be empty")
        return value


class VoteRequest(CamelModel):
    message_id: str = Field(..., min_length=1)
    type: Literal["up", "down"]


class VoteResponse(CamelModel):
    chat_id: str
    message_id: str
    is_upvoted: bool

"""Chat turn orchestration, chat deletion and message edits.

A turn runs in two halves. ``prepare_turn`` does everything that can still
fail with an HTTP status (validation, persisting the user message,
resolving or creating the chat). ``run_turn`` then streams the model's
reply to the chat's subscribers, executes requested tools and persists the
assistant and tool messages. It never raises for upstream or storage
failures; those become an ``error`` frame and a log entry.
"""

from __future__ import annotations

import asyncio
import time

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from api.middleware.exception_handlers import (
    AppException,
    AuthenticationError,
    ChatNotFoundError,
    DatabaseError,
    MessageNotFoundError,
    ValidationException,
)
from api.services.chat_repository import ChatRepository, new_message
from api.services.model_client import ModelClient, ToolCallRequest, message_text, resolve_model, to_model_messages
from api.streaming.registry import ConnectionRegistry
from core.constants import (
    DEFAULT_CHAT_TITLE,
    ROLE_ASSISTANT,
    ROLE_USER,
    STREAM_ERROR_MESSAGE,
    TITLE_MAX_LENGTH,
)
from core.prompts import TITLE_GENERATION_PROMPT, build_system_prompt
from models.api_models import UserInfo
from models.error_models import ErrorCode
from models.event_models import ErrorFrame, TextDeltaFrame
from tools import ToolRegistry
from utils.logger import logger
from utils.metrics import chat_turn_duration_seconds, chat_turns_total

ToolsFactory = Callable[[UserInfo, str], ToolRegistry]


@dataclass
class PreparedTurn:
    """A validated turn whose user message is durable and whose chat exists."""

    user: UserInfo
    chat_id: str
    chat: dict[str, Any]
    user_message: dict[str, Any]
    model: str
    created_chat: bool = False
    started_at: float = field(default_factory=time.perf_counter)


@dataclass
class TurnResult:
    """What a finished turn produced; returned for logging and tests."""

    text: str
    tool_results: list[str] = field(default_factory=list)
    errored: bool = False
    assistant_persisted: bool = False
    tool_message_persisted: bool = False


#: Quote and colon characters models put in titles, ASCII and typographic
_TITLE_STRIP = str.maketrans("", "", "\"'\u201c\u201d\u2018\u2019\u201e\u00ab\u00bb\u300c\u300d:\uff1a")


def clean_title(raw: str) -> str:
    """Strip quotes, colons and trailing punctuation; cap at the title limit."""
    title = raw.strip().splitlines()[0] if raw.strip() else ""
    title = title.translate(_TITLE_STRIP).strip()
    title = title.rstrip(".!?").strip()
    return title[:TITLE_MAX_LENGTH].rstrip()


def most_recent_user_message(messages: list[dict[str, Any]]) -> dict[str, Any] | None:
    for message in reversed(messages):
        if message.get("role") == ROLE_USER:
            return message
    return None


class ChatService:
    """Orchestrate chat turns against storage, the model and the connection registry."""

    def __init__(
        self,
        chats: ChatRepository,
        model: ModelClient,
        registry: ConnectionRegistry,
        tools_factory: ToolsFactory,
    ):
        self.chats = chats
        self.model = model
        self.registry = registry
        self.tools_factory = tools_factory
        # Keep references so running turns are not garbage-collected
        self._background_tasks: set[asyncio.Task[Any]] = set()

    # ------------------------------------------------------------------
    # Received -> UserPersisted -> ChatResolved
    # ------------------------------------------------------------------

    async def prepare_turn(
        self,
        user: UserInfo,
        chat_id: str | None,
        messages: list[dict[str, Any]] | None,
        selected_model: str | None = None,
    ) -> PreparedTurn:
        """Validate the request, persist the user message and resolve the chat.

        Raises:
            ValidationException: Missing chat id or no user message (400)
            AuthenticationError: The chat exists and belongs to someone else (401)
            DatabaseError: The user message could not be stored (500)
            AppException: The chat could not be created (500)
        """
        if not chat_id:
            raise ValidationException("Missing chat id", code=ErrorCode.VALIDATION_MISSING_FIELD)
        user_input = most_recent_user_message(messages or [])
        if user_input is None:
            raise ValidationException("No user message found", code=ErrorCode.CHAT_EMPTY_TURN)

        # Read-only ownership check, so nothing is written into a chat the requester cannot use
        existing = await self.chats.get_chat_by_id(chat_id)
        if existing is not None and existing["user_id"] != user.id:
            raise AuthenticationError("Unauthorized", code=ErrorCode.AUTH_NOT_OWNER)

        record = new_message(
            chat_id,
            ROLE_USER,
            user_input.get("content", ""),
            message_id=user_input.get("id"),
            attachments=user_input.get("attachments"),
        )
        try:
            await self.chats.save_message(record)
        except Exception as e:
            logger.error(f"Failed to persist user message for chat {chat_id}: {e}", exc_info=True)
            raise DatabaseError("Failed to save message", cause=e) from e

        created = False
        chat = existing
        if chat is None:
            title = await self.generate_title(message_text(record["content"]))
            try:
                chat = await self.chats.save_chat(chat_id, user.id, title)
            except Exception as e:
                logger.error(f"Failed to create chat {chat_id}: {e}", exc_info=True)
                raise AppException(ErrorCode.CHAT_CREATE_FAILED, "Failed to create chat", cause=e) from e
            created = True

        return PreparedTurn(
            user=user,
            chat_id=chat_id,
            chat=chat,
            user_message=record,
            model=resolve_model(selected_model),
            created_chat=created,
        )

    async def generate_title(self, user_text: str) -> str:
        """Ask the model for a short title; fall back to the message itself."""
        try:
            raw = await self.model.complete(TITLE_GENERATION_PROMPT, user_text)
            title = clean_title(raw)
        except Exception as e:
            logger.warning(f"Title generation failed, using message text: {e}")
            title = ""
        return title or clean_title(user_text) or DEFAULT_CHAT_TITLE

    # ------------------------------------------------------------------
    # Streaming -> ToolPhase -> AssistantPersisted -> Done
    # ------------------------------------------------------------------

    def start_turn(
        self,
        turn: PreparedTurn,
        on_done: Callable[[], Awaitable[None]] | None = None,
    ) -> asyncio.Task[TurnResult]:
        """Run the turn in the background, independent of any one client connection."""

        async def runner() -> TurnResult:
            try:
                return await self.run_turn(turn)
            finally:
                if on_done is not None:
                    await on_done()

        task = asyncio.create_task(runner(), name=f"chat-turn:{turn.chat_id}")
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)
        return task

    async def run_turn(self, turn: PreparedTurn) -> TurnResult:
        chat_id = turn.chat_id
        tools = self.tools_factory(turn.user, chat_id)
        buffer: list[str] = []
        tool_calls: list[ToolCallRequest] = []
        errored = False

        try:
            history = await self.chats.get_messages_by_chat_id(chat_id)
            stream = await self.model.stream(
                build_system_prompt(search_enabled="search" in tools.names),
                to_model_messages(history),
                tools.schemas(),
                model=turn.model,
            )
            async for event in stream:
                if event.type == "text-delta":
                    buffer.append(event.payload)
                    await self.registry.broadcast(chat_id, TextDeltaFrame(content=event.payload).to_frame())
            tool_calls = stream.response.tool_calls
        except Exception as e:
            errored = True
            logger.error(f"Model stream failed for chat {chat_id}: {e}", exc_info=True, chat_id=chat_id)
            await self._broadcast_error(chat_id)

        tool_results = await self._run_tools(tools, tool_calls) if tool_calls else []

        result = TurnResult(text="".join(buffer), tool_results=tool_results, errored=errored)
        result.assistant_persisted = await self._persist(chat_id, ROLE_ASSISTANT, result.text, "assistant message")
        if tool_results:
            result.tool_message_persisted = await self._persist(
                chat_id, ROLE_ASSISTANT, "\n".join(tool_results), "tool results"
            )

        outcome = "upstream_error" if errored else "completed"
        duration = time.perf_counter() - turn.started_at
        chat_turns_total.labels(outcome=outcome).inc()
        chat_turn_duration_seconds.observe(duration)
        logger.log_turn(
            chat_id,
            message_text(turn.user_message["content"]),
            result.text,
            tool_names=[c.name for c in tool_calls],
            duration_ms=duration * 1000,
            outcome=outcome,
        )
        return result

    async def _run_tools(self, tools: ToolRegistry, calls: list[ToolCallRequest]) -> list[str]:
        """Execute calls in order; a failing tool contributes nothing."""
        results: list[str] = []
        for call in calls:
            try:
                results.append(await tools.execute(call))
            except Exception as e:
                logger.warning(f"Tool {call.name} failed: {type(e).__name__}: {e}")
        return results

    async def _persist(self, chat_id: str, role: str, content: str, what: str) -> bool:
        """Store one message; failures are logged, never raised."""
        try:
            await self.chats.save_message(new_message(chat_id, role, content))
        except Exception as e:
            logger.error(f"Failed to persist {what} for chat {chat_id}: {e}", exc_info=True, chat_id=chat_id)
            return False
        return True

    async def _broadcast_error(self, chat_id: str) -> None:
        try:
            await self.registry.broadcast(chat_id, ErrorFrame(message=STREAM_ERROR_MESSAGE).to_frame())
        except Exception as e:
            logger.warning(f"Could not deliver error frame for chat {chat_id}: {e}")

    # ------------------------------------------------------------------
    # Deletion
    # ------------------------------------------------------------------

    async def delete_chat(self, user: UserInfo, chat_id: str) -> None:
        """Delete a chat owned by ``user``: votes, then messages, then the chat.

        Raises:
            ChatNotFoundError: No such chat (404)
            AuthenticationError: The requester does not own it (401)
        """
        await self.get_owned_chat(user, chat_id)
        await self.chats.delete_chat_by_id(chat_id)
        logger.info(f"Chat {chat_id} deleted by {user.id}", chat_id=chat_id)

    # ------------------------------------------------------------------
    # Access checks and message edits
    # ------------------------------------------------------------------

    async def get_owned_chat(self, user: UserInfo, chat_id: str) -> dict[str, Any]:
        chat = await self.chats.get_chat_by_id(chat_id)
        if chat is None:
            raise ChatNotFoundError(chat_id)
        if chat["user_id"] != user.id:
            raise AuthenticationError("Unauthorized", code=ErrorCode.AUTH_NOT_OWNER)
        return chat

    async def get_readable_chat(self, user: UserInfo, chat_id: str) -> dict[str, Any]:
        """The chat if ``user`` owns it or it is public."""
        chat = await self.chats.get_chat_by_id(chat_id)
        if chat is None:
            raise ChatNotFoundError(chat_id)
        if chat["visibility"] != "public" and chat["user_id"] != user.id:
            raise AuthenticationError("Unauthorized", code=ErrorCode.AUTH_NOT_OWNER)
        return chat

    async def _get_owned_message(self, user: UserInfo, message_id: str) -> dict[str, Any]:
        message = await self.chats.get_message_by_id(message_id)
        if message is None:
            raise MessageNotFoundError(message_id)
        await self.get_owned_chat(user, message["chat_id"])
        return message

    async def edit_message(self, user: UserInfo, message_id: str, content: Any) -> dict[str, Any]:
        """Replace a message's content and drop everything after it."""
        await self._get_owned_message(user, message_id)
        updated = await self.chats.update_message_content(message_id, content)
        if updated is None:
            raise MessageNotFoundError(message_id)
        return updated

    async def delete_trailing_messages(self, user: UserInfo, message_id: str) -> int:
        """Delete the message and every later message in its chat."""
        message = await self._get_owned_message(user, message_id)
        return await self.chats.delete_messages_after(message["chat_id"], message["created_at"], inclusive=True)

    async def shutdown(self, timeout: float = 10.0) -> None:
        """Give in-flight turns a chance to persist, then cancel the rest."""
        if not self._background_tasks:
            return
        pending = list(self._background_tasks)
        _, still_running = await asyncio.wait(pending, timeout=timeout)
        for task in still_running:
            task.cancel()
        if still_running:
            logger.warning(f"Cancelled {len(still_running)} chat turns at shutdown")

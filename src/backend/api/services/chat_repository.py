"""PostgreSQL storage for chats, messages and votes."""

from __future__ import annotations

import json

from datetime import UTC, datetime
from typing import Any
from uuid import UUID, uuid4

import asyncpg

from core.constants import ChatVisibility, VoteType
from utils.db_utils import transaction, with_retry
from utils.logger import logger


def utc_now() -> datetime:
    return datetime.now(UTC)


def new_message(
    chat_id: str,
    role: str,
    content: Any,
    message_id: str | None = None,
    attachments: list[dict[str, Any]] | None = None,
    created_at: datetime | None = None,
) -> dict[str, Any]:
    """Build a message record ready for :meth:`ChatRepository.save_messages`."""
    return {
        "id": message_id or str(uuid4()),
        "chat_id": chat_id,
        "role": role,
        "content": content,
        "attachments": attachments or [],
        "created_at": created_at or utc_now(),
    }


class ChatRepository:
    """Chat, message and vote records keyed by chat/message id.

    Message content is stored as JSONB so it can be plain text or a list
    of typed parts. Messages are ordered by ``created_at`` with an insert
    sequence as tiebreaker.
    """

    def __init__(self, pool: asyncpg.Pool):
        self.pool = pool

    # ------------------------------------------------------------------
    # Chats
    # ------------------------------------------------------------------

    async def save_chat(
        self,
        chat_id: str,
        user_id: UUID | str,
        title: str,
        visibility: ChatVisibility = "private",
    ) -> dict[str, Any]:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                """
                INSERT INTO chats (id, user_id, title, visibility, created_at)
                VALUES ($1, $2, $3, $4, $5)
                RETURNING *
                """,
                chat_id,
                UUID(str(user_id)),
                title,
                visibility,
                utc_now(),
            )
        logger.info(f"Created chat {chat_id}", chat_id=chat_id)
        return self._row_to_chat(row)

    @with_retry()
    async def get_chat_by_id(self, chat_id: str) -> dict[str, Any] | None:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow("SELECT * FROM chats WHERE id = $1", chat_id)
        return self._row_to_chat(row) if row else None

    @with_retry()
    async def get_chats_by_user_id(self, user_id: UUID | str) -> list[dict[str, Any]]:
        """The user's own chats plus every public chat, newest first."""
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                """
                SELECT * FROM chats
                WHERE user_id = $1 OR visibility = 'public'
                ORDER BY created_at DESC
                """,
                UUID(str(user_id)),
            )
        return [self._row_to_chat(row) for row in rows]

    async def update_chat_visibility(self, chat_id: str, visibility: ChatVisibility) -> dict[str, Any] | None:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                "UPDATE chats SET visibility = $2 WHERE id = $1 RETURNING *",
                chat_id,
                visibility,
            )
        return self._row_to_chat(row) if row else None

    @with_retry()
    async def delete_chat_by_id(self, chat_id: str) -> None:
        """Delete votes, then messages, then the chat.

        Each step is its own statement so an interruption never leaves
        children pointing at a deleted chat; re-running finishes the job.
        """
        async with self.pool.acquire() as conn:
            votes = await conn.execute("DELETE FROM votes WHERE chat_id = $1", chat_id)
            messages = await conn.execute("DELETE FROM messages WHERE chat_id = $1", chat_id)
            await conn.execute("DELETE FROM chats WHERE id = $1", chat_id)
        logger.info(
            f"Deleted chat {chat_id} ({votes.split()[-1]} votes, {messages.split()[-1]} messages)",
            chat_id=chat_id,
        )

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    async def save_messages(self, messages: list[dict[str, Any]]) -> None:
        """Insert messages in list order. Not retried: a retried insert may duplicate."""
        if not messages:
            return
        async with self.pool.acquire() as conn:
            await conn.executemany(
                """
                INSERT INTO messages (id, chat_id, role, content, attachments, created_at)
                VALUES ($1, $2, $3, $4::jsonb, $5::jsonb, $6)
                """,
                [
                    (
                        m["id"],
                        m["chat_id"],
                        m["role"],
                        json.dumps(m["content"]),
                        json.dumps(m.get("attachments") or []),
                        m["created_at"],
                    )
                    for m in messages
                ],
            )

    async def save_message(self, message: dict[str, Any]) -> None:
        await self.save_messages([message])

    @with_retry()
    async def get_messages_by_chat_id(self, chat_id: str) -> list[dict[str, Any]]:
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                """
                SELECT * FROM messages
                WHERE chat_id = $1
                ORDER BY created_at ASC, seq ASC
                """,
                chat_id,
            )
        return [self._row_to_message(row) for row in rows]

    @with_retry()
    async def get_message_by_id(self, message_id: str) -> dict[str, Any] | None:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow("SELECT * FROM messages WHERE id = $1", message_id)
        return self._row_to_message(row) if row else None

    @with_retry()
    async def delete_messages_after(self, chat_id: str, timestamp: datetime, inclusive: bool = False) -> int:
        """Delete the chat's messages created after ``timestamp`` (and their votes)."""
        op = ">=" if inclusive else ">"
        async with transaction(self.pool) as conn:
            await conn.execute(
                f"""
                DELETE FROM votes
                WHERE chat_id = $1 AND message_id IN (
                    SELECT id FROM messages WHERE chat_id = $1 AND created_at {op} $2
                )
                """,
                chat_id,
                timestamp,
            )
            result: str = await conn.execute(
                f"DELETE FROM messages WHERE chat_id = $1 AND created_at {op} $2",
                chat_id,
                timestamp,
            )
        return int(result.split()[-1])

    async def update_message_content(self, message_id: str, content: Any) -> dict[str, Any] | None:
        """Replace a message's content and drop everything after it in the chat."""
        async with transaction(self.pool) as conn:
            row = await conn.fetchrow(
                "UPDATE messages SET content = $2::jsonb WHERE id = $1 RETURNING *",
                message_id,
                json.dumps(content),
            )
            if row is None:
                return None
            await conn.execute(
                """
                DELETE FROM votes
                WHERE chat_id = $1 AND message_id IN (
                    SELECT id FROM messages WHERE chat_id = $1 AND created_at > $2
                )
                """,
                row["chat_id"],
                row["created_at"],
            )
            await conn.execute(
                "DELETE FROM messages WHERE chat_id = $1 AND created_at > $2",
                row["chat_id"],
                row["created_at"],
            )
        return self._row_to_message(row)

    # ------------------------------------------------------------------
    # Votes
    # ------------------------------------------------------------------

    async def vote_message(self, chat_id: str, message_id: str, vote: VoteType) -> dict[str, Any]:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                """
                INSERT INTO votes (chat_id, message_id, is_upvoted)
                VALUES ($1, $2, $3)
                ON CONFLICT (chat_id, message_id) DO UPDATE SET is_upvoted = EXCLUDED.is_upvoted
                RETURNING *
                """,
                chat_id,
                message_id,
                vote == "up",
            )
        return self._row_to_vote(row)

    @with_retry()
    async def get_votes_by_chat_id(self, chat_id: str) -> list[dict[str, Any]]:
        async with self.pool.acquire() as conn:
            rows = await conn.fetch("SELECT * FROM votes WHERE chat_id = $1", chat_id)
        return [self._row_to_vote(row) for row in rows]

    # ------------------------------------------------------------------
    # Row conversion
    # ------------------------------------------------------------------

    def _row_to_chat(self, row: asyncpg.Record) -> dict[str, Any]:
        return {
            "id": row["id"],
            "user_id": str(row["user_id"]),
            "title": row["title"],
            "visibility": row["visibility"],
            "created_at": row["created_at"],
        }

    def _row_to_message(self, row: asyncpg.Record) -> dict[str, Any]:
        content = row["content"]
        attachments = row["attachments"]
        return {
            "id": row["id"],
            "chat_id": row["chat_id"],
            "role": row["role"],
            "content": json.loads(content) if isinstance(content, str) else content,
            "attachments": (json.loads(attachments) if isinstance(attachments, str) else attachments) or [],
            "created_at": row["created_at"],
        }

    def _row_to_vote(self, row: asyncpg.Record) -> dict[str, Any]:
        return {
            "chat_id": row["chat_id"],
            "message_id": row["message_id"],
            "is_upvoted": row["is_upvoted"],
        }

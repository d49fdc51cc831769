"""Tests for ChatRepository and DocumentRepository against a mocked asyncpg pool."""

from __future__ import annotations

import json

from datetime import UTC, datetime
from typing import Any
from unittest.mock import MagicMock

import pytest

from api.services.chat_repository import ChatRepository, new_message
from api.services.document_repository import DocumentRepository

USER_ID = "11111111-1111-1111-1111-111111111111"
CREATED = datetime(2025, 1, 1, 12, 0, tzinfo=UTC)


def _conn(pool: MagicMock) -> Any:
    return pool.acquire.return_value.__aenter__.return_value


def _sql(call: Any) -> str:
    return " ".join(call.args[0].split())


class TestChats:
    @pytest.mark.asyncio
    async def test_get_chat_by_id_converts_row(self, mock_db_pool: MagicMock) -> None:
        _conn(mock_db_pool).fetchrow.return_value = {
            "id": "c1",
            "user_id": USER_ID,
            "title": "Greetings",
            "visibility": "private",
            "created_at": CREATED,
        }

        chat = await ChatRepository(mock_db_pool).get_chat_by_id("c1")

        assert chat == {
            "id": "c1",
            "user_id": USER_ID,
            "title": "Greetings",
            "visibility": "private",
            "created_at": CREATED,
        }

    @pytest.mark.asyncio
    async def test_get_chat_by_id_missing(self, mock_db_pool: MagicMock) -> None:
        _conn(mock_db_pool).fetchrow.return_value = None

        assert await ChatRepository(mock_db_pool).get_chat_by_id("nope") is None

    @pytest.mark.asyncio
    async def test_delete_removes_votes_then_messages_then_chat(self, mock_db_pool: MagicMock) -> None:
        conn = _conn(mock_db_pool)
        conn.execute.side_effect = ["DELETE 2", "DELETE 5", "DELETE 1"]

        await ChatRepository(mock_db_pool).delete_chat_by_id("c1")

        statements = [_sql(c) for c in conn.execute.call_args_list]
        assert statements == [
            "DELETE FROM votes WHERE chat_id = $1",
            "DELETE FROM messages WHERE chat_id = $1",
            "DELETE FROM chats WHERE id = $1",
        ]
        assert all(c.args[1] == "c1" for c in conn.execute.call_args_list)


class TestMessages:
    @pytest.mark.asyncio
    async def test_save_messages_serializes_content(self, mock_db_pool: MagicMock) -> None:
        message = new_message("c1", "user", [{"type": "text", "text": "Hi"}], message_id="m1", created_at=CREATED)

        await ChatRepository(mock_db_pool).save_messages([message])

        rows = _conn(mock_db_pool).executemany.call_args.args[1]
        assert rows == [("m1", "c1", "user", json.dumps([{"type": "text", "text": "Hi"}]), "[]", CREATED)]

    @pytest.mark.asyncio
    async def test_save_messages_empty_is_noop(self, mock_db_pool: MagicMock) -> None:
        await ChatRepository(mock_db_pool).save_messages([])

        mock_db_pool.acquire.assert_not_called()

    @pytest.mark.asyncio
    async def test_messages_decode_json_columns(self, mock_db_pool: MagicMock) -> None:
        _conn(mock_db_pool).fetch.return_value = [
            {
                "id": "m1",
                "chat_id": "c1",
                "role": "assistant",
                "content": '"Hello"',
                "attachments": None,
                "created_at": CREATED,
            }
        ]

        messages = await ChatRepository(mock_db_pool).get_messages_by_chat_id("c1")

        assert messages[0]["content"] == "Hello"
        assert messages[0]["attachments"] == []
        assert "ORDER BY created_at ASC, seq ASC" in _sql(_conn(mock_db_pool).fetch.call_args)

    @pytest.mark.asyncio
    async def test_delete_messages_after_inclusive(self, mock_db_pool: MagicMock) -> None:
        conn = _conn(mock_db_pool)
        conn.execute.side_effect = ["DELETE 0", "DELETE 3"]

        deleted = await ChatRepository(mock_db_pool).delete_messages_after("c1", CREATED, inclusive=True)

        assert deleted == 3
        assert "created_at >= $2" in _sql(conn.execute.call_args_list[1])

    @pytest.mark.asyncio
    async def test_delete_messages_after_exclusive(self, mock_db_pool: MagicMock) -> None:
        conn = _conn(mock_db_pool)
        conn.execute.side_effect = ["DELETE 0", "DELETE 1"]

        await ChatRepository(mock_db_pool).delete_messages_after("c1", CREATED)

        assert "created_at > $2" in _sql(conn.execute.call_args_list[1])

    @pytest.mark.asyncio
    async def test_update_missing_message_returns_none(self, mock_db_pool: MagicMock) -> None:
        conn = _conn(mock_db_pool)
        conn.fetchrow.return_value = None

        assert await ChatRepository(mock_db_pool).update_message_content("m9", "edited") is None
        conn.execute.assert_not_awaited()


class TestVotes:
    @pytest.mark.asyncio
    async def test_vote_upserts_boolean(self, mock_db_pool: MagicMock) -> None:
        conn = _conn(mock_db_pool)
        conn.fetchrow.return_value = {"chat_id": "c1", "message_id": "m1", "is_upvoted": False}

        vote = await ChatRepository(mock_db_pool).vote_message("c1", "m1", "down")

        assert conn.fetchrow.call_args.args[1:] == ("c1", "m1", False)
        assert "ON CONFLICT (chat_id, message_id)" in _sql(conn.fetchrow.call_args)
        assert vote == {"chat_id": "c1", "message_id": "m1", "is_upvoted": False}


class TestDocuments:
    @pytest.mark.asyncio
    async def test_delete_after_removes_suggestions_first(self, mock_db_pool: MagicMock) -> None:
        conn = _conn(mock_db_pool)
        conn.execute.side_effect = ["DELETE 4", "DELETE 2"]

        deleted = await DocumentRepository(mock_db_pool).delete_documents_after("d1", CREATED)

        assert deleted == 2
        statements = [_sql(c) for c in conn.execute.call_args_list]
        assert statements[0].startswith("DELETE FROM suggestions")
        assert statements[1].startswith("DELETE FROM documents")

    @pytest.mark.asyncio
    async def test_save_suggestions_assigns_ids(self, mock_db_pool: MagicMock) -> None:
        records = await DocumentRepository(mock_db_pool).save_suggestions(
            [
                {
                    "document_id": "d1",
                    "document_created_at": CREATED,
                    "original_text": "teh cat",
                    "suggested_text": "the cat",
                    "description": "Typo",
                    "user_id": USER_ID,
                }
            ]
        )

        assert records[0]["id"]
        rows = _conn(mock_db_pool).executemany.call_args.args[1]
        assert rows[0][1:6] == ("d1", CREATED, "teh cat", "the cat", "Typo")
        assert rows[0][6] is False

    @pytest.mark.asyncio
    async def test_save_no_suggestions(self, mock_db_pool: MagicMock) -> None:
        assert await DocumentRepository(mock_db_pool).save_suggestions([]) == []

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from fastapi import FastAPI
from fastapi.testclient import TestClient

from api.dependencies import get_chat_repository, get_db
from api.middleware.auth import get_current_user
from api.middleware.exception_handlers import register_exception_handlers
from api.routes.v1.chats import router
from api.services.chat_service import ChatService
from api.streaming.registry import ConnectionRegistry
from models.api_models import UserInfo
from models.error_models import ErrorCode


@pytest.fixture
def app(chat_repo: AsyncMock, user: UserInfo, mock_db_pool: MagicMock) -> FastAPI:
    app = FastAPI()
    register_exception_handlers(app)
    app.include_router(router, prefix="/api/v1")

    app.dependency_overrides[get_current_user] = lambda: user
    app.dependency_overrides[get_db] = lambda: mock_db_pool
    app.dependency_overrides[get_chat_repository] = lambda: chat_repo

    app.state.chat_service = ChatService(
        chats=chat_repo,
        model=MagicMock(),
        registry=ConnectionRegistry(),
        tools_factory=MagicMock(),
    )
    return app


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    return TestClient(app, raise_server_exceptions=False)


class TestDeleteChat:
    """Tests for DELETE /chats/{chat_id}."""

    def test_owner_deletes_chat(self, client: TestClient, chat_repo: AsyncMock, user: UserInfo, make_chat: Any) -> None:
        chat_repo.get_chat_by_id.return_value = make_chat("c1", user.id)

        response = client.delete("/api/v1/chats/c1")

        assert response.status_code == 200
        assert response.content == b""
        chat_repo.delete_chat_by_id.assert_awaited_once_with("c1")

    def test_missing_chat_is_404(self, client: TestClient, chat_repo: AsyncMock) -> None:
        response = client.delete("/api/v1/chats/missing")

        assert response.status_code == 404
        assert response.json()["error"]["code"] == ErrorCode.CHAT_NOT_FOUND
        chat_repo.delete_chat_by_id.assert_not_awaited()

    def test_other_users_chat_is_401(
        self, client: TestClient, chat_repo: AsyncMock, other_user: UserInfo, make_chat: Any
    ) -> None:
        chat_repo.get_chat_by_id.return_value = make_chat("c1", other_user.id)

        response = client.delete("/api/v1/chats/c1")

        assert response.status_code == 401
        assert response.json()["error"]["code"] == ErrorCode.AUTH_NOT_OWNER
        chat_repo.delete_chat_by_id.assert_not_awaited()

    def test_storage_failure_is_500(
        self, client: TestClient, chat_repo: AsyncMock, user: UserInfo, make_chat: Any
    ) -> None:
        chat_repo.get_chat_by_id.return_value = make_chat("c1", user.id)
        chat_repo.delete_chat_by_id.side_effect = RuntimeError("db down")

        response = client.delete("/api/v1/chats/c1")

        assert response.status_code == 500


class TestHistory:
    def test_lists_chats_in_camel_case(
        self, client: TestClient, chat_repo: AsyncMock, user: UserInfo, make_chat: Any
    ) -> None:
        chat_repo.get_chats_by_user_id.return_value = [make_chat("c2", user.id), make_chat("c1", user.id)]

        response = client.get("/api/v1/history")

        assert response.status_code == 200
        body = response.json()
        assert [c["id"] for c in body] == ["c2", "c1"]
        assert body[0]["userId"] == user.id
        chat_repo.get_chats_by_user_id.assert_awaited_once_with(user.id)


class TestVisibility:
    def test_owner_can_publish(self, client: TestClient, chat_repo: AsyncMock, user: UserInfo, make_chat: Any) -> None:
        chat_repo.get_chat_by_id.return_value = make_chat("c1", user.id)
        chat_repo.update_chat_visibility.return_value = make_chat("c1", user.id, visibility="public")

        response = client.patch("/api/v1/chats/c1/visibility", json={"visibility": "public"})

        assert response.status_code == 200
        assert response.json()["visibility"] == "public"
        chat_repo.update_chat_visibility.assert_awaited_once_with("c1", "public")

    def test_unknown_visibility_is_rejected(self, client: TestClient) -> None:
        response = client.patch("/api/v1/chats/c1/visibility", json={"visibility": "team"})

        assert response.status_code == 400


class TestMessages:
    def _message(self, message_id: str, role: str, content: str) -> dict[str, Any]:
        return {
            "id": message_id,
            "chat_id": "c1",
            "role": role,
            "content": content,
            "attachments": [],
            "created_at": datetime(2025, 1, 1, tzinfo=UTC),
        }

    def test_public_chat_messages_are_readable_by_anyone(
        self, client: TestClient, chat_repo: AsyncMock, other_user: UserInfo, make_chat: Any
    ) -> None:
        chat_repo.get_chat_by_id.return_value = make_chat("c1", other_user.id, visibility="public")
        chat_repo.get_messages_by_chat_id.return_value = [
            self._message("m1", "user", "hello"),
            self._message("m2", "assistant", "Hi there"),
        ]

        response = client.get("/api/v1/chats/c1/messages")

        assert response.status_code == 200
        assert [(m["role"], m["content"]) for m in response.json()] == [("user", "hello"), ("assistant", "Hi there")]

    def test_private_chat_messages_need_ownership(
        self, client: TestClient, chat_repo: AsyncMock, other_user: UserInfo, make_chat: Any
    ) -> None:
        chat_repo.get_chat_by_id.return_value = make_chat("c1", other_user.id)

        response = client.get("/api/v1/chats/c1/messages")

        assert response.status_code == 401
        chat_repo.get_messages_by_chat_id.assert_not_awaited()


class TestVotes:
    def test_vote_is_upserted(self, client: TestClient, chat_repo: AsyncMock, user: UserInfo, make_chat: Any) -> None:
        chat_repo.get_chat_by_id.return_value = make_chat("c1", user.id)
        chat_repo.vote_message.return_value = {"chat_id": "c1", "message_id": "m2", "is_upvoted": True}

        response = client.patch("/api/v1/chats/c1/votes", json={"messageId": "m2", "type": "up"})

        assert response.status_code == 200
        assert response.json() == {"chatId": "c1", "messageId": "m2", "isUpvoted": True}
        chat_repo.vote_message.assert_awaited_once_with("c1", "m2", "up")

    def test_votes_are_listed_for_owner(
        self, client: TestClient, chat_repo: AsyncMock, user: UserInfo, make_chat: Any
    ) -> None:
        chat_repo.get_chat_by_id.return_value = make_chat("c1", user.id)
        chat_repo.get_votes_by_chat_id.return_value = [{"chat_id": "c1", "message_id": "m2", "is_upvoted": False}]

        response = client.get("/api/v1/chats/c1/votes")

        assert response.status_code == 200
        assert response.json()[0]["isUpvoted"] is False


def test_unauthenticated_delete_is_401(app: FastAPI, client: TestClient, chat_repo: AsyncMock) -> None:
    del app.dependency_overrides[get_current_user]

    response = client.delete("/api/v1/chats/c1")

    assert response.status_code == 401
    assert response.json()["error"]["code"] == ErrorCode.AUTH_REQUIRED
    chat_repo.delete_chat_by_id.assert_not_awaited()

"""Fixtures shared by route tests."""

from __future__ import annotations

import json

from collections.abc import Callable, Generator
from typing import Any
from unittest.mock import AsyncMock

import pytest

import sse_starlette.sse as sse_module

from api.services.chat_repository import ChatRepository


@pytest.fixture(autouse=True)
def reset_sse_exit_event() -> Generator[None, None, None]:
    """sse-starlette caches its exit event on the first loop; each TestClient runs a new loop."""
    app_status = getattr(sse_module, "AppStatus", None)
    if app_status is not None and hasattr(app_status, "should_exit_event"):
        app_status.should_exit_event = None
    yield


@pytest.fixture
def sse_frames() -> Callable[[str], list[dict[str, Any]]]:
    """Decode the JSON ``data:`` lines of an event-stream body."""

    def _parse(body: str) -> list[dict[str, Any]]:
        return [json.loads(line[len("data: ") :]) for line in body.splitlines() if line.startswith("data: ")]

    return _parse


@pytest.fixture
def chat_repo() -> AsyncMock:
    repo = AsyncMock(spec=ChatRepository)
    repo.get_chat_by_id.return_value = None
    repo.get_messages_by_chat_id.return_value = []
    return repo

"""
HTTP and OpenAI client factories.
Centralizes client construction so timeouts are consistent across the
model stream, title generation and tool calls.
"""

from __future__ import annotations

from typing import Any

import httpx

from openai import AsyncOpenAI

DEFAULT_CONNECT_TIMEOUT = 10.0
DEFAULT_READ_TIMEOUT = 120.0
DEFAULT_WRITE_TIMEOUT = 30.0
DEFAULT_POOL_TIMEOUT = 30.0


def create_http_client(read_timeout: float | None = None) -> httpx.AsyncClient:
    """Create an HTTP client whose read timeout tolerates slow first tokens.

    Args:
        read_timeout: Read timeout in seconds (default: 120s)
    """
    timeout = httpx.Timeout(
        connect=DEFAULT_CONNECT_TIMEOUT,
        read=read_timeout if read_timeout is not None else DEFAULT_READ_TIMEOUT,
        write=DEFAULT_WRITE_TIMEOUT,
        pool=DEFAULT_POOL_TIMEOUT,
    )
    return httpx.AsyncClient(timeout=timeout)


def create_openai_client(
    api_key: str | None,
    base_url: str | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> AsyncOpenAI:
    """Create the AsyncOpenAI client used for streaming and titles.

    Args:
        api_key: OpenAI API key
        base_url: Optional base URL for OpenAI-compatible endpoints
        http_client: Optional shared httpx client
    """
    kwargs: dict[str, Any] = {"api_key": api_key, "http_client": http_client}
    if base_url:
        kwargs["base_url"] = base_url
    return AsyncOpenAI(**kwargs)

"""Web search through the Tavily API."""

from __future__ import annotations

import asyncio

from typing import Any

import httpx

from core.constants import TAVILY_SEARCH_URL
from tools.registry import ToolContext, ToolSpec
from utils.logger import logger

#: First retry delay; doubles on each further attempt
BASE_BACKOFF_SECONDS = 1.0

#: Statuses worth retrying
RETRYABLE_STATUS = frozenset({429, 500, 502, 503, 504})


def _empty_results(query: str) -> dict[str, Any]:
    return {"query": query, "results": [], "images": []}


async def search(ctx: ToolContext, query: str, maxResults: int = 10, searchDepth: str = "basic") -> dict[str, Any]:
    """Search the web; gives up with empty results after the configured attempts."""
    if not ctx.tavily_api_key:
        return _empty_results(query)

    payload = {
        "api_key": ctx.tavily_api_key,
        "query": query,
        "max_results": max(1, min(int(maxResults), 20)),
        "search_depth": searchDepth if searchDepth in ("basic", "advanced") else "basic",
        "include_images": True,
        "include_answer": False,
    }

    attempts = max(1, ctx.tavily_max_retries)
    for attempt in range(attempts):
        try:
            response = await ctx.http.post(TAVILY_SEARCH_URL, json=payload)
            if response.status_code in RETRYABLE_STATUS and attempt + 1 < attempts:
                raise httpx.HTTPStatusError(
                    f"Tavily returned {response.status_code}", request=response.request, response=response
                )
            response.raise_for_status()
            data = response.json()
            return {
                "query": query,
                "results": [
                    {
                        "title": r.get("title", ""),
                        "url": r.get("url", ""),
                        "content": r.get("content", ""),
                    }
                    for r in data.get("results", [])
                ],
                "images": data.get("images", []),
            }
        except (httpx.HTTPError, ValueError) as e:
            if attempt + 1 >= attempts:
                logger.error(f"Tavily search failed after {attempts} attempts: {e}")
                break
            delay = BASE_BACKOFF_SECONDS * (2**attempt)
            logger.warning(f"Tavily search attempt {attempt + 1}/{attempts} failed, retrying in {delay:.1f}s: {e}")
            await asyncio.sleep(delay)

    return _empty_results(query)


SEARCH = ToolSpec(
    name="search",
    description="Search the web for current information",
    parameters={
        "type": "object",
        "properties": {
            "query": {"type": "string", "description": "The query to search for"},
            "maxResults": {"type": "integer", "description": "Maximum number of results (default 10)"},
            "searchDepth": {"type": "string", "enum": ["basic", "advanced"]},
        },
        "required": ["query"],
    },
    handler=search,
)

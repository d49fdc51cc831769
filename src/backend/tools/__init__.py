"""
Tools offered to the model during a chat turn.

Usage:
    from tools import create_chat_tools

    registry = create_chat_tools(context)
    schemas = registry.schemas()
    result = await registry.execute(tool_call)
"""

from __future__ import annotations

from tools.documents import CREATE_DOCUMENT, UPDATE_DOCUMENT
from tools.registry import ToolContext, ToolNotFound, ToolRegistry, ToolSpec
from tools.suggestions import REQUEST_SUGGESTIONS
from tools.weather import GET_WEATHER
from tools.web_search import SEARCH


def create_chat_tools(context: ToolContext) -> ToolRegistry:
    """Build the tool set for one turn. Search is offered only when a Tavily key is set."""
    registry = ToolRegistry(context=context)
    for spec in (CREATE_DOCUMENT, UPDATE_DOCUMENT, REQUEST_SUGGESTIONS, GET_WEATHER):
        registry.register(spec)
    if context.tavily_api_key:
        registry.register(SEARCH)
    return registry


__all__ = [
    "ToolContext",
    "ToolNotFound",
    "ToolRegistry",
    "ToolSpec",
    "create_chat_tools",
]

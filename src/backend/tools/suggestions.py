"""Writing suggestions for a stored document."""

from __future__ import annotations

import json

from typing import Any

from core.constants import MAX_SUGGESTIONS
from core.prompts import SUGGESTION_PROMPT
from tools.registry import ToolContext, ToolSpec
from utils.logger import logger


def parse_suggestions(raw: str) -> list[dict[str, str]]:
    """Extract well-formed suggestion elements from the model's JSON reply."""
    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("Suggestion model returned invalid JSON")
        return []

    items = data.get("suggestions", []) if isinstance(data, dict) else data
    if not isinstance(items, list):
        return []

    elements = []
    for item in items:
        if not isinstance(item, dict):
            continue
        original = item.get("originalSentence")
        suggested = item.get("suggestedSentence")
        if original and suggested:
            elements.append(
                {
                    "originalSentence": str(original),
                    "suggestedSentence": str(suggested),
                    "description": str(item.get("description", "")),
                }
            )
    return elements[:MAX_SUGGESTIONS]


async def request_suggestions(ctx: ToolContext, id: str, description: str = "") -> dict[str, Any]:
    document = await ctx.documents.get_document_by_id(id)
    if document is None:
        return {"error": "Document not found"}

    prompt = document["content"] or ""
    if description:
        prompt = f"{prompt}\n\nRequested changes: {description}"

    raw = await ctx.model.complete(
        SUGGESTION_PROMPT.format(max_suggestions=MAX_SUGGESTIONS),
        prompt,
        json_mode=True,
    )
    elements = parse_suggestions(raw)

    await ctx.documents.save_suggestions(
        [
            {
                "document_id": document["id"],
                "document_created_at": document["created_at"],
                "original_text": e["originalSentence"],
                "suggested_text": e["suggestedSentence"],
                "description": e["description"],
                "is_resolved": False,
                "user_id": ctx.user_id,
            }
            for e in elements
        ]
    )

    return {
        "id": document["id"],
        "title": document["title"],
        "kind": document["kind"],
        "message": f"{len(elements)} suggestions have been added to the document",
    }


REQUEST_SUGGESTIONS = ToolSpec(
    name="requestSuggestions",
    description=(
        "Request suggestions for a document. This tool will call other functions that will "
        "generate suggestions based on the document content."
    ),
    parameters={
        "type": "object",
        "properties": {
            "id": {"type": "string", "description": "The ID of the document to get suggestions for"},
            "description": {"type": "string", "description": "The description of the changes that need to be made"},
        },
        "required": ["id"],
    },
    handler=request_suggestions,
)

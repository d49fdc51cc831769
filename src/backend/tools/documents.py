"""Document canvas tools.

The canvas is switched off: both tools answer with a fixed notice so the
model can tell the user, while ``update_document`` still reports unknown ids.
"""

from __future__ import annotations

from typing import Any

from core.constants import CANVAS_DISABLED_NOTICE
from tools.registry import ToolContext, ToolSpec


async def create_document(ctx: ToolContext, title: str, kind: str = "text") -> dict[str, Any]:
    return {"title": title, "kind": kind, "content": CANVAS_DISABLED_NOTICE}


async def update_document(ctx: ToolContext, id: str, description: str = "") -> dict[str, Any]:
    document = await ctx.documents.get_document_by_id(id)
    if document is None:
        return {"error": "Document not found"}
    return {"id": id, "title": document["title"], "kind": document["kind"], "content": CANVAS_DISABLED_NOTICE}


CREATE_DOCUMENT = ToolSpec(
    name="createDocument",
    description="Create a document for writing or content creation activities.",
    parameters={
        "type": "object",
        "properties": {
            "title": {"type": "string", "description": "Title of the document"},
            "kind": {"type": "string", "enum": ["text", "code", "sheet"]},
        },
        "required": ["title"],
    },
    handler=create_document,
)

UPDATE_DOCUMENT = ToolSpec(
    name="updateDocument",
    description="Update a document with the given description.",
    parameters={
        "type": "object",
        "properties": {
            "id": {"type": "string", "description": "The ID of the document to update"},
            "description": {"type": "string", "description": "The description of changes that need to be made"},
        },
        "required": ["id", "description"],
    },
    handler=update_document,
)

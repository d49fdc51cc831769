"""
Text extraction for uploaded documents using MarkItDown.
"""

from __future__ import annotations

import asyncio
import io

from dataclasses import dataclass, field
from typing import Any

from markitdown import MarkItDown

from utils.logger import logger

_EXTENSIONS = {
    "application/pdf": ".pdf",
    "text/plain": ".txt",
}

# Lazy-initialized converter cache (mutable container avoids global statement)
_converter_cache: dict[str, MarkItDown] = {}


@dataclass
class ExtractedDocument:
    text: str
    pages: int
    file_type: str
    language: str | None = None
    images: list[dict[str, Any]] = field(default_factory=list)

    def sidecar(self, original_name: str, source_url: str) -> dict[str, Any]:
        """JSON body stored next to the original blob."""
        return {
            "text": self.text,
            "metadata": {
                "pages": self.pages,
                "fileType": self.file_type,
                "originalName": original_name,
                "language": self.language,
                "images": self.images,
                "sourceUrl": source_url,
            },
            "originalName": original_name,
            "sourceUrl": source_url,
        }


def get_markitdown_converter() -> MarkItDown:
    if "instance" not in _converter_cache:
        _converter_cache["instance"] = MarkItDown()
        logger.info("MarkItDown converter initialized")
    return _converter_cache["instance"]


def count_pages(text: str, content_type: str) -> int:
    """PDF text keeps a form feed between pages; everything else is one page."""
    if content_type == "application/pdf":
        return text.count("\f") + 1
    return 1


def _convert(data: bytes, content_type: str) -> str:
    converter = get_markitdown_converter()
    result = converter.convert_stream(io.BytesIO(data), file_extension=_EXTENSIONS.get(content_type, ""))
    return result.text_content or ""


async def extract_document(data: bytes, content_type: str, filename: str) -> ExtractedDocument:
    """Convert a document to text off the event loop.

    Raises whatever MarkItDown raises; callers decide whether to fall back.
    """
    if content_type == "text/plain":
        text = data.decode("utf-8", errors="replace")
    else:
        loop = asyncio.get_running_loop()
        text = await loop.run_in_executor(None, _convert, data, content_type)

    extracted = ExtractedDocument(
        text=text.replace("\f", "\n"),
        pages=count_pages(text, content_type),
        file_type=content_type,
    )
    logger.info(f"Extracted {filename}: {extracted.pages} page(s), {len(extracted.text):,} chars")
    return extracted

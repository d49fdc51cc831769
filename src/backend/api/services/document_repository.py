"""PostgreSQL storage for versioned documents and their suggestions.

A document id names a series of versions; each save inserts a new row
keyed by ``(id, created_at)``.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID, uuid4

import asyncpg

from api.services.chat_repository import utc_now
from utils.db_utils import transaction, with_retry


class DocumentRepository:
    def __init__(self, pool: asyncpg.Pool):
        self.pool = pool

    async def save_document(
        self,
        document_id: str,
        title: str,
        content: str,
        kind: str,
        user_id: UUID | str,
    ) -> dict[str, Any]:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                """
                INSERT INTO documents (id, created_at, title, content, kind, user_id)
                VALUES ($1, $2, $3, $4, $5, $6)
                RETURNING *
                """,
                document_id,
                utc_now(),
                title,
                content,
                kind,
                UUID(str(user_id)),
            )
        return self._row_to_document(row)

    @with_retry()
    async def get_documents_by_id(self, document_id: str) -> list[dict[str, Any]]:
        """All versions of a document, newest first."""
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                "SELECT * FROM documents WHERE id = $1 ORDER BY created_at DESC",
                document_id,
            )
        return [self._row_to_document(row) for row in rows]

    @with_retry()
    async def get_document_by_id(self, document_id: str) -> dict[str, Any] | None:
        """Latest version of a document."""
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                "SELECT * FROM documents WHERE id = $1 ORDER BY created_at DESC LIMIT 1",
                document_id,
            )
        return self._row_to_document(row) if row else None

    async def delete_documents_after(self, document_id: str, timestamp: datetime) -> int:
        """Delete suggestions, then versions created after ``timestamp``."""
        async with transaction(self.pool) as conn:
            await conn.execute(
                "DELETE FROM suggestions WHERE document_id = $1 AND document_created_at > $2",
                document_id,
                timestamp,
            )
            result: str = await conn.execute(
                "DELETE FROM documents WHERE id = $1 AND created_at > $2",
                document_id,
                timestamp,
            )
        return int(result.split()[-1])

    async def save_suggestions(self, suggestions: list[dict[str, Any]]) -> list[dict[str, Any]]:
        if not suggestions:
            return []
        records = [{"id": s.get("id") or str(uuid4()), "created_at": utc_now(), **s} for s in suggestions]
        async with self.pool.acquire() as conn:
            await conn.executemany(
                """
                INSERT INTO suggestions (
                    id, document_id, document_created_at, original_text,
                    suggested_text, description, is_resolved, user_id, created_at
                )
                VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9)
                """,
                [
                    (
                        r["id"],
                        r["document_id"],
                        r["document_created_at"],
                        r["original_text"],
                        r["suggested_text"],
                        r.get("description"),
                        r.get("is_resolved", False),
                        UUID(str(r["user_id"])),
                        r["created_at"],
                    )
                    for r in records
                ],
            )
        return records

    @with_retry()
    async def get_suggestions_by_document_id(self, document_id: str) -> list[dict[str, Any]]:
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                "SELECT * FROM suggestions WHERE document_id = $1 ORDER BY created_at ASC",
                document_id,
            )
        return [
            {
                "id": row["id"],
                "document_id": row["document_id"],
                "document_created_at": row["document_created_at"],
                "original_text": row["original_text"],
                "suggested_text": row["suggested_text"],
                "description": row["description"],
                "is_resolved": row["is_resolved"],
                "user_id": str(row["user_id"]),
                "created_at": row["created_at"],
            }
            for row in rows
        ]

    def _row_to_document(self, row: asyncpg.Record) -> dict[str, Any]:
        return {
            "id": row["id"],
            "created_at": row["created_at"],
            "title": row["title"],
            "content": row["content"],
            "kind": row["kind"],
            "user_id": str(row["user_id"]),
        }

"""SQLite-backed document repository.

Persists documents and their chunks to a local SQLite database at
``data/index.db``.  Uses ``aiosqlite`` for async I/O; every call opens its
own short-lived connection so the repository is safe to share between
concurrent pipeline runs.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import aiosqlite
import structlog

from indexrag.interfaces.document_repository import IDocumentRepository
from indexrag.models.document import Chunk, Document, ProcessingStatus
from indexrag.utils.errors import DocumentNotFoundError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/index.db")

_CREATE_DOCUMENTS_SQL = """\
CREATE TABLE IF NOT EXISTS documents (
    id                 TEXT    PRIMARY KEY,
    title              TEXT    NOT NULL,
    content            TEXT    NOT NULL DEFAULT '',
    processing_status  TEXT    NOT NULL DEFAULT 'pending',
    is_processed       INTEGER NOT NULL DEFAULT 0,
    content_hash       TEXT    NOT NULL DEFAULT '',
    created_at         TEXT    NOT NULL,
    updated_at         TEXT    NOT NULL
);
"""

_CREATE_CHUNKS_SQL = """\
CREATE TABLE IF NOT EXISTS chunks (
    document_id   TEXT    NOT NULL REFERENCES documents(id) ON DELETE CASCADE,
    chunk_index   INTEGER NOT NULL,
    content       TEXT    NOT NULL,
    start_offset  INTEGER NOT NULL,
    end_offset    INTEGER NOT NULL,
    embedding_id  TEXT,
    PRIMARY KEY (document_id, chunk_index)
);
"""

_CREATE_INDICES_SQL = [
    "CREATE INDEX IF NOT EXISTS idx_documents_status ON documents(processing_status);",
    "CREATE INDEX IF NOT EXISTS idx_chunks_embedding ON chunks(embedding_id);",
]

_DOCUMENT_COLUMNS = (
    "id, title, content, processing_status, is_processed, content_hash, created_at, updated_at"
)


def _now() -> str:
    return datetime.now(tz=timezone.utc).isoformat()  # noqa: UP017


def _row_to_document(row: Any) -> Document:
    r = dict(row)
    return Document(
        id=r["id"],
        title=r["title"],
        content=r["content"],
        processing_status=ProcessingStatus(r["processing_status"]),
        is_processed=bool(r["is_processed"]),
        content_hash=r["content_hash"],
        created_at=datetime.fromisoformat(r["created_at"]),
        updated_at=datetime.fromisoformat(r["updated_at"]),
    )


class SQLiteDocumentRepository(IDocumentRepository):
    """SQLite-backed document and chunk persistence."""

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH) -> None:
        self._db_path = Path(db_path)

    @asynccontextmanager
    async def _connect(self) -> AsyncIterator[aiosqlite.Connection]:
        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            await db.execute("PRAGMA foreign_keys = ON;")
            yield db

    async def initialize(self) -> None:
        """Create the documents and chunks tables if they don't exist."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.execute(_CREATE_DOCUMENTS_SQL)
            await db.execute(_CREATE_CHUNKS_SQL)
            for idx_sql in _CREATE_INDICES_SQL:
                await db.execute(idx_sql)
            await db.commit()
        logger.info("document_db_initialized", path=str(self._db_path))

    async def add(self, document: Document) -> Document:
        async with self._connect() as db:
            await db.execute(
                f"INSERT INTO documents ({_DOCUMENT_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    document.id,
                    document.title,
                    document.content,
                    document.processing_status.value,
                    int(document.is_processed),
                    document.content_hash,
                    document.created_at.isoformat(),
                    document.updated_at.isoformat(),
                ),
            )
            await db.commit()
        logger.info("document_added", document_id=document.id, title=document.title)
        return document

    async def get(self, document_id: str) -> Document | None:
        async with self._connect() as db:
            cursor = await db.execute(
                f"SELECT {_DOCUMENT_COLUMNS} FROM documents WHERE id = ?",
                (document_id,),
            )
            row = await cursor.fetchone()
        return _row_to_document(row) if row is not None else None

    async def load_content(self, document_id: str) -> str:
        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT content FROM documents WHERE id = ?",
                (document_id,),
            )
            row = await cursor.fetchone()
        if row is None:
            raise DocumentNotFoundError(
                message=f"Document not found: {document_id}",
                provider_name=self.get_provider_name(),
            )
        return row["content"]

    async def list_documents(self) -> list[Document]:
        async with self._connect() as db:
            cursor = await db.execute(
                f"SELECT {_DOCUMENT_COLUMNS} FROM documents ORDER BY created_at, rowid"
            )
            rows = await cursor.fetchall()
        return [_row_to_document(r) for r in rows]

    async def list_by_status(self, *statuses: ProcessingStatus) -> list[Document]:
        if not statuses:
            return []
        placeholders = ", ".join("?" for _ in statuses)
        async with self._connect() as db:
            cursor = await db.execute(
                f"SELECT {_DOCUMENT_COLUMNS} FROM documents "
                f"WHERE processing_status IN ({placeholders}) ORDER BY created_at, rowid",
                tuple(s.value for s in statuses),
            )
            rows = await cursor.fetchall()
        return [_row_to_document(r) for r in rows]

    async def update_status(
        self,
        document_id: str,
        status: ProcessingStatus,
        *,
        is_processed: bool | None = None,
        content_hash: str | None = None,
    ) -> None:
        assignments = ["processing_status = ?", "updated_at = ?"]
        params: list[Any] = [status.value, _now()]
        if is_processed is not None:
            assignments.append("is_processed = ?")
            params.append(int(is_processed))
        if content_hash is not None:
            assignments.append("content_hash = ?")
            params.append(content_hash)
        params.append(document_id)

        async with self._connect() as db:
            await db.execute(
                f"UPDATE documents SET {', '.join(assignments)} WHERE id = ?",
                tuple(params),
            )
            await db.commit()
        logger.debug("document_status_updated", document_id=document_id, status=status.value)

    async def update_content(
        self, document_id: str, content: str, title: str | None = None
    ) -> None:
        async with self._connect() as db:
            cursor = await db.execute(
                "UPDATE documents SET content = ?, title = COALESCE(?, title), "
                "processing_status = ?, updated_at = ? WHERE id = ?",
                (content, title, ProcessingStatus.PENDING.value, _now(), document_id),
            )
            await db.commit()
            updated = cursor.rowcount
        if not updated:
            raise DocumentNotFoundError(
                message=f"Document not found: {document_id}",
                provider_name=self.get_provider_name(),
            )
        logger.info("document_content_updated", document_id=document_id, length=len(content))

    async def delete(self, document_id: str) -> None:
        async with self._connect() as db:
            await db.execute("DELETE FROM chunks WHERE document_id = ?", (document_id,))
            await db.execute("DELETE FROM documents WHERE id = ?", (document_id,))
            await db.commit()
        logger.info("document_deleted", document_id=document_id)

    async def get_chunks(self, document_id: str) -> list[Chunk]:
        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT document_id, chunk_index, content, start_offset, end_offset, embedding_id "
                "FROM chunks WHERE document_id = ? ORDER BY chunk_index",
                (document_id,),
            )
            rows = await cursor.fetchall()
        return [Chunk(**dict(r)) for r in rows]

    async def save_chunks(self, document_id: str, chunks: list[Chunk]) -> None:
        async with self._connect() as db:
            await db.execute("DELETE FROM chunks WHERE document_id = ?", (document_id,))
            await db.executemany(
                "INSERT INTO chunks (document_id, chunk_index, content, start_offset, "
                "end_offset, embedding_id) VALUES (?, ?, ?, ?, ?, ?)",
                [
                    (
                        document_id,
                        c.chunk_index,
                        c.content,
                        c.start_offset,
                        c.end_offset,
                        c.embedding_id,
                    )
                    for c in chunks
                ],
            )
            await db.commit()
        logger.debug("chunks_saved", document_id=document_id, count=len(chunks))

    def get_provider_name(self) -> str:
        return "sqlite_documents"

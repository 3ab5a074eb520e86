"""Document and chunk models for the indexing pipeline.

A :class:`Document` is owned by the persistence layer; the processing
pipeline only ever changes its status fields (``processing_status``,
``is_processed``, ``content_hash``).  Content edits made elsewhere reset
the status to ``PENDING``.

A :class:`Chunk` is derived and ephemeral: chunks are recomputed on every
processing run and replaced wholesale, never diffed against a prior run.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)  # noqa: UP017


class ProcessingStatus(str, Enum):  # noqa: UP042
    """Lifecycle of a document in the processing pipeline.

    PENDING -> PROCESSING -> COMPLETED | FAILED.  Both terminal states
    re-enter PENDING when the content changes.
    """

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class Document(BaseModel):
    """A free-form text document tracked by the index."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Stable document identifier.")
    title: str = Field(default="Untitled", description="Human-readable title used in citations.")
    content: str = Field(default="", description="Full markdown/plain text content.")
    processing_status: ProcessingStatus = Field(default=ProcessingStatus.PENDING)
    is_processed: bool = Field(
        default=False,
        description="True once the document has been chunked and embedded at least once.",
    )
    content_hash: str = Field(
        default="",
        description="SHA-256 hex digest of the content at the last successful run.",
    )
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


class Chunk(BaseModel):
    """A sentence-aligned slice of a document's plain text."""

    model_config = ConfigDict(frozen=True)

    document_id: str
    chunk_index: int = Field(ge=0, description="Ordinal position within the document.")
    content: str
    start_offset: int = Field(ge=0, description="Start character offset in the plain text.")
    end_offset: int = Field(ge=0, description="End character offset (exclusive) in the plain text.")
    embedding_id: str | None = Field(
        default=None,
        description="Id of the vector entry holding this chunk's embedding.",
    )

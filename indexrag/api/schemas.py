"""Pydantic request/response schemas for the indexrag API.

Defines the public contract for the REST endpoints: document ingestion,
processing control, task snapshots, question answering, transformations,
and health.

Convention: request schemas end with "Request", response schemas end with
"Response".  Frozen value models (``MigrationProgress``,
``TransformationPreset``) are embedded as-is where their JSON shape is
already the public one.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from indexrag.models.document import Document, ProcessingStatus
from indexrag.models.pipeline import MigrationProgress, ProcessingTask, TaskType
from indexrag.models.transformation import TransformationPreset


class ErrorResponse(BaseModel):
    """Error body returned by :class:`ErrorHandlingMiddleware`."""

    error: str
    detail: str


class HealthResponse(BaseModel):
    status: str = Field(description="healthy | degraded")
    version: str
    store_ready: bool
    vector_backend: str
    embedding_model: str
    llm_provider: str
    llm_available: bool
    llm_reason: str = ""
    active_tasks: int = 0


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------


class AddDocumentRequest(BaseModel):
    title: str = Field(default="Untitled", min_length=1, max_length=500)
    content: str = Field(description="Markdown or plain text.")
    process: bool = Field(default=True, description="Schedule processing immediately.")


class UpdateDocumentRequest(BaseModel):
    content: str
    title: str | None = Field(default=None, min_length=1, max_length=500)


class DocumentResponse(BaseModel):
    """A document's metadata; content is returned only on single-document reads."""

    id: str
    title: str
    processing_status: ProcessingStatus
    is_processed: bool
    content_hash: str
    created_at: datetime
    updated_at: datetime
    content_length: int
    content: str | None = None
    chunk_count: int | None = None

    @classmethod
    def from_document(
        cls,
        document: Document,
        include_content: bool = False,
        chunk_count: int | None = None,
    ) -> DocumentResponse:
        return cls(
            id=document.id,
            title=document.title,
            processing_status=document.processing_status,
            is_processed=document.is_processed,
            content_hash=document.content_hash,
            created_at=document.created_at,
            updated_at=document.updated_at,
            content_length=len(document.content),
            content=document.content if include_content else None,
            chunk_count=chunk_count,
        )


class DocumentListResponse(BaseModel):
    documents: list[DocumentResponse]
    total: int


# ---------------------------------------------------------------------------
# Processing
# ---------------------------------------------------------------------------


class ProcessResponse(BaseModel):
    document_id: str
    status: str


class SweepResponse(BaseModel):
    scheduled: int
    store_ready: bool


class TaskResponse(BaseModel):
    id: str
    label: str
    task_type: TaskType
    current_step: int
    total_steps: int
    status: str
    progress: float

    @classmethod
    def from_task(cls, task: ProcessingTask) -> TaskResponse:
        return cls(
            id=task.id,
            label=task.label,
            task_type=task.task_type,
            current_step=task.current_step,
            total_steps=task.total_steps,
            status=task.status,
            progress=task.progress,
        )


class TaskListResponse(BaseModel):
    tasks: list[TaskResponse]
    has_active_tasks: bool


class MigrationStatusResponse(BaseModel):
    needs_migration: bool
    progress: MigrationProgress


# ---------------------------------------------------------------------------
# Query / transformation
# ---------------------------------------------------------------------------


class QueryRequest(BaseModel):
    question: str = Field(min_length=1, max_length=2000)


class TransformRequest(BaseModel):
    preset_id: str
    force: bool = Field(default=False, description="Ignore any cached result.")


class TransformResponse(BaseModel):
    document_id: str
    preset_id: str
    content: str
    parts: int
    from_cache: bool
    created_from_hash: str


class PresetListResponse(BaseModel):
    presets: list[TransformationPreset]

"""FastAPI routes for the indexrag service.

Service dependencies are resolved from ``app.state`` via FastAPI's
``Depends`` using the ``Annotated`` pattern.

# --- API ROUTE MAP -------------------------------------------------------
#
# Endpoint                                  Method  Description
# -------------------------------------------------------------------------
# /api/v1/health                            GET     Store readiness + LLM availability
# /api/v1/documents                         POST    Add a document (optionally process)
# /api/v1/documents                         GET     List documents
# /api/v1/documents/{id}                    GET     Document with content + chunk count
# /api/v1/documents/{id}                    PUT     Replace content, re-queue processing
# /api/v1/documents/{id}/process            POST    Schedule processing
# /api/v1/documents/{id}/cancel             POST    Cancel an active run
# /api/v1/documents/{id}/transform          POST    Apply a transformation preset
# /api/v1/presets                           GET     List transformation presets
# /api/v1/processing/sweep                  POST    Schedule all pending/failed documents
# /api/v1/processing/tasks                  GET     Active task snapshot
# /api/v1/migration                         GET     Migration status
# /api/v1/query                             POST    Streamed RAG answer (NDJSON)
# -------------------------------------------------------------------------
"""

from __future__ import annotations

import uuid
from collections.abc import AsyncIterator
from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import StreamingResponse

from indexrag import __version__
from indexrag.api.schemas import (
    AddDocumentRequest,
    DocumentListResponse,
    DocumentResponse,
    ErrorResponse,
    HealthResponse,
    MigrationStatusResponse,
    PresetListResponse,
    ProcessResponse,
    QueryRequest,
    SweepResponse,
    TaskListResponse,
    TaskResponse,
    TransformRequest,
    TransformResponse,
    UpdateDocumentRequest,
)
from indexrag.interfaces.document_repository import IDocumentRepository
from indexrag.interfaces.llm_provider import ILLMProvider
from indexrag.models.document import Document
from indexrag.models.rag import RAGResponse
from indexrag.models.transformation import BUILT_IN_PRESETS, get_preset
from indexrag.pipeline.orchestrator import DocumentProcessingPipeline
from indexrag.services.migration_service import MigrationService
from indexrag.services.rag_engine import RAGEngine
from indexrag.services.transformation_service import TransformationService
from indexrag.utils.errors import DocumentNotFoundError
from indexrag.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

router = APIRouter(prefix="/api/v1")


# ---------------------------------------------------------------------------
# Dependency helpers
# ---------------------------------------------------------------------------


def _get_repository(request: Request) -> IDocumentRepository:
    return request.app.state.repository


def _get_pipeline(request: Request) -> DocumentProcessingPipeline:
    return request.app.state.pipeline


def _get_rag_engine(request: Request) -> RAGEngine:
    return request.app.state.rag_engine


def _get_transformation_service(request: Request) -> TransformationService:
    return request.app.state.transformation_service


def _get_migration_service(request: Request) -> MigrationService:
    return request.app.state.migration_service


def _get_llm(request: Request) -> ILLMProvider:
    return request.app.state.llm


RepositoryDep = Annotated[IDocumentRepository, Depends(_get_repository)]
PipelineDep = Annotated[DocumentProcessingPipeline, Depends(_get_pipeline)]
RAGEngineDep = Annotated[RAGEngine, Depends(_get_rag_engine)]
TransformationDep = Annotated[TransformationService, Depends(_get_transformation_service)]
MigrationDep = Annotated[MigrationService, Depends(_get_migration_service)]
LLMDep = Annotated[ILLMProvider, Depends(_get_llm)]


async def _require_document(repository: IDocumentRepository, document_id: str) -> Document:
    document = await repository.get(document_id)
    if document is None:
        raise DocumentNotFoundError(
            message=f"Document not found: {document_id}",
            provider_name=repository.get_provider_name(),
        )
    return document


# ---------------------------------------------------------------------------
# System endpoints
# ---------------------------------------------------------------------------


@router.get("/health", response_model=HealthResponse, summary="Application health check")
async def health_check(request: Request, pipeline: PipelineDep, llm: LLMDep) -> HealthResponse:
    """Report store readiness and generation-service availability.

    ``degraded`` means the API is up but queries will be rejected.
    """
    availability = await llm.check_availability()
    store_ready = pipeline.is_ready()
    embedding = getattr(request.app.state, "embedding_provider", None)
    return HealthResponse(
        status="healthy" if store_ready and availability.available else "degraded",
        version=__version__,
        store_ready=store_ready,
        vector_backend=pipeline.vector_store.get_provider_name(),
        embedding_model=embedding.get_model_name() if embedding is not None else "",
        llm_provider=llm.get_provider_name(),
        llm_available=availability.available,
        llm_reason=availability.reason,
        active_tasks=len(pipeline.task_registry.tasks),
    )


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------


@router.post(
    "/documents",
    response_model=DocumentResponse,
    status_code=201,
    summary="Add a document",
)
async def add_document(
    body: AddDocumentRequest,
    repository: RepositoryDep,
    pipeline: PipelineDep,
) -> DocumentResponse:
    document = await repository.add(
        Document(id=str(uuid.uuid4()), title=body.title, content=body.content)
    )
    _logger.info("api_document_added", document_id=document.id, process=body.process)
    if body.process:
        await pipeline.enqueue(document.id)
    return DocumentResponse.from_document(document)


@router.get("/documents", response_model=DocumentListResponse, summary="List documents")
async def list_documents(repository: RepositoryDep) -> DocumentListResponse:
    documents = await repository.list_documents()
    return DocumentListResponse(
        documents=[DocumentResponse.from_document(d) for d in documents],
        total=len(documents),
    )


@router.get(
    "/documents/{document_id}",
    response_model=DocumentResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Get a document",
)
async def get_document(document_id: str, repository: RepositoryDep) -> DocumentResponse:
    document = await _require_document(repository, document_id)
    chunks = await repository.get_chunks(document_id)
    return DocumentResponse.from_document(document, include_content=True, chunk_count=len(chunks))


@router.put(
    "/documents/{document_id}",
    response_model=DocumentResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Replace a document's content",
)
async def update_document(
    document_id: str,
    body: UpdateDocumentRequest,
    repository: RepositoryDep,
    pipeline: PipelineDep,
) -> DocumentResponse:
    await repository.update_content(document_id, body.content, title=body.title)
    await pipeline.enqueue(document_id)
    document = await _require_document(repository, document_id)
    return DocumentResponse.from_document(document)


@router.post(
    "/documents/{document_id}/process",
    response_model=ProcessResponse,
    status_code=202,
    responses={404: {"model": ErrorResponse}},
    summary="Schedule processing for a document",
)
async def process_document(
    document_id: str,
    repository: RepositoryDep,
    pipeline: PipelineDep,
) -> ProcessResponse:
    await _require_document(repository, document_id)
    await pipeline.enqueue(document_id)
    return ProcessResponse(document_id=document_id, status="scheduled")


@router.post(
    "/documents/{document_id}/cancel",
    response_model=ProcessResponse,
    summary="Cancel a document's active run",
)
async def cancel_processing(document_id: str, pipeline: PipelineDep) -> ProcessResponse:
    cancelled = await pipeline.cancel(document_id)
    return ProcessResponse(
        document_id=document_id,
        status="cancelling" if cancelled else "not_running",
    )


@router.post(
    "/documents/{document_id}/transform",
    response_model=TransformResponse,
    responses={404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
    summary="Transform a document with a preset",
)
async def transform_document(
    document_id: str,
    body: TransformRequest,
    repository: RepositoryDep,
    transformation_service: TransformationDep,
) -> TransformResponse:
    preset = get_preset(body.preset_id)
    if preset is None:
        raise HTTPException(status_code=404, detail=f"Unknown preset: {body.preset_id}")
    document = await _require_document(repository, document_id)
    result = await transformation_service.transform(document, preset, force=body.force)
    return TransformResponse(
        document_id=result.document_id,
        preset_id=result.preset_id,
        content=result.content,
        parts=result.parts,
        from_cache=result.from_cache,
        created_from_hash=result.created_from_hash,
    )


@router.get("/presets", response_model=PresetListResponse, summary="List transformation presets")
async def list_presets() -> PresetListResponse:
    return PresetListResponse(presets=sorted(BUILT_IN_PRESETS, key=lambda p: p.sort_order))


# ---------------------------------------------------------------------------
# Processing control
# ---------------------------------------------------------------------------


@router.post(
    "/processing/sweep",
    response_model=SweepResponse,
    summary="Schedule every pending or failed document",
)
async def sweep(pipeline: PipelineDep) -> SweepResponse:
    scheduled = await pipeline.process_all_pending()
    return SweepResponse(scheduled=scheduled, store_ready=pipeline.is_ready())


@router.get("/processing/tasks", response_model=TaskListResponse, summary="Active tasks")
async def list_tasks(pipeline: PipelineDep) -> TaskListResponse:
    registry = pipeline.task_registry
    return TaskListResponse(
        tasks=[TaskResponse.from_task(t) for t in registry.tasks],
        has_active_tasks=registry.has_active_tasks,
    )


@router.get("/migration", response_model=MigrationStatusResponse, summary="Migration status")
async def migration_status(migration_service: MigrationDep) -> MigrationStatusResponse:
    return MigrationStatusResponse(
        needs_migration=await migration_service.needs_migration(),
        progress=migration_service.progress,
    )


# ---------------------------------------------------------------------------
# Question answering
# ---------------------------------------------------------------------------


@router.post(
    "/query",
    responses={
        404: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
    },
    summary="Ask a question; the answer streams as NDJSON",
)
async def query(body: QueryRequest, rag_engine: RAGEngineDep) -> StreamingResponse:
    """Stream ``RAGResponse`` snapshots, one JSON object per line.

    The first snapshot is produced before the response starts, so
    availability and no-result errors still map to proper status codes.
    """
    responses = rag_engine.query(body.question)
    first = await anext(responses)

    async def _lines() -> AsyncIterator[str]:
        yield _ndjson(first)
        async for response in responses:
            yield _ndjson(response)

    return StreamingResponse(_lines(), media_type="application/x-ndjson")


def _ndjson(response: RAGResponse) -> str:
    return response.model_dump_json() + "\n"

"""Shared pytest fixtures for the indexrag test suite."""

from __future__ import annotations

import hashlib
import math
import re
import uuid
from collections.abc import AsyncIterator
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import pytest

from indexrag.interfaces.document_repository import IDocumentRepository
from indexrag.interfaces.embedding_provider import IEmbeddingProvider
from indexrag.interfaces.llm_provider import ILLMProvider, LLMAvailability
from indexrag.interfaces.settings_store import ISettingsStore
from indexrag.interfaces.vector_store_provider import IVectorStoreProvider
from indexrag.models.document import Chunk, Document, ProcessingStatus
from indexrag.models.rag import SearchResult
from indexrag.pipeline.orchestrator import DocumentProcessingPipeline
from indexrag.pipeline.progress_tracker import TaskRegistry
from indexrag.providers.cache.artifact_cache import ArtifactCache
from indexrag.providers.vector_store.flat_provider import FlatVectorStore
from indexrag.services.context_builder import ContextBuilder
from indexrag.services.migration_service import MigrationService
from indexrag.services.rag_engine import RAGEngine
from indexrag.services.transformation_service import TransformationService
from indexrag.utils.errors import DocumentNotFoundError, EmbeddingFailedError, NotInitializedError

_WORD_RE = re.compile(r"\w+")


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class HashingEmbeddingProvider(IEmbeddingProvider):
    """Deterministic bag-of-words embedder.

    Each lowercase word is hashed into one of ``dimension`` buckets, so
    identical texts get identical vectors and texts sharing no words are
    orthogonal.
    """

    def __init__(self, dimension: int = 256, model_name: str = "hashing-test-model") -> None:
        self._dimension = dimension
        self._model_name = model_name
        self.calls: list[list[str]] = []
        self.fail = False

    def _vector(self, text: str) -> list[float]:
        vector = [0.0] * self._dimension
        for word in _WORD_RE.findall(text.lower()):
            bucket = int(hashlib.sha256(word.encode()).hexdigest(), 16) % self._dimension
            vector[bucket] += 1.0
        norm = math.sqrt(sum(v * v for v in vector)) or 1.0
        return [v / norm for v in vector]

    async def embed(self, texts: list[str]) -> list[list[float]]:
        if self.fail:
            raise EmbeddingFailedError(provider_name=self.get_provider_name())
        self.calls.append(list(texts))
        return [self._vector(t) for t in texts]

    async def embed_single(self, text: str) -> list[float]:
        return (await self.embed([text]))[0]

    def get_dimension(self) -> int:
        return self._dimension

    def get_model_name(self) -> str:
        return self._model_name

    def get_provider_name(self) -> str:
        return "hashing"

    def is_available(self) -> bool:
        return True


class FakeVectorStore(IVectorStoreProvider):
    """In-memory store whose search answers can be scripted.

    ``search_results`` (when set) replaces real matching; the threshold and
    ``num_results`` limits are still applied to it.
    """

    def __init__(self, ready: bool = True) -> None:
        self._ready_on_initialize = ready
        self._initialized = False
        self.entries: dict[str, str] = {}
        self.search_results: list[SearchResult] | None = None
        self.fail_add = False
        self.add_calls: list[list[str]] = []
        self.deleted: list[str] = []
        self.initialize_calls = 0
        self.before_add_returns: Any = None
        self.reset_calls = 0
        self.storage_resets = 0

    async def initialize(self) -> None:
        self.initialize_calls += 1
        if self._ready_on_initialize:
            self._initialized = True

    def make_ready(self) -> None:
        self._ready_on_initialize = True

    def is_initialized(self) -> bool:
        return self._initialized

    def _require_ready(self) -> None:
        if not self._initialized:
            raise NotInitializedError(provider_name=self.get_provider_name())

    async def add_documents(self, texts: list[str]) -> list[str]:
        self._require_ready()
        self.add_calls.append(list(texts))
        if self.fail_add:
            raise EmbeddingFailedError(provider_name=self.get_provider_name())
        ids = [str(uuid.uuid4()) for _ in texts]
        self.entries.update(zip(ids, texts, strict=True))
        if self.before_add_returns is not None:
            self.before_add_returns()
        return ids

    async def search(
        self,
        query: str,
        num_results: int = 10,
        threshold: float = 0.7,
    ) -> list[SearchResult]:
        self._require_ready()
        if self.search_results is not None:
            candidates = list(self.search_results)
        else:
            candidates = [
                SearchResult(id=i, content=c, score=1.0)
                for i, c in self.entries.items()
                if query.lower() in c.lower()
            ]
        matched = [r for r in candidates if r.score >= threshold]
        matched.sort(key=lambda r: r.score, reverse=True)
        return matched[:num_results]

    async def delete_documents(self, ids: list[str]) -> None:
        self._require_ready()
        for entry_id in ids:
            self.deleted.append(entry_id)
            self.entries.pop(entry_id, None)

    async def reset(self) -> None:
        self._require_ready()
        self.reset_calls += 1
        self.entries.clear()

    async def reset_storage(self) -> None:
        self.storage_resets += 1
        if self._initialized:
            await self.reset()
        else:
            self.entries.clear()

    async def count(self) -> int:
        self._require_ready()
        return len(self.entries)

    def get_provider_name(self) -> str:
        return "fake"


class ScriptedLLM(ILLMProvider):
    """LLM double that records prompts and returns scripted text.

    ``complete`` pops from ``responses`` (falling back to
    ``default_response``); an item that is an exception instance is raised
    instead.  ``stream_complete`` yields ``stream_deltas``.
    """

    def __init__(
        self,
        responses: list[Any] | None = None,
        default_response: str = "summary",
        stream_deltas: list[str] | None = None,
        availability: LLMAvailability | None = None,
    ) -> None:
        self.responses = list(responses or [])
        self.default_response = default_response
        self.stream_deltas = stream_deltas if stream_deltas is not None else ["Hello", ", ", "world"]
        self.availability = availability or LLMAvailability.ok()
        self.complete_calls: list[tuple[str, str]] = []
        self.stream_calls: list[tuple[str, str]] = []

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.3,
        max_tokens: int = 4000,
    ) -> str:
        self.complete_calls.append((system_prompt, user_prompt))
        if self.responses:
            item = self.responses.pop(0)
            if isinstance(item, Exception):
                raise item
            return item
        return self.default_response

    async def stream_complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.3,
        max_tokens: int = 4000,
    ) -> AsyncIterator[str]:
        self.stream_calls.append((system_prompt, user_prompt))
        for delta in self.stream_deltas:
            yield delta

    async def check_availability(self) -> LLMAvailability:
        return self.availability

    def get_provider_name(self) -> str:
        return "scripted"

    def is_available(self) -> bool:
        return self.availability.available


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)  # noqa: UP017


class InMemoryDocumentRepository(IDocumentRepository):
    """Dict-backed repository with the same semantics as the SQLite one."""

    def __init__(self) -> None:
        self.documents: dict[str, Document] = {}
        self.chunks: dict[str, list[Chunk]] = {}
        self.status_history: dict[str, list[ProcessingStatus]] = {}
        self.initialized = False

    async def initialize(self) -> None:
        self.initialized = True

    async def add(self, document: Document) -> Document:
        self.documents[document.id] = document
        self.status_history.setdefault(document.id, []).append(document.processing_status)
        return document

    async def get(self, document_id: str) -> Document | None:
        return self.documents.get(document_id)

    async def load_content(self, document_id: str) -> str:
        document = self.documents.get(document_id)
        if document is None:
            raise DocumentNotFoundError(message=f"Document not found: {document_id}")
        return document.content

    async def list_documents(self) -> list[Document]:
        return list(self.documents.values())

    async def list_by_status(self, *statuses: ProcessingStatus) -> list[Document]:
        return [d for d in self.documents.values() if d.processing_status in statuses]

    async def update_status(
        self,
        document_id: str,
        status: ProcessingStatus,
        *,
        is_processed: bool | None = None,
        content_hash: str | None = None,
    ) -> None:
        document = self.documents.get(document_id)
        if document is None:
            return
        update: dict[str, Any] = {"processing_status": status, "updated_at": _utcnow()}
        if is_processed is not None:
            update["is_processed"] = is_processed
        if content_hash is not None:
            update["content_hash"] = content_hash
        self.documents[document_id] = document.model_copy(update=update)
        self.status_history.setdefault(document_id, []).append(status)

    async def update_content(self, document_id: str, content: str, title: str | None = None) -> None:
        document = self.documents.get(document_id)
        if document is None:
            raise DocumentNotFoundError(message=f"Document not found: {document_id}")
        update: dict[str, Any] = {
            "content": content,
            "processing_status": ProcessingStatus.PENDING,
            "updated_at": _utcnow(),
        }
        if title is not None:
            update["title"] = title
        self.documents[document_id] = document.model_copy(update=update)

    async def delete(self, document_id: str) -> None:
        self.documents.pop(document_id, None)
        self.chunks.pop(document_id, None)

    async def get_chunks(self, document_id: str) -> list[Chunk]:
        return list(self.chunks.get(document_id, []))

    async def save_chunks(self, document_id: str, chunks: list[Chunk]) -> None:
        self.chunks[document_id] = list(chunks)

    def get_provider_name(self) -> str:
        return "memory"


class InMemorySettingsStore(ISettingsStore):
    def __init__(self) -> None:
        self.values: dict[str, str] = {}

    async def initialize(self) -> None:
        return None

    async def get_bool(self, key: str, default: bool = False) -> bool:
        value = self.values.get(key)
        return default if value is None else value == "1"

    async def set_bool(self, key: str, value: bool) -> None:
        self.values[key] = "1" if value else "0"

    async def get_str(self, key: str, default: str | None = None) -> str | None:
        return self.values.get(key, default)

    async def set_str(self, key: str, value: str) -> None:
        self.values[key] = value


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def embedding_provider() -> HashingEmbeddingProvider:
    return HashingEmbeddingProvider()


@pytest.fixture
def fake_store() -> FakeVectorStore:
    return FakeVectorStore()


@pytest.fixture
def flat_store(tmp_path: Path, embedding_provider: HashingEmbeddingProvider) -> FlatVectorStore:
    """A real numpy store persisted under ``tmp_path`` (not yet initialized)."""
    return FlatVectorStore(embedding_provider=embedding_provider, directory=str(tmp_path / "flat"))


@pytest.fixture
def llm() -> ScriptedLLM:
    return ScriptedLLM()


@pytest.fixture
def repository() -> InMemoryDocumentRepository:
    return InMemoryDocumentRepository()


@pytest.fixture
def settings_store() -> InMemorySettingsStore:
    return InMemorySettingsStore()


@pytest.fixture
def task_registry() -> TaskRegistry:
    return TaskRegistry()


@pytest.fixture
def sample_notes() -> str:
    """Markdown notes long enough to span several 512-character chunks."""
    paragraphs = [
        "# Project Kickoff\n\n"
        "The team met on Monday to plan the quarterly release. "
        "Dr. Rivera presented the roadmap and the budget of 3.5 million. "
        "Everyone agreed that the **search feature** is the top priority.",
        "## Search\n\n"
        "Semantic search will use sentence embeddings stored locally. "
        "Queries are embedded with the same model as the documents. "
        "Results below a similarity of 0.7 are discarded before answering.",
        "## Risks\n\n"
        "- Embedding large notebooks may be slow on older laptops.\n"
        "- The legacy index must be migrated without losing notes.\n"
        "- Summaries must cite their sources so answers can be verified.",
        "## Next steps\n\n"
        "Alice will prototype the chunker this week. "
        "Bob will measure retrieval quality on last year's meeting notes. "
        "We will review progress at the next sync, e.g. on Thursday.",
    ]
    return "\n\n".join(paragraphs * 3)


def make_document(
    content: str = "A short note about gardening. Tomatoes need sun.",
    title: str = "Note",
    document_id: str | None = None,
    status: ProcessingStatus = ProcessingStatus.PENDING,
    is_processed: bool = False,
) -> Document:
    return Document(
        id=document_id or str(uuid.uuid4()),
        title=title,
        content=content,
        processing_status=status,
        is_processed=is_processed,
    )


@pytest.fixture
def pipeline(
    repository: InMemoryDocumentRepository,
    fake_store: FakeVectorStore,
    task_registry: TaskRegistry,
) -> DocumentProcessingPipeline:
    return DocumentProcessingPipeline(
        repository=repository,
        vector_store=fake_store,
        task_registry=task_registry,
        readiness_attempts=3,
        readiness_interval=0.0,
    )


@pytest.fixture
def components(
    repository: InMemoryDocumentRepository,
    settings_store: InMemorySettingsStore,
    fake_store: FakeVectorStore,
    embedding_provider: HashingEmbeddingProvider,
    llm: ScriptedLLM,
    task_registry: TaskRegistry,
    pipeline: DocumentProcessingPipeline,
) -> dict[str, Any]:
    """Application components wired from fakes, keyed like ``main._build_all``."""
    cache = ArtifactCache(capacity=10, eviction_batch=2)
    return {
        "settings": None,
        "llm": llm,
        "embedding_provider": embedding_provider,
        "vector_store": fake_store,
        "repository": repository,
        "settings_store": settings_store,
        "task_registry": task_registry,
        "pipeline": pipeline,
        "rag_engine": RAGEngine(llm=llm, vector_store=fake_store, context_builder=ContextBuilder(llm)),
        "cache": cache,
        "transformation_service": TransformationService(
            llm=llm, cache=cache, task_registry=task_registry
        ),
        "migration_service": MigrationService(
            repository=repository,
            pipeline=pipeline,
            settings_store=settings_store,
            legacy_path=None,
            grace_delay=0.0,
        ),
    }

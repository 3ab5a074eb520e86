"""ChromaDB vector store provider adapter.

Wraps ``chromadb.PersistentClient`` to implement :class:`IVectorStoreProvider`.
Uses cosine distance, so a result's similarity is ``1 - distance``.  Fully
local and Python-native; no external service required.
"""

from __future__ import annotations

import asyncio
import os
import uuid
from typing import Any

# Disable ChromaDB telemetry before importing chromadb.  A version mismatch
# between ChromaDB's bundled PostHog client and the installed one raises
# "capture() takes 1 positional argument" errors.
os.environ["ANONYMIZED_TELEMETRY"] = "False"

import posthog

posthog.disabled = True

import chromadb
import structlog

from indexrag.interfaces.embedding_provider import IEmbeddingProvider
from indexrag.interfaces.vector_store_provider import IVectorStoreProvider
from indexrag.models.rag import SearchResult
from indexrag.utils.errors import EmbeddingFailedError, NotInitializedError, RAGError

logger = structlog.get_logger(logger_name=__name__)

_ADD_BATCH_SIZE = 500

# Score step for the rank-based fallback used only when a query response
# carries no distances.
_RANK_SCORE_STEP = 0.05


class _NoopEmbeddingFunction(chromadb.EmbeddingFunction[list[str]]):
    """No-op embedding function that prevents ChromaDB from loading a model.

    indexrag always passes pre-computed embeddings, so ChromaDB's built-in
    embedding is never invoked.  Without this, ChromaDB downloads its
    default ONNX model on collection creation.
    """

    def __call__(self, input: list[str]) -> list[list[float]]:
        raise NotImplementedError(
            "indexrag uses pre-computed embeddings; "
            "ChromaDB's built-in embedding should never be called."
        )

    def name(self) -> str:
        return "noop_precomputed"


def rank_fallback_scores(count: int) -> list[float]:
    """Decreasing pseudo-scores ``1.0 - rank * 0.05`` (floored at 0)."""
    return [max(0.0, 1.0 - rank * _RANK_SCORE_STEP) for rank in range(count)]


class ChromaDBVectorStore(IVectorStoreProvider):
    """Vector store backed by ChromaDB with local persistence.

    Nothing touches disk until :meth:`initialize`; a failed initialization
    leaves the store unusable but the process healthy.
    """

    def __init__(
        self,
        embedding_provider: IEmbeddingProvider,
        persist_directory: str = "./data/chromadb/index-vector-db",
        collection_name: str = "document-chunks",
    ) -> None:
        self._embedding_provider = embedding_provider
        self._persist_directory = persist_directory
        self._collection_name = collection_name
        self._client: Any = None
        self._collection: Any = None
        self._initialized = False
        self._init_lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def initialize(self) -> None:
        async with self._init_lock:
            if self._initialized:
                return
            try:
                # Loading the model up front means the first real batch
                # doesn't pay for the download.
                sample = await self._embedding_provider.embed_single("initialize")
                await asyncio.to_thread(self._open, len(sample))
                self._initialized = True
                logger.info(
                    "chromadb_initialized",
                    path=self._persist_directory,
                    collection=self._collection_name,
                    model=self._embedding_provider.get_model_name(),
                    entries=await asyncio.to_thread(self._collection.count),
                )
            except Exception as exc:
                self._client = None
                self._collection = None
                logger.error(
                    "chromadb_initialize_failed",
                    path=self._persist_directory,
                    error=str(exc),
                )

    def is_initialized(self) -> bool:
        return self._initialized

    def _new_client(self) -> Any:
        return chromadb.PersistentClient(
            path=self._persist_directory,
            settings=chromadb.config.Settings(anonymized_telemetry=False),
        )

    def _open(self, expected_dim: int) -> None:
        self._client = self._new_client()
        self._collection = self._open_collection()
        self._validate_embedding_dimensions(expected_dim)

    def _open_collection(self) -> Any:
        # Newer ChromaDB versions reject an embedding function that differs
        # from the one persisted with the collection; fall back to the
        # persisted one since every vector is pre-computed anyway.
        try:
            return self._client.get_or_create_collection(
                name=self._collection_name,
                metadata={"hnsw:space": "cosine"},
                embedding_function=_NoopEmbeddingFunction(),
            )
        except ValueError:
            return self._client.get_or_create_collection(
                name=self._collection_name,
                metadata={"hnsw:space": "cosine"},
            )

    def _validate_embedding_dimensions(self, expected_dim: int) -> None:
        """Fail initialization when stored vectors have a different dimension."""
        if self._collection.count() == 0:
            return
        sample = self._collection.peek(limit=1)
        embeddings = sample.get("embeddings") if sample else None
        if embeddings is None or len(embeddings) == 0:
            return
        stored_dim = len(embeddings[0])
        if stored_dim != expected_dim:
            raise RAGError(
                message=(
                    f"Embedding dimension mismatch: collection has {stored_dim}-dim vectors "
                    f"but '{self._embedding_provider.get_provider_name()}' produces "
                    f"{expected_dim}-dim vectors"
                ),
                provider_name=self.get_provider_name(),
            )

    def _require_ready(self) -> None:
        if not self._initialized:
            raise NotInitializedError(provider_name=self.get_provider_name())

    # ------------------------------------------------------------------
    # IVectorStoreProvider implementation
    # ------------------------------------------------------------------

    async def add_documents(self, texts: list[str]) -> list[str]:
        """Embed and add *texts*; all entries of the batch or none are kept."""
        self._require_ready()
        if not texts:
            return []

        embeddings = await self._embedding_provider.embed(texts)
        if len(embeddings) != len(texts):
            raise EmbeddingFailedError(
                message=f"Embedding count mismatch: {len(embeddings)} != {len(texts)}",
                provider_name=self._embedding_provider.get_provider_name(),
            )

        ids = [str(uuid.uuid4()) for _ in texts]
        try:
            await asyncio.to_thread(self._write_batches, ids, embeddings, texts)
        except Exception as exc:
            raise EmbeddingFailedError(
                message=f"ChromaDB add failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.info("chromadb_add_documents", count=len(ids))
        return ids

    def _write_batches(
        self, ids: list[str], embeddings: list[list[float]], texts: list[str]
    ) -> None:
        written: list[str] = []
        try:
            for start in range(0, len(texts), _ADD_BATCH_SIZE):
                end = start + _ADD_BATCH_SIZE
                self._collection.add(
                    ids=ids[start:end],
                    embeddings=embeddings[start:end],
                    documents=texts[start:end],
                )
                written.extend(ids[start:end])
        except Exception:
            if written:
                self._collection.delete(ids=written)
            raise

    async def search(
        self,
        query: str,
        num_results: int = 10,
        threshold: float = 0.7,
    ) -> list[SearchResult]:
        self._require_ready()
        if num_results <= 0:
            return []

        try:
            total = await asyncio.to_thread(self._collection.count)
            if total == 0:
                return []
            query_embedding = await self._embedding_provider.embed_single(query)
            results = await asyncio.to_thread(
                self._collection.query,
                query_embeddings=[query_embedding],
                n_results=min(num_results, total),
                include=["documents", "distances"],
            )
        except EmbeddingFailedError:
            raise
        except Exception as exc:
            raise RAGError(
                message=f"ChromaDB query failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        if not results.get("ids") or not results["ids"][0]:
            return []

        ids = results["ids"][0]
        documents = results["documents"][0] if results.get("documents") else [""] * len(ids)
        distances = results["distances"][0] if results.get("distances") else None

        if distances is None:
            logger.warning("chromadb_rank_score_fallback", results=len(ids))
            scores = rank_fallback_scores(len(ids))
        else:
            scores = [max(0.0, min(1.0, 1.0 - d)) for d in distances]

        matched = [
            SearchResult(id=entry_id, content=doc or "", score=score)
            for entry_id, doc, score in zip(ids, documents, scores, strict=True)
            if score >= threshold
        ]
        matched.sort(key=lambda r: r.score, reverse=True)
        matched = matched[:num_results]

        logger.info(
            "chromadb_query",
            query_length=len(query),
            raw_results=len(ids),
            results_count=len(matched),
            top_score=matched[0].score if matched else 0.0,
        )
        return matched

    async def delete_documents(self, ids: list[str]) -> None:
        self._require_ready()
        if not ids:
            return
        try:
            await asyncio.to_thread(self._collection.delete, ids=list(ids))
        except Exception as exc:
            raise RAGError(
                message=f"ChromaDB delete failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        logger.info("chromadb_delete_documents", count=len(ids))

    async def reset(self) -> None:
        self._require_ready()
        try:
            await asyncio.to_thread(self._recreate_collection)
        except Exception as exc:
            raise RAGError(
                message=f"ChromaDB reset failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        logger.info("chromadb_reset", collection=self._collection_name)

    def _recreate_collection(self) -> None:
        self._client.delete_collection(name=self._collection_name)
        self._collection = self._open_collection()

    async def reset_storage(self) -> None:
        if self._initialized:
            await self.reset()
            return
        try:
            dropped = await asyncio.to_thread(self._drop_persisted_collection)
        except Exception as exc:
            raise RAGError(
                message=f"ChromaDB storage reset failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        logger.info(
            "chromadb_storage_reset",
            path=self._persist_directory,
            collection=self._collection_name,
            dropped=dropped,
        )

    def _drop_persisted_collection(self) -> bool:
        # Deleting the collection skips the dimension check that makes
        # initialize() fail after a model change.
        if not os.path.exists(self._persist_directory):
            return False
        client = self._new_client()
        # list_collections() returns names on newer ChromaDB, objects on older.
        names = {getattr(c, "name", c) for c in client.list_collections()}
        if self._collection_name not in names:
            return False
        client.delete_collection(name=self._collection_name)
        return True

    async def count(self) -> int:
        self._require_ready()
        return await asyncio.to_thread(self._collection.count)

    def get_provider_name(self) -> str:
        return "chromadb"

"""Flat-file vector store provider adapter.

Keeps every vector in one in-memory numpy matrix and answers queries by
exact (brute-force) cosine similarity.  State is persisted to a directory
holding ``vectors.npy`` and ``entries.json``.  Suitable for personal
corpora of a few hundred thousand chunks; this is the store's original
on-disk layout that :class:`~indexrag.services.migration_service.MigrationService`
moves away from when the ChromaDB backend is selected.
"""

from __future__ import annotations

import asyncio
import json
import os
import uuid
from pathlib import Path

import numpy as np
import structlog

from indexrag.interfaces.embedding_provider import IEmbeddingProvider
from indexrag.interfaces.vector_store_provider import IVectorStoreProvider
from indexrag.models.rag import SearchResult
from indexrag.utils.errors import EmbeddingFailedError, NotInitializedError, RAGError

logger = structlog.get_logger(logger_name=__name__)

_VECTORS_FILE = "vectors.npy"
_ENTRIES_FILE = "entries.json"


def _normalize(matrix: np.ndarray) -> np.ndarray:
    norms = np.linalg.norm(matrix, axis=1, keepdims=True)
    norms[norms == 0.0] = 1.0
    return matrix / norms


class FlatVectorStore(IVectorStoreProvider):
    """Numpy-backed store with exact cosine search."""

    def __init__(
        self,
        embedding_provider: IEmbeddingProvider,
        directory: str = "./data/flat/index-vector-db",
    ) -> None:
        self._embedding_provider = embedding_provider
        self._directory = Path(directory)
        self._ids: list[str] = []
        self._contents: list[str] = []
        self._vectors: np.ndarray | None = None
        self._dimension = 0
        self._initialized = False
        self._init_lock = asyncio.Lock()
        self._write_lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def initialize(self) -> None:
        async with self._init_lock:
            if self._initialized:
                return
            try:
                sample = await self._embedding_provider.embed_single("initialize")
                self._dimension = len(sample)
                self._directory.mkdir(parents=True, exist_ok=True)
                self._load()
                self._initialized = True
                logger.info(
                    "flat_store_initialized",
                    path=str(self._directory),
                    model=self._embedding_provider.get_model_name(),
                    entries=len(self._ids),
                )
            except Exception as exc:
                logger.error(
                    "flat_store_initialize_failed",
                    path=str(self._directory),
                    error=str(exc),
                )

    def is_initialized(self) -> bool:
        return self._initialized

    def _load(self) -> None:
        vectors_path = self._directory / _VECTORS_FILE
        entries_path = self._directory / _ENTRIES_FILE
        if not vectors_path.exists() or not entries_path.exists():
            self._ids, self._contents = [], []
            self._vectors = np.zeros((0, self._dimension), dtype=np.float32)
            return

        entries = json.loads(entries_path.read_text(encoding="utf-8"))
        vectors = np.load(vectors_path)
        if vectors.shape[0] != len(entries):
            raise RAGError(
                message=f"Corrupt flat store: {vectors.shape[0]} vectors, {len(entries)} entries",
                provider_name=self.get_provider_name(),
            )
        if len(entries) and vectors.shape[1] != self._dimension:
            raise RAGError(
                message=(
                    f"Embedding dimension mismatch: store has {vectors.shape[1]}-dim vectors "
                    f"but the model produces {self._dimension}-dim vectors"
                ),
                provider_name=self.get_provider_name(),
            )
        self._ids = [e["id"] for e in entries]
        self._contents = [e["content"] for e in entries]
        self._vectors = vectors.astype(np.float32).reshape(len(entries), self._dimension)

    def _persist(self) -> None:
        # Write to temp files, then swap, so a crash never leaves the
        # two files out of step.
        vectors_tmp = self._directory / (_VECTORS_FILE + ".tmp")
        entries_tmp = self._directory / (_ENTRIES_FILE + ".tmp")
        with open(vectors_tmp, "wb") as f:
            np.save(f, self._vectors)
        entries = [{"id": i, "content": c} for i, c in zip(self._ids, self._contents, strict=True)]
        entries_tmp.write_text(json.dumps(entries), encoding="utf-8")
        os.replace(vectors_tmp, self._directory / _VECTORS_FILE)
        os.replace(entries_tmp, self._directory / _ENTRIES_FILE)

    def _require_ready(self) -> None:
        if not self._initialized:
            raise NotInitializedError(provider_name=self.get_provider_name())

    # ------------------------------------------------------------------
    # IVectorStoreProvider implementation
    # ------------------------------------------------------------------

    async def add_documents(self, texts: list[str]) -> list[str]:
        self._require_ready()
        if not texts:
            return []

        embeddings = await self._embedding_provider.embed(texts)
        matrix = np.asarray(embeddings, dtype=np.float32)
        if matrix.ndim != 2 or matrix.shape != (len(texts), self._dimension):
            raise EmbeddingFailedError(
                message=f"Unexpected embedding shape {matrix.shape} for {len(texts)} texts",
                provider_name=self._embedding_provider.get_provider_name(),
            )

        ids = [str(uuid.uuid4()) for _ in texts]
        async with self._write_lock:
            previous = (self._ids, self._contents, self._vectors)
            self._ids = self._ids + ids
            self._contents = self._contents + list(texts)
            self._vectors = np.vstack([self._vectors, _normalize(matrix)])
            try:
                self._persist()
            except OSError as exc:
                self._ids, self._contents, self._vectors = previous
                raise EmbeddingFailedError(
                    message=f"Flat store write failed: {exc}",
                    provider_name=self.get_provider_name(),
                ) from exc

        logger.info("flat_store_add_documents", count=len(ids))
        return ids

    async def search(
        self,
        query: str,
        num_results: int = 10,
        threshold: float = 0.7,
    ) -> list[SearchResult]:
        self._require_ready()
        if num_results <= 0 or not self._ids:
            return []

        query_vector = np.asarray(await self._embedding_provider.embed_single(query), dtype=np.float32)
        norm = np.linalg.norm(query_vector)
        if norm == 0.0:
            return []
        similarities = self._vectors @ (query_vector / norm)

        candidates = np.flatnonzero(similarities >= threshold)
        if candidates.size == 0:
            return []
        ordered = candidates[np.argsort(-similarities[candidates], kind="stable")][:num_results]

        results = [
            SearchResult(
                id=self._ids[i],
                content=self._contents[i],
                score=float(min(1.0, max(0.0, similarities[i]))),
            )
            for i in ordered
        ]
        logger.info(
            "flat_store_query",
            query_length=len(query),
            results_count=len(results),
            top_score=results[0].score,
        )
        return results

    async def delete_documents(self, ids: list[str]) -> None:
        self._require_ready()
        doomed = set(ids)
        if not doomed:
            return
        async with self._write_lock:
            keep = [i for i, entry_id in enumerate(self._ids) if entry_id not in doomed]
            if len(keep) == len(self._ids):
                return
            self._ids = [self._ids[i] for i in keep]
            self._contents = [self._contents[i] for i in keep]
            self._vectors = self._vectors[keep]
            self._persist()
        logger.info("flat_store_delete_documents", requested=len(doomed))

    async def reset(self) -> None:
        self._require_ready()
        async with self._write_lock:
            self._ids, self._contents = [], []
            self._vectors = np.zeros((0, self._dimension), dtype=np.float32)
            self._persist()
        logger.info("flat_store_reset", path=str(self._directory))

    async def reset_storage(self) -> None:
        if self._initialized:
            await self.reset()
            return
        async with self._write_lock:
            removed = 0
            for name in (_VECTORS_FILE, _ENTRIES_FILE):
                path = self._directory / name
                if path.exists():
                    path.unlink()
                    removed += 1
        logger.info("flat_store_storage_reset", path=str(self._directory), files_removed=removed)

    async def count(self) -> int:
        self._require_ready()
        return len(self._ids)

    def get_provider_name(self) -> str:
        return "flat"

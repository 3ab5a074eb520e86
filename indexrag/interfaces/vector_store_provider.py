"""Abstract base class for embedding-store providers.

Defines the backend-agnostic contract for storing text chunks as vectors
and retrieving them by similarity.  Two adapters ship with indexrag
(ChromaDB and a numpy flat file store); callers never assume a specific
backend's id format or model naming.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from indexrag.models.rag import SearchResult


# Concrete implementations: ChromaDBVectorStore, FlatVectorStore
# Located in: indexrag/providers/vector_store/
class IVectorStoreProvider(ABC):
    """Contract for embedding stores used by the processing pipeline and RAG engine.

    Every method except :meth:`initialize`, :meth:`is_initialized`,
    :meth:`reset_storage` and :meth:`get_provider_name` must raise
    :class:`~indexrag.utils.errors.NotInitializedError` until
    :meth:`initialize` has succeeded.  Callers fail fast; nothing blocks
    waiting for readiness.
    """

    @abstractmethod
    async def initialize(self) -> None:
        """Load the embedding model and open persistent storage.

        Idempotent and safe to retry.  Failure is non-fatal: it is logged
        and :meth:`is_initialized` keeps returning ``False``.
        """

    @abstractmethod
    def is_initialized(self) -> bool:
        """Return ``True`` once :meth:`initialize` has succeeded."""

    @abstractmethod
    async def add_documents(self, texts: list[str]) -> list[str]:
        """Embed and store *texts* as one batch.

        Parameters
        ----------
        texts:
            Chunk texts to store.

        Returns
        -------
        list[str]
            One store-generated id per input, in input order.

        Raises
        ------
        indexrag.utils.errors.NotInitializedError
            If the store is not ready.
        indexrag.utils.errors.EmbeddingFailedError
            If the batch could not be embedded or written.  No entries from
            the batch are kept.
        """

    @abstractmethod
    async def search(
        self,
        query: str,
        num_results: int = 10,
        threshold: float = 0.7,
    ) -> list[SearchResult]:
        """Return the nearest stored entries to *query*.

        Parameters
        ----------
        query:
            Natural-language text; embedded internally.
        num_results:
            Maximum number of results.
        threshold:
            Minimum similarity score (inclusive).

        Returns
        -------
        list[SearchResult]
            At most *num_results* entries with ``score >= threshold``, in
            descending score order.  An empty list is a valid answer.
        """

    @abstractmethod
    async def delete_documents(self, ids: list[str]) -> None:
        """Remove the entries with the given ids.  Unknown ids are ignored."""

    @abstractmethod
    async def reset(self) -> None:
        """Remove every entry in the collection, keeping the store usable."""

    @abstractmethod
    async def reset_storage(self) -> None:
        """Discard all persisted entries, whether or not the store is ready.

        Used when the embedding model changes: persisted vectors from the
        old model can fail :meth:`initialize` (dimension mismatch), so they
        must be removed before the store is opened.  A ready store is
        reset in place and stays ready.
        """

    @abstractmethod
    async def count(self) -> int:
        """Return the number of stored entries."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier, e.g. ``"chromadb"``."""

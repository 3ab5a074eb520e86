"""Abstract base class for document persistence.

Documents, their status fields, and their chunks are owned by the
persistence layer.  The processing pipeline is the only writer of the
status fields; content edits go through :meth:`update_content`, which
resets the status to ``pending``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from indexrag.models.document import Chunk, Document, ProcessingStatus


# Concrete implementation: SQLiteDocumentRepository (indexrag/providers/persistence/)
class IDocumentRepository(ABC):
    """Contract for document storage used by the pipeline and migration."""

    @abstractmethod
    async def initialize(self) -> None:
        """Create backing storage if needed."""

    @abstractmethod
    async def add(self, document: Document) -> Document:
        """Insert a new document and return it as stored."""

    @abstractmethod
    async def get(self, document_id: str) -> Document | None:
        """Return the document, or ``None`` for an unknown id."""

    @abstractmethod
    async def load_content(self, document_id: str) -> str:
        """Return the document's full text.

        Raises
        ------
        indexrag.utils.errors.DocumentNotFoundError
            For an unknown id.
        """

    @abstractmethod
    async def list_documents(self) -> list[Document]:
        """Return every document, oldest first."""

    @abstractmethod
    async def list_by_status(self, *statuses: ProcessingStatus) -> list[Document]:
        """Return documents whose status is one of *statuses*, oldest first."""

    @abstractmethod
    async def update_status(
        self,
        document_id: str,
        status: ProcessingStatus,
        *,
        is_processed: bool | None = None,
        content_hash: str | None = None,
    ) -> None:
        """Set the processing status (and optionally the processed flag and hash)."""

    @abstractmethod
    async def update_content(self, document_id: str, content: str, title: str | None = None) -> None:
        """Replace the content and reset the status to ``pending``."""

    @abstractmethod
    async def delete(self, document_id: str) -> None:
        """Remove the document and its chunks."""

    @abstractmethod
    async def get_chunks(self, document_id: str) -> list[Chunk]:
        """Return the chunks saved by the last successful run, in order."""

    @abstractmethod
    async def save_chunks(self, document_id: str, chunks: list[Chunk]) -> None:
        """Replace the document's chunks with *chunks*."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this repository."""

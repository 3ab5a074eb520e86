"""Custom exception hierarchy for indexrag.

All application exceptions inherit from :class:`IndexRAGError`, which
carries an optional ``provider_name`` so error handlers can identify which
backend (e.g. "chromadb", "openai", "fastembed") caused the failure.

The hierarchy is organized by pipeline domain:

    IndexRAGError  (base -- catch-all for any indexrag error)
    +-- NotInitializedError        (embedding store not ready yet; retriable)
    +-- EmbeddingFailedError       (batch embed call failed; document -> failed)
    +-- NoRelevantDocumentsError   (query matched nothing above threshold)
    +-- BackendUnavailableError    (generation service or store unavailable)
    +-- ContextWindowExceededError (content too large for a single call)
    +-- EmptyContentError          (nothing to process or generate from)
    +-- DocumentNotFoundError      (unknown document id)
    +-- PipelineError              (orchestration failures)
    +-- ConfigurationError         (startup / missing config)
    +-- LLMError                   (any LLM API call failure)
    +-- RAGError                   (generic vector-store failure)

Retriability is decided by the caller: the orchestrator turns
``EmbeddingFailedError`` into a ``failed`` document status, while the
retrieval engine lets query errors propagate to its caller.
"""


class IndexRAGError(Exception):
    """Base exception for all indexrag errors.

    Every subclass carries a human-readable ``message`` and an optional
    ``provider_name`` identifying which backend triggered the error.  The
    ``__str__`` method prefixes the provider name in brackets for structured
    log output, e.g. ``[chromadb] Vector store is not initialized``.
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Embedding store errors
# ---------------------------------------------------------------------------

class NotInitializedError(IndexRAGError):
    """Raised when the embedding store is used before ``initialize()`` succeeded."""

    def __init__(
        self,
        message: str = "Vector store is not initialized",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class EmbeddingFailedError(IndexRAGError):
    """Raised when a batch embedding call fails.

    The whole batch is rejected; no ids are returned for a partial batch.
    """

    def __init__(
        self,
        message: str = "Failed to generate embeddings",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class RAGError(IndexRAGError):
    """Raised when a vector-store operation other than embedding fails."""

    def __init__(
        self,
        message: str = "Vector store operation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Retrieval / generation errors
# ---------------------------------------------------------------------------

class NoRelevantDocumentsError(IndexRAGError):
    """Raised when a query finds no chunk above the similarity threshold."""

    def __init__(
        self,
        message: str = "No relevant documents found for this query",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class BackendUnavailableError(IndexRAGError):
    """Raised when the generation service (or the store it needs) is unavailable."""

    def __init__(
        self,
        message: str = "Language model is not available",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ContextWindowExceededError(IndexRAGError):
    """Raised when content does not fit a single generation call.

    Callers fall back to multi-part processing when they catch this.
    """

    def __init__(
        self,
        message: str = "Content exceeds the model context window",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class EmptyContentError(IndexRAGError):
    """Raised when generation is requested for empty content."""

    def __init__(
        self,
        message: str = "Document has no content to process",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class LLMError(IndexRAGError):
    """Raised when an LLM API call fails or returns an unusable response."""

    def __init__(
        self,
        message: str = "LLM API call failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Orchestration / configuration errors
# ---------------------------------------------------------------------------

class DocumentNotFoundError(IndexRAGError):
    """Raised when a document id is unknown to the repository."""

    def __init__(
        self,
        message: str = "Document not found",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class PipelineError(IndexRAGError):
    """Raised when pipeline orchestration fails (invalid state transition, etc.)."""

    def __init__(
        self,
        message: str = "Pipeline orchestration failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ConfigurationError(IndexRAGError):
    """Raised when configuration is invalid or missing at startup."""

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)

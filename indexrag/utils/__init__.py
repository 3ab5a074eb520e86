"""Utility modules for indexrag.

- **errors** -- Domain-specific exception hierarchy rooted at IndexRAGError;
  each stage raises its own subclass so callers can decide retriability
  without broad ``except Exception`` blocks.
- **concurrency** -- semaphore-throttled gather, per-key asyncio locks, and
  the cooperative cancellation token used by the processing pipeline.
- **logging** -- structlog setup with a dual-renderer pattern: coloured
  console output in development, structured JSON in production.
- **text_normalizer** -- markdown stripping and content hashing for the
  ingestion path.
"""

# -- Domain exception hierarchy --------------------------------------------
from indexrag.utils.errors import (
    BackendUnavailableError,
    ConfigurationError,
    ContextWindowExceededError,
    DocumentNotFoundError,
    EmbeddingFailedError,
    EmptyContentError,
    IndexRAGError,
    LLMError,
    NoRelevantDocumentsError,
    NotInitializedError,
    PipelineError,
    RAGError,
)

# -- Async concurrency helpers ---------------------------------------------
from indexrag.utils.concurrency import CancellationToken, KeyedLockRegistry, throttled_gather

# -- Structured logging setup ----------------------------------------------
from indexrag.utils.logging import configure_logging, get_logger

# -- Text normalization ----------------------------------------------------
from indexrag.utils.text_normalizer import content_hash, strip_markdown

__all__ = [
    "BackendUnavailableError",
    "CancellationToken",
    "ConfigurationError",
    "ContextWindowExceededError",
    "DocumentNotFoundError",
    "EmbeddingFailedError",
    "EmptyContentError",
    "IndexRAGError",
    "KeyedLockRegistry",
    "LLMError",
    "NoRelevantDocumentsError",
    "NotInitializedError",
    "PipelineError",
    "RAGError",
    "configure_logging",
    "content_hash",
    "get_logger",
    "strip_markdown",
    "throttled_gather",
]

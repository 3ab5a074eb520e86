"""Public interface definitions for every swappable collaborator.

Business logic talks only to the abstract base classes defined here.
Concrete adapters implement them and are injected at startup in
``indexrag/main.py``, so a backend can change without touching the
pipeline or the RAG engine, and tests can inject fakes.

CONCRETE PROVIDER MAP:
    Interface                  ->  Concrete implementations (in indexrag/providers/)
    -------------------------------------------------------------------------
    ILLMProvider               ->  OpenAILLMProvider, AnthropicLLMProvider,
                                   OllamaLLMProvider
    IEmbeddingProvider         ->  FastEmbedEmbeddingProvider,
                                   SentenceTransformerEmbeddingProvider,
                                   OpenAIEmbeddingProvider
    IVectorStoreProvider       ->  ChromaDBVectorStore, FlatVectorStore
    IArtifactCache             ->  ArtifactCache
    IDocumentRepository        ->  SQLiteDocumentRepository
    ISettingsStore             ->  SQLiteSettingsStore
"""

from indexrag.interfaces.cache_provider import IArtifactCache
from indexrag.interfaces.document_repository import IDocumentRepository
from indexrag.interfaces.embedding_provider import IEmbeddingProvider
from indexrag.interfaces.llm_provider import ILLMProvider, LLMAvailability
from indexrag.interfaces.settings_store import ISettingsStore
from indexrag.interfaces.vector_store_provider import IVectorStoreProvider

__all__ = [
    "IArtifactCache",
    "IDocumentRepository",
    "IEmbeddingProvider",
    "ILLMProvider",
    "ISettingsStore",
    "IVectorStoreProvider",
    "LLMAvailability",
]

"""Vector store provider implementations.

Two interchangeable backends implement IVectorStoreProvider:
    - ChromaDBVectorStore -- ChromaDB persistent collection (default)
    - FlatVectorStore     -- numpy matrix on disk with exact cosine search

The backends' on-disk formats are incompatible; switching between them
goes through the migration service, which re-embeds every document.
"""

from indexrag.providers.vector_store.chromadb_provider import ChromaDBVectorStore
from indexrag.providers.vector_store.flat_provider import FlatVectorStore

__all__ = ["ChromaDBVectorStore", "FlatVectorStore"]

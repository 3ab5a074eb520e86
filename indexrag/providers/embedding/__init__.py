"""Embedding provider implementations.

Embeddings convert text into numeric vectors that capture semantic meaning.
These vectors are stored by the vector-store adapters and compared at
query time.

Three implementations of IEmbeddingProvider (listed in typical priority order):
    1. FastEmbedEmbeddingProvider -- ONNX-based, no PyTorch needed.  Default;
       covers bge-small and MiniLM-L6.
    2. SentenceTransformerEmbeddingProvider -- PyTorch-based; covers every
       catalogue model including MiniLM-L12.
    3. OpenAIEmbeddingProvider -- hosted embeddings; requires an API key.

FastEmbed and SentenceTransformer providers import their libraries lazily,
so importing this package never requires the model runtimes.
"""

from indexrag.providers.embedding.fastembed_embedding_provider import FastEmbedEmbeddingProvider
from indexrag.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider
from indexrag.providers.embedding.sentence_transformer_embedding_provider import (
    SentenceTransformerEmbeddingProvider,
)

__all__ = [
    "FastEmbedEmbeddingProvider",
    "OpenAIEmbeddingProvider",
    "SentenceTransformerEmbeddingProvider",
]

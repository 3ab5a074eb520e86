"""Abstract base class for text-embedding service providers.

Defines the contract for generating embedding vectors from text.
Implementations wrap FastEmbed (ONNX), Sentence Transformers, or the
OpenAI embeddings API.  Embedding stores receive a provider by injection,
so the model can change without touching store code.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementations:
#   FastEmbedEmbeddingProvider           -- lightweight ONNX (no PyTorch), default
#   SentenceTransformerEmbeddingProvider -- PyTorch, all catalogue models
#   OpenAIEmbeddingProvider              -- text-embedding-3-small (requires API key)
# Located in: indexrag/providers/embedding/
class IEmbeddingProvider(ABC):
    """Contract for text-embedding services used by the embedding stores."""

    @abstractmethod
    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Generate embedding vectors for a batch of texts.

        Parameters
        ----------
        texts:
            One or more text strings to embed.  Implementations handle
            batching internally if the underlying API has a per-call limit.

        Returns
        -------
        list[list[float]]
            Embedding vectors corresponding positionally to *texts*.

        Raises
        ------
        indexrag.utils.errors.EmbeddingFailedError
            If the embedding call fails.
        """

    @abstractmethod
    async def embed_single(self, text: str) -> list[float]:
        """Generate an embedding vector for a single text (e.g. a search query)."""

    @abstractmethod
    def get_dimension(self) -> int:
        """Return the dimensionality of the embedding vectors.

        Constant for the lifetime of the provider instance.
        """

    @abstractmethod
    def get_model_name(self) -> str:
        """Return the model identifier, e.g. ``"BAAI/bge-small-en-v1.5"``."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this embedding provider."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the provider is configured and its library importable."""

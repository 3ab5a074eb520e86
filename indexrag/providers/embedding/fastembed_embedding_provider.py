"""Local ONNX-based embedding provider using fastembed.

Wraps the ``fastembed`` library to implement :class:`IEmbeddingProvider`
using ONNX Runtime, with **no PyTorch dependency**.  Runs on CPU with a
small RAM footprint, which makes it the default provider.

Default model: ``BAAI/bge-small-en-v1.5`` (384 dimensions).
"""

from __future__ import annotations

import asyncio

import structlog

from indexrag.interfaces.embedding_provider import IEmbeddingProvider
from indexrag.models.embedding import EmbeddingModel
from indexrag.utils.errors import EmbeddingFailedError

logger = structlog.get_logger(logger_name=__name__)

# Catalogue models that fastembed ships ONNX weights for, keyed by the
# name fastembed expects.
_MODEL_DIMENSIONS: dict[str, int] = {
    "BAAI/bge-small-en-v1.5": 384,
    "sentence-transformers/all-MiniLM-L6-v2": 384,
}

_CATALOGUE_IDS: dict[EmbeddingModel, str] = {
    EmbeddingModel.BGE_SMALL: "BAAI/bge-small-en-v1.5",
    EmbeddingModel.MINILM_L6: "sentence-transformers/all-MiniLM-L6-v2",
}

_DEFAULT_MODEL = "BAAI/bge-small-en-v1.5"
_BATCH_LIMIT = 64


class FastEmbedEmbeddingProvider(IEmbeddingProvider):
    """Embedding provider backed by fastembed (ONNX Runtime).

    Loads the ONNX model on first use (lazy initialization).  Downloads
    model weights on first run, then caches locally.
    """

    def __init__(self, model_name: str | None = None, cache_dir: str | None = None) -> None:
        self._model_name = model_name or _DEFAULT_MODEL
        self._dimension = _MODEL_DIMENSIONS.get(self._model_name, 384)
        self._cache_dir = cache_dir
        self._model = None  # Lazy-loaded

    @staticmethod
    def supports(model: EmbeddingModel) -> bool:
        """Return ``True`` if fastembed has ONNX weights for *model*."""
        return model in _CATALOGUE_IDS

    @classmethod
    def for_model(cls, model: EmbeddingModel, cache_dir: str | None = None) -> FastEmbedEmbeddingProvider:
        return cls(model_name=_CATALOGUE_IDS[model], cache_dir=cache_dir)

    def _load_model(self) -> None:
        if self._model is not None:
            return
        try:
            from fastembed import TextEmbedding

            logger.info("loading_fastembed_model", model=self._model_name)
            self._model = TextEmbedding(model_name=self._model_name, cache_dir=self._cache_dir)
            logger.info(
                "fastembed_model_loaded",
                model=self._model_name,
                dimension=self._dimension,
            )
        except Exception as exc:
            raise EmbeddingFailedError(
                message=f"Failed to load fastembed model '{self._model_name}': {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    def _embed_sync(self, texts: list[str]) -> list[list[float]]:
        self._load_model()
        all_embeddings: list[list[float]] = []
        for start in range(0, len(texts), _BATCH_LIMIT):
            batch = texts[start : start + _BATCH_LIMIT]
            # fastembed yields numpy arrays lazily
            vectors = list(self._model.embed(batch))
            all_embeddings.extend([v.tolist() for v in vectors])
        return all_embeddings

    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Generate embedding vectors for a batch of texts."""
        if not texts:
            return []
        try:
            return await asyncio.to_thread(self._embed_sync, texts)
        except EmbeddingFailedError:
            raise
        except Exception as exc:
            raise EmbeddingFailedError(
                message=f"Fastembed embedding error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    async def embed_single(self, text: str) -> list[float]:
        result = await self.embed([text])
        return result[0]

    def get_dimension(self) -> int:
        return self._dimension

    def get_model_name(self) -> str:
        return self._model_name

    def get_provider_name(self) -> str:
        return f"fastembed_{self._model_name.split('/')[-1]}"

    def is_available(self) -> bool:
        """Return ``True`` if fastembed is installed."""
        try:
            import fastembed  # noqa: F401

            return True
        except ImportError:
            return False

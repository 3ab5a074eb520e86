"""Local sentence-transformers embedding provider adapter.

Wraps the ``sentence-transformers`` library to implement
:class:`IEmbeddingProvider` with any catalogue model, including
``all-MiniLM-L12-v2`` which fastembed does not ship.  Runs on CPU/GPU
with no API key.
"""

from __future__ import annotations

import asyncio

import structlog

from indexrag.interfaces.embedding_provider import IEmbeddingProvider
from indexrag.models.embedding import CATALOGUE, EmbeddingModel
from indexrag.utils.errors import EmbeddingFailedError

logger = structlog.get_logger(logger_name=__name__)

_CATALOGUE_IDS: dict[EmbeddingModel, str] = {
    EmbeddingModel.MINILM_L6: "sentence-transformers/all-MiniLM-L6-v2",
    EmbeddingModel.MINILM_L12: "sentence-transformers/all-MiniLM-L12-v2",
    EmbeddingModel.BGE_SMALL: "BAAI/bge-small-en-v1.5",
}

_DEFAULT_MODEL = EmbeddingModel.MINILM_L6
_BATCH_LIMIT = 64  # Conservative batch size for CPU inference


class SentenceTransformerEmbeddingProvider(IEmbeddingProvider):
    """Embedding provider backed by a local sentence-transformers model.

    Loads the model into memory on first use (lazy initialization).
    Vectors are L2-normalized so cosine and dot-product rankings agree.
    """

    def __init__(self, model: EmbeddingModel | None = None) -> None:
        self._catalogue_model = model or _DEFAULT_MODEL
        self._model_name = _CATALOGUE_IDS[self._catalogue_model]
        self._dimension = CATALOGUE[self._catalogue_model].dimensions
        self._model = None  # Lazy-loaded

    def _load_model(self) -> None:
        if self._model is not None:
            return
        try:
            from sentence_transformers import SentenceTransformer

            logger.info("loading_sentence_transformer", model=self._model_name)
            self._model = SentenceTransformer(self._model_name)
            logger.info(
                "sentence_transformer_loaded",
                model=self._model_name,
                dimension=self._dimension,
            )
        except Exception as exc:
            raise EmbeddingFailedError(
                message=f"Failed to load sentence-transformers model '{self._model_name}': {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    def _embed_sync(self, texts: list[str]) -> list[list[float]]:
        self._load_model()
        all_embeddings: list[list[float]] = []
        for start in range(0, len(texts), _BATCH_LIMIT):
            batch = texts[start : start + _BATCH_LIMIT]
            vectors = self._model.encode(
                batch,
                normalize_embeddings=True,
                show_progress_bar=False,
            )
            all_embeddings.extend(vectors.tolist())
            logger.debug(
                "sentence_transformer_embedding_batch",
                model=self._model_name,
                batch_size=len(batch),
            )
        return all_embeddings

    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Generate embedding vectors for a batch of texts.

        Automatically splits into batches for memory-safe CPU inference.
        """
        if not texts:
            return []
        try:
            return await asyncio.to_thread(self._embed_sync, texts)
        except EmbeddingFailedError:
            raise
        except Exception as exc:
            raise EmbeddingFailedError(
                message=f"Sentence-transformers embedding error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    async def embed_single(self, text: str) -> list[float]:
        result = await self.embed([text])
        return result[0]

    def get_dimension(self) -> int:
        return self._dimension

    def get_model_name(self) -> str:
        return self._catalogue_model.value

    def get_provider_name(self) -> str:
        return f"sentence_transformer_{self._model_name.split('/')[-1]}"

    def is_available(self) -> bool:
        """Return ``True`` if sentence-transformers is installed."""
        try:
            import sentence_transformers  # noqa: F401

            return True
        except ImportError:
            return False

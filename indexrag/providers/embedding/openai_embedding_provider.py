"""Hosted embeddings through the OpenAI embeddings endpoint.

Any host speaking the same protocol works too; set ``OPENAI_BASE_URL`` and
``OPENAI_EMBEDDING_MODEL``.  Vectors from this provider live in a different
space from the local catalogue models, so selecting it triggers the
model-change reindex on the next startup.
"""

from __future__ import annotations

import openai
import structlog

from indexrag.config.settings import Settings
from indexrag.interfaces.embedding_provider import IEmbeddingProvider
from indexrag.utils.errors import EmbeddingFailedError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_MODEL = "text-embedding-3-small"

# Inputs per request.  The endpoint accepts more, but a document rarely
# produces this many chunks and smaller requests fail faster.
_REQUEST_SIZE = 256

_KNOWN_DIMENSIONS: dict[str, int] = {
    "text-embedding-3-small": 1536,
    "text-embedding-3-large": 3072,
    "text-embedding-ada-002": 1536,
}


class OpenAIEmbeddingProvider(IEmbeddingProvider):
    """Embedding provider for ``EMBEDDING_PROVIDER=openai``.

    A multi-request batch is all-or-nothing: the caller gets every vector
    in input order or an :class:`EmbeddingFailedError`.
    """

    def __init__(self, settings: Settings) -> None:
        self._api_key = settings.openai_api_key
        self._model = settings.openai_embedding_model or _DEFAULT_MODEL
        self._compatible = bool(settings.openai_base_url)
        # Unknown models report their size with the first response.
        self._dimension = _KNOWN_DIMENSIONS.get(self._model, 0)

        client_kwargs: dict = {"api_key": self._api_key}
        if self._compatible:
            client_kwargs["base_url"] = settings.openai_base_url
        self._client = openai.AsyncOpenAI(**client_kwargs)

    async def embed(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []

        # The endpoint rejects empty strings.
        inputs = [text if text.strip() else " " for text in texts]
        vectors: list[list[float]] = []
        for start in range(0, len(inputs), _REQUEST_SIZE):
            vectors.extend(await self._request(inputs[start : start + _REQUEST_SIZE]))

        if len(vectors) != len(texts):
            raise EmbeddingFailedError(
                message=f"Expected {len(texts)} embeddings, received {len(vectors)}",
                provider_name=self.get_provider_name(),
            )
        if not self._dimension:
            self._dimension = len(vectors[0])
        return vectors

    async def _request(self, batch: list[str]) -> list[list[float]]:
        try:
            response = await self._client.embeddings.create(input=batch, model=self._model)
        except openai.APIError as exc:
            logger.error(
                "openai_embedding_failed",
                model=self._model,
                batch_size=len(batch),
                error=str(exc),
            )
            raise EmbeddingFailedError(
                message=f"Embedding request failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.debug(
            "openai_embedding_request",
            model=self._model,
            batch_size=len(batch),
            tokens=response.usage.total_tokens if response.usage else None,
        )
        # Each item carries its input position; don't rely on response order.
        ordered = sorted(response.data, key=lambda item: item.index)
        return [list(item.embedding) for item in ordered]

    async def embed_single(self, text: str) -> list[float]:
        return (await self.embed([text]))[0]

    def get_dimension(self) -> int:
        return self._dimension

    def get_model_name(self) -> str:
        return self._model

    def get_provider_name(self) -> str:
        return "openai_compatible_embedding" if self._compatible else "openai_embedding"

    def is_available(self) -> bool:
        return bool(self._api_key)

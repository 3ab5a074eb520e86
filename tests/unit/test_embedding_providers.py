"""Unit tests for the embedding catalogue and embedding provider adapters."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import numpy as np
import pytest

from indexrag.config.settings import Settings
from indexrag.models.embedding import (
    CATALOGUE,
    EmbeddingModel,
    recommendation_message,
    recommended_for_ram,
    resolve_model,
)
from indexrag.utils.errors import EmbeddingFailedError


def _settings(**overrides) -> Settings:
    defaults = {
        "openai_api_key": "sk-test",
        "openai_base_url": "",
        "openai_embedding_model": "",
    }
    defaults.update(overrides)
    return Settings(**defaults)


# ======================================================================
# Catalogue
# ======================================================================


class TestCatalogue:
    def test_every_model_is_384_dimensional(self) -> None:
        assert {spec.dimensions for spec in CATALOGUE.values()} == {384}

    @pytest.mark.parametrize(
        ("ram_gb", "expected"),
        [
            (2, EmbeddingModel.MINILM_L6),
            (8, EmbeddingModel.MINILM_L12),
            (12, EmbeddingModel.MINILM_L12),
            (16, EmbeddingModel.BGE_SMALL),
            (64, EmbeddingModel.BGE_SMALL),
        ],
    )
    def test_recommended_for_ram(self, ram_gb: int, expected: EmbeddingModel) -> None:
        assert recommended_for_ram(ram_gb) == expected

    def test_resolve_auto_uses_ram(self) -> None:
        assert resolve_model("auto", ram_gb=4) == EmbeddingModel.MINILM_L6

    def test_resolve_explicit_id(self) -> None:
        assert resolve_model("BAAI/bge-small-en-v1.5") == EmbeddingModel.BGE_SMALL

    def test_resolve_unknown_raises(self) -> None:
        with pytest.raises(ValueError):
            resolve_model("not-a-model")

    def test_no_message_when_ram_suffices(self) -> None:
        assert recommendation_message(EmbeddingModel.BGE_SMALL, 16) is None

    def test_message_names_better_fit(self) -> None:
        message = recommendation_message(EmbeddingModel.BGE_SMALL, 4)
        assert message is not None
        assert "4GB RAM" in message
        assert "MiniLM-L6 (Fastest)" in message


# ======================================================================
# FastEmbed
# ======================================================================


class TestFastEmbedEmbeddingProvider:
    def test_supports_catalogue_subset(self) -> None:
        from indexrag.providers.embedding.fastembed_embedding_provider import (
            FastEmbedEmbeddingProvider,
        )

        assert FastEmbedEmbeddingProvider.supports(EmbeddingModel.BGE_SMALL) is True
        assert FastEmbedEmbeddingProvider.supports(EmbeddingModel.MINILM_L12) is False

    def test_for_model(self) -> None:
        from indexrag.providers.embedding.fastembed_embedding_provider import (
            FastEmbedEmbeddingProvider,
        )

        provider = FastEmbedEmbeddingProvider.for_model(EmbeddingModel.MINILM_L6)
        assert provider.get_model_name() == "sentence-transformers/all-MiniLM-L6-v2"
        assert provider.get_dimension() == 384
        assert provider.get_provider_name() == "fastembed_all-MiniLM-L6-v2"

    @pytest.mark.asyncio
    async def test_embed_converts_arrays(self) -> None:
        from indexrag.providers.embedding.fastembed_embedding_provider import (
            FastEmbedEmbeddingProvider,
        )

        provider = FastEmbedEmbeddingProvider()
        model = MagicMock()
        model.embed.side_effect = lambda batch: (np.ones(3) * i for i, _ in enumerate(batch))
        provider._model = model

        vectors = await provider.embed(["a", "b"])

        assert vectors == [[0.0, 0.0, 0.0], [1.0, 1.0, 1.0]]

    @pytest.mark.asyncio
    async def test_embed_empty(self) -> None:
        from indexrag.providers.embedding.fastembed_embedding_provider import (
            FastEmbedEmbeddingProvider,
        )

        assert await FastEmbedEmbeddingProvider().embed([]) == []

    @pytest.mark.asyncio
    async def test_model_error_wrapped(self) -> None:
        from indexrag.providers.embedding.fastembed_embedding_provider import (
            FastEmbedEmbeddingProvider,
        )

        provider = FastEmbedEmbeddingProvider()
        model = MagicMock()
        model.embed.side_effect = RuntimeError("onnx crashed")
        provider._model = model

        with pytest.raises(EmbeddingFailedError):
            await provider.embed(["a"])


# ======================================================================
# sentence-transformers
# ======================================================================


class TestSentenceTransformerEmbeddingProvider:
    def test_model_name_is_catalogue_id(self) -> None:
        from indexrag.providers.embedding.sentence_transformer_embedding_provider import (
            SentenceTransformerEmbeddingProvider,
        )

        provider = SentenceTransformerEmbeddingProvider(EmbeddingModel.MINILM_L12)
        assert provider.get_model_name() == "all-MiniLM-L12-v2"
        assert provider.get_provider_name() == "sentence_transformer_all-MiniLM-L12-v2"

    @pytest.mark.asyncio
    async def test_embed_normalizes(self) -> None:
        from indexrag.providers.embedding.sentence_transformer_embedding_provider import (
            SentenceTransformerEmbeddingProvider,
        )

        provider = SentenceTransformerEmbeddingProvider()
        model = MagicMock()
        model.encode.return_value = np.array([[0.6, 0.8]])
        provider._model = model

        vectors = await provider.embed(["text"])

        assert vectors == [[0.6, 0.8]]
        assert model.encode.call_args.kwargs["normalize_embeddings"] is True


# ======================================================================
# OpenAI Embedding Provider
# ======================================================================


class TestOpenAIEmbeddingProvider:
    @pytest.fixture()
    def settings(self) -> Settings:
        return _settings()

    def test_defaults(self, settings: Settings) -> None:
        from indexrag.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider

        provider = OpenAIEmbeddingProvider(settings)
        assert provider.get_model_name() == "text-embedding-3-small"
        assert provider.get_dimension() == 1536
        assert provider.get_provider_name() == "openai_embedding"
        assert provider.is_available() is True

    def test_is_available_without_key(self) -> None:
        from indexrag.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider

        assert OpenAIEmbeddingProvider(_settings(openai_api_key="")).is_available() is False

    @pytest.mark.asyncio
    async def test_embed_success(self, settings: Settings) -> None:
        from indexrag.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider

        mock_response = MagicMock()
        # Returned out of order; the provider restores input order.
        mock_response.data = [
            MagicMock(index=1, embedding=[0.3, 0.4]),
            MagicMock(index=0, embedding=[0.1, 0.2]),
        ]
        mock_response.usage = MagicMock(total_tokens=10)
        mock_client = AsyncMock()
        mock_client.embeddings.create = AsyncMock(return_value=mock_response)

        with patch(
            "indexrag.providers.embedding.openai_embedding_provider.openai.AsyncOpenAI",
            return_value=mock_client,
        ):
            provider = OpenAIEmbeddingProvider(settings)
            result = await provider.embed(["a", ""])

        assert result == [[0.1, 0.2], [0.3, 0.4]]
        sent = mock_client.embeddings.create.call_args.kwargs["input"]
        assert sent == ["a", " "]

    @pytest.mark.asyncio
    async def test_embed_count_mismatch(self, settings: Settings) -> None:
        from indexrag.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider

        mock_response = MagicMock()
        mock_response.data = [MagicMock(index=0, embedding=[0.1])]
        mock_response.usage = None
        mock_client = AsyncMock()
        mock_client.embeddings.create = AsyncMock(return_value=mock_response)

        with patch(
            "indexrag.providers.embedding.openai_embedding_provider.openai.AsyncOpenAI",
            return_value=mock_client,
        ):
            provider = OpenAIEmbeddingProvider(settings)
            with pytest.raises(EmbeddingFailedError):
                await provider.embed(["a", "b"])

    @pytest.mark.asyncio
    async def test_embed_error(self, settings: Settings) -> None:
        import openai

        from indexrag.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider

        mock_client = AsyncMock()
        mock_client.embeddings.create = AsyncMock(
            side_effect=openai.APIError(message="Server error", request=MagicMock(), body=None)
        )

        with patch(
            "indexrag.providers.embedding.openai_embedding_provider.openai.AsyncOpenAI",
            return_value=mock_client,
        ):
            provider = OpenAIEmbeddingProvider(settings)
            with pytest.raises(EmbeddingFailedError):
                await provider.embed(["a"])

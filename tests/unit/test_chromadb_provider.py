"""Unit tests for the ChromaDB vector store provider.

The ChromaDB client is patched with mocks, so these tests cover the
adapter's own logic: readiness, batch atomicity, distance-to-score
conversion, threshold filtering and error wrapping.
"""

from __future__ import annotations

import threading
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest

from indexrag.providers.vector_store.chromadb_provider import (
    ChromaDBVectorStore,
    rank_fallback_scores,
)
from indexrag.utils.errors import EmbeddingFailedError, NotInitializedError, RAGError
from tests.conftest import HashingEmbeddingProvider

_CLIENT_PATH = "indexrag.providers.vector_store.chromadb_provider.chromadb.PersistentClient"


def _collection(count: int = 0, stored_dim: int | None = None) -> MagicMock:
    collection = MagicMock()
    collection.count.return_value = count
    if stored_dim is None:
        collection.peek.return_value = {"embeddings": []}
    else:
        collection.peek.return_value = {"embeddings": [[0.0] * stored_dim]}
    return collection


def _client(collection: MagicMock) -> MagicMock:
    client = MagicMock()
    client.get_or_create_collection.return_value = collection
    return client


async def _ready_store(collection: MagicMock, tmp_path) -> ChromaDBVectorStore:
    store = ChromaDBVectorStore(
        embedding_provider=HashingEmbeddingProvider(dimension=8),
        persist_directory=str(tmp_path / "chroma"),
        collection_name="test_collection",
    )
    with patch(_CLIENT_PATH, return_value=_client(collection)):
        await store.initialize()
    return store


class TestLifecycle:
    def test_get_provider_name(self, tmp_path) -> None:
        store = ChromaDBVectorStore(
            embedding_provider=HashingEmbeddingProvider(),
            persist_directory=str(tmp_path / "chroma"),
        )
        assert store.get_provider_name() == "chromadb"

    @pytest.mark.asyncio
    async def test_not_initialized_raises(self, tmp_path) -> None:
        store = ChromaDBVectorStore(
            embedding_provider=HashingEmbeddingProvider(),
            persist_directory=str(tmp_path / "chroma"),
        )
        assert store.is_initialized() is False
        with pytest.raises(NotInitializedError):
            await store.add_documents(["text"])
        with pytest.raises(NotInitializedError):
            await store.search("text")
        with pytest.raises(NotInitializedError):
            await store.count()

    @pytest.mark.asyncio
    async def test_initialize_opens_cosine_collection(self, tmp_path) -> None:
        collection = _collection()
        client = _client(collection)
        store = ChromaDBVectorStore(
            embedding_provider=HashingEmbeddingProvider(dimension=8),
            persist_directory=str(tmp_path / "chroma"),
            collection_name="notes",
        )
        with patch(_CLIENT_PATH, return_value=client):
            await store.initialize()

        assert store.is_initialized() is True
        kwargs = client.get_or_create_collection.call_args.kwargs
        assert kwargs["name"] == "notes"
        assert kwargs["metadata"] == {"hnsw:space": "cosine"}

    @pytest.mark.asyncio
    async def test_client_failure_is_not_fatal(self, tmp_path) -> None:
        store = ChromaDBVectorStore(
            embedding_provider=HashingEmbeddingProvider(),
            persist_directory=str(tmp_path / "chroma"),
        )
        with patch(_CLIENT_PATH, side_effect=RuntimeError("disk locked")):
            await store.initialize()
        assert store.is_initialized() is False

    @pytest.mark.asyncio
    async def test_dimension_mismatch_fails_initialize(self, tmp_path) -> None:
        store = await _ready_store(_collection(count=3, stored_dim=16), tmp_path)
        assert store.is_initialized() is False


class TestAddDocuments:
    @pytest.mark.asyncio
    async def test_returns_ids_in_input_order(self, tmp_path) -> None:
        collection = _collection()
        store = await _ready_store(collection, tmp_path)

        ids = await store.add_documents(["first", "second"])

        assert len(ids) == 2
        kwargs = collection.add.call_args.kwargs
        assert kwargs["ids"] == ids
        assert kwargs["documents"] == ["first", "second"]
        assert len(kwargs["embeddings"]) == 2

    @pytest.mark.asyncio
    async def test_empty_batch_skips_collection(self, tmp_path) -> None:
        collection = _collection()
        store = await _ready_store(collection, tmp_path)
        assert await store.add_documents([]) == []
        collection.add.assert_not_called()

    @pytest.mark.asyncio
    async def test_write_failure_raises_embedding_failed(self, tmp_path) -> None:
        collection = _collection()
        collection.add.side_effect = RuntimeError("sqlite locked")
        store = await _ready_store(collection, tmp_path)

        with pytest.raises(EmbeddingFailedError):
            await store.add_documents(["text"])


class TestSearch:
    @pytest.mark.asyncio
    async def test_distances_become_similarity(self, tmp_path) -> None:
        collection = _collection(count=3)
        collection.query.return_value = {
            "ids": [["a", "b", "c"]],
            "documents": [["doc a", "doc b", "doc c"]],
            "distances": [[0.05, 0.2, 0.6]],
        }
        store = await _ready_store(collection, tmp_path)

        results = await store.search("query", num_results=10, threshold=0.7)

        assert [r.id for r in results] == ["a", "b"]
        assert results[0].score == pytest.approx(0.95)
        assert results[1].score == pytest.approx(0.8)

    @pytest.mark.asyncio
    async def test_threshold_is_inclusive(self, tmp_path) -> None:
        collection = _collection(count=1)
        collection.query.return_value = {
            "ids": [["a"]],
            "documents": [["doc a"]],
            "distances": [[0.25]],
        }
        store = await _ready_store(collection, tmp_path)
        results = await store.search("query", threshold=0.75)
        assert [r.id for r in results] == ["a"]

    @pytest.mark.asyncio
    async def test_requests_at_most_collection_size(self, tmp_path) -> None:
        collection = _collection(count=2)
        collection.query.return_value = {"ids": [[]], "documents": [[]], "distances": [[]]}
        store = await _ready_store(collection, tmp_path)

        assert await store.search("query", num_results=10) == []
        assert collection.query.call_args.kwargs["n_results"] == 2

    @pytest.mark.asyncio
    async def test_empty_collection_returns_nothing(self, tmp_path) -> None:
        collection = _collection(count=0)
        store = await _ready_store(collection, tmp_path)
        assert await store.search("query") == []
        collection.query.assert_not_called()

    @pytest.mark.asyncio
    async def test_missing_distances_use_rank_scores(self, tmp_path) -> None:
        collection = _collection(count=3)
        collection.query.return_value = {
            "ids": [["a", "b", "c"]],
            "documents": [["doc a", "doc b", "doc c"]],
        }
        store = await _ready_store(collection, tmp_path)

        results = await store.search("query", threshold=0.9)

        assert [r.id for r in results] == ["a", "b", "c"]
        assert [r.score for r in results] == pytest.approx([1.0, 0.95, 0.9])

    @pytest.mark.asyncio
    async def test_query_failure_raises_rag_error(self, tmp_path) -> None:
        collection = _collection(count=1)
        collection.query.side_effect = RuntimeError("index corrupt")
        store = await _ready_store(collection, tmp_path)
        with pytest.raises(RAGError):
            await store.search("query")


class TestDeleteAndReset:
    @pytest.mark.asyncio
    async def test_delete_passes_ids(self, tmp_path) -> None:
        collection = _collection()
        store = await _ready_store(collection, tmp_path)
        await store.delete_documents(["a", "b"])
        collection.delete.assert_called_once_with(ids=["a", "b"])

    @pytest.mark.asyncio
    async def test_delete_nothing_is_noop(self, tmp_path) -> None:
        collection = _collection()
        store = await _ready_store(collection, tmp_path)
        await store.delete_documents([])
        collection.delete.assert_not_called()

    @pytest.mark.asyncio
    async def test_reset_recreates_collection(self, tmp_path) -> None:
        collection = _collection()
        client = _client(collection)
        store = ChromaDBVectorStore(
            embedding_provider=HashingEmbeddingProvider(dimension=8),
            persist_directory=str(tmp_path / "chroma"),
            collection_name="notes",
        )
        with patch(_CLIENT_PATH, return_value=client):
            await store.initialize()

        await store.reset()

        client.delete_collection.assert_called_once_with(name="notes")
        assert client.get_or_create_collection.call_count == 2
        assert store.is_initialized() is True


class TestResetStorage:
    @pytest.mark.asyncio
    async def test_drops_collection_without_opening_store(self, tmp_path) -> None:
        (tmp_path / "chroma").mkdir()
        client = MagicMock()
        client.list_collections.return_value = ["notes", "other"]
        store = ChromaDBVectorStore(
            embedding_provider=HashingEmbeddingProvider(dimension=8),
            persist_directory=str(tmp_path / "chroma"),
            collection_name="notes",
        )

        with patch(_CLIENT_PATH, return_value=client):
            await store.reset_storage()

        client.delete_collection.assert_called_once_with(name="notes")
        client.get_or_create_collection.assert_not_called()
        assert store.is_initialized() is False

    @pytest.mark.asyncio
    async def test_missing_collection_is_left_alone(self, tmp_path) -> None:
        (tmp_path / "chroma").mkdir()
        client = MagicMock()
        # Older ChromaDB returns collection objects rather than names.
        client.list_collections.return_value = [SimpleNamespace(name="archive")]
        store = ChromaDBVectorStore(
            embedding_provider=HashingEmbeddingProvider(dimension=8),
            persist_directory=str(tmp_path / "chroma"),
            collection_name="notes",
        )

        with patch(_CLIENT_PATH, return_value=client):
            await store.reset_storage()

        client.delete_collection.assert_not_called()

    @pytest.mark.asyncio
    async def test_no_directory_needs_no_client(self, tmp_path) -> None:
        store = ChromaDBVectorStore(
            embedding_provider=HashingEmbeddingProvider(dimension=8),
            persist_directory=str(tmp_path / "never-created"),
        )
        with patch(_CLIENT_PATH) as client_cls:
            await store.reset_storage()
        client_cls.assert_not_called()

    @pytest.mark.asyncio
    async def test_ready_store_resets_in_place(self, tmp_path) -> None:
        collection = _collection()
        client = _client(collection)
        store = ChromaDBVectorStore(
            embedding_provider=HashingEmbeddingProvider(dimension=8),
            persist_directory=str(tmp_path / "chroma"),
            collection_name="notes",
        )
        with patch(_CLIENT_PATH, return_value=client):
            await store.initialize()
            await store.reset_storage()

        client.delete_collection.assert_called_once_with(name="notes")
        assert store.is_initialized() is True


@pytest.mark.asyncio
async def test_collection_calls_run_off_the_event_loop_thread(tmp_path) -> None:
    loop_thread = threading.get_ident()
    seen: list[int] = []
    collection = _collection(count=1)
    collection.query.side_effect = lambda **_: seen.append(threading.get_ident()) or {
        "ids": [[]],
        "documents": [[]],
        "distances": [[]],
    }
    collection.add.side_effect = lambda **_: seen.append(threading.get_ident())
    store = await _ready_store(collection, tmp_path)

    await store.add_documents(["text"])
    await store.search("text")

    assert len(seen) == 2
    assert loop_thread not in seen


def test_rank_fallback_scores() -> None:
    assert rank_fallback_scores(3) == pytest.approx([1.0, 0.95, 0.9])
    assert rank_fallback_scores(25)[-1] == 0.0

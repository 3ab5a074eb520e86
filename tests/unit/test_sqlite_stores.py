"""Unit tests for the SQLite document repository and settings store.

Each test uses a temporary SQLite database to ensure isolation.
"""

from __future__ import annotations

from pathlib import Path

import pytest
import pytest_asyncio

from indexrag.models.document import Chunk, ProcessingStatus
from indexrag.providers.persistence import SQLiteDocumentRepository, SQLiteSettingsStore
from indexrag.utils.errors import DocumentNotFoundError
from tests.conftest import make_document


@pytest_asyncio.fixture
async def repository(tmp_path: Path) -> SQLiteDocumentRepository:
    repo = SQLiteDocumentRepository(db_path=tmp_path / "nested" / "index.db")
    await repo.initialize()
    return repo


@pytest_asyncio.fixture
async def settings_store(tmp_path: Path) -> SQLiteSettingsStore:
    store = SQLiteSettingsStore(db_path=tmp_path / "index.db")
    await store.initialize()
    return store


def _chunks(document_id: str, count: int) -> list[Chunk]:
    return [
        Chunk(
            document_id=document_id,
            chunk_index=i,
            content=f"chunk {i}",
            start_offset=i * 10,
            end_offset=i * 10 + 7,
            embedding_id=f"emb-{i}",
        )
        for i in range(count)
    ]


# ─── Documents ───────────────────────────────────────────────────────


class TestDocuments:
    @pytest.mark.asyncio
    async def test_initialize_creates_parent_dirs(self, tmp_path: Path, repository) -> None:
        assert (tmp_path / "nested" / "index.db").exists()

    @pytest.mark.asyncio
    async def test_add_and_get(self, repository: SQLiteDocumentRepository) -> None:
        document = make_document(content="Body text", title="First")
        await repository.add(document)

        stored = await repository.get(document.id)
        assert stored is not None
        assert stored.title == "First"
        assert stored.content == "Body text"
        assert stored.processing_status == ProcessingStatus.PENDING
        assert stored.is_processed is False
        assert stored.created_at == document.created_at

    @pytest.mark.asyncio
    async def test_get_unknown_returns_none(self, repository: SQLiteDocumentRepository) -> None:
        assert await repository.get("missing") is None

    @pytest.mark.asyncio
    async def test_load_content(self, repository: SQLiteDocumentRepository) -> None:
        document = make_document(content="Loaded on demand")
        await repository.add(document)
        assert await repository.load_content(document.id) == "Loaded on demand"

    @pytest.mark.asyncio
    async def test_load_content_unknown_raises(self, repository: SQLiteDocumentRepository) -> None:
        with pytest.raises(DocumentNotFoundError):
            await repository.load_content("missing")

    @pytest.mark.asyncio
    async def test_list_in_insertion_order(self, repository: SQLiteDocumentRepository) -> None:
        first = make_document(title="A")
        second = make_document(title="B")
        await repository.add(first)
        await repository.add(second)

        assert [d.title for d in await repository.list_documents()] == ["A", "B"]

    @pytest.mark.asyncio
    async def test_list_by_status(self, repository: SQLiteDocumentRepository) -> None:
        pending = make_document(title="pending")
        failed = make_document(title="failed", status=ProcessingStatus.FAILED)
        done = make_document(title="done", status=ProcessingStatus.COMPLETED)
        for document in (pending, failed, done):
            await repository.add(document)

        selected = await repository.list_by_status(
            ProcessingStatus.PENDING, ProcessingStatus.FAILED
        )
        assert {d.title for d in selected} == {"pending", "failed"}
        assert await repository.list_by_status() == []

    @pytest.mark.asyncio
    async def test_update_status_fields(self, repository: SQLiteDocumentRepository) -> None:
        document = make_document()
        await repository.add(document)

        await repository.update_status(
            document.id, ProcessingStatus.COMPLETED, is_processed=True, content_hash="abc"
        )

        stored = await repository.get(document.id)
        assert stored.processing_status == ProcessingStatus.COMPLETED
        assert stored.is_processed is True
        assert stored.content_hash == "abc"

    @pytest.mark.asyncio
    async def test_update_status_leaves_omitted_fields(
        self, repository: SQLiteDocumentRepository
    ) -> None:
        document = make_document(status=ProcessingStatus.COMPLETED, is_processed=True)
        await repository.add(document)

        await repository.update_status(document.id, ProcessingStatus.PENDING)

        stored = await repository.get(document.id)
        assert stored.processing_status == ProcessingStatus.PENDING
        assert stored.is_processed is True

    @pytest.mark.asyncio
    async def test_update_content_resets_to_pending(
        self, repository: SQLiteDocumentRepository
    ) -> None:
        document = make_document(title="Old", status=ProcessingStatus.COMPLETED)
        await repository.add(document)

        await repository.update_content(document.id, "New body", title="New")

        stored = await repository.get(document.id)
        assert stored.content == "New body"
        assert stored.title == "New"
        assert stored.processing_status == ProcessingStatus.PENDING

    @pytest.mark.asyncio
    async def test_update_content_keeps_title_when_omitted(
        self, repository: SQLiteDocumentRepository
    ) -> None:
        document = make_document(title="Keep me")
        await repository.add(document)
        await repository.update_content(document.id, "changed")
        assert (await repository.get(document.id)).title == "Keep me"

    @pytest.mark.asyncio
    async def test_update_content_unknown_raises(
        self, repository: SQLiteDocumentRepository
    ) -> None:
        with pytest.raises(DocumentNotFoundError):
            await repository.update_content("missing", "text")


# ─── Chunks ──────────────────────────────────────────────────────────


class TestChunks:
    @pytest.mark.asyncio
    async def test_save_and_get_in_order(self, repository: SQLiteDocumentRepository) -> None:
        document = make_document()
        await repository.add(document)

        await repository.save_chunks(document.id, list(reversed(_chunks(document.id, 3))))

        chunks = await repository.get_chunks(document.id)
        assert [c.chunk_index for c in chunks] == [0, 1, 2]
        assert chunks[1].embedding_id == "emb-1"
        assert chunks[2].start_offset == 20

    @pytest.mark.asyncio
    async def test_save_replaces_previous_chunks(
        self, repository: SQLiteDocumentRepository
    ) -> None:
        document = make_document()
        await repository.add(document)
        await repository.save_chunks(document.id, _chunks(document.id, 4))

        await repository.save_chunks(document.id, _chunks(document.id, 2))

        assert len(await repository.get_chunks(document.id)) == 2

    @pytest.mark.asyncio
    async def test_delete_removes_document_and_chunks(
        self, repository: SQLiteDocumentRepository
    ) -> None:
        document = make_document()
        await repository.add(document)
        await repository.save_chunks(document.id, _chunks(document.id, 2))

        await repository.delete(document.id)

        assert await repository.get(document.id) is None
        assert await repository.get_chunks(document.id) == []


# ─── Settings ────────────────────────────────────────────────────────


class TestSettingsStore:
    @pytest.mark.asyncio
    async def test_bool_default(self, settings_store: SQLiteSettingsStore) -> None:
        assert await settings_store.get_bool("has_migrated_vector_store") is False
        assert await settings_store.get_bool("missing", default=True) is True

    @pytest.mark.asyncio
    async def test_bool_round_trip_and_overwrite(self, settings_store: SQLiteSettingsStore) -> None:
        await settings_store.set_bool("flag", True)
        assert await settings_store.get_bool("flag") is True
        await settings_store.set_bool("flag", False)
        assert await settings_store.get_bool("flag") is False

    @pytest.mark.asyncio
    async def test_str_values(self, settings_store: SQLiteSettingsStore) -> None:
        assert await settings_store.get_str("embedding_model") is None
        await settings_store.set_str("embedding_model", "BAAI/bge-small-en-v1.5")
        assert await settings_store.get_str("embedding_model") == "BAAI/bge-small-en-v1.5"

    @pytest.mark.asyncio
    async def test_values_persist_across_instances(self, tmp_path: Path) -> None:
        path = tmp_path / "shared.db"
        first = SQLiteSettingsStore(db_path=path)
        await first.initialize()
        await first.set_bool("flag", True)

        second = SQLiteSettingsStore(db_path=path)
        await second.initialize()
        assert await second.get_bool("flag") is True

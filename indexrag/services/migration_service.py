"""One-time migration from the legacy flat vector store to ChromaDB.

The legacy store cannot be converted in place (different id scheme, and
possibly a different embedding model), so migration re-embeds from source:

  1. Every processed document is marked ``pending`` and unprocessed.
  2. A pipeline sweep re-chunks and re-embeds them into the new store.
  3. The ``has_migrated_vector_store`` flag is persisted.
  4. After a short grace delay the legacy directory is deleted.

Running it again once the flag is set is a no-op.  The service also
watches the configured embedding model: when it changes, stored vectors
are incompatible and every document is re-embedded the same way.
"""

from __future__ import annotations

import asyncio
import shutil
from pathlib import Path

import structlog

from indexrag.interfaces.document_repository import IDocumentRepository
from indexrag.interfaces.settings_store import ISettingsStore
from indexrag.models.pipeline import MigrationProgress
from indexrag.pipeline.orchestrator import DocumentProcessingPipeline
from indexrag.utils.logging import get_logger

logger: structlog.BoundLogger = get_logger(__name__)

MIGRATION_FLAG_KEY = "has_migrated_vector_store"
EMBEDDING_MODEL_KEY = "embedding_model"


class MigrationService:
    """Re-embeds documents when the storage backend or embedding model changes.

    Parameters
    ----------
    repository:
        Document repository whose processed documents are re-queued.
    pipeline:
        Processing pipeline that performs the re-embedding sweep.
    settings_store:
        Persisted flags (migration done, embedding model in use).
    legacy_path:
        Directory of the legacy flat store, or ``None`` when the active
        backend is the flat store itself.
    grace_delay:
        Seconds to wait after scheduling the sweep before deleting the
        legacy directory.
    """

    def __init__(
        self,
        repository: IDocumentRepository,
        pipeline: DocumentProcessingPipeline,
        settings_store: ISettingsStore,
        legacy_path: str | Path | None,
        grace_delay: float = 5.0,
    ) -> None:
        self._repository = repository
        self._pipeline = pipeline
        self._settings_store = settings_store
        self._legacy_path = Path(legacy_path) if legacy_path is not None else None
        self._grace_delay = grace_delay
        self._progress = MigrationProgress()

    @property
    def progress(self) -> MigrationProgress:
        return self._progress

    def legacy_store_exists(self) -> bool:
        return self._legacy_path is not None and self._legacy_path.exists()

    async def needs_migration(self) -> bool:
        """Return ``True`` if a legacy store exists and migration has not run."""
        if await self._settings_store.get_bool(MIGRATION_FLAG_KEY):
            return False
        return self.legacy_store_exists()

    async def run(self) -> bool:
        """Migrate if needed.  Returns ``True`` if documents were re-queued."""
        if await self._settings_store.get_bool(MIGRATION_FLAG_KEY):
            logger.debug("migration_already_completed")
            return False

        if not self.legacy_store_exists():
            await self._settings_store.set_bool(MIGRATION_FLAG_KEY, True)
            logger.info("migration_not_needed", legacy_path=str(self._legacy_path))
            return False

        logger.info("migration_started", legacy_path=str(self._legacy_path))
        try:
            await self._requeue_processed_documents()
            scheduled = await self._pipeline.process_all_pending()
            await self._settings_store.set_bool(MIGRATION_FLAG_KEY, True)
            logger.info("migration_sweep_scheduled", scheduled=scheduled)

            if self._grace_delay > 0:
                await asyncio.sleep(self._grace_delay)
            await self._remove_legacy_store()
        finally:
            self._progress = self._progress.model_copy(update={"is_migrating": False})

        logger.info("migration_completed", documents=self._progress.total)
        return True

    async def reindex_if_model_changed(self, model_name: str) -> bool:
        """Re-embed everything when *model_name* differs from the recorded model.

        Runs before the store is opened: persisted vectors from another model
        may have a different dimension and would fail initialization, so
        they are discarded first.  The first call only records the model.
        Returns ``True`` if a re-index was started.
        """
        recorded = await self._settings_store.get_str(EMBEDDING_MODEL_KEY)
        if recorded == model_name:
            return False
        if recorded is None:
            await self._settings_store.set_str(EMBEDDING_MODEL_KEY, model_name)
            logger.debug("embedding_model_recorded", model=model_name)
            return False

        logger.info("embedding_model_changed", previous=recorded, current=model_name)
        try:
            await self._requeue_processed_documents()
            await self._pipeline.vector_store.reset_storage()
            # Recorded only once the old vectors are gone, so an interrupted
            # switch is retried on the next start.
            await self._settings_store.set_str(EMBEDDING_MODEL_KEY, model_name)
            await self._pipeline.process_all_pending()
        finally:
            self._progress = self._progress.model_copy(update={"is_migrating": False})
        return True

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _requeue_processed_documents(self) -> None:
        # Runs in flight would write vectors for the old store or model.
        await self._pipeline.cancel_all()
        await self._pipeline.drain()

        documents = [d for d in await self._repository.list_documents() if d.is_processed]
        self._progress = MigrationProgress(total=len(documents), is_migrating=True)

        for index, document in enumerate(documents, start=1):
            await self._pipeline.mark_for_reindex(document.id)
            self._progress = self._progress.model_copy(
                update={"processed": index, "current_title": document.title}
            )
            logger.debug(
                "migration_document_requeued",
                document_id=document.id,
                processed=index,
                total=len(documents),
            )

    async def _remove_legacy_store(self) -> None:
        if self._legacy_path is None or not self._legacy_path.exists():
            logger.info("migration_legacy_store_already_removed")
            return
        try:
            await asyncio.to_thread(shutil.rmtree, self._legacy_path)
        except OSError as exc:
            logger.warning(
                "migration_legacy_cleanup_failed",
                legacy_path=str(self._legacy_path),
                error=str(exc),
            )
            return
        logger.info("migration_legacy_store_removed", legacy_path=str(self._legacy_path))

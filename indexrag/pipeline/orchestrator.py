"""Document processing pipeline: strip, chunk, embed, store.

Owns the write path of the index.  Every run for a document happens under
that document's ``asyncio.Lock``, so two runs for the same id never
interleave while different documents proceed concurrently.

Run lifecycle::

    pending/failed --(sweep or enqueue: queued task)--> processing --> completed
                                                     \\--> failed     (embedding error)
                                                     \\--> <prior>    (cancelled)

The pipeline never raises for backend failures; a failed run leaves the
document ``failed`` and the error in the log.  A run started before the
store is ready leaves the document ``pending`` so the next sweep picks it
up.
"""

from __future__ import annotations

import asyncio
from collections.abc import Coroutine
from typing import Any

import structlog

from indexrag.interfaces.document_repository import IDocumentRepository
from indexrag.interfaces.vector_store_provider import IVectorStoreProvider
from indexrag.models.document import Chunk, Document, ProcessingStatus
from indexrag.models.pipeline import TaskType
from indexrag.pipeline.progress_tracker import TaskRegistry
from indexrag.services.ingestion.chunker import TextChunker
from indexrag.utils.concurrency import CancellationToken, KeyedLockRegistry, throttled_gather
from indexrag.utils.errors import DocumentNotFoundError, IndexRAGError
from indexrag.utils.logging import get_logger
from indexrag.utils.text_normalizer import content_hash, strip_markdown


class _RunCancelled(Exception):
    """Internal signal: the run observed its cancellation token."""


class DocumentProcessingPipeline:
    """Coordinates chunking and embedding for stored documents.

    Parameters
    ----------
    repository:
        Source of document content and sink for status fields and chunks.
    vector_store:
        Embedding store receiving one batch of chunk texts per run.
    chunker:
        Optional pre-configured chunker; defaults to 512/50.
    task_registry:
        Registry that observers watch for progress; a private one is
        created when omitted.
    readiness_attempts, readiness_interval:
        Defaults for :meth:`wait_until_ready`.
    sweep_concurrency:
        Maximum number of documents processed at once by a sweep.
    """

    def __init__(
        self,
        repository: IDocumentRepository,
        vector_store: IVectorStoreProvider,
        chunker: TextChunker | None = None,
        task_registry: TaskRegistry | None = None,
        readiness_attempts: int = 30,
        readiness_interval: float = 1.0,
        sweep_concurrency: int = 3,
    ) -> None:
        self._repository = repository
        self._vector_store = vector_store
        self._chunker = chunker or TextChunker()
        self._tasks = task_registry or TaskRegistry()
        self._readiness_attempts = readiness_attempts
        self._readiness_interval = readiness_interval
        self._sweep_semaphore = asyncio.Semaphore(max(1, sweep_concurrency))

        self._document_locks = KeyedLockRegistry()
        self._init_lock = asyncio.Lock()
        self._sweep_lock = asyncio.Lock()
        self._background: set[asyncio.Task] = set()
        # Documents whose content changed during a run; processed again after it.
        self._reruns: set[str] = set()
        self._logger: structlog.BoundLogger = get_logger(__name__)

    @property
    def task_registry(self) -> TaskRegistry:
        return self._tasks

    @property
    def vector_store(self) -> IVectorStoreProvider:
        return self._vector_store

    # ------------------------------------------------------------------
    # Readiness
    # ------------------------------------------------------------------

    def is_ready(self) -> bool:
        """Return ``True`` once the embedding store is initialized."""
        return self._vector_store.is_initialized()

    async def initialize_store(self) -> bool:
        """Initialize the embedding store once; concurrent callers share the attempt."""
        async with self._init_lock:
            if self.is_ready():
                return True
            await self._vector_store.initialize()
            ready = self.is_ready()
            self._logger.info(
                "pipeline_store_initialize",
                store=self._vector_store.get_provider_name(),
                ready=ready,
            )
            return ready

    async def wait_until_ready(
        self,
        attempts: int | None = None,
        interval: float | None = None,
    ) -> bool:
        """Poll until the store is ready.

        Returns ``False`` after *attempts* polls instead of raising; the
        application then runs in degraded mode with queries unavailable.
        """
        attempts = self._readiness_attempts if attempts is None else attempts
        interval = self._readiness_interval if interval is None else interval

        for attempt in range(1, attempts + 1):
            if await self.initialize_store():
                self._logger.info("pipeline_ready", attempt=attempt)
                return True
            if attempt < attempts:
                await asyncio.sleep(interval)

        self._logger.warning("pipeline_degraded_mode", attempts=attempts)
        return False

    # ------------------------------------------------------------------
    # Single-document runs
    # ------------------------------------------------------------------

    async def process_document(
        self,
        document_id: str,
        cancellation_token: CancellationToken | None = None,
        prior_status: ProcessingStatus | None = None,
    ) -> None:
        """Chunk and embed one document.

        Parameters
        ----------
        document_id:
            The document to process.
        cancellation_token:
            Optional token checked at each chunk and around the embedding
            call.  Scheduled runs pass the token of the task registered
            when they were queued; the task registry creates one when
            omitted.
        prior_status:
            Status restored on cancellation.  Defaults to the status read
            when the run starts; scheduled runs pass the status observed
            before the document was marked ``processing``.
        """
        async with self._document_locks.lock_for(document_id):
            await self._run(document_id, cancellation_token, prior_status)

        if document_id in self._reruns:
            self._reruns.discard(document_id)
            if cancellation_token is None or not cancellation_token.is_cancelled:
                await self.enqueue(document_id)

    async def _run(
        self,
        document_id: str,
        cancellation_token: CancellationToken | None,
        prior_status: ProcessingStatus | None,
    ) -> None:
        log = self._logger.bind(document_id=document_id)

        document = await self._repository.get(document_id)
        if document is None:
            log.warning("pipeline_document_missing")
            await self._release(document_id, cancellation_token)
            return
        prior = prior_status or document.processing_status

        if cancellation_token is not None and cancellation_token.is_cancelled:
            # Cancelled while queued.  A newer task for the same document
            # owns its status now.
            if document_id not in self._tasks:
                await self._repository.update_status(document_id, prior)
            log.info("pipeline_run_cancelled_before_start", restored_status=prior.value)
            return

        if not self.is_ready():
            log.warning("pipeline_store_not_ready")
            if document.processing_status != ProcessingStatus.PENDING:
                await self._repository.update_status(document_id, ProcessingStatus.PENDING)
            await self._release(document_id, cancellation_token)
            return

        task = await self._tasks.add_task(
            document_id,
            document.title,
            TaskType.PROCESSING,
            cancellation_token=cancellation_token,
        )
        token = task.cancellation_token
        log.info("pipeline_run_started", title=document.title)

        try:
            await self._repository.update_status(document_id, ProcessingStatus.PROCESSING)
            content = await self._repository.load_content(document_id)
            chunks = self._chunker.chunk(strip_markdown(content), document_id)
            total = len(chunks)

            if not chunks:
                await self._replace_chunks(document_id, [])
                await self._repository.update_status(
                    document_id,
                    ProcessingStatus.COMPLETED,
                    is_processed=True,
                    content_hash=content_hash(content),
                )
                log.info("pipeline_run_empty")
                return

            texts: list[str] = []
            for index, chunk in enumerate(chunks, start=1):
                self._check_cancelled(token)
                texts.append(chunk.content)
                await self._tasks.update_progress(
                    document_id, index, total, f"Preparing chunk {index} of {total}"
                )

            self._check_cancelled(token)
            await self._tasks.update_progress(
                document_id, total, total, "Generating embeddings..."
            )
            embedding_ids = await self._vector_store.add_documents(texts)
            if token.is_cancelled:
                # The batch landed after cancellation; drop it.
                await self._vector_store.delete_documents(embedding_ids)
                raise _RunCancelled

            embedded = [
                chunk.model_copy(update={"embedding_id": embedding_id})
                for chunk, embedding_id in zip(chunks, embedding_ids, strict=True)
            ]
            await self._replace_chunks(document_id, embedded)
            await self._repository.update_status(
                document_id,
                ProcessingStatus.COMPLETED,
                is_processed=True,
                content_hash=content_hash(content),
            )
            log.info("pipeline_run_completed", chunks=total)

        except _RunCancelled:
            await self._repository.update_status(document_id, prior)
            log.info("pipeline_run_cancelled", restored_status=prior.value)
        except DocumentNotFoundError:
            log.warning("pipeline_document_deleted_mid_run")
        except IndexRAGError as exc:
            await self._repository.update_status(document_id, ProcessingStatus.FAILED)
            log.error("pipeline_run_failed", error=str(exc), error_type=type(exc).__name__)
        except Exception as exc:
            await self._repository.update_status(document_id, ProcessingStatus.FAILED)
            log.error("pipeline_run_unexpected_error", error=str(exc), error_type=type(exc).__name__)
        finally:
            await self._tasks.complete_task(document_id, token=token)

    async def _release(self, document_id: str, token: CancellationToken | None) -> None:
        """Drop the queued task a run was scheduled under, if it is still ours."""
        if token is not None:
            await self._tasks.complete_task(document_id, token=token)

    @staticmethod
    def _check_cancelled(token: CancellationToken) -> None:
        if token.is_cancelled:
            raise _RunCancelled

    async def _replace_chunks(self, document_id: str, chunks: list[Chunk]) -> None:
        """Swap in *chunks* and drop the previous run's embeddings from the store."""
        previous = await self._repository.get_chunks(document_id)
        stale = [c.embedding_id for c in previous if c.embedding_id]
        if stale:
            try:
                await self._vector_store.delete_documents(stale)
            except IndexRAGError as exc:
                self._logger.warning(
                    "pipeline_stale_embeddings_not_deleted",
                    document_id=document_id,
                    count=len(stale),
                    error=str(exc),
                )
        await self._repository.save_chunks(document_id, chunks)

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    def _is_scheduled(self, document_id: str) -> bool:
        """A task is registered (queued or running) or a run holds the lock."""
        return document_id in self._tasks or self._document_locks.is_locked(document_id)

    async def _claim(self, document: Document) -> CancellationToken | None:
        """Register a queued task and mark the document ``processing``.

        Caller holds the sweep lock.  Returns ``None`` when the document is
        already scheduled.
        """
        lock = self._document_locks.lock_for(document.id)
        if document.id in self._tasks or lock.locked():
            return None
        async with lock:
            task = await self._tasks.add_task(
                document.id,
                document.title,
                TaskType.PROCESSING,
                status="Queued",
                total_steps=0,
            )
            await self._repository.update_status(document.id, ProcessingStatus.PROCESSING)
        return task.cancellation_token

    async def enqueue(self, document_id: str) -> asyncio.Task | None:
        """Schedule the document for processing in the background.

        Entry point for content changes.  A document that is already queued
        is not scheduled twice; one that is mid-run is processed again once
        the current run ends, so the new content is picked up.  Returns the
        background task, or ``None`` when nothing new was scheduled.
        """
        async with self._sweep_lock:
            document = await self._repository.get(document_id)
            if document is None:
                self._logger.warning("pipeline_enqueue_missing_document", document_id=document_id)
                return None
            token = await self._claim(document)
            if token is None:
                if self._document_locks.is_locked(document_id):
                    self._reruns.add(document_id)
                self._logger.debug("pipeline_enqueue_already_scheduled", document_id=document_id)
                return None

        self._logger.debug("pipeline_enqueued", document_id=document_id)
        # A content change makes the document pending; cancelling restores that.
        return self._spawn(
            self.process_document(
                document_id,
                cancellation_token=token,
                prior_status=ProcessingStatus.PENDING,
            )
        )

    async def process_all_pending(self) -> int:
        """Schedule every ``pending`` or ``failed`` document; return the count.

        Selected documents are registered as queued tasks and marked
        ``processing`` under the sweep lock before anything is scheduled,
        so an immediate second sweep (or an :meth:`enqueue`) selects
        nothing.  Nothing is scheduled while the store is not ready.
        """
        if not self.is_ready():
            self._logger.warning("pipeline_sweep_skipped_not_ready")
            return 0

        async with self._sweep_lock:
            candidates = await self._repository.list_by_status(
                ProcessingStatus.PENDING, ProcessingStatus.FAILED
            )
            claimed: list[tuple[Document, CancellationToken]] = []
            for document in candidates:
                token = await self._claim(document)
                if token is not None:
                    claimed.append((document, token))

        if not claimed:
            return 0

        self._spawn(
            throttled_gather(
                [
                    self.process_document(
                        document.id,
                        cancellation_token=token,
                        prior_status=document.processing_status,
                    )
                    for document, token in claimed
                ],
                semaphore=self._sweep_semaphore,
            )
        )
        self._logger.info("pipeline_sweep_scheduled", count=len(claimed))
        return len(claimed)

    async def mark_for_reindex(self, document_id: str) -> bool:
        """Mark the document ``pending`` and unprocessed under its lock.

        Waits for an active run to finish first.  A queued document is left
        alone since it is about to be processed anyway.  Returns ``True``
        if the document was marked.
        """
        async with self._document_locks.lock_for(document_id):
            if document_id in self._tasks:
                return False
            await self._repository.update_status(
                document_id, ProcessingStatus.PENDING, is_processed=False
            )
            return True

    async def recover_interrupted(self) -> int:
        """Reset documents left ``processing`` by a previous process to ``pending``."""
        stuck = await self._repository.list_by_status(ProcessingStatus.PROCESSING)
        recovered = 0
        for document in stuck:
            if self._is_scheduled(document.id):
                continue
            await self._repository.update_status(document.id, ProcessingStatus.PENDING)
            recovered += 1
        if recovered:
            self._logger.info("pipeline_recovered_interrupted", count=recovered)
        return recovered

    # ------------------------------------------------------------------
    # Cancellation / shutdown
    # ------------------------------------------------------------------

    async def cancel(self, document_id: str) -> bool:
        """Request cancellation of the document's queued or active run."""
        self._reruns.discard(document_id)
        return await self._tasks.cancel_task(document_id)

    async def cancel_all(self) -> int:
        self._reruns.clear()
        return await self._tasks.cancel_all_tasks()

    async def drain(self) -> None:
        """Wait for every background run scheduled so far to finish."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)
        self._document_locks.discard_idle()

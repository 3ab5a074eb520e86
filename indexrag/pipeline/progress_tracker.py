"""Task registry with callback-based observer notification.

Tracks one :class:`~indexrag.models.pipeline.ProcessingTask` per unit of
background work and broadcasts a snapshot of all active tasks to registered
observers whenever anything changes.

# --- HOW TASK TRACKING WORKS -------------------------------------------
#
#   Pipeline --add/update/complete--> TaskRegistry --callback(tasks)--> WebSocket handler
#                                                  --callback(tasks)--> CLI status line
#
#   1. The orchestrator registers a task ("Queued") as soon as a document
#      is scheduled, so waiting documents are visible and cancellable
#   2. It reports progress as chunks are prepared and embedded
#   3. The task is removed when the run ends, whatever the outcome
#   4. Cancelling a task flips its CancellationToken; the run notices at
#      its next checkpoint and restores the document's prior status
#
#   - Observers get the full snapshot list, not a diff
#   - Observer errors are caught and logged, so a dropped WebSocket never
#     blocks the pipeline or other observers
#   - Both sync and async callbacks are supported
# ------------------------------------------------------------------------
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable

import structlog

from indexrag.models.pipeline import ProcessingTask, TaskType
from indexrag.utils.concurrency import CancellationToken
from indexrag.utils.logging import get_logger

TaskObserver = Callable[[list[ProcessingTask]], object]


class TaskRegistry:
    """Ordered registry of active background tasks.

    Task ids are unique; registering an id that is already active is a
    no-op so a document can never show up twice.
    """

    def __init__(self) -> None:
        # Insertion ordered: oldest task first.
        self._tasks: dict[str, ProcessingTask] = {}
        self._observers: list[TaskObserver] = []
        self._logger: structlog.BoundLogger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Snapshot accessors
    # ------------------------------------------------------------------

    @property
    def tasks(self) -> list[ProcessingTask]:
        """Return a snapshot of the active tasks, oldest first."""
        return list(self._tasks.values())

    @property
    def has_active_tasks(self) -> bool:
        return bool(self._tasks)

    def get(self, task_id: str) -> ProcessingTask | None:
        return self._tasks.get(task_id)

    def __contains__(self, task_id: object) -> bool:
        return task_id in self._tasks

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def add_task(
        self,
        task_id: str,
        label: str,
        task_type: TaskType = TaskType.PROCESSING,
        cancellation_token: CancellationToken | None = None,
        status: str = "Starting...",
        total_steps: int = 1,
    ) -> ProcessingTask:
        """Register a task and return it; an active duplicate is returned unchanged."""
        existing = self._tasks.get(task_id)
        if existing is not None:
            self._logger.debug("task_already_registered", task_id=task_id)
            return existing

        task = ProcessingTask(
            id=task_id,
            label=label,
            task_type=task_type,
            status=status,
            total_steps=total_steps,
            cancellation_token=cancellation_token or CancellationToken(),
        )
        self._tasks[task_id] = task
        self._logger.debug("task_added", task_id=task_id, task_type=task_type.value)
        await self._notify()
        return task

    async def update_progress(self, task_id: str, current: int, total: int, status: str) -> None:
        """Replace the task's progress fields.  Unknown ids are ignored."""
        task = self._tasks.get(task_id)
        if task is None:
            return
        self._tasks[task_id] = task.model_copy(
            update={"current_step": current, "total_steps": total, "status": status}
        )
        await self._notify()

    async def complete_task(self, task_id: str, token: CancellationToken | None = None) -> None:
        """Remove a finished task.

        With *token*, the task is only removed if it still carries that token;
        a newer task registered under the same id is left alone.
        """
        task = self._tasks.get(task_id)
        if task is None:
            return
        if token is not None and task.cancellation_token is not token:
            return
        del self._tasks[task_id]
        self._logger.debug("task_completed", task_id=task_id)
        await self._notify()

    async def cancel_task(self, task_id: str) -> bool:
        """Signal the task's cancellation token and remove it.

        Returns ``True`` if the task was active.
        """
        task = self._tasks.pop(task_id, None)
        if task is None:
            return False
        task.cancellation_token.cancel()
        self._logger.info("task_cancelled", task_id=task_id)
        await self._notify()
        return True

    async def cancel_all_tasks(self) -> int:
        """Cancel every active task and return how many were cancelled."""
        tasks = list(self._tasks.values())
        self._tasks.clear()
        for task in tasks:
            task.cancellation_token.cancel()
        if tasks:
            self._logger.info("all_tasks_cancelled", count=len(tasks))
            await self._notify()
        return len(tasks)

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------

    def register_observer(self, callback: TaskObserver) -> None:
        """Register a sync or async callable accepting ``list[ProcessingTask]``."""
        if callback not in self._observers:
            self._observers.append(callback)
            self._logger.debug("observer_registered", total_observers=len(self._observers))

    def unregister_observer(self, callback: TaskObserver) -> None:
        if callback in self._observers:
            self._observers.remove(callback)
            self._logger.debug("observer_unregistered", remaining_observers=len(self._observers))

    async def _notify(self) -> None:
        if not self._observers:
            return
        snapshot = self.tasks
        for callback in list(self._observers):
            try:
                result = callback(snapshot)
                if asyncio.iscoroutine(result):
                    await result
            except Exception as exc:
                self._logger.warning(
                    "observer_callback_error",
                    error=str(exc),
                    callback=getattr(callback, "__name__", repr(callback)),
                )

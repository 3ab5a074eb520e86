"""Processing task models exposed to observers of the pipeline.

A :class:`ProcessingTask` is an immutable snapshot; the task registry
replaces it via ``model_copy(update={...})`` on every progress update.  The
cancellation token is shared between snapshots of the same task.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, computed_field

from indexrag.utils.concurrency import CancellationToken


class TaskType(str, Enum):  # noqa: UP042
    """Kinds of background work that show up in the task registry."""

    PROCESSING = "processing"
    TITLE_GENERATION = "title_generation"
    SUMMARY_GENERATION = "summary_generation"

    @property
    def display_name(self) -> str:
        return {
            TaskType.PROCESSING: "Processing",
            TaskType.TITLE_GENERATION: "Generating Title",
            TaskType.SUMMARY_GENERATION: "Generating Summary",
        }[self]


class ProcessingTask(BaseModel):
    """Snapshot of one unit of background work."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    id: str
    label: str = Field(description="Human label, usually the document title.")
    task_type: TaskType = TaskType.PROCESSING
    current_step: int = Field(default=0, ge=0)
    total_steps: int = Field(default=1, ge=0)
    status: str = "Starting..."
    cancellation_token: CancellationToken = Field(
        default_factory=CancellationToken,
        exclude=True,
    )

    @computed_field  # type: ignore[prop-decorator]
    @property
    def progress(self) -> float:
        if self.total_steps <= 0:
            return 0.0
        return self.current_step / self.total_steps


class MigrationProgress(BaseModel):
    """Observable state of a vector-store migration."""

    model_config = ConfigDict(frozen=True)

    total: int = 0
    processed: int = 0
    current_title: str = ""
    is_migrating: bool = False

    @computed_field  # type: ignore[prop-decorator]
    @property
    def fraction(self) -> float:
        if self.total <= 0:
            return 1.0 if not self.is_migrating else 0.0
        return self.processed / self.total

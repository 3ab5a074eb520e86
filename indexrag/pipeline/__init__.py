"""Document processing pipeline and its task registry."""

from indexrag.pipeline.orchestrator import DocumentProcessingPipeline
from indexrag.pipeline.progress_tracker import TaskRegistry

__all__ = [
    "DocumentProcessingPipeline",
    "TaskRegistry",
]

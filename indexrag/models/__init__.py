"""indexrag domain models: re-exports all public model classes.

The models are organized by concern:
    - document.py       -- Document, Chunk, ProcessingStatus
    - rag.py            -- SearchResult, Source, RAGResponse
    - pipeline.py       -- ProcessingTask, TaskType, MigrationProgress
    - embedding.py      -- embedding model catalogue and auto-selection
    - transformation.py -- transformation presets and results
"""

from __future__ import annotations

from indexrag.models.document import Chunk, Document, ProcessingStatus
from indexrag.models.embedding import CATALOGUE, EmbeddingModel, EmbeddingModelSpec
from indexrag.models.pipeline import MigrationProgress, ProcessingTask, TaskType
from indexrag.models.rag import RAGResponse, SearchResult, Source
from indexrag.models.transformation import (
    BUILT_IN_PRESETS,
    TransformationPreset,
    TransformationResult,
)

__all__ = [
    "BUILT_IN_PRESETS",
    "CATALOGUE",
    "Chunk",
    "Document",
    "EmbeddingModel",
    "EmbeddingModelSpec",
    "MigrationProgress",
    "ProcessingStatus",
    "ProcessingTask",
    "RAGResponse",
    "SearchResult",
    "Source",
    "TaskType",
    "TransformationPreset",
    "TransformationResult",
]

"""Embedding model catalogue and RAM-based auto-selection.

Every model in the catalogue produces 384-dimensional vectors, but the
vector spaces are not interchangeable: switching models means a new store
collection and a full re-embed (see ``services.migration_service``).
"""

from __future__ import annotations

import os
from enum import Enum

from pydantic import BaseModel, ConfigDict

_BYTES_PER_GB = 1_073_741_824


class EmbeddingModel(str, Enum):  # noqa: UP042
    MINILM_L6 = "all-MiniLM-L6-v2"
    MINILM_L12 = "all-MiniLM-L12-v2"
    BGE_SMALL = "BAAI/bge-small-en-v1.5"


class EmbeddingModelSpec(BaseModel):
    """Static facts about a catalogue model."""

    model_config = ConfigDict(frozen=True)

    model: EmbeddingModel
    display_name: str
    description: str
    dimensions: int
    size_mb: int
    quality_rating: int
    min_ram_gb: int


CATALOGUE: dict[EmbeddingModel, EmbeddingModelSpec] = {
    EmbeddingModel.MINILM_L6: EmbeddingModelSpec(
        model=EmbeddingModel.MINILM_L6,
        display_name="MiniLM-L6 (Fastest)",
        description="Fastest, smallest model for low-end systems",
        dimensions=384,
        size_mb=80,
        quality_rating=3,
        min_ram_gb=4,
    ),
    EmbeddingModel.MINILM_L12: EmbeddingModelSpec(
        model=EmbeddingModel.MINILM_L12,
        display_name="MiniLM-L12 (Fast)",
        description="Lightweight model, good for systems with limited RAM",
        dimensions=384,
        size_mb=120,
        quality_rating=3,
        min_ram_gb=8,
    ),
    EmbeddingModel.BGE_SMALL: EmbeddingModelSpec(
        model=EmbeddingModel.BGE_SMALL,
        display_name="BGE-Small (Balanced)",
        description="Better quality, balanced performance, recommended for most users",
        dimensions=384,
        size_mb=130,
        quality_rating=4,
        min_ram_gb=8,
    ),
}


def system_ram_gb() -> int:
    """Installed physical memory in whole GB (0 when the platform hides it)."""
    try:
        return (os.sysconf("SC_PAGE_SIZE") * os.sysconf("SC_PHYS_PAGES")) // _BYTES_PER_GB
    except (AttributeError, ValueError, OSError):
        return 0


def recommended_for_ram(ram_gb: int) -> EmbeddingModel:
    """Pick the best catalogue model for a machine with *ram_gb* of memory."""
    if ram_gb >= 16:
        return EmbeddingModel.BGE_SMALL
    if ram_gb >= 8:
        return EmbeddingModel.MINILM_L12
    return EmbeddingModel.MINILM_L6


def resolve_model(name: str, ram_gb: int | None = None) -> EmbeddingModel:
    """Turn a settings value (``"auto"`` or a model id) into a catalogue entry.

    Raises
    ------
    ValueError
        If *name* is neither ``"auto"`` nor a known model id.
    """
    if name == "auto":
        return recommended_for_ram(system_ram_gb() if ram_gb is None else ram_gb)
    return EmbeddingModel(name)


def recommendation_message(selected: EmbeddingModel, ram_gb: int) -> str | None:
    """Return advice when *selected* needs more RAM than the machine has."""
    if ram_gb >= CATALOGUE[selected].min_ram_gb:
        return None
    recommended = recommended_for_ram(ram_gb)
    return (
        f"Your system has {ram_gb}GB RAM. We recommend "
        f"{CATALOGUE[recommended].display_name} instead of "
        f"{CATALOGUE[selected].display_name}."
    )

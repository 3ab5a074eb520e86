"""Abstract base class for derived-artifact caches.

A cached artifact (rendered preview, AI transformation) is only valid for
the exact content it was derived from, so every entry carries the source
content hash and every lookup must present the current one.  Losing the
cache never loses correctness, only performance.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class IArtifactCache(ABC):
    """Contract for hash-validated artifact caches.

    Methods are synchronous and never block on background work: a miss
    simply tells the caller to (re)compute.
    """

    @abstractmethod
    def get(self, key: str, expected_hash: str) -> Any | None:
        """Return the artifact stored under *key* if its hash matches.

        A hash mismatch is a miss and evicts the stale entry.

        Parameters
        ----------
        key:
            Artifact identifier.
        expected_hash:
            Content hash of the current source.

        Returns
        -------
        Any or None
            The cached artifact, or ``None`` on a miss.
        """

    @abstractmethod
    def put(self, key: str, value: Any, content_hash: str) -> None:
        """Store *value* under *key*, derived from content with *content_hash*."""

    @abstractmethod
    def invalidate(self, key: str) -> None:
        """Remove the entry under *key*.  No-op when absent."""

    @abstractmethod
    def clear(self) -> None:
        """Remove every entry."""

    @abstractmethod
    def stats(self) -> dict[str, int]:
        """Return counters: ``cached_count``, ``capacity``, ``hits``, ``misses``."""

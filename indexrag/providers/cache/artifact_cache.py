"""In-memory, hash-validated artifact cache using cachetools.LRUCache.

Caches expensive derived artifacts (AI transformations, rendered previews)
keyed by artifact id.  Each entry remembers the content hash of the source
it was derived from; a lookup with a different hash is a miss and drops the
stale entry.  When full, the least recently accessed entries are evicted in
a batch so a steady stream of inserts does not evict on every call.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from typing import Any

import structlog
from cachetools import LRUCache

from indexrag.interfaces.cache_provider import IArtifactCache

logger = structlog.get_logger(logger_name=__name__)


@dataclass
class CacheEntry:
    value: Any
    content_hash: str
    last_accessed: float = field(default_factory=time.monotonic)


class ArtifactCache(IArtifactCache):
    """Bounded LRU cache whose entries are only valid for one content hash.

    Parameters
    ----------
    capacity:
        Maximum number of entries.
    eviction_batch:
        Number of least-recently-accessed entries dropped when an insert
        finds the cache full.
    """

    def __init__(self, capacity: int = 100, eviction_batch: int = 10) -> None:
        if capacity <= 0:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self._capacity = capacity
        self._eviction_batch = max(1, min(eviction_batch, capacity))
        self._entries: LRUCache[str, CacheEntry] = LRUCache(maxsize=capacity)
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    # ------------------------------------------------------------------
    # IArtifactCache implementation
    # ------------------------------------------------------------------

    def get(self, key: str, expected_hash: str) -> Any | None:
        with self._lock:
            # LRUCache.get refreshes recency on a hit.
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                logger.debug("artifact_cache_miss", key=key)
                return None
            if entry.content_hash != expected_hash:
                del self._entries[key]
                self._misses += 1
                logger.debug("artifact_cache_stale", key=key)
                return None
            entry.last_accessed = time.monotonic()
            self._hits += 1
            logger.debug("artifact_cache_hit", key=key)
            return entry.value

    def put(self, key: str, value: Any, content_hash: str) -> None:
        with self._lock:
            if key not in self._entries and len(self._entries) >= self._capacity:
                self._evict_batch()
            self._entries[key] = CacheEntry(value=value, content_hash=content_hash)
            logger.debug("artifact_cache_put", key=key, size=len(self._entries))

    def invalidate(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            logger.info("artifact_cache_cleared")

    def stats(self) -> dict[str, int]:
        with self._lock:
            return {
                "cached_count": len(self._entries),
                "capacity": self._capacity,
                "hits": self._hits,
                "misses": self._misses,
            }

    def __contains__(self, key: object) -> bool:
        # Membership test does not refresh recency.
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _evict_batch(self) -> None:
        evicted = []
        for _ in range(min(self._eviction_batch, len(self._entries))):
            key, _entry = self._entries.popitem()
            evicted.append(key)
        logger.debug("artifact_cache_evicted", count=len(evicted))

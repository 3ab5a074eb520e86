"""Cache provider implementations."""

from indexrag.providers.cache.artifact_cache import ArtifactCache, CacheEntry

__all__ = ["ArtifactCache", "CacheEntry"]

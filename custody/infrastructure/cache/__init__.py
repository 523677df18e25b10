"""In-process caches."""

from custody.infrastructure.cache.projection_cache import CacheEntry, ProjectionCache

__all__ = ["CacheEntry", "ProjectionCache"]

"""Projection caching infrastructure.

A small in-memory TTL cache for ledger projections. Projections are
disposable: a miss, an expiry or an explicit invalidation simply means
the next read recomputes from the ledger.

Cache key format: "{projection}:{organization_id}"
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any
from uuid import UUID

import structlog

logger = structlog.get_logger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class CacheEntry:
    """Cache entry with TTL.

    Attributes:
        data: Cached projection.
        cached_at: When data was cached.
        ttl_seconds: TTL in seconds.
    """

    data: Any
    cached_at: datetime
    ttl_seconds: int = 60

    def is_expired(self, now: datetime) -> bool:
        return now >= self.cached_at + timedelta(seconds=self.ttl_seconds)


class ProjectionCache:
    """Per-organization projection cache with TTL and explicit invalidation."""

    def __init__(
        self,
        ttl_seconds: int = 60,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._cache: dict[str, CacheEntry] = {}
        self._ttl_seconds = ttl_seconds
        self._clock = clock
        self._log = logger.bind(component="projection_cache")

    @staticmethod
    def _key(projection: str, organization_id: UUID) -> str:
        return f"{projection}:{organization_id}"

    def get(self, projection: str, organization_id: UUID) -> Any | None:
        """Cached projection, or None if missing or expired."""
        cache_key = self._key(projection, organization_id)
        entry = self._cache.get(cache_key)
        if entry is None:
            self._log.debug("cache_miss", projection=projection)
            return None

        if entry.is_expired(self._clock()):
            self._log.debug("cache_expired", projection=projection)
            del self._cache[cache_key]
            return None

        return entry.data

    def set(self, projection: str, organization_id: UUID, data: Any) -> None:
        self._cache[self._key(projection, organization_id)] = CacheEntry(
            data=data,
            cached_at=self._clock(),
            ttl_seconds=self._ttl_seconds,
        )

    def invalidate(self, organization_id: UUID) -> int:
        """Drop every projection cached for an organization.

        Returns:
            Number of entries removed.
        """
        suffix = f":{organization_id}"
        stale = [key for key in self._cache if key.endswith(suffix)]
        for key in stale:
            del self._cache[key]
        if stale:
            self._log.debug(
                "cache_invalidated",
                organization_id=str(organization_id),
                entries_cleared=len(stale),
            )
        return len(stale)

    def clear(self) -> None:
        count = len(self._cache)
        self._cache.clear()
        self._log.info("cache_cleared", entries_cleared=count)

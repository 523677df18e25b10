"""In-memory sliding window rate limiter.

Single-process only; counts are not shared between instances. Use
RedisRateLimiter wherever more than one process serves traffic.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

from custody.application.ports.rate_limiter import RateLimiterPort, RateLimitResult


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class RateLimiterStub(RateLimiterPort):
    def __init__(self, clock: Callable[[], datetime] = _utc_now) -> None:
        self._clock = clock
        self._requests: dict[str, list[datetime]] = defaultdict(list)

    async def hit(self, key: str, limit: int, window_seconds: int) -> RateLimitResult:
        now = self._clock()
        window = timedelta(seconds=window_seconds)
        requests = [ts for ts in self._requests[key] if ts > now - window]
        allowed = len(requests) < limit
        if allowed:
            requests.append(now)
        self._requests[key] = requests

        reset_at = (min(requests) + window) if requests else now + window
        return RateLimitResult(
            allowed=allowed,
            limit=limit,
            remaining=max(0, limit - len(requests)),
            reset_at=reset_at,
        )

    async def reset(self, key: str) -> None:
        self._requests.pop(key, None)

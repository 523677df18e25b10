"""Rate limiter port.

A shared sliding-window limiter. Every process of a deployment must see
the same counts, so production uses the Redis implementation.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    limit: int
    remaining: int
    reset_at: datetime

    def retry_after_seconds(self, now: datetime) -> int:
        return max(1, int((self.reset_at - now).total_seconds()) + 1)


class RateLimiterPort(Protocol):
    async def hit(self, key: str, limit: int, window_seconds: int) -> RateLimitResult:
        """Count one request against `key` and report whether it is allowed.

        Rejected requests are not counted.
        """
        ...

    async def reset(self, key: str) -> None:
        ...

"""Shared rate limiting for export creation and public verification."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timezone

from custody.application.ports.rate_limiter import RateLimiterPort, RateLimitResult
from custody.application.services.base import LoggingMixin
from custody.domain.errors.rate_limit import RateLimitExceededError
from custody.infrastructure.monitoring.metrics import get_metrics_collector


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class RateLimitService(LoggingMixin):
    def __init__(
        self,
        limiter: RateLimiterPort,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._limiter = limiter
        self._clock = clock
        self._init_logger(component="rate_limit")

    async def check(
        self, scope: str, key: str, limit: int, window_seconds: int = 60
    ) -> RateLimitResult:
        """Count one request in `scope:key`.

        Raises:
            RateLimitExceededError: If the window is full.
        """
        bucket = f"{scope}:{key}"
        result = await self._limiter.hit(bucket, limit, window_seconds)
        get_metrics_collector().record_rate_limit_check(scope, result.allowed)
        if not result.allowed:
            retry_after = result.retry_after_seconds(self._clock())
            self._log_operation("check", scope=scope).warning(
                "rate_limit_exceeded", limit=limit, retry_after=retry_after
            )
            raise RateLimitExceededError(bucket, limit, result.reset_at, retry_after)
        return result

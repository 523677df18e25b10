"""Redis adapters."""

from custody.infrastructure.adapters.redis.rate_limiter import RedisRateLimiter

__all__ = ["RedisRateLimiter"]

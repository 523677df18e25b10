"""Redis-backed sliding window rate limiter.

Each request is a member of a sorted set scored by its timestamp.
Trimming the window, counting and adding run in one Lua script, so
concurrent requests from any number of instances see one consistent
count and a full window can never be overshot.
"""

from __future__ import annotations

import time
import uuid
from datetime import datetime, timezone

from redis.asyncio import Redis

from custody.application.ports.rate_limiter import RateLimiterPort, RateLimitResult

# KEYS[1] = bucket, ARGV = now, window_start, limit, member, ttl
_SLIDING_WINDOW_SCRIPT = """
redis.call('ZREMRANGEBYSCORE', KEYS[1], 0, ARGV[2])
local count = redis.call('ZCARD', KEYS[1])
local allowed = 0
if count < tonumber(ARGV[3]) then
    redis.call('ZADD', KEYS[1], ARGV[1], ARGV[4])
    redis.call('EXPIRE', KEYS[1], ARGV[5])
    count = count + 1
    allowed = 1
end
local oldest = redis.call('ZRANGE', KEYS[1], 0, 0, 'WITHSCORES')
local oldest_score = ARGV[1]
if oldest[2] then
    oldest_score = oldest[2]
end
return {allowed, count, tostring(oldest_score)}
"""


class RedisRateLimiter(RateLimiterPort):
    def __init__(self, redis_client: Redis, key_prefix: str = "custody:ratelimit:") -> None:
        self._redis = redis_client
        self._key_prefix = key_prefix
        self._script = redis_client.register_script(_SLIDING_WINDOW_SCRIPT)

    def _get_key(self, key: str) -> str:
        return f"{self._key_prefix}{key}"

    async def hit(self, key: str, limit: int, window_seconds: int) -> RateLimitResult:
        now = time.time()
        allowed, count, oldest = await self._script(
            keys=[self._get_key(key)],
            args=[
                now,
                now - window_seconds,
                limit,
                f"{now}:{uuid.uuid4().hex}",
                window_seconds + 10,
            ],
        )
        if isinstance(oldest, bytes):
            oldest = oldest.decode("utf-8")
        reset_at = datetime.fromtimestamp(float(oldest) + window_seconds, tz=timezone.utc)
        return RateLimitResult(
            allowed=bool(allowed),
            limit=limit,
            remaining=max(0, limit - int(count)),
            reset_at=reset_at,
        )

    async def reset(self, key: str) -> None:
        await self._redis.delete(self._get_key(key))

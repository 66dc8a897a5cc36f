"""Redis-backed rate limiter, so several target processes share buckets."""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

import redis.asyncio as redis
from redis.exceptions import RedisError

from allowsmoke._internal.config import FailMode
from allowsmoke._internal.logging import get_logger
from allowsmoke.target.bucket import AllowResult
from allowsmoke.target.limiter import RateLimiter

if TYPE_CHECKING:
    from allowsmoke._internal.config import TargetSettings

logger = get_logger("target.redis_limiter")

KEY_PREFIX = "rl:"

# Refill, take and expire one bucket atomically, timed by the Redis clock.
# KEYS[1] = bucket hash; ARGV = capacity, refill per second, idle evict seconds.
# Returns {allowed (0/1), remaining, reset at epoch ms, retry after seconds}.
TAKE_ONE_SCRIPT = """
local bucket = KEYS[1]
local capacity = tonumber(ARGV[1])
local refill_per_sec = tonumber(ARGV[2])
local idle_evict = tonumber(ARGV[3])

local t = redis.call('TIME')
local now_ms = t[1] * 1000 + math.floor(t[2] / 1000)

local tokens = tonumber(redis.call('HGET', bucket, 'tokens'))
local last_ms = tonumber(redis.call('HGET', bucket, 'last_ms'))
if tokens == nil or last_ms == nil then
  tokens = capacity
  last_ms = now_ms
elseif now_ms > last_ms then
  tokens = math.min(capacity, tokens + (now_ms - last_ms) / 1000.0 * refill_per_sec)
  last_ms = now_ms
end

local allowed = 0
local retry_after = 0
if tokens >= 1.0 then
  tokens = tokens - 1.0
  allowed = 1
elseif refill_per_sec > 0 then
  retry_after = math.max(1, math.ceil((1.0 - tokens) / refill_per_sec))
else
  retry_after = 1
end

redis.call('HSET', bucket, 'tokens', tostring(tokens), 'last_ms', tostring(last_ms))
if idle_evict > 0 then
  redis.call('PEXPIRE', bucket, math.ceil(idle_evict * 1000))
end

local rps = refill_per_sec
if rps <= 0 then rps = 1 end
local reset_ms = now_ms + math.floor((capacity - tokens) / rps * 1000 + 0.5)
return {allowed, math.floor(tokens + 0.000001), reset_ms, retry_after}
"""


class RedisRateLimiter(RateLimiter):
    """Token buckets stored as Redis hashes under ``rl:<key>``.

    Each decision is one ``EVALSHA`` of ``TAKE_ONE_SCRIPT``, so concurrent
    targets pointed at the same Redis see one bucket per key. A positive
    ``idle_evict_seconds`` becomes the hash's ``PEXPIRE``.

    When Redis cannot be reached, or the script returns fewer than four
    values, the decision follows ``settings.fail_mode`` instead of raising:
    ``FailMode.OPEN`` allows the request and ``FailMode.CLOSED`` denies it
    with a one-second retry.
    """

    def __init__(
        self,
        settings: TargetSettings,
        *,
        client: redis.Redis | None = None,
        socket_timeout: float = 1.0,
    ) -> None:
        super().__init__(settings)
        self._client = client or redis.from_url(
            settings.redis_url,
            socket_connect_timeout=socket_timeout,
            socket_timeout=socket_timeout,
        )
        self._script = self._client.register_script(TAKE_ONE_SCRIPT)

    async def allow(self, key: str) -> AllowResult:
        try:
            reply = await self._script(
                keys=[KEY_PREFIX + key],
                args=[
                    self._settings.capacity,
                    self._settings.refill_per_second,
                    self._settings.idle_evict_seconds,
                ],
            )
        except RedisError as exc:
            logger.warning("Redis unavailable, failing %s: %s", self._settings.fail_mode.value, exc)
            return self._count(self._fallback())

        try:
            allowed, remaining, reset_at, retry_after = (int(value) for value in reply[:4])
        except (TypeError, ValueError):
            logger.warning(
                "Unexpected script reply %r, failing %s", reply, self._settings.fail_mode.value
            )
            return self._count(self._fallback())

        return self._count(
            AllowResult(
                allowed=allowed == 1,
                remaining=remaining,
                reset_at_millis=reset_at,
                retry_after_seconds=retry_after,
            )
        )

    async def close(self) -> None:
        await self._client.aclose()

    def _fallback(self) -> AllowResult:
        now_ms = int(time.time() * 1000)
        if self._settings.fail_mode is FailMode.OPEN:
            return AllowResult(
                allowed=True,
                remaining=0,
                reset_at_millis=now_ms,
                retry_after_seconds=0,
            )
        return AllowResult(
            allowed=False,
            remaining=0,
            reset_at_millis=now_ms + 1000,
            retry_after_seconds=1,
        )

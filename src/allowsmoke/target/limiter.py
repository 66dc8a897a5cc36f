"""Per-key rate limiters behind the local target."""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from allowsmoke._internal.config import Backend
from allowsmoke._internal.logging import get_logger
from allowsmoke.target.bucket import AllowResult, TokenBucket

if TYPE_CHECKING:
    from allowsmoke._internal.config import TargetSettings

logger = get_logger("target.limiter")


class RateLimiter(ABC):
    """Abstract base for the target's limiters.

    Every key has its own token bucket sized by ``TargetSettings``. Concrete
    subclasses decide where the buckets live; this base keeps the outcome
    counters the server reports.
    """

    def __init__(self, settings: TargetSettings) -> None:
        self._settings = settings
        self.allowed_count = 0
        self.denied_count = 0

    @property
    def settings(self) -> TargetSettings:
        return self._settings

    @abstractmethod
    async def allow(self, key: str) -> AllowResult:
        """Take one token from ``key``'s bucket and return the decision."""

    async def close(self) -> None:
        """Release backend resources. Nothing to release by default."""

    def _count(self, result: AllowResult) -> AllowResult:
        if result.allowed:
            self.allowed_count += 1
        else:
            self.denied_count += 1
        return result


class InMemoryRateLimiter(RateLimiter):
    """One token bucket per key, held in process memory.

    Buckets are created full on a key's first request. When
    ``idle_evict_seconds`` is positive, buckets not touched for that long
    are dropped after every decision, so a returning key starts full again.
    """

    def __init__(self, settings: TargetSettings) -> None:
        super().__init__(settings)
        self._buckets: dict[str, TokenBucket] = {}

    def __len__(self) -> int:
        """Return the number of live buckets."""
        return len(self._buckets)

    async def allow(self, key: str) -> AllowResult:
        bucket = self._buckets.get(key)
        if bucket is None:
            bucket = TokenBucket(
                self._settings.capacity,
                self._settings.refill_per_second,
            )
            self._buckets[key] = bucket

        result = self._count(bucket.take_one())
        self._evict_idle()
        return result

    def _evict_idle(self) -> None:
        idle = self._settings.idle_evict_seconds
        if idle <= 0:
            return

        cutoff = time.monotonic() - idle
        stale = [key for key, bucket in self._buckets.items() if bucket.last_access < cutoff]
        for key in stale:
            del self._buckets[key]
        if stale:
            logger.debug("Evicted %d idle buckets", len(stale))


def build_limiter(settings: TargetSettings) -> RateLimiter:
    """Return the limiter selected by ``settings.backend``."""
    if settings.backend is Backend.REDIS:
        # redis_limiter imports this module
        from allowsmoke.target.redis_limiter import RedisRateLimiter

        return RedisRateLimiter(settings)
    return InMemoryRateLimiter(settings)

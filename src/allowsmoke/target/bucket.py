"""Token bucket used by the local ``/v1/allow`` target."""

from __future__ import annotations

import math
import time
from dataclasses import dataclass


@dataclass(frozen=True)
class AllowResult:
    """Outcome of a single ``allow`` decision.

    Attributes:
        allowed: Whether the request may proceed.
        remaining: Whole tokens left in the bucket after this decision.
        reset_at_millis: Epoch milliseconds when the bucket is full again
            (allowed) or when the next token becomes available (denied).
        retry_after_seconds: Seconds to wait before retrying; 0 when allowed.
    """

    allowed: bool
    remaining: int
    reset_at_millis: int
    retry_after_seconds: int

    def to_json(self) -> dict[str, object]:
        """Return the camelCase JSON body served by the target."""
        return {
            "allowed": self.allowed,
            "remaining": self.remaining,
            "resetAtMillis": self.reset_at_millis,
            "retryAfterSeconds": self.retry_after_seconds,
        }


class TokenBucket:
    """Non-blocking token bucket.

    The bucket starts full with ``capacity`` tokens and gains
    ``refill_per_second`` tokens per second up to ``capacity``. Each
    ``take_one()`` call consumes one token when at least one is available
    and otherwise reports when the next one will be.

    Attributes:
        capacity: Maximum token count (burst capacity), at least 1.
        refill_per_second: Tokens added per second, at least 1e-6.
    """

    def __init__(self, capacity: int, refill_per_second: float) -> None:
        self._capacity = max(1, capacity)
        self._refill_per_second = max(0.000001, refill_per_second)
        self._tokens = float(self._capacity)
        self._last_refill = time.monotonic()
        self._last_access = self._last_refill

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def refill_per_second(self) -> float:
        return self._refill_per_second

    @property
    def last_access(self) -> float:
        """Monotonic timestamp of the last ``take_one()`` call."""
        return self._last_access

    @property
    def available_tokens(self) -> float:
        """Current token count including refill since the last call."""
        elapsed = time.monotonic() - self._last_refill
        return min(self._capacity, self._tokens + elapsed * self._refill_per_second)

    def take_one(self) -> AllowResult:
        """Try to consume one token.

        Returns:
            AllowResult describing the decision.
        """
        self._refill()
        self._last_access = time.monotonic()

        allowed = self._tokens >= 1.0
        if allowed:
            self._tokens -= 1.0

        now_ms = int(time.time() * 1000)
        if allowed:
            reset_at = now_ms + self._millis_to_full()
            retry_after = 0
        else:
            ms_to_next = self._millis_to_next_token()
            reset_at = now_ms + ms_to_next
            retry_after = max(0, math.ceil(ms_to_next / 1000.0))

        return AllowResult(
            allowed=allowed,
            remaining=math.floor(self._tokens),
            reset_at_millis=reset_at,
            retry_after_seconds=retry_after,
        )

    def _refill(self) -> None:
        """Refill tokens based on elapsed time since last refill."""
        now = time.monotonic()
        elapsed = now - self._last_refill
        if elapsed <= 0:
            return
        self._tokens = min(self._capacity, self._tokens + elapsed * self._refill_per_second)
        self._last_refill = now

    def _millis_to_next_token(self) -> int:
        if self._tokens >= 1.0:
            return 0
        return math.ceil((1.0 - self._tokens) / self._refill_per_second * 1000.0)

    def _millis_to_full(self) -> int:
        need = self._capacity - self._tokens
        if need <= 0:
            return 0
        return math.ceil(need / self._refill_per_second * 1000.0)

"""Configuration loading for allowsmoke."""

from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum
from typing import TypeVar

from allowsmoke._internal.errors import ConfigError

DEFAULT_BASE_URL = "http://localhost:8080"
DEFAULT_REDIS_URL = "redis://localhost:6379/0"

_E = TypeVar("_E", bound=Enum)


class Backend(Enum):
    """Where the local target keeps its token buckets."""

    MEMORY = "memory"
    REDIS = "redis"


class FailMode(Enum):
    """How the Redis backend answers when Redis is unreachable or misbehaves.

    OPEN allows the request, CLOSED denies it with a one-second retry.
    """

    OPEN = "open"
    CLOSED = "closed"


@dataclass(frozen=True)
class AllowSmokeConfig:
    """Load-side configuration.

    Attributes:
        base_url: Root URL of the rate limiter under test.
        request_timeout: Total timeout per request in seconds.
        grace_period: Seconds in-flight iterations get to finish once the
            run duration has elapsed, before they are cancelled.
    """

    base_url: str = DEFAULT_BASE_URL
    request_timeout: float = 60.0
    grace_period: float = 5.0


@dataclass(frozen=True)
class TargetSettings:
    """Settings of the local ``/v1/allow`` target.

    Attributes:
        capacity: Burst capacity, the most tokens a bucket can hold.
        refill_per_second: Tokens added to every bucket per second.
        idle_evict_seconds: Buckets untouched for this long are dropped.
            0 disables eviction.
        backend: In-process buckets or buckets shared through Redis.
        redis_url: Redis connection URL, used by the Redis backend only.
        fail_mode: Answer given by the Redis backend when Redis fails.
    """

    capacity: int = 10
    refill_per_second: float = 5.0
    idle_evict_seconds: float = 0.0
    backend: Backend = Backend.MEMORY
    redis_url: str = DEFAULT_REDIS_URL
    fail_mode: FailMode = FailMode.OPEN


def _read_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        msg = f"{name} must be an integer, got: {raw!r}"
        raise ConfigError(msg) from None


def _read_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        msg = f"{name} must be a number, got: {raw!r}"
        raise ConfigError(msg) from None


def _read_choice(name: str, enum_type: type[_E], default: _E) -> _E:
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        return enum_type(raw.strip().lower())
    except ValueError:
        choices = ", ".join(member.value for member in enum_type)
        msg = f"{name} must be one of: {choices}, got: {raw!r}"
        raise ConfigError(msg) from None


def check_redis_url(url: str, name: str = "redis URL") -> str:
    """Return ``url`` if it has a scheme the redis client accepts.

    Raises:
        ConfigError: For any other scheme.
    """
    if not url.startswith(("redis://", "rediss://", "unix://")):
        msg = f"{name} must be a redis://, rediss:// or unix:// URL, got: {url!r}"
        raise ConfigError(msg)
    return url


def load_config() -> AllowSmokeConfig:
    """Load load-side configuration from environment variables.

    Environment variables:
        ALLOWSMOKE_BASE_URL: Root URL of the target (default: http://localhost:8080).
        ALLOWSMOKE_TIMEOUT: Request timeout in seconds (default: 60.0).
        ALLOWSMOKE_GRACE_PERIOD: Graceful stop window in seconds (default: 5.0).

    Returns:
        Populated AllowSmokeConfig instance.

    Raises:
        ConfigError: If an environment variable has an invalid value.
    """
    timeout = _read_float("ALLOWSMOKE_TIMEOUT", 60.0)
    if timeout <= 0:
        msg = f"ALLOWSMOKE_TIMEOUT must be positive, got: {timeout}"
        raise ConfigError(msg)

    grace_period = _read_float("ALLOWSMOKE_GRACE_PERIOD", 5.0)
    if grace_period < 0:
        msg = f"ALLOWSMOKE_GRACE_PERIOD must be >= 0, got: {grace_period}"
        raise ConfigError(msg)

    return AllowSmokeConfig(
        base_url=os.environ.get("ALLOWSMOKE_BASE_URL", DEFAULT_BASE_URL),
        request_timeout=timeout,
        grace_period=grace_period,
    )


def load_target_settings() -> TargetSettings:
    """Load local target settings from environment variables.

    Environment variables:
        ALLOWSMOKE_CAPACITY: Bucket capacity (default: 10).
        ALLOWSMOKE_REFILL_PER_SECOND: Refill rate (default: 5.0).
        ALLOWSMOKE_IDLE_EVICT_SECONDS: Idle eviction window (default: 0, disabled).
        ALLOWSMOKE_BACKEND: ``memory`` or ``redis`` (default: memory).
        ALLOWSMOKE_REDIS_URL: Redis URL (default: redis://localhost:6379/0).
        ALLOWSMOKE_FAIL_MODE: ``open`` or ``closed`` (default: open).

    Raises:
        ConfigError: If an environment variable has an invalid value.
    """
    capacity = _read_int("ALLOWSMOKE_CAPACITY", 10)
    if capacity < 1:
        msg = f"ALLOWSMOKE_CAPACITY must be >= 1, got: {capacity}"
        raise ConfigError(msg)

    refill = _read_float("ALLOWSMOKE_REFILL_PER_SECOND", 5.0)
    if refill <= 0:
        msg = f"ALLOWSMOKE_REFILL_PER_SECOND must be positive, got: {refill}"
        raise ConfigError(msg)

    idle_evict = _read_float("ALLOWSMOKE_IDLE_EVICT_SECONDS", 0.0)
    if idle_evict < 0:
        msg = f"ALLOWSMOKE_IDLE_EVICT_SECONDS must be >= 0, got: {idle_evict}"
        raise ConfigError(msg)

    redis_url = check_redis_url(
        os.environ.get("ALLOWSMOKE_REDIS_URL", DEFAULT_REDIS_URL),
        "ALLOWSMOKE_REDIS_URL",
    )

    return TargetSettings(
        capacity=capacity,
        refill_per_second=refill,
        idle_evict_seconds=idle_evict,
        backend=_read_choice("ALLOWSMOKE_BACKEND", Backend, Backend.MEMORY),
        redis_url=redis_url,
        fail_mode=_read_choice("ALLOWSMOKE_FAIL_MODE", FailMode, FailMode.OPEN),
    )

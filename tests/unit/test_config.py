"""Tests for configuration loading."""

from __future__ import annotations

import pytest

from allowsmoke._internal.config import (
    AllowSmokeConfig,
    Backend,
    FailMode,
    TargetSettings,
    load_config,
    load_target_settings,
)
from allowsmoke._internal.errors import ConfigError

_ENV_VARS = (
    "ALLOWSMOKE_BASE_URL",
    "ALLOWSMOKE_TIMEOUT",
    "ALLOWSMOKE_GRACE_PERIOD",
    "ALLOWSMOKE_CAPACITY",
    "ALLOWSMOKE_REFILL_PER_SECOND",
    "ALLOWSMOKE_IDLE_EVICT_SECONDS",
    "ALLOWSMOKE_BACKEND",
    "ALLOWSMOKE_REDIS_URL",
    "ALLOWSMOKE_FAIL_MODE",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


class TestAllowSmokeConfig:
    """Tests for the AllowSmokeConfig dataclass."""

    def test_defaults(self):
        config = AllowSmokeConfig()
        assert config.base_url == "http://localhost:8080"
        assert config.request_timeout == 60.0
        assert config.grace_period == 5.0

    def test_frozen(self):
        config = AllowSmokeConfig()
        with pytest.raises(AttributeError):
            config.base_url = "http://changed"  # type: ignore[misc]


class TestLoadConfig:
    """Tests for the load_config function."""

    def test_defaults_from_env(self):
        assert load_config() == AllowSmokeConfig()

    def test_base_url_from_env(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("ALLOWSMOKE_BASE_URL", "http://limiter.internal:9090")
        assert load_config().base_url == "http://limiter.internal:9090"

    def test_timeout_from_env(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("ALLOWSMOKE_TIMEOUT", "2.5")
        assert load_config().request_timeout == 2.5

    def test_grace_period_zero_allowed(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("ALLOWSMOKE_GRACE_PERIOD", "0")
        assert load_config().grace_period == 0.0

    def test_invalid_timeout_raises_error(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("ALLOWSMOKE_TIMEOUT", "abc")
        with pytest.raises(ConfigError, match="must be a number"):
            load_config()

    def test_zero_timeout_raises_error(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("ALLOWSMOKE_TIMEOUT", "0")
        with pytest.raises(ConfigError, match="must be positive"):
            load_config()

    def test_negative_grace_period_raises_error(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("ALLOWSMOKE_GRACE_PERIOD", "-1")
        with pytest.raises(ConfigError, match=">= 0"):
            load_config()


class TestLoadTargetSettings:
    """Tests for the load_target_settings function."""

    def test_defaults_from_env(self):
        settings = load_target_settings()
        assert settings == TargetSettings()
        assert settings.capacity == 10
        assert settings.refill_per_second == 5.0
        assert settings.idle_evict_seconds == 0.0

    def test_values_from_env(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("ALLOWSMOKE_CAPACITY", "2")
        monkeypatch.setenv("ALLOWSMOKE_REFILL_PER_SECOND", "0.5")
        monkeypatch.setenv("ALLOWSMOKE_IDLE_EVICT_SECONDS", "60")
        assert load_target_settings() == TargetSettings(2, 0.5, 60.0)

    def test_non_integer_capacity_raises_error(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("ALLOWSMOKE_CAPACITY", "2.5")
        with pytest.raises(ConfigError, match="must be an integer"):
            load_target_settings()

    def test_zero_capacity_raises_error(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("ALLOWSMOKE_CAPACITY", "0")
        with pytest.raises(ConfigError, match="must be >= 1"):
            load_target_settings()

    def test_zero_refill_raises_error(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("ALLOWSMOKE_REFILL_PER_SECOND", "0")
        with pytest.raises(ConfigError, match="must be positive"):
            load_target_settings()

    def test_negative_idle_evict_raises_error(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("ALLOWSMOKE_IDLE_EVICT_SECONDS", "-3")
        with pytest.raises(ConfigError, match=">= 0"):
            load_target_settings()

    def test_backend_defaults(self):
        settings = load_target_settings()
        assert settings.backend is Backend.MEMORY
        assert settings.redis_url == "redis://localhost:6379/0"
        assert settings.fail_mode is FailMode.OPEN

    def test_redis_backend_from_env(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("ALLOWSMOKE_BACKEND", "Redis")
        monkeypatch.setenv("ALLOWSMOKE_REDIS_URL", "redis://cache.internal:6380/2")
        monkeypatch.setenv("ALLOWSMOKE_FAIL_MODE", "closed")

        settings = load_target_settings()

        assert settings.backend is Backend.REDIS
        assert settings.redis_url == "redis://cache.internal:6380/2"
        assert settings.fail_mode is FailMode.CLOSED

    def test_unknown_backend_raises_error(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("ALLOWSMOKE_BACKEND", "memcached")
        with pytest.raises(ConfigError, match="ALLOWSMOKE_BACKEND must be one of: memory, redis"):
            load_target_settings()

    def test_unknown_fail_mode_raises_error(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("ALLOWSMOKE_FAIL_MODE", "maybe")
        with pytest.raises(ConfigError, match="ALLOWSMOKE_FAIL_MODE must be one of: open, closed"):
            load_target_settings()

    def test_non_redis_url_raises_error(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("ALLOWSMOKE_REDIS_URL", "http://localhost:6379")
        with pytest.raises(ConfigError, match="ALLOWSMOKE_REDIS_URL"):
            load_target_settings()

"""
Tests for fieldsync.core.settings and fieldsync.factory.

Covers:
- Defaults and FIELDSYNC_* environment overrides
- Range validation
- build_engine wiring (cache backend, gateway, missing token)
"""

import pytest
from pydantic import ValidationError

from fieldsync.core.cache import InMemoryCache, RedisCache
from fieldsync.core.errors import ConfigError
from fieldsync.core.settings import FieldSyncSettings, get_settings
from fieldsync.factory import build_cache_backend, build_engine, build_gateway
from fieldsync.gateway.bitable import BitableFieldGateway
from fieldsync.gateway.memory import InMemoryFieldGateway


class TestSettings:
    """FieldSyncSettings defaults and overrides."""

    def test_defaults(self):
        settings = FieldSyncSettings(_env_file=None)
        assert settings.base_url == "https://open.feishu.cn"
        assert settings.access_token is None
        assert settings.cache_backend == "memory"
        assert settings.cache_ttl_seconds == 3600
        assert settings.max_retries == 3
        assert settings.retry_base_delay_ms == 1000
        assert settings.operation_delay_ms == 1000

    def test_env_overrides(self, monkeypatch):
        """FIELDSYNC_* variables are picked up."""
        monkeypatch.setenv("FIELDSYNC_ACCESS_TOKEN", "t-123")
        monkeypatch.setenv("FIELDSYNC_MAX_RETRIES", "5")
        monkeypatch.setenv("FIELDSYNC_CACHE_BACKEND", "redis")
        settings = FieldSyncSettings(_env_file=None)
        assert settings.access_token == "t-123"
        assert settings.max_retries == 5
        assert settings.cache_backend == "redis"

    @pytest.mark.parametrize(
        "overrides",
        [{"max_retries": 6}, {"operation_delay_ms": 10_001}, {"page_size": 0}],
    )
    def test_out_of_range_rejected(self, overrides):
        with pytest.raises(ValidationError):
            FieldSyncSettings(_env_file=None, **overrides)

    def test_get_settings_is_cached(self):
        assert get_settings() is get_settings()


class TestFactory:
    """build_engine and friends."""

    def test_memory_cache_backend(self):
        backend = build_cache_backend(FieldSyncSettings(_env_file=None))
        assert isinstance(backend, InMemoryCache)

    def test_redis_cache_backend(self, monkeypatch):
        """The redis backend is built from redis_url."""
        created = {}

        def fake_init(self, url, *, default_ttl_seconds=3600, client=None):
            created["url"] = url
            created["ttl"] = default_ttl_seconds

        monkeypatch.setattr(RedisCache, "__init__", fake_init)
        settings = FieldSyncSettings(
            _env_file=None, cache_backend="redis", redis_url="redis://cache:6379/2"
        )
        assert isinstance(build_cache_backend(settings), RedisCache)
        assert created == {"url": "redis://cache:6379/2", "ttl": 3600}

    def test_gateway_requires_token(self):
        with pytest.raises(ConfigError, match="FIELDSYNC_ACCESS_TOKEN"):
            build_gateway(FieldSyncSettings(_env_file=None))

    def test_gateway_from_settings(self):
        gateway = build_gateway(FieldSyncSettings(_env_file=None, access_token="t-1"))
        try:
            assert isinstance(gateway, BitableFieldGateway)
        finally:
            gateway.close()

    def test_build_engine_with_injected_gateway(self):
        """Settings flow into the engine; an injected gateway is used as-is."""
        gateway = InMemoryFieldGateway()
        settings = FieldSyncSettings(
            _env_file=None, retry_base_delay_ms=250, max_retries=2, cache_ttl_seconds=60
        )
        engine = build_engine(settings, gateway=gateway)
        assert engine.gateway is gateway
        assert engine.retry_base_delay_ms == 250
        assert engine.max_retries == 2
        assert engine.cache.ttl_seconds == 60

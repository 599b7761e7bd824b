"""Wire gateway, cache and engine from :class:`FieldSyncSettings`."""

from __future__ import annotations

from collections.abc import Callable

from fieldsync.core.cache import CacheBackend, InMemoryCache, RedisCache
from fieldsync.core.errors import ConfigError
from fieldsync.core.logging import get_logger
from fieldsync.core.settings import FieldSyncSettings, get_settings
from fieldsync.gateway.base import RemoteFieldGateway
from fieldsync.gateway.bitable import BitableFieldGateway
from fieldsync.reconcile.descriptor_cache import FieldDescriptorCache
from fieldsync.reconcile.engine import ReconciliationEngine

logger = get_logger(__name__)


def build_cache_backend(settings: FieldSyncSettings) -> CacheBackend:
    if settings.cache_backend == "redis":
        return RedisCache(settings.redis_url, default_ttl_seconds=settings.cache_ttl_seconds)
    return InMemoryCache(default_ttl_seconds=settings.cache_ttl_seconds)


def build_gateway(settings: FieldSyncSettings) -> BitableFieldGateway:
    """HTTP gateway using the static access token from settings.

    Raises:
        ConfigError: No access token is configured.
    """
    token = settings.access_token
    if not token:
        raise ConfigError(
            "No access token configured; set FIELDSYNC_ACCESS_TOKEN"
        ).with_context(setting="access_token")
    return BitableFieldGateway(
        lambda: token,
        base_url=settings.base_url,
        timeout=settings.request_timeout_seconds,
        page_size=settings.page_size,
    )


def build_engine(
    settings: FieldSyncSettings | None = None,
    *,
    gateway: RemoteFieldGateway | None = None,
    sleep: Callable[[float], None] | None = None,
) -> ReconciliationEngine:
    """Engine configured from ``settings`` (process settings by default).

    Pass ``gateway`` to reuse an existing connection or an in-memory fake.
    """
    settings = settings or get_settings()
    if gateway is None:
        gateway = build_gateway(settings)
    cache = FieldDescriptorCache(
        build_cache_backend(settings),
        ttl_seconds=settings.cache_ttl_seconds,
    )
    logger.debug(
        "factory.engine_built",
        base_url=settings.base_url,
        cache_backend=settings.cache_backend,
        gateway=type(gateway).__name__,
    )
    return ReconciliationEngine(
        gateway,
        cache,
        retry_base_delay_ms=settings.retry_base_delay_ms,
        max_retries=settings.max_retries,
        sleep=sleep,
    )


__all__ = ["build_engine", "build_gateway", "build_cache_backend"]

"""
Shared cache abstraction with in-memory and Redis backends.

The field descriptor cache stores table schema snapshots through this
protocol, so the backend (single-process dict or shared Redis) can be swapped
without touching the reconciliation engine.

Architecture:
    ::

        CacheBackend (Protocol)
        ├── InMemoryCache  - single-process, bounded LRU
        └── RedisCache     - distributed, shared between workers

        API: get(key) → value | None
             set(key, value, ttl_seconds=None)
             delete(key)
             exists(key) → bool
             clear()

Examples:
    >>> from fieldsync.core.cache import InMemoryCache
    >>> cache = InMemoryCache(max_size=100, default_ttl_seconds=3600)
    >>> cache.set("fieldsync:fields:app:tbl", [{"field_name": "Status"}])
    >>> cache.exists("fieldsync:fields:app:tbl")
    True

Guardrails:
    ❌ DON'T: Use InMemoryCache across processes (no sharing)
    ✅ DO: Use RedisCache when several workers reconcile the same tables

    ❌ DON'T: Cache without TTL (stale schemas live forever)
    ✅ DO: Always set default_ttl_seconds or per-key ttl_seconds

Tags:
    cache, redis, in-memory, ttl, fieldsync
"""

from __future__ import annotations

import json
import threading
import time
from collections import OrderedDict
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class CacheBackend(Protocol):
    """Protocol for cache backend implementations.

    Keys are strings, values are JSON-serializable.

    Implementations:
        - :class:`InMemoryCache` - single-process, bounded LRU cache
        - :class:`RedisCache` - distributed, Redis-backed cache
    """

    def get(self, key: str) -> Any | None:
        """Retrieve a value by key.

        Returns:
            Cached value, or ``None`` if not found or expired.
        """
        ...

    def set(self, key: str, value: Any, *, ttl_seconds: int | None = None) -> None:
        """Store a value with optional TTL (``None`` → backend default)."""
        ...

    def delete(self, key: str) -> None:
        """Remove a key from the cache. No-op if key does not exist."""
        ...

    def exists(self, key: str) -> bool:
        """Check if a key exists and has not expired."""
        ...

    def clear(self) -> None:
        """Remove all keys from the cache."""
        ...


# ------------------------------------------------------------------ #
# In-Memory Cache
# ------------------------------------------------------------------ #


class InMemoryCache:
    """Bounded in-memory cache with TTL support.

    Uses LRU eviction when ``max_size`` is reached. Thread-safe for
    single-process use.

    Example:
        cache = InMemoryCache(max_size=500, default_ttl_seconds=1800)
        cache.set("fieldsync:fields:app:tbl", fields, ttl_seconds=600)
    """

    def __init__(
        self,
        *,
        max_size: int = 1_000,
        default_ttl_seconds: int | None = 3600,
    ):
        self._store: OrderedDict[str, tuple[Any, float | None]] = OrderedDict()
        self._max_size = max_size
        self._default_ttl = default_ttl_seconds
        self._lock = threading.Lock()

    def get(self, key: str) -> Any | None:
        """Retrieve a value by key."""
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                return None

            value, expires_at = entry
            if expires_at is not None and time.time() > expires_at:
                del self._store[key]
                return None

            self._store.move_to_end(key)
            return value

    def set(self, key: str, value: Any, *, ttl_seconds: int | None = None) -> None:
        """Store a value with optional TTL."""
        ttl = ttl_seconds if ttl_seconds is not None else self._default_ttl
        expires_at = (time.time() + ttl) if ttl else None

        with self._lock:
            if key not in self._store and len(self._store) >= self._max_size:
                self._store.popitem(last=False)
            self._store[key] = (value, expires_at)
            self._store.move_to_end(key)

    def delete(self, key: str) -> None:
        """Remove a key from the cache."""
        with self._lock:
            self._store.pop(key, None)

    def exists(self, key: str) -> bool:
        """Check if key exists and is not expired."""
        return self.get(key) is not None

    def clear(self) -> None:
        """Remove all keys."""
        with self._lock:
            self._store.clear()

    def size(self) -> int:
        """Return current number of cached keys."""
        return len(self._store)


# ------------------------------------------------------------------ #
# Redis Cache - Optional
# ------------------------------------------------------------------ #


class RedisCache:
    """Redis-backed distributed cache.

    Requires the ``redis`` package (install via ``pip install fieldsync[redis]``).

    Example:
        cache = RedisCache("redis://localhost:6379/0", default_ttl_seconds=600)
    """

    def __init__(
        self,
        url: str = "redis://localhost:6379/0",
        *,
        default_ttl_seconds: int | None = 3600,
        client: Any | None = None,
    ):
        """Initialize Redis cache.

        Args:
            url: Redis connection URL.
            default_ttl_seconds: Default TTL for all keys (``None`` → no expiry).
            client: Pre-built redis client (tests, shared pools).

        Raises:
            ImportError: If ``redis`` package not installed.
        """
        if client is None:
            try:
                import redis
            except ImportError as exc:
                msg = (
                    "Redis backend requires 'redis' package. "
                    "Install with: pip install fieldsync[redis]"
                )
                raise ImportError(msg) from exc
            client = redis.from_url(url, decode_responses=False)

        self._client = client
        self._default_ttl = default_ttl_seconds

    def get(self, key: str) -> Any | None:
        """Retrieve a value by key."""
        raw = self._client.get(key)
        if raw is None:
            return None
        return json.loads(raw)

    def set(self, key: str, value: Any, *, ttl_seconds: int | None = None) -> None:
        """Store a value with optional TTL."""
        ttl = ttl_seconds if ttl_seconds is not None else self._default_ttl
        serialized = json.dumps(value)

        if ttl:
            self._client.setex(key, ttl, serialized)
        else:
            self._client.set(key, serialized)

    def delete(self, key: str) -> None:
        """Remove a key from the cache."""
        self._client.delete(key)

    def exists(self, key: str) -> bool:
        """Check if key exists."""
        return bool(self._client.exists(key))

    def clear(self) -> None:
        """Remove all keys from the current Redis database.

        Warning: This flushes the entire Redis DB - use with caution!
        """
        self._client.flushdb()


__all__ = [
    "CacheBackend",
    "InMemoryCache",
    "RedisCache",
]

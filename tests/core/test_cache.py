"""
Tests for fieldsync.core.cache module.

Covers:
- CacheBackend protocol compliance
- InMemoryCache: get/set/delete/exists/clear, LRU eviction, TTL expiry
- RedisCache: JSON serialization and TTL handling against a mock client
"""

import json
import time
from unittest.mock import MagicMock

from fieldsync.core.cache import CacheBackend, InMemoryCache, RedisCache


class TestInMemoryCache:
    """Test InMemoryCache backend."""

    def test_basic_get_set(self):
        """Cache should store and retrieve values."""
        cache = InMemoryCache(max_size=100, default_ttl_seconds=None)
        cache.set("key1", [{"field_id": "fld1"}])
        assert cache.get("key1") == [{"field_id": "fld1"}]

    def test_get_missing_key(self):
        """Getting a missing key should return None."""
        assert InMemoryCache().get("missing") is None

    def test_delete(self):
        """Delete should remove a key and tolerate missing keys."""
        cache = InMemoryCache()
        cache.set("key1", "value1")
        cache.delete("key1")
        cache.delete("never-set")
        assert not cache.exists("key1")

    def test_clear(self):
        """Clear should remove all keys."""
        cache = InMemoryCache()
        for i in range(3):
            cache.set(f"k{i}", i)
        cache.clear()
        assert cache.size() == 0

    def test_ttl_expiry(self):
        """Entries expire after their TTL."""
        cache = InMemoryCache()
        cache.set("short", "v", ttl_seconds=1)
        assert cache.get("short") == "v"
        time.sleep(1.1)
        assert cache.get("short") is None

    def test_lru_eviction(self):
        """Least recently used key is evicted at capacity."""
        cache = InMemoryCache(max_size=2)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.get("a")
        cache.set("c", 3)
        assert cache.get("a") == 1
        assert cache.get("b") is None
        assert cache.get("c") == 3

    def test_protocol_compliance(self):
        """InMemoryCache satisfies CacheBackend."""
        assert isinstance(InMemoryCache(), CacheBackend)


class TestRedisCache:
    """Test RedisCache against a mock client."""

    def test_set_with_ttl_uses_setex(self):
        """Values are JSON-encoded; TTL goes through setex."""
        client = MagicMock()
        cache = RedisCache(client=client, default_ttl_seconds=600)
        cache.set("k", {"a": 1})
        client.setex.assert_called_once_with("k", 600, json.dumps({"a": 1}))

    def test_set_without_ttl(self):
        """No TTL → plain SET."""
        client = MagicMock()
        cache = RedisCache(client=client, default_ttl_seconds=None)
        cache.set("k", [1, 2])
        client.set.assert_called_once_with("k", "[1, 2]")

    def test_get_decodes_json(self):
        client = MagicMock()
        client.get.return_value = b'{"a": 1}'
        assert RedisCache(client=client).get("k") == {"a": 1}

    def test_get_missing(self):
        client = MagicMock()
        client.get.return_value = None
        assert RedisCache(client=client).get("k") is None

    def test_delete_and_exists(self):
        client = MagicMock()
        client.exists.return_value = 1
        cache = RedisCache(client=client)
        cache.delete("k")
        client.delete.assert_called_once_with("k")
        assert cache.exists("k") is True

    def test_protocol_compliance(self):
        assert isinstance(RedisCache(client=MagicMock()), CacheBackend)

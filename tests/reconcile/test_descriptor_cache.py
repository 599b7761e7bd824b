"""
Tests for fieldsync.reconcile.descriptor_cache.

Covers:
- Snapshot put/get/find/invalidate with the documented key format
- Backend failures degrade to misses; invalidation failures are reported
- Corrupt entries are dropped
"""

from unittest.mock import MagicMock

from fieldsync.core.cache import InMemoryCache
from fieldsync.models import FieldDescriptor, TableRef
from fieldsync.reconcile.descriptor_cache import FieldDescriptorCache


def fields():
    return [
        FieldDescriptor(id="fld1", name="Title", type_code=1, ui_type="Text", is_primary=True),
        FieldDescriptor(
            id="fld2", name="Notes", type_code=1, ui_type="Text", description="free text"
        ),
    ]


class TestFieldDescriptorCache:
    """Snapshot behaviour."""

    def test_key_format(self, table):
        assert FieldDescriptorCache().key_for(table) == "fieldsync:fields:bascnTest:tblBooks"

    def test_put_then_get_round_trip(self, table):
        backend = InMemoryCache()
        cache = FieldDescriptorCache(backend)
        cache.put(table, fields())
        assert cache.get(table) == fields()
        # Stored with wire names so other processes can read it
        raw = backend.get(cache.key_for(table))
        assert raw[0]["field_name"] == "Title"
        assert raw[1]["description"] == "free text"

    def test_default_ttl_applied(self, table):
        backend = MagicMock()
        FieldDescriptorCache(backend, ttl_seconds=120).put(table, fields())
        assert backend.set.call_args.kwargs["ttl_seconds"] == 120

    def test_find(self, table):
        cache = FieldDescriptorCache()
        assert cache.find(table, "Title") is None
        cache.put(table, fields())
        assert cache.find(table, "Notes").id == "fld2"
        assert cache.find(table, "notes") is None

    def test_tables_are_isolated(self, table):
        cache = FieldDescriptorCache()
        cache.put(table, fields())
        other = TableRef(app_token="bascnTest", table_id="tblOther")
        assert cache.get(other) is None

    def test_invalidate(self, table):
        cache = FieldDescriptorCache()
        cache.put(table, fields())
        assert cache.invalidate(table) is True
        assert cache.get(table) is None


class TestBackendFailures:
    """A broken backend never breaks a reconciliation."""

    def test_read_failure_is_a_miss(self, table):
        backend = MagicMock()
        backend.get.side_effect = ConnectionError("redis down")
        assert FieldDescriptorCache(backend).get(table) is None

    def test_write_failure_is_swallowed(self, table):
        backend = MagicMock()
        backend.set.side_effect = ConnectionError("redis down")
        FieldDescriptorCache(backend).put(table, fields())

    def test_invalidate_failure_reported(self, table):
        backend = MagicMock()
        backend.delete.side_effect = ConnectionError("redis down")
        assert FieldDescriptorCache(backend).invalidate(table) is False

    def test_corrupt_entry_dropped(self, table):
        backend = InMemoryCache()
        cache = FieldDescriptorCache(backend)
        backend.set(cache.key_for(table), [{"unexpected": True}])
        assert cache.get(table) is None
        assert backend.get(cache.key_for(table)) is None

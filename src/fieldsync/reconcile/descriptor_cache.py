"""Table-keyed snapshot cache of live field descriptors.

Wraps a :class:`~fieldsync.core.cache.CacheBackend` so the engine can skip
refetching a table's schema between reconciliations. The snapshot lives
until the next successful create/update on that table (which invalidates
it) or until its TTL expires.

A failing backend never fails a reconciliation: read and write problems
are logged and behave like a miss. Invalidation failures are reported back
to the caller so the engine can attach a warning to its result.
"""

from __future__ import annotations

from fieldsync.core.cache import CacheBackend, InMemoryCache
from fieldsync.core.logging import get_logger
from fieldsync.models import FieldDescriptor, TableRef

logger = get_logger(__name__)

KEY_PREFIX = "fieldsync:fields:"
DEFAULT_TTL_SECONDS = 3600


class FieldDescriptorCache:
    """Last known field list per table.

    Example:
        cache = FieldDescriptorCache(InMemoryCache(), ttl_seconds=600)
        cache.put(table, fields)
        status = cache.find(table, "Status")
        cache.invalidate(table)
    """

    def __init__(
        self,
        backend: CacheBackend | None = None,
        *,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        key_prefix: str = KEY_PREFIX,
    ) -> None:
        self.backend = backend if backend is not None else InMemoryCache()
        self.ttl_seconds = ttl_seconds
        self.key_prefix = key_prefix

    def key_for(self, table: TableRef) -> str:
        return f"{self.key_prefix}{table.key}"

    def get(self, table: TableRef) -> list[FieldDescriptor] | None:
        """Cached snapshot for ``table``, or ``None`` on a miss."""
        key = self.key_for(table)
        try:
            raw = self.backend.get(key)
        except Exception as e:
            logger.warning("descriptor_cache.read_failed", table=table.key, error=str(e))
            return None
        if raw is None:
            return None
        try:
            return [FieldDescriptor.model_validate(item) for item in raw]
        except (TypeError, ValueError) as e:
            # Unreadable entry, written by an incompatible version or corrupted
            logger.warning("descriptor_cache.corrupt_entry", table=table.key, error=str(e))
            self._delete_quietly(key)
            return None

    def put(
        self,
        table: TableRef,
        fields: list[FieldDescriptor],
        ttl_seconds: int | None = None,
    ) -> None:
        try:
            self.backend.set(
                self.key_for(table),
                [f.to_wire() for f in fields],
                ttl_seconds=ttl_seconds if ttl_seconds is not None else self.ttl_seconds,
            )
        except Exception as e:
            logger.warning("descriptor_cache.write_failed", table=table.key, error=str(e))

    def invalidate(self, table: TableRef) -> bool:
        """Drop the snapshot for ``table``.

        Returns:
            False if the backend refused the delete (the entry may be stale).
        """
        try:
            self.backend.delete(self.key_for(table))
        except Exception as e:
            logger.error("descriptor_cache.invalidate_failed", table=table.key, error=str(e))
            return False
        logger.debug("descriptor_cache.invalidated", table=table.key)
        return True

    def find(self, table: TableRef, name: str) -> FieldDescriptor | None:
        """Look up a field by exact name inside the cached snapshot."""
        fields = self.get(table)
        if fields is None:
            return None
        return next((f for f in fields if f.name == name), None)

    def _delete_quietly(self, key: str) -> None:
        try:
            self.backend.delete(key)
        except Exception as e:
            logger.warning("descriptor_cache.delete_failed", key=key, error=str(e))


__all__ = ["FieldDescriptorCache", "KEY_PREFIX", "DEFAULT_TTL_SECONDS"]

"""Contract between the reconciliation engine and the remote field API.

Implementations:
    - :class:`~fieldsync.gateway.bitable.BitableFieldGateway` - HTTP (httpx)
    - :class:`~fieldsync.gateway.memory.InMemoryFieldGateway` - in-process

All three calls may raise a :class:`~fieldsync.core.errors.FieldSyncError`
whose ``retryable`` flag tells the retry executor what to do with it.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from fieldsync.models import FieldConfiguration, FieldDescriptor, TableRef


@runtime_checkable
class RemoteFieldGateway(Protocol):
    """List, create and update fields of a remote table."""

    def list_fields(self, table: TableRef) -> list[FieldDescriptor]:
        """Return every field of ``table`` (all pages)."""
        ...

    def create_field(self, table: TableRef, config: FieldConfiguration) -> FieldDescriptor:
        """Create a field and return the remote's view of it."""
        ...

    def update_field(
        self,
        table: TableRef,
        field_id: str,
        config: FieldConfiguration,
    ) -> FieldDescriptor:
        """Replace the configuration of an existing field."""
        ...


__all__ = ["RemoteFieldGateway"]

"""In-process field gateway.

Behaves like the remote API closely enough for tests and offline planning:
field ids are assigned on create, select options get server-side ``id`` and
``color`` values, duplicate names are rejected, and failures can be queued
per method with :meth:`InMemoryFieldGateway.fail_next`.

Example:
    gateway = InMemoryFieldGateway()
    gateway.seed(table, [{"field_id": "fld1", "field_name": "Title", "type": 1, "ui_type": "Text"}])
    gateway.fail_next("create_field", NetworkError("connection reset"))
"""

from __future__ import annotations

import copy
import itertools
import threading
from collections import defaultdict, deque
from typing import Any

from fieldsync.core.errors import RemoteNotFoundError, RemoteValidationError
from fieldsync.models import FieldConfiguration, FieldDescriptor, TableRef

_METHODS = ("list_fields", "create_field", "update_field")


class InMemoryFieldGateway:
    """Dict-backed implementation of :class:`~fieldsync.gateway.base.RemoteFieldGateway`."""

    def __init__(self) -> None:
        self._tables: dict[str, list[FieldDescriptor]] = defaultdict(list)
        self._failures: dict[str, deque[BaseException]] = defaultdict(deque)
        self._ids = itertools.count(1)
        self._lock = threading.Lock()
        self.calls: list[tuple[str, str]] = []

    # ── Test helpers ─────────────────────────────────────────────────

    def seed(self, table: TableRef, fields: list[FieldDescriptor | dict[str, Any]]) -> None:
        """Replace the live schema of ``table``."""
        self._tables[table.key] = [
            f if isinstance(f, FieldDescriptor) else FieldDescriptor.model_validate(f)
            for f in fields
        ]

    def fail_next(self, method: str, error: BaseException, times: int = 1) -> None:
        """Make the next ``times`` calls to ``method`` raise ``error``."""
        if method not in _METHODS:
            raise ValueError(f"unknown gateway method {method!r}")
        self._failures[method].extend([error] * times)

    def fields(self, table: TableRef) -> list[FieldDescriptor]:
        return list(self._tables[table.key])

    def call_count(self, method: str) -> int:
        return sum(1 for name, _ in self.calls if name == method)

    # ── Gateway protocol ─────────────────────────────────────────────

    def list_fields(self, table: TableRef) -> list[FieldDescriptor]:
        self._enter("list_fields", table.key)
        return list(self._tables[table.key])

    def create_field(self, table: TableRef, config: FieldConfiguration) -> FieldDescriptor:
        self._enter("create_field", config.name)
        with self._lock:
            fields = self._tables[table.key]
            if any(f.name == config.name for f in fields):
                raise RemoteValidationError(
                    f"field name {config.name!r} already exists",
                    status_code=400,
                    remote_code=1254014,
                )
            created = self._materialize(f"fld{next(self._ids):08d}", config, is_primary=not fields)
            fields.append(created)
            return created

    def update_field(
        self,
        table: TableRef,
        field_id: str,
        config: FieldConfiguration,
    ) -> FieldDescriptor:
        self._enter("update_field", config.name)
        with self._lock:
            fields = self._tables[table.key]
            for index, existing in enumerate(fields):
                if existing.id == field_id:
                    updated = self._materialize(field_id, config, is_primary=existing.is_primary)
                    fields[index] = updated
                    return updated
        raise RemoteNotFoundError(f"field {field_id!r} not found", status_code=404)

    # ── Internals ────────────────────────────────────────────────────

    def _enter(self, method: str, subject: str) -> None:
        self.calls.append((method, subject))
        queue = self._failures[method]
        if queue:
            raise queue.popleft()

    def _materialize(
        self,
        field_id: str,
        config: FieldConfiguration,
        *,
        is_primary: bool,
    ) -> FieldDescriptor:
        properties = copy.deepcopy(config.properties)
        options = properties.get("options")
        if isinstance(options, list):
            for position, option in enumerate(options):
                if isinstance(option, dict):
                    option.setdefault("id", f"opt{position + 1}")
                    option.setdefault("color", position)
        return FieldDescriptor(
            id=field_id,
            name=config.name,
            type_code=config.type_code,
            ui_type=config.ui_type,
            is_primary=is_primary,
            properties=properties,
            description=config.description,
        )


__all__ = ["InMemoryFieldGateway"]

"""Running counters for reconciliation outcomes."""

from __future__ import annotations

import threading
from collections import Counter
from datetime import datetime, timezone

from fieldsync.models import OperationStatsSnapshot, OperationType


class OperationStats:
    """Thread-safe tally of created/updated/unchanged/failed operations.

    Only counters are kept; results themselves are never retained.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._counts: Counter[str] = Counter()
        self._failed = 0
        self._processing_ms = 0.0
        self._last_operation: datetime | None = None
        self._last_success: datetime | None = None

    def record_success(self, operation: OperationType, processing_time_ms: float) -> None:
        now = datetime.now(timezone.utc)
        with self._lock:
            self._counts[operation.value] += 1
            self._processing_ms += processing_time_ms
            self._last_operation = now
            self._last_success = now

    def record_failure(self, processing_time_ms: float = 0.0) -> None:
        with self._lock:
            self._failed += 1
            self._processing_ms += processing_time_ms
            self._last_operation = datetime.now(timezone.utc)

    @property
    def last_success(self) -> datetime | None:
        return self._last_success

    def snapshot(self) -> OperationStatsSnapshot:
        with self._lock:
            succeeded = sum(self._counts.values())
            total = succeeded + self._failed
            distribution = dict(self._counts)
            if self._failed:
                distribution["failed"] = self._failed
            return OperationStatsSnapshot(
                total_operations=total,
                created_count=self._counts[OperationType.CREATED.value],
                updated_count=self._counts[OperationType.UPDATED.value],
                unchanged_count=self._counts[OperationType.UNCHANGED.value],
                failed_count=self._failed,
                average_processing_time_ms=self._processing_ms / total if total else 0.0,
                success_rate=succeeded / total if total else 0.0,
                operation_type_distribution=distribution,
                last_operation_time=self._last_operation,
            )

    def reset(self) -> None:
        with self._lock:
            self._counts.clear()
            self._failed = 0
            self._processing_ms = 0.0
            self._last_operation = None
            self._last_success = None


__all__ = ["OperationStats"]

"""Batch coordinator - reconcile many fields of one table, one at a time.

WHY
───
The remote API offers no locking, so concurrent schema edits on the same
table race each other. Running items strictly in order, with a pause in
between and a cache invalidation after every write, is the substitute.
One bad field must never abort the rest of the batch.

ARCHITECTURE
────────────
::

    BatchCoordinator.ensure_many(table, desired_list, options)
      ├── resolve_options()             ─ invalid → InvalidOptionsError, nothing runs
      ├── for each item (input order)
      │     ├── cancel? → remaining items recorded as failures
      │     ├── engine.ensure_field_configuration()
      │     │     ok   → results + summary[operation]
      │     │     err  → failures {field_name, error, retry_count}
      │     └── sleep operation_delay_ms (not after the last item)
      └── BatchResult               ─ results / summary / failures / timings

Example::

    coordinator = BatchCoordinator(engine)
    batch = coordinator.ensure_many(table, configs, {"operationDelay": 200})
    print(batch.summary.created, batch.summary.failed)
"""

from __future__ import annotations

import time
from collections.abc import Callable, Mapping, Sequence
from typing import Any

from fieldsync.core.errors import OperationCancelledError
from fieldsync.core.logging import get_logger
from fieldsync.execution.cancellation import CancellationToken, interruptible_sleep
from fieldsync.models import (
    BatchFailure,
    BatchResult,
    BatchSummary,
    FieldConfiguration,
    OperationOptions,
    OperationResult,
    OperationType,
    TableRef,
    resolve_options,
)
from fieldsync.reconcile.engine import ReconciliationEngine, configuration_name

logger = get_logger(__name__)


class BatchCoordinator:
    """Runs :meth:`ReconciliationEngine.ensure_field_configuration` over a list.

    Args:
        engine: Engine performing each reconciliation
        sleep: Replacement for the inter-item pause (seconds), mainly for tests
    """

    def __init__(
        self,
        engine: ReconciliationEngine,
        *,
        sleep: Callable[[float], None] | None = None,
    ) -> None:
        self.engine = engine
        self._sleep = sleep

    def ensure_many(
        self,
        table: TableRef,
        desired_list: Sequence[FieldConfiguration | Mapping[str, Any]],
        options: OperationOptions | Mapping[str, Any] | None = None,
        *,
        cancel: CancellationToken | None = None,
    ) -> BatchResult:
        """Reconcile every item, isolating failures.

        Raises:
            InvalidOptionsError: Before any item runs. Per-item errors are
                never raised; they are recorded in ``failures``.
        """
        opts = resolve_options(options)
        items = list(desired_list)
        started = time.perf_counter()

        results: list[OperationResult] = []
        failures: list[BatchFailure] = []
        counts = {op: 0 for op in OperationType}

        logger.info(
            "batch.start",
            table=table.key,
            total=len(items),
            strategy=opts.strategy.value,
            conflict_resolution=opts.conflict_resolution.value,
        )

        for index, desired in enumerate(items):
            name = configuration_name(desired)

            if cancel is not None and cancel.cancelled:
                self._abandon(items[index:], cancel.reason, failures, table)
                break

            try:
                result = self.engine.ensure_field_configuration(
                    table, desired, opts, cancel=cancel
                )
            except Exception as e:
                failures.append(
                    BatchFailure(
                        field_name=name,
                        error=str(e),
                        retry_count=getattr(e, "retry_count", 0),
                    )
                )
                logger.warning(
                    "batch.item_failed",
                    table=table.key,
                    field=name,
                    index=index,
                    error=str(e),
                    error_type=type(e).__name__,
                )
            else:
                results.append(result)
                counts[result.operation] += 1

            if index < len(items) - 1:
                try:
                    self._pause(opts.operation_delay_ms / 1000.0, cancel)
                except OperationCancelledError as e:
                    self._abandon(items[index + 1 :], str(e), failures, table)
                    break

        processing_ms = sum(r.processing_time_ms for r in results)
        summary = BatchSummary(
            total=len(items),
            created=counts[OperationType.CREATED],
            updated=counts[OperationType.UPDATED],
            unchanged=counts[OperationType.UNCHANGED],
            failed=len(failures),
            total_processing_time_ms=processing_ms,
            average_processing_time_ms=processing_ms / len(results) if results else 0.0,
        )
        batch = BatchResult(
            results=results,
            summary=summary,
            failures=failures,
            total_execution_time_ms=(time.perf_counter() - started) * 1000.0,
        )

        logger.info(
            "batch.complete",
            table=table.key,
            total=summary.total,
            created=summary.created,
            updated=summary.updated,
            unchanged=summary.unchanged,
            failed=summary.failed,
            total_execution_time_ms=round(batch.total_execution_time_ms, 2),
        )
        return batch

    def _pause(self, seconds: float, cancel: CancellationToken | None) -> None:
        if cancel is not None:
            cancel.raise_if_cancelled()
        if self._sleep is None:
            interruptible_sleep(seconds, cancel)
            return
        self._sleep(seconds)
        if cancel is not None:
            cancel.raise_if_cancelled()

    @staticmethod
    def _abandon(
        remaining: Sequence[FieldConfiguration | Mapping[str, Any]],
        reason: str,
        failures: list[BatchFailure],
        table: TableRef,
    ) -> None:
        for desired in remaining:
            failures.append(BatchFailure(field_name=configuration_name(desired), error=reason))
        logger.warning("batch.cancelled", table=table.key, abandoned=len(remaining), reason=reason)


__all__ = ["BatchCoordinator"]

"""
Reconciliation engine - converge one remote field onto a desired configuration.

Manifesto:
    Callers describe what a field should look like; the engine decides
    whether to create it, update it, leave it alone, or refuse. Every
    decision is a transition of an explicit state machine so each terminal
    outcome is enumerable and testable in isolation.

Architecture:
    ::

        ensure_field_configuration(table, desired, options)
          │
          LOCATING ── cache snapshot, else gateway.list_fields (retried)
          ├── ABSENT ─────── update_only ──▶ REJECTED (FieldNotFoundError)
          │                  otherwise   ──▶ create (retried) ──▶ CREATED
          └── PRESENT ────── create_only ──▶ REJECTED (FieldOperationError)
                ├── MATCHED ─────────────────────────────────▶ UNCHANGED
                └── MISMATCHED
                      ├── throw_error    ──▶ REJECTED (ConfigurationMismatchError)
                      ├── skip_operation ──▶ SKIPPED ──────▶ UNCHANGED (+warning)
                      └── update_existing ─▶ UPDATING ─────▶ UPDATED

    Gateway failures that survive retry move the run to FAILED and surface
    as :class:`~fieldsync.core.errors.FieldOperationError`. Every successful
    create/update invalidates the table's descriptor cache entry.

Guardrails:
    ❌ Retrying domain decisions (not found, mismatch) - they are final
    ❌ Mutating anything from ``preview()``
    ✅ One exception at most per call; warnings ride on the result
    ✅ Stats record every outcome, success or failure

Tags:
    reconcile, engine, state-machine, idempotent
"""

from __future__ import annotations

import time
from collections.abc import Callable, Iterable, Mapping
from enum import Enum
from typing import Any, TypeVar

from fieldsync.core.errors import (
    ConfigurationMismatchError,
    ErrorCategory,
    FieldNotFoundError,
    FieldOperationError,
    FieldSyncError,
    OperationCancelledError,
)
from fieldsync.core.logging import LogContext, get_logger
from fieldsync.execution.cancellation import CancellationToken
from fieldsync.execution.retry import ExponentialBackoff, RetryContext
from fieldsync.gateway.base import RemoteFieldGateway
from fieldsync.models import (
    ConfigurationDifference,
    ConflictResolution,
    FieldConfiguration,
    FieldDescriptor,
    HealthReport,
    MatchAnalysis,
    OperationMetadata,
    OperationOptions,
    OperationResult,
    OperationStrategy,
    OperationType,
    PlannedAction,
    PlannedOperation,
    RecommendedAction,
    TableRef,
    resolve_options,
)
from fieldsync.reconcile.analyzer import ConfigurationAnalyzer
from fieldsync.reconcile.descriptor_cache import FieldDescriptorCache
from fieldsync.reconcile.stats import OperationStats

logger = get_logger(__name__)

T = TypeVar("T")


class ReconcileState(str, Enum):
    """States of a single reconciliation.

    Valid transition graph::

        LOCATING   → ABSENT | PRESENT | FAILED
        ABSENT     → CREATED | REJECTED | FAILED
        PRESENT    → MATCHED | MISMATCHED | REJECTED | FAILED
        MATCHED    → UNCHANGED
        MISMATCHED → UPDATING | SKIPPED | REJECTED
        UPDATING   → UPDATED | FAILED
        SKIPPED    → UNCHANGED
        CREATED, UPDATED, UNCHANGED, REJECTED, FAILED → (terminal)
    """

    LOCATING = "locating"
    ABSENT = "absent"
    PRESENT = "present"
    MATCHED = "matched"
    MISMATCHED = "mismatched"
    UPDATING = "updating"
    SKIPPED = "skipped_with_warning"
    CREATED = "created"
    UPDATED = "updated"
    UNCHANGED = "unchanged"
    REJECTED = "rejected"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return not RECONCILE_VALID_TRANSITIONS[self]


RECONCILE_VALID_TRANSITIONS: dict[ReconcileState, frozenset[ReconcileState]] = {
    ReconcileState.LOCATING: frozenset({
        ReconcileState.ABSENT,
        ReconcileState.PRESENT,
        ReconcileState.FAILED,
    }),
    ReconcileState.ABSENT: frozenset({
        ReconcileState.CREATED,
        ReconcileState.REJECTED,  # update_only
        ReconcileState.FAILED,    # create exhausted its retries
    }),
    ReconcileState.PRESENT: frozenset({
        ReconcileState.MATCHED,
        ReconcileState.MISMATCHED,
        ReconcileState.REJECTED,  # create_only
        ReconcileState.FAILED,
    }),
    ReconcileState.MATCHED: frozenset({ReconcileState.UNCHANGED}),
    ReconcileState.MISMATCHED: frozenset({
        ReconcileState.UPDATING,
        ReconcileState.SKIPPED,
        ReconcileState.REJECTED,  # throw_error
    }),
    ReconcileState.UPDATING: frozenset({
        ReconcileState.UPDATED,
        ReconcileState.FAILED,
    }),
    ReconcileState.SKIPPED: frozenset({ReconcileState.UNCHANGED}),
    ReconcileState.CREATED: frozenset(),
    ReconcileState.UPDATED: frozenset(),
    ReconcileState.UNCHANGED: frozenset(),
    ReconcileState.REJECTED: frozenset(),
    ReconcileState.FAILED: frozenset(),
}


class InvalidTransitionError(FieldSyncError):
    """Internal invariant violation: the engine tried an illegal transition."""

    default_category = ErrorCategory.INTERNAL

    def __init__(self, current: ReconcileState, target: ReconcileState):
        self.current = current
        self.target = target
        super().__init__(
            f"Invalid reconcile transition: {current.value} → {target.value}"
        )


def validate_reconcile_transition(current: ReconcileState, target: ReconcileState) -> None:
    """Raise :class:`InvalidTransitionError` if *current → target* is illegal."""
    if target not in RECONCILE_VALID_TRANSITIONS.get(current, frozenset()):
        raise InvalidTransitionError(current, target)


def coerce_configuration(desired: FieldConfiguration | Mapping[str, Any]) -> FieldConfiguration:
    """Accept a FieldConfiguration or a dict using wire or model names."""
    if isinstance(desired, FieldConfiguration):
        return desired
    return FieldConfiguration.model_validate(dict(desired))


def configuration_name(desired: FieldConfiguration | Mapping[str, Any]) -> str:
    """Best-effort field name, also for configurations that fail validation."""
    if isinstance(desired, FieldConfiguration):
        return desired.name
    return str(desired.get("name") or desired.get("field_name") or "<unnamed>")


def _by_name(fields: Iterable[FieldDescriptor], name: str) -> FieldDescriptor | None:
    return next((f for f in fields if f.name == name), None)


class _Reconciliation:
    """Mutable bookkeeping for one ``ensure_field_configuration`` call."""

    def __init__(self, table: TableRef, config: FieldConfiguration, options: OperationOptions):
        self.table = table
        self.config = config
        self.options = options
        self.state = ReconcileState.LOCATING
        self.retry_count = 0
        self.api_call_count = 0
        self.cache_hit = False
        self.warnings: list[str] = []
        self._started = time.perf_counter()

    def advance(self, target: ReconcileState) -> None:
        validate_reconcile_transition(self.state, target)
        if self.options.enable_detailed_logging:
            logger.debug("reconcile.transition", source=self.state.value, target=target.value)
        self.state = target

    def elapsed_ms(self) -> float:
        return (time.perf_counter() - self._started) * 1000.0

    def result(
        self,
        field: FieldDescriptor,
        operation: OperationType,
        changes: list[ConfigurationDifference] | None = None,
    ) -> OperationResult:
        return OperationResult(
            field=field,
            operation=operation,
            changes=list(changes or []),
            processing_time_ms=self.elapsed_ms(),
            warnings=list(self.warnings),
            metadata=OperationMetadata(
                retry_count=self.retry_count,
                cache_hit=self.cache_hit,
                api_call_count=self.api_call_count,
            ),
        )


class ReconciliationEngine:
    """Idempotent "ensure field" operation plus read-only helpers.

    Example:
        engine = ReconciliationEngine(gateway, FieldDescriptorCache())
        result = engine.ensure_field_configuration(
            table,
            FieldConfiguration(name="Status", type_code=3, ui_type="SingleSelect"),
            {"conflictResolution": "skip_operation"},
        )
        result.operation  # OperationType.CREATED on the first run, UNCHANGED after

    Args:
        gateway: Remote field API
        cache: Descriptor snapshot cache (in-memory by default)
        analyzer: Diff/scoring component
        stats: Outcome counters, shared with a batch coordinator if desired
        retry_base_delay_ms: Backoff delay after the first failed attempt
        max_retries: Attempt budget for standalone reads (``find_by_name``,
            ``list_fields``); reconciliations use their options instead
        sleep: Replacement sleep for retry backoff (seconds), mainly for tests
    """

    def __init__(
        self,
        gateway: RemoteFieldGateway,
        cache: FieldDescriptorCache | None = None,
        *,
        analyzer: ConfigurationAnalyzer | None = None,
        stats: OperationStats | None = None,
        retry_base_delay_ms: float = 1000,
        max_retries: int = 3,
        sleep: Callable[[float], None] | None = None,
    ) -> None:
        self.gateway = gateway
        self.cache = cache if cache is not None else FieldDescriptorCache()
        self.analyzer = analyzer or ConfigurationAnalyzer()
        self._stats = stats or OperationStats()
        self.retry_base_delay_ms = retry_base_delay_ms
        self.max_retries = max_retries
        self._sleep = sleep

    @property
    def stats(self) -> OperationStats:
        return self._stats

    def close(self) -> None:
        """Release the gateway's connection, if it holds one."""
        close = getattr(self.gateway, "close", None)
        if close is not None:
            close()

    def __enter__(self) -> ReconciliationEngine:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    # ── Ensure ───────────────────────────────────────────────────────

    def ensure_field_configuration(
        self,
        table: TableRef,
        desired: FieldConfiguration | Mapping[str, Any],
        options: OperationOptions | Mapping[str, Any] | None = None,
        *,
        cancel: CancellationToken | None = None,
    ) -> OperationResult:
        """Make the field named ``desired.name`` match ``desired``.

        Raises:
            InvalidOptionsError: Options are out of range or inconsistent
            FieldNotFoundError: ``update_only`` and the field is absent
            ConfigurationMismatchError: Mismatch under ``throw_error``
            FieldOperationError: ``desired`` is not a valid configuration,
                ``create_only`` on an existing field, or a gateway failure
                that survived every retry
            OperationCancelledError: ``cancel`` fired before a remote call
        """
        opts = resolve_options(options)
        try:
            config = coerce_configuration(desired)
        except ValueError as e:
            name = configuration_name(desired)
            self._stats.record_failure()
            logger.error(
                "reconcile.failed",
                table=table.key,
                field=name,
                state="invalid_configuration",
                error=str(e),
                error_type=type(e).__name__,
                retry_count=0,
            )
            raise FieldOperationError(
                f'Invalid configuration for field "{name}": {e}',
                "validate_configuration",
                name,
                cause=e,
            ).with_context(table=table.key) from e
        run = _Reconciliation(table, config, opts)

        with LogContext(table=table.key, field=config.name):
            try:
                result = self._reconcile(run, cancel)
            except Exception as e:
                if not run.state.is_terminal:
                    run.advance(ReconcileState.FAILED)
                # Lookup retries still count when the run ends in a rejection
                if isinstance(e, FieldSyncError):
                    e.retry_count = max(getattr(e, "retry_count", 0), run.retry_count)
                elapsed = run.elapsed_ms()
                self._stats.record_failure(elapsed)
                logger.error(
                    "reconcile.failed",
                    state=run.state.value,
                    error=str(e),
                    error_type=type(e).__name__,
                    retry_count=getattr(e, "retry_count", run.retry_count),
                    processing_time_ms=round(elapsed, 2),
                )
                raise

            self._stats.record_success(result.operation, result.processing_time_ms)
            logger.info(
                f"reconcile.{result.operation.value}",
                field_id=result.field.id,
                changes=len(result.changes),
                warnings=len(result.warnings),
                cache_hit=result.metadata.cache_hit,
                api_call_count=result.metadata.api_call_count,
                retry_count=result.metadata.retry_count,
                processing_time_ms=round(result.processing_time_ms, 2),
            )
            return result

    def _reconcile(self, run: _Reconciliation, cancel: CancellationToken | None) -> OperationResult:
        table, config, opts = run.table, run.config, run.options

        live = self._locate(run, cancel)

        if live is None:
            run.advance(ReconcileState.ABSENT)
            if opts.strategy is OperationStrategy.UPDATE_ONLY:
                run.advance(ReconcileState.REJECTED)
                raise FieldNotFoundError(config.name, table.key, retry_count=run.retry_count)
            created = self._mutate(
                run, "create", lambda: self.gateway.create_field(table, config), cancel
            )
            run.advance(ReconcileState.CREATED)
            return run.result(created, OperationType.CREATED)

        run.advance(ReconcileState.PRESENT)
        if opts.strategy is OperationStrategy.CREATE_ONLY:
            run.advance(ReconcileState.REJECTED)
            raise FieldOperationError(
                f'Field "{config.name}" already exists; create_only forbids reusing it',
                "create",
                config.name,
                retry_count=run.retry_count,
            ).with_context(table=table.key)

        analysis = self.analyzer.analyze(live, config)
        if analysis.is_full_match:
            run.advance(ReconcileState.MATCHED)
            run.advance(ReconcileState.UNCHANGED)
            return run.result(live, OperationType.UNCHANGED)

        run.advance(ReconcileState.MISMATCHED)
        differences = analysis.differences
        if opts.enable_detailed_logging:
            logger.debug(
                "reconcile.mismatch",
                differences=[d.property for d in differences],
                match_score=analysis.match_score,
                recommended_action=analysis.recommended_action.value,
            )

        if opts.conflict_resolution is ConflictResolution.THROW_ERROR:
            run.advance(ReconcileState.REJECTED)
            raise ConfigurationMismatchError(
                differences, config.name, retry_count=run.retry_count
            ).with_context(table=table.key)

        if opts.conflict_resolution is ConflictResolution.SKIP_OPERATION:
            run.advance(ReconcileState.SKIPPED)
            run.warnings.append(
                f'Update skipped for field "{config.name}": '
                f"{len(differences)} difference(s) left in place "
                f"({', '.join(d.property for d in differences)})"
            )
            run.advance(ReconcileState.UNCHANGED)
            return run.result(live, OperationType.UNCHANGED, differences)

        run.advance(ReconcileState.UPDATING)
        if analysis.recommended_action is RecommendedAction.RECREATE_FIELD:
            run.warnings.append(
                f'Field "{config.name}" has critical differences '
                f"({', '.join(d.property for d in analysis.critical_differences)}); "
                "recreating it is recommended, updated in place instead"
            )
        updated = self._mutate(
            run, "update", lambda: self.gateway.update_field(table, live.id, config), cancel
        )
        run.advance(ReconcileState.UPDATED)
        return run.result(updated, OperationType.UPDATED, differences)

    def _locate(
        self,
        run: _Reconciliation,
        cancel: CancellationToken | None,
    ) -> FieldDescriptor | None:
        table, name = run.table, run.config.name
        run.api_call_count += 1

        if not run.options.skip_cache:
            cached = self.cache.get(table)
            hit = _by_name(cached, name) if cached is not None else None
            if hit is not None:
                run.cache_hit = True
                if run.options.enable_detailed_logging:
                    logger.debug("reconcile.cache_hit", field_id=hit.id)
                return hit

        fields = self._call(
            run, "lookup", lambda: self.gateway.list_fields(table), cancel
        )
        self.cache.put(table, fields)
        return _by_name(fields, name)

    def _mutate(
        self,
        run: _Reconciliation,
        operation: str,
        func: Callable[[], FieldDescriptor],
        cancel: CancellationToken | None,
    ) -> FieldDescriptor:
        run.api_call_count += 1
        field = self._call(run, operation, func, cancel)
        if not self.cache.invalidate(run.table):
            run.warnings.append(
                f'Cache invalidation failed for table "{run.table.key}"; '
                "cached fields may be stale"
            )
        return field

    def _call(
        self,
        run: _Reconciliation,
        operation: str,
        func: Callable[[], T],
        cancel: CancellationToken | None,
    ) -> T:
        value, retries = self._retrying(
            func,
            operation=operation,
            table=run.table,
            field_name=run.config.name,
            max_retries=run.options.max_retries,
            cancel=cancel,
            prior_retries=run.retry_count,
        )
        run.retry_count += retries
        return value

    def _retrying(
        self,
        func: Callable[[], T],
        *,
        operation: str,
        table: TableRef,
        field_name: str | None,
        max_retries: int,
        cancel: CancellationToken | None = None,
        prior_retries: int = 0,
    ) -> tuple[T, int]:
        ctx = RetryContext(
            strategy=ExponentialBackoff(
                max_attempts=max(1, max_retries),
                base_delay=self.retry_base_delay_ms / 1000.0,
                max_delay=float("inf"),
            ),
            cancel=cancel,
            sleep=self._sleep,
            operation=operation,
        )
        try:
            return ctx.run(func), ctx.retries
        except OperationCancelledError as e:
            e.retry_count = prior_retries + ctx.retries
            raise
        except Exception as e:
            subject = f'field "{field_name}"' if field_name else f'table "{table.key}"'
            raise FieldOperationError(
                f"Failed to {operation} {subject}: {e}",
                operation,
                field_name,
                cause=e,
                retry_count=prior_retries + ctx.retries,
            ).with_context(table=table.key) from e

    # ── Read-only helpers ────────────────────────────────────────────

    def list_fields(self, table: TableRef, *, skip_cache: bool = False) -> list[FieldDescriptor]:
        """Live fields of ``table``, from the cache snapshot when allowed."""
        if not skip_cache:
            cached = self.cache.get(table)
            if cached is not None:
                return cached
        fields, _ = self._retrying(
            lambda: self.gateway.list_fields(table),
            operation="lookup",
            table=table,
            field_name=None,
            max_retries=self.max_retries,
        )
        self.cache.put(table, fields)
        return fields

    def find_by_name(
        self,
        table: TableRef,
        name: str,
        *,
        skip_cache: bool = False,
    ) -> FieldDescriptor | None:
        """Exact-name lookup. A snapshot that lacks the name is refetched."""
        if not skip_cache:
            hit = self.cache.find(table, name)
            if hit is not None:
                return hit
        return _by_name(self.list_fields(table, skip_cache=True), name)

    def analyze(self, live: FieldDescriptor, desired: FieldConfiguration) -> MatchAnalysis:
        return self.analyzer.analyze(live, desired)

    def preview(
        self,
        table: TableRef,
        desired_list: Iterable[FieldConfiguration | Mapping[str, Any]],
        options: OperationOptions | Mapping[str, Any] | None = None,
    ) -> list[PlannedOperation]:
        """Dry run: what ``ensure_field_configuration`` would do for each item.

        Performs one lookup for the whole list and never mutates.
        """
        opts = resolve_options(options)
        fields = self.list_fields(table, skip_cache=opts.skip_cache)
        by_name = {f.name: f for f in fields}

        plans = []
        for desired in desired_list:
            try:
                config = coerce_configuration(desired)
            except ValueError as e:
                plans.append(
                    PlannedOperation(
                        field_name=configuration_name(desired),
                        action=PlannedAction.ERROR,
                        reason=f"Invalid configuration: {e}",
                    )
                )
                continue
            plans.append(self._plan(by_name.get(config.name), config, opts, table))

        logger.info(
            "reconcile.preview",
            table=table.key,
            total=len(plans),
            actions={a.value: sum(1 for p in plans if p.action is a) for a in PlannedAction},
        )
        return plans

    def _plan(
        self,
        live: FieldDescriptor | None,
        config: FieldConfiguration,
        opts: OperationOptions,
        table: TableRef,
    ) -> PlannedOperation:
        name = config.name
        if live is None:
            if opts.strategy is OperationStrategy.UPDATE_ONLY:
                return PlannedOperation(
                    field_name=name,
                    action=PlannedAction.ERROR,
                    reason=str(FieldNotFoundError(name, table.key)),
                )
            return PlannedOperation(field_name=name, action=PlannedAction.CREATE, reason="field is absent")

        if opts.strategy is OperationStrategy.CREATE_ONLY:
            return PlannedOperation(
                field_name=name,
                action=PlannedAction.ERROR,
                reason="field exists and create_only forbids reusing it",
            )

        analysis = self.analyzer.analyze(live, config)
        if analysis.is_full_match:
            return PlannedOperation(
                field_name=name,
                action=PlannedAction.UNCHANGED,
                analysis=analysis,
                reason="configuration matches",
            )

        summary = ", ".join(d.property for d in analysis.differences)
        if opts.conflict_resolution is ConflictResolution.THROW_ERROR:
            action, reason = PlannedAction.ERROR, f"mismatch would be rejected: {summary}"
        elif opts.conflict_resolution is ConflictResolution.SKIP_OPERATION:
            action, reason = PlannedAction.SKIP, f"mismatch would be left in place: {summary}"
        else:
            action, reason = PlannedAction.UPDATE, f"would update: {summary}"
        return PlannedOperation(field_name=name, action=action, analysis=analysis, reason=reason)

    # ── Health ───────────────────────────────────────────────────────

    def health_check(self, table: TableRef | None = None) -> HealthReport:
        """Probe the cache backend and, when ``table`` is given, the remote API.

        Status is ``unhealthy`` when the API probe fails, ``degraded`` when
        only the cache fails, ``healthy`` otherwise.
        """
        cache_ok = self._probe_cache()

        api_ok: bool | None = None
        if table is not None:
            try:
                self.gateway.list_fields(table)
                api_ok = True
            except Exception as e:
                logger.warning("health.api_unreachable", table=table.key, error=str(e))
                api_ok = False

        if api_ok is False:
            status = "unhealthy"
        elif not cache_ok:
            status = "degraded"
        else:
            status = "healthy"

        report = HealthReport(
            status=status,
            api_connectivity=api_ok,
            cache_connectivity=cache_ok,
            last_successful_operation=self._stats.last_success,
        )
        logger.info("health.checked", status=status, api=api_ok, cache=cache_ok)
        return report

    def _probe_cache(self) -> bool:
        backend = self.cache.backend
        key = f"{self.cache.key_prefix}__health__"
        probe = {"probe": time.time()}
        try:
            backend.set(key, probe, ttl_seconds=10)
            ok = backend.get(key) == probe
            backend.delete(key)
        except Exception as e:
            logger.warning("health.cache_unreachable", error=str(e))
            return False
        return ok


__all__ = [
    "ReconcileState",
    "RECONCILE_VALID_TRANSITIONS",
    "InvalidTransitionError",
    "validate_reconcile_transition",
    "ReconciliationEngine",
    "coerce_configuration",
    "configuration_name",
]

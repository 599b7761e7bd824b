"""
Root Typer application for the fieldsync CLI.

Commands::

    fieldsync fields --table APP:TABLE [--json]
    fieldsync plan FILE --table APP:TABLE [--strategy] [--conflict] [--json]
    fieldsync ensure FILE --table APP:TABLE [--strategy] [--conflict]
                     [--delay-ms] [--max-retries] [--json]

Connection and defaults come from ``FIELDSYNC_*`` settings.
"""

from __future__ import annotations

from pathlib import Path

import typer
from typer import Typer

from fieldsync.cli.utils import (
    fail,
    load_configurations,
    parse_table,
    print_batch,
    print_fields,
    print_json,
    print_plan,
)
from fieldsync.core.errors import FieldSyncError
from fieldsync.core.logging import configure_logging
from fieldsync.core.settings import get_settings
from fieldsync.factory import build_engine
from fieldsync.models import ConflictResolution, OperationStrategy, TableRef
from fieldsync.reconcile.batch import BatchCoordinator

app = Typer(
    name="fieldsync",
    help="fieldsync - converge remote table fields onto a declared schema.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        from importlib.metadata import PackageNotFoundError
        from importlib.metadata import version as pkg_version

        try:
            v = pkg_version("fieldsync")
        except PackageNotFoundError:
            v = "unknown"
        typer.echo(f"fieldsync {v}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    log_level: str | None = typer.Option(
        None, "--log-level", help="Override FIELDSYNC_LOG_LEVEL (DEBUG, INFO, ...)."
    ),
) -> None:
    """fieldsync CLI - inspect, plan and apply field configurations."""
    settings = get_settings()
    configure_logging(log_level or settings.log_level, json_format=settings.json_logs)


# ── Shared options ───────────────────────────────────────────────────────

TableOption = typer.Option(
    ..., "--table", "-t", parser=parse_table, help="Target table as APP_TOKEN:TABLE_ID."
)
StrategyOption = typer.Option(
    OperationStrategy.ENSURE_CORRECT.value,
    "--strategy",
    "-s",
    help="create_only | update_only | ensure_correct",
)
ConflictOption = typer.Option(
    ConflictResolution.UPDATE_EXISTING.value,
    "--conflict",
    "-c",
    help="update_existing | throw_error | skip_operation",
)
JsonOption = typer.Option(False, "--json", help="Emit JSON instead of tables.")
FileArgument = typer.Argument(
    ..., exists=True, dir_okay=False, readable=True, help="JSON or YAML field list."
)


# ── Commands ─────────────────────────────────────────────────────────────


@app.command("fields")
def list_fields(
    table: TableRef = TableOption,
    json_out: bool = JsonOption,
) -> None:
    """List the live fields of a table."""
    try:
        with build_engine() as engine:
            fields = engine.list_fields(table, skip_cache=True)
    except FieldSyncError as e:
        raise fail(e) from e

    if json_out:
        print_json(fields)
    else:
        print_fields(fields, title=f"Fields of {table}")


@app.command("plan")
def plan(
    file: Path = FileArgument,
    table: TableRef = TableOption,
    strategy: str = StrategyOption,
    conflict: str = ConflictOption,
    json_out: bool = JsonOption,
) -> None:
    """Dry run: show what ``ensure`` would do, without changing anything."""
    configs = load_configurations(file)
    try:
        with build_engine() as engine:
            plans = engine.preview(
                table,
                configs,
                {"strategy": strategy, "conflict_resolution": conflict, "skip_cache": True},
            )
    except FieldSyncError as e:
        raise fail(e) from e

    if json_out:
        print_json(plans)
    else:
        print_plan(plans, title=f"Plan for {table}")


@app.command("ensure")
def ensure(
    file: Path = FileArgument,
    table: TableRef = TableOption,
    strategy: str = StrategyOption,
    conflict: str = ConflictOption,
    delay_ms: int | None = typer.Option(
        None, "--delay-ms", help="Pause between fields (default FIELDSYNC_OPERATION_DELAY_MS)."
    ),
    max_retries: int | None = typer.Option(
        None, "--max-retries", help="Attempts per remote call (default FIELDSYNC_MAX_RETRIES)."
    ),
    json_out: bool = JsonOption,
) -> None:
    """Create or update fields until the table matches FILE.

    Exits with code 1 when any field failed.
    """
    settings = get_settings()
    configs = load_configurations(file)
    options = {
        "strategy": strategy,
        "conflict_resolution": conflict,
        "operation_delay_ms": settings.operation_delay_ms if delay_ms is None else delay_ms,
        "max_retries": settings.max_retries if max_retries is None else max_retries,
    }
    try:
        with build_engine(settings) as engine:
            batch = BatchCoordinator(engine).ensure_many(table, configs, options)
    except FieldSyncError as e:
        raise fail(e) from e

    if json_out:
        print_json(batch)
    else:
        print_batch(batch, title=f"Ensure {table}")

    if not batch.succeeded:
        raise typer.Exit(code=1)

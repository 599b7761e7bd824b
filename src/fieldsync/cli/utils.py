"""
CLI utility helpers - input loading and output formatting.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import typer
from pydantic import BaseModel
from rich.console import Console
from rich.table import Table

from fieldsync.core.errors import FieldSyncError
from fieldsync.models import (
    BatchResult,
    FieldConfiguration,
    FieldDescriptor,
    PlannedOperation,
    TableRef,
)

console = Console()
err_console = Console(stderr=True)


# ── Input helpers ────────────────────────────────────────────────────────


def parse_table(value: str) -> TableRef:
    """Typer parser for ``--table APP_TOKEN:TABLE_ID``."""
    try:
        return TableRef.parse(value)
    except ValueError as e:
        raise typer.BadParameter(str(e)) from e


def load_configurations(path: Path) -> list[FieldConfiguration]:
    """Read desired field configurations from a JSON or YAML file.

    The document is either a list of configurations or a mapping with a
    ``fields`` list. Entries may use wire names (``field_name``, ``type``,
    ``property``) or model names (``name``, ``type_code``, ``properties``).
    """
    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() in (".yaml", ".yml"):
        import yaml

        try:
            document = yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise typer.BadParameter(f"{path}: {e}") from e
    else:
        try:
            document = json.loads(text)
        except ValueError as e:
            raise typer.BadParameter(f"{path}: {e}") from e

    if isinstance(document, dict):
        document = document.get("fields")
    if not isinstance(document, list):
        raise typer.BadParameter(
            f"{path} must contain a list of fields or a mapping with a 'fields' list"
        )
    try:
        return [FieldConfiguration.model_validate(item) for item in document]
    except ValueError as e:
        raise typer.BadParameter(f"{path}: {e}") from e


# ── Output helpers ───────────────────────────────────────────────────────


def _to_dict(obj: Any) -> Any:
    if isinstance(obj, BaseModel):
        return obj.model_dump(mode="json")
    return obj


def print_json(data: Any) -> None:
    if isinstance(data, list | tuple):
        payload = [_to_dict(d) for d in data]
    else:
        payload = _to_dict(data)
    console.print_json(json.dumps(payload, default=str))


def fail(error: FieldSyncError) -> typer.Exit:
    """Print ``error`` and return the exit to raise."""
    err_console.print(f"[bold red]Error[/bold red] ({error.category.value}): {error.message}")
    return typer.Exit(code=1)


def print_fields(fields: list[FieldDescriptor], *, title: str = "") -> None:
    if not fields:
        console.print("[dim]No fields.[/dim]")
        return
    table = Table(title=title or None, show_lines=False, pad_edge=False)
    for column in ("id", "name", "type", "ui_type", "primary", "description"):
        table.add_column(column, overflow="fold")
    for f in fields:
        table.add_row(
            f.id,
            f.name,
            str(f.type_code),
            f.ui_type,
            "yes" if f.is_primary else "",
            f.description or "",
        )
    console.print(table)


def print_plan(plans: list[PlannedOperation], *, title: str = "") -> None:
    if not plans:
        console.print("[dim]Nothing to do.[/dim]")
        return
    styles = {"create": "green", "update": "yellow", "skip": "cyan", "error": "red"}
    table = Table(title=title or None, show_lines=False, pad_edge=False)
    for column in ("field", "action", "score", "reason"):
        table.add_column(column, overflow="fold")
    for plan in plans:
        style = styles.get(plan.action.value, "dim")
        score = f"{plan.analysis.match_score:.2f}" if plan.analysis else ""
        table.add_row(plan.field_name, f"[{style}]{plan.action.value}[/{style}]", score, plan.reason)
    console.print(table)


def print_batch(batch: BatchResult, *, title: str = "") -> None:
    table = Table(title=title or None, show_lines=False, pad_edge=False)
    for column in ("field", "outcome", "changes", "retries", "ms", "notes"):
        table.add_column(column, overflow="fold")
    for r in batch.results:
        table.add_row(
            r.field.name,
            r.operation.value,
            ", ".join(c.property for c in r.changes),
            str(r.metadata.retry_count),
            f"{r.processing_time_ms:.0f}",
            "; ".join(r.warnings),
        )
    for failure in batch.failures:
        table.add_row(
            failure.field_name,
            "[red]failed[/red]",
            "",
            str(failure.retry_count),
            "",
            failure.error,
        )
    console.print(table)

    s = batch.summary
    console.print(
        f"\n[bold]{s.total}[/bold] field(s): "
        f"[green]{s.created} created[/green], [yellow]{s.updated} updated[/yellow], "
        f"{s.unchanged} unchanged, [red]{s.failed} failed[/red] "
        f"[dim]({batch.total_execution_time_ms:.0f} ms)[/dim]"
    )

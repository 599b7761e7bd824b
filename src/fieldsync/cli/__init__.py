"""
CLI layer for fieldsync.

Provides a Typer application whose commands delegate to the reconciliation
engine. All business logic lives in ``fieldsync.reconcile``; this package
handles only terminal transport: argument parsing, file loading, coloured
output and table formatting.

Entry point::

    fieldsync --help
"""

from fieldsync.cli.app import app

__all__ = ["app"]

"""Allow ``python -m fieldsync``."""

from fieldsync.cli.app import app

app()

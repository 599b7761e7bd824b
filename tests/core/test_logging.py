"""Tests for fieldsync.core.logging."""

import json

import pytest

from fieldsync.core.logging import (
    LogContext,
    bind_context,
    clear_context,
    configure_logging,
    get_logger,
)


@pytest.fixture(autouse=True)
def _reset_logging():
    yield
    clear_context()
    configure_logging("CRITICAL", json_format=True)


def last_record(capsys):
    lines = [line for line in capsys.readouterr().err.splitlines() if line.strip()]
    return json.loads(lines[-1])


class TestConfigureLogging:
    """JSON rendering and level filtering."""

    def test_json_records_are_ecs_compatible(self, capsys):
        configure_logging("INFO", json_format=True, service="fieldsync-test")
        get_logger(__name__).info("reconcile.created", field_id="fld1")

        record = last_record(capsys)
        assert record["event"] == "reconcile.created"
        assert record["field_id"] == "fld1"
        assert record["log.level"] == "info"
        assert record["service.name"] == "fieldsync-test"
        assert "@timestamp" in record

    def test_level_filtering(self, capsys):
        configure_logging("WARNING", json_format=True)
        get_logger(__name__).info("hidden")
        assert capsys.readouterr().err == ""

    def test_console_renderer(self, capsys):
        configure_logging("INFO", json_format=False)
        get_logger(__name__).info("batch.start", total=3)
        assert "batch.start" in capsys.readouterr().err


class TestContext:
    """Context binding."""

    def test_log_context_scoped(self, capsys):
        configure_logging("INFO", json_format=True)
        logger = get_logger(__name__)
        with LogContext(table="app:tbl", field="Status"):
            logger.info("inside")
            inside = last_record(capsys)
        logger.info("outside")
        outside = last_record(capsys)

        assert inside["table"] == "app:tbl"
        assert inside["field"] == "Status"
        assert "table" not in outside

    def test_bind_and_clear(self, capsys):
        configure_logging("INFO", json_format=True)
        bind_context(batch_id="b-1")
        get_logger(__name__).info("bound")
        assert last_record(capsys)["batch_id"] == "b-1"
        clear_context()
        get_logger(__name__).info("cleared")
        assert "batch_id" not in last_record(capsys)

"""
Shared pytest fixtures for fieldsync tests.

This module provides:
- A table reference and an in-memory gateway seeded per test
- An engine and batch coordinator whose sleeps are recorded, never waited
- Sample field configurations used across the reconcile tests

Usage:
    def test_something(engine, gateway, table):
        gateway.seed(table, [...])
        result = engine.ensure_field_configuration(table, config)
"""

from __future__ import annotations

import os

import pytest

from fieldsync.core.cache import InMemoryCache
from fieldsync.core.settings import get_settings
from fieldsync.gateway.memory import InMemoryFieldGateway
from fieldsync.models import FieldConfiguration, FieldDescriptor, TableRef
from fieldsync.reconcile.batch import BatchCoordinator
from fieldsync.reconcile.descriptor_cache import FieldDescriptorCache
from fieldsync.reconcile.engine import ReconciliationEngine


class SleepRecorder:
    """Stand-in for time.sleep that records requested delays."""

    def __init__(self) -> None:
        self.calls: list[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture(autouse=True)
def _fresh_settings(monkeypatch: pytest.MonkeyPatch):
    """Isolate tests from FIELDSYNC_* variables and the settings cache."""
    for key in list(os.environ):
        if key.startswith("FIELDSYNC_"):
            monkeypatch.delenv(key, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def table() -> TableRef:
    return TableRef(app_token="bascnTest", table_id="tblBooks")


@pytest.fixture
def gateway() -> InMemoryFieldGateway:
    return InMemoryFieldGateway()


@pytest.fixture
def sleeper() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def descriptor_cache() -> FieldDescriptorCache:
    return FieldDescriptorCache(InMemoryCache())


@pytest.fixture
def engine(gateway, descriptor_cache, sleeper) -> ReconciliationEngine:
    return ReconciliationEngine(
        gateway,
        descriptor_cache,
        retry_base_delay_ms=100,
        sleep=sleeper,
    )


@pytest.fixture
def coordinator(engine, sleeper) -> BatchCoordinator:
    return BatchCoordinator(engine, sleep=sleeper)


@pytest.fixture
def status_config() -> FieldConfiguration:
    return FieldConfiguration(
        name="Status",
        type_code=3,
        ui_type="SingleSelect",
        properties={"options": [{"name": "Want"}, {"name": "Read"}]},
    )


@pytest.fixture
def live_status() -> FieldDescriptor:
    return FieldDescriptor(
        id="fldStatus",
        name="Status",
        type_code=3,
        ui_type="SingleSelect",
        properties={
            "options": [
                {"id": "optA", "name": "Want", "color": 0},
                {"id": "optB", "name": "Read", "color": 1},
            ]
        },
    )

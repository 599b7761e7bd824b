"""Tests for fieldsync.gateway.memory - the in-process gateway fake."""

import pytest

from fieldsync.core.errors import NetworkError, RemoteNotFoundError, RemoteValidationError
from fieldsync.gateway.base import RemoteFieldGateway
from fieldsync.gateway.memory import InMemoryFieldGateway
from fieldsync.models import FieldConfiguration


class TestInMemoryFieldGateway:
    """Behaviour close enough to the remote for engine tests."""

    def test_satisfies_protocol(self):
        assert isinstance(InMemoryFieldGateway(), RemoteFieldGateway)

    def test_create_assigns_ids_and_primary(self, gateway, table):
        first = gateway.create_field(table, FieldConfiguration(name="Title", type_code=1, ui_type="Text"))
        second = gateway.create_field(table, FieldConfiguration(name="Notes", type_code=1, ui_type="Text"))
        assert first.id == "fld00000001"
        assert first.is_primary
        assert second.id == "fld00000002"
        assert not second.is_primary
        assert [f.name for f in gateway.list_fields(table)] == ["Title", "Notes"]

    def test_select_options_get_server_keys(self, gateway, table, status_config):
        field = gateway.create_field(table, status_config)
        assert field.properties["options"] == [
            {"name": "Want", "id": "opt1", "color": 0},
            {"name": "Read", "id": "opt2", "color": 1},
        ]
        # The caller's configuration is not mutated
        assert status_config.properties["options"] == [{"name": "Want"}, {"name": "Read"}]

    def test_duplicate_name_rejected(self, gateway, table):
        config = FieldConfiguration(name="Title", type_code=1, ui_type="Text")
        gateway.create_field(table, config)
        with pytest.raises(RemoteValidationError):
            gateway.create_field(table, config)

    def test_update_replaces_field(self, gateway, table):
        created = gateway.create_field(table, FieldConfiguration(name="Notes", type_code=1, ui_type="Text"))
        updated = gateway.update_field(
            table,
            created.id,
            FieldConfiguration(name="Notes", type_code=1, ui_type="Text", description="new"),
        )
        assert updated.id == created.id
        assert gateway.fields(table)[0].description == "new"

    def test_update_missing_field(self, gateway, table):
        with pytest.raises(RemoteNotFoundError):
            gateway.update_field(
                table, "fldNope", FieldConfiguration(name="X", type_code=1, ui_type="Text")
            )

    def test_fail_next(self, gateway, table):
        gateway.fail_next("list_fields", NetworkError("reset"), times=2)
        for _ in range(2):
            with pytest.raises(NetworkError):
                gateway.list_fields(table)
        assert gateway.list_fields(table) == []
        assert gateway.call_count("list_fields") == 3

    def test_fail_next_unknown_method(self, gateway):
        with pytest.raises(ValueError):
            gateway.fail_next("delete_field", NetworkError("x"))

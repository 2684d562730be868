"""Unit tests for SchemaUtil."""

from __future__ import annotations

import pytest

from docker_mcp_cli.mcp_utils.schema_util import SchemaUtil
from docker_mcp_cli.registry import BOOLEAN, COMMAND, INTEGER, LIST, MAP, FieldSpec, build_alias_table

pytestmark = pytest.mark.unit


class TestFieldProperty:
    @pytest.mark.parametrize(
        ("kind", "schema_type"),
        [(BOOLEAN, "boolean"), (INTEGER, "integer"), (LIST, "array"), (COMMAND, "array"), (MAP, "object")],
    )
    def test_kinds(self, kind: str, schema_type: str):
        prop = SchemaUtil.field_property(FieldSpec(name="x", kind=kind, description="X"))
        assert prop["type"] == schema_type

    def test_string_is_default(self):
        assert SchemaUtil.field_property(FieldSpec(name="x", description="X")) == {"type": "string", "description": "X"}

    def test_map_values_are_strings(self):
        prop = SchemaUtil.field_property(FieldSpec(name="env", kind=MAP, description="Env"))
        assert prop["additionalProperties"] == {"type": "string"}

    def test_command_accepts_string_items(self):
        prop = SchemaUtil.field_property(FieldSpec(name="cmd", kind=COMMAND, description="Cmd"))
        assert prop["items"] == {"type": "string"}
        assert "split like a shell" in prop["description"]

    def test_choices_and_default(self):
        prop = SchemaUtil.field_property(FieldSpec(name="action", description="Action", choices=("list", "create"), default="list"))
        assert prop["enum"] == ["list", "create"]
        assert prop["default"] == "list"

    def test_required_when_is_described(self):
        spec = FieldSpec(name="networkName", description="Network", required_when=("action", ("create", "remove")))
        assert SchemaUtil.field_property(spec)["description"] == "Network (required when action is create/remove)"


class TestOperationSchema:
    def test_required_list(self):
        op = build_alias_table().get_operation("docker-inspect")
        schema = SchemaUtil.operation_schema(op)
        assert schema["required"] == ["objectType", "objectId"]

    def test_no_required_key_when_nothing_required(self):
        schema = SchemaUtil.operation_schema(build_alias_table().get_operation("docker-images"))
        assert "required" not in schema

    def test_execution_overrides_only_for_commands(self):
        table = build_alias_table()
        pull = SchemaUtil.operation_schema(table.get_operation("docker-pull"))
        assert pull["properties"]["timeout"]["type"] == "number"
        assert pull["properties"]["longRunning"]["type"] == "boolean"

        listing = SchemaUtil.operation_schema(table.get_operation("docker-list"))
        assert "timeout" not in listing["properties"]
        assert "longRunning" not in listing["properties"]

    def test_create_schema(self):
        assert SchemaUtil.create_schema({"a": {"type": "string"}}) == {"type": "object", "properties": {"a": {"type": "string"}}}

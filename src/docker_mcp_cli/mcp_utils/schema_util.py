"""JSON schema helpers for advertising docker operations as MCP tools."""

from __future__ import annotations

from typing import Any

from docker_mcp_cli.registry import BOOLEAN, COMMAND, INTEGER, LIST, MAP, FieldSpec, OperationSpec


class SchemaUtil:
    """Utility methods for creating MCP JSON schemas."""

    @staticmethod
    def string_property(description: str) -> dict[str, Any]:
        return {
            "type": "string",
            "description": description,
        }

    @staticmethod
    def boolean_property(description: str) -> dict[str, Any]:
        return {
            "type": "boolean",
            "description": description,
        }

    @staticmethod
    def integer_property(description: str) -> dict[str, Any]:
        return {
            "type": "integer",
            "description": description,
        }

    @staticmethod
    def number_property(description: str) -> dict[str, Any]:
        return {
            "type": "number",
            "description": description,
        }

    @staticmethod
    def array_property(description: str, items: dict[str, Any] | None = None) -> dict[str, Any]:
        schema: dict[str, Any] = {
            "type": "array",
            "description": description,
        }
        if items:
            schema["items"] = items
        return schema

    @staticmethod
    def object_property(description: str, properties: dict[str, Any] | None = None) -> dict[str, Any]:
        schema: dict[str, Any] = {
            "type": "object",
            "description": description,
        }
        if properties:
            schema["properties"] = properties
        return schema

    @staticmethod
    def enum_property(description: str, enum_values: list[str]) -> dict[str, Any]:
        return {
            "type": "string",
            "description": description,
            "enum": enum_values,
        }

    @staticmethod
    def create_schema(
        properties: dict[str, Any],
        required: list[str] | None = None,
    ) -> dict[str, Any]:
        """Create a complete JSON schema."""
        schema: dict[str, Any] = {
            "type": "object",
            "properties": properties,
        }
        if required:
            schema["required"] = required
        return schema

    @staticmethod
    def field_property(spec: FieldSpec) -> dict[str, Any]:
        """Schema for one FieldSpec."""
        description = spec.description
        if spec.required_when is not None:
            selector, values = spec.required_when
            description += f" (required when {selector} is {'/'.join(values)})"

        if spec.choices is not None:
            prop = SchemaUtil.enum_property(description, list(spec.choices))
        elif spec.kind == BOOLEAN:
            prop = SchemaUtil.boolean_property(description)
        elif spec.kind == INTEGER:
            prop = SchemaUtil.integer_property(description)
        elif spec.kind == LIST:
            prop = SchemaUtil.array_property(description, {"type": "string"})
        elif spec.kind == MAP:
            prop = SchemaUtil.object_property(description)
            prop["additionalProperties"] = {"type": "string"}
        elif spec.kind == COMMAND:
            prop = SchemaUtil.array_property(f"{description} (a single string is split like a shell would)", {"type": "string"})
        else:
            prop = SchemaUtil.string_property(description)

        if spec.default is not None:
            prop["default"] = spec.default
        return prop

    @staticmethod
    def operation_schema(op: OperationSpec) -> dict[str, Any]:
        """Input schema for an operation, including the execution overrides."""
        properties = {spec.name: SchemaUtil.field_property(spec) for spec in op.fields}
        if not op.local:
            properties["timeout"] = SchemaUtil.number_property("Timeout in seconds; may only lower the default unless longRunning is set")
            properties["longRunning"] = SchemaUtil.boolean_property("Allow a timeout above the operation default")
        return SchemaUtil.create_schema(properties, [spec.name for spec in op.fields if spec.required])

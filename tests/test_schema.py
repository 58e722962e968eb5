"""
Tests for translating pydantic input models into tool input schemas.
"""

from enum import Enum
from typing import Annotated, Literal

import pytest
from pydantic import BaseModel, Field

from context_manager.framework.errors import UnsupportedSchemaError
from context_manager.framework.skills import NoArguments, ToolDefinition
from context_manager.framework.skills.schema import (
    ArrayNode,
    NumberNode,
    ObjectNode,
    StringNode,
    build_node,
    object_node_from_model,
    to_json_schema,
)


class Priority(str, Enum):
    LOW = "low"
    HIGH = "high"


class Address(BaseModel):
    city: str


class RichInput(BaseModel):
    title: str = Field(..., description="Task title")
    count: int = 1
    ratio: float | None = None
    done: bool = False
    tags: list[str] = Field(default_factory=list)
    priority: Priority = Priority.LOW
    file: Literal["TODO.md", "TODO-NEXT.md"] | None = None
    address: Address | None = None
    extra: dict[str, str] = Field(default_factory=dict)
    note: Annotated[str, "metadata"] = ""


class TestBuildNode:
    """Test annotation-to-node translation."""

    def test_bool_is_not_treated_as_integer(self) -> None:
        """Test that bool maps to boolean even though it subclasses int."""
        assert to_json_schema(build_node(bool)) == {"type": "boolean"}
        assert build_node(int) == NumberNode(integer=True)

    def test_literal_becomes_string_enum(self) -> None:
        """Test that string Literals become enums."""
        node = build_node(Literal["a", "b"])
        assert node == StringNode(enum=("a", "b"))

    def test_list_items(self) -> None:
        """Test that list element types are carried over."""
        node = build_node(list[int])
        assert isinstance(node, ArrayNode)
        assert to_json_schema(node) == {"type": "array", "items": {"type": "integer"}}

    def test_unsupported_union_rejected(self) -> None:
        """Test that multi-member unions are rejected."""
        with pytest.raises(UnsupportedSchemaError, match="Union"):
            build_node(int | str, field_name="value")

    def test_unsupported_type_rejected(self) -> None:
        """Test that arbitrary classes are rejected."""
        with pytest.raises(UnsupportedSchemaError):
            build_node(bytes)


class TestObjectSchema:
    """Test model-to-schema translation."""

    def test_rich_model(self) -> None:
        """Test a model covering every supported field kind."""
        schema = to_json_schema(object_node_from_model(RichInput))

        assert schema["type"] == "object"
        assert schema["required"] == ["title"]
        props = schema["properties"]
        assert props["title"] == {"type": "string", "description": "Task title"}
        assert props["count"] == {"type": "integer"}
        assert props["ratio"] == {"type": "number"}
        assert props["done"] == {"type": "boolean"}
        assert props["tags"] == {"type": "array", "items": {"type": "string"}}
        assert props["priority"] == {"type": "string", "enum": ["low", "high"]}
        assert props["file"] == {"type": "string", "enum": ["TODO.md", "TODO-NEXT.md"]}
        assert props["address"] == {
            "type": "object",
            "properties": {"city": {"type": "string"}},
            "required": ["city"],
        }
        assert props["extra"] == {"type": "object", "properties": {}}
        assert props["note"] == {"type": "string"}

    def test_empty_model_has_no_required_key(self) -> None:
        """Test that a model without fields renders without 'required'."""
        assert to_json_schema(object_node_from_model(NoArguments)) == {
            "type": "object",
            "properties": {},
        }

    def test_aliases_are_used_as_property_names(self) -> None:
        """Test that field aliases name the properties."""

        class Aliased(BaseModel):
            file_name: str = Field(..., alias="fileName")

        node = object_node_from_model(Aliased)
        assert isinstance(node, ObjectNode)
        assert list(node.properties) == ["fileName"]
        assert node.required == ("fileName",)

    def test_tool_definition_rejects_unsupported_schema(self) -> None:
        """Test that schema problems surface when the tool is declared."""

        class Bad(BaseModel):
            blob: bytes

        with pytest.raises(UnsupportedSchemaError):
            ToolDefinition("bad", "bad tool", Bad)

    def test_tool_definition_requires_model_class(self) -> None:
        """Test that a non-model input schema is rejected."""
        with pytest.raises(UnsupportedSchemaError, match="pydantic model class"):
            ToolDefinition("bad", "bad tool", {"type": "object"})  # type: ignore[arg-type]

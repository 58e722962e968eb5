"""
Tool input schema description.

Tool inputs are declared as pydantic models. Remote callers need a
JSON-Schema-like description of those models, so each model is translated
into a small closed set of schema nodes:

- ObjectNode: nested models and free-form mappings
- StringNode: ``str``, string ``Literal`` values and string enums
- NumberNode: ``int`` (integer) and ``float``
- BooleanNode: ``bool``
- ArrayNode: ``list``, ``tuple``, ``set`` and ``frozenset``

Translation dispatches on the annotation type and rejects anything outside
that set with ``UnsupportedSchemaError``, so a bad schema surfaces when the
tool is defined rather than when a client lists tools.
"""

import enum
import inspect
import types
from dataclasses import dataclass, field
from typing import Annotated, Any, Literal, Union, get_args, get_origin

from pydantic import BaseModel

from context_manager.framework.errors import UnsupportedSchemaError

_ARRAY_ORIGINS = (list, tuple, set, frozenset)


@dataclass(frozen=True)
class StringNode:
    description: str | None = None
    enum: tuple[str, ...] | None = None


@dataclass(frozen=True)
class NumberNode:
    description: str | None = None
    integer: bool = False


@dataclass(frozen=True)
class BooleanNode:
    description: str | None = None


@dataclass(frozen=True)
class ArrayNode:
    items: "SchemaNode | None" = None
    description: str | None = None


@dataclass(frozen=True)
class ObjectNode:
    properties: dict[str, "SchemaNode"] = field(default_factory=dict)
    required: tuple[str, ...] = ()
    description: str | None = None


SchemaNode = StringNode | NumberNode | BooleanNode | ArrayNode | ObjectNode


def _strip_optional(annotation: Any, field_name: str | None) -> Any:
    """Unwrap ``Annotated[...]`` and ``X | None`` down to the inner type."""
    origin = get_origin(annotation)
    if origin is Annotated:
        return _strip_optional(get_args(annotation)[0], field_name)
    if origin is Union or origin is types.UnionType:
        members = [arg for arg in get_args(annotation) if arg is not type(None)]
        if len(members) != 1:
            msg = f"Union types are not supported in tool schemas: {annotation!r}"
            raise UnsupportedSchemaError(msg, field=field_name)
        return _strip_optional(members[0], field_name)
    return annotation


def build_node(
    annotation: Any, description: str | None = None, field_name: str | None = None
) -> SchemaNode:
    """
    Translate a type annotation into a schema node.

    Args:
        annotation: Field annotation from a pydantic model
        description: Optional field description to carry over
        field_name: Field name, used in error messages

    Returns:
        The matching schema node

    Raises:
        UnsupportedSchemaError: If the annotation is outside the supported set
    """
    annotation = _strip_optional(annotation, field_name)
    origin = get_origin(annotation)

    if origin is Literal:
        values = get_args(annotation)
        if all(isinstance(value, str) for value in values):
            return StringNode(description=description, enum=tuple(values))
        msg = f"Only string Literal values are supported: {annotation!r}"
        raise UnsupportedSchemaError(msg, field=field_name)

    if origin in _ARRAY_ORIGINS:
        args = [arg for arg in get_args(annotation) if arg is not Ellipsis]
        items = build_node(args[0], field_name=field_name) if args else None
        return ArrayNode(items=items, description=description)

    if origin is dict:
        return ObjectNode(description=description)

    if not inspect.isclass(annotation):
        msg = f"Unsupported type in tool schema: {annotation!r}"
        raise UnsupportedSchemaError(msg, field=field_name)

    # bool before int: bool is an int subclass
    if issubclass(annotation, bool):
        return BooleanNode(description=description)
    if issubclass(annotation, enum.Enum):
        values = [member.value for member in annotation]
        if all(isinstance(value, str) for value in values):
            return StringNode(description=description, enum=tuple(values))
        msg = f"Only string-valued enums are supported: {annotation.__name__}"
        raise UnsupportedSchemaError(msg, field=field_name)
    if issubclass(annotation, str):
        return StringNode(description=description)
    if issubclass(annotation, int):
        return NumberNode(description=description, integer=True)
    if issubclass(annotation, float):
        return NumberNode(description=description)
    if issubclass(annotation, _ARRAY_ORIGINS):
        return ArrayNode(description=description)
    if issubclass(annotation, dict):
        return ObjectNode(description=description)
    if issubclass(annotation, BaseModel):
        return object_node_from_model(annotation, description=description)

    msg = f"Unsupported type in tool schema: {annotation.__name__}"
    raise UnsupportedSchemaError(msg, field=field_name)


def object_node_from_model(
    model: type[BaseModel], description: str | None = None
) -> ObjectNode:
    """
    Translate a pydantic model into an ObjectNode.

    Field aliases are used as property names, since validation accepts the
    aliased keys. A field is required when the model declares no default.

    Args:
        model: Pydantic model class
        description: Optional description for the object itself

    Returns:
        ObjectNode with properties in declaration order
    """
    properties: dict[str, SchemaNode] = {}
    required: list[str] = []
    for name, info in model.model_fields.items():
        key = info.alias or name
        properties[key] = build_node(info.annotation, info.description, field_name=key)
        if info.is_required():
            required.append(key)
    return ObjectNode(properties=properties, required=tuple(required), description=description)


def to_json_schema(node: SchemaNode) -> dict[str, Any]:
    """
    Render a schema node in the protocol's JSON-Schema-like shape.

    Args:
        node: Any schema node

    Returns:
        Dictionary such as ``{"type": "object", "properties": {...}, "required": [...]}``
    """
    if isinstance(node, ObjectNode):
        schema: dict[str, Any] = {
            "type": "object",
            "properties": {key: to_json_schema(child) for key, child in node.properties.items()},
        }
        if node.required:
            schema["required"] = list(node.required)
    elif isinstance(node, StringNode):
        schema = {"type": "string"}
        if node.enum is not None:
            schema["enum"] = list(node.enum)
    elif isinstance(node, NumberNode):
        schema = {"type": "integer" if node.integer else "number"}
    elif isinstance(node, BooleanNode):
        schema = {"type": "boolean"}
    elif isinstance(node, ArrayNode):
        schema = {"type": "array"}
        if node.items is not None:
            schema["items"] = to_json_schema(node.items)
    else:
        msg = f"Not a schema node: {node!r}"
        raise TypeError(msg)

    if node.description:
        schema["description"] = node.description
    return schema


__all__ = [
    "ArrayNode",
    "BooleanNode",
    "NumberNode",
    "ObjectNode",
    "SchemaNode",
    "StringNode",
    "build_node",
    "object_node_from_model",
    "to_json_schema",
]

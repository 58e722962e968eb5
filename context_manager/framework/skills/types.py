"""
Skill data contract.

A skill is a named, versioned bundle of tools. Each tool pairs a definition
(name, description, pydantic input model) with a handler. Skills are plain
declarations: they do not talk to each other and carry no behavior besides
their optional ``init``/``cleanup`` hooks.

Example:
    from pydantic import BaseModel, Field

    from context_manager.framework.skills import Skill, ToolDefinition, ToolRegistration


    class EchoInput(BaseModel):
        message: str = Field(..., description="Text to echo back")


    async def echo(payload: EchoInput) -> str:
        return f"Echo: {payload.message}"


    skill = Skill(
        id="chat",
        name="Chat",
        description="Conversation helpers",
        version="1.0.0",
        tools=[ToolRegistration(ToolDefinition("echo", "Echo a message", EchoInput), echo)],
    )
"""

import re
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from mcp.types import CallToolResult
from pydantic import BaseModel

from context_manager.framework.errors import InvalidSkillError, MCPError, UnsupportedSchemaError
from context_manager.framework.skills.schema import ObjectNode, object_node_from_model, to_json_schema

Handler = Callable[[Any], Awaitable[Any] | Any]
LifecycleHook = Callable[[], Awaitable[None]]

# Normalized outcome of a tool call, rendered on the wire as {content, isError}
ToolResult = CallToolResult

_KEBAB_CASE = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")


def parse_semver(version: str) -> tuple[int, int, int]:
    """
    Parse semver string into comparable tuple.

    Args:
        version: Semver string (e.g., "2.10.0")

    Returns:
        Tuple of (major, minor, patch) as integers

    Raises:
        ValueError: If version is not valid semver
    """
    parts = version.split(".")
    if len(parts) != 3:
        msg = f"Invalid semver (expected X.Y.Z): {version}"
        raise ValueError(msg)
    try:
        return tuple(int(p) for p in parts)  # type: ignore
    except ValueError as e:
        msg = f"Invalid semver (non-integer part): {version}"
        raise ValueError(msg) from e


class NoArguments(BaseModel):
    """Input model for tools that take no arguments."""


@dataclass(frozen=True)
class ToolDefinition:
    """Declared shape of a tool.

    Attributes:
        name: Tool name, unique across the whole registry
        description: Human-readable description shown to clients
        input_schema: Pydantic model that validates the call arguments
    """

    name: str
    description: str
    input_schema: type[BaseModel] = NoArguments
    schema_node: ObjectNode = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if not isinstance(self.name, str) or not self.name:
            msg = f"Tool name must be a non-empty string, got {self.name!r}"
            raise InvalidSkillError(msg)
        if not isinstance(self.description, str):
            msg = f"Tool '{self.name}' description must be a string"
            raise InvalidSkillError(msg)
        if not (isinstance(self.input_schema, type) and issubclass(self.input_schema, BaseModel)):
            msg = f"Tool '{self.name}' input_schema must be a pydantic model class"
            raise UnsupportedSchemaError(msg)
        object.__setattr__(self, "schema_node", object_node_from_model(self.input_schema))

    def json_schema(self) -> dict[str, Any]:
        """Protocol description of the input schema."""
        return to_json_schema(self.schema_node)


@dataclass(frozen=True)
class ToolRegistration:
    """A tool definition paired with the handler that executes it."""

    definition: ToolDefinition
    handler: Handler

    def __post_init__(self) -> None:
        if not isinstance(self.definition, ToolDefinition):
            msg = f"Tool definition must be a ToolDefinition, got {type(self.definition).__name__}"
            raise InvalidSkillError(msg)
        if not callable(self.handler):
            msg = f"Tool '{self.definition.name}' handler is not callable"
            raise InvalidSkillError(msg)

    @property
    def name(self) -> str:
        return self.definition.name


@dataclass(frozen=True)
class Skill:
    """A named, versioned bundle of tools.

    Attributes:
        id: Unique kebab-case identifier
        name: Human-readable name
        description: What the skill provides
        version: Semver string (X.Y.Z)
        tools: Ordered, non-empty tool registrations
        init: Optional async hook awaited once when the skill is loaded
        cleanup: Optional async hook awaited once when the skill is unloaded
    """

    id: str
    name: str
    description: str
    version: str
    tools: tuple[ToolRegistration, ...]
    init: LifecycleHook | None = None
    cleanup: LifecycleHook | None = None

    def __post_init__(self) -> None:
        for attr in ("id", "name", "description", "version"):
            if not isinstance(getattr(self, attr), str):
                msg = f"Skill {attr} must be a string, got {type(getattr(self, attr)).__name__}"
                raise InvalidSkillError(msg)
        if not _KEBAB_CASE.match(self.id):
            msg = f"Skill id must be kebab-case: {self.id!r}"
            raise InvalidSkillError(msg)
        try:
            parse_semver(self.version)
        except ValueError as e:
            msg = f"Skill '{self.id}': {e}"
            raise InvalidSkillError(msg) from e

        if not isinstance(self.tools, (list, tuple)):
            msg = f"Skill '{self.id}' tools must be a list"
            raise InvalidSkillError(msg)
        tools = tuple(self.tools)
        if not tools:
            msg = f"Skill '{self.id}' must provide at least one tool"
            raise InvalidSkillError(msg)
        for tool in tools:
            if not isinstance(tool, ToolRegistration):
                msg = f"Skill '{self.id}' tools must be ToolRegistration instances"
                raise InvalidSkillError(msg)
        object.__setattr__(self, "tools", tools)

        for hook in ("init", "cleanup"):
            value = getattr(self, hook)
            if value is not None and not callable(value):
                msg = f"Skill '{self.id}' {hook} hook is not callable"
                raise InvalidSkillError(msg)

    @property
    def tool_names(self) -> list[str]:
        return [tool.name for tool in self.tools]

    def get_tool(self, tool_name: str) -> ToolRegistration | None:
        """Return the registration for ``tool_name`` or None."""
        for tool in self.tools:
            if tool.name == tool_name:
                return tool
        return None


@dataclass
class SkillLoadFailure:
    """A skill that could not be loaded, with the reason."""

    path: str
    error: BaseException

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary.

        Typed skill errors also carry their structured details (code,
        context and severity).
        """
        data: dict[str, Any] = {
            "path": self.path,
            "error": str(self.error),
            "error_type": type(self.error).__name__,
        }
        if isinstance(self.error, MCPError):
            data["details"] = self.error.to_details().to_dict()
        return data


@dataclass
class SkillLoadResult:
    """Outcome of a load pass: loaded skills and per-skill failures."""

    loaded: list[Skill] = field(default_factory=list)
    failed: list[SkillLoadFailure] = field(default_factory=list)

    def extend(self, other: "SkillLoadResult") -> None:
        self.loaded.extend(other.loaded)
        self.failed.extend(other.failed)


__all__ = [
    "Handler",
    "LifecycleHook",
    "NoArguments",
    "Skill",
    "SkillLoadFailure",
    "SkillLoadResult",
    "ToolDefinition",
    "ToolRegistration",
    "ToolResult",
    "parse_semver",
]

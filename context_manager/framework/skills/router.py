"""
Tool router: resolves a tool call to its skill, validates arguments, runs
the handler and normalizes the outcome into a tool result.

Every failure along the way (unknown tool, invalid arguments, handler
exception, timeout) becomes a result with ``isError: true``. Tool-level
failures never surface as exceptions to the protocol dispatcher.
"""

import asyncio
import json
import logging
import time
from collections.abc import Mapping
from typing import Any

from mcp.types import CallToolResult, TextContent, Tool
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from context_manager.framework.errors import (
    MCPError,
    ToolExecutionError,
    ToolInputError,
    ToolTimeoutError,
    UnknownToolError,
)
from context_manager.framework.skills._async import elapsed_ms, run_callable_async
from context_manager.framework.skills.registry import SkillRegistry
from context_manager.framework.skills.types import ToolRegistration, ToolResult

logger = logging.getLogger(__name__)


def text_result(text: str, is_error: bool = False) -> ToolResult:
    """Wrap ``text`` as a single text content block."""
    return CallToolResult(content=[TextContent(type="text", text=text)], isError=is_error)


def error_result(error: Exception) -> ToolResult:
    """Build an ``isError`` result from an exception message."""
    message = error.message if isinstance(error, MCPError) else str(error)
    return text_result(f"Error: {message}", is_error=True)


def _describe_validation_error(tool_name: str, exc: PydanticValidationError) -> ToolInputError:
    errors = []
    parts = []
    for item in exc.errors(include_url=False):
        location = ".".join(str(part) for part in item.get("loc", ())) or "(root)"
        errors.append({"field": location, "message": item.get("msg", ""), "type": item.get("type")})
        parts.append(f"{location}: {item.get('msg', '')}")
    message = f"Invalid arguments for tool '{tool_name}': " + "; ".join(parts)
    return ToolInputError(message, tool_name, errors)


def validate_arguments(registration: ToolRegistration, raw_args: Any) -> BaseModel:
    """
    Validate raw call arguments against the tool's input model.

    Args:
        registration: Tool registration holding the input model
        raw_args: Arguments as received from the client (None means no arguments)

    Returns:
        Validated model instance

    Raises:
        ToolInputError: If arguments are not an object or fail validation
    """
    tool_name = registration.name
    if raw_args is None:
        raw_args = {}
    if not isinstance(raw_args, Mapping):
        msg = (
            f"Invalid arguments for tool '{tool_name}': "
            f"expected an object, got {type(raw_args).__name__}"
        )
        raise ToolInputError(msg, tool_name)
    try:
        return registration.definition.input_schema.model_validate(dict(raw_args))
    except PydanticValidationError as e:
        raise _describe_validation_error(tool_name, e) from e


def normalize_result(tool_name: str, result: Any) -> ToolResult:
    """
    Normalize a handler's return value into a tool result.

    - ``str`` becomes one text block
    - ``CallToolResult`` and ``{"content": [...]}`` envelopes pass through
    - pydantic models and any other value are serialized as formatted JSON

    Args:
        tool_name: Tool name, for error messages
        result: Handler return value

    Returns:
        Normalized tool result
    """
    if isinstance(result, str):
        return text_result(result)
    if isinstance(result, CallToolResult):
        return result
    if isinstance(result, Mapping) and "content" in result:
        try:
            return CallToolResult.model_validate(dict(result))
        except PydanticValidationError as e:
            logger.warning("Tool '%s' returned a malformed result envelope: %s", tool_name, e)
            return text_result(
                f"Error: Tool '{tool_name}' returned a malformed result envelope", is_error=True
            )
    if isinstance(result, BaseModel):
        return text_result(result.model_dump_json(indent=2))
    return text_result(json.dumps(result, indent=2, default=str, ensure_ascii=False))


async def route_tool_call(
    registry: SkillRegistry,
    tool_name: str,
    raw_args: Any,
    timeout_seconds: float | None = None,
) -> ToolResult:
    """
    Route a tool call to the skill that provides it.

    Args:
        registry: Skill registry to resolve the tool in
        tool_name: Name of the tool to call
        raw_args: Raw call arguments
        timeout_seconds: Optional limit on handler execution time

    Returns:
        Tool result; failures are reported with ``isError`` set
    """
    logger.debug("Routing tool call: %s", tool_name)

    skill = registry.find_by_tool(tool_name)
    if skill is None:
        logger.warning("Unknown tool: %s", tool_name)
        return error_result(UnknownToolError(tool_name, registry.tool_names()))

    registration = skill.get_tool(tool_name)
    if registration is None:
        logger.error(
            "Registry maps tool '%s' to skill '%s' but the skill has no such tool",
            tool_name,
            skill.id,
        )
        return text_result(f"Error: Tool handler not found: {tool_name}", is_error=True)

    try:
        validated = validate_arguments(registration, raw_args)
    except ToolInputError as e:
        logger.warning("Tool '%s' input validation failed: %s", tool_name, e.message)
        return error_result(e)

    logger.info(
        "Executing %s from skill %s",
        tool_name,
        skill.id,
        extra={"tool": tool_name, "skill_id": skill.id},
    )
    start = time.perf_counter()
    call = asyncio.ensure_future(run_callable_async(registration.handler, validated))
    try:
        if timeout_seconds is not None:
            done, _ = await asyncio.wait({call}, timeout=timeout_seconds)
            if not done:
                call.cancel()
                timeout_error = ToolTimeoutError(tool_name, timeout_seconds)
                logger.warning(
                    "%s", timeout_error.message, extra={"tool": tool_name, "skill_id": skill.id}
                )
                return error_result(timeout_error)
        result = await call
    except asyncio.CancelledError:
        call.cancel()
        raise
    except Exception as e:
        execution_error = ToolExecutionError(tool_name, e)
        logger.exception(
            "%s", execution_error.message, extra={"tool": tool_name, "skill_id": skill.id}
        )
        # The handler's own message is what the caller sees
        return error_result(e)

    logger.info(
        "Tool '%s' completed in %.2fms",
        tool_name,
        elapsed_ms(start),
        extra={"tool": tool_name, "skill_id": skill.id},
    )
    return normalize_result(tool_name, result)


def list_tools(registry: SkillRegistry) -> list[Tool]:
    """
    Flatten every registered skill's tools into the protocol tool-list shape.

    Args:
        registry: Skill registry

    Returns:
        Tool descriptors in registration order
    """
    tools: list[Tool] = []
    for skill in registry.get_all():
        for registration in skill.tools:
            definition = registration.definition
            tools.append(
                Tool(
                    name=definition.name,
                    description=definition.description,
                    inputSchema=definition.json_schema(),
                )
            )
    return tools


__all__ = [
    "error_result",
    "list_tools",
    "normalize_result",
    "route_tool_call",
    "text_result",
    "validate_arguments",
]

"""
Tests for the tool router.

Tests verify:
- Successful calls return the handler's text
- Unknown tools, invalid arguments, handler exceptions and timeouts all
  come back as isError results instead of raising
- Result normalization for strings, envelopes, models and plain values
- Tool listing in the protocol shape
"""

import asyncio
import json
import threading

import pytest
from mcp.types import CallToolResult, TextContent
from pydantic import BaseModel

from conftest import MessageInput, echo_handler, make_skill
from context_manager.framework.skills import (
    SkillRegistry,
    list_tools,
    normalize_result,
    route_tool_call,
)


def _text(result: CallToolResult) -> str:
    assert len(result.content) == 1
    return result.content[0].text


class TestRouteToolCall:
    """Test routing and failure containment."""

    @pytest.mark.asyncio
    async def test_echo(self, registry: SkillRegistry) -> None:
        """Test a successful call."""
        result = await route_tool_call(registry, "echo", {"message": "hi"})

        assert result.isError is False
        assert _text(result) == "Echo: hi"

    @pytest.mark.asyncio
    async def test_unknown_tool(self, registry: SkillRegistry) -> None:
        """Test that an unknown tool is an error result."""
        result = await route_tool_call(registry, "missing", {})

        assert result.isError is True
        assert _text(result) == "Error: Unknown tool: missing"

    @pytest.mark.asyncio
    async def test_invalid_arguments(self, registry: SkillRegistry) -> None:
        """Test that schema violations are error results naming the field."""
        result = await route_tool_call(registry, "echo", {"message": 42})

        assert result.isError is True
        assert _text(result).startswith("Error: Invalid arguments for tool 'echo': message:")

    @pytest.mark.asyncio
    async def test_missing_required_argument(self, registry: SkillRegistry) -> None:
        """Test that None arguments validate as an empty object."""
        result = await route_tool_call(registry, "echo", None)

        assert result.isError is True
        assert "message" in _text(result)

    @pytest.mark.asyncio
    async def test_non_object_arguments(self, registry: SkillRegistry) -> None:
        """Test that array arguments are rejected."""
        result = await route_tool_call(registry, "echo", ["hi"])

        assert result.isError is True
        assert "expected an object, got list" in _text(result)

    @pytest.mark.asyncio
    async def test_handler_failure_is_contained(self) -> None:
        """Test that a raising handler produces an isError result."""

        async def explode(payload: MessageInput) -> str:
            raise RuntimeError("disk on fire")

        registry = SkillRegistry()
        registry.register(make_skill("bad", tools=[("explode", explode)]))

        result = await route_tool_call(registry, "explode", {"message": "x"})

        assert result.isError is True
        assert _text(result) == "Error: disk on fire"

    @pytest.mark.asyncio
    async def test_sync_handler_runs_off_loop(self) -> None:
        """Test that plain-function handlers run in a worker thread."""
        loop_thread = threading.get_ident()
        seen: list[int] = []

        def sync_echo(payload: MessageInput) -> str:
            seen.append(threading.get_ident())
            return payload.message.upper()

        registry = SkillRegistry()
        registry.register(make_skill("sync", tools=[("shout", sync_echo)]))

        result = await route_tool_call(registry, "shout", {"message": "hi"})

        assert _text(result) == "HI"
        assert seen and seen[0] != loop_thread

    @pytest.mark.asyncio
    async def test_timeout(self) -> None:
        """Test that a slow handler is cut off by the timeout."""

        async def slow(payload: MessageInput) -> str:
            await asyncio.sleep(5)
            return "late"

        registry = SkillRegistry()
        registry.register(make_skill("slow", tools=[("slow", slow)]))

        result = await route_tool_call(registry, "slow", {"message": "x"}, timeout_seconds=0.05)

        assert result.isError is True
        assert "timed out" in _text(result)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("timeout_seconds", [None, 5.0])
    async def test_handler_timeout_error_keeps_its_message(
        self, timeout_seconds: float | None
    ) -> None:
        """Test that a TimeoutError raised by the handler is reported as its own failure."""

        async def upstream(payload: MessageInput) -> str:
            raise TimeoutError("upstream socket timed out")

        registry = SkillRegistry()
        registry.register(make_skill("net", tools=[("fetch", upstream)]))

        result = await route_tool_call(
            registry, "fetch", {"message": "x"}, timeout_seconds=timeout_seconds
        )

        assert result.isError is True
        assert _text(result) == "Error: upstream socket timed out"

    @pytest.mark.asyncio
    async def test_concurrent_calls_complete_independently(self) -> None:
        """Test that a slow call does not hold up a fast one."""
        order: list[str] = []

        async def slow(payload: MessageInput) -> str:
            await asyncio.sleep(0.05)
            order.append("slow")
            return "slow"

        async def fast(payload: MessageInput) -> str:
            order.append("fast")
            return "fast"

        registry = SkillRegistry()
        registry.register(make_skill("mixed", tools=[("slow", slow), ("fast", fast)]))

        await asyncio.gather(
            route_tool_call(registry, "slow", {"message": "a"}),
            route_tool_call(registry, "fast", {"message": "b"}),
        )

        assert order == ["fast", "slow"]


class TestNormalizeResult:
    """Test handler return value normalization."""

    def test_string(self) -> None:
        """Test that strings become one text block."""
        result = normalize_result("t", "plain")
        assert result.isError is False
        assert _text(result) == "plain"

    def test_envelope_passthrough(self) -> None:
        """Test that a content envelope is kept as-is."""
        envelope = {"content": [{"type": "text", "text": "a"}, {"type": "text", "text": "b"}]}

        result = normalize_result("t", envelope)

        assert [block.text for block in result.content] == ["a", "b"]

    def test_call_tool_result_passthrough(self) -> None:
        """Test that a CallToolResult is returned unchanged."""
        original = CallToolResult(content=[TextContent(type="text", text="x")], isError=True)
        assert normalize_result("t", original) is original

    def test_malformed_envelope(self) -> None:
        """Test that a broken envelope is reported as an error result."""
        result = normalize_result("t", {"content": "not a list"})

        assert result.isError is True
        assert "malformed result envelope" in _text(result)

    def test_plain_values_become_json(self) -> None:
        """Test that dicts and lists are pretty-printed JSON."""
        result = normalize_result("t", {"items": [1, 2]})
        assert json.loads(_text(result)) == {"items": [1, 2]}

    def test_model_becomes_json(self) -> None:
        """Test that pydantic models are serialized."""

        class Summary(BaseModel):
            total: int

        result = normalize_result("t", Summary(total=3))
        assert json.loads(_text(result)) == {"total": 3}


class TestListTools:
    """Test the flattened tool list."""

    def test_tool_shape(self) -> None:
        """Test name, description and input schema of listed tools."""
        registry = SkillRegistry()
        registry.register(make_skill("chat", tools=[("echo", echo_handler)]))
        registry.register(make_skill("gov", tools=[("read_todo", echo_handler)]))

        tools = list_tools(registry)

        assert [tool.name for tool in tools] == ["echo", "read_todo"]
        assert tools[0].description == "echo tool"
        assert tools[0].inputSchema == {
            "type": "object",
            "properties": {"message": {"type": "string", "description": "Message text"}},
            "required": ["message"],
        }

"""
Protocol dispatcher: maps one JSON-RPC line to one response.

States:
    UNINITIALIZED --(first successful initialize)--> READY

The dispatcher is lenient. Requests other than ``initialize`` that arrive
before READY are processed anyway and logged as a warning. ``initialize`` is
idempotent and returns the same payload every time.

Per-line pipeline:
1. Parse JSON (-32700 on failure, id null)
2. Validate the envelope (-32600, id echoed when present)
3. Dispatch by method (-32601 for unknown methods)
4. Any uncaught exception becomes -32603

``handle_line`` never raises: every line produces exactly one response.
"""

import json
import logging
from enum import Enum
from typing import Any

from mcp.types import Implementation, InitializeResult, ServerCapabilities, ToolsCapability

from context_manager.framework.errors import (
    INTERNAL_ERROR,
    INVALID_PARAMS,
    METHOD_NOT_FOUND,
    PARSE_ERROR,
    TOOL_EXECUTION_ERROR,
    JsonRpcError,
    to_jsonrpc_error,
)
from context_manager.framework.skills import SkillRegistry, list_tools, route_tool_call
from context_manager.server.config import ServerConfig
from context_manager.server.jsonrpc import (
    JsonRpcRequest,
    error_response,
    request_id_of,
    success_response,
)

logger = logging.getLogger(__name__)

SUPPORTED_METHODS = ("initialize", "tools/list", "tools/call")


class DispatcherState(str, Enum):
    """Protocol lifecycle state."""

    UNINITIALIZED = "uninitialized"
    READY = "ready"


class ProtocolDispatcher:
    """Routes parsed requests to initialize, tools/list and tools/call.

    Attributes:
        registry: Skill registry consulted for listing and routing
        config: Server configuration (identity, protocol version, timeouts)
    """

    def __init__(self, registry: SkillRegistry, config: ServerConfig | None = None) -> None:
        self.registry = registry
        self.config = config or ServerConfig()
        self._state = DispatcherState.UNINITIALIZED
        self._initialize_result: dict[str, Any] | None = None
        self._handlers = {
            "initialize": self._handle_initialize,
            "tools/list": self._handle_tools_list,
            "tools/call": self._handle_tools_call,
        }

    @property
    def state(self) -> DispatcherState:
        return self._state

    @property
    def is_ready(self) -> bool:
        return self._state is DispatcherState.READY

    async def handle_line(self, line: str) -> dict[str, Any]:
        """
        Handle one framed line.

        Args:
            line: One complete line from the input stream

        Returns:
            Response envelope (success or error), ready to serialize
        """
        payload: Any = None
        try:
            try:
                payload = json.loads(line)
            except (ValueError, RecursionError) as e:
                # RecursionError: nesting deeper than the decoder can follow
                logger.warning("Parse error: %s", e)
                logger.debug("Unparseable line: %s", line)
                return error_response(None, JsonRpcError(PARSE_ERROR, "Parse error", str(e)))
            return await self.handle_message(payload)
        except Exception as e:
            logger.exception("Unexpected error handling line: %s", e)
            return error_response(
                request_id_of(payload), JsonRpcError(INTERNAL_ERROR, f"Internal error: {e}")
            )

    async def handle_message(self, payload: Any) -> dict[str, Any]:
        """
        Handle one decoded JSON value.

        Args:
            payload: Decoded JSON value (should be a request object)

        Returns:
            Response envelope
        """
        request_id = request_id_of(payload)
        try:
            request = JsonRpcRequest.from_payload(payload)

            if not request.has_id:
                logger.debug("Notification %s will be answered with id null", request.method)
            if not self.is_ready and request.method != "initialize":
                logger.warning("Received %s before initialization", request.method)

            handler = self._handlers.get(request.method)
            if handler is None:
                msg = (
                    f"Method not found: {request.method}. "
                    f"Supported methods: {', '.join(SUPPORTED_METHODS)}"
                )
                raise JsonRpcError(METHOD_NOT_FOUND, msg)

            result = await handler(request)
            return success_response(request.id, result)
        except JsonRpcError as e:
            logger.debug("JSON-RPC error %s: %s", e.rpc_code, e.message)
            return error_response(request_id, e)
        except Exception as e:
            logger.exception("Internal error while handling request %r: %s", request_id, e)
            return error_response(request_id, to_jsonrpc_error(e))

    async def _handle_initialize(self, request: JsonRpcRequest) -> dict[str, Any]:
        if self._initialize_result is None:
            result = InitializeResult(
                protocolVersion=self.config.protocol_version,
                capabilities=ServerCapabilities(tools=ToolsCapability()),
                serverInfo=Implementation(name=self.config.name, version=self.config.version),
            )
            self._initialize_result = result.model_dump(by_alias=True, exclude_none=True, mode="json")

        if self._state is DispatcherState.UNINITIALIZED:
            self._state = DispatcherState.READY
            logger.info("Server initialized (protocol %s)", self.config.protocol_version)
        else:
            logger.debug("Repeated initialize request")
        return self._initialize_result

    async def _handle_tools_list(self, request: JsonRpcRequest) -> dict[str, Any]:
        tools = [
            tool.model_dump(by_alias=True, exclude_none=True, mode="json")
            for tool in list_tools(self.registry)
        ]
        return {"tools": tools}

    async def _handle_tools_call(self, request: JsonRpcRequest) -> dict[str, Any]:
        params = request.params if request.params is not None else {}
        if not isinstance(params, dict):
            raise JsonRpcError(INVALID_PARAMS, "Invalid params: params must be an object")

        tool_name = params.get("name")
        if not isinstance(tool_name, str) or not tool_name:
            raise JsonRpcError(INVALID_PARAMS, "Invalid params: tool name is required")

        # Recomputed per call so tools registered after startup are visible
        available = self.registry.tool_names()
        if tool_name not in available:
            msg = (
                f"Invalid params: unknown tool '{tool_name}'. "
                f"Available tools: {', '.join(available)}"
            )
            raise JsonRpcError(INVALID_PARAMS, msg, {"tool": tool_name, "available": available})

        arguments = params.get("arguments")
        logger.info("Tool call: %s", tool_name, extra={"tool": tool_name})
        try:
            result = await route_tool_call(
                self.registry,
                tool_name,
                {} if arguments is None else arguments,
                timeout_seconds=self.config.tool_timeout_seconds,
            )
        except Exception as e:
            logger.exception("Router raised for tool %s: %s", tool_name, e)
            raise JsonRpcError(
                TOOL_EXECUTION_ERROR,
                f"Tool execution error: {e}",
                {"tool": tool_name, "originalError": str(e)},
            ) from e

        return result.model_dump(by_alias=True, exclude_none=True, mode="json")


__all__ = ["SUPPORTED_METHODS", "DispatcherState", "ProtocolDispatcher"]

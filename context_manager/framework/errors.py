"""
Error taxonomy for standardized error handling across the skill server.

Skills, the registry and the router raise these typed exceptions; the
protocol dispatcher maps them to JSON-RPC errors at the transport boundary.

Key features:
- Error code enums (avoid typos)
- Severity levels (fatal, transient, user_error)
- Pydantic models for structured error details
- JSON-RPC integer codes for protocol-level failures
- Boundary translation to JSON-RPC errors
"""

from enum import Enum
from typing import Any

from mcp.types import INTERNAL_ERROR, INVALID_PARAMS, INVALID_REQUEST, METHOD_NOT_FOUND, PARSE_ERROR
from pydantic import BaseModel, ConfigDict, Field

# Application-defined JSON-RPC code for tool execution failures
TOOL_EXECUTION_ERROR = -32000

JSONRPC_MESSAGES: dict[int, str] = {
    PARSE_ERROR: "Parse error",
    INVALID_REQUEST: "Invalid Request",
    METHOD_NOT_FOUND: "Method not found",
    INVALID_PARAMS: "Invalid params",
    INTERNAL_ERROR: "Internal error",
    TOOL_EXECUTION_ERROR: "Tool execution error",
}

# ============================================================================
# Error Codes and Severity
# ============================================================================


class ErrorCode(str, Enum):
    """Enumeration of all error codes in the system."""

    # Registration errors
    DUPLICATE_SKILL_ID = "DUPLICATE_SKILL_ID"
    DUPLICATE_TOOL_NAME = "DUPLICATE_TOOL_NAME"
    SKILL_NOT_FOUND = "SKILL_NOT_FOUND"

    # Loading errors
    INVALID_SKILL = "INVALID_SKILL"
    SKILL_INIT_ERROR = "SKILL_INIT_ERROR"
    UNSUPPORTED_SCHEMA = "UNSUPPORTED_SCHEMA"

    # Routing errors
    UNKNOWN_TOOL = "UNKNOWN_TOOL"
    TOOL_INPUT_ERROR = "TOOL_INPUT_ERROR"

    # Execution errors
    EXECUTION_ERROR = "EXECUTION_ERROR"
    TOOL_TIMEOUT = "TOOL_TIMEOUT"

    # Workspace errors
    FILE_ACCESS_ERROR = "FILE_ACCESS_ERROR"
    PATH_NOT_ALLOWED = "PATH_NOT_ALLOWED"

    # Protocol errors
    JSONRPC_ERROR = "JSONRPC_ERROR"


class ErrorSeverity(str, Enum):
    """Error severity for automatic retry and alerting."""

    FATAL = "fatal"  # Unrecoverable, requires intervention
    TRANSIENT = "transient"  # Temporary, retryable
    USER_ERROR = "user_error"  # Caller mistake, not retryable


# ============================================================================
# Pydantic Error Models
# ============================================================================


class ErrorDetails(BaseModel):
    """Structured error details for serialization."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    code: ErrorCode = Field(..., description="Error code enum")
    message: str = Field(..., description="Human-readable error message")
    context: dict[str, Any] = Field(default_factory=dict, description="Additional context")
    severity: ErrorSeverity = Field(default=ErrorSeverity.FATAL, description="Error severity")

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return self.model_dump(mode="json")


# ============================================================================
# Base Exception Class
# ============================================================================


class MCPError(Exception):
    """Base class for all skill server errors."""

    def __init__(
        self,
        message: str,
        code: ErrorCode,
        details: dict[str, Any] | None = None,
        severity: ErrorSeverity = ErrorSeverity.FATAL,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}
        self.severity = severity

    def to_details(self) -> ErrorDetails:
        """Convert to structured ErrorDetails."""
        return ErrorDetails(
            code=self.code, message=self.message, context=self.details, severity=self.severity
        )


# ============================================================================
# Registration Errors
# ============================================================================


class RegistrationError(MCPError):
    """Skill registry rejected a register/unregister call."""


class DuplicateSkillIdError(RegistrationError):
    """A skill with the same id is already registered."""

    def __init__(self, skill_id: str) -> None:
        super().__init__(
            f"Skill already registered: {skill_id}",
            ErrorCode.DUPLICATE_SKILL_ID,
            {"skill_id": skill_id},
            severity=ErrorSeverity.USER_ERROR,
        )
        self.skill_id = skill_id


class DuplicateToolNameError(RegistrationError):
    """A tool name is already owned by another skill."""

    def __init__(self, tool_name: str, existing_skill_id: str, skill_id: str) -> None:
        super().__init__(
            f'Tool "{tool_name}" already registered by skill "{existing_skill_id}"',
            ErrorCode.DUPLICATE_TOOL_NAME,
            {"tool": tool_name, "existing_skill_id": existing_skill_id, "skill_id": skill_id},
            severity=ErrorSeverity.USER_ERROR,
        )
        self.tool_name = tool_name
        self.existing_skill_id = existing_skill_id
        self.skill_id = skill_id


class SkillNotFoundError(RegistrationError):
    """No skill with the given id is registered."""

    def __init__(self, skill_id: str) -> None:
        super().__init__(
            f"Skill not found: {skill_id}",
            ErrorCode.SKILL_NOT_FOUND,
            {"skill_id": skill_id},
            severity=ErrorSeverity.USER_ERROR,
        )
        self.skill_id = skill_id


# ============================================================================
# Loading Errors
# ============================================================================


class InvalidSkillError(MCPError):
    """A skill bundle does not match the Skill shape."""

    def __init__(self, message: str, path: str | None = None) -> None:
        details = {}
        if path:
            details["path"] = path
        super().__init__(message, ErrorCode.INVALID_SKILL, details, severity=ErrorSeverity.FATAL)


class SkillInitError(MCPError):
    """A skill's init hook raised."""

    def __init__(self, skill_id: str, cause: Exception) -> None:
        super().__init__(
            f"Skill '{skill_id}' failed to initialize: {cause}",
            ErrorCode.SKILL_INIT_ERROR,
            {"skill_id": skill_id, "cause_type": type(cause).__name__, "cause": str(cause)},
            severity=ErrorSeverity.FATAL,
        )


class UnsupportedSchemaError(MCPError):
    """A tool input schema uses a type that cannot be described to clients."""

    def __init__(self, message: str, field: str | None = None) -> None:
        details = {}
        if field:
            details["field"] = field
        super().__init__(
            message, ErrorCode.UNSUPPORTED_SCHEMA, details, severity=ErrorSeverity.FATAL
        )


# ============================================================================
# Routing and Execution Errors
# ============================================================================


class UnknownToolError(MCPError):
    """No registered skill provides the requested tool."""

    def __init__(self, tool_name: str, available: list[str] | None = None) -> None:
        details: dict[str, Any] = {"tool": tool_name}
        if available is not None:
            details["available"] = available
        super().__init__(
            f"Unknown tool: {tool_name}",
            ErrorCode.UNKNOWN_TOOL,
            details,
            severity=ErrorSeverity.USER_ERROR,
        )


class ToolInputError(MCPError):
    """Tool arguments failed schema validation."""

    def __init__(self, message: str, tool_name: str, errors: list[dict[str, Any]] | None = None) -> None:
        details: dict[str, Any] = {"tool": tool_name}
        if errors:
            details["errors"] = errors
        super().__init__(
            message, ErrorCode.TOOL_INPUT_ERROR, details, severity=ErrorSeverity.USER_ERROR
        )


class ToolExecutionError(MCPError):
    """Tool handler raised."""

    def __init__(self, tool_name: str, cause: Exception) -> None:
        super().__init__(
            f"Tool '{tool_name}' failed: {cause}",
            ErrorCode.EXECUTION_ERROR,
            {"tool": tool_name, "cause_type": type(cause).__name__, "cause": str(cause)},
            severity=ErrorSeverity.TRANSIENT,  # May be retryable
        )


class ToolTimeoutError(MCPError):
    """Tool execution exceeded the configured timeout."""

    def __init__(self, tool_name: str, timeout_seconds: float) -> None:
        super().__init__(
            f"Tool '{tool_name}' timed out after {timeout_seconds}s",
            ErrorCode.TOOL_TIMEOUT,
            {"tool": tool_name, "timeout_seconds": timeout_seconds},
            severity=ErrorSeverity.TRANSIENT,
        )


# ============================================================================
# Workspace Errors
# ============================================================================


class FileAccessError(MCPError):
    """Reading or writing a workspace file failed."""

    def __init__(self, operation: str, path: str, cause: Exception) -> None:
        super().__init__(
            f"Failed to {operation} file {path}: {cause}",
            ErrorCode.FILE_ACCESS_ERROR,
            {"path": path, "operation": operation, "cause_type": type(cause).__name__},
            severity=ErrorSeverity.TRANSIENT,
        )


class PathNotAllowedError(MCPError):
    """A path resolved outside the directory it must stay in."""

    def __init__(self, path: str, allowed_dir: str) -> None:
        super().__init__(
            f"Path {path} is outside {allowed_dir}",
            ErrorCode.PATH_NOT_ALLOWED,
            {"path": path, "allowed_dir": allowed_dir},
            severity=ErrorSeverity.USER_ERROR,
        )


# ============================================================================
# Protocol Errors
# ============================================================================


class JsonRpcError(MCPError):
    """Protocol-level failure carrying a JSON-RPC integer code."""

    def __init__(self, rpc_code: int, message: str | None = None, data: Any = None) -> None:
        message = message or JSONRPC_MESSAGES.get(rpc_code, "Server error")
        super().__init__(
            message,
            ErrorCode.JSONRPC_ERROR,
            {"rpc_code": rpc_code},
            severity=ErrorSeverity.USER_ERROR,
        )
        self.rpc_code = rpc_code
        self.data = data


# ============================================================================
# Boundary Translation Functions
# ============================================================================


def to_jsonrpc_error(exc: Exception) -> JsonRpcError:
    """
    Convert any exception to a JSON-RPC error for the wire.

    ``JsonRpcError`` passes through unchanged, other ``MCPError`` types map
    to the closest JSON-RPC code, and anything else becomes an internal error.

    Args:
        exc: Any exception raised while handling a request

    Returns:
        JsonRpcError with code, message and optional data
    """
    if isinstance(exc, JsonRpcError):
        return exc
    if isinstance(exc, (UnknownToolError, ToolInputError)):
        return JsonRpcError(INVALID_PARAMS, f"Invalid params: {exc.message}", exc.details)
    if isinstance(exc, (ToolExecutionError, ToolTimeoutError)):
        return JsonRpcError(
            TOOL_EXECUTION_ERROR, f"Tool execution error: {exc.message}", exc.details
        )
    return JsonRpcError(INTERNAL_ERROR, f"Internal error: {exc}")


__all__ = [
    "INTERNAL_ERROR",
    "INVALID_PARAMS",
    "INVALID_REQUEST",
    "JSONRPC_MESSAGES",
    "METHOD_NOT_FOUND",
    "PARSE_ERROR",
    "TOOL_EXECUTION_ERROR",
    "DuplicateSkillIdError",
    "DuplicateToolNameError",
    "ErrorCode",
    "ErrorDetails",
    "ErrorSeverity",
    "FileAccessError",
    "InvalidSkillError",
    "JsonRpcError",
    "MCPError",
    "PathNotAllowedError",
    "RegistrationError",
    "SkillInitError",
    "SkillNotFoundError",
    "ToolExecutionError",
    "ToolInputError",
    "ToolTimeoutError",
    "UnknownToolError",
    "UnsupportedSchemaError",
    "to_jsonrpc_error",
]

"""
Context Manager: skill-driven MCP tool server.

The server speaks newline-delimited JSON-RPC 2.0 (the Model Context Protocol
dialect) over stdin/stdout and exposes tools contributed by independently
loaded skills.

Public API modules:
- context_manager.framework.skills: Skill data contract, loader, registry, router
- context_manager.server: Framing, dispatcher, stdio transport, lifecycle, config
- context_manager.framework.errors: Error taxonomy
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("context-manager-mcp")
except PackageNotFoundError:
    # Development checkout, not installed via pip
    __version__ = "0.1.0"

__all__ = ["__version__"]

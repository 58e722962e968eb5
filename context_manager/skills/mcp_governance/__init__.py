"""
MCP governance skill.

Manages project governance files (TODO.md, TODO-NEXT.md, TODO-BACKLOG.md and
CONTEXT-SESSION.md) for session tracking and task management.
"""

from context_manager.framework.skills import Skill, ToolDefinition, ToolRegistration

from .handlers import (
    handle_read_context,
    handle_read_todo,
    handle_update_context,
    handle_update_todo,
)
from .tools import (
    CONTEXT_FILE,
    ReadContextInput,
    ReadTodoInput,
    UpdateContextInput,
    UpdateTodoInput,
)


def create_skill() -> Skill:
    return Skill(
        id="mcp-governance",
        name="MCP Governance",
        description=(
            f"Manages project governance files (TODO.md, {CONTEXT_FILE}) "
            "for session tracking and task management"
        ),
        version="1.0.0",
        tools=[
            ToolRegistration(
                ToolDefinition(
                    "read_todo",
                    "Read TODO file contents (TODO.md, TODO-NEXT.md, or TODO-BACKLOG.md)",
                    ReadTodoInput,
                ),
                handle_read_todo,
            ),
            ToolRegistration(
                ToolDefinition("update_todo", "Update TODO file with new content", UpdateTodoInput),
                handle_update_todo,
            ),
            ToolRegistration(
                ToolDefinition("read_context", f"Read {CONTEXT_FILE} file contents", ReadContextInput),
                handle_read_context,
            ),
            ToolRegistration(
                ToolDefinition(
                    "update_context",
                    f"Update {CONTEXT_FILE} file with new content",
                    UpdateContextInput,
                ),
                handle_update_context,
            ),
        ],
    )

"""
Governance tool handlers.

Files live under the configured workspace directory (``WORKSPACE_DIR`` or
``CONTEXT_MANAGER_WORKSPACE_DIR``, falling back to the current directory).
The workspace is resolved on every call so configuration changes apply
without reloading the skill.
"""

import logging
from pathlib import Path

from context_manager.server.config import get_config
from context_manager.utils.fs import resolve_within, safe_read_file, safe_write_file

from .tools import (
    CONTEXT_FILE,
    ReadContextInput,
    ReadTodoInput,
    UpdateContextInput,
    UpdateTodoInput,
)

logger = logging.getLogger(__name__)

DEFAULT_TODO_FILE = "TODO.md"


def workspace_root() -> Path:
    return get_config().workspace_path


async def _read(file_name: str) -> str:
    path = resolve_within(workspace_root(), file_name)
    logger.info("Reading %s", file_name, extra={"skill_id": "mcp-governance"})
    content = await safe_read_file(path, missing_ok=True)
    if content is None:
        return f"File {file_name} does not exist."
    return f"# {file_name}\n\n{content}"


async def _write(file_name: str, content: str) -> str:
    path = resolve_within(workspace_root(), file_name)
    logger.info("Updating %s", file_name, extra={"skill_id": "mcp-governance"})
    await safe_write_file(path, content)
    return f"Successfully updated {file_name}"


async def handle_read_todo(payload: ReadTodoInput) -> str:
    return await _read(payload.file or DEFAULT_TODO_FILE)


async def handle_update_todo(payload: UpdateTodoInput) -> str:
    return await _write(payload.file, payload.content)


async def handle_read_context(payload: ReadContextInput) -> str:
    return await _read(CONTEXT_FILE)


async def handle_update_context(payload: UpdateContextInput) -> str:
    return await _write(CONTEXT_FILE, payload.content)

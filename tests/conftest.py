"""Shared fixtures for the context-manager test suite."""

import textwrap
from collections.abc import Callable, Iterator
from pathlib import Path
from typing import Any

import pytest
from pydantic import BaseModel, Field

from context_manager.framework.skills import Skill, SkillRegistry, ToolDefinition, ToolRegistration
from context_manager.server.config import ServerConfig, reset_config


class MessageInput(BaseModel):
    message: str = Field(..., description="Message text")


async def echo_handler(payload: MessageInput) -> str:
    return f"Echo: {payload.message}"


def make_skill(
    skill_id: str = "chat",
    tools: list[tuple[str, Callable[..., Any]]] | None = None,
    input_schema: type[BaseModel] = MessageInput,
    **kwargs: Any,
) -> Skill:
    """Build a skill whose tools all share one input model."""
    tools = tools if tools is not None else [("echo", echo_handler)]
    fields: dict[str, Any] = {
        "id": skill_id,
        "name": skill_id.replace("-", " ").title(),
        "description": f"{skill_id} test skill",
        "version": "1.0.0",
        "tools": [
            ToolRegistration(ToolDefinition(name, f"{name} tool", input_schema), handler)
            for name, handler in tools
        ],
    }
    fields.update(kwargs)
    return Skill(**fields)


@pytest.fixture(autouse=True)
def _isolate_config(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Keep environment and the global config from leaking between tests."""
    for name in (
        "WORKSPACE_DIR",
        "CONTEXT_MANAGER_NAME",
        "CONTEXT_MANAGER_PROTOCOL_VERSION",
        "CONTEXT_MANAGER_SKILLS_DIR",
        "CONTEXT_MANAGER_WORKSPACE_DIR",
        "CONTEXT_MANAGER_LOG_LEVEL",
        "CONTEXT_MANAGER_LOG_FORMAT",
        "CONTEXT_MANAGER_SHUTDOWN_TIMEOUT",
        "CONTEXT_MANAGER_TOOL_TIMEOUT",
        "CONTEXT_MANAGER_USE_ENTRY_POINTS",
    ):
        monkeypatch.delenv(name, raising=False)
    reset_config()
    yield
    reset_config()


@pytest.fixture
def chat_skill() -> Skill:
    return make_skill()


@pytest.fixture
def registry(chat_skill: Skill) -> SkillRegistry:
    registry = SkillRegistry()
    registry.register(chat_skill)
    return registry


@pytest.fixture
def config() -> ServerConfig:
    return ServerConfig(version="9.9.9")


@pytest.fixture
def write_skill(tmp_path: Path) -> Callable[[str, str], Path]:
    """Write a skill package ``<tmp>/skills/<name>/__init__.py``."""
    skills_dir = tmp_path / "skills"
    skills_dir.mkdir(exist_ok=True)

    def _write(name: str, source: str) -> Path:
        package = skills_dir / name
        package.mkdir()
        (package / "__init__.py").write_text(textwrap.dedent(source), encoding="utf-8")
        return package

    return _write

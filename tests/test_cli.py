"""
Tests for the command-line interface.
"""

import json
import logging
from collections.abc import Callable, Iterator
from pathlib import Path

import pytest

from context_manager import cli
from context_manager.observability import JSONFormatter, configure_logging

VALID_SKILL = """
from pydantic import BaseModel

from context_manager.framework.skills import Skill, ToolDefinition, ToolRegistration


class Input(BaseModel):
    text: str


async def handle(payload: Input) -> str:
    return payload.text


skill = Skill(
    id="notes",
    name="Notes",
    description="note taking",
    version="0.2.0",
    tools=[ToolRegistration(ToolDefinition("add_note", "Add a note", Input), handle)],
)
"""


@pytest.fixture(autouse=True)
def _restore_package_logger() -> Iterator[None]:
    logger = logging.getLogger("context_manager")
    handlers, level, propagate = list(logger.handlers), logger.level, logger.propagate
    yield
    logger.handlers[:] = handlers
    logger.setLevel(level)
    logger.propagate = propagate


@pytest.fixture
def skills_dir(tmp_path: Path, write_skill: Callable[[str, str], Path]) -> Path:
    write_skill("notes", VALID_SKILL)
    return tmp_path / "skills"


class TestSkillsList:
    """Test `skills list`."""

    def test_json_output(
        self, skills_dir: Path, capsys: pytest.CaptureFixture[str], monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Test listing skills as JSON."""
        monkeypatch.chdir(skills_dir.parent)

        exit_code = cli.main(["skills", "list", "--skills-dir", str(skills_dir), "--json"])

        assert exit_code == 0
        payload = json.loads(capsys.readouterr().out)
        assert payload["failed"] == []
        assert payload["skills"][0]["id"] == "notes"
        assert payload["skills"][0]["tools"] == ["add_note"]

    def test_failures_set_exit_code(
        self,
        skills_dir: Path,
        write_skill: Callable[[str, str], Path],
        capsys: pytest.CaptureFixture[str],
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        """Test that a broken skill is reported and exits 1."""
        monkeypatch.chdir(skills_dir.parent)
        write_skill("broken", "raise RuntimeError('cannot import')\n")

        exit_code = cli.main(["skills", "list", "--skills-dir", str(skills_dir)])

        captured = capsys.readouterr()
        assert exit_code == 1
        assert "notes v0.2.0: add_note" in captured.out
        assert "FAILED" in captured.err
        assert "cannot import" in captured.err

    def test_json_failures_include_error_details(
        self,
        skills_dir: Path,
        write_skill: Callable[[str, str], Path],
        capsys: pytest.CaptureFixture[str],
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        """Test that typed load errors carry code, context and severity."""
        monkeypatch.chdir(skills_dir.parent)
        write_skill("empty", "VALUE = 1\n")

        exit_code = cli.main(["skills", "list", "--skills-dir", str(skills_dir), "--json"])

        assert exit_code == 1
        payload = json.loads(capsys.readouterr().out)
        [failure] = payload["failed"]
        assert failure["error_type"] == "InvalidSkillError"
        assert failure["details"]["code"] == "INVALID_SKILL"
        assert failure["details"]["severity"] == "fatal"
        assert failure["details"]["context"]["path"] == failure["path"]


class TestToolsList:
    """Test `tools list`."""

    def test_prints_tool_payload(
        self, skills_dir: Path, capsys: pytest.CaptureFixture[str], monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Test that the tools/list payload is printed."""
        monkeypatch.chdir(skills_dir.parent)

        exit_code = cli.main(["tools", "list", "--skills-dir", str(skills_dir)])

        assert exit_code == 0
        payload = json.loads(capsys.readouterr().out)
        assert payload["tools"] == [
            {
                "name": "add_note",
                "description": "Add a note",
                "inputSchema": {
                    "type": "object",
                    "properties": {"text": {"type": "string"}},
                    "required": ["text"],
                },
            }
        ]


class TestMain:
    """Test argument handling."""

    def test_default_command_is_serve(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        """Test that running without a command starts the server."""
        monkeypatch.chdir(tmp_path)
        calls: list[str] = []

        def fake_serve(args, config) -> int:
            calls.append(config.log_level)
            return 0

        monkeypatch.setattr(cli, "serve", fake_serve)

        assert cli.main(["--log-level", "DEBUG"]) == 0
        assert calls == ["DEBUG"]

    def test_invalid_config_exits_with_error(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
    ) -> None:
        """Test that a bad configuration value exits 1."""
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("CONTEXT_MANAGER_LOG_FORMAT", "xml")

        assert cli.main(["tools", "list"]) == 1


class TestLogging:
    """Test stderr logging setup."""

    def test_json_formatter_includes_context_fields(self) -> None:
        """Test that extra fields are carried into the JSON record."""
        record = logging.LogRecord("context_manager.x", logging.INFO, __file__, 1, "hi %s", ("there",), None)
        record.tool = "echo"

        data = json.loads(JSONFormatter().format(record))

        assert data["message"] == "hi there"
        assert data["level"] == "INFO"
        assert data["tool"] == "echo"
        assert "skill_id" not in data

    def test_configure_logging_replaces_its_handler(self) -> None:
        """Test that reconfiguring does not stack handlers."""
        configure_logging("INFO")
        logger = configure_logging("DEBUG", "json")

        ours = [h for h in logger.handlers if getattr(h, "_context_manager_handler", False)]
        assert len(ours) == 1
        assert isinstance(ours[0].formatter, JSONFormatter)
        assert logger.level == logging.DEBUG

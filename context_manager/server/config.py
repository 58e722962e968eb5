"""Configuration management for the context-manager MCP server.

Configuration precedence (highest to lowest):
1. Environment variables (CONTEXT_MANAGER_*, plus WORKSPACE_DIR)
2. YAML config file (context_manager.yml)
3. Default values

Command-line flags are applied on top of the loaded config by the CLI.

Example context_manager.yml:
    server:
      skills_dir: "./skills"
      workspace_dir: "~/projects/current"
      log_level: "DEBUG"
      log_format: "json"
      tool_timeout_seconds: 30

Usage:
    config = load_config()
    dispatcher = ProtocolDispatcher(registry, config)
"""

import logging
import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any

import yaml

from context_manager import __version__
from context_manager.framework.skills import BUILTIN_SKILLS_DIR

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "context_manager.yml"
DEFAULT_PROTOCOL_VERSION = "2024-11-05"
VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
VALID_LOG_FORMATS = ("text", "json")


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def _parse_optional_float(value: str) -> float | None:
    if value.strip().lower() in ("", "none", "null"):
        return None
    return float(value)


# (environment variable, field name, converter)
_ENV_OVERRIDES: tuple[tuple[str, str, Any], ...] = (
    ("CONTEXT_MANAGER_NAME", "name", str),
    ("CONTEXT_MANAGER_PROTOCOL_VERSION", "protocol_version", str),
    ("CONTEXT_MANAGER_SKILLS_DIR", "skills_dir", str),
    ("WORKSPACE_DIR", "workspace_dir", str),
    ("CONTEXT_MANAGER_WORKSPACE_DIR", "workspace_dir", str),
    ("CONTEXT_MANAGER_LOG_LEVEL", "log_level", str),
    ("CONTEXT_MANAGER_LOG_FORMAT", "log_format", str),
    ("CONTEXT_MANAGER_SHUTDOWN_TIMEOUT", "shutdown_timeout_seconds", float),
    ("CONTEXT_MANAGER_TOOL_TIMEOUT", "tool_timeout_seconds", _parse_optional_float),
    ("CONTEXT_MANAGER_USE_ENTRY_POINTS", "use_entry_points", _parse_bool),
)


@dataclass(frozen=True)
class ServerConfig:
    """Server configuration.

    Attributes:
        name: Server name reported in ``serverInfo``
        version: Server version reported in ``serverInfo``
        protocol_version: MCP protocol version reported by ``initialize``
        skills_dir: Directory scanned for skill packages
        workspace_dir: Root directory for governance files (default: cwd)
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: "text" or "json"
        shutdown_timeout_seconds: Upper bound on waiting for in-flight requests
        tool_timeout_seconds: Per-call handler timeout (None = unbounded)
        use_entry_points: Also load skills advertised by installed packages
    """

    name: str = "context-manager"
    version: str = __version__
    protocol_version: str = DEFAULT_PROTOCOL_VERSION
    skills_dir: str = str(BUILTIN_SKILLS_DIR)
    workspace_dir: str | None = None
    log_level: str = "INFO"
    log_format: str = "text"
    shutdown_timeout_seconds: float = 5.0
    tool_timeout_seconds: float | None = None
    use_entry_points: bool = False

    def __post_init__(self) -> None:
        """Validate configuration."""
        if not self.name:
            msg = "name must be a non-empty string"
            raise ValueError(msg)

        level = str(self.log_level).upper()
        if level not in VALID_LOG_LEVELS:
            msg = f"log_level must be one of {list(VALID_LOG_LEVELS)}, got '{self.log_level}'"
            raise ValueError(msg)
        object.__setattr__(self, "log_level", level)

        if self.log_format not in VALID_LOG_FORMATS:
            msg = f"log_format must be 'text' or 'json', got '{self.log_format}'"
            raise ValueError(msg)

        if self.shutdown_timeout_seconds <= 0:
            msg = f"shutdown_timeout_seconds must be > 0, got {self.shutdown_timeout_seconds}"
            raise ValueError(msg)

        if self.tool_timeout_seconds is not None and self.tool_timeout_seconds <= 0:
            msg = f"tool_timeout_seconds must be > 0 or None, got {self.tool_timeout_seconds}"
            raise ValueError(msg)

        # Normalize paths (use object.__setattr__ for frozen dataclass)
        object.__setattr__(self, "skills_dir", str(Path(self.skills_dir).expanduser()))
        if self.workspace_dir:
            normalized_path = str(Path(self.workspace_dir).expanduser().resolve())
            object.__setattr__(self, "workspace_dir", normalized_path)

    @property
    def workspace_path(self) -> Path:
        """Workspace root, falling back to the current directory."""
        return Path(self.workspace_dir) if self.workspace_dir else Path.cwd()

    def with_overrides(self, **overrides: Any) -> "ServerConfig":
        """Return a copy with the non-None overrides applied."""
        changes = {key: value for key, value in overrides.items() if value is not None}
        return replace(self, **changes) if changes else self

    def to_dict(self) -> dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


def _read_yaml_section(config_path: Path) -> dict[str, Any]:
    logger.info("Loading configuration from %s", config_path)
    try:
        with open(config_path, encoding="utf-8") as f:
            yaml_config = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.warning("Failed to load config from %s: %s", config_path, e)
        logger.info("Using default configuration with environment overrides")
        return {}

    if not isinstance(yaml_config, dict):
        logger.warning("Ignoring %s: top level must be a mapping", config_path)
        return {}

    section = yaml_config.get("server", {}) or {}
    if not isinstance(section, dict):
        logger.warning("Ignoring %s: 'server' section must be a mapping", config_path)
        return {}

    known = {f.name for f in fields(ServerConfig)}
    unknown = sorted(set(section) - known)
    if unknown:
        logger.warning("Ignoring unknown server settings in %s: %s", config_path, unknown)
    return {key: value for key, value in section.items() if key in known}


def load_config(config_path: Path | None = None) -> ServerConfig:
    """Load configuration from YAML file and environment variables.

    Precedence (highest to lowest):
    1. Environment variables
    2. YAML config file
    3. Default values

    Args:
        config_path: Optional path to config YAML file (default: ./context_manager.yml)

    Returns:
        ServerConfig

    Raises:
        ValueError: If a setting has an invalid value

    Environment variables:
        CONTEXT_MANAGER_NAME: Server name
        CONTEXT_MANAGER_PROTOCOL_VERSION: Protocol version reported by initialize
        CONTEXT_MANAGER_SKILLS_DIR: Skills directory
        WORKSPACE_DIR / CONTEXT_MANAGER_WORKSPACE_DIR: Workspace root
        CONTEXT_MANAGER_LOG_LEVEL: Log level (DEBUG/INFO/WARNING/ERROR/CRITICAL)
        CONTEXT_MANAGER_LOG_FORMAT: Log format (text/json)
        CONTEXT_MANAGER_SHUTDOWN_TIMEOUT: Shutdown drain timeout in seconds
        CONTEXT_MANAGER_TOOL_TIMEOUT: Per-call tool timeout in seconds ("none" disables)
        CONTEXT_MANAGER_USE_ENTRY_POINTS: Load entry-point skills (true/false)
    """
    if config_path is None:
        config_path = Path(DEFAULT_CONFIG_FILE)

    settings: dict[str, Any] = {}
    if config_path.exists():
        settings.update(_read_yaml_section(config_path))

    # Environment variable overrides (highest precedence)
    for env_name, field_name, convert in _ENV_OVERRIDES:
        raw = os.getenv(env_name)
        if raw:
            try:
                settings[field_name] = convert(raw)
            except ValueError as e:
                msg = f"Invalid value for {env_name}: {raw!r} ({e})"
                raise ValueError(msg) from e

    try:
        config = ServerConfig(**settings)
    except (TypeError, ValueError) as e:
        logger.exception("Configuration validation failed: %s", e)
        raise ValueError(str(e)) from e

    logger.debug("Effective configuration: %s", config.to_dict())
    return config


# Global config instance (lazy-loaded)
_global_config: ServerConfig | None = None


def get_config() -> ServerConfig:
    """Get global config instance (singleton pattern).

    Returns:
        ServerConfig
    """
    global _global_config

    if _global_config is None:
        _global_config = load_config()

    return _global_config


def set_config(config: ServerConfig) -> None:
    """Install ``config`` as the global config instance."""
    global _global_config
    _global_config = config


def reset_config() -> None:
    """Drop the cached global config (used by tests)."""
    global _global_config
    _global_config = None


__all__ = [
    "DEFAULT_CONFIG_FILE",
    "DEFAULT_PROTOCOL_VERSION",
    "ServerConfig",
    "get_config",
    "load_config",
    "reset_config",
    "set_config",
]

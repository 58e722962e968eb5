"""Entrypoint helpers for running the stdio MCP server."""

import asyncio
import logging
import sys
from pathlib import Path
from typing import BinaryIO

from context_manager.framework.skills import (
    SkillLoadResult,
    SkillRegistry,
    entry_point_factories,
    load_skill_factories,
    load_skills,
    register_loaded,
    unload_all,
)
from context_manager.observability import configure_logging
from context_manager.server.config import ServerConfig, load_config, set_config
from context_manager.server.dispatcher import ProtocolDispatcher
from context_manager.server.lifecycle import EXIT_ERROR, LifecycleManager
from context_manager.server.stdio_transport import OutputChannel, StdioServer, open_stdin_source

logger = logging.getLogger(__name__)


async def build_registry(config: ServerConfig) -> tuple[SkillRegistry, SkillLoadResult]:
    """
    Load skills from every configured source and register them.

    Args:
        config: Server configuration

    Returns:
        (registry, combined load result)
    """
    result = await load_skills(Path(config.skills_dir))
    if config.use_entry_points:
        result.extend(await load_skill_factories(entry_point_factories()))

    registry = SkillRegistry()
    result = await register_loaded(registry, result)

    for failure in result.failed:
        logger.warning("Skill failed to load: %s: %s", failure.path, failure.error)
    logger.info(
        "Loaded %s skill(s) with %s tool(s); %s failed",
        registry.size,
        registry.tool_count,
        len(result.failed),
    )
    return registry, result


async def run_server(
    config: ServerConfig,
    stdin: BinaryIO | None = None,
    stdout: BinaryIO | None = None,
    install_signals: bool = True,
) -> int:
    """
    Load skills and serve JSON-RPC over stdio until shutdown.

    Args:
        config: Server configuration
        stdin: Binary input stream (default: sys.stdin.buffer)
        stdout: Binary output stream (default: sys.stdout.buffer)
        install_signals: Install SIGINT/SIGTERM handlers on the loop

    Returns:
        Process exit code
    """
    set_config(config)
    try:
        registry, _ = await build_registry(config)
    except Exception as e:
        logger.exception("Fatal error during startup: %s", e)
        return EXIT_ERROR

    lifecycle = LifecycleManager(shutdown_timeout=config.shutdown_timeout_seconds)
    dispatcher = ProtocolDispatcher(registry, config)
    server = StdioServer(dispatcher, lifecycle, OutputChannel(stdout))
    lifecycle.on_cleanup(lambda: unload_all(registry))

    if install_signals:
        lifecycle.install_signal_handlers()
    try:
        source = await open_stdin_source(stdin)
        logger.info("%s %s listening on stdio", config.name, config.version)
        return await server.serve(source)
    finally:
        if install_signals:
            lifecycle.remove_signal_handlers()


def run(config: ServerConfig | None = None) -> int:
    """Run the server on the process's stdio and return the exit code."""
    config = config or load_config()
    configure_logging(config.log_level, config.log_format)
    return asyncio.run(run_server(config))


def main() -> None:  # pragma: no cover - convenience entrypoint
    sys.exit(run())


if __name__ == "__main__":
    main()

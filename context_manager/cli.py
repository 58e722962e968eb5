"""context-manager CLI.

This module provides command-line tools for:
- Running the stdio MCP server
- Listing the skills that load from a skills directory
- Printing the tools/list payload a client would receive

Example:
    # Start the server (default command)
    context-manager serve --skills-dir ./skills

    # Check which skills load
    context-manager skills list --json

    # Inspect tool schemas
    context-manager tools list
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any

from context_manager import __version__
from context_manager.framework.skills import SkillLoadResult, list_tools, unload_all
from context_manager.observability import configure_logging
from context_manager.server.config import ServerConfig, load_config, set_config
from context_manager.server.main import build_registry, run_server

logger = logging.getLogger(__name__)


def _resolve_config(args: argparse.Namespace) -> ServerConfig:
    """Load config from file and environment, then apply command-line flags."""
    config_path = Path(args.config) if args.config else None
    config = load_config(config_path).with_overrides(
        skills_dir=getattr(args, "skills_dir", None),
        log_level=args.log_level,
        log_format=args.log_format,
        use_entry_points=True if getattr(args, "entry_points", False) else None,
    )
    set_config(config)
    return config


# =============================================================================
# Server Commands
# =============================================================================


def serve(args: argparse.Namespace, config: ServerConfig) -> int:
    """Run the stdio server until stdin closes or a signal arrives.

    Returns:
        Exit code reported by the lifecycle manager
    """
    return asyncio.run(run_server(config))


# =============================================================================
# Inspection Commands
# =============================================================================


async def _load(
    config: ServerConfig,
) -> tuple[list[dict[str, Any]], list[dict[str, Any]], SkillLoadResult]:
    registry, result = await build_registry(config)
    try:
        skills = [
            {
                "id": skill.id,
                "name": skill.name,
                "version": skill.version,
                "description": skill.description,
                "tools": skill.tool_names,
            }
            for skill in registry.get_all()
        ]
        tools = [
            tool.model_dump(by_alias=True, exclude_none=True, mode="json")
            for tool in list_tools(registry)
        ]
    finally:
        await unload_all(registry)
    return skills, tools, result


def skills_list(args: argparse.Namespace, config: ServerConfig) -> int:
    """List loaded skills and report load failures.

    Returns:
        Exit code (0 if every skill loaded, 1 otherwise)
    """
    skills, _, result = asyncio.run(_load(config))
    failures = [failure.to_dict() for failure in result.failed]

    if args.json:
        print(json.dumps({"skills": skills, "failed": failures}, indent=2))
    else:
        for skill in skills:
            print(f"{skill['id']} v{skill['version']}: {', '.join(skill['tools'])}")
        if not skills:
            print("No skills loaded")

    for failure in failures:
        print(f"FAILED {failure['path']}: {failure['error']}", file=sys.stderr)
    return 1 if failures else 0


def tools_list(args: argparse.Namespace, config: ServerConfig) -> int:
    """Print the tools/list payload as JSON.

    Returns:
        Exit code (always 0; load failures are logged)
    """
    _, tools, _ = asyncio.run(_load(config))
    print(json.dumps({"tools": tools}, indent=2, ensure_ascii=False))
    return 0


# =============================================================================
# Parser
# =============================================================================


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the CLI.

    Returns:
        Configured ArgumentParser
    """
    parser = argparse.ArgumentParser(
        prog="context-manager",
        description="Skill-based MCP server over stdio",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Start the server (also the default when no command is given)
  context-manager serve --skills-dir ./skills

  # List loaded skills as JSON
  context-manager skills list --json

  # Print tool schemas
  context-manager tools list
        """,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--config", "-c", help="Path to YAML config file (default: ./context_manager.yml)"
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=None,
        help="Set logging level (default: from config, INFO)",
    )
    parser.add_argument(
        "--log-format",
        choices=["text", "json"],
        default=None,
        help="Log line format on stderr (default: from config, text)",
    )

    # Options shared by every command that loads skills
    skills_options = argparse.ArgumentParser(add_help=False)
    skills_options.add_argument("--skills-dir", help="Directory containing skill packages")
    skills_options.add_argument(
        "--entry-points",
        action="store_true",
        help="Also load skills registered under the context_manager.skills entry point group",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    serve_parser = subparsers.add_parser(
        "serve", parents=[skills_options], help="Run the MCP server on stdio"
    )
    serve_parser.set_defaults(func=serve)

    # -------------------------------------------------------------------------
    # Skills commands
    # -------------------------------------------------------------------------
    skills_parser = subparsers.add_parser("skills", help="Skill inspection commands")
    skills_subparsers = skills_parser.add_subparsers(dest="skills_command", help="Skills subcommand")

    skills_list_parser = skills_subparsers.add_parser(
        "list", parents=[skills_options], help="List loaded skills and load failures"
    )
    skills_list_parser.add_argument("--json", action="store_true", help="Output as JSON")
    skills_list_parser.set_defaults(func=skills_list)

    # -------------------------------------------------------------------------
    # Tools commands
    # -------------------------------------------------------------------------
    tools_parser = subparsers.add_parser("tools", help="Tool inspection commands")
    tools_subparsers = tools_parser.add_subparsers(dest="tools_command", help="Tools subcommand")

    tools_list_parser = tools_subparsers.add_parser(
        "list", parents=[skills_options], help="Print the tools/list payload"
    )
    tools_list_parser.set_defaults(func=tools_list)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the CLI.

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    # No command: serve, matching how MCP clients launch the binary
    if not args.command:
        args = parser.parse_args([*(argv if argv is not None else sys.argv[1:]), "serve"])

    if not hasattr(args, "func"):
        parser.parse_args([args.command, "--help"])
        return 1

    try:
        config = _resolve_config(args)
    except ValueError as e:
        configure_logging()
        logger.error("Invalid configuration: %s", e)
        return 1

    configure_logging(config.log_level, config.log_format)
    return args.func(args, config)


if __name__ == "__main__":
    sys.exit(main())

"""
Skill system - data contract, loader, registry and tool router.
"""

from .loader import (
    BUILTIN_SKILLS_DIR,
    ENTRY_POINT_GROUP,
    coerce_skill,
    entry_point_factories,
    load_skill_factories,
    load_skills,
    register_loaded,
    unload_all,
    unload_skill,
)
from .registry import SkillRegistry
from .router import list_tools, normalize_result, route_tool_call, text_result
from .types import (
    NoArguments,
    Skill,
    SkillLoadFailure,
    SkillLoadResult,
    ToolDefinition,
    ToolRegistration,
    ToolResult,
    parse_semver,
)

__all__ = [
    "BUILTIN_SKILLS_DIR",
    "ENTRY_POINT_GROUP",
    "NoArguments",
    # Data contract
    "Skill",
    "SkillLoadFailure",
    "SkillLoadResult",
    # Registry
    "SkillRegistry",
    "ToolDefinition",
    "ToolRegistration",
    "ToolResult",
    # Loader
    "coerce_skill",
    "entry_point_factories",
    # Router
    "list_tools",
    "load_skill_factories",
    "load_skills",
    "normalize_result",
    "parse_semver",
    "register_loaded",
    "route_tool_call",
    "text_result",
    "unload_all",
    "unload_skill",
]

"""
Skill registry for managing loaded skills and their tools.

The registry owns the only mutable shared state of the server: the set of
registered skills and the tool name -> skill id mapping. Every tool name
maps to exactly one registered skill. Conflicts are rejected at
registration time, before any state changes.

All operations are synchronous. The server runs on a single event loop, so
validation and mutation happen without an intervening await and no locks
are needed.

Usage:
    registry = SkillRegistry()
    registry.register(skill)
    owner = registry.find_by_tool("read_todo")
"""

import logging

from context_manager.framework.errors import (
    DuplicateSkillIdError,
    DuplicateToolNameError,
    SkillNotFoundError,
)
from context_manager.framework.skills.types import Skill

logger = logging.getLogger(__name__)


class SkillRegistry:
    """
    Central registry for loaded skills.

    Skills are kept in registration order; ``get_all`` and ``tool_names``
    reflect that order.
    """

    def __init__(self) -> None:
        self._skills: dict[str, Skill] = {}
        self._tool_to_skill: dict[str, str] = {}

    def register(self, skill: Skill) -> None:
        """
        Register a skill and all of its tools.

        Args:
            skill: Skill to register

        Raises:
            DuplicateSkillIdError: If a skill with the same id is registered
            DuplicateToolNameError: If any tool name is already taken, or the
                skill lists the same tool name twice
        """
        if skill.id in self._skills:
            raise DuplicateSkillIdError(skill.id)

        # Check every tool name before touching any state
        seen: set[str] = set()
        for tool_name in skill.tool_names:
            existing = self._tool_to_skill.get(tool_name)
            if existing is not None:
                raise DuplicateToolNameError(tool_name, existing, skill.id)
            if tool_name in seen:
                raise DuplicateToolNameError(tool_name, skill.id, skill.id)
            seen.add(tool_name)

        self._skills[skill.id] = skill
        for tool_name in skill.tool_names:
            self._tool_to_skill[tool_name] = skill.id

        logger.info("Registered skill: %s (%s tools)", skill.id, len(skill.tools))

    def unregister(self, skill_id: str) -> Skill:
        """
        Remove a skill and every tool mapping it owned.

        Args:
            skill_id: Id of the skill to remove

        Returns:
            The removed skill

        Raises:
            SkillNotFoundError: If no skill with that id is registered
        """
        skill = self._skills.get(skill_id)
        if skill is None:
            raise SkillNotFoundError(skill_id)

        for tool_name in skill.tool_names:
            self._tool_to_skill.pop(tool_name, None)
        del self._skills[skill_id]

        logger.info("Unregistered skill: %s", skill_id)
        return skill

    def get(self, skill_id: str) -> Skill | None:
        """Get skill by id."""
        return self._skills.get(skill_id)

    def get_all(self) -> list[Skill]:
        """All registered skills, in registration order."""
        return list(self._skills.values())

    def find_by_tool(self, tool_name: str) -> Skill | None:
        """Find the skill that provides ``tool_name``."""
        skill_id = self._tool_to_skill.get(tool_name)
        return self._skills.get(skill_id) if skill_id is not None else None

    def tool_names(self) -> list[str]:
        """Names of all registered tools, in registration order."""
        return [name for skill in self._skills.values() for name in skill.tool_names]

    @property
    def size(self) -> int:
        """Number of registered skills."""
        return len(self._skills)

    @property
    def tool_count(self) -> int:
        """Number of registered tools across all skills."""
        return len(self._tool_to_skill)

    def __len__(self) -> int:
        return len(self._skills)

    def __contains__(self, skill_id: object) -> bool:
        return skill_id in self._skills


__all__ = ["SkillRegistry"]

"""
Skill loader.

Discovers skill bundles at startup, validates their shape, awaits their
optional ``init`` hook and reports which skills loaded and which failed.
Failures are isolated per skill: one broken bundle never stops the others
from loading.

Three discovery sources share the same per-skill isolation:

- ``load_skills(directory)``: every immediate subdirectory holding an
  ``__init__.py`` is imported as a package and must export ``skill``,
  ``SKILL`` or a zero-argument ``create_skill()`` factory.
- ``load_skill_factories(factories)``: an explicit list of factories.
- ``entry_point_factories(group)``: factories declared by installed
  distributions under the ``context_manager.skills`` entry point group.

Example:
    registry = SkillRegistry()
    result = await load_skills(Path("skills"))
    result = await register_loaded(registry, result)
    for failure in result.failed:
        print(failure.path, failure.error)
"""

import hashlib
import importlib.util
import logging
import re
import sys
from collections.abc import Callable, Iterable, Mapping
from importlib.metadata import EntryPoint, entry_points
from pathlib import Path
from types import ModuleType
from typing import Any

from context_manager.framework.errors import InvalidSkillError, RegistrationError, SkillInitError
from context_manager.framework.skills._async import safe_await_if_needed
from context_manager.framework.skills.registry import SkillRegistry
from context_manager.framework.skills.types import Skill, SkillLoadFailure, SkillLoadResult

logger = logging.getLogger(__name__)

ENTRY_POINT_GROUP = "context_manager.skills"
BUILTIN_SKILLS_DIR = Path(__file__).resolve().parents[2] / "skills"

SkillFactory = Callable[[], Any]

_SKILL_FIELDS = ("id", "name", "description", "version", "tools")


def coerce_skill(value: Any, source: str) -> Skill:
    """
    Validate an exported value against the Skill shape.

    Args:
        value: A ``Skill`` instance or a mapping with the Skill fields
        source: Where the value came from, for error messages

    Returns:
        Skill instance

    Raises:
        InvalidSkillError: If the value is not a valid skill
    """
    if isinstance(value, Skill):
        return value
    if isinstance(value, Mapping):
        missing = [key for key in _SKILL_FIELDS if key not in value]
        if missing:
            msg = f"Invalid skill export: missing {', '.join(missing)}"
            raise InvalidSkillError(msg, path=source)
        unknown = set(value) - {*_SKILL_FIELDS, "init", "cleanup"}
        if unknown:
            msg = f"Invalid skill export: unknown fields {sorted(unknown)}"
            raise InvalidSkillError(msg, path=source)
        return Skill(**value)
    msg = "Invalid skill export: must export 'skill', 'SKILL' or 'create_skill'"
    raise InvalidSkillError(msg, path=source)


def _module_name_for(path: Path) -> str:
    digest = hashlib.sha1(str(path).encode("utf-8")).hexdigest()[:8]
    safe = re.sub(r"\W", "_", path.name)
    return f"_context_manager_skill_{safe}_{digest}"


def _import_skill_package(path: Path) -> ModuleType:
    """Import ``path/__init__.py`` as a package so relative imports work."""
    init_file = path / "__init__.py"
    if not init_file.is_file():
        msg = "Missing entry module __init__.py"
        raise InvalidSkillError(msg, path=str(path))

    module_name = _module_name_for(path)
    spec = importlib.util.spec_from_file_location(
        module_name, init_file, submodule_search_locations=[str(path)]
    )
    if spec is None or spec.loader is None:
        msg = f"Cannot create import spec for {init_file}"
        raise InvalidSkillError(msg, path=str(path))

    module = importlib.util.module_from_spec(spec)
    sys.modules[module_name] = module
    try:
        spec.loader.exec_module(module)
    except BaseException:
        sys.modules.pop(module_name, None)
        raise
    return module


def _export_from_module(module: ModuleType, source: str) -> Any:
    for attr in ("skill", "SKILL"):
        if hasattr(module, attr):
            return getattr(module, attr)
    factory = getattr(module, "create_skill", None)
    if callable(factory):
        return factory()
    msg = "Invalid skill export: must export 'skill', 'SKILL' or 'create_skill'"
    raise InvalidSkillError(msg, path=source)


async def _initialize(skill: Skill) -> None:
    if skill.init is None:
        return
    try:
        await safe_await_if_needed(skill.init())
    except Exception as e:
        raise SkillInitError(skill.id, e) from e


async def _load_one(source: str, produce: SkillFactory, result: SkillLoadResult) -> None:
    try:
        value = await safe_await_if_needed(produce())
        skill = coerce_skill(value, source)
        await _initialize(skill)
    except (Exception, SystemExit) as e:
        # SystemExit: a skill module calling sys.exit() at import time
        result.failed.append(SkillLoadFailure(path=source, error=e))
        logger.error("Failed to load skill from %s: %s", source, e)
        return

    result.loaded.append(skill)
    logger.info("Loaded skill: %s v%s", skill.id, skill.version)


async def load_skills(directory: Path | str | None = None) -> SkillLoadResult:
    """
    Load all skills from a skills directory.

    Args:
        directory: Skills directory (defaults to the built-in skills)

    Returns:
        Load result with loaded and failed skills
    """
    skills_dir = Path(directory) if directory is not None else BUILTIN_SKILLS_DIR
    result = SkillLoadResult()
    logger.info("Skills directory: %s", skills_dir)

    try:
        entries = sorted(skills_dir.iterdir(), key=lambda entry: entry.name)
    except OSError as e:
        logger.error("Failed to read skills directory %s: %s", skills_dir, e)
        return result

    for entry in entries:
        if entry.name.startswith(("_", ".")):
            continue
        if not entry.is_dir():
            logger.debug("Skipping non-directory: %s", entry.name)
            continue
        logger.debug("Loading skill from: %s", entry)
        await _load_one(
            str(entry),
            lambda entry=entry: _export_from_module(_import_skill_package(entry), str(entry)),
            result,
        )

    logger.info("Loaded %s skill(s), %s failed", len(result.loaded), len(result.failed))
    return result


async def load_skill_factories(
    factories: Iterable[SkillFactory | tuple[str, SkillFactory]],
) -> SkillLoadResult:
    """
    Load skills from an explicit list of factories.

    Args:
        factories: Zero-argument callables returning a skill, or
            ``(label, factory)`` pairs when a custom label is wanted

    Returns:
        Load result with loaded and failed skills
    """
    result = SkillLoadResult()
    for item in factories:
        if isinstance(item, tuple):
            source, factory = item
        else:
            factory = item
            module = getattr(factory, "__module__", "?")
            source = f"{module}:{getattr(factory, '__qualname__', repr(factory))}"
        await _load_one(source, factory, result)
    return result


def _entry_point_factory(entry_point: EntryPoint) -> SkillFactory:
    def produce() -> Any:
        target = entry_point.load()
        if isinstance(target, (Skill, Mapping)):
            return target
        if callable(target):
            return target()
        return target

    return produce


def entry_point_factories(group: str = ENTRY_POINT_GROUP) -> list[tuple[str, SkillFactory]]:
    """
    Resolve skill factories declared as entry points.

    Entry points are loaded lazily inside each factory, so an import error in
    one distribution is recorded as that skill's failure.

    Args:
        group: Entry point group name

    Returns:
        ``(label, factory)`` pairs
    """
    return [
        (f"entry-point:{ep.name} ({ep.value})", _entry_point_factory(ep))
        for ep in entry_points(group=group)
    ]


async def register_loaded(registry: SkillRegistry, result: SkillLoadResult) -> SkillLoadResult:
    """
    Register loaded skills, moving registration conflicts into ``failed``.

    A skill rejected by the registry has its ``cleanup`` hook awaited, since
    its ``init`` already ran.

    Args:
        registry: Registry to register into
        result: Result from one of the load functions

    Returns:
        New load result listing only the registered skills as loaded
    """
    registered = SkillLoadResult(failed=list(result.failed))
    for skill in result.loaded:
        try:
            registry.register(skill)
        except RegistrationError as e:
            logger.error("Skipping skill %s: %s", skill.id, e)
            registered.failed.append(SkillLoadFailure(path=skill.id, error=e))
            await unload_skill(skill)
            continue
        registered.loaded.append(skill)
    return registered


async def unload_skill(skill: Skill) -> None:
    """
    Await a skill's cleanup hook; failures are logged, not raised.

    Args:
        skill: Skill to clean up
    """
    if skill.cleanup is None:
        return
    try:
        await safe_await_if_needed(skill.cleanup())
        logger.info("Cleaned up skill: %s", skill.id)
    except Exception as e:
        logger.exception("Failed to cleanup skill %s: %s", skill.id, e)


async def unload_all(registry: SkillRegistry) -> None:
    """
    Unregister every skill in reverse registration order and clean it up.

    Args:
        registry: Registry to empty
    """
    for skill in reversed(registry.get_all()):
        registry.unregister(skill.id)
        await unload_skill(skill)


__all__ = [
    "BUILTIN_SKILLS_DIR",
    "ENTRY_POINT_GROUP",
    "SkillFactory",
    "coerce_skill",
    "entry_point_factories",
    "load_skill_factories",
    "load_skills",
    "register_loaded",
    "unload_all",
    "unload_skill",
]

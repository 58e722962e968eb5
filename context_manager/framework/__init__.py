"""Framework layer: error taxonomy and the skill system."""

from . import errors, skills

__all__ = ["errors", "skills"]

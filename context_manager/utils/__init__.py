"""Shared helpers for skills."""

from .fs import file_exists, is_path_allowed, resolve_within, safe_read_file, safe_write_file

__all__ = ["file_exists", "is_path_allowed", "resolve_within", "safe_read_file", "safe_write_file"]

"""
Safe file helpers for skills that read and write workspace files.

All helpers are async; blocking filesystem calls run in the default executor
so a slow disk never stalls the event loop.
"""

import asyncio
import logging
import os
from functools import partial
from pathlib import Path

from context_manager.framework.errors import FileAccessError, PathNotAllowedError

logger = logging.getLogger(__name__)


def _read_text(path: Path, encoding: str) -> str:
    return path.read_text(encoding=encoding)


def _write_text(path: Path, content: str, encoding: str, create_dirs: bool) -> None:
    if create_dirs:
        path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding=encoding)


async def safe_read_file(
    path: str | Path, missing_ok: bool = False, encoding: str = "utf-8"
) -> str | None:
    """
    Read a text file.

    Args:
        path: File path
        missing_ok: Return None instead of raising when the file does not exist
        encoding: Text encoding

    Returns:
        File contents, or None for a missing file when ``missing_ok`` is set

    Raises:
        FileAccessError: If the file is missing (and not ``missing_ok``) or unreadable
    """
    target = Path(os.path.normpath(path))
    loop = asyncio.get_running_loop()
    try:
        return await loop.run_in_executor(None, partial(_read_text, target, encoding))
    except FileNotFoundError as e:
        if missing_ok:
            return None
        raise FileAccessError("read", str(path), e) from e
    except (OSError, UnicodeDecodeError) as e:
        raise FileAccessError("read", str(path), e) from e


async def safe_write_file(
    path: str | Path, content: str, create_dirs: bool = True, encoding: str = "utf-8"
) -> None:
    """
    Write a text file, creating parent directories by default.

    Args:
        path: File path
        content: Text to write
        create_dirs: Create missing parent directories
        encoding: Text encoding

    Raises:
        FileAccessError: If the write fails
    """
    target = Path(os.path.normpath(path))
    loop = asyncio.get_running_loop()
    try:
        await loop.run_in_executor(
            None, partial(_write_text, target, content, encoding, create_dirs)
        )
    except OSError as e:
        raise FileAccessError("write", str(path), e) from e
    logger.debug("Wrote %s (%s chars)", target, len(content))


async def file_exists(path: str | Path) -> bool:
    """True if ``path`` exists and is readable."""
    target = Path(os.path.normpath(path))
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(
        None, lambda: target.exists() and os.access(target, os.R_OK)
    )


def is_path_allowed(path: str | Path, allowed_dir: str | Path) -> bool:
    """
    Check that ``path`` resolves inside ``allowed_dir``.

    Comparison is by path components, so ``/work-other`` is not inside ``/work``.
    """
    resolved = Path(path).resolve()
    base = Path(allowed_dir).resolve()
    return resolved == base or base in resolved.parents


def resolve_within(base_dir: str | Path, relative: str | Path) -> Path:
    """
    Join ``relative`` onto ``base_dir`` and reject results that escape it.

    Raises:
        PathNotAllowedError: If the joined path resolves outside ``base_dir``
    """
    candidate = Path(base_dir) / relative
    if not is_path_allowed(candidate, base_dir):
        raise PathNotAllowedError(str(relative), str(base_dir))
    return candidate

"""
Storage utilities for fmrec.

This module centralizes the small amount of file handling the recorder needs:
- Build timestamped output paths for new recordings
- Check for and delete recording files
- Turn arbitrary identifiers into safe name components (files, pipe names)

Design goals:
- Safe path handling and directory creation
- Minimal, dependency-light, easy to unit test
"""

from __future__ import annotations

import hashlib
import logging
import re
import time
from pathlib import Path

__all__ = [
    "timestamp",
    "sanitize_component",
    "unique_component",
    "ensure_parent_dir",
    "recording_path",
    "file_exists",
    "delete_if_exists",
]


def timestamp() -> str:
    """
    Return a compact timestamp suitable for filenames: YYYYMMDD_HHMMSS.
    """
    return time.strftime("%Y%m%d_%H%M%S")


def sanitize_component(value: str) -> str:
    """
    Sanitize a name component by replacing unsafe characters.

    - Keeps letters, digits, dot, underscore, and dash.
    - Replaces any other character sequences with underscores.
    - Strips leading/trailing whitespace.
    - Returns 'out' if the result is empty.
    """
    value = value.strip()
    sanitized = re.sub(r"[^A-Za-z0-9._-]+", "_", value)
    return sanitized or "out"


def unique_component(value: str) -> str:
    """
    Like sanitize_component, but distinct inputs get distinct names.

    Values that are already safe and contain no "-" are returned unchanged.
    Any other value gets "-" plus a short digest of itself appended, so a
    returned name containing "-" always ends with the digest of its own input.
    """
    sanitized = sanitize_component(value)
    if sanitized == value and "-" not in sanitized:
        return sanitized
    digest = hashlib.sha1(value.encode("utf-8")).hexdigest()[:8]
    return f"{sanitized}-{digest}"


def ensure_parent_dir(path: Path) -> None:
    """
    Ensure the parent directory of `path` exists.
    """
    path.parent.mkdir(parents=True, exist_ok=True)


def recording_path(directory: Path, extension: str, prefix: str | None = None) -> Path:
    """
    Build `<directory>/<prefix or rec_TIMESTAMP>.<extension>` and create the directory.
    """
    base = sanitize_component(prefix) if prefix else f"rec_{timestamp()}"
    path = Path(directory) / f"{base}.{extension.lstrip('.')}"
    ensure_parent_dir(path)
    return path


def file_exists(path: str | Path) -> bool:
    return Path(path).is_file()


def delete_if_exists(path: str | Path) -> bool:
    """
    Delete the file at `path` if there is one.

    Returns:
        True if a file was deleted.
    """
    p = Path(path)
    if not p.is_file():
        return False
    p.unlink()
    logging.info("Deleted recording file: %s", p)
    return True

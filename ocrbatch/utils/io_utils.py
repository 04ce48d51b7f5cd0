"""
Basic file-system helpers shared by the state store and the CLI.

Provides helpers for creating parent directories and writing text or
binary payloads without leaving half-written files behind.
"""

from __future__ import annotations

import os
from pathlib import Path


def ensure_parent(path: str | Path) -> None:
    """
    Ensure that the parent directory for the given path exists.

    Creates all missing parents with `exist_ok=True` and does not
    touch the file itself.

    Args:
      path: Target file path whose parent should be created.
    """
    path_obj = Path(path)
    path_obj.parent.mkdir(parents=True, exist_ok=True)


def write_text_atomic(path: str | Path, text: str) -> None:
    """
    Write UTF-8 text through a sibling temp file and rename it into place.

    Readers never observe a partially written file; the last completed
    write wins. A failed write removes its temp file and re-raises.

    Args:
      path: Destination file path.
      text: Content to persist.
    """
    path_obj = Path(path)
    ensure_parent(path_obj)
    tmp = path_obj.with_name(f".{path_obj.name}.{os.getpid()}.tmp")
    try:
        tmp.write_text(text, encoding="utf-8")
        os.replace(tmp, path_obj)
    except BaseException:
        tmp.unlink(missing_ok=True)
        raise


def write_bytes(path: str | Path, data: bytes) -> Path:
    """
    Write a binary payload, creating parent directories as needed.

    Returns:
      The destination as a `Path` instance.
    """
    path_obj = Path(path)
    ensure_parent(path_obj)
    path_obj.write_bytes(data)
    return path_obj

"""Filesystem helpers."""

from __future__ import annotations

import os
import stat
import tempfile
from pathlib import Path

__all__ = [
    "add_execute_bit",
    "atomic_write_text",
    "is_executable",
    "write_private_bytes",
]

_PRIVATE_FILE_MODE = 0o600
_EXECUTE_BITS = stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH


def atomic_write_text(path: Path, content: str, *, encoding: str = "utf-8") -> None:
    """Write text to path atomically using temp file + replace."""
    path.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_name = tempfile.mkstemp(
        prefix=f".{path.name}.",
        suffix=".tmp",
        dir=str(path.parent),
    )
    tmp_path = Path(tmp_name)

    try:
        with os.fdopen(fd, "w", encoding=encoding, newline="") as handle:
            handle.write(content)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_path, path)
    finally:
        if tmp_path.exists():
            tmp_path.unlink(missing_ok=True)


def write_private_bytes(path: Path, data: bytes) -> None:
    """Create ``path`` readable only by the current user and write ``data``.

    The file is opened in binary mode, so no newline translation happens on
    any platform. Fails if the path already exists. A partially written file
    is removed before the error propagates.
    """
    flags = os.O_WRONLY | os.O_CREAT | os.O_EXCL | getattr(os, "O_BINARY", 0)
    fd = os.open(path, flags, _PRIVATE_FILE_MODE)
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
    except BaseException:
        path.unlink(missing_ok=True)
        raise


def is_executable(path: Path) -> bool:
    return path.is_file() and os.access(path, os.X_OK)


def add_execute_bit(path: Path) -> None:
    """Equivalent of ``chmod +x``."""
    mode = path.stat().st_mode
    path.chmod(mode | _EXECUTE_BITS)

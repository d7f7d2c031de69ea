"""
secrets-sync — filesystem utilities

File: src/secrets_sync/utils/fs.py

Purpose
- Atomic writes for the manifest and marker files, guarded deletion for backups.

Functional requirements
- Atomic writes use temp files in the destination directory and replace in a single step.
- Deletion refuses paths outside the backup directory.
"""

from __future__ import annotations

import contextlib
import os
import tempfile
from pathlib import Path

PathLike = str | os.PathLike[str]

__all__ = [
    "atomic_write",
    "ensure_directory",
    "read_bytes",
    "read_text",
    "safe_delete",
]


def atomic_write(path: PathLike, data: bytes | str, *, encoding: str = "utf-8") -> None:
    """
    Atomically write ``data`` to ``path``.

    The write strategy is:
    1. create temp file in the same directory,
    2. write + flush + fsync file data,
    3. replace target via ``os.replace``.
    """

    target = Path(path)
    target_parent = target.parent.resolve(strict=True)
    if not target_parent.is_dir():
        raise NotADirectoryError(f"{target_parent!s} is not a directory")

    fd, temp_name = tempfile.mkstemp(
        prefix=f".{target.name}.",
        suffix=".tmp",
        dir=str(target_parent),
    )
    temp_path = Path(temp_name)

    try:
        if isinstance(data, bytes):
            with os.fdopen(fd, "wb") as file_handle:
                file_handle.write(data)
                file_handle.flush()
                os.fsync(file_handle.fileno())
        else:
            with os.fdopen(fd, "w", encoding=encoding) as file_handle:
                file_handle.write(data)
                file_handle.flush()
                os.fsync(file_handle.fileno())

        os.replace(temp_path, target)
        _fsync_directory(target_parent)
    except Exception:
        with contextlib.suppress(OSError):
            temp_path.unlink(missing_ok=True)
        raise


def ensure_directory(path: PathLike) -> Path:
    """Create ``path`` (and parents) if missing and return it."""

    directory = Path(path)
    directory.mkdir(parents=True, exist_ok=True)
    return directory


def read_text(path: PathLike, *, encoding: str = "utf-8") -> str:
    """Read a whole text file; the handle is closed on every exit path."""

    with Path(path).open("r", encoding=encoding) as handle:
        return handle.read()


def read_bytes(path: PathLike) -> bytes:
    """Read a whole file as bytes; the handle is closed on every exit path."""

    with Path(path).open("rb") as handle:
        return handle.read()


def safe_delete(path: PathLike, root: PathLike) -> None:
    """Delete the file ``path`` only if it is contained within ``root``."""

    base = Path(root).resolve(strict=True)
    if not base.is_dir():
        raise NotADirectoryError(f"{base!s} is not a directory")

    target = Path(path)
    candidate = target.parent.resolve(strict=True) / target.name
    if not _is_relative_to(candidate, base):
        raise ValueError(f"refusing to delete path outside {base!s}: {target!s}")
    if target.is_dir() and not target.is_symlink():
        raise IsADirectoryError(f"refusing to delete directory: {target!s}")

    target.unlink()


def _is_relative_to(child: Path, parent: Path) -> bool:
    try:
        child.relative_to(parent)
    except ValueError:
        return False
    return True


def _fsync_directory(path: Path) -> None:
    """
    Best-effort directory fsync for metadata durability after ``os.replace``.

    Some platforms/filesystems do not support fsync on directories.
    """

    if os.name == "nt":
        return

    flags = os.O_RDONLY
    if hasattr(os, "O_DIRECTORY"):
        flags |= os.O_DIRECTORY

    try:
        dir_fd = os.open(path, flags)
    except OSError:
        return

    try:
        os.fsync(dir_fd)
    except OSError:
        return
    finally:
        os.close(dir_fd)

"""
secrets-sync — hashing utilities

File: src/secrets_sync/utils/hashing.py

Purpose
- Provide deterministic SHA-256 helpers for secret values and backup files.
- Shared by the manifest store (value hashes) and backup dedup (file hashes).

Functional requirements
- File hashing covers the full file bytes; equal digests mean the same version.
- Unreadable files surface as ``HashComputationError`` naming only the path.
"""

from __future__ import annotations

import hashlib
import os
from pathlib import Path

from secrets_sync.errors import HashComputationError

PathLike = str | os.PathLike[str]

_FILE_READ_CHUNK_BYTES = 1024 * 1024

__all__ = [
    "hash_value",
    "sha256_bytes",
    "sha256_file",
    "sha256_text",
]


def sha256_bytes(data: bytes) -> str:
    """Return SHA-256 hex digest for raw bytes."""

    return hashlib.sha256(data).hexdigest()


def sha256_text(text: str, *, encoding: str = "utf-8") -> str:
    """Return SHA-256 hex digest for text encoded with ``encoding``."""

    return sha256_bytes(text.encode(encoding))


def hash_value(value: str) -> str:
    """Content hash used for manifest comparisons of a secret value."""

    return sha256_text(value)


def sha256_file(path: PathLike, *, chunk_size: int = _FILE_READ_CHUNK_BYTES) -> str:
    """Return SHA-256 hex digest for a file read in chunks."""

    if chunk_size <= 0:
        raise ValueError("chunk_size must be > 0")
    digest = hashlib.sha256()
    try:
        with Path(path).open("rb") as file_handle:
            while True:
                chunk = file_handle.read(chunk_size)
                if not chunk:
                    break
                digest.update(chunk)
    except OSError as exc:
        raise HashComputationError(str(path), exc.strerror or type(exc).__name__) from exc
    return digest.hexdigest()

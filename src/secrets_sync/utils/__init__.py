"""Utility exports for filesystem and hashing helpers."""

from secrets_sync.utils.fs import atomic_write, ensure_directory, read_bytes, read_text, safe_delete
from secrets_sync.utils.hashing import hash_value, sha256_bytes, sha256_file, sha256_text

__all__ = [
    "atomic_write",
    "ensure_directory",
    "hash_value",
    "read_bytes",
    "read_text",
    "safe_delete",
    "sha256_bytes",
    "sha256_file",
    "sha256_text",
]

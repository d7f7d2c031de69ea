"""Content-hash deduplication and retention for env file backups."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True, slots=True)
class BackupInfo:
    """One backup file on disk."""

    path: Path
    hash: str
    mtime: float
    name: str


def _recency(backup: BackupInfo) -> tuple[float, str]:
    # Names embed a UTC timestamp, so the name breaks mtime ties deterministically.
    return (backup.mtime, backup.name)


def find_duplicate_groups(backups: Iterable[BackupInfo]) -> dict[str, list[BackupInfo]]:
    """Group backups by content hash, preserving input order inside each group."""

    groups: dict[str, list[BackupInfo]] = {}
    for backup in backups:
        groups.setdefault(backup.hash, []).append(backup)
    return groups


def dedupe(backups: Iterable[BackupInfo]) -> list[BackupInfo]:
    """Keep the newest backup per distinct content hash, newest first.

    The result never contains two entries with the same hash and is
    deterministic for identical input.
    """

    newest = [max(group, key=_recency) for group in find_duplicate_groups(backups).values()]
    return sorted(newest, key=_recency, reverse=True)


def apply_retention(deduped: list[BackupInfo], count: int) -> list[BackupInfo]:
    """First ``count`` entries of an already-deduped, newest-first list."""

    if count < 0:
        raise ValueError("retention count must be >= 0")
    return deduped[:count]


def should_create_backup(source_hash: str, most_recent_hash: str | None) -> bool:
    return most_recent_hash is None or source_hash != most_recent_hash


__all__ = [
    "BackupInfo",
    "apply_retention",
    "dedupe",
    "find_duplicate_groups",
    "should_create_backup",
]

"""
secrets-sync — backup writer

File: src/secrets_sync/backup/writer.py

Purpose
- Snapshot env files into ``<dir>/bak/`` before a sync and prune old snapshots.

Functional requirements
- Backup names embed a compact UTC timestamp: ``<file>-YYYYMMDDTHHMMSSZ.bak``.
- A new backup is written only when its content differs from the newest one.
- Cleanup keeps ``retention`` distinct-content backups; duplicates, overflow
  and unreadable backups are deleted.
- Dry runs report what would happen without touching the filesystem.
"""

from __future__ import annotations

import shutil
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path

import structlog

from secrets_sync.backup.dedupe import (
    BackupInfo,
    apply_retention,
    dedupe,
    should_create_backup,
)
from secrets_sync.constants import BACKUP_SUFFIX, DEFAULT_BACKUP_RETENTION
from secrets_sync.errors import HashComputationError
from secrets_sync.utils.fs import ensure_directory, safe_delete
from secrets_sync.utils.hashing import sha256_file

logger = structlog.get_logger(__name__)

_TIMESTAMP_FORMAT = "%Y%m%dT%H%M%SZ"


@dataclass(frozen=True, slots=True)
class BackupDiscovery:
    backups: tuple[BackupInfo, ...] = ()
    unhashable: tuple[Path, ...] = ()


@dataclass(frozen=True, slots=True)
class BackupResult:
    source: Path
    written: Path | None = None
    deleted: tuple[Path, ...] = ()
    kept: tuple[Path, ...] = ()
    skipped_unchanged: bool = False
    dry_run: bool = False


def backup_file_name(env_file_name: str, now: datetime | None = None) -> str:
    moment = now if now is not None else datetime.now(UTC)
    return f"{env_file_name}-{moment.astimezone(UTC).strftime(_TIMESTAMP_FORMAT)}{BACKUP_SUFFIX}"


def discover_backups(bak_dir: Path | str, env_file_name: str) -> BackupDiscovery:
    """Hash every existing backup of ``env_file_name`` in ``bak_dir``."""

    directory = Path(bak_dir)
    if not directory.is_dir():
        return BackupDiscovery()

    prefix = f"{env_file_name}-"
    backups: list[BackupInfo] = []
    unhashable: list[Path] = []
    for entry in sorted(directory.iterdir()):
        if not entry.name.startswith(prefix) or not entry.name.endswith(BACKUP_SUFFIX):
            continue
        if not entry.is_file():
            continue
        try:
            digest = sha256_file(entry)
            mtime = entry.stat().st_mtime
        except (HashComputationError, OSError) as exc:
            logger.warning("backup_unhashable", path=str(entry), error_type=type(exc).__name__)
            unhashable.append(entry)
            continue
        backups.append(BackupInfo(path=entry, hash=digest, mtime=mtime, name=entry.name))
    return BackupDiscovery(backups=tuple(backups), unhashable=tuple(unhashable))


def write_backup(
    source: Path | str,
    bak_dir: Path | str,
    *,
    retention: int = DEFAULT_BACKUP_RETENTION,
    dry_run: bool = False,
    now: datetime | None = None,
) -> BackupResult:
    """Back up ``source`` unless its content matches the newest backup, then prune."""

    if retention < 0:
        raise ValueError("retention must be >= 0")
    source_path = Path(source)
    directory = Path(bak_dir)
    source_hash = sha256_file(source_path)

    discovery = discover_backups(directory, source_path.name)
    ordered = dedupe(discovery.backups)
    newest_hash = ordered[0].hash if ordered else None

    if not should_create_backup(source_hash, newest_hash):
        logger.debug("backup_unchanged", source=source_path.name)
        deleted, kept = _cleanup(directory, discovery, retention, dry_run=dry_run)
        return BackupResult(
            source=source_path,
            deleted=deleted,
            kept=kept,
            skipped_unchanged=True,
            dry_run=dry_run,
        )

    target = directory / backup_file_name(source_path.name, now)
    if dry_run:
        logger.info("backup_planned", source=source_path.name, target=target.name)
        deleted, kept = _cleanup(directory, discovery, retention, dry_run=True)
        return BackupResult(source=source_path, deleted=deleted, kept=kept, dry_run=True)

    ensure_directory(directory)
    shutil.copyfile(source_path, target)
    shutil.copymode(source_path, target)
    logger.info("backup_written", source=source_path.name, target=target.name)

    refreshed = discover_backups(directory, source_path.name)
    deleted, kept = _cleanup(directory, refreshed, retention, dry_run=False)
    return BackupResult(source=source_path, written=target, deleted=deleted, kept=kept)


def _cleanup(
    directory: Path,
    discovery: BackupDiscovery,
    retention: int,
    *,
    dry_run: bool,
) -> tuple[tuple[Path, ...], tuple[Path, ...]]:
    keep = apply_retention(dedupe(discovery.backups), retention)
    keep_paths = {info.path for info in keep}
    doomed = [info.path for info in discovery.backups if info.path not in keep_paths]
    doomed.extend(discovery.unhashable)

    deleted: list[Path] = []
    for path in sorted(doomed):
        if dry_run:
            deleted.append(path)
            continue
        try:
            safe_delete(path, directory)
        except OSError as exc:
            logger.warning("backup_delete_failed", path=str(path), errno=exc.errno)
            continue
        deleted.append(path)
    if deleted:
        logger.info(
            "backups_pruned",
            directory=str(directory),
            deleted=len(deleted),
            dry_run=dry_run,
        )
    return tuple(deleted), tuple(sorted(keep_paths))


__all__ = [
    "BackupDiscovery",
    "BackupResult",
    "backup_file_name",
    "discover_backups",
    "write_backup",
]

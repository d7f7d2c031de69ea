"""Env file backups: content-hash dedup, retention, and the backup writer."""

from secrets_sync.backup.dedupe import (
    BackupInfo,
    apply_retention,
    dedupe,
    find_duplicate_groups,
    should_create_backup,
)
from secrets_sync.backup.writer import (
    BackupDiscovery,
    BackupResult,
    backup_file_name,
    discover_backups,
    write_backup,
)

__all__ = [
    "BackupDiscovery",
    "BackupInfo",
    "BackupResult",
    "apply_retention",
    "backup_file_name",
    "dedupe",
    "discover_backups",
    "find_duplicate_groups",
    "should_create_backup",
    "write_backup",
]

"""
secrets-sync — error taxonomy

File: src/secrets_sync/errors.py

Purpose
- Typed, per-item failures raised by the sync core and aggregated by callers.

Functional requirements
- Messages are built from metadata only (key name, file, length, exit code).
- No error class accepts a secret value as a constructor argument.
- Permission and timeout failures also render as what/why/fix lines; callers
  pass every line through a Redactor before printing.
"""

from __future__ import annotations

import errno
from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType

from secrets_sync.constants import BACKUP_DIR_NAME, BACKUP_SUFFIX, MANIFEST_FILE_NAME


class SecretsSyncError(Exception):
    """Base error for all secrets-sync failures."""

    def __init__(self, message: str, *, context: Mapping[str, object] | None = None) -> None:
        super().__init__(message)
        self.context: Mapping[str, object] = MappingProxyType(dict(context or {}))


class ParseError(SecretsSyncError):
    """A malformed env line. Recovered locally by skipping the line."""

    def __init__(self, source: str, line_number: int, reason: str) -> None:
        self.source = source
        self.line_number = line_number
        self.reason = reason
        super().__init__(
            f"{source}:{line_number}: {reason}",
            context={"source": source, "line_number": line_number},
        )


class ManifestCorruptionError(SecretsSyncError):
    """The manifest state file is unreadable or not a valid manifest."""

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"manifest {path} is corrupt: {reason}", context={"path": path})


class RemoteError(SecretsSyncError):
    """Base error for remote secret store failures."""


class RemoteListError(RemoteError):
    """Listing remote secrets failed."""

    def __init__(self, detail: str, *, returncode: int | None = None) -> None:
        self.detail = detail
        self.returncode = returncode
        message = "listing remote secrets failed"
        if returncode is not None:
            message = f"{message} (exit {returncode})"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message, context={"returncode": returncode})


class RemoteWriteError(RemoteError):
    """Setting or deleting one remote secret failed."""

    def __init__(
        self,
        operation: str,
        name: str,
        detail: str = "",
        *,
        returncode: int | None = None,
    ) -> None:
        self.operation = operation
        self.name = name
        self.detail = detail
        self.returncode = returncode
        message = f"remote {operation} failed for {name}"
        if returncode is not None:
            message = f"{message} (exit {returncode})"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(
            message,
            context={"operation": operation, "name": name, "returncode": returncode},
        )


class RemoteTimeoutError(RemoteError):
    """A remote store command exceeded its timeout and was killed."""

    def __init__(self, operation: str, timeout_ms: int) -> None:
        self.operation = operation
        self.timeout_ms = timeout_ms
        super().__init__(
            f"operation timed out after {timeout_ms}ms: {operation}",
            context={"operation": operation, "timeout_ms": timeout_ms},
        )


class HashComputationError(SecretsSyncError):
    """A file could not be read while computing its content hash."""

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"failed to hash {path}: {reason}", context={"path": path})


class RedactionInternalError(SecretsSyncError):
    """Internal redaction failure. Never escapes the redaction module."""

    def __init__(self, length: int, reason: str) -> None:
        self.length = length
        self.reason = reason
        super().__init__(
            f"redaction failed for input of length {length}: {reason}",
            context={"length": length},
        )


class ConfigLoadError(SecretsSyncError):
    """Configuration could not be loaded or coerced."""


class RunAborted(SecretsSyncError):
    """A run failure that was already reported to the user; the cause holds the original."""


@dataclass(frozen=True, slots=True)
class FailureMessage:
    """Actionable rendering of a failure."""

    what: str
    why: str
    fix: str

    def lines(self) -> tuple[str, str, str]:
        return (self.what, self.why, self.fix)


def describe_failure(exc: BaseException) -> FailureMessage | None:
    """Return what/why/fix lines for failures the user can act on, else ``None``."""

    for item in _exception_chain(exc):
        if isinstance(item, PermissionError) or (
            isinstance(item, OSError) and item.errno in {errno.EACCES, errno.EPERM}
        ):
            return _describe_permission(item)
        if isinstance(item, RemoteTimeoutError):
            seconds = max(1, round(item.timeout_ms / 1000))
            return FailureMessage(
                what=f"Remote operation timed out: {item.operation}",
                why=f"gh did not answer within {seconds}s and was stopped.",
                fix=f"Check network access and gh auth, or raise the limit: "
                f"SECRETS_SYNC_TIMEOUT={item.timeout_ms * 2}",
            )
    return None


def permission_fix_command(path: str | Path) -> str:
    """``chmod`` command that restores access: 755 for directories, 644 for files."""

    target = Path(path)
    try:
        is_dir = target.is_dir()
        exists = is_dir or target.exists()
    except OSError:
        is_dir = exists = False
    if is_dir:
        return f'chmod 755 "{target}"'
    if exists:
        return f'chmod 644 "{target}"'
    # A file that cannot be created points at its directory.
    return f'chmod 755 "{target.parent}"'


def _describe_permission(exc: OSError) -> FailureMessage:
    filename = exc.filename
    if filename is None:
        return FailureMessage(
            what="Permission denied",
            why="The current user cannot read or write a file this run needs.",
            fix="Check the permissions of the env directory and its bak/ directory.",
        )
    path = Path(str(filename))
    return FailureMessage(
        what=f"Permission denied on {_path_kind(path)}: {path}",
        why="The current user cannot read or write this path.",
        fix=f"Run: {permission_fix_command(path)}",
    )


def _path_kind(path: Path) -> str:
    if MANIFEST_FILE_NAME in path.name:
        return "manifest"
    if path.name.endswith(BACKUP_SUFFIX) or BACKUP_DIR_NAME in (path.name, path.parent.name):
        return "backup"
    if path.name.startswith(".env"):
        return "env file"
    return "path"


def _exception_chain(exc: BaseException) -> Iterator[BaseException]:
    seen: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        yield current
        current = current.__cause__ or current.__context__


__all__ = [
    "ConfigLoadError",
    "FailureMessage",
    "HashComputationError",
    "ManifestCorruptionError",
    "ParseError",
    "RedactionInternalError",
    "RemoteError",
    "RemoteListError",
    "RemoteTimeoutError",
    "RemoteWriteError",
    "RunAborted",
    "SecretsSyncError",
    "describe_failure",
    "permission_fix_command",
]

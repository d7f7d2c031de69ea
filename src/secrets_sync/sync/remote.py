"""
secrets-sync — remote secret store adapters

File: src/secrets_sync/sync/remote.py

Purpose
- Narrow contract over the CI platform's secret API: list, set, delete.

Functional requirements
- ``list`` returns names and last-modified timestamps, never values.
- Secret values reach the ``gh`` CLI on stdin, never in argv.
- Every command has a timeout; on expiry the child is killed and
  ``RemoteTimeoutError`` is raised.
- Deleting a secret that does not exist counts as success.
- Error details taken from CLI output are redacted before they are stored.
"""

from __future__ import annotations

import json
import re
import subprocess
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Protocol

import structlog

from secrets_sync.constants import DEFAULT_TIMEOUT_MS, MOCK_SECRETS_FILE
from secrets_sync.errors import (
    RemoteListError,
    RemoteTimeoutError,
    RemoteWriteError,
)
from secrets_sync.security.redaction import Redactor
from secrets_sync.utils.fs import read_text

logger = structlog.get_logger(__name__)

_NOT_FOUND = re.compile(r"not found", re.IGNORECASE)
_GH = "gh"


@dataclass(frozen=True, slots=True)
class RemoteSecretSnapshot:
    """One remote secret as listed: name and optional last-modified timestamp."""

    name: str
    updated_at: str | None = None


@dataclass(frozen=True, slots=True)
class CommandExecutionResult:
    command: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str


class CommandRunner(Protocol):
    """Injectable command runner used for deterministic/offline testing."""

    def run(
        self,
        command: Sequence[str],
        *,
        input_text: str | None,
        timeout_seconds: float,
    ) -> CommandExecutionResult: ...


class SubprocessCommandRunner:
    """Default command runner backed by ``subprocess.run``.

    ``subprocess.run`` kills the child when the timeout expires; the timeout
    surfaces as ``subprocess.TimeoutExpired`` for the caller to translate.
    """

    def run(
        self,
        command: Sequence[str],
        *,
        input_text: str | None,
        timeout_seconds: float,
    ) -> CommandExecutionResult:
        completed = subprocess.run(
            list(command),
            input=input_text,
            check=False,
            capture_output=True,
            text=True,
            timeout=timeout_seconds,
        )
        return CommandExecutionResult(
            command=tuple(command),
            returncode=completed.returncode,
            stdout=completed.stdout or "",
            stderr=completed.stderr or "",
        )


class SecretStore(Protocol):
    """Remote secret store contract."""

    def list(self) -> list[RemoteSecretSnapshot]: ...

    def set(self, name: str, value: str) -> None: ...

    def delete(self, name: str) -> None: ...


class GhCliSecretStore:
    """Secret store backed by the GitHub CLI (``gh secret ...``)."""

    def __init__(
        self,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        *,
        runner: CommandRunner | None = None,
        executable: str = _GH,
        redactor: Redactor | None = None,
    ) -> None:
        if timeout_ms <= 0:
            raise ValueError("timeout_ms must be > 0")
        self._timeout_ms = timeout_ms
        self._runner = runner if runner is not None else SubprocessCommandRunner()
        self._executable = executable
        self._redactor = redactor if redactor is not None else Redactor()

    @property
    def timeout_ms(self) -> int:
        return self._timeout_ms

    def list(self) -> list[RemoteSecretSnapshot]:
        command = (self._executable, "secret", "list", "--json", "name,updatedAt")
        try:
            result = self._run(command, operation="secret list")
        except OSError as exc:
            raise RemoteListError(f"unable to invoke {self._executable}: {exc.strerror}") from exc
        if result.returncode != 0:
            raise RemoteListError(self._detail(result), returncode=result.returncode)
        return parse_secret_listing(result.stdout)

    def set(self, name: str, value: str) -> None:
        command = (self._executable, "secret", "set", name)
        try:
            result = self._run(command, operation=f"secret set {name}", input_text=value)
        except OSError as exc:
            raise RemoteWriteError("set", name, exc.strerror or "") from exc
        if result.returncode != 0:
            raise RemoteWriteError("set", name, self._detail(result), returncode=result.returncode)
        logger.debug("remote_secret_set", name=name)

    def delete(self, name: str) -> None:
        command = (self._executable, "secret", "delete", name)
        try:
            result = self._run(command, operation=f"secret delete {name}", input_text="y\n")
        except OSError as exc:
            raise RemoteWriteError("delete", name, exc.strerror or "") from exc
        if result.returncode != 0:
            if _NOT_FOUND.search(result.stderr):
                logger.info("remote_secret_already_absent", name=name)
                return
            raise RemoteWriteError("delete", name, self._detail(result), returncode=result.returncode)
        logger.debug("remote_secret_deleted", name=name)

    def _detail(self, result: CommandExecutionResult) -> str:
        return self._redactor.redact_text(result.stderr.strip() or result.stdout.strip())

    def _run(
        self,
        command: Sequence[str],
        *,
        operation: str,
        input_text: str | None = None,
    ) -> CommandExecutionResult:
        try:
            return self._runner.run(
                command,
                input_text=input_text,
                timeout_seconds=self._timeout_ms / 1000,
            )
        except subprocess.TimeoutExpired as exc:
            logger.error("remote_timeout", operation=operation, timeout_ms=self._timeout_ms)
            raise RemoteTimeoutError(operation, self._timeout_ms) from exc


class InMemorySecretStore:
    """Offline secret store used by mock mode and tests.

    Every successful ``set`` stamps the secret with ``clock()`` so manifest
    timestamps behave like a real remote.
    """

    def __init__(
        self,
        values: Mapping[str, str] | None = None,
        *,
        timestamps: Mapping[str, str | None] | None = None,
        clock: Callable[[], str] | None = None,
    ) -> None:
        self._values: dict[str, str] = dict(values or {})
        self._timestamps: dict[str, str | None] = {
            name: (timestamps or {}).get(name) for name in self._values
        }
        self._clock = clock if clock is not None else _utc_timestamp
        self.calls: list[tuple[str, str]] = []

    def list(self) -> list[RemoteSecretSnapshot]:
        self.calls.append(("list", ""))
        return [
            RemoteSecretSnapshot(name=name, updated_at=self._timestamps.get(name))
            for name in sorted(self._values)
        ]

    def set(self, name: str, value: str) -> None:
        self.calls.append(("set", name))
        self._values[name] = value
        self._timestamps[name] = self._clock()

    def delete(self, name: str) -> None:
        self.calls.append(("delete", name))
        self._values.pop(name, None)
        self._timestamps.pop(name, None)

    def value_of(self, name: str) -> str | None:
        return self._values.get(name)

    def names(self) -> tuple[str, ...]:
        return tuple(sorted(self._values))


def parse_secret_listing(text: str) -> list[RemoteSecretSnapshot]:
    """Decode ``gh secret list --json name,updatedAt`` output."""

    if not text.strip():
        return []
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise RemoteListError(f"invalid JSON from secret list at line {exc.lineno}") from exc
    if not isinstance(payload, list):
        raise RemoteListError("secret list did not return an array")

    snapshots: list[RemoteSecretSnapshot] = []
    for item in payload:
        if not isinstance(item, Mapping) or not isinstance(item.get("name"), str):
            raise RemoteListError("secret list entry has no name")
        updated_at = item.get("updatedAt")
        snapshots.append(
            RemoteSecretSnapshot(
                name=item["name"],
                updated_at=updated_at if isinstance(updated_at, str) and updated_at else None,
            )
        )
    return snapshots


def snapshots_by_name(snapshots: Sequence[RemoteSecretSnapshot]) -> dict[str, RemoteSecretSnapshot]:
    return {snapshot.name: snapshot for snapshot in snapshots}


def load_mock_store(directory: Path | str) -> InMemorySecretStore:
    """Seed an in-memory store from ``<directory>/.secrets-mock.json`` when present."""

    path = Path(directory) / MOCK_SECRETS_FILE
    if not path.is_file():
        return InMemorySecretStore()
    try:
        payload = json.loads(read_text(path))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
        logger.warning("mock_secrets_unreadable", path=str(path), error=type(exc).__name__)
        return InMemorySecretStore()
    if not isinstance(payload, Mapping):
        logger.warning("mock_secrets_invalid", path=str(path))
        return InMemorySecretStore()
    return InMemorySecretStore({str(name): str(value) for name, value in payload.items()})


def _utc_timestamp() -> str:
    return datetime.now(UTC).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


__all__ = [
    "CommandExecutionResult",
    "CommandRunner",
    "GhCliSecretStore",
    "InMemorySecretStore",
    "RemoteSecretSnapshot",
    "SecretStore",
    "SubprocessCommandRunner",
    "load_mock_store",
    "parse_secret_listing",
    "snapshots_by_name",
]

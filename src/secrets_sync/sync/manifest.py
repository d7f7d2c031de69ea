"""
secrets-sync — manifest state store

File: src/secrets_sync/sync/manifest.py

Purpose
- Persist, per (environment, key), the content hash last pushed and the remote
  timestamp observed right after that push.

Functional requirements
- ``load`` happens once per run; ``save`` happens once at the end of the run.
- A corrupt file is treated as an empty manifest and reported as a warning.
- The legacy ``{name: {hash, sourceFile, updatedAt}}`` object format is migrated.
- Saves are atomic (temp file + ``os.replace``) and deterministically ordered.
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from pathlib import Path

import structlog

from secrets_sync.constants import PRODUCTION_ENVIRONMENT
from secrets_sync.errors import ManifestCorruptionError
from secrets_sync.utils.fs import atomic_write, ensure_directory, read_text

logger = structlog.get_logger(__name__)


@dataclass(frozen=True, slots=True)
class ManifestEntry:
    """What was last pushed for one secret, keyed by ``(environment, key)``."""

    environment: str
    key: str
    content_hash: str
    remote_updated_at: str | None = None
    source_file: str = ""

    def to_dict(self) -> dict[str, str | None]:
        return {
            "environment": self.environment,
            "key": self.key,
            "contentHash": self.content_hash,
            "remoteUpdatedAt": self.remote_updated_at,
            "sourceFile": self.source_file,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, object]) -> ManifestEntry:
        environment = payload.get("environment")
        key = payload.get("key")
        content_hash = payload.get("contentHash")
        remote_updated_at = payload.get("remoteUpdatedAt")
        source_file = payload.get("sourceFile", "")
        if not isinstance(environment, str) or not environment:
            raise ValueError("environment must be a non-empty string")
        if not isinstance(key, str) or not key:
            raise ValueError("key must be a non-empty string")
        if not isinstance(content_hash, str) or not content_hash:
            raise ValueError("contentHash must be a non-empty string")
        if remote_updated_at is not None and not isinstance(remote_updated_at, str):
            raise ValueError("remoteUpdatedAt must be a string or null")
        if not isinstance(source_file, str):
            raise ValueError("sourceFile must be a string")
        return cls(
            environment=environment,
            key=key,
            content_hash=content_hash,
            remote_updated_at=remote_updated_at or None,
            source_file=source_file,
        )


def parse_manifest(text: str, *, path: str = "<manifest>") -> list[ManifestEntry]:
    """Decode manifest JSON in either the current array form or the legacy object form."""

    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ManifestCorruptionError(path, f"invalid JSON at line {exc.lineno}") from exc

    if isinstance(payload, list):
        entries: list[ManifestEntry] = []
        for index, item in enumerate(payload):
            if not isinstance(item, Mapping):
                raise ManifestCorruptionError(path, f"entry {index} is not an object")
            try:
                entries.append(ManifestEntry.from_dict(item))
            except ValueError as exc:
                raise ManifestCorruptionError(path, f"entry {index}: {exc}") from exc
        return entries

    if isinstance(payload, Mapping):
        return _migrate_legacy(payload, path=path)

    raise ManifestCorruptionError(path, f"unexpected top-level {type(payload).__name__}")


def serialize_manifest(entries: Iterable[ManifestEntry]) -> str:
    ordered = sorted(entries, key=lambda entry: (entry.environment, entry.key))
    return json.dumps([entry.to_dict() for entry in ordered], indent=2) + "\n"


class ManifestStore:
    """Single-reader, single-writer manifest for one run."""

    def __init__(self, path: Path | str) -> None:
        self._path = Path(path)
        self._entries: dict[tuple[str, str], ManifestEntry] = {}
        self._loaded = False
        self._dirty = False
        self._warnings: list[str] = []

    @property
    def path(self) -> Path:
        return self._path

    @property
    def dirty(self) -> bool:
        return self._dirty

    @property
    def warnings(self) -> tuple[str, ...]:
        return tuple(self._warnings)

    def load(self) -> ManifestStore:
        if self._loaded:
            return self
        self._loaded = True
        if not self._path.is_file():
            return self
        try:
            text = read_text(self._path)
        except UnicodeDecodeError:
            return self._discard(ManifestCorruptionError(self._path.name, "invalid UTF-8"))
        except OSError as exc:
            self._warnings.append(f"manifest {self._path.name} unreadable: {exc.strerror}")
            logger.warning("manifest_unreadable", path=str(self._path), errno=exc.errno)
            return self
        try:
            entries = parse_manifest(text, path=self._path.name)
        except ManifestCorruptionError as exc:
            return self._discard(exc)
        for entry in entries:
            self._entries[(entry.environment, entry.key)] = entry
        logger.debug("manifest_loaded", path=str(self._path), entries=len(self._entries))
        return self

    def _discard(self, exc: ManifestCorruptionError) -> ManifestStore:
        self._warnings.append(str(exc))
        logger.warning("manifest_corrupt", path=str(self._path), reason=exc.reason)
        return self

    def get(self, environment: str, key: str) -> ManifestEntry | None:
        return self._entries.get((environment, key))

    def entries(self, environment: str | None = None) -> list[ManifestEntry]:
        return [
            entry
            for entry in self._entries.values()
            if environment is None or entry.environment == environment
        ]

    def for_environment(self, environment: str) -> dict[str, ManifestEntry]:
        return {entry.key: entry for entry in self.entries(environment)}

    def record(self, entry: ManifestEntry) -> None:
        if self._entries.get((entry.environment, entry.key)) == entry:
            return
        self._entries[(entry.environment, entry.key)] = entry
        self._dirty = True

    def remove(self, environment: str, key: str) -> bool:
        removed = self._entries.pop((environment, key), None)
        if removed is None:
            return False
        self._dirty = True
        return True

    def save(self) -> bool:
        """Write the manifest if anything changed. Returns ``True`` when written."""

        if not self._dirty:
            return False
        ensure_directory(self._path.parent)
        atomic_write(self._path, serialize_manifest(self._entries.values()))
        self._dirty = False
        logger.info("manifest_saved", path=str(self._path), entries=len(self._entries))
        return True

    def __len__(self) -> int:
        return len(self._entries)


def _migrate_legacy(payload: Mapping[str, object], *, path: str) -> list[ManifestEntry]:
    entries: list[ManifestEntry] = []
    for name, raw in payload.items():
        if not isinstance(raw, Mapping) or not isinstance(raw.get("hash"), str):
            raise ManifestCorruptionError(path, f"legacy entry {name!s} has no hash")
        updated_at = raw.get("updatedAt")
        source_file = raw.get("sourceFile")
        entries.append(
            ManifestEntry(
                environment=PRODUCTION_ENVIRONMENT,
                key=str(name),
                content_hash=str(raw["hash"]),
                remote_updated_at=updated_at if isinstance(updated_at, str) and updated_at else None,
                source_file=source_file if isinstance(source_file, str) else "",
            )
        )
    if entries:
        logger.info("manifest_migrated", path=path, entries=len(entries))
    return entries


__all__ = [
    "ManifestEntry",
    "ManifestStore",
    "parse_manifest",
    "serialize_manifest",
]

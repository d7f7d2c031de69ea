"""Discover env files in a directory with deterministic, production-first ordering."""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path

from secrets_sync.constants import (
    CANONICAL_ENV_FILE,
    IGNORED_ENV_SUFFIXES,
    PRODUCTION_ENVIRONMENT,
    PRODUCTION_FILE_NAMES,
)

_ENV_NAME_PREFIX = re.compile(r"^\.env\.?")


@dataclass(frozen=True, slots=True)
class EnvFile:
    """One discovered env file."""

    path: Path
    name: str
    is_production_variant: bool
    token: str


def env_file_from_path(path: Path | str) -> EnvFile:
    file_path = Path(path)
    name = file_path.name
    is_production = name in PRODUCTION_FILE_NAMES
    token = PRODUCTION_ENVIRONMENT
    if not is_production:
        token = _ENV_NAME_PREFIX.sub("", name).lower() or PRODUCTION_ENVIRONMENT
    return EnvFile(path=file_path, name=name, is_production_variant=is_production, token=token)


def is_candidate_env_file(name: str) -> bool:
    if not name.startswith(".env"):
        return False
    return not name.endswith(IGNORED_ENV_SUFFIXES)


def scan_env_directory(directory: Path | str) -> list[EnvFile]:
    """Return env files under ``directory`` (non-recursive).

    Order: ``.env`` first, then other production aliases, then the rest, each
    group sorted by name.
    """

    root = Path(directory)
    if not root.is_dir():
        return []

    files = [
        env_file_from_path(entry)
        for entry in root.iterdir()
        if entry.is_file() and is_candidate_env_file(entry.name)
    ]
    files.sort(key=_sort_key)
    return files


def _sort_key(env_file: EnvFile) -> tuple[int, str]:
    if env_file.name == CANONICAL_ENV_FILE:
        return (0, env_file.name)
    if env_file.is_production_variant:
        return (1, env_file.name)
    return (2, env_file.name)


__all__ = ["EnvFile", "env_file_from_path", "is_candidate_env_file", "scan_env_directory"]

"""Stable constants shared across secrets-sync modules."""

from __future__ import annotations

from typing import Final

VERSION: Final[str] = "0.3.0"

# Env file discovery.
DEFAULT_ENV_DIR: Final[str] = "config/env"
CANONICAL_ENV_FILE: Final[str] = ".env"
PRODUCTION_FILE_NAMES: Final[frozenset[str]] = frozenset(
    {".env", ".env.prod", ".env.prd", ".env.production"}
)
IGNORED_ENV_SUFFIXES: Final[tuple[str, ...]] = (".example", ".template", ".local", ".test")
PRODUCTION_ENVIRONMENT: Final[str] = "production"

# State and backup layout (relative to the env directory).
BACKUP_DIR_NAME: Final[str] = "bak"
MANIFEST_FILE_NAME: Final[str] = "secrets-sync-state.json"
BACKUP_SUFFIX: Final[str] = ".bak"
LAST_SYNC_MARKER: Final[str] = ".secrets-last-sync"
REQUIRED_SECRETS_FILE: Final[str] = "required-secrets.json"
MOCK_SECRETS_FILE: Final[str] = ".secrets-mock.json"

# Runtime defaults.
DEFAULT_BACKUP_RETENTION: Final[int] = 3
DEFAULT_TIMEOUT_MS: Final[int] = 30_000
MAX_SCRUB_INPUT_LENGTH: Final[int] = 50_000
SCRUB_CACHE_SIZE: Final[int] = 1000

ENV_PREFIX: Final[str] = "SECRETS_SYNC_"
MOCK_ENV_VAR: Final[str] = "SECRETS_SYNC_MOCK"
TIMEOUT_ENV_VAR: Final[str] = "SECRETS_SYNC_TIMEOUT"

__all__ = [
    "BACKUP_DIR_NAME",
    "BACKUP_SUFFIX",
    "CANONICAL_ENV_FILE",
    "DEFAULT_BACKUP_RETENTION",
    "DEFAULT_ENV_DIR",
    "DEFAULT_TIMEOUT_MS",
    "ENV_PREFIX",
    "IGNORED_ENV_SUFFIXES",
    "LAST_SYNC_MARKER",
    "MANIFEST_FILE_NAME",
    "MAX_SCRUB_INPUT_LENGTH",
    "MOCK_ENV_VAR",
    "MOCK_SECRETS_FILE",
    "PRODUCTION_ENVIRONMENT",
    "PRODUCTION_FILE_NAMES",
    "REQUIRED_SECRETS_FILE",
    "SCRUB_CACHE_SIZE",
    "TIMEOUT_ENV_VAR",
    "VERSION",
]

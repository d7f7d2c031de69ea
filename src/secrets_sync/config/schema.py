"""
secrets-sync — config schema and validation.

File: src/secrets_sync/config/schema.py

Purpose
- Define the canonical runtime config shape and its built-in defaults.
- Validate merged config and report every issue with a dotted field path.

What should be included in this file
- Defaults for the env directory, retention, timeout, skip patterns,
  scrubbing patterns, and flag defaults.
- camelCase alias normalization for keys written by earlier tool versions.
- Typed ``RunSettings`` view consumed by the CLI.

Functional requirements
- Unknown keys are rejected; keys that look like embedded secrets get a
  dedicated message that never echoes the value.
- ``timeout_ms`` must be > 0; ``backup_retention`` must be >= 0.
"""

from __future__ import annotations

import copy
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Final, TypedDict

from secrets_sync.constants import (
    DEFAULT_BACKUP_RETENTION,
    DEFAULT_ENV_DIR,
    DEFAULT_TIMEOUT_MS,
)
from secrets_sync.errors import ConfigLoadError

_CAMEL_CASE_BOUNDARY = re.compile(r"([a-z0-9])([A-Z])")
_NON_ALNUM = re.compile(r"[^a-z0-9]+")

LOG_LEVELS: Final[tuple[str, ...]] = ("DEBUG", "INFO", "WARNING", "ERROR")

FLAG_NAMES: Final[tuple[str, ...]] = (
    "dry_run",
    "overwrite",
    "force",
    "no_confirm",
    "skip_unchanged",
    "confirm_deletes",
)

_SENSITIVE_KEY_TOKENS: Final[frozenset[str]] = frozenset(
    {"password", "passwd", "secret", "token", "credential", "apikey", "key"}
)


class ScrubbingConfig(TypedDict):
    whitelist_patterns: list[str]
    scrub_patterns: list[str]


class FlagsConfig(TypedDict):
    dry_run: bool | None
    overwrite: bool | None
    force: bool | None
    no_confirm: bool | None
    skip_unchanged: bool | None
    confirm_deletes: bool | None


class LoggingConfig(TypedDict):
    level: str
    json: bool


class SecretsSyncConfig(TypedDict):
    dir: str
    env: str | None
    backup_retention: int
    timeout_ms: int
    trust_manifest: bool
    mock: bool
    skip_secrets: list[str]
    scrubbing: ScrubbingConfig
    flags: FlagsConfig
    logging: LoggingConfig


DEFAULT_CONFIG: Final[SecretsSyncConfig] = {
    "dir": DEFAULT_ENV_DIR,
    "env": None,
    "backup_retention": DEFAULT_BACKUP_RETENTION,
    "timeout_ms": DEFAULT_TIMEOUT_MS,
    "trust_manifest": False,
    "mock": False,
    "skip_secrets": [],
    "scrubbing": {"whitelist_patterns": [], "scrub_patterns": []},
    "flags": {
        "dry_run": None,
        "overwrite": None,
        "force": None,
        "no_confirm": None,
        "skip_unchanged": None,
        "confirm_deletes": None,
    },
    "logging": {"level": "INFO", "json": False},
}


@dataclass(frozen=True, slots=True)
class ConfigValidationIssue:
    """Single structured validation failure."""

    path: str
    message: str


@dataclass(frozen=True, slots=True)
class ConfigValidationResult:
    config: dict[str, Any] | None
    issues: tuple[ConfigValidationIssue, ...]

    @property
    def is_valid(self) -> bool:
        return self.config is not None and not self.issues


class ConfigValidationError(ConfigLoadError):
    """Raised when strict config validation fails."""

    def __init__(self, issues: Sequence[ConfigValidationIssue]) -> None:
        self.issues = tuple(issues)
        if not self.issues:
            rendered = "unknown validation failure"
        else:
            rendered = "\n".join(f"- {item.path}: {item.message}" for item in self.issues)
        super().__init__(
            f"invalid config:\n{rendered}",
            context={"paths": tuple(item.path for item in self.issues)},
        )


class _IssueCollector:
    __slots__ = ("_items",)

    def __init__(self) -> None:
        self._items: list[ConfigValidationIssue] = []

    def add(self, path: str, message: str) -> None:
        self._items.append(ConfigValidationIssue(path=path, message=message))

    def items(self) -> tuple[ConfigValidationIssue, ...]:
        return tuple(self._items)

    @property
    def has_issues(self) -> bool:
        return bool(self._items)


@dataclass(frozen=True, slots=True)
class RunSettings:
    """Effective, typed options for one run (flags resolved to booleans)."""

    dir: str = DEFAULT_ENV_DIR
    env: str | None = None
    backup_retention: int = DEFAULT_BACKUP_RETENTION
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    trust_manifest: bool = False
    mock: bool = False
    skip_secrets: tuple[str, ...] = ()
    whitelist_patterns: tuple[str, ...] = ()
    scrub_patterns: tuple[str, ...] = ()
    dry_run: bool = False
    overwrite: bool = False
    force: bool = False
    no_confirm: bool = False
    confirm_deletes: bool = False
    log_level: str = "INFO"
    json_logs: bool = False

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> RunSettings:
        flags = config.get("flags", {})
        scrubbing = config.get("scrubbing", {})
        logging_section = config.get("logging", {})
        return cls(
            dir=config["dir"],
            env=config.get("env"),
            backup_retention=config["backup_retention"],
            timeout_ms=config["timeout_ms"],
            # --skip-unchanged is the historical spelling of trust_manifest.
            trust_manifest=bool(config["trust_manifest"] or flags.get("skip_unchanged")),
            mock=bool(config.get("mock")),
            skip_secrets=tuple(config.get("skip_secrets", ())),
            whitelist_patterns=tuple(scrubbing.get("whitelist_patterns", ())),
            scrub_patterns=tuple(scrubbing.get("scrub_patterns", ())),
            dry_run=bool(flags.get("dry_run")),
            overwrite=bool(flags.get("overwrite")),
            force=bool(flags.get("force")),
            no_confirm=bool(flags.get("no_confirm")),
            confirm_deletes=bool(flags.get("confirm_deletes")),
            log_level=logging_section.get("level", "INFO"),
            json_logs=bool(logging_section.get("json", False)),
        )


def default_config() -> SecretsSyncConfig:
    """Return a deep copy of the built-in defaults."""

    return copy.deepcopy(DEFAULT_CONFIG)


def merge_config(base: Mapping[str, object], overlay: Mapping[str, object]) -> dict[str, Any]:
    """Deep-merge ``overlay`` onto ``base``; ``None`` in the overlay never clears a value."""

    merged = copy.deepcopy(dict(base))
    _merge_into(merged, overlay)
    return merged


def normalize_keys(payload: Mapping[str, object]) -> dict[str, Any]:
    """Convert camelCase keys (``backupRetention``) to snake_case, recursively.

    ``flags.dir`` and ``flags.env`` are lifted to the top level.
    """

    normalized: dict[str, Any] = {}
    for raw_key, value in payload.items():
        key = _normalize_key(str(raw_key))
        normalized[key] = normalize_keys(value) if isinstance(value, Mapping) else value

    flags = normalized.get("flags")
    if isinstance(flags, dict):
        for lifted in ("dir", "env"):
            if lifted in flags:
                normalized.setdefault(lifted, flags.pop(lifted))
    return normalized


def validate_config(config: Mapping[str, object] | object) -> ConfigValidationResult:
    issues = _IssueCollector()
    if not isinstance(config, Mapping):
        issues.add("<root>", f"expected object, got {type(config).__name__}")
        return ConfigValidationResult(config=None, issues=issues.items())

    root = dict(config)
    _reject_unknown_keys(root, set(DEFAULT_CONFIG), "", issues)

    out: dict[str, Any] = {}
    out["dir"] = _as_str(root.get("dir"), "dir", issues)
    env = root.get("env")
    out["env"] = None if env is None else _as_str(env, "env", issues)
    out["backup_retention"] = _as_int(
        root.get("backup_retention"), "backup_retention", issues, minimum=0
    )
    out["timeout_ms"] = _as_int(root.get("timeout_ms"), "timeout_ms", issues, minimum=1)
    out["trust_manifest"] = _as_bool(root.get("trust_manifest"), "trust_manifest", issues)
    out["mock"] = _as_bool(root.get("mock"), "mock", issues)
    out["skip_secrets"] = _as_str_list(root.get("skip_secrets"), "skip_secrets", issues)

    scrubbing = _section(root, "scrubbing", issues)
    out["scrubbing"] = {
        "whitelist_patterns": _as_str_list(
            scrubbing.get("whitelist_patterns", []), "scrubbing.whitelist_patterns", issues
        ),
        "scrub_patterns": _as_str_list(
            scrubbing.get("scrub_patterns", []), "scrubbing.scrub_patterns", issues
        ),
    }
    _reject_unknown_keys(scrubbing, {"whitelist_patterns", "scrub_patterns"}, "scrubbing", issues)

    flags = _section(root, "flags", issues)
    _reject_unknown_keys(flags, set(FLAG_NAMES), "flags", issues)
    out["flags"] = {
        name: (None if flags.get(name) is None else _as_bool(flags[name], f"flags.{name}", issues))
        for name in FLAG_NAMES
    }

    logging_section = _section(root, "logging", issues)
    _reject_unknown_keys(logging_section, {"level", "json"}, "logging", issues)
    level = _as_str(logging_section.get("level", "INFO"), "logging.level", issues)
    if level is not None and level.upper() not in LOG_LEVELS:
        issues.add("logging.level", f"invalid value {level!r}; expected one of: {', '.join(LOG_LEVELS)}")
        level = None
    out["logging"] = {
        "level": level.upper() if level is not None else "INFO",
        "json": _as_bool(logging_section.get("json", False), "logging.json", issues),
    }

    if issues.has_issues:
        return ConfigValidationResult(config=None, issues=issues.items())
    return ConfigValidationResult(config=out, issues=())


def assert_valid_config(config: Mapping[str, object] | object) -> dict[str, Any]:
    """Validate config and raise ``ConfigValidationError`` on failure."""

    result = validate_config(config)
    if result.config is None:
        raise ConfigValidationError(result.issues)
    return result.config


def _merge_into(target: dict[str, Any], overlay: Mapping[str, object]) -> None:
    for key, value in overlay.items():
        if value is None:
            continue
        existing = target.get(key)
        if isinstance(value, Mapping) and isinstance(existing, dict):
            _merge_into(existing, value)
        elif isinstance(value, Mapping):
            target[key] = copy.deepcopy(dict(value))
        else:
            target[key] = copy.deepcopy(value)


def _section(
    payload: Mapping[str, object],
    key: str,
    issues: _IssueCollector,
) -> dict[str, object]:
    value = payload.get(key, {})
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        issues.add(key, f"expected object, got {type(value).__name__}")
        return {}
    return {str(item_key): item for item_key, item in value.items()}


def _as_str(value: object, path: str, issues: _IssueCollector) -> str | None:
    if not isinstance(value, str):
        issues.add(path, f"expected string, got {type(value).__name__}")
        return None
    parsed = value.strip()
    if not parsed:
        issues.add(path, "must not be empty")
        return None
    return parsed


def _as_bool(value: object, path: str, issues: _IssueCollector) -> bool | None:
    if isinstance(value, bool):
        return value
    issues.add(path, f"expected boolean, got {type(value).__name__}")
    return None


def _as_int(
    value: object,
    path: str,
    issues: _IssueCollector,
    *,
    minimum: int | None = None,
) -> int | None:
    if isinstance(value, bool) or not isinstance(value, int):
        issues.add(path, f"expected integer, got {type(value).__name__}")
        return None
    if minimum is not None and value < minimum:
        issues.add(path, f"must be >= {minimum}")
        return None
    return value


def _as_str_list(value: object, path: str, issues: _IssueCollector) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, list):
        issues.add(path, f"expected list, got {type(value).__name__}")
        return []
    items: list[str] = []
    for index, item in enumerate(value):
        if not isinstance(item, str) or not item.strip():
            issues.add(f"{path}[{index}]", "expected non-empty string")
            continue
        items.append(item.strip())
    return items


def _reject_unknown_keys(
    payload: Mapping[str, object],
    allowed: set[str],
    path: str,
    issues: _IssueCollector,
) -> None:
    for key in sorted(payload):
        if key in allowed:
            continue
        key_path = _join(path, key)
        if _looks_sensitive_key(key):
            issues.add(key_path, "secret values do not belong in env-config; keep them in env files")
        else:
            issues.add(key_path, "unknown field")


def _looks_sensitive_key(key: str) -> bool:
    tokens = tuple(token for token in _normalize_key(key).split("_") if token)
    return any(token in _SENSITIVE_KEY_TOKENS for token in tokens)


def _normalize_key(key: str) -> str:
    with_boundaries = _CAMEL_CASE_BOUNDARY.sub(r"\1_\2", key.strip())
    return _NON_ALNUM.sub("_", with_boundaries.lower()).strip("_")


def _join(path: str, key: str) -> str:
    if not path:
        return key
    return f"{path}.{key}"


__all__ = [
    "DEFAULT_CONFIG",
    "FLAG_NAMES",
    "LOG_LEVELS",
    "ConfigValidationError",
    "ConfigValidationIssue",
    "ConfigValidationResult",
    "RunSettings",
    "SecretsSyncConfig",
    "assert_valid_config",
    "default_config",
    "merge_config",
    "normalize_keys",
    "validate_config",
]

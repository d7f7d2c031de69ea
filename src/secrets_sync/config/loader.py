"""
secrets-sync — runtime config loader.

File: src/secrets_sync/config/loader.py

Purpose
- Load effective runtime config from defaults, ``env-config.yml``, env vars,
  and CLI overrides.

What should be included in this file
- Precedence logic: CLI > env (SECRETS_SYNC_) > file > defaults.
- YAML loading via ``yaml.safe_load``; the file is searched in the working
  directory first, then the env directory.
- Deterministic environment variable mapping and coercion.
- Loading of ``required-secrets.json`` for production key validation.

Functional requirements
- An invalid ``SECRETS_SYNC_TIMEOUT`` falls back to the default instead of failing.
- Every other invalid value fails with a field path, never with a value.
"""

from __future__ import annotations

import json
import os
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Final, Literal

import structlog
import yaml

from secrets_sync.config.schema import (
    RunSettings,
    assert_valid_config,
    default_config,
    merge_config,
    normalize_keys,
)
from secrets_sync.constants import (
    DEFAULT_TIMEOUT_MS,
    ENV_PREFIX,
    MOCK_ENV_VAR,
    REQUIRED_SECRETS_FILE,
    TIMEOUT_ENV_VAR,
)
from secrets_sync.errors import ConfigLoadError
from secrets_sync.utils.fs import read_text

logger = structlog.get_logger(__name__)

CONFIG_FILE_NAMES: Final[tuple[str, ...]] = ("env-config.yml", "env-config.yaml")

_BOOLEAN_TRUE: Final[frozenset[str]] = frozenset({"1", "true", "t", "yes", "y", "on"})
_BOOLEAN_FALSE: Final[frozenset[str]] = frozenset({"0", "false", "f", "no", "n", "off"})


@dataclass(frozen=True, slots=True)
class _Binding:
    path: tuple[str, ...]
    value_type: Literal["str", "int", "bool", "list"]
    lenient: bool = False


_ENV_BINDINGS: Final[dict[str, _Binding]] = {
    f"{ENV_PREFIX}DIR": _Binding(("dir",), "str"),
    f"{ENV_PREFIX}ENV": _Binding(("env",), "str"),
    f"{ENV_PREFIX}BACKUP_RETENTION": _Binding(("backup_retention",), "int"),
    TIMEOUT_ENV_VAR: _Binding(("timeout_ms",), "int", lenient=True),
    f"{ENV_PREFIX}TRUST_MANIFEST": _Binding(("trust_manifest",), "bool"),
    MOCK_ENV_VAR: _Binding(("mock",), "bool"),
    f"{ENV_PREFIX}SKIP_SECRETS": _Binding(("skip_secrets",), "list"),
    f"{ENV_PREFIX}DRY_RUN": _Binding(("flags", "dry_run"), "bool"),
    f"{ENV_PREFIX}NO_CONFIRM": _Binding(("flags", "no_confirm"), "bool"),
    f"{ENV_PREFIX}LOG_LEVEL": _Binding(("logging", "level"), "str"),
    f"{ENV_PREFIX}LOG_JSON": _Binding(("logging", "json"), "bool"),
}


@dataclass(frozen=True, slots=True)
class RequiredSecrets:
    """Key names production must define (``required-secrets.json``)."""

    production: tuple[str, ...] = ()


def load_config(
    config_path: str | Path | None = None,
    *,
    cli_overrides: Mapping[str, object] | None = None,
    environ: Mapping[str, str] | None = None,
    cwd: Path | None = None,
) -> dict[str, Any]:
    """Load effective config with deterministic precedence: CLI > env > file > defaults."""

    env_map = dict(os.environ if environ is None else environ)
    cli_map = normalize_keys(dict(cli_overrides or {}))
    env_overrides = collect_env_overrides(env_map)

    search_dir = cli_map.get("dir") or env_overrides.get("dir")
    resolved_path = (
        Path(config_path).expanduser()
        if config_path is not None
        else find_config_file(cwd or Path.cwd(), search_dir)
    )
    file_payload: dict[str, Any] = {}
    if resolved_path is not None:
        file_payload = load_config_file(resolved_path, required=config_path is not None)

    merged = merge_config(default_config(), file_payload)
    merged = merge_config(merged, env_overrides)
    merged = merge_config(merged, cli_map)
    validated = assert_valid_config(merged)
    logger.debug(
        "config_loaded",
        path=str(resolved_path) if resolved_path is not None else None,
        env_overrides=sorted(_flatten_keys(env_overrides)),
    )
    return validated


def load_settings(
    config_path: str | Path | None = None,
    *,
    cli_overrides: Mapping[str, object] | None = None,
    environ: Mapping[str, str] | None = None,
    cwd: Path | None = None,
) -> RunSettings:
    return RunSettings.from_config(
        load_config(config_path, cli_overrides=cli_overrides, environ=environ, cwd=cwd)
    )


def find_config_file(cwd: Path, env_dir: str | Path | None = None) -> Path | None:
    """First existing ``env-config.y(a)ml`` in ``cwd``, then in ``env_dir``."""

    search_dirs: list[Path] = [cwd]
    if env_dir:
        candidate_dir = Path(env_dir)
        search_dirs.append(candidate_dir if candidate_dir.is_absolute() else cwd / candidate_dir)
    for directory in search_dirs:
        for name in CONFIG_FILE_NAMES:
            candidate = directory / name
            if candidate.is_file():
                return candidate
    return None


def load_config_file(path: str | Path, *, required: bool = True) -> dict[str, Any]:
    """Parse one YAML config file into a normalized (snake_case) mapping."""

    file_path = Path(path)
    if not file_path.exists():
        if required:
            raise ConfigLoadError(f"config file not found: {file_path}")
        return {}
    try:
        parsed = yaml.safe_load(read_text(file_path))
    except yaml.YAMLError as exc:
        mark = getattr(exc, "problem_mark", None)
        where = f" (line {mark.line + 1})" if mark is not None else ""
        raise ConfigLoadError(f"invalid YAML in {file_path}{where}") from exc
    except UnicodeDecodeError as exc:
        raise ConfigLoadError(f"config file is not valid UTF-8: {file_path}") from exc
    except OSError as exc:
        raise ConfigLoadError(f"unable to read config file {file_path}: {exc.strerror}") from exc

    if parsed is None:
        return {}
    if not isinstance(parsed, Mapping):
        raise ConfigLoadError(f"config root must be a mapping: {file_path}")
    return normalize_keys(parsed)


def collect_env_overrides(environ: Mapping[str, str]) -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    for env_name in sorted(_ENV_BINDINGS):
        raw = environ.get(env_name)
        if raw is None or not raw.strip():
            continue
        binding = _ENV_BINDINGS[env_name]
        try:
            value = _coerce_env(raw, binding.value_type, env_name, binding.path)
        except ConfigLoadError:
            if not binding.lenient:
                raise
            logger.warning("env_override_ignored", variable=env_name)
            continue
        if env_name == TIMEOUT_ENV_VAR and isinstance(value, int) and value <= 0:
            logger.warning("env_override_ignored", variable=env_name)
            value = DEFAULT_TIMEOUT_MS
        _set_nested(overrides, binding.path, value)
    return overrides


def load_required_secrets(directory: str | Path) -> RequiredSecrets:
    """Read ``required-secrets.json``; a missing or invalid file means no requirements."""

    path = Path(directory) / REQUIRED_SECRETS_FILE
    if not path.is_file():
        logger.debug("required_secrets_absent", path=str(path))
        return RequiredSecrets()
    try:
        payload = json.loads(read_text(path))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
        logger.warning("required_secrets_unreadable", path=str(path), error_type=type(exc).__name__)
        return RequiredSecrets()
    if not isinstance(payload, Mapping):
        logger.warning("required_secrets_invalid", path=str(path))
        return RequiredSecrets()
    return RequiredSecrets(production=_names(payload.get("production")))


def _names(value: object) -> tuple[str, ...]:
    if not isinstance(value, Sequence) or isinstance(value, str):
        return ()
    return tuple(item for item in value if isinstance(item, str) and item)


def _coerce_env(
    raw: str,
    value_type: Literal["str", "int", "bool", "list"],
    env_name: str,
    path: tuple[str, ...],
) -> object:
    value = raw.strip()
    if value_type == "str":
        return value
    if value_type == "list":
        return [item.strip() for item in value.split(",") if item.strip()]
    if value_type == "int":
        try:
            return int(value)
        except ValueError as exc:
            raise ConfigLoadError(f"{env_name} -> {'.'.join(path)} must be an integer") from exc

    lowered = value.lower()
    if lowered in _BOOLEAN_TRUE:
        return True
    if lowered in _BOOLEAN_FALSE:
        return False
    raise ConfigLoadError(
        f"{env_name} -> {'.'.join(path)} must be a boolean (true/false/1/0/yes/no/on/off)"
    )


def _set_nested(target: dict[str, Any], path: tuple[str, ...], value: object) -> None:
    cursor = target
    for part in path[:-1]:
        next_node = cursor.get(part)
        if not isinstance(next_node, dict):
            next_node = {}
            cursor[part] = next_node
        cursor = next_node
    cursor[path[-1]] = value


def _flatten_keys(payload: Mapping[str, object], prefix: str = "") -> list[str]:
    keys: list[str] = []
    for key, value in payload.items():
        dotted = f"{prefix}{key}"
        if isinstance(value, Mapping):
            keys.extend(_flatten_keys(value, f"{dotted}."))
        else:
            keys.append(dotted)
    return keys


__all__ = [
    "CONFIG_FILE_NAMES",
    "RequiredSecrets",
    "collect_env_overrides",
    "find_config_file",
    "load_config",
    "load_config_file",
    "load_required_secrets",
    "load_settings",
]

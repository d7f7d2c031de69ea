"""
secrets-sync — production resolution

File: src/secrets_sync/envfiles/resolver.py

Purpose
- Build logical environments from discovered env files.

Functional requirements
- ``.env`` is the canonical production base.
- Layering (default): production alias files (.env.production/.env.prod/.env.prd)
  overwrite same-named keys and add their unique keys.
- Force mode: alias files become separate environments whose remote names are
  prefixed (``.env.prod`` -> ``PROD_``); base values are untouched.
- Non-production files are a straight parse with an env-token prefix.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from pathlib import Path

from secrets_sync.constants import CANONICAL_ENV_FILE, PRODUCTION_ENVIRONMENT
from secrets_sync.envfiles.dotenv import EnvParseResult, read_env_file
from secrets_sync.envfiles.scanner import EnvFile
from secrets_sync.errors import ParseError

EnvReader = Callable[[Path], EnvParseResult]

_NON_ALNUM = re.compile(r"[^A-Za-z0-9]+")
_ENV_NAME_PREFIX = re.compile(r"^\.env\.?")


@dataclass(frozen=True, slots=True)
class ResolvedEnvironment:
    """Key -> value mapping for one logical environment."""

    name: str
    file: str
    values: dict[str, str] = field(default_factory=dict)
    source_by_key: dict[str, str] = field(default_factory=dict)
    prefix: str = ""
    warnings: tuple[ParseError, ...] = ()

    def keys(self) -> tuple[str, ...]:
        return tuple(self.values)

    def secret_names(self) -> dict[str, str]:
        """Remote secret name (prefix + key) -> value, in key order."""

        return {f"{self.prefix}{key}": value for key, value in self.values.items()}

    def source_for(self, key: str) -> str:
        return self.source_by_key.get(key, self.file)


@dataclass(frozen=True, slots=True)
class ProductionResolution:
    production: ResolvedEnvironment | None
    prefixed: tuple[ResolvedEnvironment, ...] = ()
    overrides: tuple[str, ...] = ()
    messages: tuple[str, ...] = ()


def sanitize_prefix_token(token: str) -> str:
    return _NON_ALNUM.sub("", token).upper()


def forced_production_token(file_name: str) -> str:
    return _ENV_NAME_PREFIX.sub("", file_name) or "PROD"


def resolve_production(
    files: Sequence[EnvFile],
    *,
    force: bool = False,
    reader: EnvReader = read_env_file,
) -> ProductionResolution:
    """Resolve the production environment from the production-variant files."""

    candidates = [item for item in files if item.is_production_variant]
    if not candidates:
        return ProductionResolution(
            production=None,
            messages=(
                "No production env file found "
                "(expected one of .env, .env.prod, .env.prd, .env.production)",
            ),
        )

    canonical = next((item for item in candidates if item.name == CANONICAL_ENV_FILE), None)
    if canonical is None:
        canonical = candidates[0]
    aliases = sorted((item for item in candidates if item is not canonical), key=lambda f: f.name)

    base = reader(canonical.path)
    values = base.record.as_dict()
    source_by_key = dict.fromkeys(values, canonical.name)
    warnings = list(base.warnings)
    messages: list[str] = []
    prefixed: list[ResolvedEnvironment] = []

    if aliases and force:
        described = ", ".join(
            f"{alias.name} => {sanitize_prefix_token(forced_production_token(alias.name))}_"
            for alias in aliases
        )
        messages.append(
            f"Prefixing production variants ({described}); {canonical.name} remains canonical."
        )
        for alias in aliases:
            prefixed.append(_prefixed_production(alias, reader))
    elif aliases:
        messages.append(
            "Layering production overrides: "
            f"{canonical.name} <- {', '.join(alias.name for alias in aliases)}"
        )
        for alias in aliases:
            parsed = reader(alias.path)
            warnings.extend(parsed.warnings)
            for key, value in parsed.record:
                values[key] = value
                source_by_key[key] = alias.name

    production = ResolvedEnvironment(
        name=PRODUCTION_ENVIRONMENT,
        file=canonical.name,
        values=values,
        source_by_key=source_by_key,
        prefix="",
        warnings=tuple(warnings),
    )
    return ProductionResolution(
        production=production,
        prefixed=tuple(prefixed),
        overrides=tuple(alias.name for alias in aliases),
        messages=tuple(messages),
    )


def resolve_other(env_file: EnvFile, *, reader: EnvReader = read_env_file) -> ResolvedEnvironment:
    """Straight parse of a non-production file; no layering."""

    if env_file.is_production_variant:
        raise ValueError(f"{env_file.name} is a production file; use resolve_production")
    parsed = reader(env_file.path)
    values = parsed.record.as_dict()
    token = env_file.token or PRODUCTION_ENVIRONMENT
    prefix = "" if token == PRODUCTION_ENVIRONMENT else f"{sanitize_prefix_token(token)}_"
    return ResolvedEnvironment(
        name=token,
        file=env_file.name,
        values=values,
        source_by_key=dict.fromkeys(values, env_file.name),
        prefix=prefix,
        warnings=parsed.warnings,
    )


def resolve_environments(
    files: Sequence[EnvFile],
    *,
    force: bool = False,
    target: str | None = None,
    reader: EnvReader = read_env_file,
) -> tuple[ProductionResolution, tuple[ResolvedEnvironment, ...]]:
    """Resolve production plus every non-production file.

    ``target`` limits non-production environments to one name; production is
    always resolved because drift is measured against it.
    """

    resolution = resolve_production(files, force=force, reader=reader)
    others: list[ResolvedEnvironment] = list(resolution.prefixed)
    for env_file in files:
        if env_file.is_production_variant:
            continue
        others.append(resolve_other(env_file, reader=reader))
    if target is not None:
        wanted = target.strip().lower()
        others = [env for env in others if env.name.lower() == wanted]
    return resolution, tuple(others)


def _prefixed_production(alias: EnvFile, reader: EnvReader) -> ResolvedEnvironment:
    token = forced_production_token(alias.name)
    parsed = reader(alias.path)
    values = parsed.record.as_dict()
    return ResolvedEnvironment(
        name=token.lower(),
        file=alias.name,
        values=values,
        source_by_key=dict.fromkeys(values, alias.name),
        prefix=f"{sanitize_prefix_token(token)}_",
        warnings=parsed.warnings,
    )


__all__ = [
    "EnvReader",
    "ProductionResolution",
    "ResolvedEnvironment",
    "forced_production_token",
    "resolve_environments",
    "resolve_other",
    "resolve_production",
    "sanitize_prefix_token",
]

"""
secrets-sync — reconciliation planner

File: src/secrets_sync/sync/planner.py

Purpose
- Decide CREATE / UPDATE / DELETE / NOOP per secret from local values, the
  remote listing, and the manifest. Pure: no I/O, no remote calls.

Functional requirements
- Per-key rules are evaluated in a fixed order; the first match wins.
- Keys are planned in local insertion order; deletes follow in sorted order.
- Deletes are planned only within ``delete_scope`` and are never applied
  without explicit confirmation at the apply step.
- Skip patterns (exact or ``PREFIX*``, case-insensitive) exclude names from the
  plan and report them separately.
- Drift detection across environments is read-only and reports key names only.
"""

from __future__ import annotations

import enum
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass

import structlog

from secrets_sync.constants import CANONICAL_ENV_FILE, PRODUCTION_ENVIRONMENT
from secrets_sync.envfiles.resolver import ResolvedEnvironment
from secrets_sync.sync.manifest import ManifestEntry
from secrets_sync.sync.remote import RemoteSecretSnapshot
from secrets_sync.utils.hashing import hash_value

logger = structlog.get_logger(__name__)

DeleteScope = Callable[[str], bool]


class ActionKind(enum.StrEnum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    NOOP = "noop"


class Reason(enum.StrEnum):
    MISSING_REMOTELY = "missing_remotely"
    OVERWRITE_REQUESTED = "overwrite_requested"
    FIRST_SYNC = "first_sync"
    LOCAL_EDIT = "local_edit"
    REMOTE_DRIFT = "remote_drift"
    IN_SYNC = "in_sync"
    INSUFFICIENT_TIMESTAMPS = "insufficient_timestamps"
    TRUSTED_MANIFEST = "trusted_manifest"
    ABSENT_LOCALLY = "absent_locally"


@dataclass(frozen=True, slots=True)
class SyncAction:
    key: str
    kind: ActionKind
    reason: Reason
    source_file: str = ""
    environment: str = PRODUCTION_ENVIRONMENT

    @property
    def is_mutation(self) -> bool:
        return self.kind is not ActionKind.NOOP


@dataclass(frozen=True, slots=True)
class SkippedSecret:
    key: str
    source_file: str = ""
    pattern: str = ""


@dataclass(frozen=True, slots=True)
class SyncPlan:
    environment: str
    actions: tuple[SyncAction, ...] = ()
    skipped: tuple[SkippedSecret, ...] = ()

    def of_kind(self, kind: ActionKind) -> tuple[SyncAction, ...]:
        return tuple(action for action in self.actions if action.kind is kind)

    def counts(self) -> dict[ActionKind, int]:
        totals = dict.fromkeys(ActionKind, 0)
        for action in self.actions:
            totals[action.kind] += 1
        return totals

    @property
    def has_changes(self) -> bool:
        return any(action.is_mutation for action in self.actions)


class DriftKind(enum.StrEnum):
    MISSING_IN_ENVIRONMENT = "missing_in_environment"
    EXTRA_IN_ENVIRONMENT = "extra_in_environment"


@dataclass(frozen=True, slots=True)
class DriftWarning:
    environment: str
    key: str
    kind: DriftKind
    production_source: str = ""

    def render(self) -> str:
        if self.kind is DriftKind.MISSING_IN_ENVIRONMENT:
            return (
                f"{self.environment}: {self.key} is set in production "
                f"({self.production_source or CANONICAL_ENV_FILE}) but missing here"
            )
        return f"{self.environment}: {self.key} is not defined in production"


def plan(
    local: Mapping[str, str],
    remote: Mapping[str, RemoteSecretSnapshot] | Sequence[RemoteSecretSnapshot],
    manifest: Mapping[str, ManifestEntry] | Sequence[ManifestEntry],
    *,
    environment: str = PRODUCTION_ENVIRONMENT,
    trust_manifest: bool = False,
    overwrite: bool = False,
    skip_patterns: Iterable[str] = (),
    delete_scope: DeleteScope | None = None,
    sources: Mapping[str, str] | None = None,
) -> SyncPlan:
    """Compute the sync plan for one environment.

    ``local`` maps remote secret names (prefix already applied) to values.
    ``manifest`` holds this environment's entries, keyed by the same names.
    """

    remote_by_name = _index_remote(remote)
    manifest_by_key = _index_manifest(manifest, environment)
    patterns = tuple(pattern for pattern in skip_patterns if pattern)
    source_by_key = sources or {}

    actions: list[SyncAction] = []
    skipped: list[SkippedSecret] = []

    for key, value in local.items():
        source_file = source_by_key.get(key, "")
        matched = match_skip_pattern(key, patterns)
        if matched is not None:
            skipped.append(SkippedSecret(key=key, source_file=source_file, pattern=matched))
            continue
        kind, reason = _decide(
            value,
            remote_by_name.get(key),
            manifest_by_key.get(key),
            trust_manifest=trust_manifest,
            overwrite=overwrite,
        )
        if reason is Reason.REMOTE_DRIFT:
            logger.warning("remote_drift_detected", environment=environment, name=key)
        actions.append(
            SyncAction(
                key=key,
                kind=kind,
                reason=reason,
                source_file=source_file,
                environment=environment,
            )
        )

    orphaned = (set(remote_by_name) | set(manifest_by_key)) - set(local)
    for key in sorted(orphaned):
        matched = match_skip_pattern(key, patterns)
        if matched is not None:
            skipped.append(SkippedSecret(key=key, pattern=matched))
            continue
        if delete_scope is not None and not delete_scope(key):
            continue
        entry = manifest_by_key.get(key)
        actions.append(
            SyncAction(
                key=key,
                kind=ActionKind.DELETE,
                reason=Reason.ABSENT_LOCALLY,
                source_file=entry.source_file if entry is not None else "",
                environment=environment,
            )
        )

    return SyncPlan(environment=environment, actions=tuple(actions), skipped=tuple(skipped))


def match_skip_pattern(name: str, patterns: Sequence[str]) -> str | None:
    """Return the first pattern matching ``name`` (exact or ``PREFIX*``), else ``None``."""

    lowered = name.lower()
    for pattern in patterns:
        candidate = pattern.strip().lower()
        if not candidate:
            continue
        if candidate.endswith("*"):
            if lowered.startswith(candidate[:-1]):
                return pattern
        elif lowered == candidate:
            return pattern
    return None


def namespace_scope(prefix: str, other_prefixes: Iterable[str]) -> DeleteScope:
    """Delete scope for one environment's slice of the shared remote namespace.

    Prefixed environments own names starting with their prefix. Production
    (empty prefix) owns every name that no other known prefix claims.
    """

    others = tuple(sorted({other for other in other_prefixes if other and other != prefix}))

    def _in_scope(name: str) -> bool:
        if prefix:
            if not name.startswith(prefix):
                return False
            # A longer sibling prefix (STAGING_ vs STAGING_EU_) claims its own names.
            return not any(
                len(other) > len(prefix) and name.startswith(other) for other in others
            )
        return not any(name.startswith(other) for other in others)

    return _in_scope


def detect_drift(
    production: ResolvedEnvironment,
    others: Iterable[ResolvedEnvironment],
    *,
    strict: bool = False,
) -> list[DriftWarning]:
    """Compare every non-production environment's key set against production.

    Keys that production takes from the shared canonical ``.env`` are treated
    as shared defaults, not as required per environment, unless ``strict``.
    """

    warnings: list[DriftWarning] = []
    production_keys = production.values.keys()
    for environment in others:
        if environment.name == production.name and not environment.prefix:
            continue
        env_keys = environment.values.keys()
        for key in production.values:
            if key in env_keys:
                continue
            source = production.source_for(key)
            if not strict and source == CANONICAL_ENV_FILE:
                continue
            warnings.append(
                DriftWarning(
                    environment=environment.name,
                    key=key,
                    kind=DriftKind.MISSING_IN_ENVIRONMENT,
                    production_source=source,
                )
            )
        for key in environment.values:
            if key not in production_keys:
                warnings.append(
                    DriftWarning(
                        environment=environment.name,
                        key=key,
                        kind=DriftKind.EXTRA_IN_ENVIRONMENT,
                    )
                )
    return warnings


def validate_required_keys(
    production: ResolvedEnvironment | None,
    required: Iterable[str],
) -> list[str]:
    """Return required key names that production does not define, in ``required`` order."""

    values = production.values if production is not None else {}
    return [key for key in required if key not in values]


def _decide(
    value: str,
    remote: RemoteSecretSnapshot | None,
    entry: ManifestEntry | None,
    *,
    trust_manifest: bool,
    overwrite: bool,
) -> tuple[ActionKind, Reason]:
    if remote is None:
        return ActionKind.CREATE, Reason.MISSING_REMOTELY
    if overwrite:
        return ActionKind.UPDATE, Reason.OVERWRITE_REQUESTED
    if entry is None:
        return ActionKind.UPDATE, Reason.FIRST_SYNC
    if entry.content_hash != hash_value(value):
        return ActionKind.UPDATE, Reason.LOCAL_EDIT

    remote_ts = remote.updated_at
    manifest_ts = entry.remote_updated_at
    if remote_ts and manifest_ts:
        if remote_ts != manifest_ts:
            return ActionKind.UPDATE, Reason.REMOTE_DRIFT
        return ActionKind.NOOP, Reason.IN_SYNC
    if trust_manifest:
        return ActionKind.NOOP, Reason.TRUSTED_MANIFEST
    return ActionKind.UPDATE, Reason.INSUFFICIENT_TIMESTAMPS


def _index_remote(
    remote: Mapping[str, RemoteSecretSnapshot] | Sequence[RemoteSecretSnapshot],
) -> dict[str, RemoteSecretSnapshot]:
    if isinstance(remote, Mapping):
        return dict(remote)
    return {snapshot.name: snapshot for snapshot in remote}


def _index_manifest(
    manifest: Mapping[str, ManifestEntry] | Sequence[ManifestEntry],
    environment: str,
) -> dict[str, ManifestEntry]:
    if isinstance(manifest, Mapping):
        return dict(manifest)
    return {entry.key: entry for entry in manifest if entry.environment == environment}


__all__ = [
    "ActionKind",
    "DeleteScope",
    "DriftKind",
    "DriftWarning",
    "Reason",
    "SkippedSecret",
    "SyncAction",
    "SyncPlan",
    "detect_drift",
    "match_skip_pattern",
    "namespace_scope",
    "plan",
    "validate_required_keys",
]

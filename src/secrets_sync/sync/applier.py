"""
secrets-sync — plan application

File: src/secrets_sync/sync/applier.py

Purpose
- Execute planned mutations against a secret store and keep the manifest in
  step with what actually reached the remote.

Functional requirements
- Sequential. One failing key is recorded and the loop continues.
- The manifest changes only for keys whose remote write succeeded.
- Remote timestamps are refreshed with a single listing after all writes; if
  that listing fails, entries are recorded without a timestamp.
- Deletes require ``confirm_deletes``; every mutation may be vetoed by ``approve``.
- Error text is redacted before it is stored in the report.
"""

from __future__ import annotations

import enum
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass

import structlog

from secrets_sync.errors import RemoteError
from secrets_sync.security.redaction import Redactor
from secrets_sync.sync.manifest import ManifestEntry, ManifestStore
from secrets_sync.sync.planner import ActionKind, SkippedSecret, SyncAction
from secrets_sync.sync.remote import SecretStore
from secrets_sync.utils.hashing import hash_value

logger = structlog.get_logger(__name__)

Approver = Callable[[SyncAction], bool]

_NO_SOURCE = "(n/a)"


class AuditStatus(enum.StrEnum):
    PLANNED = "planned"
    APPLIED = "applied"
    SKIPPED = "skipped"
    FAILED = "failed"
    UNCHANGED = "unchanged"


@dataclass(frozen=True, slots=True)
class AuditRow:
    name: str
    source: str
    action: str
    status: AuditStatus


@dataclass(frozen=True, slots=True)
class FailedAction:
    action: SyncAction
    error: str


@dataclass(frozen=True, slots=True)
class ApplyReport:
    applied: tuple[SyncAction, ...] = ()
    failed: tuple[FailedAction, ...] = ()
    declined: tuple[SyncAction, ...] = ()
    audit: tuple[AuditRow, ...] = ()
    warnings: tuple[str, ...] = ()

    @property
    def ok(self) -> bool:
        return not self.failed


def apply_plan(
    actions: Sequence[SyncAction],
    *,
    store: SecretStore,
    manifest_store: ManifestStore,
    desired: Mapping[str, str],
    environment: str | None = None,
    confirm_deletes: bool = False,
    approve: Approver | None = None,
    redactor: Redactor | None = None,
    skipped: Iterable[SkippedSecret] = (),
) -> ApplyReport:
    """Apply ``actions`` in order; see module docstring for guarantees."""

    scrubber = redactor if redactor is not None else Redactor()
    applied: list[SyncAction] = []
    failed: list[FailedAction] = []
    declined: list[SyncAction] = []
    warnings: list[str] = []
    written: list[SyncAction] = []

    for action in actions:
        if action.kind is ActionKind.NOOP:
            continue
        if action.kind is ActionKind.DELETE and not confirm_deletes:
            declined.append(action)
            continue
        if approve is not None and not approve(action):
            declined.append(action)
            continue

        env_name = environment or action.environment
        try:
            if action.kind is ActionKind.DELETE:
                store.delete(action.key)
            else:
                store.set(action.key, desired[action.key])
        except RemoteError as exc:
            error = scrubber.redact_text(str(exc))
            failed.append(FailedAction(action=action, error=error))
            logger.error(
                "apply_failed",
                environment=env_name,
                name=action.key,
                action=str(action.kind),
                error_type=type(exc).__name__,
            )
            continue

        applied.append(action)
        if action.kind is ActionKind.DELETE:
            manifest_store.remove(env_name, action.key)
        else:
            written.append(action)
        logger.info(
            "apply_succeeded",
            environment=env_name,
            name=action.key,
            action=str(action.kind),
        )

    if written:
        timestamps, warning = _refresh_timestamps(store, scrubber)
        if warning:
            warnings.append(warning)
        for action in written:
            manifest_store.record(
                ManifestEntry(
                    environment=environment or action.environment,
                    key=action.key,
                    content_hash=hash_value(desired[action.key]),
                    remote_updated_at=timestamps.get(action.key),
                    source_file=action.source_file,
                )
            )

    audit = build_audit_rows(
        actions,
        applied=applied,
        failed=[item.action for item in failed],
        skipped=skipped,
    )
    return ApplyReport(
        applied=tuple(applied),
        failed=tuple(failed),
        declined=tuple(declined),
        audit=audit,
        warnings=tuple(warnings),
    )


def build_audit_rows(
    actions: Sequence[SyncAction],
    *,
    applied: Iterable[SyncAction] | None = None,
    failed: Iterable[SyncAction] = (),
    skipped: Iterable[SkippedSecret] = (),
) -> tuple[AuditRow, ...]:
    """Audit rows for a run. ``applied=None`` means a dry run (nothing executed)."""

    dry_run = applied is None
    applied_set = set(applied or ())
    failed_set = set(failed)
    rows: list[AuditRow] = []
    for action in actions:
        if action.kind is ActionKind.NOOP:
            status = AuditStatus.UNCHANGED
        elif dry_run:
            status = AuditStatus.PLANNED
        elif action in failed_set:
            status = AuditStatus.FAILED
        elif action in applied_set:
            status = AuditStatus.APPLIED
        else:
            status = AuditStatus.SKIPPED
        rows.append(
            AuditRow(
                name=action.key,
                source=action.source_file or _NO_SOURCE,
                action=str(action.kind),
                status=status,
            )
        )
    for item in skipped:
        rows.append(
            AuditRow(
                name=item.key,
                source=item.source_file or _NO_SOURCE,
                action=str(ActionKind.NOOP),
                status=AuditStatus.SKIPPED,
            )
        )
    return tuple(rows)


def _refresh_timestamps(
    store: SecretStore,
    scrubber: Redactor,
) -> tuple[dict[str, str | None], str]:
    try:
        snapshots = store.list()
    except RemoteError as exc:
        logger.warning("timestamp_refresh_failed", error_type=type(exc).__name__)
        return {}, scrubber.redact_text(f"could not refresh remote timestamps: {exc}")
    return {snapshot.name: snapshot.updated_at for snapshot in snapshots}, ""


__all__ = [
    "ApplyReport",
    "Approver",
    "AuditRow",
    "AuditStatus",
    "FailedAction",
    "apply_plan",
    "build_audit_rows",
]

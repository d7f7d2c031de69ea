"""Reconciliation: manifest state, planning, remote stores, and plan application."""

from secrets_sync.sync.applier import (
    ApplyReport,
    AuditRow,
    AuditStatus,
    FailedAction,
    apply_plan,
    build_audit_rows,
)
from secrets_sync.sync.manifest import ManifestEntry, ManifestStore
from secrets_sync.sync.planner import (
    ActionKind,
    DriftKind,
    DriftWarning,
    Reason,
    SkippedSecret,
    SyncAction,
    SyncPlan,
    detect_drift,
    namespace_scope,
    plan,
    validate_required_keys,
)
from secrets_sync.sync.remote import (
    GhCliSecretStore,
    InMemorySecretStore,
    RemoteSecretSnapshot,
    SecretStore,
    load_mock_store,
)

__all__ = [
    "ActionKind",
    "ApplyReport",
    "AuditRow",
    "AuditStatus",
    "DriftKind",
    "DriftWarning",
    "FailedAction",
    "GhCliSecretStore",
    "InMemorySecretStore",
    "ManifestEntry",
    "ManifestStore",
    "Reason",
    "RemoteSecretSnapshot",
    "SecretStore",
    "SkippedSecret",
    "SyncAction",
    "SyncPlan",
    "apply_plan",
    "build_audit_rows",
    "detect_drift",
    "load_mock_store",
    "namespace_scope",
    "plan",
    "validate_required_keys",
]

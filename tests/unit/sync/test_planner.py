"""
secrets-sync — unit tests for the reconciliation planner

File: tests/unit/sync/test_planner.py

Purpose
- Pin the per-key decision order and plan shape.

What this test file should cover
- Every decision reason, in precedence order.
- Delete planning, delete scopes over a shared namespace, and skip patterns.
- Drift detection and required-key validation.

Non-functional requirements
- Pure: no filesystem, no remote calls.
"""

from __future__ import annotations

import pytest

from secrets_sync.envfiles.resolver import ResolvedEnvironment
from secrets_sync.sync.manifest import ManifestEntry
from secrets_sync.sync.planner import (
    ActionKind,
    DriftKind,
    Reason,
    SyncAction,
    detect_drift,
    match_skip_pattern,
    namespace_scope,
    plan,
    validate_required_keys,
)
from secrets_sync.sync.remote import RemoteSecretSnapshot
from secrets_sync.utils.hashing import hash_value

try:
    from hypothesis import given, settings
    from hypothesis import strategies as st
except ModuleNotFoundError:
    _HYPOTHESIS_AVAILABLE = False
else:
    _HYPOTHESIS_AVAILABLE = True

TS = "2026-03-01T12:00:00Z"
LATER = "2026-03-02T12:00:00Z"


def _entry(key: str, value: str, ts: str | None = TS, environment: str = "production") -> ManifestEntry:
    return ManifestEntry(
        environment=environment,
        key=key,
        content_hash=hash_value(value),
        remote_updated_at=ts,
        source_file=".env",
    )


def _decision(
    *,
    remote_ts: str | None = TS,
    remote_present: bool = True,
    entry: ManifestEntry | None = None,
    value: str = "v1",
    trust_manifest: bool = False,
    overwrite: bool = False,
) -> tuple[ActionKind, Reason]:
    remote = [RemoteSecretSnapshot("API_KEY", remote_ts)] if remote_present else []
    manifest = {"API_KEY": entry} if entry is not None else {}
    result = plan(
        {"API_KEY": value},
        remote,
        manifest,
        trust_manifest=trust_manifest,
        overwrite=overwrite,
    )
    [action] = result.actions
    return action.kind, action.reason


def test_missing_remotely_creates_even_with_overwrite() -> None:
    assert _decision(remote_present=False, overwrite=True) == (
        ActionKind.CREATE,
        Reason.MISSING_REMOTELY,
    )


def test_overwrite_updates_existing() -> None:
    assert _decision(entry=_entry("API_KEY", "v1"), overwrite=True) == (
        ActionKind.UPDATE,
        Reason.OVERWRITE_REQUESTED,
    )


def test_first_sync_without_manifest_entry() -> None:
    assert _decision() == (ActionKind.UPDATE, Reason.FIRST_SYNC)


def test_local_edit_beats_trusted_manifest() -> None:
    assert _decision(entry=_entry("API_KEY", "old"), trust_manifest=True) == (
        ActionKind.UPDATE,
        Reason.LOCAL_EDIT,
    )


def test_remote_drift_when_timestamps_differ() -> None:
    assert _decision(entry=_entry("API_KEY", "v1"), remote_ts=LATER) == (
        ActionKind.UPDATE,
        Reason.REMOTE_DRIFT,
    )


def test_in_sync_when_hash_and_timestamps_match() -> None:
    assert _decision(entry=_entry("API_KEY", "v1")) == (ActionKind.NOOP, Reason.IN_SYNC)


@pytest.mark.parametrize(
    ("remote_ts", "manifest_ts"),
    [(None, TS), (TS, None), (None, None)],
)
def test_missing_timestamps_update_unless_trusted(
    remote_ts: str | None, manifest_ts: str | None
) -> None:
    entry = _entry("API_KEY", "v1", ts=manifest_ts)

    assert _decision(entry=entry, remote_ts=remote_ts) == (
        ActionKind.UPDATE,
        Reason.INSUFFICIENT_TIMESTAMPS,
    )
    assert _decision(entry=entry, remote_ts=remote_ts, trust_manifest=True) == (
        ActionKind.NOOP,
        Reason.TRUSTED_MANIFEST,
    )


def test_actions_follow_local_order_then_sorted_deletes() -> None:
    result = plan(
        {"ZETA": "1", "ALPHA": "2"},
        [RemoteSecretSnapshot("ZZ_OLD"), RemoteSecretSnapshot("AA_OLD")],
        [_entry("MM_OLD", "x")],
        sources={"ZETA": ".env", "ALPHA": ".env.prod"},
    )

    assert [(a.key, a.kind) for a in result.actions] == [
        ("ZETA", ActionKind.CREATE),
        ("ALPHA", ActionKind.CREATE),
        ("AA_OLD", ActionKind.DELETE),
        ("MM_OLD", ActionKind.DELETE),
        ("ZZ_OLD", ActionKind.DELETE),
    ]
    assert result.actions[1].source_file == ".env.prod"
    assert result.actions[3].source_file == ".env"
    assert all(a.reason is Reason.ABSENT_LOCALLY for a in result.of_kind(ActionKind.DELETE))
    assert result.counts()[ActionKind.DELETE] == 3
    assert result.has_changes


def test_skip_patterns_exclude_local_and_orphaned_names() -> None:
    result = plan(
        {"GITHUB_TOKEN": "x", "DEPLOY_KEY": "y", "APP": "z"},
        [RemoteSecretSnapshot("ACTIONS_RUNNER_DEBUG")],
        {},
        skip_patterns=["github_token", "ACTIONS_*", ""],
        sources={"GITHUB_TOKEN": ".env"},
    )

    assert [a.key for a in result.actions] == ["DEPLOY_KEY", "APP"]
    assert [(s.key, s.pattern, s.source_file) for s in result.skipped] == [
        ("GITHUB_TOKEN", "github_token", ".env"),
        ("ACTIONS_RUNNER_DEBUG", "ACTIONS_*", ""),
    ]


def test_match_skip_pattern() -> None:
    assert match_skip_pattern("ACTIONS_STEP_DEBUG", ["actions_*"]) == "actions_*"
    assert match_skip_pattern("API_KEY", ["API"]) is None


def test_namespace_scope_partitions_shared_remote() -> None:
    prefixes = ["", "STAGING_", "STAGING_EU_", "DEV_"]
    production = namespace_scope("", prefixes)
    staging = namespace_scope("STAGING_", prefixes)
    staging_eu = namespace_scope("STAGING_EU_", prefixes)

    assert production("API_KEY")
    assert not production("STAGING_API_KEY")
    assert staging("STAGING_API_KEY")
    assert not staging("STAGING_EU_API_KEY")
    assert not staging("DEV_API_KEY")
    assert staging_eu("STAGING_EU_API_KEY")


def test_delete_scope_limits_deletes() -> None:
    result = plan(
        {"STAGING_A": "1"},
        [RemoteSecretSnapshot("STAGING_OLD"), RemoteSecretSnapshot("PROD_ONLY")],
        {},
        environment="staging",
        delete_scope=namespace_scope("STAGING_", ["", "STAGING_"]),
    )

    assert [(a.key, a.kind, a.environment) for a in result.actions] == [
        ("STAGING_A", ActionKind.CREATE, "staging"),
        ("STAGING_OLD", ActionKind.DELETE, "staging"),
    ]


def test_manifest_sequence_is_filtered_by_environment() -> None:
    entries = [_entry("API_KEY", "v1", environment="staging")]

    result = plan({"API_KEY": "v1"}, [RemoteSecretSnapshot("API_KEY", TS)], entries)

    assert result.actions[0].reason is Reason.FIRST_SYNC


def _env(name: str, values: dict[str, str], sources: dict[str, str] | None = None) -> ResolvedEnvironment:
    file = ".env" if name == "production" else f".env.{name}"
    return ResolvedEnvironment(
        name=name,
        file=file,
        values=values,
        source_by_key=sources or dict.fromkeys(values, file),
        prefix="" if name == "production" else f"{name.upper()}_",
    )


def test_detect_drift_reports_names_only() -> None:
    production = _env(
        "production",
        {"SHARED": "a", "PROD_ONLY": "b"},
        {"SHARED": ".env", "PROD_ONLY": ".env.production"},
    )
    staging = _env("staging", {"EXTRA": "secret-value"})

    warnings = detect_drift(production, [staging])

    assert [(w.environment, w.key, w.kind) for w in warnings] == [
        ("staging", "PROD_ONLY", DriftKind.MISSING_IN_ENVIRONMENT),
        ("staging", "EXTRA", DriftKind.EXTRA_IN_ENVIRONMENT),
    ]
    assert "secret-value" not in " ".join(w.render() for w in warnings)
    strict = detect_drift(production, [staging], strict=True)
    assert {w.key for w in strict} == {"SHARED", "PROD_ONLY", "EXTRA"}


def test_validate_required_keys_is_presence_check() -> None:
    production = _env("production", {"A": "", "B": "x"})

    assert validate_required_keys(production, ["A", "B", "C"]) == ["C"]
    assert validate_required_keys(None, ["A"]) == ["A"]


def test_sync_action_mutation_flag() -> None:
    assert SyncAction("A", ActionKind.CREATE, Reason.MISSING_REMOTELY).is_mutation
    assert not SyncAction("A", ActionKind.NOOP, Reason.IN_SYNC).is_mutation


if _HYPOTHESIS_AVAILABLE:

    _NAMES = st.text(alphabet="ABCDEFGHIJ_", min_size=1, max_size=6)

    @given(
        local=st.dictionaries(_NAMES, st.text(max_size=8), max_size=6),
        remote=st.sets(_NAMES, max_size=6),
    )
    @settings(max_examples=60, derandomize=True, deadline=None)
    def test_property_plan_covers_union_exactly_once(local: dict[str, str], remote: set[str]) -> None:
        result = plan(local, [RemoteSecretSnapshot(name, TS) for name in remote], {})

        keys = [action.key for action in result.actions]
        assert len(keys) == len(set(keys))
        assert set(keys) == set(local) | remote
        for action in result.actions:
            assert (action.kind is ActionKind.DELETE) == (action.key not in local)

    @given(
        local=st.dictionaries(_NAMES, st.text(max_size=8), max_size=6),
        remote=st.dictionaries(_NAMES, st.sampled_from([TS, LATER, None]), max_size=6),
        known=st.dictionaries(_NAMES, st.tuples(st.text(max_size=8), st.sampled_from([TS, None])), max_size=6),
    )
    @settings(max_examples=80, derandomize=True, deadline=None)
    def test_property_replan_after_apply_is_noop(
        local: dict[str, str],
        remote: dict[str, str | None],
        known: dict[str, tuple[str, str | None]],
    ) -> None:
        manifest = {key: _entry(key, value, ts) for key, (value, ts) in known.items()}
        snapshots = {name: RemoteSecretSnapshot(name, ts) for name, ts in remote.items()}

        first = plan(local, list(snapshots.values()), manifest)

        written = "2026-03-09T00:00:00Z"
        for action in first.actions:
            if action.kind is ActionKind.DELETE:
                snapshots.pop(action.key, None)
                manifest.pop(action.key, None)
            elif action.is_mutation:
                snapshots[action.key] = RemoteSecretSnapshot(action.key, written)
                manifest[action.key] = _entry(action.key, local[action.key], written)

        second = plan(local, list(snapshots.values()), manifest)

        for action in second.actions:
            assert action.kind is ActionKind.NOOP, action
        assert {action.key for action in second.actions} == set(local)

"""
secrets-sync — unit tests for config schema validation

File: tests/unit/config/test_schema.py

Purpose
- Validate defaults, merge semantics, key normalization, and issue reporting.
"""

from __future__ import annotations

import pytest

from secrets_sync.config.schema import (
    ConfigValidationError,
    RunSettings,
    assert_valid_config,
    default_config,
    merge_config,
    normalize_keys,
    validate_config,
)


def test_defaults_are_valid_and_map_to_settings() -> None:
    settings = RunSettings.from_config(assert_valid_config(default_config()))

    assert settings == RunSettings()
    assert settings.dir == "config/env"
    assert settings.backup_retention == 3
    assert settings.timeout_ms == 30_000


def test_default_config_is_a_copy() -> None:
    first = default_config()
    first["skip_secrets"].append("X")

    assert default_config()["skip_secrets"] == []


def test_merge_skips_none_and_merges_nested() -> None:
    merged = merge_config(
        default_config(),
        {"dir": None, "flags": {"dry_run": True, "force": None}, "logging": {"level": "DEBUG"}},
    )

    assert merged["dir"] == "config/env"
    assert merged["flags"]["dry_run"] is True
    assert merged["flags"]["force"] is None
    assert merged["logging"] == {"level": "DEBUG", "json": False}


def test_normalize_keys_handles_camel_case_and_lifts_flag_paths() -> None:
    normalized = normalize_keys(
        {
            "backupRetention": 5,
            "skipSecrets": ["A"],
            "scrubbing": {"whitelistPatterns": ["PORT_*"]},
            "flags": {"dryRun": True, "dir": "envs", "env": "staging"},
        }
    )

    assert normalized == {
        "backup_retention": 5,
        "skip_secrets": ["A"],
        "scrubbing": {"whitelist_patterns": ["PORT_*"]},
        "flags": {"dry_run": True},
        "dir": "envs",
        "env": "staging",
    }


def test_validation_reports_every_issue_with_paths() -> None:
    config = merge_config(
        default_config(),
        {
            "timeout_ms": 0,
            "backup_retention": -1,
            "skip_secrets": ["OK", ""],
            "logging": {"level": "trace"},
            "flags": {"dry_run": "yes"},
            "unexpected": 1,
        },
    )

    result = validate_config(config)

    assert not result.is_valid
    assert [issue.path for issue in result.issues] == [
        "unexpected",
        "backup_retention",
        "timeout_ms",
        "skip_secrets[1]",
        "flags.dry_run",
        "logging.level",
    ]


def test_sensitive_unknown_key_never_echoes_value() -> None:
    config = merge_config(default_config(), {"apiKey": "sk-live-should-not-appear"})

    with pytest.raises(ConfigValidationError) as excinfo:
        assert_valid_config(config)

    message = str(excinfo.value)
    assert "apiKey" in message
    assert "secret values do not belong in env-config" in message
    assert "sk-live-should-not-appear" not in message
    assert excinfo.value.issues[0].path == "apiKey"


def test_skip_unchanged_flag_enables_trust_manifest() -> None:
    config = assert_valid_config(merge_config(default_config(), {"flags": {"skip_unchanged": True}}))

    assert RunSettings.from_config(config).trust_manifest is True


def test_root_must_be_mapping() -> None:
    result = validate_config(["not", "a", "mapping"])

    assert result.config is None
    assert result.issues[0].path == "<root>"

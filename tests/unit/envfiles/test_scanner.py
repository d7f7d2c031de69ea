"""Unit tests for env file discovery."""

from __future__ import annotations

from pathlib import Path

from secrets_sync.envfiles.scanner import env_file_from_path, is_candidate_env_file, scan_env_directory


def _touch(directory: Path, *names: str) -> None:
    for name in names:
        (directory / name).write_text("", encoding="utf-8")


def test_scan_orders_canonical_then_aliases_then_others(tmp_path: Path) -> None:
    _touch(
        tmp_path,
        ".env.staging",
        ".env.production",
        ".env",
        ".env.dev",
        ".env.prod",
        ".env.example",
        ".env.staging.local",
        "README.md",
    )
    (tmp_path / ".env.dir").mkdir()

    names = [item.name for item in scan_env_directory(tmp_path)]

    assert names == [".env", ".env.prod", ".env.production", ".env.dev", ".env.staging"]


def test_scan_missing_directory_returns_empty(tmp_path: Path) -> None:
    assert scan_env_directory(tmp_path / "nope") == []


def test_env_file_tokens() -> None:
    production = env_file_from_path(Path("/x/.env.prd"))
    staging = env_file_from_path(Path("/x/.env.Staging"))

    assert production.is_production_variant
    assert production.token == "production"
    assert not staging.is_production_variant
    assert staging.token == "staging"


def test_candidate_filter() -> None:
    assert is_candidate_env_file(".env.qa")
    assert not is_candidate_env_file(".env.template")
    assert not is_candidate_env_file(".env.test")
    assert not is_candidate_env_file("env.qa")

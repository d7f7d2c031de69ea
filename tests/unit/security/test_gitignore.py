"""Unit tests for .gitignore validation and repair."""

from __future__ import annotations

from pathlib import Path

from secrets_sync.security.gitignore import REQUIRED_PATTERNS, fix_gitignore, validate_gitignore

_COMPLETE = ".env\n.env.*\n!.env.example\n**/bak/\n*.bak\n"


def test_missing_gitignore_reports_every_pattern(tmp_path: Path) -> None:
    report = validate_gitignore(tmp_path / ".gitignore")

    assert not report.is_valid
    assert report.missing_patterns == REQUIRED_PATTERNS
    assert report.warnings == (".gitignore file not found",)


def test_complete_gitignore_is_valid(tmp_path: Path) -> None:
    gitignore = tmp_path / ".gitignore"
    gitignore.write_text("node_modules/\n" + _COMPLETE, encoding="utf-8")

    report = validate_gitignore(gitignore)

    assert report.is_valid
    assert report.missing_patterns == ()
    assert report.warnings == ()


def test_negation_before_wildcards_warns(tmp_path: Path) -> None:
    gitignore = tmp_path / ".gitignore"
    gitignore.write_text("!.env.example\n.env\n.env.*\n**/bak/\n*.bak\n", encoding="utf-8")

    report = validate_gitignore(gitignore)

    assert report.is_valid
    assert report.warnings == ("negation pattern !.env.example should come after wildcard patterns",)


def test_partial_gitignore_lists_only_missing(tmp_path: Path) -> None:
    gitignore = tmp_path / ".gitignore"
    gitignore.write_text(".env\n*.bak\n", encoding="utf-8")

    report = validate_gitignore(gitignore)

    assert report.missing_patterns == (".env.*", "!.env.example", "**/bak/")


def test_fix_creates_file_and_is_idempotent(tmp_path: Path) -> None:
    gitignore = tmp_path / ".gitignore"

    added = fix_gitignore(gitignore)

    assert added == REQUIRED_PATTERNS
    assert validate_gitignore(gitignore).is_valid
    assert fix_gitignore(gitignore) == ()


def test_fix_preserves_existing_content(tmp_path: Path) -> None:
    gitignore = tmp_path / ".gitignore"
    gitignore.write_text("dist/\n.env", encoding="utf-8")

    added = fix_gitignore(gitignore)
    content = gitignore.read_text(encoding="utf-8")

    assert ".env" not in added
    assert content.startswith("dist/\n.env\n")
    assert content.count("\n.env\n") == 1
    assert validate_gitignore(gitignore).is_valid

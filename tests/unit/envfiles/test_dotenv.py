"""Unit tests for dotenv parsing."""

from __future__ import annotations

from pathlib import Path

from secrets_sync.envfiles.dotenv import parse_dotenv, read_env_file


def test_parses_pairs_comments_exports_and_quotes() -> None:
    text = "\n".join(
        [
            "# comment",
            "",
            "API_KEY=abc123",
            "export REGION = us-east-1",
            'GREETING="hello world"',
            "SINGLE='quoted'",
            "URL=postgres://u:p@h/db?sslmode=require",
        ]
    )

    result = parse_dotenv(text)

    assert result.warnings == ()
    assert result.record.as_dict() == {
        "API_KEY": "abc123",
        "REGION": "us-east-1",
        "GREETING": "hello world",
        "SINGLE": "quoted",
        "URL": "postgres://u:p@h/db?sslmode=require",
    }


def test_duplicate_key_last_wins_at_later_position() -> None:
    result = parse_dotenv("A=1\nB=2\nA=3\n")

    assert result.record.pairs == (("B", "2"), ("A", "3"))


def test_malformed_lines_are_reported_without_values() -> None:
    result = parse_dotenv("GOOD=1\nno_separator_here\n=orphan\nBAD KEY=secretvalue\r\n", source=".env")

    assert result.record.as_dict() == {"GOOD": "1"}
    assert [(w.source, w.line_number, w.reason) for w in result.warnings] == [
        (".env", 2, "missing '=' separator"),
        (".env", 3, "empty key"),
        (".env", 4, "key contains whitespace"),
    ]
    assert all("secretvalue" not in str(w) for w in result.warnings)


def test_empty_value_is_kept() -> None:
    record = parse_dotenv("EMPTY=\n").record

    assert "EMPTY" in record
    assert record.get("EMPTY") == ""
    assert len(record) == 1


def test_read_env_file_uses_file_name_as_source(tmp_path: Path) -> None:
    env_file = tmp_path / ".env.staging"
    env_file.write_text("A=1\nbroken\n", encoding="utf-8")

    result = read_env_file(env_file)

    assert result.record.keys() == ("A",)
    assert result.warnings[0].source == ".env.staging"


def test_undecodable_line_is_a_warning_not_a_failure(tmp_path: Path) -> None:
    env_file = tmp_path / ".env"
    env_file.write_bytes(b"API_KEY=ok\r\nBAD=\xff\xfe\nexport LAST=1\n")

    result = read_env_file(env_file)

    assert result.record.as_dict() == {"API_KEY": "ok", "LAST": "1"}
    assert [(w.source, w.line_number, w.reason) for w in result.warnings] == [
        (".env", 2, "invalid UTF-8"),
    ]

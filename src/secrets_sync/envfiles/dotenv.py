"""
secrets-sync — dotenv parsing

File: src/secrets_sync/envfiles/dotenv.py

Purpose
- Parse ``.env``-style text into an ordered, immutable key/value record.

Functional requirements
- Blank lines and ``#`` comments are ignored; ``export KEY=...`` is accepted.
- Split on the first ``=``; embedded ``=`` in values are kept.
- Duplicate keys: last occurrence wins and takes the later position.
- Malformed lines are skipped and reported without their contents.
- Files are decoded line by line; a line that is not valid UTF-8 is a
  malformed line, not a failure of the whole file.
"""

from __future__ import annotations

import os
import re
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from pathlib import Path

from secrets_sync.errors import ParseError
from secrets_sync.utils.fs import read_bytes

_LINE_SPLIT = re.compile(r"\r?\n")
_EXPORT_PREFIX = "export "


@dataclass(frozen=True, slots=True)
class EnvRecord:
    """Ordered ``(key, value)`` pairs parsed from one file."""

    pairs: tuple[tuple[str, str], ...] = ()

    def keys(self) -> tuple[str, ...]:
        return tuple(key for key, _ in self.pairs)

    def as_dict(self) -> dict[str, str]:
        return dict(self.pairs)

    def get(self, key: str, default: str | None = None) -> str | None:
        for existing, value in self.pairs:
            if existing == key:
                return value
        return default

    def __contains__(self, key: object) -> bool:
        return any(existing == key for existing, _ in self.pairs)

    def __iter__(self) -> Iterator[tuple[str, str]]:
        return iter(self.pairs)

    def __len__(self) -> int:
        return len(self.pairs)


@dataclass(frozen=True, slots=True)
class EnvParseResult:
    record: EnvRecord
    warnings: tuple[ParseError, ...] = ()


def parse_dotenv(text: str, *, source: str = "<text>") -> EnvParseResult:
    """Parse dotenv ``text``; malformed lines become warnings, never failures."""

    return _parse_lines(enumerate(_LINE_SPLIT.split(text), start=1), source=source)


def read_env_file(path: str | os.PathLike[str]) -> EnvParseResult:
    """Read and parse one env file as UTF-8."""

    file_path = Path(path)
    return _parse_lines(_decode_lines(read_bytes(file_path)), source=file_path.name)


def _decode_lines(data: bytes) -> Iterator[tuple[int, str | None]]:
    for line_number, raw in enumerate(data.split(b"\n"), start=1):
        try:
            yield line_number, raw.decode("utf-8")
        except UnicodeDecodeError:
            yield line_number, None


def _parse_lines(lines: Iterable[tuple[int, str | None]], *, source: str) -> EnvParseResult:
    values: dict[str, str] = {}
    warnings: list[ParseError] = []

    for line_number, raw in lines:
        if raw is None:
            warnings.append(ParseError(source, line_number, "invalid UTF-8"))
            continue
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        if line.startswith(_EXPORT_PREFIX):
            line = line[len(_EXPORT_PREFIX) :].lstrip()

        key, separator, value = line.partition("=")
        if not separator:
            warnings.append(ParseError(source, line_number, "missing '=' separator"))
            continue
        key = key.strip()
        if not key:
            warnings.append(ParseError(source, line_number, "empty key"))
            continue
        if any(char.isspace() for char in key):
            warnings.append(ParseError(source, line_number, "key contains whitespace"))
            continue

        # Re-insert so a duplicate key moves to its later position.
        values.pop(key, None)
        values[key] = _unquote(value.strip())

    return EnvParseResult(record=EnvRecord(tuple(values.items())), warnings=tuple(warnings))


def _unquote(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in {'"', "'"}:
        return value[1:-1]
    return value


__all__ = ["EnvParseResult", "EnvRecord", "parse_dotenv", "read_env_file"]

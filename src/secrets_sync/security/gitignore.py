"""Validate that a project's ``.gitignore`` keeps env files and backups out of git."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Final

from secrets_sync.utils.fs import atomic_write, read_text

# Wildcards must precede the negation.
REQUIRED_PATTERNS: Final[tuple[str, ...]] = (
    ".env",
    ".env.*",
    "!.env.example",
    "**/bak/",
    "*.bak",
)

_HEADER: Final[str] = "# Environment files (added by secrets-sync)"


@dataclass(frozen=True, slots=True)
class GitignoreReport:
    is_valid: bool
    missing_patterns: tuple[str, ...] = ()
    warnings: tuple[str, ...] = field(default_factory=tuple)


def validate_gitignore(path: Path | str) -> GitignoreReport:
    """Check ``path`` for the required patterns and their relative order."""

    gitignore = Path(path)
    if not gitignore.exists():
        return GitignoreReport(
            is_valid=False,
            missing_patterns=REQUIRED_PATTERNS,
            warnings=(".gitignore file not found",),
        )
    try:
        content = read_text(gitignore)
    except OSError:
        return GitignoreReport(is_valid=False, warnings=("failed to read .gitignore file",))

    lines = [line.strip() for line in content.replace("\\", "/").splitlines()]
    missing = tuple(pattern for pattern in REQUIRED_PATTERNS if pattern not in lines)

    warnings: list[str] = []
    if "!.env.example" in lines:
        negation = lines.index("!.env.example")
        if ".env" not in lines or ".env.*" not in lines:
            warnings.append(
                "negation pattern !.env.example found without corresponding wildcard patterns"
            )
        elif negation < max(lines.index(".env"), lines.index(".env.*")):
            warnings.append("negation pattern !.env.example should come after wildcard patterns")

    return GitignoreReport(
        is_valid=not missing,
        missing_patterns=missing,
        warnings=tuple(warnings),
    )


def fix_gitignore(path: Path | str) -> tuple[str, ...]:
    """Append missing patterns to ``path`` (creating it if needed); return what was added."""

    gitignore = Path(path)
    report = validate_gitignore(gitignore)
    if report.is_valid:
        return ()

    existing = read_text(gitignore) if gitignore.exists() else ""
    added = report.missing_patterns
    block = "\n".join((_HEADER, *added)) + "\n"
    if existing and not existing.endswith("\n"):
        existing += "\n"
    separator = "\n" if existing else ""
    atomic_write(gitignore, f"{existing}{separator}{block}")
    return added


__all__ = ["REQUIRED_PATTERNS", "GitignoreReport", "fix_gitignore", "validate_gitignore"]

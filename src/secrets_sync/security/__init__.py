"""
secrets-sync — public security utilities

File: src/secrets_sync/security/__init__.py

Purpose
- Redaction of secret material for every output surface.
- Repository hygiene checks for env files and backups.
"""

from secrets_sync.security.gitignore import (
    REQUIRED_PATTERNS,
    GitignoreReport,
    fix_gitignore,
    validate_gitignore,
)
from secrets_sync.security.redaction import (
    CIRCULAR,
    DEFAULT_REDACTION_CONFIG,
    INPUT_TOO_LARGE,
    REDACTED,
    REDACTED_JWT,
    REDACTED_PRIVATE_KEY,
    SCRUBBING_FAILED,
    KeyClass,
    RedactionConfig,
    Redactor,
    ScrubCache,
    classify_key,
    is_secret_key,
    is_whitelisted,
    redact_text,
    redact_value,
)

__all__ = [
    "CIRCULAR",
    "DEFAULT_REDACTION_CONFIG",
    "INPUT_TOO_LARGE",
    "REDACTED",
    "REDACTED_JWT",
    "REDACTED_PRIVATE_KEY",
    "REQUIRED_PATTERNS",
    "SCRUBBING_FAILED",
    "GitignoreReport",
    "KeyClass",
    "RedactionConfig",
    "Redactor",
    "ScrubCache",
    "classify_key",
    "fix_gitignore",
    "is_secret_key",
    "is_whitelisted",
    "redact_text",
    "redact_value",
    "validate_gitignore",
]

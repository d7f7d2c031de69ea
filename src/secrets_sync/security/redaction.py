"""
secrets-sync — secret redaction

File: src/secrets_sync/security/redaction.py

Purpose
- Mask secret material in text and nested values before it reaches any log,
  error message, audit table, or terminal.

What should be included in this file
- Ordered text detectors (private key blocks, JWTs, KEY=value, URL credentials).
- Closed key classification rules with configurable whitelist/secret patterns.
- Structure-preserving, non-mutating, cycle-safe deep redaction.
- A bounded LRU cache owned by the caller, not by this module.

Functional requirements
- Key names in ``KEY=value`` output are preserved; only the value is replaced.
- Oversized input is never scanned and returns a fixed sentinel.
- Internal failures degrade to a sentinel, never to pass-through of the input.

Non-functional requirements
- Deterministic for stable inputs; idempotent on already-redacted text.
"""

from __future__ import annotations

import contextlib
import enum
import fnmatch
import hashlib
import re
from collections import OrderedDict
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Final

import structlog

from secrets_sync.constants import MAX_SCRUB_INPUT_LENGTH, SCRUB_CACHE_SIZE
from secrets_sync.errors import RedactionInternalError

REDACTED: Final[str] = "[REDACTED]"
REDACTED_JWT: Final[str] = "[REDACTED:JWT]"
REDACTED_PRIVATE_KEY: Final[str] = "[REDACTED:PRIVATE_KEY]"
CIRCULAR: Final[str] = "[CIRCULAR]"
SCRUBBING_FAILED: Final[str] = "[SCRUBBING_FAILED]"
INPUT_TOO_LARGE: Final[str] = "[SCRUBBING_FAILED:INPUT_TOO_LARGE]"

# Values already replaced by a whole sentinel are left as is.
_SENTINELS: Final[frozenset[str]] = frozenset(
    {REDACTED, REDACTED_JWT, REDACTED_PRIVATE_KEY, CIRCULAR, SCRUBBING_FAILED, INPUT_TOO_LARGE}
)

DEFAULT_WHITELIST: Final[frozenset[str]] = frozenset(
    {
        # runtime options
        "debug",
        "node_env",
        "port",
        "host",
        "hostname",
        "path",
        "log_level",
        "verbose",
        "secrets_sync_timeout",
        "timeout",
        "timeout_ms",
        "backup_retention",
        "backupretention",
        "skip_secrets",
        "skipsecrets",
        "skip_unchanged",
        "trust_manifest",
        "dry_run",
        "no_confirm",
        "overwrite",
        "force",
        # audit columns
        "syncitemname",
        "itemsource",
        "key_count",
    }
)

BUILTIN_SECRET_KEYS: Final[frozenset[str]] = frozenset(
    {
        "password",
        "passwd",
        "pwd",
        "secret",
        "api_key",
        "apikey",
        "api_secret",
        "token",
        "auth",
        "authorization",
        "auth_token",
        "private_key",
        "access_key",
        "secret_key",
        "database_url",
        "db_url",
        "db_password",
        "client_secret",
        "client_id",
        "aws_secret_access_key",
        "aws_access_key_id",
        "github_token",
        "gh_token",
        "stripe_secret_key",
        "stripe_api_key",
    }
)

SECRET_KEY_TOKENS: Final[tuple[str, ...]] = (
    "key",
    "secret",
    "password",
    "passwd",
    "pwd",
    "token",
    "credential",
    "auth",
    "private",
)

_PRIVATE_KEY_BLOCK: Final[re.Pattern[str]] = re.compile(
    r"-----BEGIN(?: [A-Z0-9]+)* PRIVATE KEY-----"
    r"[\s\S]+?"
    r"-----END(?: [A-Z0-9]+)* PRIVATE KEY-----"
)
_JWT: Final[re.Pattern[str]] = re.compile(
    r"\beyJ[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+"
)
_KEY_VALUE: Final[re.Pattern[str]] = re.compile(
    r"(?<![A-Za-z0-9_])([A-Za-z_][A-Za-z0-9_]*)=(\"[^\"\n]*\"|'[^'\n]*'|[^\s]+)"
)
_URL_CREDENTIALS: Final[re.Pattern[str]] = re.compile(
    r"(?i)\b([a-z][a-z0-9+.-]*://[^:/@\s]+):([^@\s]+)@"
)

_logger = structlog.get_logger(__name__)


class KeyClass(enum.Enum):
    """Result of the closed key-classification rule list."""

    WHITELISTED = "whitelisted"
    SECRET = "secret"
    PLAIN = "plain"


@dataclass(frozen=True, slots=True)
class RedactionConfig:
    """User-extensible redaction policy.

    Patterns are case-insensitive and either exact names or simple ``*``
    wildcards (``CUSTOM_*``).
    """

    whitelist_patterns: tuple[str, ...] = ()
    secret_patterns: tuple[str, ...] = ()
    max_input_length: int = MAX_SCRUB_INPUT_LENGTH
    cache_size: int = SCRUB_CACHE_SIZE


DEFAULT_REDACTION_CONFIG: Final[RedactionConfig] = RedactionConfig()


class ScrubCache:
    """Bounded LRU mapping of input digest -> redacted output.

    Keys are SHA-256 digests so raw input strings are never retained.
    """

    def __init__(self, max_size: int = SCRUB_CACHE_SIZE) -> None:
        if max_size <= 0:
            raise ValueError("max_size must be > 0")
        self._max_size = max_size
        self._entries: OrderedDict[str, str] = OrderedDict()

    @property
    def max_size(self) -> int:
        return self._max_size

    def get(self, digest: str) -> str | None:
        value = self._entries.get(digest)
        if value is not None:
            self._entries.move_to_end(digest)
        return value

    def put(self, digest: str, value: str) -> None:
        self._entries[digest] = value
        self._entries.move_to_end(digest)
        while len(self._entries) > self._max_size:
            self._entries.popitem(last=False)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, digest: object) -> bool:
        return digest in self._entries


def classify_key(key: str, config: RedactionConfig | None = None) -> KeyClass:
    """Classify ``key`` with the fixed rule order whitelist -> secret -> plain."""

    if not isinstance(key, str) or not key.strip():
        return KeyClass.PLAIN
    resolved = config if config is not None else DEFAULT_REDACTION_CONFIG
    lowered = key.strip().lower()

    if lowered in DEFAULT_WHITELIST or _matches_any(lowered, resolved.whitelist_patterns):
        return KeyClass.WHITELISTED
    if lowered in BUILTIN_SECRET_KEYS or _matches_any(lowered, resolved.secret_patterns):
        return KeyClass.SECRET
    if any(token in lowered for token in SECRET_KEY_TOKENS):
        return KeyClass.SECRET
    return KeyClass.PLAIN


def is_secret_key(key: str, config: RedactionConfig | None = None) -> bool:
    """Return ``True`` when ``key`` names a value that must be redacted."""

    return classify_key(key, config) is KeyClass.SECRET


def is_whitelisted(key: str, config: RedactionConfig | None = None) -> bool:
    """Return ``True`` when ``key`` is exempt from redaction."""

    return classify_key(key, config) is KeyClass.WHITELISTED


class Redactor:
    """Text and structure scrubber.

    The optional ``cache`` is owned by the caller (one per CLI invocation) and
    must be cleared at the end of the run with :meth:`clear_cache`.
    """

    def __init__(
        self,
        config: RedactionConfig | None = None,
        *,
        cache: ScrubCache | None = None,
    ) -> None:
        self._config = config if config is not None else DEFAULT_REDACTION_CONFIG
        self._cache = cache

    @property
    def config(self) -> RedactionConfig:
        return self._config

    @property
    def cache(self) -> ScrubCache | None:
        return self._cache

    def clear_cache(self) -> None:
        if self._cache is not None:
            self._cache.clear()

    def is_secret_key(self, key: str) -> bool:
        return is_secret_key(key, self._config)

    def is_whitelisted(self, key: str) -> bool:
        return is_whitelisted(key, self._config)

    def redact_text(self, text: str) -> str:
        """Return ``text`` with every detected secret replaced by a sentinel."""

        if not isinstance(text, str) or not text:
            return text

        digest = _digest(text)
        if self._cache is not None:
            cached = self._cache.get(digest)
            if cached is not None:
                return cached

        if len(text) > self._config.max_input_length:
            result = INPUT_TOO_LARGE
        else:
            try:
                result = self._scan(text)
            except Exception as exc:  # noqa: BLE001 - never surface unredacted text
                _report_internal_failure(RedactionInternalError(len(text), type(exc).__name__))
                return SCRUBBING_FAILED

        if self._cache is not None:
            self._cache.put(digest, result)
        return result

    def redact_value(self, value: object) -> object:
        """Return a deep-redacted copy of ``value`` without mutating it."""

        try:
            return self._walk(value, stack=set())
        except Exception as exc:  # noqa: BLE001 - degrade to a fully redacted value
            _report_internal_failure(RedactionInternalError(0, type(exc).__name__))
            return REDACTED

    def _scan(self, text: str) -> str:
        redacted = _PRIVATE_KEY_BLOCK.sub(REDACTED_PRIVATE_KEY, text)
        redacted = _JWT.sub(REDACTED_JWT, redacted)
        redacted = _KEY_VALUE.sub(self._replace_assignment, redacted)
        return _URL_CREDENTIALS.sub(rf"\1:{REDACTED}@", redacted)

    def _replace_assignment(self, match: re.Match[str]) -> str:
        key, value = match.group(1), match.group(2)
        if value in _SENTINELS:
            return match.group(0)
        if classify_key(key, self._config) is not KeyClass.SECRET:
            return match.group(0)
        return f"{key}={REDACTED}"

    def _walk(self, value: object, *, stack: set[int]) -> object:
        if value is None or isinstance(value, (bool, int, float)):
            return value

        if isinstance(value, str):
            return self.redact_text(value)

        if isinstance(value, Mapping):
            return self._walk_container(value, stack, self._walk_mapping)

        if isinstance(value, (list, tuple)):
            return self._walk_container(value, stack, self._walk_sequence)

        # Opaque values (datetime, bytes, Path, sets, custom objects) pass through.
        return value

    def _walk_container(
        self,
        value: object,
        stack: set[int],
        walker: Callable[[object, set[int]], object],
    ) -> object:
        marker = id(value)
        if marker in stack:
            return CIRCULAR
        stack.add(marker)
        try:
            return walker(value, stack)
        finally:
            stack.discard(marker)

    def _walk_mapping(self, value: object, stack: set[int]) -> object:
        assert isinstance(value, Mapping)
        out: dict[object, object] = {}
        for key, item in value.items():
            if isinstance(key, str) and classify_key(key, self._config) is KeyClass.SECRET:
                out[key] = REDACTED
            else:
                out[key] = self._walk(item, stack=stack)
        return out

    def _walk_sequence(self, value: object, stack: set[int]) -> object:
        assert isinstance(value, (list, tuple))
        items = [self._walk(item, stack=stack) for item in value]
        if isinstance(value, tuple):
            return tuple(items)
        return items


def redact_text(text: str, *, config: RedactionConfig | None = None) -> str:
    """Uncached one-shot text redaction."""

    return Redactor(config).redact_text(text)


def redact_value(value: object, *, config: RedactionConfig | None = None) -> object:
    """Uncached one-shot deep redaction."""

    return Redactor(config).redact_value(value)


def _matches_any(lowered_key: str, patterns: tuple[str, ...]) -> bool:
    for pattern in patterns:
        normalized = pattern.strip().lower()
        if not normalized:
            continue
        if "*" in normalized:
            if fnmatch.fnmatchcase(lowered_key, normalized):
                return True
        elif lowered_key == normalized:
            return True
    return False


def _digest(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8", errors="surrogatepass")).hexdigest()


def _report_internal_failure(error: RedactionInternalError) -> None:
    # Metadata only: input length and exception type.
    with contextlib.suppress(Exception):
        _logger.warning("redaction_internal_failure", length=error.length, reason=error.reason)


__all__ = [
    "BUILTIN_SECRET_KEYS",
    "CIRCULAR",
    "DEFAULT_REDACTION_CONFIG",
    "DEFAULT_WHITELIST",
    "INPUT_TOO_LARGE",
    "REDACTED",
    "REDACTED_JWT",
    "REDACTED_PRIVATE_KEY",
    "SCRUBBING_FAILED",
    "SECRET_KEY_TOKENS",
    "KeyClass",
    "RedactionConfig",
    "Redactor",
    "ScrubCache",
    "classify_key",
    "is_secret_key",
    "is_whitelisted",
    "redact_text",
    "redact_value",
]

"""
secrets-sync — structured logging

File: src/secrets_sync/observability/logging.py

Purpose
- Configure ``structlog`` on top of stdlib ``logging`` for console or JSON-lines
  output.

Functional requirements
- Every event dict passes through the run's ``Redactor`` before rendering;
  redaction cannot be turned off.
- Exceptions are rendered to text before redaction so tracebacks are scrubbed too.
- Re-running setup replaces the previous handler instead of stacking handlers.
"""

from __future__ import annotations

import logging
import sys
import threading
from collections.abc import MutableMapping
from typing import IO, Any, Final

import structlog

from secrets_sync.security.redaction import REDACTED, Redactor

_DEFAULT_LOGGER_NAME: Final[str] = "secrets_sync"

_ACTIVE_HANDLER_LOCK = threading.Lock()
_ACTIVE_HANDLER: logging.Handler | None = None


class RedactingProcessor:
    """structlog processor that scrubs the whole event dict."""

    __slots__ = ("_redactor",)

    def __init__(self, redactor: Redactor) -> None:
        self._redactor = redactor

    @property
    def redactor(self) -> Redactor:
        return self._redactor

    def __call__(
        self,
        logger: Any,
        method_name: str,
        event_dict: MutableMapping[str, Any],
    ) -> MutableMapping[str, Any]:
        redacted = self._redactor.redact_value(dict(event_dict))
        if isinstance(redacted, dict):
            return redacted
        # redact_value collapses to REDACTED on internal failure; keep the level only.
        return {"event": REDACTED, "level": event_dict.get("level", method_name)}


def parse_log_level(value: int | str) -> int:
    if isinstance(value, int):
        return value
    normalized = value.strip().upper()
    parsed = logging.getLevelName(normalized)
    if isinstance(parsed, int):
        return parsed
    raise ValueError(f"unsupported logging level {value!r}")


def build_processors(
    redactor: Redactor,
    *,
    json_output: bool = False,
) -> list[Any]:
    renderer: Any
    if json_output:
        renderer = structlog.processors.JSONRenderer(sort_keys=True)
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=False)
    return [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.format_exc_info,
        RedactingProcessor(redactor),
        renderer,
    ]


def setup_logging(
    level: int | str = "INFO",
    *,
    json_output: bool = False,
    redactor: Redactor | None = None,
    stream: IO[str] | None = None,
    logger_name: str = _DEFAULT_LOGGER_NAME,
) -> structlog.stdlib.BoundLogger:
    """Configure structlog + stdlib logging and return the package logger."""

    global _ACTIVE_HANDLER

    numeric_level = parse_log_level(level)
    scrubber = redactor if redactor is not None else Redactor()

    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    handler.setFormatter(logging.Formatter("%(message)s"))
    handler.setLevel(numeric_level)

    package_logger = logging.getLogger(logger_name)
    with _ACTIVE_HANDLER_LOCK:
        if _ACTIVE_HANDLER is not None:
            package_logger.removeHandler(_ACTIVE_HANDLER)
            _ACTIVE_HANDLER.close()
        package_logger.addHandler(handler)
        package_logger.setLevel(numeric_level)
        package_logger.propagate = False
        _ACTIVE_HANDLER = handler

    structlog.configure(
        processors=build_processors(scrubber, json_output=json_output),
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        context_class=dict,
        cache_logger_on_first_use=False,
    )
    return get_logger(logger_name)


def shutdown_logging(logger_name: str = _DEFAULT_LOGGER_NAME) -> None:
    global _ACTIVE_HANDLER

    with _ACTIVE_HANDLER_LOCK:
        if _ACTIVE_HANDLER is None:
            return
        _ACTIVE_HANDLER.flush()
        logging.getLogger(logger_name).removeHandler(_ACTIVE_HANDLER)
        _ACTIVE_HANDLER.close()
        _ACTIVE_HANDLER = None


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name or _DEFAULT_LOGGER_NAME)


__all__ = [
    "RedactingProcessor",
    "build_processors",
    "get_logger",
    "parse_log_level",
    "setup_logging",
    "shutdown_logging",
]

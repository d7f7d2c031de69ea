"""Observability helpers (structured, always-redacted logging)."""

from secrets_sync.observability.logging import (
    RedactingProcessor,
    build_processors,
    get_logger,
    parse_log_level,
    setup_logging,
    shutdown_logging,
)

__all__ = [
    "RedactingProcessor",
    "build_processors",
    "get_logger",
    "parse_log_level",
    "setup_logging",
    "shutdown_logging",
]

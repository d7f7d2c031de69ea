"""Executable CLI entrypoint for ``secrets_sync``."""

from __future__ import annotations

import sys
import traceback
from enum import IntEnum
from typing import TYPE_CHECKING

from secrets_sync.security.redaction import redact_text

if TYPE_CHECKING:
    from collections.abc import Sequence


class ExitCode(IntEnum):
    """Deterministic process exit-code contract."""

    SUCCESS = 0
    FAILURE = 1
    CONFIG_ERROR = 2
    REMOTE_ERROR = 3
    INTERNAL_ERROR = 4


def cli_entrypoint(argv: Sequence[str] | None = None) -> int:
    """Entrypoint used by ``python -m secrets_sync`` and the console script."""

    try:
        from secrets_sync.ui.cli import run_cli

        return _normalize_exit_code(run_cli(argv))
    except SystemExit as exc:
        return _normalize_exit_code(exc.code)
    except KeyboardInterrupt:
        _write_stderr("Interrupted.")
        return int(ExitCode.FAILURE)
    except Exception as exc:  # noqa: BLE001 - CLI boundary normalization.
        exit_code = _route_exception(exc)
        _emit_failure(exc, exit_code)
        return int(exit_code)


def _normalize_exit_code(raw_code: object) -> int:
    if isinstance(raw_code, int) and raw_code in {0, 1, 2, 3, 4}:
        return raw_code
    if raw_code is None:
        return int(ExitCode.SUCCESS)
    if isinstance(raw_code, str) and raw_code.strip():
        _write_stderr(raw_code.strip())
    return int(ExitCode.INTERNAL_ERROR)


def _route_exception(exc: BaseException) -> ExitCode:
    from secrets_sync.errors import ConfigLoadError, ParseError, RemoteError

    for item in _iter_exception_chain(exc):
        if isinstance(item, (ConfigLoadError, ParseError)):
            return ExitCode.CONFIG_ERROR
        if isinstance(item, (FileNotFoundError, NotADirectoryError, PermissionError)):
            return ExitCode.CONFIG_ERROR
        if isinstance(item, RemoteError):
            return ExitCode.REMOTE_ERROR
    return ExitCode.INTERNAL_ERROR


def _iter_exception_chain(exc: BaseException) -> list[BaseException]:
    seen: set[int] = set()
    items: list[BaseException] = []
    current: BaseException | None = exc
    while current is not None:
        marker = id(current)
        if marker in seen:
            break
        seen.add(marker)
        items.append(current)
        if current.__cause__ is not None:
            current = current.__cause__
            continue
        if current.__context__ is not None and not current.__suppress_context__:
            current = current.__context__
            continue
        break
    return items


def _emit_failure(exc: BaseException, exit_code: ExitCode) -> None:
    from secrets_sync.errors import RunAborted, describe_failure

    # Failures inside a run were already rendered with the run's own Redactor.
    if isinstance(exc, RunAborted):
        return
    message = describe_failure(exc)
    if message is not None:
        for line in message.lines():
            _write_stderr(redact_text(line))
        return
    if exit_code is ExitCode.INTERNAL_ERROR:
        rendered = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
        _write_stderr(redact_text(rendered))
        return
    _write_stderr(redact_text(str(exc).strip() or exc.__class__.__name__))


def _write_stderr(message: str) -> None:
    sys.stderr.write(message.rstrip("\n") + "\n")


__all__ = ["ExitCode", "cli_entrypoint"]

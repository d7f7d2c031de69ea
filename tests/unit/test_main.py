"""Unit tests for process exit-code routing."""

from __future__ import annotations

import errno
from pathlib import Path

import pytest

from secrets_sync.errors import ConfigLoadError, RemoteListError, RemoteTimeoutError, RunAborted
from secrets_sync.main import ExitCode, _emit_failure, _normalize_exit_code, _route_exception


def _chained(outer: Exception, inner: Exception) -> Exception:
    try:
        try:
            raise inner
        except Exception as exc:
            raise outer from exc
    except Exception as caught:
        return caught


@pytest.mark.parametrize(
    ("exc", "expected"),
    [
        (ConfigLoadError("bad"), ExitCode.CONFIG_ERROR),
        (FileNotFoundError("missing"), ExitCode.CONFIG_ERROR),
        (RemoteTimeoutError("secret list", 100), ExitCode.REMOTE_ERROR),
        (RuntimeError("boom"), ExitCode.INTERNAL_ERROR),
    ],
)
def test_route_exception(exc: Exception, expected: ExitCode) -> None:
    assert _route_exception(exc) is expected


def test_route_exception_follows_cause_chain() -> None:
    exc = _chained(RuntimeError("wrapper"), RemoteTimeoutError("secret set A", 5))

    assert _route_exception(exc) is ExitCode.REMOTE_ERROR


@pytest.mark.parametrize(("raw", "expected"), [(0, 0), (1, 1), (None, 0), (9, 4), ("oops", 4)])
def test_normalize_exit_code(raw: object, expected: int) -> None:
    assert _normalize_exit_code(raw) == expected


def test_run_aborted_routes_by_its_cause() -> None:
    exc = _chained(RunAborted("RemoteListError"), RemoteListError("denied", returncode=1))

    assert _route_exception(exc) is ExitCode.REMOTE_ERROR


def test_run_aborted_is_not_reported_twice(capsys: pytest.CaptureFixture[str]) -> None:
    exc = _chained(RunAborted("RemoteListError"), RemoteListError("denied", returncode=1))

    _emit_failure(exc, ExitCode.REMOTE_ERROR)

    assert capsys.readouterr().err == ""


def test_permission_failure_prints_fix_command(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    target = tmp_path / "secrets-env.yml"
    target.write_text("flags: {}\n", encoding="utf-8")

    _emit_failure(PermissionError(errno.EACCES, "denied", str(target)), ExitCode.CONFIG_ERROR)

    err = capsys.readouterr().err.splitlines()
    assert err == [
        f"Permission denied on path: {target}",
        "The current user cannot read or write this path.",
        f'Run: chmod 644 "{target}"',
    ]

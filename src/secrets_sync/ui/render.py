"""Output rendering for the secrets-sync CLI.

File: src/secrets_sync/ui/render.py

Purpose
- Thin rendering layer over a ``rich`` console for the diff summary, audit
  table, and diagnostics.
- Respect the NO_COLOR environment variable.

Functional requirements
- Every string that reaches the console passes through the run's Redactor.
- Output stays readable when written to a non-terminal stream.
"""

from __future__ import annotations

import os
from collections.abc import Iterable, Sequence
from typing import IO

from rich.console import Console
from rich.table import Table
from rich.text import Text

from secrets_sync.errors import FailureMessage
from secrets_sync.security.redaction import Redactor
from secrets_sync.sync.applier import AuditRow, FailedAction
from secrets_sync.sync.planner import ActionKind, DriftWarning, SyncPlan

_ACTION_STYLES = {
    ActionKind.CREATE: "green",
    ActionKind.UPDATE: "yellow",
    ActionKind.DELETE: "red",
    ActionKind.NOOP: "dim",
}
_AUDIT_HEADERS = ("name", "source", "action", "status")


class CLIRenderer:
    """CLI output renderer; all text is redacted before printing."""

    def __init__(
        self,
        redactor: Redactor,
        *,
        stream: IO[str] | None = None,
        no_color: bool = False,
        verbose: bool = False,
        width: int | None = None,
    ) -> None:
        self.verbose = verbose
        self._redactor = redactor
        color = not no_color and not os.environ.get("NO_COLOR", "")
        self._console = Console(
            file=stream,
            no_color=not color,
            highlight=False,
            soft_wrap=True,
            width=width,
        )
        self._err_console = Console(
            stderr=stream is None,
            file=stream,
            no_color=not color,
            highlight=False,
            soft_wrap=True,
            width=width,
        )

    @property
    def console(self) -> Console:
        return self._console

    def scrub(self, value: object) -> str:
        return self._redactor.redact_text(str(value))

    def text(self, line: str) -> None:
        self._console.print(Text(self.scrub(line)))

    def section(self, title: str) -> None:
        self._console.print()
        self._console.print(Text(self.scrub(title), style="bold"))

    def info(self, text: str) -> None:
        self._console.print(Text(f"[INFO] {self.scrub(text)}", style="cyan"))

    def success(self, text: str) -> None:
        self._console.print(Text(f"[OK] {self.scrub(text)}", style="green"))

    def warning(self, text: str) -> None:
        self._err_console.print(Text(f"[WARN] {self.scrub(text)}", style="yellow"))

    def error(self, text: str) -> None:
        self._err_console.print(Text(f"[ERROR] {self.scrub(text)}", style="bold red"))

    def failure_message(self, message: FailureMessage) -> None:
        self.error(message.what)
        self._err_console.print(Text(f"  {self.scrub(message.why)}"))
        self._err_console.print(Text(f"  {self.scrub(message.fix)}", style="cyan"))

    def items(self, entries: Iterable[str], *, prefix: str = "- ") -> None:
        for entry in entries:
            self.text(f"  {prefix}{entry}")

    def table(
        self,
        headers: Sequence[str],
        rows: Sequence[Sequence[object]],
        *,
        title: str | None = None,
    ) -> None:
        if not rows:
            return
        table = Table(title=self.scrub(title) if title else None, show_lines=False)
        for header in headers:
            table.add_column(self.scrub(header))
        for row in rows:
            table.add_row(*(self.scrub(cell) for cell in row))
        self._console.print(table)

    def env_files(self, rows: Sequence[tuple[str, str, int, str]]) -> None:
        self.table(
            ("file", "environment", "keys", "prefix"),
            [(file, env, count, prefix or "(none)") for file, env, count, prefix in rows],
            title="Discovered env files",
        )

    def drift(self, warnings: Sequence[DriftWarning]) -> None:
        if not warnings:
            return
        self.section("Drift warnings")
        for warning in warnings:
            self.warning(warning.render())

    def diff_summary(self, plans: Sequence[SyncPlan]) -> None:
        totals = dict.fromkeys(ActionKind, 0)
        for plan in plans:
            for kind, count in plan.counts().items():
                totals[kind] += count
        self.section("Diff Summary (no mutations)")
        line = Text("  ")
        for index, kind in enumerate(ActionKind):
            label = "unchanged" if kind is ActionKind.NOOP else str(kind)
            if index:
                line.append(", ")
            line.append(f"{label}: {totals[kind]}", style=_ACTION_STYLES[kind])
        self._console.print(line)
        for kind in (ActionKind.CREATE, ActionKind.UPDATE, ActionKind.DELETE):
            names = sorted(action.key for plan in plans for action in plan.of_kind(kind))
            if not names:
                continue
            self._console.print(Text(f"  {kind}:", style=_ACTION_STYLES[kind]))
            for name in names:
                self.text(f"   - {name}")

    def audit(self, rows: Sequence[AuditRow]) -> None:
        self.table(
            _AUDIT_HEADERS,
            [(row.name, row.source, row.action, str(row.status)) for row in rows],
            title="Audit Summary",
        )

    def failures(self, failed: Sequence[FailedAction]) -> None:
        if not failed:
            return
        self.error("Some operations failed:")
        for item in failed:
            self.error(f" - {item.action.kind} {item.action.key}: {item.error}")


def create_renderer(
    redactor: Redactor,
    *,
    stream: IO[str] | None = None,
    no_color: bool = False,
    verbose: bool = False,
    width: int | None = None,
) -> CLIRenderer:
    return CLIRenderer(
        redactor, stream=stream, no_color=no_color, verbose=verbose, width=width
    )


__all__ = ["CLIRenderer", "create_renderer"]

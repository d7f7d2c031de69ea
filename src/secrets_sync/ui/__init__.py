"""Command-line surface: argument parsing, run orchestration, and rendering."""

from secrets_sync.ui.cli import (
    PromptApprover,
    RunContext,
    RunOutcome,
    build_parser,
    run_cli,
    run_sync,
)
from secrets_sync.ui.render import CLIRenderer, create_renderer

__all__ = [
    "CLIRenderer",
    "PromptApprover",
    "RunContext",
    "RunOutcome",
    "build_parser",
    "create_renderer",
    "run_cli",
    "run_sync",
]

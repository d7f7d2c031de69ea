"""Command-line interface for secrets-sync."""

from __future__ import annotations

import argparse
import traceback
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import IO, Final

import structlog

from secrets_sync.backup.writer import write_backup
from secrets_sync.config.loader import load_required_secrets, load_settings
from secrets_sync.config.schema import RunSettings
from secrets_sync.constants import (
    BACKUP_DIR_NAME,
    LAST_SYNC_MARKER,
    MANIFEST_FILE_NAME,
    PRODUCTION_ENVIRONMENT,
    VERSION,
)
from secrets_sync.envfiles.resolver import ResolvedEnvironment, resolve_environments
from secrets_sync.envfiles.scanner import EnvFile, scan_env_directory
from secrets_sync.errors import RunAborted, SecretsSyncError, describe_failure
from secrets_sync.observability.logging import setup_logging, shutdown_logging
from secrets_sync.security.gitignore import fix_gitignore, validate_gitignore
from secrets_sync.security.redaction import RedactionConfig, Redactor, ScrubCache
from secrets_sync.sync.applier import (
    ApplyReport,
    Approver,
    AuditRow,
    FailedAction,
    apply_plan,
    build_audit_rows,
)
from secrets_sync.sync.manifest import ManifestStore
from secrets_sync.sync.planner import (
    SyncAction,
    SyncPlan,
    detect_drift,
    namespace_scope,
    plan,
    validate_required_keys,
)
from secrets_sync.sync.remote import (
    GhCliSecretStore,
    SecretStore,
    load_mock_store,
    snapshots_by_name,
)
from secrets_sync.ui.render import CLIRenderer, create_renderer
from secrets_sync.utils.fs import atomic_write, ensure_directory

logger = structlog.get_logger(__name__)

Prompt = Callable[[str], str]

EXIT_OK: Final[int] = 0
EXIT_FAILURE: Final[int] = 1

_YES: Final[frozenset[str]] = frozenset({"y", "yes"})
_ALL: Final[frozenset[str]] = frozenset({"a", "all"})


@dataclass(slots=True)
class RunContext:
    """Per-invocation resources. ``close`` must run on every exit path."""

    settings: RunSettings
    env_dir: Path
    redactor: Redactor
    cache: ScrubCache
    renderer: CLIRenderer
    store: SecretStore
    manifest: ManifestStore
    prompt: Prompt = input
    cwd: Path = field(default_factory=Path.cwd)
    fix_gitignore: bool = False

    @classmethod
    def create(
        cls,
        settings: RunSettings,
        *,
        store: SecretStore | None = None,
        prompt: Prompt = input,
        stream: IO[str] | None = None,
        cwd: Path | None = None,
        fix_gitignore: bool = False,
        width: int | None = None,
    ) -> RunContext:
        working_dir = cwd if cwd is not None else Path.cwd()
        env_dir = Path(settings.dir)
        if not env_dir.is_absolute():
            env_dir = working_dir / env_dir
        config = RedactionConfig(
            whitelist_patterns=settings.whitelist_patterns,
            secret_patterns=settings.scrub_patterns,
        )
        cache = ScrubCache(config.cache_size)
        redactor = Redactor(config, cache=cache)
        if store is None:
            store = (
                load_mock_store(env_dir)
                if settings.mock
                else GhCliSecretStore(settings.timeout_ms, redactor=redactor)
            )
        return cls(
            settings=settings,
            env_dir=env_dir,
            redactor=redactor,
            cache=cache,
            renderer=create_renderer(
                redactor, stream=stream, verbose=settings.log_level == "DEBUG", width=width
            ),
            store=store,
            manifest=ManifestStore(env_dir / BACKUP_DIR_NAME / MANIFEST_FILE_NAME),
            prompt=prompt,
            cwd=working_dir,
            fix_gitignore=fix_gitignore,
        )

    @property
    def bak_dir(self) -> Path:
        return self.env_dir / BACKUP_DIR_NAME

    def close(self) -> None:
        self.redactor.clear_cache()


@dataclass(frozen=True, slots=True)
class RunOutcome:
    exit_code: int
    plans: tuple[SyncPlan, ...] = ()
    audit: tuple[AuditRow, ...] = ()
    failed: tuple[FailedAction, ...] = ()


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="secrets-sync",
        description=(
            "Sync secrets from local .env files to GitHub repository secrets.\n\n"
            "Examples:\n"
            "  secrets-sync --dry-run            Show the plan without changing anything\n"
            "  secrets-sync --env staging        Sync only the staging environment\n"
            "  secrets-sync --overwrite          Apply every change without prompting\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--env", default=None, help="Sync only this environment.")
    parser.add_argument("--dir", default=None, help="Env file directory (default: config/env).")
    parser.add_argument(
        "--config",
        dest="config_path",
        default=None,
        help="Path to env-config.yml (default: search the working directory, then --dir).",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        default=None,
        help="Plan and report only; no backups, prompts, or remote writes.",
    )
    parser.add_argument(
        "--overwrite",
        action="store_true",
        default=None,
        help="Update every existing secret and approve all changes without prompting.",
    )
    parser.add_argument(
        "--skip-unchanged",
        "--trust-manifest",
        dest="skip_unchanged",
        action="store_true",
        default=None,
        help="Trust the manifest when remote timestamps are unavailable.",
    )
    parser.add_argument(
        "--force",
        "-f",
        action="store_true",
        default=None,
        help="Sync production alias files as separately prefixed secrets.",
    )
    parser.add_argument(
        "--no-confirm",
        action="store_true",
        default=None,
        help="Never prompt; without --overwrite nothing is applied.",
    )
    parser.add_argument(
        "--confirm-deletes",
        action="store_true",
        default=None,
        help="Allow planned deletes to be applied.",
    )
    parser.add_argument(
        "--mock",
        action="store_true",
        default=None,
        help="Use an in-memory secret store seeded from .secrets-mock.json.",
    )
    parser.add_argument(
        "--fix-gitignore",
        action="store_true",
        default=False,
        help="Append missing env and backup patterns to ./.gitignore.",
    )
    parser.add_argument("--verbose", "-v", action="store_true", default=False, help="Debug logs.")
    parser.add_argument("--json", dest="json_logs", action="store_true", default=None,
                        help="Emit JSON-lines logs on stderr.")
    parser.add_argument("--version", action="version", version=f"secrets-sync {VERSION}")
    return parser


def cli_overrides_from_args(args: argparse.Namespace) -> dict[str, object]:
    overrides: dict[str, object] = {
        "dir": args.dir,
        "env": args.env,
        "mock": args.mock,
        "flags": {
            "dry_run": args.dry_run,
            "overwrite": args.overwrite,
            "force": args.force,
            "no_confirm": args.no_confirm,
            "skip_unchanged": args.skip_unchanged,
            "confirm_deletes": args.confirm_deletes,
        },
        "logging": {
            "level": "DEBUG" if args.verbose else None,
            "json": args.json_logs,
        },
    }
    return overrides


def run_cli(
    argv: Sequence[str] | None = None,
    *,
    environ: Mapping[str, str] | None = None,
    store: SecretStore | None = None,
    prompt: Prompt = input,
    stream: IO[str] | None = None,
    cwd: Path | None = None,
    width: int | None = None,
) -> int:
    parser = build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)
    working_dir = cwd if cwd is not None else Path.cwd()

    settings = load_settings(
        args.config_path,
        cli_overrides=cli_overrides_from_args(args),
        environ=environ,
        cwd=working_dir,
    )
    context = RunContext.create(
        settings,
        store=store,
        prompt=prompt,
        stream=stream,
        cwd=working_dir,
        fix_gitignore=args.fix_gitignore,
        width=width,
    )
    setup_logging(settings.log_level, json_output=settings.json_logs, redactor=context.redactor)
    try:
        return run_sync(context).exit_code
    except Exception as exc:
        report_failure(context.renderer, exc)
        raise RunAborted(type(exc).__name__) from exc
    finally:
        context.close()
        shutdown_logging()


# ---------------------------------------------------------------------------
# Run pipeline
# ---------------------------------------------------------------------------


def run_sync(context: RunContext) -> RunOutcome:
    settings = context.settings
    renderer = context.renderer

    _check_gitignore(context)

    files = scan_env_directory(context.env_dir)
    if not files:
        renderer.error(f"No env files found in {context.env_dir}")
        return RunOutcome(exit_code=EXIT_FAILURE)

    resolution, others = resolve_environments(files, force=settings.force)
    production = resolution.production
    for message in resolution.messages:
        renderer.info(message)
    all_envs = ([production] if production is not None else []) + list(others)
    for environment in all_envs:
        for warning in environment.warnings:
            renderer.warning(str(warning))
    renderer.env_files(
        [(env.file, env.name, len(env.values), env.prefix) for env in all_envs]
    )

    required = load_required_secrets(context.env_dir)
    missing = validate_required_keys(production, required.production)
    if missing:
        origin = production.file if production is not None else "production"
        renderer.error(f"Missing required production keys in {origin}:")
        renderer.items(missing)
        return RunOutcome(exit_code=EXIT_FAILURE)

    if production is not None:
        renderer.drift(detect_drift(production, others))

    active = _select_environments(production, others, settings.env)
    if not active:
        renderer.error(f"No environment named {settings.env!r} was discovered")
        return RunOutcome(exit_code=EXIT_FAILURE)

    if not settings.dry_run:
        _write_backups(context, files, active, resolution.overrides)

    snapshots = snapshots_by_name(context.store.list())
    context.manifest.load()
    for warning in context.manifest.warnings:
        renderer.warning(warning)
    if settings.trust_manifest and not settings.mock:
        renderer.warning(
            "--skip-unchanged enabled: trusting manifest, cannot detect out-of-band changes"
        )

    prefixes = [env.prefix for env in all_envs]
    plans: list[SyncPlan] = []
    for environment in active:
        desired = environment.secret_names()
        plans.append(
            plan(
                desired,
                snapshots,
                context.manifest.for_environment(environment.name),
                environment=environment.name,
                trust_manifest=settings.trust_manifest,
                overwrite=settings.overwrite,
                skip_patterns=settings.skip_secrets,
                delete_scope=namespace_scope(environment.prefix, prefixes),
                sources={
                    f"{environment.prefix}{key}": environment.source_for(key)
                    for key in environment.values
                },
            )
        )
    renderer.diff_summary(plans)

    if settings.dry_run:
        renderer.info("Dry-run mode: no prompts, no mutations.")
        audit = tuple(
            row
            for item in plans
            for row in build_audit_rows(item.actions, applied=None, skipped=item.skipped)
        )
        renderer.audit(audit)
        return RunOutcome(exit_code=EXIT_OK, plans=tuple(plans), audit=audit)

    has_mutations = any(item.has_changes for item in plans)
    if has_mutations and settings.no_confirm and not settings.overwrite:
        renderer.error(
            "--no-confirm supplied without --overwrite; refusing to prompt. "
            "Aborting with no changes."
        )
        return RunOutcome(exit_code=EXIT_FAILURE, plans=tuple(plans))
    if not has_mutations:
        renderer.info("No changes to apply.")

    approver: Approver | None = None
    if settings.overwrite:
        renderer.info("--overwrite supplied: approving all planned changes without prompts.")
    else:
        approver = PromptApprover(context.prompt, renderer)

    reports: list[ApplyReport] = []
    for item in plans:
        environment = next(env for env in active if env.name == item.environment)
        reports.append(
            apply_plan(
                item.actions,
                store=context.store,
                manifest_store=context.manifest,
                desired=environment.secret_names(),
                environment=environment.name,
                confirm_deletes=settings.confirm_deletes,
                approve=approver,
                redactor=context.redactor,
                skipped=item.skipped,
            )
        )

    context.manifest.save()

    audit = tuple(row for report in reports for row in report.audit)
    failed = tuple(failure for report in reports for failure in report.failed)
    for report in reports:
        for warning in report.warnings:
            renderer.warning(warning)
        for action in report.declined:
            logger.info("change_declined", name=action.key, action=str(action.kind))
    renderer.audit(audit)
    renderer.failures(failed)

    if failed:
        return RunOutcome(exit_code=EXIT_FAILURE, plans=tuple(plans), audit=audit, failed=failed)

    _write_last_sync_marker(context)
    renderer.success("Sync complete.")
    return RunOutcome(exit_code=EXIT_OK, plans=tuple(plans), audit=audit)


def report_failure(renderer: CLIRenderer, exc: BaseException) -> None:
    """Render a failure that ends the run, redacted by the run's Redactor."""

    message = describe_failure(exc)
    if message is not None:
        renderer.failure_message(message)
    elif isinstance(exc, (SecretsSyncError, OSError)):
        renderer.error(str(exc).strip() or type(exc).__name__)
    else:
        renderer.error("".join(traceback.format_exception(exc)).rstrip())


class PromptApprover:
    """Interactive per-change approval: ``y`` approves, ``a`` approves the rest."""

    def __init__(self, prompt: Prompt, renderer: CLIRenderer) -> None:
        self._prompt = prompt
        self._renderer = renderer
        self._accept_all = False

    def __call__(self, action: SyncAction) -> bool:
        if self._accept_all:
            return True
        try:
            answer = self._prompt(
                f"Apply {str(action.kind).upper()} for {action.key}? [y/N/a]: "
            )
        except EOFError:
            return False
        normalized = answer.strip().lower()
        if normalized in _ALL:
            self._accept_all = True
            self._renderer.info("Accepting all remaining changes.")
            return True
        return normalized in _YES


def _select_environments(
    production: ResolvedEnvironment | None,
    others: Sequence[ResolvedEnvironment],
    target: str | None,
) -> list[ResolvedEnvironment]:
    candidates = ([production] if production is not None else []) + list(others)
    if target is None:
        return candidates
    wanted = target.strip().lower()
    if wanted in {"prod", "prd"}:
        wanted = PRODUCTION_ENVIRONMENT
    return [env for env in candidates if env.name.lower() == wanted]


def _write_backups(
    context: RunContext,
    files: Sequence[EnvFile],
    active: Sequence[ResolvedEnvironment],
    production_overrides: Sequence[str],
) -> None:
    wanted = {env.file for env in active}
    if any(env.name == PRODUCTION_ENVIRONMENT for env in active):
        wanted.update(production_overrides)
    for env_file in files:
        if env_file.name not in wanted:
            continue
        result = write_backup(
            env_file.path,
            context.bak_dir,
            retention=context.settings.backup_retention,
        )
        if result.written is not None:
            context.renderer.info(f"Backup written: {result.written.name}")


def _check_gitignore(context: RunContext) -> None:
    gitignore = context.cwd / ".gitignore"
    report = validate_gitignore(gitignore)
    for warning in report.warnings:
        context.renderer.warning(warning)
    if report.is_valid:
        return
    if context.fix_gitignore:
        added = fix_gitignore(gitignore)
        context.renderer.info(f"Added to .gitignore: {', '.join(added)}")
        return
    context.renderer.warning(
        ".gitignore is missing patterns: "
        f"{', '.join(report.missing_patterns)} (run with --fix-gitignore)"
    )


def _write_last_sync_marker(context: RunContext) -> None:
    ensure_directory(context.env_dir)
    stamp = datetime.now(UTC).isoformat().replace("+00:00", "Z")
    atomic_write(context.env_dir / LAST_SYNC_MARKER, f"{stamp}\n")


__all__ = [
    "PromptApprover",
    "RunContext",
    "RunOutcome",
    "build_parser",
    "cli_overrides_from_args",
    "report_failure",
    "run_cli",
    "run_sync",
]

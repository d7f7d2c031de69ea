"""Env file discovery, parsing, and production resolution."""

from secrets_sync.envfiles.dotenv import EnvParseResult, EnvRecord, parse_dotenv, read_env_file
from secrets_sync.envfiles.resolver import (
    ProductionResolution,
    ResolvedEnvironment,
    resolve_environments,
    resolve_other,
    resolve_production,
)
from secrets_sync.envfiles.scanner import EnvFile, env_file_from_path, scan_env_directory

__all__ = [
    "EnvFile",
    "EnvParseResult",
    "EnvRecord",
    "ProductionResolution",
    "ResolvedEnvironment",
    "env_file_from_path",
    "parse_dotenv",
    "read_env_file",
    "resolve_environments",
    "resolve_other",
    "resolve_production",
    "scan_env_directory",
]

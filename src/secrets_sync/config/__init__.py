"""Runtime configuration: schema, validation, and layered loading."""

from secrets_sync.config.loader import (
    RequiredSecrets,
    find_config_file,
    load_config,
    load_config_file,
    load_required_secrets,
    load_settings,
)
from secrets_sync.config.schema import (
    ConfigValidationError,
    ConfigValidationIssue,
    RunSettings,
    assert_valid_config,
    default_config,
    validate_config,
)

__all__ = [
    "ConfigValidationError",
    "ConfigValidationIssue",
    "RequiredSecrets",
    "RunSettings",
    "assert_valid_config",
    "default_config",
    "find_config_file",
    "load_config",
    "load_config_file",
    "load_required_secrets",
    "load_settings",
    "validate_config",
]

"""
cli-sandbox config package public API.

Purpose
- Export config loading/validation entrypoints and public error types.

Functional requirements
- Support loading from ``cli-sandbox.toml`` or ``[tool.cli-sandbox]`` plus
  ``CLI_SANDBOX_`` env overrides.
- Fail fast with clear structured validation/load errors.
"""

from cli_sandbox.config.loader import (
    ConfigLoadError,
    dump_effective_config,
    find_manifest_dir,
    load_config,
    normalize_paths,
)
from cli_sandbox.config.schema import (
    DEFAULT_CONFIG,
    METADATA_SOURCES,
    PATH_FIELDS,
    ConfigValidationError,
    ConfigValidationIssue,
    ConfigValidationResult,
    SandboxConfig,
    assert_valid_config,
    default_config,
    merge_config,
    resolve_features,
    validate_config,
)

__all__ = [
    "DEFAULT_CONFIG",
    "METADATA_SOURCES",
    "PATH_FIELDS",
    "ConfigLoadError",
    "ConfigValidationError",
    "ConfigValidationIssue",
    "ConfigValidationResult",
    "SandboxConfig",
    "assert_valid_config",
    "default_config",
    "dump_effective_config",
    "find_manifest_dir",
    "load_config",
    "merge_config",
    "normalize_paths",
    "resolve_features",
    "validate_config",
]

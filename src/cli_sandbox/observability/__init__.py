"""Public observability primitives: structured sandbox event logging."""

from cli_sandbox.observability.logging import (
    ROOT_LOGGER_NAME,
    LoggingConfig,
    LoggingHandle,
    LogRedactor,
    default_log_redactor,
    get_logger,
    log_level_scope,
    sandbox_scope,
    setup_logging,
    shutdown_logging,
)

__all__ = [
    "LogRedactor",
    "LoggingConfig",
    "LoggingHandle",
    "ROOT_LOGGER_NAME",
    "default_log_redactor",
    "get_logger",
    "log_level_scope",
    "sandbox_scope",
    "setup_logging",
    "shutdown_logging",
]

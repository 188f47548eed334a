"""Structured logging for sandbox events: structlog loggers rendered as JSON lines.

Library modules obtain loggers through :func:`get_logger`. Those loggers are
bound to stdlib loggers under ``cli_sandbox``, which carries a
``logging.NullHandler`` so that importing the harness never writes to stderr on
its own. Events reach an output only when the host application configures
logging or a session opts in with :func:`setup_logging` at the configured
``log_level``.
"""

from __future__ import annotations

import json
import logging
import math
import re
import sys
import threading
from collections.abc import Callable, Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Final

import structlog

JSONScalar = str | int | float | bool | None
JSONValue = JSONScalar | list["JSONValue"] | dict[str, "JSONValue"]
LogRedactor = Callable[[JSONValue], JSONValue]

ROOT_LOGGER_NAME: Final[str] = "cli_sandbox"
_REDACTED_VALUE: Final[str] = "***REDACTED***"

_SENSITIVE_KEY_TERMS: Final[tuple[str, ...]] = (
    "secret",
    "token",
    "password",
    "passphrase",
    "api_key",
    "apikey",
    "authorization",
    "credential",
    "cookie",
    "private_key",
)

_SENSITIVE_ASSIGNMENT_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"(?i)\b(api[_-]?key|token|password|secret|authorization)\b\s*([:=])\s*([^\s,;]+)"
)
_BEARER_TOKEN_PATTERN: Final[re.Pattern[str]] = re.compile(r"(?i)\bbearer\s+[A-Za-z0-9._~+/-]+=*")

_STANDARD_LOG_RECORD_FIELDS: Final[frozenset[str]] = frozenset(
    {
        "args",
        "asctime",
        "created",
        "exc_info",
        "exc_text",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "message",
        "module",
        "msecs",
        "msg",
        "name",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "thread",
        "threadName",
        "taskName",
    }
)

_ACTIVE_HANDLE_LOCK = threading.Lock()
_ACTIVE_HANDLE: LoggingHandle | None = None

logging.getLogger(ROOT_LOGGER_NAME).addHandler(logging.NullHandler())


@dataclass(frozen=True, slots=True)
class LoggingConfig:
    """Configuration for JSON-lines sandbox logging."""

    level: int | str = "INFO"
    log_path: Path | str | None = None
    log_to_stderr: bool = False
    logger_name: str = ROOT_LOGGER_NAME
    redactor: LogRedactor | None = None


class _JsonLineFormatter(logging.Formatter):
    """Formatter that emits canonical JSON objects per log line."""

    def __init__(self, *, redactor: LogRedactor) -> None:
        super().__init__()
        self._redactor = redactor

    def format(self, record: logging.LogRecord) -> str:
        event: dict[str, JSONValue] = {
            "timestamp": _iso8601z_from_epoch(record.created),
            "level": record.levelname,
            "logger": record.name,
            "event": _coerce_log_message(self._redactor(record.getMessage())),
        }

        extras = _extract_extra_fields(record)
        extras.pop("level", None)
        if extras:
            event["fields"] = self._redactor(_normalize_json_value(extras))

        if record.exc_info is not None:
            event["exception"] = self.formatException(record.exc_info)

        return json.dumps(event, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


class LoggingHandle:
    """Runtime handle for an active logging setup."""

    def __init__(
        self,
        *,
        logger: logging.Logger,
        handlers: tuple[logging.Handler, ...],
        log_path: Path | None,
        previous_level: int = logging.NOTSET,
        previous_propagate: bool = True,
    ) -> None:
        self.logger = logger
        self.log_path = log_path
        self._handlers = handlers
        self._previous_level = previous_level
        self._previous_propagate = previous_propagate
        self._lock = threading.Lock()
        self._is_shutdown = False

    @property
    def is_shutdown(self) -> bool:
        return self._is_shutdown

    def flush(self) -> None:
        for handler in self._handlers:
            handler.flush()

    def shutdown(self) -> None:
        with self._lock:
            if self._is_shutdown:
                return
            for handler in self._handlers:
                handler.flush()
                self.logger.removeHandler(handler)
                handler.close()
            self.logger.setLevel(self._previous_level)
            self.logger.propagate = self._previous_propagate
            self._is_shutdown = True


def get_logger(name: str) -> Any:
    """Return a structlog logger bound to the stdlib logger ``name``."""

    return structlog.wrap_logger(
        logging.getLogger(name),
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.render_to_log_kwargs,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
    )


def setup_logging(config: LoggingConfig | None = None) -> LoggingHandle:
    """Attach JSON-lines handlers to the harness logger and return a handle."""

    cfg = config or LoggingConfig()
    level = _parse_log_level(cfg.level)
    redactor = _compose_redactor(cfg.redactor)
    formatter = _JsonLineFormatter(redactor=redactor)

    handlers: list[logging.Handler] = []
    log_path: Path | None = None
    if cfg.log_path is not None:
        log_path = Path(cfg.log_path)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path, encoding="utf-8"))
    if cfg.log_to_stderr or not handlers:
        handlers.append(logging.StreamHandler(sys.stderr))

    logger = logging.getLogger(cfg.logger_name)
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)

    global _ACTIVE_HANDLE
    with _ACTIVE_HANDLE_LOCK:
        previous = _ACTIVE_HANDLE
    if previous is not None:
        previous.shutdown()

    handle = LoggingHandle(
        logger=logger,
        handlers=tuple(handlers),
        log_path=log_path,
        previous_level=logger.level,
        previous_propagate=logger.propagate,
    )
    logger.setLevel(level)
    logger.propagate = False

    with _ACTIVE_HANDLE_LOCK:
        _ACTIVE_HANDLE = handle
    for handler in handlers:
        logger.addHandler(handler)
    return handle


def shutdown_logging(handle: LoggingHandle | None = None) -> None:
    """Detach and close the given (or active) logging handlers."""

    global _ACTIVE_HANDLE
    with _ACTIVE_HANDLE_LOCK:
        resolved = handle or _ACTIVE_HANDLE
        if resolved is not None and resolved is _ACTIVE_HANDLE:
            _ACTIVE_HANDLE = None
    if resolved is not None:
        resolved.shutdown()


@contextmanager
def log_level_scope(level: int | str, *, logger_name: str = ROOT_LOGGER_NAME) -> Iterator[None]:
    """Set the harness logger threshold for the duration of the block.

    Records keep propagating, so a host such as pytest's log capture sees them.
    """

    logger = logging.getLogger(logger_name)
    previous = logger.level
    logger.setLevel(_parse_log_level(level))
    try:
        yield
    finally:
        logger.setLevel(previous)


@contextmanager
def sandbox_scope(**fields: str) -> Iterator[None]:
    """Temporarily bind correlation fields (e.g. ``project_id``) to log events."""

    with structlog.contextvars.bound_contextvars(**fields):
        yield


def default_log_redactor(value: JSONValue) -> JSONValue:
    """Deep redaction for secret-looking keys and inline credentials."""

    return _redact_value(value, key_context=None)


def _compose_redactor(candidate: LogRedactor | None) -> LogRedactor:
    if candidate is None:
        return default_log_redactor

    def composed(value: JSONValue) -> JSONValue:
        return default_log_redactor(_normalize_json_value(candidate(value)))

    return composed


def _parse_log_level(value: int | str) -> int:
    if isinstance(value, int):
        return value
    normalized = value.strip().upper()
    parsed = logging.getLevelName(normalized)
    if isinstance(parsed, int):
        return parsed
    raise ValueError(f"unsupported logging level {value!r}")


def _iso8601z_from_epoch(epoch_seconds: float) -> str:
    timestamp = datetime.fromtimestamp(epoch_seconds, tz=timezone.utc)
    return timestamp.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _coerce_log_message(value: JSONValue) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def _extract_extra_fields(record: logging.LogRecord) -> dict[str, object]:
    fields: dict[str, object] = {}
    for key, value in record.__dict__.items():
        if key in _STANDARD_LOG_RECORD_FIELDS or key.startswith("_"):
            continue
        fields[key] = value
    return fields


def _normalize_json_value(value: object) -> JSONValue:
    if value is None or isinstance(value, (bool, int, str)):
        return value
    if isinstance(value, float):
        return value if math.isfinite(value) else str(value)
    if isinstance(value, Path):
        return value.as_posix()
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    if isinstance(value, Mapping):
        return {str(key): _normalize_json_value(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_normalize_json_value(item) for item in value]
    if isinstance(value, (set, frozenset)):
        return sorted((_normalize_json_value(item) for item in value), key=repr)
    return repr(value)


def _redact_value(value: JSONValue, *, key_context: str | None) -> JSONValue:
    if key_context is not None and _requires_redaction_for_key(key_context):
        return _REDACTED_VALUE
    if isinstance(value, str):
        return _redact_string(value)
    if isinstance(value, list):
        return [_redact_value(item, key_context=None) for item in value]
    if isinstance(value, dict):
        return {key: _redact_value(item, key_context=key) for key, item in value.items()}
    return value


def _requires_redaction_for_key(key: str) -> bool:
    key_lower = key.lower()
    return any(term in key_lower for term in _SENSITIVE_KEY_TERMS)


def _redact_string(text: str) -> str:
    redacted = _SENSITIVE_ASSIGNMENT_PATTERN.sub(
        lambda match: f"{match.group(1)}{match.group(2)}{_REDACTED_VALUE}", text
    )
    return _BEARER_TOKEN_PATTERN.sub(f"Bearer {_REDACTED_VALUE}", redacted)


__all__ = [
    "JSONScalar",
    "JSONValue",
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

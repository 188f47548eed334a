"""
cli-sandbox — unit tests for observability logging

File: tests/unit/observability/test_logging.py

Purpose
- Validate structlog event logging rendered as JSON lines with redaction and
  contextvars-bound correlation fields.

What this test file should cover
- JSON line validity and redaction guarantees.
- ``sandbox_scope`` field propagation.
- Multi-threaded logging stability.
- Handle replacement and idempotent shutdown.
- Silence of the harness loggers until logging is configured, and restoration
  of the logger state after shutdown or a level scope.
"""

from __future__ import annotations

import json
import logging
import threading
from typing import TYPE_CHECKING
from uuid import uuid4

import pytest

from cli_sandbox.observability.logging import (
    ROOT_LOGGER_NAME,
    LoggingConfig,
    default_log_redactor,
    get_logger,
    log_level_scope,
    sandbox_scope,
    setup_logging,
    shutdown_logging,
)

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path


@pytest.fixture(autouse=True)
def _cleanup_logging() -> Iterator[None]:
    yield
    shutdown_logging()


def _logger_name() -> str:
    return f"cli_sandbox.tests.logging.{uuid4().hex}"


def _read_json_lines(path: Path) -> list[dict[str, object]]:
    lines = path.read_text(encoding="utf-8").splitlines()
    return [json.loads(line) for line in lines]


@pytest.mark.unit
def test_events_render_as_json_with_scope_fields_and_redaction(tmp_path: Path) -> None:
    logger_name = _logger_name()
    log_path = tmp_path / "logs" / "sandbox.jsonl"
    handle = setup_logging(LoggingConfig(level="DEBUG", log_path=log_path, logger_name=logger_name))
    logger = get_logger(f"{logger_name}.project")

    with sandbox_scope(project_id="cli-sandbox-abc"):
        logger.info(
            "sandbox_file_written",
            relative_path="src/main.py",
            token="tok-FAKE",
            detail="api_key=sk-FAKE123456789012345",
            nested={"password": "hunter2", "safe": "ok"},
        )
    logger.info("sandbox_project_closed")

    shutdown_logging(handle)

    parsed = _read_json_lines(log_path)
    assert [item["event"] for item in parsed] == ["sandbox_file_written", "sandbox_project_closed"]
    first = parsed[0]
    assert first["level"] == "INFO"
    assert first["logger"] == f"{logger_name}.project"
    fields = first["fields"]
    assert isinstance(fields, dict)
    assert fields["project_id"] == "cli-sandbox-abc"
    assert fields["relative_path"] == "src/main.py"
    assert fields["nested"] == {"password": "***REDACTED***", "safe": "ok"}

    second_fields = parsed[1].get("fields", {})
    assert "project_id" not in second_fields

    text = log_path.read_text(encoding="utf-8")
    assert "tok-FAKE" not in text
    assert "sk-FAKE" not in text
    assert "hunter2" not in text


@pytest.mark.unit
def test_level_filtering_drops_debug_events(tmp_path: Path) -> None:
    logger_name = _logger_name()
    log_path = tmp_path / "sandbox.jsonl"
    handle = setup_logging(LoggingConfig(level="INFO", log_path=log_path, logger_name=logger_name))
    logger = get_logger(logger_name)

    logger.debug("sandbox_command_started", argv=["build"])
    logger.warning("sandbox_command_timed_out", timeout_seconds=1.5)
    shutdown_logging(handle)

    parsed = _read_json_lines(log_path)
    assert len(parsed) == 1
    assert parsed[0]["event"] == "sandbox_command_timed_out"
    assert parsed[0]["level"] == "WARNING"


@pytest.mark.unit
def test_multithreaded_logging_produces_valid_json_lines(tmp_path: Path) -> None:
    logger_name = _logger_name()
    log_path = tmp_path / "threads.jsonl"
    handle = setup_logging(LoggingConfig(level="INFO", log_path=log_path, logger_name=logger_name))
    logger = get_logger(logger_name)

    total_threads = 8
    per_thread = 40

    def worker(thread_idx: int) -> None:
        with sandbox_scope(project_id=f"project-{thread_idx}"):
            for index in range(per_thread):
                logger.info("sandbox_event", worker=thread_idx, index=index)

    threads = [threading.Thread(target=worker, args=(idx,)) for idx in range(total_threads)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    shutdown_logging(handle)

    parsed = _read_json_lines(log_path)
    assert len(parsed) == total_threads * per_thread
    for item in parsed:
        fields = item["fields"]
        assert isinstance(fields, dict)
        assert fields["project_id"] == f"project-{fields['worker']}"


@pytest.mark.unit
def test_setup_replaces_previous_handle_and_shutdown_is_idempotent(tmp_path: Path) -> None:
    logger_name = _logger_name()
    first = setup_logging(
        LoggingConfig(log_path=tmp_path / "first.jsonl", logger_name=logger_name)
    )
    second = setup_logging(
        LoggingConfig(log_path=tmp_path / "second.jsonl", logger_name=logger_name)
    )

    assert first.is_shutdown
    assert not second.is_shutdown

    shutdown_logging()
    shutdown_logging()
    second.shutdown()

    assert second.is_shutdown


@pytest.mark.unit
def test_default_log_redactor_handles_bearer_tokens_and_keys() -> None:
    redacted = default_log_redactor(
        {
            "authorization": "Bearer abc.def",
            "message": "sent Bearer abc.def upstream",
            "items": ["password=pw1", "plain"],
        }
    )

    assert redacted == {
        "authorization": "***REDACTED***",
        "message": "sent Bearer ***REDACTED*** upstream",
        "items": ["password=***REDACTED***", "plain"],
    }


class _RecordingHandler(logging.Handler):
    def __init__(self) -> None:
        super().__init__()
        self.records: list[logging.LogRecord] = []

    def emit(self, record: logging.LogRecord) -> None:
        self.records.append(record)


@pytest.mark.unit
def test_harness_warnings_do_not_reach_last_resort_handler(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    fallback = _RecordingHandler()
    monkeypatch.setattr(logging, "lastResort", fallback)
    monkeypatch.setattr(logging.getLogger(), "handlers", [])

    get_logger(f"{ROOT_LOGGER_NAME}.sandbox.project").warning(
        "sandbox_project_retained", path="/tmp/cli-sandbox-x"
    )

    assert fallback.records == []
    root_handlers = logging.getLogger(ROOT_LOGGER_NAME).handlers
    assert any(isinstance(handler, logging.NullHandler) for handler in root_handlers)


@pytest.mark.unit
def test_shutdown_restores_harness_logger_state(tmp_path: Path) -> None:
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    level_before = logger.level
    propagate_before = logger.propagate

    handle = setup_logging(LoggingConfig(level="DEBUG", log_path=tmp_path / "run.jsonl"))
    assert logger.level == logging.DEBUG
    assert logger.propagate is False

    shutdown_logging(handle)

    assert logger.level == level_before
    assert logger.propagate is propagate_before
    assert any(isinstance(handler, logging.NullHandler) for handler in logger.handlers)


@pytest.mark.unit
def test_log_level_scope_sets_threshold_and_keeps_propagation(
    caplog: pytest.LogCaptureFixture,
) -> None:
    logger_name = _logger_name()
    logger = get_logger(f"{logger_name}.project")
    stdlib_logger = logging.getLogger(logger_name)

    with log_level_scope("info", logger_name=logger_name):
        assert stdlib_logger.level == logging.INFO
        logger.debug("sandbox_command_started")
        logger.info("sandbox_command_completed", returncode=0)

    assert stdlib_logger.level == logging.NOTSET
    messages = [record.getMessage() for record in caplog.records]
    assert "sandbox_command_completed" in messages
    assert "sandbox_command_started" not in messages

    with pytest.raises(ValueError, match="unsupported logging level"):
        with log_level_scope("LOUD", logger_name=logger_name):
            pass

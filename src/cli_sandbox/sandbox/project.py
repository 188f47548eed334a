"""
cli-sandbox project

File: src/cli_sandbox/sandbox/project.py

Purpose
- Give each test an isolated temporary directory to stage input files in, run
  the subject program from, and inspect generated files afterwards.

Functional requirements
- Every file operation is confined to the project subtree; absolute paths and
  ``..``/symlink escapes raise :class:`~cli_sandbox.errors.PathEscapeError`.
- The directory is removed on ``close()``, context-manager exit or garbage
  collection, unless the project is kept (explicitly, by config, or because the
  owning scope failed while ``keep_on_failure`` is set).
- Commands always run with the project directory as their working directory.
"""

from __future__ import annotations

import os
from collections.abc import Mapping, Sequence
from pathlib import Path
from types import TracebackType

from cli_sandbox.assertions.result import CommandResult, normalize_newlines
from cli_sandbox.capabilities import Capabilities, capabilities_from_config
from cli_sandbox.config.loader import load_config
from cli_sandbox.config.schema import SandboxConfig
from cli_sandbox.errors import (
    AssertionMismatch,
    PathEscapeError,
    SandboxError,
    SandboxIOError,
    SandboxNotFoundError,
)
from cli_sandbox.observability.logging import get_logger, sandbox_scope
from cli_sandbox.sandbox import provisioner
from cli_sandbox.sandbox.invoker import Command, normalize_args
from cli_sandbox.subject.locator import BinaryLocator, default_locator, locator_for
from cli_sandbox.utils.fs import PathOutsideRootError, atomic_write, resolve_within, safe_delete

_LOGGER = get_logger(__name__)

RelativePath = str | os.PathLike[str]


class Project:
    """An isolated working directory for one test.

    Usage::

        with Project() as project:
            project.new_file("hello.py", "print('hi')")
            project.run(["transpile", "hello.py"]).with_exit_code(0)
            project.check_file("hello.rs", expected)
    """

    def __init__(
        self,
        config: SandboxConfig | None = None,
        *,
        keep: bool | None = None,
        keep_on_failure: bool | None = None,
        locator: BinaryLocator | None = None,
        capabilities: Capabilities | None = None,
    ) -> None:
        self._shared_locator = config is None and locator is None
        self._config = config if config is not None else load_config()
        self._keep = self._config.keep if keep is None else keep
        self._keep_on_failure = (
            self._config.keep_on_failure if keep_on_failure is None else keep_on_failure
        )
        self._locator = locator
        self._capabilities = capabilities or capabilities_from_config(self._config)
        self._directory = provisioner.create(
            prefix=self._config.prefix,
            root=self._config.temp_root,
        )
        self._id = self._directory.path.name
        self._closed = False
        self._logger = _LOGGER.bind(project_id=self._id)
        self._logger.info("sandbox_project_created", path=str(self.path))

    @property
    def path(self) -> Path:
        """Absolute path of the project directory."""

        return self._directory.path

    @property
    def id(self) -> str:
        return self._id

    @property
    def config(self) -> SandboxConfig:
        return self._config

    @property
    def capabilities(self) -> Capabilities:
        return self._capabilities

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def kept(self) -> bool:
        return self._directory.kept

    # File staging ---------------------------------------------------------

    def new_file(self, relative_path: RelativePath, contents: str | bytes) -> Path:
        """Write ``contents`` to ``relative_path``, creating parent directories.

        Text is encoded as UTF-8 and written without newline translation.
        Returns the absolute path written.
        """

        target = self._resolve(relative_path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            atomic_write(target, contents)
        except OSError as exc:
            raise SandboxIOError(target, exc) from exc
        self._logger.debug(
            "sandbox_file_written",
            relative_path=os.fspath(relative_path),
            size=len(contents),
        )
        return target

    def new_dir(self, relative_path: RelativePath) -> Path:
        target = self._resolve(relative_path)
        try:
            target.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise SandboxIOError(target, exc) from exc
        self._logger.debug("sandbox_dir_created", relative_path=os.fspath(relative_path))
        return target

    def remove_file(self, relative_path: RelativePath) -> None:
        """Delete a file (or directory tree) inside the project.

        A symlink is removed itself; its target is left untouched.
        """

        target = self._lexical_path(relative_path)
        if not target.exists() and not target.is_symlink():
            raise SandboxNotFoundError(target)
        try:
            safe_delete(target, self.path)
        except PathOutsideRootError as exc:
            raise PathEscapeError(relative_path, self.path) from exc
        except FileNotFoundError as exc:
            raise SandboxNotFoundError(target) from exc
        except OSError as exc:
            raise SandboxIOError(target, exc) from exc
        self._logger.debug("sandbox_file_removed", relative_path=os.fspath(relative_path))

    def read_file(self, relative_path: RelativePath, *, binary: bool = False) -> str | bytes:
        """Return file contents as bytes, or as UTF-8 text with invalid bytes replaced."""

        raw = self._read_bytes(relative_path)
        if binary:
            return raw
        return raw.decode("utf-8", errors="replace")

    def exists(self, relative_path: RelativePath) -> bool:
        return self._resolve(relative_path).exists()

    def check_file(
        self,
        relative_path: RelativePath,
        expected: str | bytes,
        *,
        normalize_whitespace: bool = False,
    ) -> None:
        """Assert that a generated file has exactly the ``expected`` contents.

        Text comparison normalizes CRLF to LF on both sides. With
        ``normalize_whitespace`` trailing whitespace on each line, and trailing
        blank lines, are ignored. Bytes are compared byte-for-byte.
        """

        raw = self._read_bytes(relative_path)
        label = f"file {os.fspath(relative_path)}"

        if isinstance(expected, bytes) and not normalize_whitespace:
            if raw == expected:
                self._log_check(relative_path, matched=True)
                return
            self._log_check(relative_path, matched=False)
            raise AssertionMismatch(
                label,
                expected,
                raw,
                self._capabilities.diff_renderer.render(
                    label,
                    expected.decode("utf-8", errors="replace"),
                    raw.decode("utf-8", errors="replace"),
                ),
            )

        expected_text = (
            expected.decode("utf-8", errors="replace") if isinstance(expected, bytes) else expected
        )
        expected_text = normalize_newlines(expected_text)
        actual_text = normalize_newlines(raw.decode("utf-8", errors="replace"))
        if normalize_whitespace:
            expected_text = _strip_trailing_whitespace(expected_text)
            actual_text = _strip_trailing_whitespace(actual_text)

        if expected_text == actual_text:
            self._log_check(relative_path, matched=True)
            return
        self._log_check(relative_path, matched=False)
        raise AssertionMismatch(
            label,
            expected_text,
            actual_text,
            self._capabilities.diff_renderer.render(label, expected_text, actual_text),
        )

    # Running the subject --------------------------------------------------

    def command(
        self,
        args: Sequence[str | os.PathLike[str]],
        *,
        env: Mapping[str, str | None] | None = None,
        timeout: float | None = None,
        stdin: str | None = None,
    ) -> Command:
        """Build a command that runs the subject binary inside this project."""

        self._ensure_open()
        return Command(
            args=normalize_args(args),
            cwd=self.path,
            binary_resolver=self._binary_path,
            env=dict(env) if env is not None else None,
            timeout=self._config.timeout_seconds if timeout is None else timeout,
            stdin_text=stdin,
            capabilities=self._capabilities,
        )

    def run(
        self,
        args: Sequence[str | os.PathLike[str]],
        *,
        env: Mapping[str, str | None] | None = None,
        timeout: float | None = None,
        stdin: str | None = None,
    ) -> CommandResult:
        command = self.command(args, env=env, timeout=timeout, stdin=stdin)
        with sandbox_scope(project_id=self._id):
            result = command.run()
        self._logger.info(
            "sandbox_command_completed",
            argv=list(command.args),
            returncode=result.returncode,
            timed_out=result.timed_out,
        )
        return result

    def locator(self) -> BinaryLocator:
        if self._locator is None:
            self._locator = (
                default_locator() if self._shared_locator else locator_for(self._config)
            )
        return self._locator

    # Lifetime -------------------------------------------------------------

    def keep(self) -> Path:
        """Retain the directory after close; returns its path."""

        self._keep = True
        path = self._directory.keep()
        self._logger.info("sandbox_project_kept", path=str(path))
        return path

    def close(self, *, failed: bool = False) -> None:
        """Remove the directory unless it is retained; safe to call more than once."""

        if self._closed:
            return
        self._closed = True
        if self._keep or (failed and self._keep_on_failure):
            path = self._directory.keep()
            self._logger.warning("sandbox_project_retained", path=str(path), failed=failed)
            return
        self._directory.destroy()
        self._logger.info("sandbox_project_closed")

    def __enter__(self) -> Project:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close(failed=exc_type is not None)

    def __repr__(self) -> str:
        return f"Project({str(self.path)!r}, closed={self._closed})"

    # Internals ------------------------------------------------------------

    def _binary_path(self) -> Path:
        return self.locator().resolve().path

    def _ensure_open(self) -> None:
        if self._closed:
            raise SandboxError(f"project {self.path} is closed")

    def _resolve(self, relative_path: RelativePath) -> Path:
        self._ensure_open()
        try:
            return resolve_within(self.path, relative_path)
        except PathOutsideRootError as exc:
            raise PathEscapeError(relative_path, self.path) from exc
        except OSError as exc:
            raise SandboxIOError(self.path, exc) from exc

    def _lexical_path(self, relative_path: RelativePath) -> Path:
        """Resolve the parent only, so a trailing symlink is addressed as itself."""

        candidate = Path(relative_path)
        if candidate.name in {"", ".", ".."}:
            raise PathEscapeError(relative_path, self.path)
        return self._resolve(candidate.parent) / candidate.name

    def _read_bytes(self, relative_path: RelativePath) -> bytes:
        target = self._resolve(relative_path)
        if not target.is_file():
            raise SandboxNotFoundError(target)
        try:
            return target.read_bytes()
        except OSError as exc:
            raise SandboxIOError(target, exc) from exc

    def _log_check(self, relative_path: RelativePath, *, matched: bool) -> None:
        self._logger.debug(
            "sandbox_file_checked",
            relative_path=os.fspath(relative_path),
            matched=matched,
        )


def project(
    config: SandboxConfig | None = None,
    *,
    keep: bool | None = None,
    keep_on_failure: bool | None = None,
) -> Project:
    """Create a :class:`Project` from the discovered configuration."""

    return Project(config, keep=keep, keep_on_failure=keep_on_failure)


def _strip_trailing_whitespace(text: str) -> str:
    return "\n".join(line.rstrip() for line in text.split("\n")).rstrip("\n")


__all__ = ["Project", "project"]

"""Captured outcome of one subject invocation plus assertion helpers.

Imperative methods (``with_stdout``, ``with_exit_code``...) raise
:class:`~cli_sandbox.errors.AssertionMismatch` on mismatch and return the result
so calls can be chained. Predicates (``stdout_matches``, ``empty_stderr``...)
only answer ``True``/``False``.
"""

from __future__ import annotations

import re
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Final

from cli_sandbox.errors import AssertionMismatch

if TYPE_CHECKING:
    from cli_sandbox.capabilities import Capabilities

_WARNING_MARKER: Final[re.Pattern[str]] = re.compile(r"\bwarnings?:")


def normalize_newlines(text: str) -> str:
    """Convert CRLF and lone CR line endings to LF."""

    return text.replace("\r\n", "\n").replace("\r", "\n")


def _default_capabilities() -> Capabilities:
    from cli_sandbox.capabilities import default_capabilities

    return default_capabilities()


@dataclass(frozen=True, slots=True)
class CommandResult:
    """Normalized result emitted by the command invoker."""

    command: tuple[str, ...]
    cwd: Path
    returncode: int | None
    stdout: str
    stderr: str
    timed_out: bool = False
    duration_ms: float = 0.0
    capabilities: Capabilities = field(
        default_factory=_default_capabilities, compare=False, repr=False
    )

    @classmethod
    def from_completed(
        cls,
        completed: subprocess.CompletedProcess[str] | subprocess.CompletedProcess[bytes],
        *,
        cwd: Path | str | None = None,
        duration_ms: float = 0.0,
        capabilities: Capabilities | None = None,
    ) -> CommandResult:
        """Wrap a ``CompletedProcess`` produced outside the harness."""

        args = completed.args
        if isinstance(args, (str, bytes)):
            command = (_decode(args),)
        else:
            command = tuple(_decode(item) for item in args)
        return cls(
            command=command,
            cwd=Path.cwd() if cwd is None else Path(cwd),
            returncode=completed.returncode,
            stdout=_decode(completed.stdout),
            stderr=_decode(completed.stderr),
            duration_ms=duration_ms,
            capabilities=capabilities or _default_capabilities(),
        )

    @property
    def exit_code(self) -> int | None:
        """Raw exit status; ``None`` when the process was stopped by a timeout."""

        return self.returncode

    @property
    def signal(self) -> int | None:
        """Terminating signal number on POSIX, if the process was killed by one."""

        if self.returncode is not None and self.returncode < 0:
            return -self.returncode
        return None

    @property
    def success(self) -> bool:
        return not self.timed_out and self.returncode == 0

    def with_stdout(self, expected: str) -> CommandResult:
        self._assert_equal("stdout", expected, self.stdout)
        return self

    def with_stderr(self, expected: str) -> CommandResult:
        self._assert_equal("stderr", expected, self.stderr)
        return self

    def with_exit_code(self, expected: int) -> CommandResult:
        if self.returncode != expected:
            detail = "timed out" if self.timed_out else f"exited with {self.returncode}"
            raise AssertionMismatch(
                "exit code",
                expected,
                self.returncode,
                f"expected exit code {expected}, process {detail}\n"
                f"stderr: {self.stderr.rstrip()!r}",
            )
        return self

    def stdout_matches(self, pattern: str) -> bool:
        return self.capabilities.matcher.search(pattern, normalize_newlines(self.stdout))

    def stderr_matches(self, pattern: str) -> bool:
        return self.capabilities.matcher.search(pattern, normalize_newlines(self.stderr))

    def with_stdout_matching(self, pattern: str) -> CommandResult:
        if not self.stdout_matches(pattern):
            self._raise_mismatch("stdout", pattern, self.stdout)
        return self

    def with_stderr_matching(self, pattern: str) -> CommandResult:
        if not self.stderr_matches(pattern):
            self._raise_mismatch("stderr", pattern, self.stderr)
        return self

    def empty_stdout(self) -> bool:
        return not self.stdout.rstrip()

    def empty_stderr(self) -> bool:
        return not self.stderr.rstrip()

    def stdout_warns(self) -> bool:
        """Whether stdout carries a ``warning:`` marker (compiler-style output)."""

        return _WARNING_MARKER.search(self.stdout) is not None

    def stderr_warns(self) -> bool:
        """Whether stderr carries a ``warning:`` marker (compiler-style output)."""

        return _WARNING_MARKER.search(self.stderr) is not None

    def _assert_equal(self, label: str, expected: str, actual: str) -> None:
        if normalize_newlines(expected) != normalize_newlines(actual):
            self._raise_mismatch(label, expected, actual)

    def _raise_mismatch(self, label: str, expected: str, actual: str) -> None:
        diff = self.capabilities.diff_renderer.render(
            label, normalize_newlines(expected), normalize_newlines(actual)
        )
        raise AssertionMismatch(label, expected, actual, diff)


def _decode(value: str | bytes | None) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)


__all__ = ["CommandResult", "normalize_newlines"]

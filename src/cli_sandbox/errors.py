"""Exception types raised by the sandbox harness."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence


class SandboxError(RuntimeError):
    """Base error for sandbox harness failures."""


class SandboxIOError(SandboxError):
    """Raised when a filesystem operation on a sandbox fails."""

    def __init__(self, path: Path | str, cause: BaseException | str) -> None:
        self.path = Path(path)
        self.cause = cause
        super().__init__(f"I/O error at {self.path!s}: {cause}")


class PathEscapeError(SandboxIOError):
    """Raised when a relative path would resolve outside the sandbox root."""

    def __init__(self, path: Path | str, root: Path | str) -> None:
        self.root = Path(root)
        super().__init__(path, f"path escapes sandbox root {self.root!s}")


class SandboxNotFoundError(SandboxError):
    """Raised when an expected file is absent from the sandbox."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        super().__init__(f"not found: {self.path!s}")


class MetadataError(SandboxError):
    """Raised when build metadata for the subject cannot be read."""


class BinaryNotFoundError(SandboxError):
    """Raised when the subject artifact for the selected profile does not exist."""

    def __init__(self, path: Path | str, profile: str) -> None:
        self.path = Path(path)
        self.profile = profile
        super().__init__(
            f"subject binary not found for profile {profile!r} at {self.path!s}; "
            "build the subject before running the tests"
        )


class SpawnError(SandboxError):
    """Raised when the subject process cannot be launched."""

    def __init__(self, command: Sequence[str], cause: BaseException) -> None:
        self.command = tuple(command)
        self.cause = cause
        super().__init__(f"unable to launch {' '.join(self.command)!r}: {cause}")


class CapabilityDisabledError(SandboxError):
    """Raised when an operation needs a capability flag that is not enabled."""

    def __init__(self, feature: str) -> None:
        self.feature = feature
        super().__init__(f"capability {feature!r} is not enabled")


class InvalidPatternError(SandboxError, ValueError):
    """Raised when an output pattern cannot be compiled."""


class AssertionMismatch(AssertionError):
    """Expected and actual values diverged.

    Subclasses :class:`AssertionError` so test runners report it as a failure
    rather than an error. ``diff`` holds the rendered comparison.
    """

    def __init__(self, label: str, expected: object, actual: object, diff: str = "") -> None:
        self.label = label
        self.expected = expected
        self.actual = actual
        self.diff = diff
        message = f"{label} mismatch"
        if diff:
            message = f"{message}\n{diff}"
        else:
            message = f"{message}\nexpected: {expected!r}\n  actual: {actual!r}"
        super().__init__(message)


__all__ = [
    "AssertionMismatch",
    "BinaryNotFoundError",
    "CapabilityDisabledError",
    "InvalidPatternError",
    "MetadataError",
    "PathEscapeError",
    "SandboxError",
    "SandboxIOError",
    "SandboxNotFoundError",
    "SpawnError",
]

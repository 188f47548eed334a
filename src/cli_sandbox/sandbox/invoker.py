"""Spawn the subject binary inside a sandbox directory and capture its outcome."""

from __future__ import annotations

import os
import subprocess
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from cli_sandbox.assertions.result import CommandResult
from cli_sandbox.capabilities import default_capabilities
from cli_sandbox.errors import SpawnError
from cli_sandbox.observability.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping, Sequence

    from cli_sandbox.capabilities import Capabilities

_LOGGER = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class Command:
    """One pending invocation of the subject, bound to a project directory."""

    args: tuple[str, ...]
    cwd: Path
    binary_resolver: Callable[[], Path] = field(repr=False, compare=False)
    env: Mapping[str, str | None] | None = None
    timeout: float | None = None
    stdin_text: str | None = None
    capabilities: Capabilities | None = field(default=None, repr=False, compare=False)

    def run(self) -> CommandResult:
        """Resolve the subject binary and run it to completion."""

        return run_command(
            self.binary_resolver(),
            self.args,
            cwd=self.cwd,
            env=self.env,
            timeout=self.timeout,
            stdin_text=self.stdin_text,
            capabilities=self.capabilities,
        )


def normalize_args(args: Sequence[str | os.PathLike[str]]) -> tuple[str, ...]:
    if isinstance(args, (str, bytes)):
        raise ValueError("args must be a sequence of strings, not a single string")
    return tuple(os.fspath(item) for item in args)


def build_environment(env: Mapping[str, str | None] | None) -> dict[str, str]:
    """Inherit the current environment and overlay ``env``; ``None`` values unset."""

    merged = dict(os.environ)
    if env is None:
        return merged
    for key, value in env.items():
        if value is None:
            merged.pop(key, None)
        else:
            merged[key] = value
    return merged


def run_command(
    binary: Path | str,
    args: Sequence[str | os.PathLike[str]],
    *,
    cwd: Path | str,
    env: Mapping[str, str | None] | None = None,
    timeout: float | None = None,
    stdin_text: str | None = None,
    capabilities: Capabilities | None = None,
) -> CommandResult:
    """Run ``binary`` with ``args`` in ``cwd`` and capture stdout, stderr and status.

    Launch failures raise :class:`SpawnError`. A non-zero exit status is data and
    is returned on the result. When ``timeout`` elapses the child is
    killed and the result reports ``timed_out=True`` with ``returncode=None``.
    """

    if timeout is not None and timeout <= 0:
        raise ValueError("timeout must be > 0")

    command = (os.fspath(binary), *normalize_args(args))
    resolved_cwd = Path(cwd)
    resolved_capabilities = capabilities or default_capabilities()

    _LOGGER.debug(
        "sandbox_command_started",
        command=list(command),
        cwd=str(resolved_cwd),
        env_keys=sorted(env or {}),
    )
    started = time.perf_counter()
    try:
        completed = subprocess.run(
            list(command),
            cwd=resolved_cwd,
            check=False,
            capture_output=True,
            timeout=timeout,
            env=build_environment(env),
            input=None if stdin_text is None else stdin_text.encode("utf-8"),
        )
    except subprocess.TimeoutExpired as exc:
        duration_ms = (time.perf_counter() - started) * 1000.0
        _LOGGER.warning(
            "sandbox_command_timed_out",
            command=list(command),
            timeout_seconds=timeout,
        )
        return CommandResult(
            command=command,
            cwd=resolved_cwd,
            returncode=None,
            stdout=_decode_stream(exc.stdout),
            stderr=_decode_stream(exc.stderr),
            timed_out=True,
            duration_ms=duration_ms,
            capabilities=resolved_capabilities,
        )
    except OSError as exc:
        _LOGGER.debug("sandbox_command_spawn_failed", command=list(command), error=str(exc))
        raise SpawnError(command, exc) from exc

    duration_ms = (time.perf_counter() - started) * 1000.0
    _LOGGER.debug(
        "sandbox_command_finished",
        command=list(command),
        returncode=completed.returncode,
        duration_ms=round(duration_ms, 3),
    )
    return CommandResult(
        command=command,
        cwd=resolved_cwd,
        returncode=completed.returncode,
        stdout=_decode_stream(completed.stdout),
        stderr=_decode_stream(completed.stderr),
        timed_out=False,
        duration_ms=duration_ms,
        capabilities=resolved_capabilities,
    )


def _decode_stream(value: bytes | str | None) -> str:
    # No newline translation: CRLF from the subject is kept as-is.
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return value


__all__ = ["Command", "build_environment", "normalize_args", "run_command"]

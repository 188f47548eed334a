"""Temporary directory provisioning with scope-bound cleanup."""

from __future__ import annotations

import os
import shutil
import tempfile
import time
import weakref
from pathlib import Path
from types import TracebackType

from cli_sandbox.constants import DEFAULT_SANDBOX_PREFIX
from cli_sandbox.errors import SandboxIOError
from cli_sandbox.observability.logging import get_logger
from cli_sandbox.utils.fs import safe_delete

_LOGGER = get_logger(__name__)


class TempDirectory:
    """Owning handle for a uniquely named directory.

    The directory is removed by :meth:`destroy`, on context-manager exit, or
    when the handle is garbage-collected, unless :meth:`keep` was called first.
    """

    def __init__(self, path: Path) -> None:
        self._path = path
        self._kept = False
        self._finalizer = weakref.finalize(self, _remove_tree, str(path))

    @property
    def path(self) -> Path:
        return self._path

    @property
    def kept(self) -> bool:
        return self._kept

    @property
    def exists(self) -> bool:
        return self._path.is_dir()

    def keep(self) -> Path:
        """Disarm deletion and return the retained path."""

        self._kept = True
        self._finalizer.detach()
        return self._path

    def destroy(self) -> None:
        """Recursively remove the directory; safe to call more than once."""

        if self._kept:
            return
        try:
            self._finalizer()
        except OSError as exc:
            raise SandboxIOError(self._path, exc) from exc
        _LOGGER.debug("sandbox_directory_destroyed", path=str(self._path))

    def __enter__(self) -> TempDirectory:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.destroy()

    def __repr__(self) -> str:
        return f"TempDirectory({str(self._path)!r}, kept={self._kept})"


def create(
    *,
    prefix: str = DEFAULT_SANDBOX_PREFIX,
    root: Path | str | None = None,
) -> TempDirectory:
    """Allocate a fresh uniquely named directory under ``root`` or the system temp root."""

    parent = Path(root) if root is not None else Path(tempfile.gettempdir())
    try:
        if root is not None:
            parent.mkdir(parents=True, exist_ok=True)
        created = tempfile.mkdtemp(prefix=prefix, dir=str(parent))
    except OSError as exc:
        raise SandboxIOError(parent / f"{prefix}*", exc) from exc

    # mkdtemp may hand back a path through a symlinked temp root (macOS /var).
    path = Path(os.path.realpath(created))
    _LOGGER.debug("sandbox_directory_created", path=str(path))
    return TempDirectory(path)


def _remove_tree(path: str) -> None:
    if not os.path.isdir(path):
        return
    shutil.rmtree(path)


def _newest_mtime(directory: Path) -> float:
    newest = directory.stat().st_mtime
    for current, dirnames, filenames in os.walk(directory):
        for name in (*dirnames, *filenames):
            try:
                newest = max(newest, os.lstat(os.path.join(current, name)).st_mtime)
            except FileNotFoundError:
                continue
    return newest


def gc_retained(
    root: Path | str | None = None,
    *,
    prefix: str = DEFAULT_SANDBOX_PREFIX,
    max_age_hours: float = 24.0,
    dry_run: bool = False,
    now: float | None = None,
) -> list[Path]:
    """Remove retained sandbox directories under ``root`` older than ``max_age_hours``.

    Only direct children whose name starts with ``prefix`` are considered. A
    directory is as old as the most recently modified entry inside it.
    Returns the stale paths, sorted; with ``dry_run`` nothing is deleted.
    """

    if max_age_hours < 0:
        raise ValueError("max_age_hours must be >= 0")
    if not prefix:
        raise ValueError("prefix must not be empty")

    parent = Path(root) if root is not None else Path(tempfile.gettempdir())
    if not parent.is_dir():
        return []

    cutoff = (time.time() if now is None else now) - max_age_hours * 3600.0
    stale: list[Path] = []
    for candidate in sorted(parent.iterdir()):
        if not candidate.name.startswith(prefix):
            continue
        if candidate.is_symlink() or not candidate.is_dir():
            continue
        if _newest_mtime(candidate) > cutoff:
            continue
        stale.append(candidate)

    for path in stale:
        if dry_run:
            continue
        try:
            safe_delete(path, parent)
        except OSError as exc:
            raise SandboxIOError(path, exc) from exc
        _LOGGER.info("sandbox_directory_collected", path=str(path))
    return stale


__all__ = ["TempDirectory", "create", "gc_retained"]

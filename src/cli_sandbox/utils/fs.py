"""
cli-sandbox filesystem utilities

File: src/cli_sandbox/utils/fs.py

Purpose
- Provide safe, minimal filesystem helpers for confined path resolution,
  atomic writes and guarded deletion.

Functional requirements
- Relative paths never resolve outside the sandbox root, including through
  ``..`` segments or symlinks.
- Atomic writes use temp files in the destination directory and replace in a single step.
- Deletion refuses paths outside the sandbox root.

Non-functional requirements
- Standard library only and cross-platform behavior where feasible.
"""

from __future__ import annotations

import contextlib
import os
import shutil
import tempfile
from pathlib import Path

PathLike = str | os.PathLike[str]

__all__ = [
    "PathLike",
    "PathOutsideRootError",
    "atomic_write",
    "is_within",
    "resolve_within",
    "safe_delete",
]


class PathOutsideRootError(ValueError):
    """Raised by :func:`resolve_within` when a candidate escapes the root."""


def resolve_within(root: PathLike, candidate: PathLike) -> Path:
    """
    Resolve ``candidate`` relative to ``root`` and confirm containment.

    Absolute candidates are rejected outright. The returned path is fully
    resolved, so symlinks inside the root that point elsewhere are caught too.
    """

    candidate_path = Path(candidate)
    if candidate_path.is_absolute() or candidate_path.anchor:
        raise PathOutsideRootError(f"absolute paths are not allowed: {candidate!s}")

    resolved_root = Path(root).resolve(strict=True)
    target = (resolved_root / candidate_path).resolve(strict=False)
    if not _is_relative_to(target, resolved_root):
        raise PathOutsideRootError(f"{candidate!s} resolves outside {resolved_root!s}")
    return target


def atomic_write(path: PathLike, data: bytes | str, *, encoding: str = "utf-8") -> None:
    """
    Atomically write ``data`` to ``path``.

    The write strategy is:
    1. create temp file in the same directory,
    2. write + flush file data,
    3. replace target via ``os.replace``.

    Text is written without newline translation so staged bytes match exactly.
    """

    target = Path(path)
    target_parent = target.parent.resolve(strict=True)
    if not target_parent.is_dir():
        raise NotADirectoryError(f"{target_parent!s} is not a directory")

    payload = data if isinstance(data, bytes) else data.encode(encoding)

    fd, temp_name = tempfile.mkstemp(
        prefix=f".{target.name}.",
        suffix=".tmp",
        dir=str(target_parent),
    )
    temp_path = Path(temp_name)

    try:
        with os.fdopen(fd, "wb") as file_handle:
            file_handle.write(payload)
            file_handle.flush()
        os.replace(temp_path, target)
    except Exception:
        with contextlib.suppress(OSError):
            temp_path.unlink(missing_ok=True)
        raise


def is_within(child: PathLike, parent: PathLike) -> bool:
    """Return ``True`` if resolved ``child`` is within resolved ``parent``."""

    try:
        resolved_parent = Path(parent).resolve(strict=True)
    except FileNotFoundError:
        return False
    if not resolved_parent.is_dir():
        return False

    try:
        resolved_child = Path(child).resolve(strict=True)
    except FileNotFoundError:
        return False

    return _is_relative_to(resolved_child, resolved_parent)


def safe_delete(path: PathLike, workspace_root: PathLike) -> None:
    """
    Delete ``path`` only if it is contained within ``workspace_root``.

    Symlinks are unlinked without traversing into their targets.
    """

    workspace = Path(workspace_root).resolve(strict=True)
    if not workspace.is_dir():
        raise NotADirectoryError(f"{workspace!s} is not a directory")

    target = Path(path)
    parent_resolved = target.parent.resolve(strict=True)
    candidate = parent_resolved / target.name
    if not _is_relative_to(candidate, workspace):
        raise PathOutsideRootError(f"refusing to delete path outside workspace root: {target!s}")

    if target.is_symlink():
        target.unlink()
        return

    resolved_target = target.resolve(strict=True)
    if not _is_relative_to(resolved_target, workspace):
        raise PathOutsideRootError(f"refusing to delete path outside workspace root: {target!s}")

    if target.is_dir():
        shutil.rmtree(target)
        return

    target.unlink()


def _is_relative_to(child: Path, parent: Path) -> bool:
    try:
        child.relative_to(parent)
    except ValueError:
        return False
    return True

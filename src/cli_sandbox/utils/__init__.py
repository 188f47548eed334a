"""Utility exports for confined filesystem helpers."""

from cli_sandbox.utils.fs import (
    PathOutsideRootError,
    atomic_write,
    is_within,
    resolve_within,
    safe_delete,
)

__all__ = [
    "PathOutsideRootError",
    "atomic_write",
    "is_within",
    "resolve_within",
    "safe_delete",
]
